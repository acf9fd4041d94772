"""
Configuration module for Lambda handlers.
Loads all environment variables needed by the marketplace.
"""
import os


class Config:
    """Centralized configuration from environment variables."""

    # AWS Region
    AWS_REGION = os.environ.get('AWS_REGION', 'us-east-1')

    # Optional endpoint override (DynamoDB Local)
    DYNAMODB_ENDPOINT_URL = os.environ.get('DYNAMODB_ENDPOINT_URL', '')

    # DynamoDB Tables
    PROJECTS_TABLE = os.environ.get('PROJECTS_TABLE', 'marketplace-projects')
    REQUESTS_TABLE = os.environ.get('REQUESTS_TABLE', 'marketplace-requests')
    TASKS_TABLE = os.environ.get('TASKS_TABLE', 'marketplace-tasks')
    SUBMISSIONS_TABLE = os.environ.get('SUBMISSIONS_TABLE', 'marketplace-submissions')
    USERS_TABLE = os.environ.get('USERS_TABLE', 'marketplace-users')

    # S3 Buckets
    SUBMISSIONS_BUCKET = os.environ.get('SUBMISSIONS_BUCKET', '')
    PRESIGNED_URL_EXPIRATION = int(os.environ.get('PRESIGNED_URL_EXPIRATION', '3600'))

    # Upload limits
    MAX_UPLOAD_BYTES = int(os.environ.get('MAX_UPLOAD_BYTES', str(50 * 1024 * 1024)))
    ALLOWED_UPLOAD_EXTENSIONS = tuple(
        ext.strip().lower()
        for ext in os.environ.get('ALLOWED_UPLOAD_EXTENSIONS', '.zip').split(',')
        if ext.strip()
    )

    # Assignment transaction
    ACCEPT_MAX_ATTEMPTS = int(os.environ.get('ACCEPT_MAX_ATTEMPTS', '3'))
    MAX_TRANSACTION_ITEMS = int(os.environ.get('MAX_TRANSACTION_ITEMS', '100'))


config = Config()
