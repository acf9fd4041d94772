"""
Health Check Handler.
GET /health
"""
from datetime import datetime, timezone
from marketplace.utils import format_response


def handler(event, context):
    return format_response(200, {
        'status': 'ok',
        'message': 'Project Marketplace API is running',
        'database': 'DynamoDB',
        'timestamp': datetime.now(timezone.utc).isoformat()
    })
