"""
Upload Submission Handler.
POST /submissions
Body: { "taskId": "...", "fileName": "work.zip", "fileContent": "<base64>", "notes"?: "..." }

Only ZIP archives up to 50MB are accepted.
"""
import base64
import binascii
from marketplace.auth import get_identity
from marketplace.dynamo import DynamoStore
from marketplace.errors import MarketplaceError, ValidationError
from marketplace.logging import logger, log_event
from marketplace.s3_utils import SubmissionFileStore
from marketplace.submissions import upload_submission
from marketplace.utils import error_response, format_response, parse_body

store = DynamoStore().open()
files = SubmissionFileStore()


def decode_file(body: dict) -> bytes:
    encoded = body.get('fileContent')
    if not encoded:
        raise ValidationError('No file uploaded')
    try:
        return base64.b64decode(encoded, validate=True)
    except (binascii.Error, TypeError, ValueError):
        raise ValidationError('fileContent must be base64 encoded')


def handler(event, context):
    log_event(event)

    try:
        identity = get_identity(event)
        body = parse_body(event)

        task_id = body.get('taskId')
        if not task_id:
            raise ValidationError('Task ID is required')

        content = decode_file(body)
        submission = upload_submission(
            store,
            files,
            identity,
            task_id,
            body.get('fileName'),
            content,
            body.get('notes')
        )

        return format_response(201, {
            'message': 'Submission uploaded successfully',
            'submission': submission
        })

    except MarketplaceError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error uploading submission: {e}")
        return format_response(500, {'error': 'Server error while creating submission'})
