"""
Submit Request Handler.
POST /requests
Body: { "projectId": "...", "message"?: "..." }
"""
from marketplace.auth import get_identity
from marketplace.dynamo import DynamoStore
from marketplace.errors import MarketplaceError, ValidationError
from marketplace.logging import logger, log_event
from marketplace.request_ledger import submit_request
from marketplace.utils import error_response, format_response, parse_body

store = DynamoStore().open()


def handler(event, context):
    log_event(event)

    try:
        identity = get_identity(event)
        body = parse_body(event)

        project_id = body.get('projectId')
        if not project_id:
            raise ValidationError('projectId is required')

        request = submit_request(store, identity, project_id, body.get('message'))

        return format_response(201, {
            'message': 'Request submitted successfully',
            'request': request
        })

    except MarketplaceError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error creating request: {e}")
        return format_response(500, {'error': 'Server error while creating request'})
