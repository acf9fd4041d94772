"""
Accept Request Handler.
PATCH /requests/{requestId}/accept

Assigns the project to the request's solver and rejects every other
pending request on it, atomically.
"""
from marketplace.assignment import accept_request
from marketplace.auth import get_identity
from marketplace.dynamo import DynamoStore
from marketplace.errors import MarketplaceError
from marketplace.logging import logger, log_event
from marketplace.utils import error_response, format_response, require_path_param

store = DynamoStore().open()


def handler(event, context):
    log_event(event)

    try:
        identity = get_identity(event)
        request_id = require_path_param(event, 'requestId')

        result = accept_request(store, identity, request_id)

        return format_response(200, {
            'message': 'Request accepted and project assigned',
            'project': result['project'],
            'request': result['request'],
            'rejectedRequestIds': result['rejectedRequestIds']
        })

    except MarketplaceError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error accepting request: {e}")
        return format_response(500, {'error': 'Server error while accepting request'})
