"""
Reject Request Handler.
PATCH /requests/{requestId}/reject
"""
from marketplace.auth import get_identity
from marketplace.dynamo import DynamoStore
from marketplace.errors import MarketplaceError
from marketplace.logging import logger, log_event
from marketplace.request_ledger import reject_request
from marketplace.utils import error_response, format_response, require_path_param

store = DynamoStore().open()


def handler(event, context):
    log_event(event)

    try:
        identity = get_identity(event)
        request_id = require_path_param(event, 'requestId')

        request = reject_request(store, identity, request_id)

        return format_response(200, {
            'message': 'Request rejected',
            'request': request
        })

    except MarketplaceError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error rejecting request: {e}")
        return format_response(500, {'error': 'Server error while rejecting request'})
