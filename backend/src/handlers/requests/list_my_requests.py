"""
List My Requests Handler.
GET /requests/my-requests
The calling solver's requests joined with project and buyer details.
"""
from marketplace.auth import get_identity
from marketplace.dynamo import DynamoStore
from marketplace.errors import MarketplaceError
from marketplace.logging import logger, log_event
from marketplace.request_ledger import list_requests_for_solver
from marketplace.utils import error_response, format_response

store = DynamoStore().open()


def handler(event, context):
    log_event(event)

    try:
        identity = get_identity(event)
        requests = list_requests_for_solver(store, identity)

        return format_response(200, {
            'requests': requests,
            'count': len(requests)
        })

    except MarketplaceError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error listing solver requests: {e}")
        return format_response(500, {'error': 'Server error while fetching requests'})
