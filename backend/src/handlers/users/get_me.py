"""
Get Current User Handler.
GET /users/me
"""
from marketplace.auth import get_identity
from marketplace.dynamo import DynamoStore
from marketplace.errors import MarketplaceError
from marketplace.logging import logger, log_event
from marketplace.users import get_me
from marketplace.utils import error_response, format_response

store = DynamoStore().open()


def handler(event, context):
    log_event(event)

    try:
        identity = get_identity(event)
        return format_response(200, {'user': get_me(store, identity)})

    except MarketplaceError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error fetching current user: {e}")
        return format_response(500, {'error': 'Server error'})
