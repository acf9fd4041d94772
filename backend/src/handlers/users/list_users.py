"""
List Users Handler.
GET /users  (admin)
"""
from marketplace.auth import get_identity
from marketplace.dynamo import DynamoStore
from marketplace.errors import MarketplaceError
from marketplace.logging import logger, log_event
from marketplace.users import list_users
from marketplace.utils import error_response, format_response

store = DynamoStore().open()


def handler(event, context):
    log_event(event)

    try:
        identity = get_identity(event)
        users = list_users(store, identity)

        return format_response(200, {
            'users': users,
            'count': len(users)
        })

    except MarketplaceError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error listing users: {e}")
        return format_response(500, {'error': 'Server error while fetching users'})
