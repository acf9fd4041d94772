"""
Update User Role Handler.
PATCH /users/{userId}/role  (admin)
Body: { "role": "admin" | "buyer" | "problem_solver" }
"""
from marketplace.auth import get_identity
from marketplace.dynamo import DynamoStore
from marketplace.errors import MarketplaceError
from marketplace.logging import logger, log_event
from marketplace.users import update_role
from marketplace.utils import error_response, format_response, parse_body, require_path_param

store = DynamoStore().open()


def handler(event, context):
    log_event(event)

    try:
        identity = get_identity(event)
        user_id = require_path_param(event, 'userId')
        body = parse_body(event)

        user = update_role(store, identity, user_id, body.get('role'))

        return format_response(200, {
            'message': 'Role updated successfully',
            'user': user
        })

    except MarketplaceError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error updating role: {e}")
        return format_response(500, {'error': 'Server error while updating role'})
