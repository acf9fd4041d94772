"""
List Project Requests Handler.
GET /requests/project/{projectId}
Owning buyer only.
"""
from marketplace.auth import get_identity
from marketplace.dynamo import DynamoStore
from marketplace.errors import MarketplaceError
from marketplace.logging import logger, log_event
from marketplace.request_ledger import list_requests_for_project
from marketplace.utils import error_response, format_response, require_path_param

store = DynamoStore().open()


def handler(event, context):
    log_event(event)

    try:
        identity = get_identity(event)
        project_id = require_path_param(event, 'projectId')

        requests = list_requests_for_project(store, identity, project_id)

        return format_response(200, {
            'requests': requests,
            'count': len(requests)
        })

    except MarketplaceError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error listing project requests: {e}")
        return format_response(500, {'error': 'Server error while fetching requests'})
