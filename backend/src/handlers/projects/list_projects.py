"""
List Projects Handler.
GET /projects
Buyers see their own projects, solvers see open projects and the ones
assigned to them, admins see everything.
"""
from marketplace.auth import get_identity
from marketplace.dynamo import DynamoStore
from marketplace.errors import MarketplaceError
from marketplace.logging import logger, log_event
from marketplace.projects import list_visible_projects
from marketplace.utils import error_response, format_response

store = DynamoStore().open()


def handler(event, context):
    log_event(event)

    try:
        identity = get_identity(event)
        projects = list_visible_projects(store, identity)

        return format_response(200, {
            'projects': projects,
            'count': len(projects)
        })

    except MarketplaceError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error listing projects: {e}")
        return format_response(500, {'error': 'Server error while fetching projects'})
