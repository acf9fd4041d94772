"""
Update Project Handler.
PATCH /projects/{projectId}
Body: { "title"?: "...", "description"?: "...", "status"?: "cancelled" | "completed" }
"""
from marketplace.auth import get_identity
from marketplace.dynamo import DynamoStore
from marketplace.errors import MarketplaceError
from marketplace.logging import logger, log_event
from marketplace.projects import patch_project
from marketplace.utils import error_response, format_response, parse_body, require_path_param

store = DynamoStore().open()


def handler(event, context):
    log_event(event)

    try:
        identity = get_identity(event)
        project_id = require_path_param(event, 'projectId')
        body = parse_body(event)

        project = patch_project(store, identity, project_id, body)

        return format_response(200, {
            'message': 'Project updated successfully',
            'project': project
        })

    except MarketplaceError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error updating project: {e}")
        return format_response(500, {'error': 'Server error while updating project'})
