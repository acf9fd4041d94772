"""
Update Task Handler.
PATCH /tasks/{taskId}
Body: { "title"?: "...", "description"?: "...", "deadline"?: "...", "status"?: "in_progress" }
"""
from marketplace.auth import get_identity
from marketplace.dynamo import DynamoStore
from marketplace.errors import MarketplaceError
from marketplace.logging import logger, log_event
from marketplace.task_board import patch_task
from marketplace.utils import error_response, format_response, parse_body, require_path_param

store = DynamoStore().open()


def handler(event, context):
    log_event(event)

    try:
        identity = get_identity(event)
        task_id = require_path_param(event, 'taskId')
        body = parse_body(event)

        task = patch_task(store, identity, task_id, body)

        return format_response(200, {
            'message': 'Task updated successfully',
            'task': task
        })

    except MarketplaceError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error updating task: {e}")
        return format_response(500, {'error': 'Server error while updating task'})
