"""
Create Task Handler.
POST /tasks
Body: { "projectId": "...", "title": "...", "description"?: "...", "deadline"?: "ISO 8601" }
"""
from marketplace.auth import get_identity
from marketplace.dynamo import DynamoStore
from marketplace.errors import MarketplaceError, ValidationError
from marketplace.logging import logger, log_event
from marketplace.task_board import create_task
from marketplace.utils import error_response, format_response, parse_body

store = DynamoStore().open()


def handler(event, context):
    log_event(event)

    try:
        identity = get_identity(event)
        body = parse_body(event)

        project_id = body.get('projectId')
        if not project_id:
            raise ValidationError('projectId is required')

        task = create_task(
            store,
            identity,
            project_id,
            body.get('title'),
            body.get('description'),
            body.get('deadline')
        )

        return format_response(201, {
            'message': 'Task created successfully',
            'task': task
        })

    except MarketplaceError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error creating task: {e}")
        return format_response(500, {'error': 'Server error while creating task'})
