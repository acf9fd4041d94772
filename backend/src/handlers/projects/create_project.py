"""
Create Project Handler.
POST /projects
Body: { "title": "...", "description": "..." }
"""
from marketplace.auth import get_identity
from marketplace.dynamo import DynamoStore
from marketplace.errors import MarketplaceError
from marketplace.logging import logger, log_event
from marketplace.projects import create_project
from marketplace.utils import error_response, format_response, parse_body

store = DynamoStore().open()


def handler(event, context):
    log_event(event)

    try:
        identity = get_identity(event)
        body = parse_body(event)

        project = create_project(store, identity, body.get('title'), body.get('description'))

        return format_response(201, {
            'message': 'Project created successfully',
            'project': project
        })

    except MarketplaceError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error creating project: {e}")
        return format_response(500, {'error': 'Server error while creating project'})
