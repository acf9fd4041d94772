"""
List Submissions Handler.
GET /submissions/task/{taskId}
"""
from marketplace.auth import get_identity
from marketplace.dynamo import DynamoStore
from marketplace.errors import MarketplaceError
from marketplace.logging import logger, log_event
from marketplace.s3_utils import SubmissionFileStore
from marketplace.submissions import list_submissions
from marketplace.utils import error_response, format_response, require_path_param

store = DynamoStore().open()
files = SubmissionFileStore()


def handler(event, context):
    log_event(event)

    try:
        identity = get_identity(event)
        task_id = require_path_param(event, 'taskId')

        submissions = list_submissions(store, files, identity, task_id)

        return format_response(200, {
            'submissions': submissions,
            'count': len(submissions)
        })

    except MarketplaceError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error listing submissions: {e}")
        return format_response(500, {'error': 'Server error while fetching submissions'})
