"""
Review Submission Handler.
PATCH /submissions/{submissionId}/{decision}
decision: accept | reject
Body: { "reviewNotes": "..." }  (required when rejecting)
"""
from marketplace.auth import get_identity
from marketplace.dynamo import DynamoStore
from marketplace.errors import MarketplaceError
from marketplace.logging import logger, log_event
from marketplace.models import ReviewDecision
from marketplace.submissions import review_submission
from marketplace.utils import error_response, format_response, parse_body, require_path_param

store = DynamoStore().open()


def handler(event, context):
    log_event(event)

    try:
        identity = get_identity(event)
        submission_id = require_path_param(event, 'submissionId')
        decision = require_path_param(event, 'decision')
        body = parse_body(event)

        submission = review_submission(store, identity, submission_id, decision, body.get('reviewNotes'))

        verdict = 'accepted' if decision == ReviewDecision.ACCEPT else 'rejected'
        return format_response(200, {
            'message': f'Submission {verdict}',
            'submission': submission
        })

    except MarketplaceError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error reviewing submission: {e}")
        return format_response(500, {'error': 'Server error while reviewing submission'})
