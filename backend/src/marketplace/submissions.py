"""
Submission review pipeline.

Per task:
    in_progress --upload--> submitted --accept--> completed
                                      --reject--> rejected --upload--> submitted ...

Uploads always move the task to submitted, whatever its prior status.
Only the latest submission of a task, while pending_review, can be reviewed.
"""
import uuid
from typing import List

from .auth import Identity, is_admin, require_role
from .config import config
from .dynamo import TransactionCancelled, put_op, update_op
from .errors import Forbidden, InvalidState, NotFound, ValidationError
from .logging import logger
from .models import ProjectStatus, ReviewDecision, Role, SubmissionStatus, TaskStatus
from .projects import get_project, is_assigned_solver, is_buyer_of
from .s3_utils import validate_upload
from .task_board import get_task, get_task_with_project, task_key
from .utils import clean_text, now_iso


def submission_key(submission_id: str) -> dict:
    return {'submissionId': submission_id}


def get_submission(store, submission_id: str) -> dict:
    submission = store.get(config.SUBMISSIONS_TABLE, submission_key(submission_id)) if submission_id else None
    if not submission:
        raise NotFound('Submission not found')
    return submission


def task_submissions(store, task_id: str) -> List[dict]:
    """Submissions of a task, newest first."""
    submissions = store.query(config.SUBMISSIONS_TABLE, 'TaskIndex', 'taskId', task_id, scan_forward=False)
    submissions.sort(key=lambda s: s.get('submittedAt', ''), reverse=True)
    return submissions


def upload_submission(
    store,
    files,
    identity: Identity,
    task_id: str,
    filename: str,
    content: bytes,
    notes: str = ''
) -> dict:
    """
    Assigned solver uploads a work archive for a task.

    The archive is stored first; the submission put and the task's move to
    submitted are one transaction. If that transaction fails the stored
    archive is removed again.
    """
    validate_upload(filename, len(content or b''))
    task, project = get_task_with_project(store, task_id)
    if not is_assigned_solver(identity, project):
        raise Forbidden('You are not assigned to this task')
    if project['status'] != ProjectStatus.ASSIGNED:
        raise InvalidState('Project is not in assigned status')

    file_path = files.save(task_id, filename, content)

    timestamp = now_iso()
    item = {
        'submissionId': str(uuid.uuid4()),
        'taskId': task_id,
        'solverId': identity.id,
        'filePath': file_path,
        'originalFilename': filename,
        'notes': clean_text(notes),
        'status': SubmissionStatus.PENDING_REVIEW,
        'reviewNotes': '',
        'submittedAt': timestamp,
        'reviewedAt': None,
    }

    try:
        store.transact([
            put_op(config.SUBMISSIONS_TABLE, item, unique_key='submissionId'),
            update_op(
                config.TASKS_TABLE,
                task_key(task_id),
                values={'status': TaskStatus.SUBMITTED, 'updatedAt': timestamp}
            ),
        ])
    except Exception:
        files.delete(file_path)
        raise

    logger.info(
        f"Submission {item['submissionId']} uploaded for task {task_id} "
        f"(task was {task['status']})"
    )
    return item


def list_submissions(store, files, identity: Identity, task_id: str) -> List[dict]:
    """Submissions of a task with download URLs. Owning buyer, assigned solver or admin."""
    task, project = get_task_with_project(store, task_id)
    allowed = is_admin(identity) or is_buyer_of(identity, project) or is_assigned_solver(identity, project)
    if not allowed:
        raise Forbidden()

    return [
        dict(submission, downloadUrl=files.generate_presigned_url(submission.get('filePath')))
        for submission in task_submissions(store, task_id)
    ]


def review_submission(
    store,
    identity: Identity,
    submission_id: str,
    decision: str,
    review_notes: str = None
) -> dict:
    """
    Buyer accepts or rejects a submission.

    accept: submission -> accepted, task -> completed
    reject: submission -> rejected, task -> rejected (review notes required)
    """
    if decision not in ReviewDecision.ALL:
        raise ValidationError(f"Invalid decision, expected one of: {', '.join(ReviewDecision.ALL)}")
    review_notes = clean_text(review_notes)
    if decision == ReviewDecision.REJECT and not review_notes:
        raise ValidationError('Review notes required when rejecting')

    require_role(identity, (Role.BUYER,))
    submission = get_submission(store, submission_id)
    task = get_task(store, submission['taskId'])
    project = get_project(store, task['projectId'])
    if not is_buyer_of(identity, project):
        raise Forbidden()

    if submission['status'] != SubmissionStatus.PENDING_REVIEW:
        raise InvalidState('Submission has already been reviewed')
    latest = task_submissions(store, task['taskId'])
    if latest and latest[0]['submissionId'] != submission_id:
        raise InvalidState('Only the latest submission of a task can be reviewed')

    if decision == ReviewDecision.ACCEPT:
        submission_status, task_status = SubmissionStatus.ACCEPTED, TaskStatus.COMPLETED
    else:
        submission_status, task_status = SubmissionStatus.REJECTED, TaskStatus.REJECTED

    timestamp = now_iso()
    review = {
        'status': submission_status,
        'reviewNotes': review_notes,
        'reviewedAt': timestamp,
    }
    try:
        store.transact([
            update_op(
                config.SUBMISSIONS_TABLE,
                submission_key(submission_id),
                values=review,
                expected={'status': SubmissionStatus.PENDING_REVIEW}
            ),
            update_op(
                config.TASKS_TABLE,
                task_key(task['taskId']),
                values={'status': task_status, 'updatedAt': timestamp},
                expected={'status': TaskStatus.SUBMITTED}
            ),
        ])
    except TransactionCancelled as e:
        logger.warning(f"Review of submission {submission_id} cancelled: {e.reasons}")
        raise InvalidState('Submission or task changed during review, reload and retry')

    logger.info(f"Submission {submission_id} {submission_status} by buyer {identity.id}; task {task['taskId']} {task_status}")
    return dict(submission, **review)


def accept_submission(store, identity: Identity, submission_id: str, review_notes: str = None) -> dict:
    return review_submission(store, identity, submission_id, ReviewDecision.ACCEPT, review_notes)


def reject_submission(store, identity: Identity, submission_id: str, review_notes: str = None) -> dict:
    return review_submission(store, identity, submission_id, ReviewDecision.REJECT, review_notes)
