"""
Tests for the submission review pipeline.
"""
import pytest

from conftest import ADMIN, BUYER, OTHER_BUYER, SOLVER_A, SOLVER_B
from marketplace.assignment import accept_request
from marketplace.config import config
from marketplace.errors import Forbidden, InvalidState, NotFound, Unexpected, ValidationError
from marketplace.models import SubmissionStatus, TaskStatus
from marketplace.projects import create_project
from marketplace.request_ledger import submit_request
from marketplace.submissions import (
    accept_submission,
    list_submissions,
    reject_submission,
    review_submission,
    upload_submission,
)
from marketplace.task_board import create_task, patch_task

ARCHIVE = b'PK\x03\x04 fake zip bytes'


@pytest.fixture
def task(store):
    project = create_project(store, BUYER, 'Build API', 'REST API')
    request = submit_request(store, SOLVER_A, project['projectId'], 'pick me')
    accept_request(store, BUYER, request['requestId'])
    task = create_task(store, SOLVER_A, project['projectId'], 'Design schema')
    return patch_task(store, SOLVER_A, task['taskId'], {'status': TaskStatus.IN_PROGRESS})


def stored_task(store, task_id):
    return store.get(config.TASKS_TABLE, {'taskId': task_id})


def upload(store, files, task, notes='first cut'):
    return upload_submission(store, files, SOLVER_A, task['taskId'], 'work.zip', ARCHIVE, notes)


class TestUpload:

    def test_upload_moves_task_to_submitted(self, store, files, task):
        submission = upload(store, files, task)

        assert submission['status'] == SubmissionStatus.PENDING_REVIEW
        assert submission['filePath'] == f"submissions/{task['taskId']}/work.zip"
        assert submission['originalFilename'] == 'work.zip'
        assert submission['reviewedAt'] is None
        assert stored_task(store, task['taskId'])['status'] == TaskStatus.SUBMITTED
        files.save.assert_called_once_with(task['taskId'], 'work.zip', ARCHIVE)

    def test_upload_from_pending_skips_in_progress(self, store, files, task):
        fresh = create_task(store, SOLVER_A, task['projectId'], 'Another task')

        upload(store, files, fresh)

        assert stored_task(store, fresh['taskId'])['status'] == TaskStatus.SUBMITTED

    def test_only_assigned_solver_uploads(self, store, files, task):
        with pytest.raises(Forbidden):
            upload_submission(store, files, SOLVER_B, task['taskId'], 'work.zip', ARCHIVE)
        files.save.assert_not_called()

    def test_missing_task(self, store, files):
        with pytest.raises(NotFound):
            upload_submission(store, files, SOLVER_A, 'missing', 'work.zip', ARCHIVE)

    @pytest.mark.parametrize('filename, content', [
        ('work.tar.gz', ARCHIVE),
        ('work.zip', b''),
        (None, ARCHIVE),
    ])
    def test_rejects_bad_files(self, store, files, task, filename, content):
        with pytest.raises(ValidationError):
            upload_submission(store, files, SOLVER_A, task['taskId'], filename, content)
        files.save.assert_not_called()

    def test_rejects_oversized_files(self, store, files, task, monkeypatch):
        monkeypatch.setattr(config, 'MAX_UPLOAD_BYTES', 10)

        with pytest.raises(ValidationError):
            upload_submission(store, files, SOLVER_A, task['taskId'], 'work.zip', b'x' * 11)

    def test_stored_file_removed_when_write_fails(self, store, files, task):
        store.fail_next_transact = Unexpected()

        with pytest.raises(Unexpected):
            upload(store, files, task)

        files.delete.assert_called_once_with(f"submissions/{task['taskId']}/work.zip")
        assert store.tables[config.SUBMISSIONS_TABLE] == {}
        assert stored_task(store, task['taskId'])['status'] == TaskStatus.IN_PROGRESS


class TestReview:

    def test_accept_completes_task(self, store, files, task):
        submission = upload(store, files, task)

        reviewed = accept_submission(store, BUYER, submission['submissionId'])

        assert reviewed['status'] == SubmissionStatus.ACCEPTED
        assert reviewed['reviewedAt']
        assert stored_task(store, task['taskId'])['status'] == TaskStatus.COMPLETED

    def test_reject_requires_notes(self, store, files, task):
        submission = upload(store, files, task)

        for notes in (None, '', '   '):
            with pytest.raises(ValidationError):
                reject_submission(store, BUYER, submission['submissionId'], notes)

        assert stored_task(store, task['taskId'])['status'] == TaskStatus.SUBMITTED

    def test_reject_marks_task_rejected(self, store, files, task):
        submission = upload(store, files, task)

        reviewed = reject_submission(store, BUYER, submission['submissionId'], 'missing migration')

        assert reviewed['status'] == SubmissionStatus.REJECTED
        assert reviewed['reviewNotes'] == 'missing migration'
        assert stored_task(store, task['taskId'])['status'] == TaskStatus.REJECTED

    def test_only_owning_buyer_reviews(self, store, files, task):
        submission = upload(store, files, task)

        with pytest.raises(Forbidden):
            accept_submission(store, OTHER_BUYER, submission['submissionId'])
        with pytest.raises(Forbidden):
            accept_submission(store, SOLVER_A, submission['submissionId'])

    def test_cannot_review_twice(self, store, files, task):
        submission = upload(store, files, task)
        accept_submission(store, BUYER, submission['submissionId'])

        with pytest.raises(InvalidState):
            reject_submission(store, BUYER, submission['submissionId'], 'changed my mind')

    def test_only_latest_submission_is_reviewed(self, store, files, task):
        older = upload(store, files, task)
        store.tables[config.SUBMISSIONS_TABLE][older['submissionId']]['submittedAt'] = '2000-01-01T00:00:00+00:00'
        newer = upload(store, files, task, notes='second cut')

        with pytest.raises(InvalidState):
            accept_submission(store, BUYER, older['submissionId'])

        accept_submission(store, BUYER, newer['submissionId'])

    def test_unknown_decision(self, store, files, task):
        submission = upload(store, files, task)
        with pytest.raises(ValidationError):
            review_submission(store, BUYER, submission['submissionId'], 'maybe')

    def test_missing_submission(self, store):
        with pytest.raises(NotFound):
            accept_submission(store, BUYER, 'missing')


class TestList:

    def test_parties_list_with_download_urls(self, store, files, task):
        upload(store, files, task)

        for identity in (BUYER, SOLVER_A, ADMIN):
            submissions = list_submissions(store, files, identity, task['taskId'])
            assert len(submissions) == 1
            assert submissions[0]['downloadUrl'].startswith('https://signed.example/')

    def test_outsiders_cannot_list(self, store, files, task):
        with pytest.raises(Forbidden):
            list_submissions(store, files, SOLVER_B, task['taskId'])
