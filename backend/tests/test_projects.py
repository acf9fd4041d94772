"""
Tests for the project store: creation, visibility, edits and deletion.
"""
import pytest

from conftest import ADMIN, BUYER, OTHER_BUYER, SOLVER_A, SOLVER_B
from marketplace.assignment import accept_request
from marketplace.config import config
from marketplace.errors import Forbidden, InvalidState, InvalidStatus, NotFound, ValidationError
from marketplace.models import ProjectStatus, RequestStatus
from marketplace.projects import (
    can_view_project,
    create_project,
    delete_project,
    get_visible_project,
    list_visible_projects,
    patch_project,
)
from marketplace.request_ledger import submit_request
from marketplace.task_board import create_task


def assign(store, project, solver):
    request = submit_request(store, solver, project['projectId'], 'pick me')
    accept_request(store, BUYER, request['requestId'])


class TestCreate:

    def test_create_open_project(self, store):
        project = create_project(store, BUYER, ' Build API ', 'REST API')

        assert project['status'] == ProjectStatus.OPEN
        assert project['buyerId'] == BUYER.id
        assert project['title'] == 'Build API'
        assert project['assignedSolverId'] is None
        assert 'requestCount' not in project

        saved = store.get(config.PROJECTS_TABLE, {'projectId': project['projectId']})
        assert saved['requestCount'] == 0
        assert saved['taskCount'] == 0

    def test_only_buyers_create(self, store):
        with pytest.raises(Forbidden):
            create_project(store, SOLVER_A, 'Build API', 'REST API')

    @pytest.mark.parametrize('title, description', [('', 'desc'), ('title', '   '), (None, None)])
    def test_title_and_description_required(self, store, title, description):
        with pytest.raises(ValidationError):
            create_project(store, BUYER, title, description)


class TestVisibility:

    @pytest.fixture
    def projects(self, store):
        p1 = create_project(store, BUYER, 'Open one', 'desc')
        p2 = create_project(store, BUYER, 'Assigned one', 'desc')
        p3 = create_project(store, OTHER_BUYER, 'Someone else', 'desc')
        assign(store, p2, SOLVER_A)
        return p1, p2, p3

    def titles(self, projects):
        return {p['title'] for p in projects}

    def test_buyer_sees_own_projects(self, store, projects):
        assert self.titles(list_visible_projects(store, BUYER)) == {'Open one', 'Assigned one'}

    def test_assigned_solver_sees_open_and_own(self, store, projects):
        visible = list_visible_projects(store, SOLVER_A)
        assert self.titles(visible) == {'Open one', 'Assigned one', 'Someone else'}

    def test_other_solver_sees_only_open(self, store, projects):
        assert self.titles(list_visible_projects(store, SOLVER_B)) == {'Open one', 'Someone else'}

    def test_admin_sees_all(self, store, projects):
        assert len(list_visible_projects(store, ADMIN)) == 3

    def test_listing_includes_party_names(self, store, projects):
        assigned = next(p for p in list_visible_projects(store, BUYER) if p['title'] == 'Assigned one')
        assert assigned['buyerName'] == BUYER.name
        assert assigned['solverName'] == SOLVER_A.name

    def test_get_visible_project(self, store, projects):
        _, p2, _ = projects

        project = get_visible_project(store, SOLVER_A, p2['projectId'])
        assert project['solverEmail'] == SOLVER_A.email

        with pytest.raises(Forbidden):
            get_visible_project(store, SOLVER_B, p2['projectId'])
        with pytest.raises(Forbidden):
            get_visible_project(store, OTHER_BUYER, p2['projectId'])
        with pytest.raises(NotFound):
            get_visible_project(store, BUYER, 'missing')

    def test_can_view_project_predicate(self):
        project = {'buyerId': BUYER.id, 'status': ProjectStatus.ASSIGNED, 'assignedSolverId': SOLVER_A.id}
        assert can_view_project(BUYER, project)
        assert can_view_project(SOLVER_A, project)
        assert can_view_project(ADMIN, project)
        assert not can_view_project(SOLVER_B, project)
        assert not can_view_project(OTHER_BUYER, project)


class TestPatch:

    @pytest.fixture
    def project(self, store):
        return create_project(store, BUYER, 'Build API', 'REST API')

    def test_edit_details_while_open(self, store, project):
        updated = patch_project(store, BUYER, project['projectId'], {'title': 'Build GraphQL API'})
        assert updated['title'] == 'Build GraphQL API'
        assert updated['description'] == 'REST API'

    def test_only_owner_edits(self, store, project):
        with pytest.raises(Forbidden):
            patch_project(store, OTHER_BUYER, project['projectId'], {'title': 'x'})

    def test_status_outside_enum(self, store, project):
        with pytest.raises(InvalidStatus):
            patch_project(store, BUYER, project['projectId'], {'status': 'archived'})

    def test_nothing_to_update(self, store, project):
        with pytest.raises(ValidationError):
            patch_project(store, BUYER, project['projectId'], {})

    @pytest.mark.parametrize('status', [ProjectStatus.ASSIGNED, ProjectStatus.COMPLETED])
    def test_cannot_skip_assignment(self, store, project, status):
        with pytest.raises(InvalidState):
            patch_project(store, BUYER, project['projectId'], {'status': status})

    def test_cancel_rejects_pending_requests(self, store, project):
        a = submit_request(store, SOLVER_A, project['projectId'], 'a')
        b = submit_request(store, SOLVER_B, project['projectId'], 'b')

        updated = patch_project(store, BUYER, project['projectId'], {'status': ProjectStatus.CANCELLED})

        assert updated['status'] == ProjectStatus.CANCELLED
        for request in (a, b):
            saved = store.get(config.REQUESTS_TABLE, {'requestId': request['requestId']})
            assert saved['status'] == RequestStatus.REJECTED

    def test_complete_assigned_project(self, store, project):
        assign(store, project, SOLVER_A)

        updated = patch_project(store, BUYER, project['projectId'], {'status': ProjectStatus.COMPLETED})

        assert updated['status'] == ProjectStatus.COMPLETED
        assert updated['assignedSolverId'] == SOLVER_A.id

    def test_details_frozen_after_assignment(self, store, project):
        assign(store, project, SOLVER_A)

        with pytest.raises(InvalidState):
            patch_project(store, BUYER, project['projectId'], {'title': 'new'})
        with pytest.raises(InvalidState):
            patch_project(store, BUYER, project['projectId'], {'status': ProjectStatus.OPEN})


class TestDelete:

    def test_delete_removes_project_and_requests(self, store):
        project = create_project(store, BUYER, 'Build API', 'REST API')
        submit_request(store, SOLVER_A, project['projectId'], 'a')

        delete_project(store, BUYER, project['projectId'])

        assert store.get(config.PROJECTS_TABLE, {'projectId': project['projectId']}) is None
        assert store.tables[config.REQUESTS_TABLE] == {}

    def test_only_owner_deletes(self, store):
        project = create_project(store, BUYER, 'Build API', 'REST API')
        with pytest.raises(Forbidden):
            delete_project(store, OTHER_BUYER, project['projectId'])

    def test_refused_while_tasks_exist(self, store):
        project = create_project(store, BUYER, 'Build API', 'REST API')
        assign(store, project, SOLVER_A)
        create_task(store, SOLVER_A, project['projectId'], 'Design schema')

        with pytest.raises(InvalidState):
            delete_project(store, BUYER, project['projectId'])

        assert store.get(config.PROJECTS_TABLE, {'projectId': project['projectId']}) is not None
