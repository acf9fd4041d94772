"""
Project store.

Owns Project items and their status. A project also owns its Requests and
Tasks (cascade scope), so the queries for them live here too.

Every project carries two write-version counters that other components use as
optimistic checks at write time:
- requestCount: bumped by every request submission
- taskCount: bumped by every task creation
"""
import uuid
from typing import List, Optional

from .auth import Identity, require_role
from .config import config
from .dynamo import ConditionFailed, TransactionCancelled, delete_op, put_op, update_op
from .errors import Conflict, Forbidden, InvalidState, InvalidStatus, NotFound, ValidationError
from .logging import logger
from .models import BUYER_PROJECT_TRANSITIONS, ProjectStatus, RequestStatus, Role
from .users import get_users
from .utils import clean_text, now_iso

PUBLIC_FIELDS = (
    'projectId', 'buyerId', 'title', 'description', 'status',
    'assignedSolverId', 'createdAt', 'updatedAt',
)


class StaleRequestIndex(Exception):
    """The requests index has not caught up with the project's requestCount yet."""


def project_key(project_id: str) -> dict:
    return {'projectId': project_id}


def public_project(item: dict) -> dict:
    return {field: item.get(field) for field in PUBLIC_FIELDS}


def get_project(store, project_id: str) -> dict:
    project = store.get(config.PROJECTS_TABLE, project_key(project_id)) if project_id else None
    if not project:
        raise NotFound('Project not found')
    return project


def is_buyer_of(identity: Identity, project: dict) -> bool:
    return project.get('buyerId') == identity.id


def is_assigned_solver(identity: Identity, project: dict) -> bool:
    return bool(project.get('assignedSolverId')) and project.get('assignedSolverId') == identity.id


def can_view_project(identity: Identity, project: dict) -> bool:
    """Owning buyer, any solver while open, the assigned solver, or an admin."""
    if identity.role == Role.ADMIN or is_buyer_of(identity, project):
        return True
    if identity.role == Role.SOLVER:
        return project.get('status') == ProjectStatus.OPEN or is_assigned_solver(identity, project)
    return False


def project_requests(store, project_id: str) -> List[dict]:
    return store.query(config.REQUESTS_TABLE, 'ProjectIndex', 'projectId', project_id)


def project_tasks(store, project_id: str) -> List[dict]:
    return store.query(config.TASKS_TABLE, 'ProjectIndex', 'projectId', project_id)


def load_request_snapshot(store, project: dict) -> List[dict]:
    """
    All requests of a project, guaranteed to include every request counted
    in project['requestCount'] (the GSI read is eventually consistent).

    Raises:
        StaleRequestIndex: when the index is still missing requests
    """
    requests = project_requests(store, project['projectId'])
    expected = int(project.get('requestCount', 0))
    if len(requests) < expected:
        raise StaleRequestIndex(
            f"Index returned {len(requests)} of {expected} requests for {project['projectId']}"
        )
    return requests


def with_party_names(store, projects: List[dict], include_email: bool = False) -> List[dict]:
    """Read-side projection: public project fields plus buyer and solver names."""
    user_ids = [p.get('buyerId') for p in projects] + [p.get('assignedSolverId') for p in projects]
    users = get_users(store, user_ids)

    results = []
    for project in projects:
        view = public_project(project)
        buyer = users.get(project.get('buyerId'), {})
        solver = users.get(project.get('assignedSolverId'), {})
        view['buyerName'] = buyer.get('name')
        view['solverName'] = solver.get('name')
        if include_email:
            view['buyerEmail'] = buyer.get('email')
            view['solverEmail'] = solver.get('email')
        results.append(view)
    return results


def create_project(store, identity: Identity, title: str, description: str) -> dict:
    """Post a new open project. Buyers only."""
    require_role(identity, (Role.BUYER,))
    title = clean_text(title)
    description = clean_text(description)
    if not title:
        raise ValidationError('Title is required')
    if not description:
        raise ValidationError('Description is required')

    timestamp = now_iso()
    item = {
        'projectId': str(uuid.uuid4()),
        'buyerId': identity.id,
        'title': title,
        'description': description,
        'status': ProjectStatus.OPEN,
        'requestCount': 0,
        'taskCount': 0,
        'createdAt': timestamp,
        'updatedAt': timestamp,
    }
    store.write(put_op(config.PROJECTS_TABLE, item, unique_key='projectId'))
    logger.info(f"Project {item['projectId']} created by buyer {identity.id}")
    return public_project(item)


def get_visible_project(store, identity: Identity, project_id: str) -> dict:
    project = get_project(store, project_id)
    if not can_view_project(identity, project):
        raise Forbidden()
    return with_party_names(store, [project], include_email=True)[0]


def list_visible_projects(store, identity: Identity) -> List[dict]:
    """
    Projects the identity may see, newest first:
    buyers see their own, solvers see open ones plus the ones assigned to
    them, admins see everything.
    """
    if identity.role == Role.ADMIN:
        projects = store.scan(config.PROJECTS_TABLE)
    elif identity.role == Role.BUYER:
        projects = store.query(config.PROJECTS_TABLE, 'BuyerIndex', 'buyerId', identity.id)
    elif identity.role == Role.SOLVER:
        found = {}
        for project in store.query(config.PROJECTS_TABLE, 'StatusIndex', 'status', ProjectStatus.OPEN):
            found[project['projectId']] = project
        for project in store.query(config.PROJECTS_TABLE, 'SolverIndex', 'assignedSolverId', identity.id):
            found[project['projectId']] = project
        projects = list(found.values())
    else:
        projects = []

    # GSI reads can lag; re-check visibility on what came back
    projects = [p for p in projects if can_view_project(identity, p)]
    projects.sort(key=lambda p: p.get('createdAt', ''), reverse=True)
    return with_party_names(store, projects)


def patch_project(store, identity: Identity, project_id: str, fields: dict) -> dict:
    """
    Buyer edits to their own project.

    Title and description can change while the project is open. Status can
    move open -> cancelled or assigned -> completed; open -> assigned only
    happens by accepting a request.
    """
    require_role(identity, (Role.BUYER,))
    project = get_project(store, project_id)
    if not is_buyer_of(identity, project):
        raise Forbidden()

    status = fields.get('status')
    if status is not None and status not in ProjectStatus.ALL:
        raise InvalidStatus(f"Invalid status, expected one of: {', '.join(ProjectStatus.ALL)}")

    updates = {}
    title = clean_text(fields.get('title'))
    description = clean_text(fields.get('description'))
    if title:
        updates['title'] = title
    if description:
        updates['description'] = description
    if not updates and not status:
        raise ValidationError('No updates provided')

    current = project['status']
    if updates and current != ProjectStatus.OPEN:
        raise InvalidState('Project details can only be edited while the project is open')
    if status == current:
        status = None
    elif status and status not in BUYER_PROJECT_TRANSITIONS[current]:
        raise InvalidState(f"Cannot change project status from {current} to {status}")

    if not updates and status is None:
        return public_project(project)

    updates['updatedAt'] = now_iso()
    if status == ProjectStatus.CANCELLED:
        return _cancel_open_project(store, project, updates)

    if status:
        updates['status'] = status
    try:
        updated = store.write(update_op(
            config.PROJECTS_TABLE,
            project_key(project_id),
            values=updates,
            expected={'status': current, 'buyerId': identity.id}
        ))
    except ConditionFailed:
        raise InvalidState('Project status changed, reload and retry')

    logger.info(f"Project {project_id} updated by buyer {identity.id}: {sorted(updates)}")
    return public_project(updated)


def _cancel_open_project(store, project: dict, updates: dict) -> dict:
    """Cancel an open project and reject its pending requests in one transaction."""
    try:
        requests = load_request_snapshot(store, project)
    except StaleRequestIndex as e:
        logger.warning(str(e))
        raise Conflict('Project requests are changing, retry')

    pending = [r for r in requests if r.get('status') == RequestStatus.PENDING]
    if len(pending) + 1 > config.MAX_TRANSACTION_ITEMS:
        raise InvalidState('Too many pending requests to cancel the project atomically')

    updates = dict(updates, status=ProjectStatus.CANCELLED)
    operations = [
        update_op(
            config.PROJECTS_TABLE,
            project_key(project['projectId']),
            values=updates,
            expected={
                'status': ProjectStatus.OPEN,
                'buyerId': project['buyerId'],
                'requestCount': project.get('requestCount', 0),
            }
        )
    ]
    for request in pending:
        operations.append(update_op(
            config.REQUESTS_TABLE,
            {'requestId': request['requestId']},
            values={'status': RequestStatus.REJECTED, 'updatedAt': updates['updatedAt']},
            expected={'status': RequestStatus.PENDING}
        ))

    try:
        store.transact(operations)
    except TransactionCancelled as e:
        logger.warning(f"Cancel of project {project['projectId']} cancelled: {e.reasons}")
        current = store.get(config.PROJECTS_TABLE, project_key(project['projectId']))
        if not current or current.get('status') != ProjectStatus.OPEN:
            raise InvalidState('Project is not open')
        raise Conflict('Project requests changed during cancellation, retry')

    logger.info(f"Project {project['projectId']} cancelled, {len(pending)} pending requests rejected")
    return public_project(dict(project, **updates))


def delete_project(store, identity: Identity, project_id: str) -> None:
    """
    Delete a project the buyer owns.
    Refused while the project has tasks; its requests are removed with it.
    """
    require_role(identity, (Role.BUYER,))
    project = get_project(store, project_id)
    if not is_buyer_of(identity, project):
        raise Forbidden()

    if int(project.get('taskCount', 0)) > 0 or project_tasks(store, project_id):
        raise InvalidState('Project has tasks and cannot be deleted')

    try:
        store.write(delete_op(
            config.PROJECTS_TABLE,
            project_key(project_id),
            expected={'buyerId': identity.id, 'taskCount': 0}
        ))
    except ConditionFailed:
        raise InvalidState('Project changed, reload and retry')

    requests = project_requests(store, project_id)
    store.batch_delete(config.REQUESTS_TABLE, [{'requestId': r['requestId']} for r in requests])
    logger.info(f"Project {project_id} deleted by buyer {identity.id} with {len(requests)} requests")


def find_project(store, project_id: str) -> Optional[dict]:
    """Project or None, for read-side joins that tolerate deleted projects."""
    if not project_id:
        return None
    return store.get(config.PROJECTS_TABLE, project_key(project_id))
