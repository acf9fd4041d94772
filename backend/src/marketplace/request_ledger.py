"""
Request ledger.
Solvers bid on open projects; one request per (project, solver).
"""
import uuid
from typing import List

from .auth import Identity, require_role
from .config import config
from .dynamo import ConditionFailed, TransactionCancelled, put_op, update_op
from .errors import Conflict, Forbidden, InvalidState, NotFound
from .logging import logger
from .models import ProjectStatus, RequestStatus, Role
from .projects import find_project, get_project, is_buyer_of, project_key, project_requests
from .users import get_users
from .utils import clean_text, now_iso

# Namespace for deterministic request ids: the (project, solver) pair maps to
# exactly one key, so the table itself enforces uniqueness.
REQUEST_ID_NAMESPACE = uuid.UUID('4f6c2a8e-93b1-4d6e-a0f2-6b1c7e5d9a31')


def request_id_for(project_id: str, solver_id: str) -> str:
    return str(uuid.uuid5(REQUEST_ID_NAMESPACE, f"{project_id}:{solver_id}"))


def request_key(request_id: str) -> dict:
    return {'requestId': request_id}


def get_request(store, request_id: str) -> dict:
    request = store.get(config.REQUESTS_TABLE, request_key(request_id)) if request_id else None
    if not request:
        raise NotFound('Request not found')
    return request


def submit_request(store, identity: Identity, project_id: str, message: str = '') -> dict:
    """
    Solver bids on an open project.

    The request put and the project's requestCount bump are one transaction:
    the bump is conditional on the project still being open, the put on no
    request existing for this (project, solver).
    """
    require_role(identity, (Role.SOLVER,))
    project = get_project(store, project_id)
    if project['status'] != ProjectStatus.OPEN:
        raise InvalidState('Project is not open for requests')

    request_id = request_id_for(project_id, identity.id)
    if store.get(config.REQUESTS_TABLE, request_key(request_id)):
        raise Conflict('You have already requested this project')

    timestamp = now_iso()
    item = {
        'requestId': request_id,
        'projectId': project_id,
        'solverId': identity.id,
        'message': clean_text(message),
        'status': RequestStatus.PENDING,
        'createdAt': timestamp,
        'updatedAt': timestamp,
    }

    try:
        store.transact([
            update_op(
                config.PROJECTS_TABLE,
                project_key(project_id),
                values={'updatedAt': timestamp},
                expected={'status': ProjectStatus.OPEN},
                increment={'requestCount': 1}
            ),
            put_op(config.REQUESTS_TABLE, item, unique_key='requestId'),
        ])
    except TransactionCancelled as e:
        if e.condition_failed_at(1):
            raise Conflict('You have already requested this project')
        if 'TransactionConflict' in e.reasons:
            raise Conflict('Project is being updated, retry')
        raise InvalidState('Project is not open for requests')

    logger.info(f"Request {request_id} submitted by solver {identity.id} on project {project_id}")
    return item


def list_requests_for_project(store, identity: Identity, project_id: str) -> List[dict]:
    """Requests on a project, newest first, with solver details. Owning buyer only."""
    require_role(identity, (Role.BUYER,))
    project = get_project(store, project_id)
    if not is_buyer_of(identity, project):
        raise Forbidden()

    requests = project_requests(store, project_id)
    requests.sort(key=lambda r: r.get('createdAt', ''), reverse=True)
    solvers = get_users(store, [r['solverId'] for r in requests])

    results = []
    for request in requests:
        solver = solvers.get(request['solverId'], {})
        results.append(dict(
            request,
            solverName=solver.get('name'),
            solverEmail=solver.get('email'),
            profileInfo=solver.get('profileInfo'),
        ))
    return results


def list_requests_for_solver(store, identity: Identity) -> List[dict]:
    """
    The solver's own requests, newest first, each joined with its project's
    title/description and the buyer's name.
    """
    require_role(identity, (Role.SOLVER,))
    requests = store.query(config.REQUESTS_TABLE, 'SolverIndex', 'solverId', identity.id)
    requests.sort(key=lambda r: r.get('createdAt', ''), reverse=True)

    projects = {}
    for request in requests:
        if request['projectId'] not in projects:
            projects[request['projectId']] = find_project(store, request['projectId'])
    buyers = get_users(store, [p['buyerId'] for p in projects.values() if p])

    results = []
    for request in requests:
        project = projects.get(request['projectId'])
        if not project:
            logger.warning(f"Request {request['requestId']} references missing project {request['projectId']}")
            continue
        results.append(dict(
            request,
            projectTitle=project.get('title'),
            projectDescription=project.get('description'),
            buyerName=buyers.get(project['buyerId'], {}).get('name'),
        ))
    return results


def reject_request(store, identity: Identity, request_id: str) -> dict:
    """
    Buyer turns down a single request.
    A request that is no longer pending is returned unchanged.
    """
    require_role(identity, (Role.BUYER,))
    request = get_request(store, request_id)
    project = get_project(store, request['projectId'])
    if not is_buyer_of(identity, project):
        raise Forbidden()

    if request['status'] != RequestStatus.PENDING:
        return request

    try:
        updated = store.write(update_op(
            config.REQUESTS_TABLE,
            request_key(request_id),
            values={'status': RequestStatus.REJECTED, 'updatedAt': now_iso()},
            expected={'status': RequestStatus.PENDING}
        ))
    except ConditionFailed:
        # Resolved concurrently (accepted or rejected); report what is stored
        return get_request(store, request_id)

    logger.info(f"Request {request_id} rejected by buyer {identity.id}")
    return updated
