"""
Assignment coordinator.

Accepting a request changes several items at once: the accepted request,
every other pending request on the project, and the project itself. All of
it goes into one DynamoDB transaction, so either every step is visible or
none is.

The project update is conditional on what was read:
- status is still open
- the buyer is unchanged
- requestCount is unchanged (no request was submitted in between)

Of two racing accepts on the same project only the first committer assigns
it; the loser's transaction is cancelled, it re-reads the project and fails
with InvalidState.
"""
from typing import List

from .auth import Identity, require_role
from .config import config
from .dynamo import TransactionCancelled, update_op
from .errors import Conflict, Forbidden, InvalidState, NotFound, Unexpected
from .logging import logger
from .models import ProjectStatus, RequestStatus, Role
from .projects import (
    StaleRequestIndex,
    get_project,
    is_buyer_of,
    load_request_snapshot,
    project_key,
    public_project,
)
from .request_ledger import get_request, request_key
from .utils import now_iso


def build_accept_operations(project: dict, request: dict, competing: List[dict], timestamp: str) -> List[dict]:
    """The three steps of an accept, in transaction order."""
    operations = [
        update_op(
            config.REQUESTS_TABLE,
            request_key(request['requestId']),
            values={'status': RequestStatus.ACCEPTED, 'updatedAt': timestamp},
            expected={'status': RequestStatus.PENDING, 'projectId': project['projectId']}
        )
    ]
    for other in competing:
        operations.append(update_op(
            config.REQUESTS_TABLE,
            request_key(other['requestId']),
            values={'status': RequestStatus.REJECTED, 'updatedAt': timestamp},
            expected={'status': RequestStatus.PENDING}
        ))
    operations.append(update_op(
        config.PROJECTS_TABLE,
        project_key(project['projectId']),
        values={
            'status': ProjectStatus.ASSIGNED,
            'assignedSolverId': request['solverId'],
            'updatedAt': timestamp,
        },
        expected={
            'status': ProjectStatus.OPEN,
            'buyerId': project['buyerId'],
            'requestCount': project.get('requestCount', 0),
        }
    ))
    return operations


def accept_request(store, identity: Identity, request_id: str) -> dict:
    """
    Accept a pending request and assign its solver to the project.

    Returns:
        {'request': ..., 'project': ..., 'rejectedRequestIds': [...]}

    Raises:
        NotFound: request or project missing
        Forbidden: caller does not own the project
        InvalidState: project not open, or the request is no longer pending
        Conflict: requests kept changing for ACCEPT_MAX_ATTEMPTS attempts
    """
    require_role(identity, (Role.BUYER,))
    attempts = max(1, config.ACCEPT_MAX_ATTEMPTS)

    for attempt in range(1, attempts + 1):
        request = get_request(store, request_id)
        project = get_project(store, request['projectId'])
        if not is_buyer_of(identity, project):
            raise Forbidden()
        if project['status'] != ProjectStatus.OPEN:
            raise InvalidState('Project is not open')
        if request['status'] != RequestStatus.PENDING:
            raise InvalidState('Request is no longer pending')

        try:
            requests = load_request_snapshot(store, project)
        except StaleRequestIndex as e:
            logger.warning(f"{e} (attempt {attempt}/{attempts})")
            continue

        competing = [
            r for r in requests
            if r['requestId'] != request_id and r.get('status') == RequestStatus.PENDING
        ]
        if len(competing) + 2 > config.MAX_TRANSACTION_ITEMS:
            raise InvalidState('Too many pending requests to assign the project atomically')

        timestamp = now_iso()
        try:
            store.transact(build_accept_operations(project, request, competing, timestamp))
        except TransactionCancelled as e:
            logger.warning(
                f"Accept of request {request_id} cancelled (attempt {attempt}/{attempts}): {e.reasons}"
            )
            continue

        rejected_ids = [r['requestId'] for r in competing]
        logger.info(
            f"Project {project['projectId']} assigned to solver {request['solverId']} "
            f"via request {request_id}; rejected {len(rejected_ids)} competing requests"
        )
        verify_assignment(store, project['projectId'], [request_id] + rejected_ids)

        assigned = dict(
            project,
            status=ProjectStatus.ASSIGNED,
            assignedSolverId=request['solverId'],
            updatedAt=timestamp,
        )
        return {
            'request': dict(request, status=RequestStatus.ACCEPTED, updatedAt=timestamp),
            'project': public_project(assigned),
            'rejectedRequestIds': rejected_ids,
        }

    # Out of attempts: report why the project could not be assigned
    request = get_request(store, request_id)
    project = get_project(store, request['projectId'])
    if project['status'] != ProjectStatus.OPEN:
        raise InvalidState('Project is not open')
    if request['status'] != RequestStatus.PENDING:
        raise InvalidState('Request is no longer pending')
    raise Conflict('Project requests changed during assignment, retry')


def check_assignment_invariants(project: dict, requests: List[dict]) -> List[str]:
    """
    Assignment invariants for one project and all of its requests.

    Returns:
        Human readable violations (empty when consistent)
    """
    violations = []
    status = project.get('status')
    solver_id = project.get('assignedSolverId')
    accepted = [r for r in requests if r.get('status') == RequestStatus.ACCEPTED]
    pending = [r for r in requests if r.get('status') == RequestStatus.PENDING]

    if len(accepted) > 1:
        violations.append(f"{len(accepted)} accepted requests")

    if status in (ProjectStatus.ASSIGNED, ProjectStatus.COMPLETED):
        if len(accepted) != 1:
            violations.append(f"project is {status} with {len(accepted)} accepted requests")
        elif accepted[0].get('solverId') != solver_id:
            violations.append('assigned solver does not match the accepted request')
        if not solver_id:
            violations.append(f"project is {status} without an assigned solver")
        if pending:
            violations.append(f"{len(pending)} requests still pending")
    else:
        if accepted:
            violations.append(f"project is {status} but has an accepted request")
        if solver_id:
            violations.append(f"project is {status} but has an assigned solver")

    return violations


def verify_assignment(store, project_id: str, request_ids: List[str]) -> List[str]:
    """
    Re-read a freshly assigned project and the requests the accept touched
    with consistent reads and log any invariant violation.
    """
    try:
        project = get_project(store, project_id)
        requests = [store.get(config.REQUESTS_TABLE, request_key(rid)) for rid in request_ids]
    except (NotFound, Unexpected):
        logger.warning(f"Could not verify assignment of project {project_id}")
        return []

    violations = check_assignment_invariants(project, [r for r in requests if r])
    for violation in violations:
        logger.error(f"Assignment invariant violated on project {project_id}: {violation}")
    return violations
