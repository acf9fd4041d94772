"""
Task board.
Tasks break an assigned project into units of work owned by the assigned solver.
"""
import uuid
from typing import List, Tuple

from .auth import Identity, is_admin
from .config import config
from .dynamo import ConditionFailed, TransactionCancelled, put_op, update_op
from .errors import Conflict, Forbidden, InvalidState, InvalidStatus, NotFound, ValidationError
from .logging import logger
from .models import SOLVER_TASK_TRANSITIONS, ProjectStatus, TaskStatus
from .projects import get_project, is_assigned_solver, is_buyer_of, project_key, project_tasks
from .utils import clean_text, now_iso, parse_deadline


def task_key(task_id: str) -> dict:
    return {'taskId': task_id}


def get_task(store, task_id: str) -> dict:
    task = store.get(config.TASKS_TABLE, task_key(task_id)) if task_id else None
    if not task:
        raise NotFound('Task not found')
    return task


def get_task_with_project(store, task_id: str) -> Tuple[dict, dict]:
    task = get_task(store, task_id)
    project = get_project(store, task['projectId'])
    return task, project


def can_view_tasks(identity: Identity, project: dict) -> bool:
    return is_admin(identity) or is_buyer_of(identity, project) or is_assigned_solver(identity, project)


def create_task(
    store,
    identity: Identity,
    project_id: str,
    title: str,
    description: str = '',
    deadline: str = None
) -> dict:
    """
    Assigned solver adds a task to their project.

    The put is paired with a taskCount bump that is conditional on the
    project still being assigned to this solver.
    """
    title = clean_text(title)
    if not title:
        raise ValidationError('Title is required')
    deadline = parse_deadline(deadline)

    project = get_project(store, project_id)
    if not is_assigned_solver(identity, project):
        raise Forbidden('You are not assigned to this project')
    if project['status'] != ProjectStatus.ASSIGNED:
        raise InvalidState('Project is not in assigned status')

    timestamp = now_iso()
    item = {
        'taskId': str(uuid.uuid4()),
        'projectId': project_id,
        'title': title,
        'description': clean_text(description),
        'deadline': deadline,
        'status': TaskStatus.PENDING,
        'createdAt': timestamp,
        'updatedAt': timestamp,
    }

    try:
        store.transact([
            update_op(
                config.PROJECTS_TABLE,
                project_key(project_id),
                expected={'status': ProjectStatus.ASSIGNED, 'assignedSolverId': identity.id},
                increment={'taskCount': 1}
            ),
            put_op(config.TASKS_TABLE, item, unique_key='taskId'),
        ])
    except TransactionCancelled as e:
        if 'TransactionConflict' in e.reasons:
            raise Conflict('Project is being updated, retry')
        raise InvalidState('Project is not in assigned status')

    logger.info(f"Task {item['taskId']} created on project {project_id} by solver {identity.id}")
    return item


def list_tasks(store, identity: Identity, project_id: str) -> List[dict]:
    """Tasks of a project, oldest first. Owning buyer, assigned solver or admin."""
    project = get_project(store, project_id)
    if not can_view_tasks(identity, project):
        raise Forbidden()
    tasks = project_tasks(store, project_id)
    tasks.sort(key=lambda t: t.get('createdAt', ''))
    return tasks


def patch_task(store, identity: Identity, task_id: str, fields: dict) -> dict:
    """
    Assigned solver edits a task.

    Content (title, description, deadline) is solver owned. The solver may
    only start work (pending -> in_progress) or resume after a rejection
    (rejected -> in_progress); the review pipeline drives the rest.
    """
    task, project = get_task_with_project(store, task_id)
    if not is_assigned_solver(identity, project):
        raise Forbidden()

    status = fields.get('status')
    if status is not None and status not in TaskStatus.ALL:
        raise InvalidStatus(f"Invalid status, expected one of: {', '.join(TaskStatus.ALL)}")

    updates = {}
    title = clean_text(fields.get('title'))
    if title:
        updates['title'] = title
    if fields.get('description') is not None:
        updates['description'] = clean_text(fields.get('description'))
    if fields.get('deadline'):
        updates['deadline'] = parse_deadline(fields.get('deadline'))
    if not updates and not status:
        raise ValidationError('No updates provided')

    current = task['status']
    if status and status != current:
        if status not in SOLVER_TASK_TRANSITIONS[current]:
            raise InvalidState(f"Cannot change task status from {current} to {status}")
        updates['status'] = status

    if not updates:
        return task

    updates['updatedAt'] = now_iso()
    try:
        updated = store.write(update_op(
            config.TASKS_TABLE,
            task_key(task_id),
            values=updates,
            expected={'status': current}
        ))
    except ConditionFailed:
        raise InvalidState('Task status changed, reload and retry')

    logger.info(f"Task {task_id} updated by solver {identity.id}: {sorted(updates)}")
    return updated
