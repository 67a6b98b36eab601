"""Task operations performed on behalf of an authenticated actor.

Handlers in ``main`` call these functions with the verified ``Actor``; every
failure is raised as one of the ``errors`` taxonomy classes.
"""

import math
import uuid
from datetime import datetime
from typing import List, Tuple

from sqlalchemy.orm import Session

from . import access, crud, models, schemas
from .dates import day_window, parse_date_token
from .errors import AuthorizationError, NotFoundError, ValidationError
from .log import get_logger

logger = get_logger(__name__)

# Columns that may never be cleared through an update
REQUIRED_FIELDS = ("title", "description", "status", "priority")


def _check_task_id(task_id: str) -> str:
    try:
        return str(uuid.UUID(task_id))
    except ValueError:
        raise ValidationError("Invalid task ID", "Task ID is not valid")


def _check_assignee(db: Session, assignee_id):
    if assignee_id is not None and crud.get_user_by_id(db, assignee_id) is None:
        raise ValidationError("Invalid assignee", "Assigned user does not exist")


def _load_task(db: Session, actor: access.Actor, task_id: str, action: str = "view") -> models.Task:
    task = crud.get_task(db, _check_task_id(task_id))
    if task is None:
        raise NotFoundError("Task not found", "Task does not exist")
    allowed = access.evaluate(actor, task)
    if not (allowed.can_read if action == "view" else allowed.can_write):
        raise AuthorizationError("Access denied", f"You do not have permission to {action} this task")
    return task


def _new_task_fields(payload: schemas.TaskCreate) -> dict:
    return {
        "title": payload.title,
        "description": payload.description,
        "status": models.TaskStatus(payload.status).value,
        "priority": models.TaskPriority(payload.priority).value,
        "due_date": payload.due_date,
        "created_for": payload.created_for,
        "assigned_to_id": payload.assigned_to,
    }


def create_task(db: Session, actor: access.Actor, payload: schemas.TaskCreate) -> models.Task:
    if not payload.created_for:
        raise ValidationError(
            "Missing required field",
            "createdFor date is required. All tasks must be associated with a specific date.",
        )
    _check_assignee(db, payload.assigned_to)
    task = crud.create_task(db, actor.id, _new_task_fields(payload))
    logger.info("task %s created by %s for %s", task.id, actor.id, task.created_for.date())
    return task


def create_task_for_date(
    db: Session, actor: access.Actor, date_token: str, payload: schemas.TaskCreate
) -> Tuple[models.Task, datetime]:
    target = parse_date_token(date_token)
    # the path date wins over any createdFor in the body
    fields = _new_task_fields(payload)
    fields["created_for"] = target
    _check_assignee(db, payload.assigned_to)
    task = crud.create_task(db, actor.id, fields)
    logger.info("task %s created by %s for %s", task.id, actor.id, date_token)
    return task, target


def list_tasks(db: Session, actor: access.Actor, filters: schemas.TaskFilter) -> Tuple[List[models.Task], schemas.Pagination]:
    tasks, total = crud.get_tasks_filtered(db, actor, filters)
    pagination = schemas.Pagination(
        page=filters.page,
        limit=filters.limit,
        total=total,
        pages=math.ceil(total / filters.limit),
    )
    return tasks, pagination


def get_task(db: Session, actor: access.Actor, task_id: str) -> models.Task:
    return _load_task(db, actor, task_id)


def update_task(db: Session, actor: access.Actor, task_id: str, payload: schemas.TaskUpdate) -> models.Task:
    task = _load_task(db, actor, task_id, action="update")
    changes = payload.model_dump(exclude_unset=True)

    for field in REQUIRED_FIELDS:
        if field in changes and changes[field] is None:
            del changes[field]
    # an update never clears a stored date
    for field in ("due_date", "created_for"):
        if not changes.get(field):
            changes.pop(field, None)
    if "assigned_to" in changes:
        changes["assigned_to_id"] = changes.pop("assigned_to")
        _check_assignee(db, changes["assigned_to_id"])

    task = crud.update_task(db, task, changes)
    logger.info("task %s updated by %s: %s", task.id, actor.id, sorted(changes))
    return task


def delete_task(db: Session, actor: access.Actor, task_id: str) -> None:
    task = _load_task(db, actor, task_id, action="delete")
    crud.delete_task(db, task)
    logger.info("task %s deleted by %s", task_id, actor.id)


def list_tasks_for_date(db: Session, actor: access.Actor, date_token: str) -> Tuple[List[models.Task], datetime]:
    start, end = day_window(parse_date_token(date_token))
    return crud.get_tasks_between(db, actor, start, end), start
