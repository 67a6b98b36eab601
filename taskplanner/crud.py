from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session, joinedload

from . import access, models, schemas


def create_user(db: Session, user: schemas.UserCreate, hashed_password: str):
    db_user = models.User(
        name=user.name,
        email=user.email,
        hashed_password=hashed_password,
        role=user.role.value,
    )
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    return db_user


def get_user_by_email(db: Session, email: str):
    return db.query(models.User).filter(models.User.email == email.strip().lower()).first()


def get_user_by_id(db: Session, user_id: str):
    return db.query(models.User).filter(models.User.id == user_id).first()


def set_user_password(db: Session, user: models.User, hashed_password: str):
    user.hashed_password = hashed_password
    db.commit()
    db.refresh(user)
    return user


def _task_query(db: Session):
    return db.query(models.Task).options(
        joinedload(models.Task.created_by),
        joinedload(models.Task.assigned_to),
    )


def create_task(db: Session, owner_id: str, fields: dict):
    db_task = models.Task(created_by_id=owner_id, **fields)
    db.add(db_task)
    db.commit()
    return get_task(db, db_task.id)


def get_task(db: Session, task_id: str):
    return _task_query(db).filter(models.Task.id == task_id).first()


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def task_filter_clauses(actor: access.Actor, filters: schemas.TaskFilter) -> list:
    clauses = []
    if filters.status:
        clauses.append(models.Task.status == filters.status.value)
    if filters.priority:
        clauses.append(models.Task.priority == filters.priority.value)

    if actor.is_admin:
        if filters.created_by:
            clauses.append(models.Task.created_by_id == filters.created_by)
        if filters.assigned_to:
            clauses.append(models.Task.assigned_to_id == filters.assigned_to)
    else:
        # creator/assignee filters are an admin capability
        clauses.append(access.visibility_clause(actor))

    if filters.search:
        pattern = f"%{_escape_like(filters.search)}%"
        clauses.append(
            or_(
                models.Task.title.ilike(pattern, escape="\\"),
                models.Task.description.ilike(pattern, escape="\\"),
            )
        )
    return clauses


def get_tasks_filtered(db: Session, actor: access.Actor, filters: schemas.TaskFilter) -> Tuple[List[models.Task], int]:
    clauses = task_filter_clauses(actor, filters)
    condition = and_(*clauses) if clauses else None

    count_q = db.query(models.Task)
    q = _task_query(db)
    if condition is not None:
        count_q = count_q.filter(condition)
        q = q.filter(condition)
    total = count_q.count()

    col = getattr(models.Task, schemas.SORT_FIELDS[filters.sort_by])
    tiebreak = models.Task.id
    if filters.sort_dir == "desc":
        col, tiebreak = col.desc(), tiebreak.desc()
    skip = (filters.page - 1) * filters.limit
    tasks = q.order_by(col, tiebreak).offset(skip).limit(filters.limit).all()
    return tasks, total


def get_tasks_between(db: Session, actor: access.Actor, start: datetime, end: datetime) -> List[models.Task]:
    q = _task_query(db).filter(models.Task.created_for >= start, models.Task.created_for < end)
    visibility = access.visibility_clause(actor)
    if visibility is not None:
        q = q.filter(visibility)
    return q.order_by(models.Task.created_at.desc(), models.Task.id.desc()).all()


def update_task(db: Session, task: models.Task, changes: dict) -> Optional[models.Task]:
    for field, value in changes.items():
        setattr(task, field, value)
    db.commit()
    return get_task(db, task.id)


def delete_task(db: Session, task: models.Task) -> bool:
    db.delete(task)
    db.commit()
    return True
