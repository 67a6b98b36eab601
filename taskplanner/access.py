"""Who may see and change which task.

Every role check for tasks goes through this module so that listing,
fetching, updating and deleting agree on the same rules: admins may act on
any task, everyone else only on tasks they own or are assigned to.
"""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy import or_

from . import models


@dataclass(frozen=True)
class Actor:
    """Authenticated session context taken from a verified token."""

    id: str
    email: str
    role: models.UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == models.UserRole.ADMIN


@dataclass(frozen=True)
class Access:
    can_read: bool
    can_write: bool


def evaluate(actor: Actor, task: models.Task) -> Access:
    if actor.is_admin:
        return Access(can_read=True, can_write=True)
    involved = task.created_by_id == actor.id or (
        task.assigned_to_id is not None and task.assigned_to_id == actor.id
    )
    return Access(can_read=involved, can_write=involved)


def visibility_clause(actor: Actor) -> Optional[object]:
    # None means no restriction
    if actor.is_admin:
        return None
    return or_(models.Task.created_by_id == actor.id, models.Task.assigned_to_id == actor.id)
