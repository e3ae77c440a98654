# taskboard/utils/permissions.py
"""
Authorization policy.

Every role and ownership rule lives in ``is_allowed``; route dependencies and
services both go through ``authorize`` so the two layers cannot drift apart.
"""

import enum
from dataclasses import dataclass
from typing import Iterable, Optional

from taskboard.errors import Forbidden
from taskboard.models.user import UserRole

ADMIN = UserRole.ADMIN.value
MANAGER = UserRole.MANAGER.value
USER = UserRole.USER.value

# Fields a plain user may change on a task assigned to them
USER_EDITABLE_TASK_FIELDS = frozenset({"status"})


@dataclass(frozen=True)
class Identity:
    """The authenticated actor attached to a request"""

    id: int
    username: str
    email: str
    role: str

    @classmethod
    def from_user(cls, user) -> "Identity":
        return cls(id=user.id, username=user.username, email=user.email, role=user.role)


class Action(str, enum.Enum):
    TASK_CREATE = "task:create"
    TASK_LIST = "task:list"
    TASK_READ = "task:read"
    TASK_UPDATE = "task:update"
    TASK_DELETE = "task:delete"
    USER_CREATE = "user:create"
    USER_LIST = "user:list"
    USER_READ = "user:read"
    USER_UPDATE_ROLE = "user:update_role"
    SESSION_REVOKE = "session:revoke"
    SCHEDULER_MANAGE = "scheduler:manage"


ROLE_GRANTS = {
    Action.TASK_CREATE: {ADMIN, MANAGER},
    Action.TASK_LIST: {ADMIN, MANAGER, USER},
    Action.TASK_READ: {ADMIN, MANAGER, USER},
    Action.TASK_UPDATE: {ADMIN, MANAGER, USER},
    Action.TASK_DELETE: {ADMIN, MANAGER},
    Action.USER_CREATE: {ADMIN},
    Action.USER_LIST: {ADMIN, MANAGER},
    Action.USER_READ: {ADMIN},
    Action.USER_UPDATE_ROLE: {ADMIN},
    Action.SESSION_REVOKE: {ADMIN, MANAGER, USER},
    Action.SCHEDULER_MANAGE: {ADMIN},
}

DENIAL_MESSAGES = {
    Action.TASK_READ: "Access denied",
    Action.TASK_UPDATE: "You can only update tasks you created or are assigned to",
    Action.TASK_DELETE: "You can only delete tasks you created",
}


def authorize_roles(identity: Identity, allowed_roles: Iterable[str]) -> None:
    """Fail with Forbidden unless the identity's role is one of allowed_roles"""
    if identity.role not in set(allowed_roles):
        raise Forbidden("Insufficient permissions")


def can_see_task(identity: Identity, task) -> bool:
    if identity.role == ADMIN:
        return True
    if identity.role == MANAGER:
        return task.created_by == identity.id or task.assigned_to == identity.id
    return task.assigned_to == identity.id


def is_allowed(identity: Identity, action: Action, resource=None, fields: Optional[Iterable[str]] = None) -> bool:
    """
    Decide whether identity may perform action on resource.

    resource is a Task for task actions, a target user id for SESSION_REVOKE,
    and None for collection-level checks. fields is the set of task fields an
    update would touch.
    """
    if identity.role not in ROLE_GRANTS[action]:
        return False
    if resource is None or identity.role == ADMIN:
        return True

    if action == Action.SESSION_REVOKE:
        return identity.id == resource

    if action == Action.TASK_READ:
        return can_see_task(identity, resource)

    if action == Action.TASK_UPDATE:
        if identity.role == USER:
            if resource.assigned_to != identity.id:
                return False
            return set(fields or ()) <= USER_EDITABLE_TASK_FIELDS
        return can_see_task(identity, resource)

    if action == Action.TASK_DELETE:
        return resource.created_by == identity.id

    return True


def authorize(identity: Identity, action: Action, resource=None, fields: Optional[Iterable[str]] = None) -> None:
    """Raise Forbidden with a user-facing reason when is_allowed says no"""
    if is_allowed(identity, action, resource, fields):
        return

    if resource is None or identity.role not in ROLE_GRANTS[action]:
        if action == Action.TASK_DELETE and identity.role == USER:
            raise Forbidden("Users cannot delete tasks")
        raise Forbidden("Insufficient permissions")

    if action == Action.TASK_UPDATE and identity.role == USER:
        if resource.assigned_to != identity.id:
            raise Forbidden("You can only update tasks assigned to you")
        invalid = sorted(set(fields or ()) - USER_EDITABLE_TASK_FIELDS)
        raise Forbidden(f"Users can only update status. Invalid fields: {', '.join(invalid)}")

    if action == Action.SESSION_REVOKE:
        raise Forbidden("Insufficient permissions")

    raise Forbidden(DENIAL_MESSAGES.get(action, "Insufficient permissions"))
