# tests/test_permissions.py

from __future__ import annotations

from types import SimpleNamespace

import pytest

from taskboard.errors import Forbidden
from taskboard.utils.permissions import Action, Identity, authorize, authorize_roles, can_see_task, is_allowed

ADMIN = Identity(id=1, username="admin", email="admin@example.com", role="admin")
MANAGER = Identity(id=2, username="manager", email="manager@example.com", role="manager")
USER = Identity(id=3, username="alice", email="alice@example.com", role="user")


def _task(created_by: int = 2, assigned_to=None) -> SimpleNamespace:
    return SimpleNamespace(created_by=created_by, assigned_to=assigned_to)


def test_authorize_roles() -> None:
    authorize_roles(MANAGER, ["admin", "manager"])
    with pytest.raises(Forbidden):
        authorize_roles(USER, ["admin", "manager"])


@pytest.mark.parametrize(
    "identity, task, visible",
    [
        (ADMIN, _task(created_by=9, assigned_to=8), True),
        (MANAGER, _task(created_by=2), True),
        (MANAGER, _task(created_by=9, assigned_to=2), True),
        (MANAGER, _task(created_by=9, assigned_to=3), False),
        (USER, _task(assigned_to=3), True),
        (USER, _task(created_by=3, assigned_to=None), False),
    ],
)
def test_task_visibility(identity, task, visible) -> None:
    assert can_see_task(identity, task) is visible
    assert is_allowed(identity, Action.TASK_READ, task) is visible


def test_user_update_is_status_only_on_own_task() -> None:
    own = _task(assigned_to=USER.id)

    assert is_allowed(USER, Action.TASK_UPDATE, own, fields={"status"})
    assert not is_allowed(USER, Action.TASK_UPDATE, own, fields={"status", "priority"})
    assert not is_allowed(USER, Action.TASK_UPDATE, _task(assigned_to=99), fields={"status"})

    with pytest.raises(Forbidden, match="Invalid fields: description, priority"):
        authorize(USER, Action.TASK_UPDATE, own, fields=["status", "priority", "description"])


def test_manager_update_requires_involvement() -> None:
    assert is_allowed(MANAGER, Action.TASK_UPDATE, _task(created_by=MANAGER.id), fields={"title", "assigned_to"})
    assert not is_allowed(MANAGER, Action.TASK_UPDATE, _task(created_by=9), fields={"title"})
    assert is_allowed(ADMIN, Action.TASK_UPDATE, _task(created_by=9), fields={"title"})


def test_delete_rules() -> None:
    assert is_allowed(ADMIN, Action.TASK_DELETE, _task(created_by=9))
    assert is_allowed(MANAGER, Action.TASK_DELETE, _task(created_by=MANAGER.id))
    assert not is_allowed(MANAGER, Action.TASK_DELETE, _task(created_by=9, assigned_to=MANAGER.id))
    assert not is_allowed(USER, Action.TASK_DELETE, _task(assigned_to=USER.id))

    with pytest.raises(Forbidden, match="Users cannot delete tasks"):
        authorize(USER, Action.TASK_DELETE)


def test_session_revocation_targets() -> None:
    assert is_allowed(USER, Action.SESSION_REVOKE, USER.id)
    assert not is_allowed(USER, Action.SESSION_REVOKE, MANAGER.id)
    assert is_allowed(ADMIN, Action.SESSION_REVOKE, USER.id)


@pytest.mark.parametrize(
    "action, allowed",
    [
        (Action.TASK_CREATE, {"admin", "manager"}),
        (Action.USER_LIST, {"admin", "manager"}),
        (Action.USER_CREATE, {"admin"}),
        (Action.USER_UPDATE_ROLE, {"admin"}),
        (Action.SCHEDULER_MANAGE, {"admin"}),
    ],
)
def test_collection_level_grants(action, allowed) -> None:
    for identity in (ADMIN, MANAGER, USER):
        assert is_allowed(identity, action) is (identity.role in allowed)
