# tests/test_tasks.py

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from taskboard.database import utcnow


def _due(hours: float = 72) -> str:
    return (utcnow() + timedelta(hours=hours)).isoformat()


def _parse(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


@pytest.fixture()
def create_task(client):
    def _create(headers, **fields):
        payload = {"title": "Write report", "dueDate": _due()}
        payload.update(fields)
        response = client.post("/tasks", json=payload, headers=headers)
        assert response.status_code == 201, response.json()
        return response.json()["task"]

    return _create


def _notifications(client, headers):
    response = client.get("/notifications", headers=headers)
    assert response.status_code == 200
    return response.json()["notifications"]


def test_create_task_sets_creator_and_defaults(client, manager, login, create_task) -> None:
    task = create_task(login("manager"), description="  quarterly numbers  ")

    assert task["createdBy"] == manager.id
    assert task["createdByUsername"] == "manager"
    assert task["status"] == "pending"
    assert task["priority"] == "medium"
    assert task["description"] == "quarterly numbers"
    assert task["assignedTo"] is None


def test_due_date_round_trips_without_drift(client, manager, login, create_task) -> None:
    headers = login("manager")
    due = datetime(2031, 5, 6, 7, 8, 9, tzinfo=timezone(timedelta(hours=2)))

    created = create_task(headers, dueDate=due.isoformat())
    fetched = client.get(f"/tasks/{created['id']}", headers=headers).json()["task"]

    assert _parse(created["dueDate"]) == due
    assert _parse(fetched["dueDate"]) == due


def test_user_cannot_create_tasks(client, alice, login) -> None:
    response = client.post("/tasks", json={"title": "x", "dueDate": _due()}, headers=login("alice"))
    assert response.status_code == 403


@pytest.mark.parametrize(
    "fields",
    [
        {"title": ""},
        {"title": "x" * 201},
        {"description": "x" * 1001},
        {"dueDate": "2001-01-01T00:00:00Z"},
        {"dueDate": "next tuesday"},
        {"status": "done"},
        {"priority": "urgent"},
    ],
)
def test_create_task_validation(client, manager, login, fields) -> None:
    payload = {"title": "Write report", "dueDate": _due(), **fields}
    response = client.post("/tasks", json=payload, headers=login("manager"))
    assert response.status_code == 400
    assert "error" in response.json()


def test_create_task_with_unknown_assignee(client, manager, login) -> None:
    response = client.post(
        "/tasks", json={"title": "x", "dueDate": _due(), "assignedTo": 9999}, headers=login("manager")
    )
    assert response.status_code == 400
    assert response.json() == {"error": "Assigned user not found"}


def test_assignment_creates_notification_and_email(client, admin, bob, login, create_task, outbox) -> None:
    task = create_task(login("admin"), assignedTo=bob.id, dueDate=_due(2), priority="high")

    [notification] = _notifications(client, login("bob"))
    assert notification["type"] == "task_assigned"
    assert notification["taskId"] == task["id"]
    assert notification["priority"] == "high"
    assert notification["isRead"] is False
    assert [m.subject for m in outbox.to("bob@example.com")] == ["New Task Assigned: Write report"]


def test_user_listing_only_shows_own_assignments(client, manager, alice, bob, login, create_task) -> None:
    headers = login("manager")
    mine = create_task(headers, title="for alice", assignedTo=alice.id)
    create_task(headers, title="for bob", assignedTo=bob.id)
    create_task(headers, title="nobody")

    alice_headers = login("alice")
    tasks = client.get("/tasks", headers=alice_headers).json()["tasks"]
    assert [t["id"] for t in tasks] == [mine["id"]]

    # Filters narrow the visible set, never widen it
    response = client.get(f"/tasks?assignedTo={bob.id}", headers=alice_headers)
    assert response.json()["tasks"] == []


def test_manager_sees_created_or_assigned(client, admin, manager, alice, login, create_task) -> None:
    admin_headers = login("admin")
    assigned_to_manager = create_task(admin_headers, title="for manager", assignedTo=manager.id)
    create_task(admin_headers, title="admin only")
    created = create_task(login("manager"), title="manager's own", assignedTo=alice.id)

    ids = {t["id"] for t in client.get("/tasks", headers=login("manager")).json()["tasks"]}
    assert ids == {assigned_to_manager["id"], created["id"]}

    all_ids = {t["id"] for t in client.get("/tasks", headers=admin_headers).json()["tasks"]}
    assert len(all_ids) == 3


def test_listing_sorts_filters_and_paginates(client, manager, login, create_task) -> None:
    headers = login("manager")
    late = create_task(headers, title="late", dueDate=_due(300), priority="low")
    soon = create_task(headers, title="soon", dueDate=_due(10), priority="high")
    middle = create_task(headers, title="middle", dueDate=_due(100), priority="high")

    body = client.get("/tasks", headers=headers).json()
    assert [t["id"] for t in body["tasks"]] == [soon["id"], middle["id"], late["id"]]

    body = client.get("/tasks?priority=high", headers=headers).json()
    assert [t["id"] for t in body["tasks"]] == [soon["id"], middle["id"]]

    body = client.get("/tasks?page=2&limit=2", headers=headers).json()
    assert [t["id"] for t in body["tasks"]] == [late["id"]]
    assert body["pagination"] == {"page": 2, "limit": 2, "total": 3, "pages": 2}

    body = client.get("/tasks?limit=500", headers=headers).json()
    assert body["pagination"]["limit"] == 100


def test_invalid_filter_value_is_rejected(client, manager, login) -> None:
    response = client.get("/tasks?status=finished", headers=login("manager"))
    assert response.status_code == 400


def test_get_task_visibility(client, manager, alice, bob, login, create_task) -> None:
    task = create_task(login("manager"), assignedTo=alice.id)

    assert client.get(f"/tasks/{task['id']}", headers=login("alice")).status_code == 200
    assert client.get(f"/tasks/{task['id']}", headers=login("bob")).status_code == 403
    assert client.get("/tasks/9999", headers=login("alice")).status_code == 404


def test_malformed_id_is_a_validation_failure(client, alice, login) -> None:
    response = client.get("/tasks/not-an-id", headers=login("alice"))
    assert response.status_code == 400


def test_user_may_only_change_status(client, manager, alice, login, create_task) -> None:
    task = create_task(login("manager"), assignedTo=alice.id)
    headers = login("alice")

    response = client.put(f"/tasks/{task['id']}", json={"status": "in-progress", "title": "mine now"}, headers=headers)
    assert response.status_code == 403
    assert response.json() == {"error": "Users can only update status. Invalid fields: title"}

    response = client.put(f"/tasks/{task['id']}", json={"status": "in-progress"}, headers=headers)
    assert response.status_code == 200
    assert response.json()["task"]["status"] == "in-progress"


def test_user_status_update_rejects_unknown_keys(client, manager, alice, login, create_task) -> None:
    task = create_task(login("manager"), assignedTo=alice.id)

    response = client.put(
        f"/tasks/{task['id']}", json={"status": "completed", "createdBy": manager.id}, headers=login("alice")
    )
    assert response.status_code == 403
    assert response.json() == {"error": "Users can only update status. Invalid fields: createdBy"}

    body = client.get(f"/tasks/{task['id']}", headers=login("manager")).json()
    assert body["task"]["status"] == "pending"


def test_manager_update_ignores_unknown_keys(client, manager, alice, login, create_task) -> None:
    task = create_task(login("manager"), assignedTo=alice.id)

    response = client.put(
        f"/tasks/{task['id']}", json={"title": "Renamed", "createdBy": alice.id}, headers=login("manager")
    )
    assert response.status_code == 200
    assert response.json()["task"]["title"] == "Renamed"
    assert response.json()["task"]["createdBy"] == manager.id


def test_user_cannot_update_unassigned_task(client, manager, alice, bob, login, create_task) -> None:
    task = create_task(login("manager"), assignedTo=bob.id)

    response = client.put(f"/tasks/{task['id']}", json={"status": "completed"}, headers=login("alice"))
    assert response.status_code == 403
    assert response.json() == {"error": "You can only update tasks assigned to you"}


def test_manager_cannot_update_unrelated_task(client, admin, make_user, login, create_task) -> None:
    make_user("other_manager", role="manager")
    task = create_task(login("admin"))

    response = client.put(f"/tasks/{task['id']}", json={"title": "taken"}, headers=login("other_manager"))
    assert response.status_code == 403


def test_update_rejects_null_required_fields(client, manager, login, create_task) -> None:
    headers = login("manager")
    task = create_task(headers)

    response = client.put(f"/tasks/{task['id']}", json={"title": None}, headers=headers)
    assert response.status_code == 400


def test_update_notifies_assignee_with_changed_fields(client, manager, alice, login, create_task) -> None:
    headers = login("manager")
    task = create_task(headers, assignedTo=alice.id)

    client.put(f"/tasks/{task['id']}", json={"priority": "high", "title": "Write report"}, headers=headers)

    notifications = _notifications(client, login("alice"))
    assert [n["type"] for n in notifications] == ["task_updated", "task_assigned"]
    assert "Changes: priority." in notifications[0]["message"]


def test_update_without_changes_sends_nothing(client, manager, alice, login, create_task) -> None:
    headers = login("manager")
    task = create_task(headers, assignedTo=alice.id, priority="low")

    response = client.put(f"/tasks/{task['id']}", json={"priority": "low"}, headers=headers)
    assert response.status_code == 200
    assert len(_notifications(client, login("alice"))) == 1


def test_reassignment_notifies_new_assignee(client, manager, alice, bob, login, create_task) -> None:
    headers = login("manager")
    task = create_task(headers, assignedTo=alice.id)

    response = client.put(f"/tasks/{task['id']}", json={"assignedTo": bob.id, "priority": "high"}, headers=headers)
    assert response.json()["task"]["assignedToUsername"] == "bob"

    assert [n["type"] for n in _notifications(client, login("bob"))] == ["task_assigned"]
    assert [n["type"] for n in _notifications(client, login("alice"))] == ["task_assigned"]


def test_reassignment_to_unknown_user(client, manager, alice, login, create_task) -> None:
    headers = login("manager")
    task = create_task(headers, assignedTo=alice.id)

    response = client.put(f"/tasks/{task['id']}", json={"assignedTo": 4242}, headers=headers)
    assert response.status_code == 400
    assert client.get(f"/tasks/{task['id']}", headers=headers).json()["task"]["assignedTo"] == alice.id


def test_completion_notifies_creator(client, manager, alice, login, create_task) -> None:
    task = create_task(login("manager"), assignedTo=alice.id)

    client.put(f"/tasks/{task['id']}", json={"status": "completed"}, headers=login("alice"))

    [completed] = _notifications(client, login("manager"))
    assert completed["type"] == "task_completed"
    assert "alice" in completed["message"]


def test_delete_rules(client, manager, make_user, alice, login, create_task) -> None:
    make_user("other_manager", role="manager")
    manager_headers = login("manager")
    task = create_task(manager_headers, assignedTo=alice.id)
    path = f"/tasks/{task['id']}"

    response = client.delete(path, headers=login("alice"))
    assert response.status_code == 403
    assert response.json() == {"error": "Users cannot delete tasks"}

    response = client.delete(path, headers=login("other_manager"))
    assert response.status_code == 403
    assert response.json() == {"error": "You can only delete tasks you created"}

    assert client.delete(path, headers=manager_headers).status_code == 200
    assert client.get(path, headers=manager_headers).status_code == 404
    assert client.delete(path, headers=manager_headers).status_code == 404


def test_admin_can_delete_any_task(client, admin, manager, login, create_task) -> None:
    task = create_task(login("manager"))
    assert client.delete(f"/tasks/{task['id']}", headers=login("admin")).status_code == 200


def test_deleting_task_keeps_notifications(client, manager, alice, login, create_task) -> None:
    headers = login("manager")
    task = create_task(headers, assignedTo=alice.id)
    client.delete(f"/tasks/{task['id']}", headers=headers)

    [notification] = _notifications(client, login("alice"))
    assert notification["taskId"] is None
