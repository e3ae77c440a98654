# tests/test_sse_registry.py

from __future__ import annotations

from datetime import timedelta

from taskboard.database import utcnow
from taskboard.routers.notifications import notification_stream
from taskboard.schemas.task import TaskCreate
from taskboard.services.sse_registry import HEARTBEAT_FRAME, NotificationStreamRegistry, SSEChannel, format_event
from taskboard.utils.permissions import Identity

from .fakes import read_events


def _registry(unread: int = 0) -> NotificationStreamRegistry:
    return NotificationStreamRegistry(lambda user_id: unread)


def test_format_event() -> None:
    assert format_event({"type": "unread_count", "count": 2}) == 'data: {"type": "unread_count", "count": 2}\n\n'


async def test_register_sends_ack_and_unread_count() -> None:
    registry = _registry(unread=3)
    channel = SSEChannel(7)

    registry.register(7, channel)

    assert registry.is_connected(7)
    events = await read_events(channel)
    assert [e["type"] for e in events] == ["connected", "unread_count"]
    assert events[1]["count"] == 3


async def test_reconnect_replaces_and_closes_previous_channel() -> None:
    registry = _registry()
    first, second = SSEChannel(7), SSEChannel(7)
    registry.register(7, first)
    registry.register(7, second)

    assert first.closed
    assert registry.get(7) is second
    assert registry.get_connection_count() == 1

    # The superseded stream drains what it had and then ends
    assert [e["type"] for e in await read_events(first)] == ["connected", "unread_count"]

    # A late disconnect from the old stream must not drop the new one
    assert registry.unregister(7, first) is False
    assert registry.is_connected(7)


async def test_push_only_reaches_the_target_user() -> None:
    registry = _registry()
    alice, bob = SSEChannel(1), SSEChannel(2)
    registry.register(1, alice)
    registry.register(2, bob)
    await read_events(alice)
    await read_events(bob)

    assert registry.push(1, {"type": "notification", "notification": {"id": 5}})
    assert registry.push(3, {"type": "notification"}) is False

    assert await read_events(alice) == [{"type": "notification", "notification": {"id": 5}}]
    assert await read_events(bob) == []


async def test_write_failure_unregisters() -> None:
    registry = _registry()
    channel = SSEChannel(1, max_pending=2)
    registry.register(1, channel)

    # Nobody is reading, so the queue is full after the two greeting frames
    assert registry.push(1, {"type": "notification"}) is False
    assert not registry.is_connected(1)
    assert channel.closed


async def test_unread_loader_failure_is_contained() -> None:
    def broken_loader(user_id):
        raise RuntimeError("db down")

    registry = NotificationStreamRegistry(broken_loader)
    channel = SSEChannel(1)
    registry.register(1, channel)

    assert registry.push_unread_count(1) is False
    assert registry.is_connected(1)
    assert [e["type"] for e in await read_events(channel)] == ["connected"]


async def test_idle_channel_emits_heartbeat() -> None:
    channel = SSEChannel(1)
    frames = channel.frames(heartbeat_seconds=0.01)

    assert await frames.__anext__() == HEARTBEAT_FRAME
    channel.write(format_event({"type": "ping"}))
    assert await frames.__anext__() == 'data: {"type": "ping"}\n\n'
    await frames.aclose()


async def test_close_all() -> None:
    registry = _registry()
    channels = [SSEChannel(i) for i in range(3)]
    for i, channel in enumerate(channels):
        registry.register(i, channel)

    registry.close_all()

    assert registry.get_connected_users() == []
    assert all(c.closed for c in channels)


async def test_assignment_is_pushed_to_connected_assignee(services, db, manager, bob) -> None:
    channel = SSEChannel(bob.id)
    services.registry.register(bob.id, channel)
    assert [e["count"] for e in await read_events(channel) if e["type"] == "unread_count"] == [0]

    data = TaskCreate(title="Call client", assigned_to=bob.id, due_date=utcnow() + timedelta(hours=2))
    task = services.tasks.create_task(db, Identity.from_user(manager), data)

    events = await read_events(channel)
    assert [e["type"] for e in events] == ["notification", "unread_count"]
    notification = events[0]["notification"]
    assert notification["type"] == "task_assigned"
    assert notification["taskId"] == task.id
    assert notification["task"]["title"] == "Call client"
    assert events[1]["count"] == 1


async def test_stream_registers_only_while_streaming(services, db, alice) -> None:
    token, _ = services.auth.login(db, alice.username, "secret123")

    response = await notification_stream(request=None, token=token, db=db, services=services)
    assert not services.registry.is_connected(alice.id)

    stream = response.body_iterator
    first = await stream.__anext__()
    assert first.startswith('data: {"type": "connected"')
    assert services.registry.is_connected(alice.id)

    await stream.aclose()
    assert not services.registry.is_connected(alice.id)
