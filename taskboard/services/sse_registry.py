# taskboard/services/sse_registry.py
import asyncio
import json
import logging
from datetime import datetime
from typing import AsyncIterator, Callable, Dict, List, Optional

from taskboard.database import utcnow

logger = logging.getLogger(__name__)

HEARTBEAT_FRAME = ": heartbeat\n\n"


class ChannelClosed(Exception):
    pass


def format_event(event: dict) -> str:
    """Frame a JSON payload as one SSE ``data:`` event"""
    return f"data: {json.dumps(event, default=str)}\n\n"


class SSEChannel:
    """One open event-stream response; frames are queued here and written by the stream route"""

    def __init__(self, user_id: int, max_pending: int = 256):
        self.user_id = user_id
        self.connected_at: datetime = utcnow()
        self.closed = False
        self._queue: "asyncio.Queue[Optional[str]]" = asyncio.Queue(maxsize=max_pending)

    def write(self, frame: str) -> None:
        if self.closed:
            raise ChannelClosed(f"channel for user {self.user_id} is closed")
        try:
            self._queue.put_nowait(frame)
        except asyncio.QueueFull:
            # A client that stopped reading is treated as gone
            raise ChannelClosed(f"channel for user {self.user_id} is not draining")

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            self._queue.put_nowait(None)
        except asyncio.QueueFull:
            pass

    async def frames(self, heartbeat_seconds: float) -> AsyncIterator[str]:
        """Yield queued frames, and a heartbeat comment whenever the channel is idle"""
        while True:
            try:
                frame = await asyncio.wait_for(self._queue.get(), timeout=heartbeat_seconds)
            except asyncio.TimeoutError:
                if self.closed:
                    return
                yield HEARTBEAT_FRAME
                continue
            if frame is None:
                return
            yield frame


class NotificationStreamRegistry:
    """
    Live notification channels, at most one per user.

    A new connection for a user replaces the old one and the superseded
    channel is closed, which ends its HTTP response. All methods are
    synchronous and run on the event loop, so each one is atomic per key.
    """

    def __init__(self, unread_count_loader: Callable[[int], int]):
        self._unread_count_loader = unread_count_loader
        self._channels: Dict[int, SSEChannel] = {}

    def register(self, user_id: int, channel: SSEChannel) -> None:
        previous = self._channels.get(user_id)
        self._channels[user_id] = channel
        if previous is not None and previous is not channel:
            previous.close()
            logger.info("Replaced existing notification stream for user %s", user_id)
        logger.info("User %s connected to notification stream. Total connections: %d", user_id, len(self._channels))

        self.push(user_id, {"type": "connected", "message": "Notification stream connected"})
        self.push_unread_count(user_id)

    def unregister(self, user_id: int, channel: Optional[SSEChannel] = None) -> bool:
        """Drop the user's channel; when channel is given, only if it is still the registered one"""
        current = self._channels.get(user_id)
        if current is None or (channel is not None and current is not channel):
            return False
        del self._channels[user_id]
        current.close()
        logger.info("User %s disconnected from notification stream", user_id)
        return True

    def push(self, user_id: int, event: dict) -> bool:
        channel = self._channels.get(user_id)
        if channel is None:
            logger.debug("User %s not connected, event not pushed", user_id)
            return False
        try:
            channel.write(format_event(event))
            return True
        except Exception as e:
            logger.error("Error pushing event to user %s: %s", user_id, e)
            self.unregister(user_id, channel)
            return False

    def push_notification(self, user_id: int, notification: dict) -> bool:
        return self.push(user_id, {"type": "notification", "notification": notification})

    def push_unread_count(self, user_id: int) -> bool:
        if user_id not in self._channels:
            return False
        try:
            count = self._unread_count_loader(user_id)
        except Exception:
            logger.exception("Error getting unread count for user %s", user_id)
            return False
        return self.push(user_id, {"type": "unread_count", "count": count})

    def get(self, user_id: int) -> Optional[SSEChannel]:
        return self._channels.get(user_id)

    def is_connected(self, user_id: int) -> bool:
        return user_id in self._channels

    def get_connected_users(self) -> List[int]:
        return list(self._channels.keys())

    def get_connection_count(self) -> int:
        return len(self._channels)

    def close_all(self) -> None:
        for user_id in list(self._channels):
            self.unregister(user_id)
