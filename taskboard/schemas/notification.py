# taskboard/schemas/notification.py
from datetime import datetime
from typing import List, Optional

from pydantic import AliasChoices, Field

from taskboard.models.notification import NotificationPriority, NotificationType
from taskboard.schemas.common import CamelModel, Pagination
from taskboard.schemas.task import TaskSummary


class NotificationOut(CamelModel):
    id: int
    user_id: int
    task_id: Optional[int] = None
    notification_type: NotificationType = Field(
        validation_alias=AliasChoices("notification_type", "notificationType", "type"),
        serialization_alias="type",
    )
    title: str
    message: str
    priority: NotificationPriority
    is_read: bool
    read_at: Optional[datetime] = None
    due_date: Optional[datetime] = None
    hours_until_due: Optional[float] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    task: Optional[TaskSummary] = None


class NotificationList(CamelModel):
    notifications: List[NotificationOut]
    unread_count: int
    pagination: Pagination


class NotificationEnvelope(CamelModel):
    message: Optional[str] = None
    notification: NotificationOut


class UnreadCount(CamelModel):
    unread_count: int


class UpdatedCount(CamelModel):
    message: str
    updated_count: int


class DeletedCount(CamelModel):
    message: str
    deleted_count: int
