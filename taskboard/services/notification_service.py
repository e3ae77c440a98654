# taskboard/services/notification_service.py
import logging
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from taskboard.database import utcnow
from taskboard.errors import Forbidden, NotFound
from taskboard.models import Notification, NotificationPriority, NotificationType, Task, User
from taskboard.schemas.notification import NotificationOut
from taskboard.services.email_service import EmailOutbox, EmailTemplates
from taskboard.services.sse_registry import NotificationStreamRegistry
from taskboard.utils.permissions import Identity

logger = logging.getLogger(__name__)


def _describe(task: Task) -> str:
    if not task.description:
        return ""
    snippet = task.description[:100]
    if len(task.description) > 100:
        snippet += "..."
    return f" Description: {snippet}"


def format_time_remaining(hours_until_due: float) -> str:
    if hours_until_due < 1:
        return "less than an hour"
    if hours_until_due < 24:
        hours = round(hours_until_due)
        return f"{hours} hour{'s' if hours != 1 else ''}"
    days = round(hours_until_due / 24)
    return f"{days} day{'s' if days != 1 else ''}"


def reminder_priority(hours_until_due: float) -> NotificationPriority:
    if hours_until_due < 24:
        return NotificationPriority.HIGH
    if hours_until_due < 48:
        return NotificationPriority.MEDIUM
    return NotificationPriority.LOW


def count_unread(db: Session, user_id: int) -> int:
    return db.query(Notification).filter(
        Notification.user_id == user_id,
        Notification.is_read == False,  # noqa: E712
    ).count()


class NotificationService:
    """Persists notifications and fans them out to the recipient's live stream"""

    def __init__(self, registry: NotificationStreamRegistry, outbox: EmailOutbox, templates: EmailTemplates):
        self.registry = registry
        self.outbox = outbox
        self.templates = templates

    def create_notification(
        self,
        db: Session,
        user_id: int,
        notification_type: NotificationType,
        title: str,
        message: str,
        priority: NotificationPriority = NotificationPriority.MEDIUM,
        task_id: Optional[int] = None,
        due_date: Optional[datetime] = None,
        hours_until_due: Optional[float] = None,
    ) -> Notification:
        """Create a notification and push it if the user is connected"""
        notification = Notification(
            user_id=user_id,
            task_id=task_id,
            notification_type=notification_type,
            title=title[:200],
            message=message[:1000],
            priority=priority,
            is_read=False,
            due_date=due_date,
            hours_until_due=hours_until_due,
        )
        db.add(notification)
        db.commit()
        db.refresh(notification)
        logger.info("Notification %s (%s) created for user %s", notification.id, notification_type.value, user_id)

        self.publish(notification)
        return notification

    def send_email(self, message) -> None:
        try:
            self.outbox.enqueue(message)
        except Exception:
            logger.exception("Error queueing email to %s", message.to)

    def publish(self, notification: Notification) -> None:
        # Live delivery is best effort; the stored row is what counts
        try:
            payload = NotificationOut.model_validate(notification).model_dump(mode="json", by_alias=True)
            self.registry.push_notification(notification.user_id, payload)
            self.registry.push_unread_count(notification.user_id)
        except Exception:
            logger.exception("Error pushing notification %s to user %s", notification.id, notification.user_id)

    def notify_task_assigned(self, db: Session, task: Task, assignee: User) -> Notification:
        notification = self.create_notification(
            db,
            user_id=assignee.id,
            notification_type=NotificationType.TASK_ASSIGNED,
            title=f"New Task Assigned: {task.title}",
            message=f'You have been assigned a new task: "{task.title}".{_describe(task)}',
            priority=NotificationPriority(task.priority.value),
            task_id=task.id,
            due_date=task.due_date,
        )
        self.send_email(self.templates.task_assigned(assignee.email, assignee.username, task))
        return notification

    def notify_task_updated(self, db: Session, task: Task, assignee: User, changes: Iterable[str]) -> Notification:
        changes = list(changes)
        change_text = f" Changes: {', '.join(changes)}." if changes else ""
        return self.create_notification(
            db,
            user_id=assignee.id,
            notification_type=NotificationType.TASK_UPDATED,
            title=f"Task Updated: {task.title}",
            message=f'The task "{task.title}" has been updated.{change_text}',
            priority=NotificationPriority(task.priority.value),
            task_id=task.id,
            due_date=task.due_date,
        )

    def notify_task_completed(self, db: Session, task: Task, completed_by: str) -> Notification:
        return self.create_notification(
            db,
            user_id=task.created_by,
            notification_type=NotificationType.TASK_COMPLETED,
            title=f"Task Completed: {task.title}",
            message=f'The task "{task.title}" was marked as completed by {completed_by}.',
            priority=NotificationPriority.LOW,
            task_id=task.id,
            due_date=task.due_date,
        )

    def notify_task_reminder(self, db: Session, task: Task, assignee: User, hours_until_due: float) -> Notification:
        time_remaining = format_time_remaining(hours_until_due)
        notification = self.create_notification(
            db,
            user_id=assignee.id,
            notification_type=NotificationType.TASK_REMINDER,
            title=f"Task Reminder: {task.title}",
            message=f'Your task "{task.title}" is due in {time_remaining}.{_describe(task)}',
            priority=reminder_priority(hours_until_due),
            task_id=task.id,
            due_date=task.due_date,
            hours_until_due=round(hours_until_due, 1),
        )
        self.send_email(self.templates.task_reminder(assignee.email, assignee.username, task, time_remaining))
        return notification

    # Owner-scoped reads, read-state and deletion

    def list_for_user(
        self, db: Session, user_id: int, page: int, limit: int, unread_only: bool = False
    ) -> Tuple[List[Notification], int, int]:
        query = db.query(Notification).filter(Notification.user_id == user_id)
        if unread_only:
            query = query.filter(Notification.is_read == False)  # noqa: E712

        total = query.count()
        notifications = (
            query.order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return notifications, total, count_unread(db, user_id)

    def get_owned(self, db: Session, identity: Identity, notification_id: int, denial: str) -> Notification:
        notification = db.get(Notification, notification_id)
        if notification is None:
            raise NotFound("Notification not found")
        if notification.user_id != identity.id:
            raise Forbidden(denial)
        return notification

    def mark_as_read(self, db: Session, notification: Notification) -> Notification:
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = utcnow()
            db.commit()
            db.refresh(notification)
        self.registry.push_unread_count(notification.user_id)
        return notification

    def mark_all_as_read(self, db: Session, user_id: int) -> int:
        updated = db.query(Notification).filter(
            Notification.user_id == user_id,
            Notification.is_read == False,  # noqa: E712
        ).update({"is_read": True, "read_at": utcnow(), "updated_at": utcnow()}, synchronize_session=False)
        db.commit()
        self.registry.push_unread_count(user_id)
        return updated

    def delete(self, db: Session, notification: Notification) -> None:
        user_id = notification.user_id
        db.delete(notification)
        db.commit()
        self.registry.push_unread_count(user_id)

    def delete_all(self, db: Session, user_id: int) -> int:
        deleted = db.query(Notification).filter(Notification.user_id == user_id).delete(synchronize_session=False)
        db.commit()
        self.registry.push_unread_count(user_id)
        return deleted

    def purge_read_older_than(self, db: Session, days: int, now: Optional[datetime] = None) -> int:
        """Retention sweep: drop read notifications older than the given age"""
        cutoff = (now or utcnow()) - timedelta(days=days)
        deleted = db.query(Notification).filter(
            Notification.is_read == True,  # noqa: E712
            Notification.created_at < cutoff,
        ).delete(synchronize_session=False)
        db.commit()
        if deleted:
            logger.info("Cleaned up %d old notifications", deleted)
        return deleted
