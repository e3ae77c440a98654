from dataclasses import dataclass
from typing import Callable

from sqlalchemy.orm import Session

from taskboard.config import Settings
from taskboard.services.auth_service import AuthService
from taskboard.services.email_service import EmailOutbox, EmailTemplates
from taskboard.services.notification_service import NotificationService, count_unread
from taskboard.services.scheduler import ReminderScheduler
from taskboard.services.sse_registry import NotificationStreamRegistry
from taskboard.services.task_service import TaskService
from taskboard.services.user_service import UserService


@dataclass
class Services:
    """Everything a request handler or job needs, built once per application"""

    settings: Settings
    outbox: EmailOutbox
    registry: NotificationStreamRegistry
    auth: AuthService
    users: UserService
    tasks: TaskService
    notifications: NotificationService
    scheduler: ReminderScheduler


def build_services(settings: Settings, session_factory: Callable[[], Session], outbox: EmailOutbox) -> Services:
    def load_unread_count(user_id: int) -> int:
        db = session_factory()
        try:
            return count_unread(db, user_id)
        finally:
            db.close()

    templates = EmailTemplates(settings)
    registry = NotificationStreamRegistry(load_unread_count)
    notifications = NotificationService(registry, outbox, templates)
    auth = AuthService(settings, outbox, templates)

    return Services(
        settings=settings,
        outbox=outbox,
        registry=registry,
        auth=auth,
        users=UserService(settings, outbox, templates),
        tasks=TaskService(notifications),
        notifications=notifications,
        scheduler=ReminderScheduler(settings, session_factory, notifications, auth),
    )
