from .user import User, UserRole
from .session import UserSession
from .task import Task, TaskStatus, TaskPriority, CLOSED_STATUSES
from .notification import Notification, NotificationType, NotificationPriority
from .reminder_log import ReminderLog
