# taskboard/models/reminder_log.py
from sqlalchemy import Column, ForeignKey, Integer, UniqueConstraint

from taskboard.database import Base, UTCDateTime, utcnow


class ReminderLog(Base):
    """One row per reminder sent, keyed by task, recipient, lead time and the due date it was computed for"""

    __tablename__ = "reminder_logs"
    __table_args__ = (
        UniqueConstraint("task_id", "user_id", "threshold_hours", "due_date", name="uq_reminder_once"),
    )

    id = Column(Integer, primary_key=True, index=True)
    task_id = Column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    threshold_hours = Column(Integer, nullable=False)
    due_date = Column(UTCDateTime, nullable=False)
    notification_id = Column(Integer, ForeignKey("notifications.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
