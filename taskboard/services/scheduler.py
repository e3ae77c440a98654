# taskboard/services/scheduler.py
"""
Scheduler service for task due-date reminders and periodic cleanup
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from taskboard.config import Settings
from taskboard.database import as_utc, utcnow
from taskboard.models import CLOSED_STATUSES, ReminderLog, Task
from taskboard.services.auth_service import AuthService
from taskboard.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

REMINDER_JOB_ID = "check_upcoming_tasks"
SESSION_PURGE_JOB_ID = "purge_expired_sessions"


def matching_threshold(hours_until_due: float, thresholds: List[int]) -> Optional[int]:
    """The lead time whose one-hour window (T-1, T] contains hours_until_due, if any"""
    for threshold in sorted(thresholds):
        if threshold - 1 < hours_until_due <= threshold:
            return threshold
    return None


class ReminderScheduler:
    """Recurring reminder, retention and session cleanup jobs"""

    def __init__(
        self,
        settings: Settings,
        session_factory: Callable[[], Session],
        notifications: NotificationService,
        auth: AuthService,
    ):
        self.settings = settings
        self.session_factory = session_factory
        self.notifications = notifications
        self.auth = auth
        self.scheduler = AsyncIOScheduler(timezone="UTC")
        self.is_running = False
        self.last_run: Optional[datetime] = None
        self.last_sent = 0

    def start(self):
        """Start the scheduler"""
        if self.is_running:
            return
        interval = self.settings.REMINDER_CHECK_INTERVAL

        reminder_job_options = {}
        if self.settings.REMINDER_RUN_ON_STARTUP:
            reminder_job_options["next_run_time"] = utcnow()

        self.scheduler.add_job(
            self.check_upcoming_tasks,
            trigger=IntervalTrigger(minutes=interval),
            id=REMINDER_JOB_ID,
            name="Check Upcoming Task Reminders",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            **reminder_job_options,
        )

        self.scheduler.add_job(
            self.purge_expired_sessions,
            trigger=IntervalTrigger(minutes=interval),
            id=SESSION_PURGE_JOB_ID,
            name="Purge Expired Sessions",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )

        self.scheduler.start()
        self.is_running = True
        logger.info(
            "Reminder scheduler started (every %d minutes, thresholds %s hours)",
            interval,
            self.settings.reminder_thresholds,
        )

    def stop(self):
        """Stop the scheduler"""
        if self.is_running:
            self.scheduler.shutdown(wait=False)
            self.is_running = False
            logger.info("Reminder scheduler stopped")

    async def check_upcoming_tasks(self, now: Optional[datetime] = None) -> int:
        """
        Run one reminder tick and return the number of reminders sent.

        Open tasks with an assignee and a due date within the largest lead
        time are considered. A task gets a reminder for threshold T when its
        remaining hours fall in (T-1, T], at most once per task, assignee,
        threshold and due date. A failure on one task is logged and the rest
        of the batch continues; a failure loading the batch ends the tick and
        the next tick starts over.
        """
        now = as_utc(now) if now is not None else utcnow()
        thresholds = self.settings.reminder_thresholds
        horizon = now + timedelta(hours=max(thresholds))
        sent = 0

        db = self.session_factory()
        try:
            try:
                tasks = db.query(Task).filter(
                    Task.due_date > now,
                    Task.due_date <= horizon,
                    Task.status.notin_(CLOSED_STATUSES),
                    Task.assigned_to.isnot(None),
                ).all()
            except Exception:
                logger.exception("Error loading tasks for reminder check")
                return 0

            logger.info("Checking %d tasks due within %d hours", len(tasks), max(thresholds))
            for task in tasks:
                try:
                    if self.send_reminder(db, task, now, thresholds):
                        sent += 1
                except Exception:
                    db.rollback()
                    logger.exception("Error sending reminder for task %s", task.id)

            self.purge_old_notifications(db, now)
        finally:
            db.close()

        self.last_run = now
        self.last_sent = sent
        if sent:
            logger.info("Sent %d task reminders", sent)
        return sent

    def send_reminder(self, db: Session, task: Task, now: datetime, thresholds: List[int]) -> bool:
        hours_until_due = (task.due_date - now).total_seconds() / 3600
        threshold = matching_threshold(hours_until_due, thresholds)
        if threshold is None:
            return False

        already_sent = db.query(ReminderLog.id).filter(
            ReminderLog.task_id == task.id,
            ReminderLog.user_id == task.assigned_to,
            ReminderLog.threshold_hours == threshold,
            ReminderLog.due_date == task.due_date,
        ).first()
        if already_sent is not None:
            return False

        # Claim the reminder before sending so a concurrent tick cannot double-fire
        log = ReminderLog(task_id=task.id, user_id=task.assigned_to, threshold_hours=threshold, due_date=task.due_date)
        db.add(log)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            return False

        log_id = log.id
        try:
            notification = self.notifications.notify_task_reminder(db, task, task.assignee, hours_until_due)
        except Exception:
            # Release the claim so a later tick in the same window retries
            db.rollback()
            db.query(ReminderLog).filter(ReminderLog.id == log_id).delete(synchronize_session=False)
            db.commit()
            raise
        log.notification_id = notification.id
        db.commit()
        logger.info("Reminder (%dh) sent for task %s to user %s", threshold, task.id, task.assigned_to)
        return True

    def purge_old_notifications(self, db: Session, now: datetime) -> int:
        try:
            return self.notifications.purge_read_older_than(db, self.settings.NOTIFICATION_RETENTION_DAYS, now)
        except Exception:
            db.rollback()
            logger.exception("Error cleaning up old notifications")
            return 0

    async def purge_expired_sessions(self) -> int:
        db = self.session_factory()
        try:
            purged = self.auth.purge_expired_sessions(db)
            if purged:
                logger.info("Purged %d expired sessions", purged)
            return purged
        except Exception:
            logger.exception("Error purging expired sessions")
            return 0
        finally:
            db.close()

    def get_scheduler_status(self) -> Dict[str, Any]:
        """Get scheduler status and job information"""
        status = {
            "status": "running" if self.is_running else "stopped",
            "jobs": [],
            "thresholds": self.settings.reminder_thresholds,
            "interval_minutes": self.settings.REMINDER_CHECK_INTERVAL,
            "last_run": self.last_run.isoformat() if self.last_run else None,
            "last_sent": self.last_sent,
        }
        if not self.is_running:
            return status

        for job in self.scheduler.get_jobs():
            status["jobs"].append({
                "id": job.id,
                "name": job.name,
                "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
                "trigger": str(job.trigger),
            })
        return status
