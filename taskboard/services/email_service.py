# taskboard/services/email_service.py
"""
Outbound email.

``Mailer`` implementations deliver one message. ``EmailOutbox`` is the
best-effort notifier used by request handlers and the scheduler: callers
enqueue and return immediately, a single worker task delivers in the
background, and a failed delivery is logged and dropped (no retries).
"""

import asyncio
import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage as MimeMessage
from email.utils import formataddr
from typing import Optional

from taskboard.config import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    body: str


class LoggingMailer:
    """Used while EMAIL_ENABLED is off: the message is written to the log instead"""

    def send(self, message: EmailMessage) -> None:
        logger.info(
            "Email service is disabled. Email would have been sent to %s: %s\n%s",
            message.to,
            message.subject,
            message.body,
        )


class SmtpMailer:
    def __init__(self, settings: Settings):
        self.settings = settings

    def send(self, message: EmailMessage) -> None:
        s = self.settings
        mime = MimeMessage()
        mime["From"] = formataddr((s.EMAIL_FROM_NAME, s.EMAIL_FROM))
        mime["To"] = message.to
        mime["Subject"] = message.subject
        mime.set_content(message.body)

        with smtplib.SMTP(s.EMAIL_HOST, s.EMAIL_PORT, timeout=s.EMAIL_TIMEOUT_SECONDS) as smtp:
            if s.EMAIL_USE_TLS:
                smtp.starttls()
            if s.EMAIL_USER:
                smtp.login(s.EMAIL_USER, s.EMAIL_PASSWORD)
            smtp.send_message(mime)
        logger.info("Email sent to %s: %s", message.to, message.subject)


def build_mailer(settings: Settings):
    if settings.EMAIL_ENABLED:
        return SmtpMailer(settings)
    return LoggingMailer()


def _on_loop(loop: asyncio.AbstractEventLoop) -> bool:
    try:
        return asyncio.get_running_loop() is loop
    except RuntimeError:
        return False


class EmailOutbox:
    """Queue of outgoing emails drained by one background worker"""

    def __init__(self, mailer):
        self.mailer = mailer
        self._queue: "asyncio.Queue[EmailMessage]" = asyncio.Queue()
        self._worker: Optional[asyncio.Task] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def enqueue(self, message: EmailMessage) -> None:
        """Fire-and-forget delivery; never raises for delivery problems.

        Safe to call from sync route handlers running in the threadpool.
        """
        loop = self._loop
        if loop is not None and loop.is_running() and not _on_loop(loop):
            loop.call_soon_threadsafe(self._queue.put_nowait, message)
        else:
            self._queue.put_nowait(message)
        logger.debug("Queued email to %s: %s", message.to, message.subject)

    async def deliver_now(self, message: EmailMessage) -> bool:
        """Send immediately and report the outcome, for callers that need it"""
        try:
            await asyncio.to_thread(self.mailer.send, message)
            return True
        except Exception:
            logger.exception("Error sending email to %s", message.to)
            return False

    def start(self) -> None:
        self._loop = asyncio.get_running_loop()
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run(), name="email-outbox")
            logger.info("Email outbox worker started")

    async def stop(self) -> None:
        if self._worker is None:
            return
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        logger.info("Email outbox worker stopped (%d unsent)", self.pending)

    async def join(self) -> None:
        """Wait until every queued message has been attempted"""
        await self._queue.join()

    async def _run(self) -> None:
        while True:
            message = await self._queue.get()
            try:
                await self.deliver_now(message)
            finally:
                self._queue.task_done()


class EmailTemplates:
    """Plain-text bodies for every email the system sends"""

    def __init__(self, settings: Settings):
        self.frontend_url = settings.FRONTEND_URL.rstrip("/")
        self.verification_hours = settings.EMAIL_VERIFICATION_EXPIRATION_HOURS

    def verification(self, to: str, username: str, token: str) -> EmailMessage:
        link = f"{self.frontend_url}/verify-email?token={token}"
        body = (
            f"Hello {username},\n\n"
            "Thank you for registering. Please verify your email address by opening the link below:\n\n"
            f"{link}\n\n"
            f"This link will expire in {self.verification_hours} hours.\n"
            "If you did not create an account, you can ignore this email."
        )
        return EmailMessage(to=to, subject="Verify your email address", body=body)

    def welcome(self, to: str, username: str) -> EmailMessage:
        body = (
            f"Hello {username},\n\n"
            "Your account is ready. You can now log in and start managing your tasks:\n\n"
            f"{self.frontend_url}/login"
        )
        return EmailMessage(to=to, subject="Welcome to Task Management System!", body=body)

    def admin_created(self, to: str, username: str, token: str, password: Optional[str]) -> EmailMessage:
        link = f"{self.frontend_url}/verify-email?token={token}"
        lines = [
            f"Hello {username},",
            "",
            "An administrator has created an account for you.",
            f"Username: {username}",
        ]
        if password:
            lines.append(f"One-time password: {password}")
        lines += [
            "",
            "Please open the link below to confirm your email and choose your own password:",
            "",
            link,
            "",
            f"This link will expire in {self.verification_hours} hours.",
        ]
        return EmailMessage(to=to, subject="Your Task Management System account", body="\n".join(lines))

    def task_assigned(self, to: str, username: str, task) -> EmailMessage:
        body = (
            f"Hello {username},\n\n"
            f"You have been assigned a new task: {task.title}\n"
            f"Priority: {task.priority.value}\n"
            f"Due: {task.due_date.isoformat()}\n\n"
            f"{task.description or ''}\n\n"
            f"{self.frontend_url}/tasks"
        )
        return EmailMessage(to=to, subject=f"New Task Assigned: {task.title}", body=body)

    def task_reminder(self, to: str, username: str, task, time_remaining: str) -> EmailMessage:
        body = (
            f"Hello {username},\n\n"
            f"Your task \"{task.title}\" is due in {time_remaining}.\n"
            f"Priority: {task.priority.value}\n"
            f"Status: {task.status.value}\n"
            f"Due: {task.due_date.isoformat()}\n\n"
            f"{self.frontend_url}/tasks"
        )
        return EmailMessage(to=to, subject=f"Task Reminder: {task.title}", body=body)
