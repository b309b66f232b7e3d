"""Daily due-task digest emails.

Once a day, at a fixed wall-clock time, every user with unfinished tasks due
that day gets a single plain-text email listing them. A send failure for one
user is logged and the run moves on to the next user. The scheduler runs each
day at most once, but nothing is persisted: a restart or a manual trigger on
the same day sends again.
"""

import asyncio
import logging
import smtplib
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from email.message import EmailMessage
from typing import Callable, Optional, Protocol

from taskflow.config import Settings
from taskflow.models import Task, User
from taskflow.storage import Storage

logger = logging.getLogger(__name__)


class Mailer(Protocol):
    def send(self, to: str, subject: str, body: str) -> None: ...


class SmtpMailer:
    """Plain-text mail over SMTP with STARTTLS."""

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        sender: Optional[str] = None,
        timeout: float = 30.0,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender or username
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "SmtpMailer":
        return cls(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.email_user,
            password=settings.email_pass,
            sender=settings.email_from or None,
        )

    def send(self, to: str, subject: str, body: str) -> None:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content(body)

        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            smtp.starttls()
            smtp.login(self.username, self.password)
            smtp.send_message(message)


@dataclass(frozen=True)
class Digest:
    to: str
    subject: str
    body: str
    task_count: int


def build_digest(user: User, tasks: list[Task], today: date) -> Optional[Digest]:
    """Compose the reminder email for ``user``; None when nothing is due."""
    if not tasks:
        return None
    lines = "\n".join(
        f"- [{(t.priority or 'normal').upper()}] {t.title}" for t in tasks
    )
    body = (
        "Good Morning!\n\n"
        "You have the following tasks due today:\n\n"
        f"{lines}\n\n"
        "Good luck!"
    )
    return Digest(
        to=user.email,
        subject=f"Daily Task Reminder - {today.isoformat()}",
        body=body,
        task_count=len(tasks),
    )


def seconds_until_next_run(now: datetime, at: time) -> float:
    """Seconds from ``now`` until the next occurrence of wall-clock ``at``.

    A run scheduled for exactly ``now`` is considered past; the next one is a
    day later.
    """
    target = datetime.combine(now.date(), at, tzinfo=now.tzinfo)
    if target <= now:
        target += timedelta(days=1)
    return (target - now).total_seconds()


class ReminderScheduler:
    def __init__(
        self,
        storage: Storage,
        mailer: Mailer,
        at: time = time(8, 0),
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.storage = storage
        self.mailer = mailer
        self.at = at
        self.clock = clock
        self.last_run_day: Optional[date] = None

    def send_for_user(self, user: User, today: date) -> Optional[Digest]:
        """Send ``user``'s digest for ``today``. Send errors propagate."""
        digest = build_digest(user, self.storage.due_on(user.id, today), today)
        if digest is None:
            return None
        self.mailer.send(digest.to, digest.subject, digest.body)
        return digest

    def run_once(self, today: Optional[date] = None) -> int:
        """Send every user's digest for ``today``. Returns the number sent."""
        today = today or self.clock().date()
        logger.info("Checking for tasks due on %s", today.isoformat())
        sent = 0
        for user in self.storage.list_users():
            try:
                digest = self.send_for_user(user, today)
            except Exception:
                logger.exception("Failed to send daily reminder to user %s", user.id)
                continue
            if digest is not None:
                sent += 1
                logger.info(
                    "Sent reminder to user %s (%d tasks)", user.id, digest.task_count
                )
        if not sent:
            logger.info("No reminders sent for %s", today.isoformat())
        return sent

    def run_daily(self) -> Optional[int]:
        """Run for the clock's current day; a day that already ran is skipped."""
        today = self.clock().date()
        if today == self.last_run_day:
            logger.debug("Reminders for %s already sent", today.isoformat())
            return None
        self.last_run_day = today
        return self.run_once(today)

    async def run_forever(self) -> None:
        """Sleep until the configured time each day, then run."""
        logger.info("Daily reminder scheduler started (runs at %s)", self.at.strftime("%H:%M"))
        while True:
            delay = seconds_until_next_run(self.clock(), self.at)
            logger.debug("Next reminder run in %.0f seconds", delay)
            await asyncio.sleep(delay)
            try:
                await asyncio.to_thread(self.run_daily)
            except Exception:
                # storage down for the whole run; try again tomorrow
                logger.exception("Daily reminder run failed")
