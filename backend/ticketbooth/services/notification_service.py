"""
Notification sink for allocation outcomes.

DELIVERY MODEL
==============

`notify()` is called by the allocation engine only after its transaction has
committed. It schedules delivery as a background asyncio task and returns
immediately; the engine never awaits the result.

Delivery is best-effort:
  - A failed send is logged and counted, then dropped (no retry)
  - Nothing raised by a sender ever reaches the request that triggered it
  - Pending deliveries are drained on application shutdown

Senders are pluggable (log-only for development, SMTP for real mail) behind
the `EmailSender` interface.
"""

import asyncio
from abc import ABC, abstractmethod
from email.message import EmailMessage
from functools import lru_cache
from typing import Awaitable, Callable, Optional

import aiosmtplib
from sqlalchemy import select

from ticketbooth.core.config import get_settings
from ticketbooth.core.exceptions import UpstreamError
from ticketbooth.core.logging import get_logger
from ticketbooth.core.metrics import record_notification
from ticketbooth.db.session import SessionLocal
from ticketbooth.models.user import User

logger = get_logger(__name__)
settings = get_settings()

AddressResolver = Callable[[int], Awaitable[str]]


class EmailSender(ABC):
    """Delivers one message to one address. Raises UpstreamError on failure."""

    @abstractmethod
    async def send(self, to: str, subject: str, body: str) -> None:
        pass


class LogEmailSender(EmailSender):
    """Writes messages to the log instead of sending them."""

    async def send(self, to: str, subject: str, body: str) -> None:
        logger.info("email_logged", to=to, subject=subject, body=body)


class SmtpEmailSender(EmailSender):
    def __init__(
        self,
        hostname: str,
        port: int,
        username: str = "",
        password: str = "",
        start_tls: bool = True,
        from_email: str = "",
    ):
        self.hostname = hostname
        self.port = port
        self.username = username or None
        self.password = password or None
        self.start_tls = start_tls
        self.from_email = from_email

    async def send(self, to: str, subject: str, body: str) -> None:
        message = EmailMessage()
        message["From"] = self.from_email
        message["To"] = to
        message["Subject"] = subject
        message.set_content(body)

        try:
            await aiosmtplib.send(
                message,
                hostname=self.hostname,
                port=self.port,
                start_tls=self.start_tls,
                username=self.username,
                password=self.password,
            )
        except (aiosmtplib.SMTPException, OSError) as exc:
            raise UpstreamError(f"SMTP delivery to {to} failed", cause=exc) from exc


class NotificationService:
    def __init__(
        self,
        sender: EmailSender,
        resolve_address: Optional[AddressResolver] = None,
        enabled: bool = True,
    ):
        self.sender = sender
        self.resolve_address = resolve_address
        self.enabled = enabled
        self._pending: set[asyncio.Task] = set()

    def notify(self, user_id: int, subject: str, body: str) -> None:
        """Fire and forget. Must be called from a running event loop."""
        if not self.enabled:
            record_notification("skipped")
            return

        task = asyncio.get_running_loop().create_task(self._deliver(user_id, subject, body))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, user_id: int, subject: str, body: str) -> None:
        try:
            if self.resolve_address is not None:
                address = await self.resolve_address(user_id)
            else:
                address = str(user_id)
            await self.sender.send(address, subject, body)
        except UpstreamError as exc:
            record_notification("failed")
            logger.warning(
                "notification_failed",
                user_id=user_id,
                subject=subject,
                error=str(exc),
                cause=str(exc.cause) if exc.cause else None,
            )
            return
        except Exception:
            record_notification("failed")
            logger.exception("notification_failed", user_id=user_id, subject=subject)
            return

        record_notification("sent")
        logger.debug("notification_sent", user_id=user_id, subject=subject)

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for every scheduled delivery to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


def user_email_resolver(session_factory) -> AddressResolver:
    """Look up a user's email in a session of its own, outside any allocation transaction."""

    async def resolve(user_id: int) -> str:
        async with session_factory() as session:
            result = await session.execute(select(User.email).where(User.id == user_id))
            email = result.scalar_one_or_none()
        if email is None:
            raise UpstreamError(f"No email address for user {user_id}")
        return email

    return resolve


def build_sender() -> EmailSender:
    if settings.EMAIL_BACKEND == "smtp":
        return SmtpEmailSender(
            hostname=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            username=settings.SMTP_USERNAME,
            password=settings.SMTP_PASSWORD,
            start_tls=settings.SMTP_USE_TLS,
            from_email=settings.FROM_EMAIL,
        )
    return LogEmailSender()


@lru_cache()
def get_notification_service() -> NotificationService:
    return NotificationService(
        sender=build_sender(),
        resolve_address=user_email_resolver(SessionLocal),
        enabled=settings.NOTIFICATIONS_ENABLED,
    )
