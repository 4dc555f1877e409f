"""Notification triggers, post-commit dispatch, and the in-app inbox.

Workflow operations never deliver notifications themselves.  They return a
list of :class:`NotificationEvent` triggers alongside their result, and the
:class:`NotificationDispatcher` delivers those after the transaction has
committed.  Delivery is best-effort: a failing sink is logged and skipped,
and never changes the outcome reported for the workflow operation.

Sinks
-----
- :class:`InAppNotificationSink`  persists one ``application_notifications``
  row per recipient (the portal's notification inbox)
- :class:`EmailNotificationSink`  sends a plain email per recipient over SMTP,
  or logs the message when SMTP is not configured
"""

import asyncio
import logging
import smtplib
from dataclasses import dataclass
from datetime import datetime, timezone
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Iterable, Optional, Protocol

from sqlalchemy import func, select, update as sa_update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from boardreview.models.db.application import ClientApplication
from boardreview.models.db.notification import ApplicationNotification
from boardreview.models.db.user import User
from boardreview.models.enums import NotificationType
from boardreview.settings import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationEvent:
    notification_type: NotificationType
    recipient_ids: tuple[str, ...]
    title: str
    message: str
    application_id: Optional[int] = None
    action_url: Optional[str] = None
    send_email: bool = False


def _recipients(ids: Iterable[str], exclude: Optional[str] = None) -> tuple[str, ...]:
    return tuple(sorted(i for i in set(ids) if i and i != exclude))


# ---------------------------------------------------------------------------
# Trigger builders
# ---------------------------------------------------------------------------


def application_submitted(application: ClientApplication) -> NotificationEvent:
    return NotificationEvent(
        NotificationType.APPLICATION_SUBMITTED,
        (application.applicant_id,),
        "Application Submitted",
        "Your application has been successfully submitted and is pending review.",
        application_id=application.id,
        send_email=True,
    )


def review_started(application: ClientApplication) -> NotificationEvent:
    return NotificationEvent(
        NotificationType.REVIEW_STARTED,
        (application.applicant_id,),
        "Application Under Review",
        "Your application is now being reviewed by our board members.",
        application_id=application.id,
        send_email=True,
    )


def new_application(
    application: ClientApplication, board_member_ids: Iterable[str]
) -> NotificationEvent:
    return NotificationEvent(
        NotificationType.NEW_APPLICATION,
        _recipients(board_member_ids),
        "New Application Received",
        f"A new application from {application.full_name or 'an applicant'} "
        "is ready for review.",
        application_id=application.id,
        action_url=f"/review/applications/{application.id}",
        send_email=True,
    )


def quorum_reached(
    application_id: int, board_member_ids: Iterable[str], votes: int, required: int
) -> NotificationEvent:
    return NotificationEvent(
        NotificationType.QUORUM_REACHED,
        _recipients(board_member_ids),
        "Quorum Reached",
        f"Application #{application_id} has received {votes} of {required} "
        "required votes and is ready for a decision.",
        application_id=application_id,
        action_url=f"/review/applications/{application_id}",
    )


def information_requested(
    application: ClientApplication, details: str
) -> NotificationEvent:
    return NotificationEvent(
        NotificationType.INFORMATION_REQUESTED,
        (application.applicant_id,),
        "Additional Information Requested",
        "The board has requested additional information regarding your "
        f"application: {details}",
        application_id=application.id,
        send_email=True,
    )


def application_approved(application: ClientApplication) -> NotificationEvent:
    return NotificationEvent(
        NotificationType.APPLICATION_APPROVED,
        (application.applicant_id,),
        "Application Approved!",
        application.decision_message or "Your application has been approved!",
        application_id=application.id,
        send_email=True,
    )


def sponsor_assigned(application: ClientApplication) -> NotificationEvent:
    return NotificationEvent(
        NotificationType.SPONSOR_ASSIGNED,
        (application.assigned_sponsor_id,),
        "New Client Assigned",
        f"You have been assigned to support {application.full_name or 'a new client'}.",
        application_id=application.id,
        send_email=True,
    )


def application_rejected(application: ClientApplication) -> NotificationEvent:
    return NotificationEvent(
        NotificationType.APPLICATION_REJECTED,
        (application.applicant_id,),
        "Application Decision",
        "We regret to inform you that your application was not approved at this time.",
        application_id=application.id,
        send_email=True,
    )


def comment_added(
    application_id: int, board_member_ids: Iterable[str], author_id: str
) -> NotificationEvent:
    return NotificationEvent(
        NotificationType.COMMENT_ADDED,
        _recipients(board_member_ids, exclude=author_id),
        "New Comment Added",
        f"A new comment was added to application #{application_id}.",
        application_id=application_id,
        action_url=f"/review/applications/{application_id}",
    )


def review_overdue(
    application: ClientApplication, pending_voter_ids: Iterable[str], days: int
) -> NotificationEvent:
    return NotificationEvent(
        NotificationType.REVIEW_OVERDUE,
        _recipients(pending_voter_ids),
        "Vote Required",
        f"Application #{application.id} has been awaiting your vote for "
        f"{days} days.",
        application_id=application.id,
        action_url=f"/review/applications/{application.id}",
        send_email=True,
    )


# ---------------------------------------------------------------------------
# Sinks
# ---------------------------------------------------------------------------


class NotificationSink(Protocol):
    async def deliver(self, event: NotificationEvent) -> None: ...


class InAppNotificationSink:
    """Persist inbox rows in a transaction of their own."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def deliver(self, event: NotificationEvent) -> None:
        if not event.recipient_ids:
            return
        async with self._session_factory() as db:
            async with db.begin():
                for recipient_id in event.recipient_ids:
                    db.add(
                        ApplicationNotification(
                            recipient_id=recipient_id,
                            application_id=event.application_id,
                            notification_type=event.notification_type.value,
                            title=event.title,
                            message=event.message,
                            action_url=event.action_url,
                        )
                    )


class EmailNotificationSink:
    """Email the recipients of events flagged ``send_email``.

    When SMTP settings are missing the message is logged instead of sent.
    """

    def __init__(
        self,
        settings: Settings,
        session_factory: async_sessionmaker[AsyncSession],
    ):
        self._settings = settings
        self._session_factory = session_factory

    async def _lookup_emails(self, user_ids: Iterable[str]) -> list[str]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(User.email).where(User.id.in_(list(user_ids)))
            )
            return [email for email in result.scalars().all() if email]

    def _send(self, to_email: str, subject: str, body: str) -> None:
        s = self._settings
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = s.smtp_from_email
        msg["To"] = to_email
        msg.attach(MIMEText(body, "plain"))

        with smtplib.SMTP(s.smtp_host, s.smtp_port) as server:
            server.starttls()
            server.login(s.smtp_user, s.smtp_password)
            server.sendmail(s.smtp_from_email, [to_email], msg.as_string())

    async def deliver(self, event: NotificationEvent) -> None:
        if not event.send_email or not event.recipient_ids:
            return
        emails = await self._lookup_emails(event.recipient_ids)
        body = event.message
        if event.action_url:
            body = f"{body}\n\n{self._settings.portal_base_url}{event.action_url}"

        for to_email in emails:
            if not self._settings.smtp_configured:
                logger.info(
                    "[EMAIL STUB] Would send '%s' to %s "
                    "(configure SMTP_HOST, SMTP_USER, SMTP_PASSWORD to enable sending)",
                    event.title,
                    to_email,
                )
                continue
            await asyncio.to_thread(self._send, to_email, event.title, body)
            logger.info("Notification email sent to %s: %s", to_email, event.title)


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------


class NotificationDispatcher:
    """Fan post-commit triggers out to every configured sink."""

    def __init__(self, sinks: Optional[Iterable[NotificationSink]] = None):
        self.sinks: list[NotificationSink] = list(sinks or [])

    async def dispatch(self, events: Iterable[NotificationEvent]) -> int:
        """Deliver events; returns how many (event, sink) deliveries failed."""
        failures = 0
        for event in events:
            logger.info(
                "Notification %s for application %s -> %d recipient(s)",
                event.notification_type.value,
                event.application_id,
                len(event.recipient_ids),
            )
            for sink in self.sinks:
                try:
                    await sink.deliver(event)
                except Exception:
                    failures += 1
                    logger.exception(
                        "Notification sink %s failed for %s on application %s",
                        type(sink).__name__,
                        event.notification_type.value,
                        event.application_id,
                    )
        return failures


# ---------------------------------------------------------------------------
# Inbox queries
# ---------------------------------------------------------------------------


class NotificationInbox:
    """Read/acknowledge operations over a user's in-app notifications."""

    @staticmethod
    async def list_unread(
        db: AsyncSession, user_id: str
    ) -> list[ApplicationNotification]:
        result = await db.execute(
            select(ApplicationNotification)
            .where(
                ApplicationNotification.recipient_id == user_id,
                ApplicationNotification.is_read.is_(False),
            )
            .order_by(
                ApplicationNotification.created_at.desc(),
                ApplicationNotification.id.desc(),
            )
        )
        return list(result.scalars().all())

    @staticmethod
    async def unread_count(db: AsyncSession, user_id: str) -> int:
        result = await db.execute(
            select(func.count(ApplicationNotification.id)).where(
                ApplicationNotification.recipient_id == user_id,
                ApplicationNotification.is_read.is_(False),
            )
        )
        return result.scalar() or 0

    @staticmethod
    async def mark_read(db: AsyncSession, notification_id: int, user_id: str) -> bool:
        """Mark one notification read.  Returns False when it does not exist
        or belongs to someone else."""
        result = await db.execute(
            sa_update(ApplicationNotification)
            .where(
                ApplicationNotification.id == notification_id,
                ApplicationNotification.recipient_id == user_id,
            )
            .values(is_read=True, read_at=datetime.now(timezone.utc))
        )
        return (result.rowcount or 0) > 0

    @staticmethod
    async def mark_all_read(db: AsyncSession, user_id: str) -> int:
        result = await db.execute(
            sa_update(ApplicationNotification)
            .where(
                ApplicationNotification.recipient_id == user_id,
                ApplicationNotification.is_read.is_(False),
            )
            .values(is_read=True, read_at=datetime.now(timezone.utc))
        )
        return result.rowcount or 0
