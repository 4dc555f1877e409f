"""Persistence helpers shared by the workflow services."""

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from boardreview.models.db.application import MAX_AMOUNT, ClientApplication
from boardreview.models.db.base import utcnow
from boardreview.models.db.history import ApplicationStatusHistory
from boardreview.models.enums import ApplicationStatus, WorkflowEvent


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_amount(raw: Any) -> Optional[Decimal]:
    """Parse a monetary input.  Returns None for anything that is not a finite
    number a Numeric(10, 2) column can store."""
    if raw is None or isinstance(raw, bool):
        return None
    try:
        amount = Decimal(str(raw))
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite() or abs(amount) > MAX_AMOUNT:
        return None
    return amount


async def load_application(
    db: AsyncSession, application_id: int, for_update: bool = False
) -> Optional[ClientApplication]:
    """Fetch an application, optionally taking the row lock.

    Mutating operations always pass ``for_update=True``.  PostgreSQL holds the
    row lock until commit; SQLite ignores ``FOR UPDATE``, and there the
    ``version`` column turns a write over a stale read into ``StaleDataError``.
    """
    stmt = select(ClientApplication).where(ClientApplication.id == application_id)
    if for_update:
        stmt = stmt.with_for_update()
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


def record_status_change(
    db: AsyncSession,
    application: ClientApplication,
    new_status: ApplicationStatus,
    event: WorkflowEvent,
    changed_by: str,
    reason: Optional[str] = None,
) -> ApplicationStatusHistory:
    history = ApplicationStatusHistory(
        application_id=application.id,
        old_status=application.status,
        new_status=new_status.value,
        event=event.value,
        changed_by=changed_by,
        reason=reason,
    )
    db.add(history)
    application.status = new_status.value
    application.updated_at = utcnow()
    return history
