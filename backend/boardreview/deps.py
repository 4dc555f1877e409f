"""Shared dependencies for the board review API routers.

Centralises the workflow singleton, the identity dependency and the helpers
that turn workflow results into HTTP responses, so that every router module
can ``from boardreview.deps import …`` without pulling in ``main``.
"""

import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from boardreview.database import get_db, get_session_factory
from boardreview.models.db.user import User
from boardreview.review_workflow import ReviewWorkflow
from boardreview.services.access_control import Actor
from boardreview.services.notifications import (
    EmailNotificationSink,
    InAppNotificationSink,
    NotificationDispatcher,
)
from boardreview.services.results import ErrorKind, OperationResult
from boardreview.services.roster import DatabaseRosterProvider
from boardreview.settings import get_settings

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Workflow (singleton)
# ---------------------------------------------------------------------------
_workflow: Optional[ReviewWorkflow] = None


def build_workflow() -> ReviewWorkflow:
    settings = get_settings()
    session_factory = get_session_factory()
    dispatcher = NotificationDispatcher(
        [
            InAppNotificationSink(session_factory),
            EmailNotificationSink(settings, session_factory),
        ]
    )
    return ReviewWorkflow(
        session_factory, DatabaseRosterProvider(), settings, dispatcher
    )


def get_workflow() -> ReviewWorkflow:
    global _workflow
    if _workflow is None:
        _workflow = build_workflow()
    return _workflow


# ---------------------------------------------------------------------------
# Small utility helpers
# ---------------------------------------------------------------------------

ERROR_STATUS_CODES: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.INVALID_TRANSITION: status.HTTP_409_CONFLICT,
    ErrorKind.DUPLICATE_VOTE: status.HTTP_409_CONFLICT,
    ErrorKind.UNAUTHORIZED: status.HTTP_403_FORBIDDEN,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
}


def _safe_error(operation: str, e: Exception) -> str:
    """Log the full exception but return a safe message without internal details.

    This prevents leaking stack traces, file paths, or database internals
    to API consumers while preserving full diagnostics in server logs.
    """
    logger.exception("Error during %s", operation)
    return f"{operation} failed. Please try again or contact support."


def raise_for_result(result: OperationResult) -> None:
    """Raise the HTTPException matching a failed workflow result."""
    if result.succeeded:
        return
    code = ERROR_STATUS_CODES.get(
        result.error_kind, status.HTTP_400_BAD_REQUEST
    )
    raise HTTPException(
        status_code=code,
        detail={
            "error": result.error_kind.value if result.error_kind else "error",
            "messages": result.errors,
        },
    )


# ---------------------------------------------------------------------------
# Identity dependency
# ---------------------------------------------------------------------------


async def get_current_actor(
    x_user_id: str = Header(..., alias="X-User-Id"),
    db: AsyncSession = Depends(get_db),
) -> Actor:
    """Resolve the caller's capabilities from the ``users`` table.

    Authentication happens upstream; the gateway forwards the authenticated
    user id in ``X-User-Id``.
    """
    result = await db.execute(select(User).where(User.id == x_user_id))
    user = result.scalar_one_or_none()
    if user is None:
        logger.warning("Unknown user id in request header: %s", x_user_id)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unknown user",
        )
    return Actor.from_role(user.id, user.role, user.is_active)


def require_reviewer(actor: Actor = Depends(get_current_actor)) -> Actor:
    if not actor.is_reviewer:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Board access is required",
        )
    return actor
