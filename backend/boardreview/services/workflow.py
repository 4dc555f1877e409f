"""Application state machine.

Every transition re-reads the application under a row lock, checks the
actor and the current persisted status, applies the field changes, and
writes a status-history row, all inside the caller's transaction.

Transitions::

    draft                        --submit-->        submitted
    submitted                    --start_review-->  under_review
    under_review, in_discussion  --request_info-->  in_discussion (info requested)
    in_discussion                --resume_review--> under_review
    under_review, in_discussion  --approve-->       approved
    under_review, in_discussion  --reject-->        rejected
    any non-terminal status      --withdraw-->      withdrawn (owner only)
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from boardreview.models.db.application import MAX_AMOUNT, ClientApplication
from boardreview.models.db.base import utcnow
from boardreview.models.enums import ApplicationStatus, WorkflowEvent
from boardreview.services import notifications
from boardreview.services.access_control import Actor, is_owner
from boardreview.services.results import ErrorKind, TransitionResult
from boardreview.services.roster import RosterProvider
from boardreview.services.store import (
    load_application,
    parse_amount,
    record_status_change,
)
from boardreview.services.voting_service import VotingService
from boardreview.settings import Settings

logger = logging.getLogger(__name__)

S = ApplicationStatus
E = WorkflowEvent

# ---------------------------------------------------------------------------
# Allowed transitions: event -> (source statuses, target status)
# ---------------------------------------------------------------------------
ALLOWED_TRANSITIONS: dict[WorkflowEvent, tuple[frozenset, ApplicationStatus]] = {
    E.SUBMIT: (frozenset({S.DRAFT}), S.SUBMITTED),
    E.START_REVIEW: (frozenset({S.SUBMITTED}), S.UNDER_REVIEW),
    E.REQUEST_INFO: (frozenset({S.UNDER_REVIEW, S.IN_DISCUSSION}), S.IN_DISCUSSION),
    E.RESUME_REVIEW: (frozenset({S.IN_DISCUSSION}), S.UNDER_REVIEW),
    E.APPROVE: (frozenset({S.UNDER_REVIEW, S.IN_DISCUSSION}), S.APPROVED),
    E.REJECT: (frozenset({S.UNDER_REVIEW, S.IN_DISCUSSION}), S.REJECTED),
    E.WITHDRAW: (
        frozenset({S.DRAFT, S.SUBMITTED, S.UNDER_REVIEW, S.IN_DISCUSSION}),
        S.WITHDRAWN,
    ),
}

# Events only the owning applicant may fire; all others need finalize capability
OWNER_EVENTS = frozenset({E.SUBMIT, E.WITHDRAW})

DEFAULT_APPROVAL_MESSAGE = "Your application has been approved!"
DEFAULT_REJECTION_MESSAGE = (
    "Thank you for your application. Unfortunately, we are unable to approve "
    "it at this time."
)


@dataclass
class TransitionPayload:
    """Event-specific inputs.  Unused fields are ignored."""

    # request_info
    details: Optional[str] = None
    # approve
    approved_monthly_amount: Any = None
    sponsor_id: Optional[str] = None
    decision_message: Optional[str] = None
    # reject
    rejection_reason: Optional[str] = None
    # withdraw
    reason: Optional[str] = None


def missing_required_fields(application: ClientApplication) -> list[str]:
    """Human-readable list of fields that block leaving draft."""
    errors = []
    for attr, label in (
        ("first_name", "First name"),
        ("last_name", "Last name"),
        ("email", "Email"),
        ("phone_number", "Phone number"),
        ("personal_statement", "Personal statement"),
        ("expected_benefits", "Expected benefits"),
        ("commitment_statement", "Commitment statement"),
        ("signature", "Signature"),
    ):
        value = getattr(application, attr)
        if value is None or not str(value).strip():
            errors.append(f"{label} is required")
    if not application.funding_types:
        errors.append("At least one funding type is required")
    cost = application.estimated_monthly_cost
    if cost is None or Decimal(cost) <= 0:
        errors.append("Estimated monthly cost must be greater than zero")
    return errors


def _is_idempotent_repeat(
    application: ClientApplication, current: ApplicationStatus, event: WorkflowEvent
) -> bool:
    if event == E.START_REVIEW or event == E.RESUME_REVIEW:
        return current == S.UNDER_REVIEW
    if event == E.REQUEST_INFO:
        return current == S.IN_DISCUSSION and application.info_requested
    if event == E.WITHDRAW:
        return current == S.WITHDRAWN
    return False


class ApplicationStateMachine:
    """Validates and applies workflow events to a single application."""

    @staticmethod
    def _authorize(
        application: ClientApplication, event: WorkflowEvent, actor: Actor
    ) -> Optional[str]:
        if event in OWNER_EVENTS:
            if not is_owner(application, actor):
                return "Only the applicant can perform this action"
        elif not actor.can_finalize_decisions:
            return "Only administrators can perform this action"
        return None

    @staticmethod
    async def _validate(
        db: AsyncSession,
        roster: RosterProvider,
        settings: Settings,
        application: ClientApplication,
        event: WorkflowEvent,
        payload: TransitionPayload,
    ) -> list[str]:
        if event == E.SUBMIT:
            return missing_required_fields(application)

        errors = []
        if event == E.REQUEST_INFO and not (payload.details or "").strip():
            errors.append("Request details are required")
        if event == E.APPROVE:
            amount = parse_amount(payload.approved_monthly_amount)
            if amount is None or amount <= 0:
                errors.append(
                    "Approved monthly amount must be a number greater than zero "
                    f"and at most {MAX_AMOUNT}"
                )
        if event == E.REJECT and not (payload.rejection_reason or "").strip():
            errors.append("Rejection reason is required")

        if event in (E.APPROVE, E.REJECT) and settings.require_quorum_for_decision:
            summary = await VotingService.get_voting_summary(
                db, roster, settings.quorum, application.id
            )
            if not summary.quorum_reached:
                errors.append(
                    f"Quorum not reached: {summary.total_votes} of "
                    f"{summary.votes_required} required votes cast"
                )
        return errors

    @staticmethod
    async def _apply(
        db: AsyncSession,
        roster: RosterProvider,
        application: ClientApplication,
        event: WorkflowEvent,
        actor: Actor,
        payload: TransitionPayload,
    ) -> list:
        """Stamp event-specific fields and return the notification triggers."""
        now = utcnow()

        if event == E.SUBMIT:
            application.submitted_at = now
            return [notifications.application_submitted(application)]

        if event == E.START_REVIEW:
            application.review_started_at = now
            board = await roster.eligible_voters(db)
            return [
                notifications.review_started(application),
                notifications.new_application(application, board),
            ]

        if event == E.REQUEST_INFO:
            details = payload.details.strip()
            application.info_requested = True
            application.info_request_details = details
            application.info_requested_at = now
            return [notifications.information_requested(application, details)]

        if event == E.RESUME_REVIEW:
            application.info_requested = False
            return []

        if event == E.APPROVE:
            application.approved_monthly_amount = parse_amount(
                payload.approved_monthly_amount
            )
            application.assigned_sponsor_id = payload.sponsor_id
            application.decision_message = (
                payload.decision_message or ""
            ).strip() or DEFAULT_APPROVAL_MESSAGE
            application.decided_at = now
            application.decided_by_id = actor.user_id
            application.info_requested = False
            events = [notifications.application_approved(application)]
            if payload.sponsor_id:
                events.append(notifications.sponsor_assigned(application))
            return events

        if event == E.REJECT:
            application.rejection_reason = payload.rejection_reason.strip()
            application.decision_message = (
                payload.decision_message or ""
            ).strip() or DEFAULT_REJECTION_MESSAGE
            application.decided_at = now
            application.decided_by_id = actor.user_id
            application.info_requested = False
            return [notifications.application_rejected(application)]

        # withdraw
        application.withdrawal_reason = (payload.reason or "").strip() or None
        application.withdrawn_at = now
        application.info_requested = False
        return []

    @staticmethod
    async def transition(
        db: AsyncSession,
        roster: RosterProvider,
        settings: Settings,
        application_id: int,
        event: WorkflowEvent,
        actor: Actor,
        payload: Optional[TransitionPayload] = None,
    ) -> TransitionResult:
        """Apply ``event`` to the application's current persisted status.

        Returns a :class:`TransitionResult`; business-rule violations are
        reported through it rather than raised.
        """
        payload = payload or TransitionPayload()
        application = await load_application(db, application_id, for_update=True)
        if application is None:
            return TransitionResult.fail(
                ErrorKind.NOT_FOUND, f"Application {application_id} not found"
            )

        current = ApplicationStatus(application.status)

        denied = ApplicationStateMachine._authorize(application, event, actor)
        if denied:
            logger.warning(
                "Denied %s on application %s for %s",
                event.value,
                application_id,
                actor.user_id,
            )
            return TransitionResult.fail(ErrorKind.UNAUTHORIZED, denied, status=current)

        if _is_idempotent_repeat(application, current, event):
            return TransitionResult.moved(current, no_op=True)

        sources, target = ALLOWED_TRANSITIONS[event]
        if current not in sources:
            allowed = ", ".join(sorted(s.value for s in sources))
            return TransitionResult.fail(
                ErrorKind.INVALID_TRANSITION,
                f"Cannot {event.value.replace('_', ' ')} an application that is "
                f"'{current.value}' (allowed from: {allowed})",
                status=current,
            )

        errors = await ApplicationStateMachine._validate(
            db, roster, settings, application, event, payload
        )
        if errors:
            return TransitionResult.fail(ErrorKind.VALIDATION, *errors, status=current)

        events = await ApplicationStateMachine._apply(
            db, roster, application, event, actor, payload
        )
        reason = {
            E.REQUEST_INFO: payload.details,
            E.REJECT: payload.rejection_reason,
            E.WITHDRAW: payload.reason,
        }.get(event)
        record_status_change(db, application, target, event, actor.user_id, reason)
        await db.flush()

        logger.info(
            "Application %s: %s -> %s (%s by %s)",
            application_id,
            current.value,
            target.value,
            event.value,
            actor.user_id,
        )
        return TransitionResult.moved(target, events=events)
