"""Applicant-facing operations and the two projections of an application.

The applicant view and the board view are built from separate queries: the
applicant view never loads private comments or votes.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from boardreview.models.db.application import MAX_AMOUNT, ClientApplication
from boardreview.models.db.base import utcnow
from boardreview.models.db.history import ApplicationStatusHistory
from boardreview.models.db.notification import ApplicationNotification
from boardreview.models.db.review import ApplicationComment, ApplicationVote
from boardreview.models.enums import ApplicationStatus, FundingType, WorkflowEvent
from boardreview.services.access_control import Actor, is_owner
from boardreview.services.comment_service import CommentService
from boardreview.services.results import ErrorKind, OperationResult, TransitionResult
from boardreview.services.roster import RosterProvider
from boardreview.services.store import load_application, parse_amount
from boardreview.services.voting_service import VotingService, VotingSummary
from boardreview.services.workflow import ApplicationStateMachine, TransitionPayload
from boardreview.settings import Settings

logger = logging.getLogger(__name__)

# Fields the applicant may write while the application is a draft
DRAFT_FIELDS = frozenset(
    {
        "first_name",
        "last_name",
        "email",
        "phone_number",
        "funding_types",
        "estimated_monthly_cost",
        "program_duration_months",
        "funding_details",
        "personal_statement",
        "expected_benefits",
        "commitment_statement",
        "concerns_obstacles",
        "signature",
    }
)

MAX_STEP = 6
DELETABLE_STATUSES = frozenset({ApplicationStatus.DRAFT, ApplicationStatus.WITHDRAWN})


@dataclass
class ApplicantView:
    application: ClientApplication
    comments: list[ApplicationComment] = field(default_factory=list)


@dataclass
class BoardView:
    application: ClientApplication
    comments: list[ApplicationComment] = field(default_factory=list)
    votes: list[ApplicationVote] = field(default_factory=list)
    summary: Optional[VotingSummary] = None
    history: list[ApplicationStatusHistory] = field(default_factory=list)


def _clean_fields(fields: dict[str, Any]) -> tuple[dict[str, Any], list[str]]:
    """Normalise a partial draft update.  Returns (values, errors)."""
    values: dict[str, Any] = {}
    errors: list[str] = []
    for key, value in fields.items():
        if key not in DRAFT_FIELDS:
            errors.append(f"Field '{key}' cannot be edited")
            continue

        if key == "funding_types":
            try:
                values[key] = sorted({FundingType(v).value for v in value or []})
            except (TypeError, ValueError):
                errors.append("Invalid funding type")
        elif key == "estimated_monthly_cost":
            if value is None:
                values[key] = None
                continue
            cost = parse_amount(value)
            if cost is None:
                errors.append(
                    f"Estimated monthly cost must be a number no larger than {MAX_AMOUNT}"
                )
            elif cost < 0:
                errors.append("Estimated monthly cost cannot be negative")
            else:
                values[key] = cost
        elif key == "program_duration_months":
            if not isinstance(value, int) or value < 1:
                errors.append("Program duration must be at least one month")
            else:
                values[key] = value
        else:
            values[key] = value.strip() if isinstance(value, str) else value
    return values, errors


class ApplicationService:
    """Service layer for application drafts, submission and views."""

    # ------------------------------------------------------------------
    # Drafts
    # ------------------------------------------------------------------

    @staticmethod
    async def create_draft(
        db: AsyncSession, actor: Actor, fields: Optional[dict[str, Any]] = None
    ) -> OperationResult:
        values, errors = _clean_fields(fields or {})
        if errors:
            return OperationResult.fail(ErrorKind.VALIDATION, *errors)

        application = ClientApplication(
            applicant_id=actor.user_id,
            status=ApplicationStatus.DRAFT.value,
            **values,
        )
        db.add(application)
        await db.flush()
        await db.refresh(application)
        logger.info("Draft application %s created by %s", application.id, actor.user_id)
        return OperationResult.ok(value=application)

    @staticmethod
    async def save_draft(
        db: AsyncSession,
        application_id: int,
        actor: Actor,
        fields: dict[str, Any],
        current_step: Optional[int] = None,
    ) -> OperationResult:
        """Apply a partial, field-by-field save to the applicant's draft.

        Args:
            db: Async database session.
            application_id: ID of the draft.
            actor: Must be the owning applicant.
            fields: Subset of ``DRAFT_FIELDS`` to overwrite.
            current_step: Optional wizard progress marker (1..6).

        Returns:
            OperationResult whose ``value`` is the updated application.
        """
        application = await load_application(db, application_id, for_update=True)
        if application is None:
            return OperationResult.fail(
                ErrorKind.NOT_FOUND, f"Application {application_id} not found"
            )
        if not is_owner(application, actor):
            return OperationResult.fail(
                ErrorKind.UNAUTHORIZED, "Only the applicant can edit this application"
            )
        if application.status != ApplicationStatus.DRAFT.value:
            return OperationResult.fail(
                ErrorKind.INVALID_TRANSITION,
                f"Application is '{application.status}' and can no longer be edited",
            )

        values, errors = _clean_fields(fields)
        if current_step is not None and not 1 <= current_step <= MAX_STEP:
            errors.append(f"Current step must be between 1 and {MAX_STEP}")
        if errors:
            return OperationResult.fail(ErrorKind.VALIDATION, *errors)

        for key, value in values.items():
            setattr(application, key, value)
        if current_step is not None:
            application.current_step = current_step
        application.updated_at = utcnow()
        await db.flush()
        return OperationResult.ok(value=application)

    @staticmethod
    async def delete_application(
        db: AsyncSession, application_id: int, actor: Actor
    ) -> OperationResult:
        """Hard-delete a draft or withdrawn application (administrators only)."""
        application = await load_application(db, application_id, for_update=True)
        if application is None:
            return OperationResult.fail(
                ErrorKind.NOT_FOUND, f"Application {application_id} not found"
            )
        if not actor.can_finalize_decisions:
            return OperationResult.fail(
                ErrorKind.UNAUTHORIZED, "Only administrators can delete applications"
            )
        if ApplicationStatus(application.status) not in DELETABLE_STATUSES:
            return OperationResult.fail(
                ErrorKind.INVALID_TRANSITION,
                f"Cannot delete an application that is '{application.status}'",
            )

        for model in (
            ApplicationNotification,
            ApplicationVote,
            ApplicationStatusHistory,
        ):
            await db.execute(
                delete(model).where(model.application_id == application_id)
            )
        # Replies reference their parents; remove children first
        await db.execute(
            delete(ApplicationComment).where(
                ApplicationComment.application_id == application_id,
                ApplicationComment.parent_comment_id.is_not(None),
            )
        )
        await db.execute(
            delete(ApplicationComment).where(
                ApplicationComment.application_id == application_id
            )
        )
        await db.delete(application)
        await db.flush()
        logger.info("Application %s deleted by %s", application_id, actor.user_id)
        return OperationResult.ok()

    # ------------------------------------------------------------------
    # Applicant transitions
    # ------------------------------------------------------------------

    @staticmethod
    async def submit(
        db: AsyncSession,
        roster: RosterProvider,
        settings: Settings,
        application_id: int,
        actor: Actor,
    ) -> TransitionResult:
        return await ApplicationStateMachine.transition(
            db, roster, settings, application_id, WorkflowEvent.SUBMIT, actor
        )

    @staticmethod
    async def withdraw(
        db: AsyncSession,
        roster: RosterProvider,
        settings: Settings,
        application_id: int,
        actor: Actor,
        reason: Optional[str] = None,
    ) -> TransitionResult:
        return await ApplicationStateMachine.transition(
            db,
            roster,
            settings,
            application_id,
            WorkflowEvent.WITHDRAW,
            actor,
            TransitionPayload(reason=reason),
        )

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    @staticmethod
    async def get_applicant_view(
        db: AsyncSession, application_id: int, actor: Actor
    ) -> OperationResult:
        application = await load_application(db, application_id)
        if application is None:
            return OperationResult.fail(
                ErrorKind.NOT_FOUND, f"Application {application_id} not found"
            )
        if not is_owner(application, actor):
            return OperationResult.fail(
                ErrorKind.UNAUTHORIZED, "You can only view your own applications"
            )
        comments = await CommentService.list_comments(
            db, application_id, include_private=False
        )
        return OperationResult.ok(value=ApplicantView(application, comments))

    @staticmethod
    async def list_applications_for_applicant(
        db: AsyncSession, actor: Actor
    ) -> list[ClientApplication]:
        result = await db.execute(
            select(ClientApplication)
            .where(ClientApplication.applicant_id == actor.user_id)
            .order_by(ClientApplication.created_at.desc(), ClientApplication.id.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def get_board_view(
        db: AsyncSession,
        roster: RosterProvider,
        settings: Settings,
        application_id: int,
        actor: Actor,
    ) -> OperationResult:
        if not actor.is_reviewer:
            return OperationResult.fail(
                ErrorKind.UNAUTHORIZED,
                "Board access is required to review applications",
            )
        application = await load_application(db, application_id)
        # Drafts stay private to the applicant until submitted
        if application is None or application.status == ApplicationStatus.DRAFT.value:
            return OperationResult.fail(
                ErrorKind.NOT_FOUND, f"Application {application_id} not found"
            )

        history = await db.execute(
            select(ApplicationStatusHistory)
            .where(ApplicationStatusHistory.application_id == application_id)
            .order_by(ApplicationStatusHistory.created_at, ApplicationStatusHistory.id)
        )
        view = BoardView(
            application=application,
            comments=await CommentService.list_comments(
                db, application_id, include_private=True
            ),
            votes=await VotingService.get_votes(db, application_id),
            summary=await VotingService.get_voting_summary(
                db, roster, settings.quorum, application_id
            ),
            history=list(history.scalars().all()),
        )
        return OperationResult.ok(value=view)

    @staticmethod
    async def list_applications(
        db: AsyncSession, status: Optional[ApplicationStatus] = None
    ) -> list[ClientApplication]:
        query = select(ClientApplication).where(
            ClientApplication.status != ApplicationStatus.DRAFT.value
        )
        if status is not None:
            query = query.where(ClientApplication.status == status.value)
        query = query.order_by(
            ClientApplication.submitted_at.desc(), ClientApplication.id.desc()
        )
        result = await db.execute(query)
        return list(result.scalars().all())
