"""Decision actions taken by users holding the finalize-decision capability.

Each action is a thin wrapper over the state machine so that the status
flip and the decision fields land in the same transaction.
"""

import logging
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from boardreview.models.enums import WorkflowEvent
from boardreview.services.access_control import Actor
from boardreview.services.results import ErrorKind, OperationResult, TransitionResult
from boardreview.services.roster import RosterProvider
from boardreview.services.store import load_application
from boardreview.services.voting_service import VotingService
from boardreview.services.workflow import ApplicationStateMachine, TransitionPayload
from boardreview.settings import Settings

logger = logging.getLogger(__name__)

# Outcomes reported by process_application_decision
OUTCOME_APPROVED = "approved"
OUTCOME_REJECTED = "rejected"
OUTCOME_INFO_REQUESTED = "information_requested"


class DecisionService:
    """Approve / reject / request-info / start-review actions."""

    @staticmethod
    async def approve(
        db: AsyncSession,
        roster: RosterProvider,
        settings: Settings,
        application_id: int,
        actor: Actor,
        approved_monthly_amount: Any,
        sponsor_id: Optional[str] = None,
        decision_message: Optional[str] = None,
    ) -> TransitionResult:
        return await ApplicationStateMachine.transition(
            db,
            roster,
            settings,
            application_id,
            WorkflowEvent.APPROVE,
            actor,
            TransitionPayload(
                approved_monthly_amount=approved_monthly_amount,
                sponsor_id=sponsor_id,
                decision_message=decision_message,
            ),
        )

    @staticmethod
    async def reject(
        db: AsyncSession,
        roster: RosterProvider,
        settings: Settings,
        application_id: int,
        actor: Actor,
        rejection_reason: Optional[str],
        decision_message: Optional[str] = None,
    ) -> TransitionResult:
        return await ApplicationStateMachine.transition(
            db,
            roster,
            settings,
            application_id,
            WorkflowEvent.REJECT,
            actor,
            TransitionPayload(
                rejection_reason=rejection_reason,
                decision_message=decision_message,
            ),
        )

    @staticmethod
    async def request_additional_information(
        db: AsyncSession,
        roster: RosterProvider,
        settings: Settings,
        application_id: int,
        actor: Actor,
        request_details: Optional[str],
    ) -> TransitionResult:
        """Move the application into the info-requested sub-state.  Does not
        touch any vote."""
        return await ApplicationStateMachine.transition(
            db,
            roster,
            settings,
            application_id,
            WorkflowEvent.REQUEST_INFO,
            actor,
            TransitionPayload(details=request_details),
        )

    @staticmethod
    async def start_review_process(
        db: AsyncSession,
        roster: RosterProvider,
        settings: Settings,
        application_id: int,
        actor: Actor,
    ) -> TransitionResult:
        """submitted -> under_review, fanning out to the board roster as it
        stands at call time."""
        return await ApplicationStateMachine.transition(
            db, roster, settings, application_id, WorkflowEvent.START_REVIEW, actor
        )

    @staticmethod
    async def resume_review(
        db: AsyncSession,
        roster: RosterProvider,
        settings: Settings,
        application_id: int,
        actor: Actor,
    ) -> TransitionResult:
        return await ApplicationStateMachine.transition(
            db, roster, settings, application_id, WorkflowEvent.RESUME_REVIEW, actor
        )

    @staticmethod
    async def process_application_decision(
        db: AsyncSession,
        roster: RosterProvider,
        settings: Settings,
        application_id: int,
        actor: Actor,
    ) -> OperationResult:
        """Apply the board's majority outcome once quorum is reached.

        Rules, in order:
          1. any reject vote rejects the application
          2. approvals meeting the required vote count approve it for the
             estimated monthly cost
          3. otherwise the remaining counted votes are needs-more-info votes,
             so information is requested from the applicant

        Returns:
            OperationResult whose ``value`` is one of the ``OUTCOME_*``
            constants.
        """
        if not actor.can_finalize_decisions:
            return OperationResult.fail(
                ErrorKind.UNAUTHORIZED, "Only administrators can perform this action"
            )

        application = await load_application(db, application_id, for_update=True)
        if application is None:
            return OperationResult.fail(
                ErrorKind.NOT_FOUND, f"Application {application_id} not found"
            )

        summary = await VotingService.get_voting_summary(
            db, roster, settings.quorum, application_id
        )
        if not summary.quorum_reached:
            return OperationResult.fail(
                ErrorKind.VALIDATION,
                f"Quorum not reached: {summary.total_votes} of "
                f"{summary.votes_required} required votes cast",
            )

        if summary.has_any_rejection:
            outcome = OUTCOME_REJECTED
            result = await DecisionService.reject(
                db,
                roster,
                settings,
                application_id,
                actor,
                f"Rejected by board vote ({summary.rejection_votes} of "
                f"{summary.total_votes} votes to reject)",
            )
        elif summary.approval_votes >= summary.votes_required:
            outcome = OUTCOME_APPROVED
            amount = application.estimated_monthly_cost or Decimal("0")
            result = await DecisionService.approve(
                db, roster, settings, application_id, actor, amount
            )
        else:
            outcome = OUTCOME_INFO_REQUESTED
            result = await DecisionService.request_additional_information(
                db,
                roster,
                settings,
                application_id,
                actor,
                f"{summary.needs_info_votes} board member(s) need more information "
                "before a decision can be made.",
            )

        if not result.succeeded:
            return OperationResult(
                succeeded=False, errors=result.errors, error_kind=result.error_kind
            )
        logger.info("Board decision on application %s: %s", application_id, outcome)
        return OperationResult.ok(value=outcome, events=result.events)
