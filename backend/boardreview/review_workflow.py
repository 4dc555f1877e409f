"""In-process entry point for the board review workflow.

:class:`ReviewWorkflow` wraps each service call in its own transaction:

- the session is opened, the operation runs, and the transaction commits
  only when the result reports success (anything else rolls back)
- notification triggers returned by a committed operation are handed to the
  :class:`~boardreview.services.notifications.NotificationDispatcher`
  afterwards, so a failing sink can never undo or fail the operation
- a write based on a read that a concurrent commit made stale raises
  ``StaleDataError`` (see the ``version`` column on ``ClientApplication``);
  the transaction is rolled back and the operation re-run from scratch

Read-only projections run in a session that is never committed.
"""

import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from boardreview.models.enums import ApplicationStatus, WorkflowEvent
from boardreview.services import notifications
from boardreview.services.access_control import Actor
from boardreview.services.application_service import ApplicationService
from boardreview.services.comment_service import CommentService
from boardreview.services.decision_service import DecisionService
from boardreview.services.notifications import NotificationDispatcher, NotificationInbox
from boardreview.services.results import OperationResult
from boardreview.services.roster import RosterProvider
from boardreview.services.statistics_service import StatisticsService
from boardreview.services.voting_service import VotingService
from boardreview.services.workflow import ApplicationStateMachine, TransitionPayload
from boardreview.settings import Settings

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=OperationResult)
T = TypeVar("T")


class ReviewWorkflow:
    # Attempts per operation when a concurrent write makes the first stale
    MAX_ATTEMPTS = 3

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        roster: RosterProvider,
        settings: Settings,
        dispatcher: Optional[NotificationDispatcher] = None,
    ):
        self.session_factory = session_factory
        self.roster = roster
        self.settings = settings
        self.dispatcher = dispatcher or NotificationDispatcher()

    # ------------------------------------------------------------------
    # Transaction helpers
    # ------------------------------------------------------------------

    async def _run(
        self, operation: Callable[..., Awaitable[R]], *args: Any, **kwargs: Any
    ) -> R:
        for attempt in range(1, self.MAX_ATTEMPTS + 1):
            async with self.session_factory() as db:
                try:
                    result = await operation(db, *args, **kwargs)
                    if result.succeeded:
                        await db.commit()
                    else:
                        await db.rollback()
                        logger.warning(
                            "%s rejected (%s): %s",
                            operation.__name__,
                            result.error_kind.value if result.error_kind else "unknown",
                            "; ".join(result.errors),
                        )
                except StaleDataError:
                    await db.rollback()
                    if attempt == self.MAX_ATTEMPTS:
                        raise
                    logger.warning(
                        "%s hit a concurrent update (attempt %d); retrying",
                        operation.__name__,
                        attempt,
                    )
                    continue
                except Exception:
                    await db.rollback()
                    raise
            break

        if result.succeeded and result.events:
            await self.dispatcher.dispatch(result.events)
        return result

    async def _read(
        self, query: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any
    ) -> T:
        async with self.session_factory() as db:
            return await query(db, *args, **kwargs)

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    async def transition(
        self,
        application_id: int,
        event: WorkflowEvent,
        actor: Actor,
        payload: Optional[TransitionPayload] = None,
    ):
        return await self._run(
            ApplicationStateMachine.transition,
            self.roster,
            self.settings,
            application_id,
            event,
            actor,
            payload,
        )

    # ------------------------------------------------------------------
    # Applicant operations
    # ------------------------------------------------------------------

    async def create_draft(self, actor: Actor, fields: Optional[dict] = None):
        return await self._run(ApplicationService.create_draft, actor, fields)

    async def save_draft(
        self,
        application_id: int,
        actor: Actor,
        fields: dict,
        current_step: Optional[int] = None,
    ):
        return await self._run(
            ApplicationService.save_draft, application_id, actor, fields, current_step
        )

    async def submit(self, application_id: int, actor: Actor):
        return await self._run(
            ApplicationService.submit, self.roster, self.settings, application_id, actor
        )

    async def withdraw(
        self, application_id: int, actor: Actor, reason: Optional[str] = None
    ):
        return await self._run(
            ApplicationService.withdraw,
            self.roster,
            self.settings,
            application_id,
            actor,
            reason,
        )

    async def delete_application(self, application_id: int, actor: Actor):
        return await self._run(
            ApplicationService.delete_application, application_id, actor
        )

    async def get_applicant_view(self, application_id: int, actor: Actor):
        return await self._read(
            ApplicationService.get_applicant_view, application_id, actor
        )

    async def list_applications_for_applicant(self, actor: Actor):
        return await self._read(
            ApplicationService.list_applications_for_applicant, actor
        )

    async def get_board_view(self, application_id: int, actor: Actor):
        return await self._read(
            ApplicationService.get_board_view,
            self.roster,
            self.settings,
            application_id,
            actor,
        )

    async def list_applications(self, status: Optional[ApplicationStatus] = None):
        return await self._read(ApplicationService.list_applications, status)

    # ------------------------------------------------------------------
    # Voting
    # ------------------------------------------------------------------

    async def cast_vote(
        self,
        application_id: int,
        actor: Actor,
        decision: str,
        reasoning: Optional[str],
        confidence_level: int = 3,
    ):
        return await self._run(
            VotingService.cast_vote,
            self.roster,
            self.settings.quorum,
            application_id,
            actor,
            decision,
            reasoning,
            confidence_level,
        )

    async def get_voting_summary(self, application_id: int):
        return await self._read(
            VotingService.get_voting_summary,
            self.roster,
            self.settings.quorum,
            application_id,
        )

    async def get_votes(self, application_id: int):
        return await self._read(VotingService.get_votes, application_id)

    async def get_vote(self, application_id: int, voter_id: str):
        return await self._read(VotingService.get_vote, application_id, voter_id)

    async def has_voted(self, application_id: int, voter_id: str) -> bool:
        return await self._read(VotingService.has_voted, application_id, voter_id)

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    async def add_comment(
        self,
        application_id: int,
        actor: Actor,
        content: Optional[str],
        is_private: bool = True,
        is_information_request: bool = False,
        parent_comment_id: Optional[int] = None,
    ):
        return await self._run(
            CommentService.add_comment,
            self.roster,
            application_id,
            actor,
            content,
            is_private,
            is_information_request,
            parent_comment_id,
        )

    async def list_comments(self, application_id: int, include_private: bool = False):
        return await self._read(
            CommentService.list_comments, application_id, include_private
        )

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    async def approve(
        self,
        application_id: int,
        actor: Actor,
        approved_monthly_amount: Any,
        sponsor_id: Optional[str] = None,
        decision_message: Optional[str] = None,
    ):
        return await self._run(
            DecisionService.approve,
            self.roster,
            self.settings,
            application_id,
            actor,
            approved_monthly_amount,
            sponsor_id,
            decision_message,
        )

    async def reject(
        self,
        application_id: int,
        actor: Actor,
        rejection_reason: Optional[str],
        decision_message: Optional[str] = None,
    ):
        return await self._run(
            DecisionService.reject,
            self.roster,
            self.settings,
            application_id,
            actor,
            rejection_reason,
            decision_message,
        )

    async def request_additional_information(
        self, application_id: int, actor: Actor, request_details: Optional[str]
    ):
        return await self._run(
            DecisionService.request_additional_information,
            self.roster,
            self.settings,
            application_id,
            actor,
            request_details,
        )

    async def start_review_process(self, application_id: int, actor: Actor):
        return await self._run(
            DecisionService.start_review_process,
            self.roster,
            self.settings,
            application_id,
            actor,
        )

    async def resume_review(self, application_id: int, actor: Actor):
        return await self._run(
            DecisionService.resume_review,
            self.roster,
            self.settings,
            application_id,
            actor,
        )

    async def process_application_decision(self, application_id: int, actor: Actor):
        return await self._run(
            DecisionService.process_application_decision,
            self.roster,
            self.settings,
            application_id,
            actor,
        )

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    async def get_applications_needing_review(self, voter_id: str):
        return await self._read(
            StatisticsService.get_applications_needing_review, voter_id
        )

    async def get_board_member_statistics(self, voter_id: str):
        return await self._read(
            StatisticsService.get_board_member_statistics, self.roster, voter_id
        )

    async def get_application_statistics(self):
        return await self._read(StatisticsService.get_application_statistics)

    async def get_stale_applications(self, days_threshold: Optional[int] = None):
        days = days_threshold
        if days is None:
            days = self.settings.stale_review_days
        return await self._read(StatisticsService.get_stale_applications, days)

    # ------------------------------------------------------------------
    # Notification inbox
    # ------------------------------------------------------------------

    async def list_unread_notifications(self, user_id: str):
        return await self._read(NotificationInbox.list_unread, user_id)

    async def unread_notification_count(self, user_id: str) -> int:
        return await self._read(NotificationInbox.unread_count, user_id)

    async def mark_notification_read(self, notification_id: int, user_id: str) -> bool:
        async with self.session_factory() as db:
            async with db.begin():
                return await NotificationInbox.mark_read(db, notification_id, user_id)

    async def mark_all_notifications_read(self, user_id: str) -> int:
        async with self.session_factory() as db:
            async with db.begin():
                return await NotificationInbox.mark_all_read(db, user_id)

    # ------------------------------------------------------------------
    # Reminders
    # ------------------------------------------------------------------

    async def send_stale_review_reminders(self) -> int:
        """Remind board members who have not voted on overdue applications.

        Returns the number of reminder triggers dispatched.
        """
        days = self.settings.stale_review_days
        async with self.session_factory() as db:
            stale = await StatisticsService.get_stale_applications(db, days)
            events = []
            for application in stale:
                summary = await VotingService.get_voting_summary(
                    db, self.roster, self.settings.quorum, application.id
                )
                if summary.pending_voters:
                    events.append(
                        notifications.review_overdue(
                            application, summary.pending_voters, days
                        )
                    )
        if events:
            await self.dispatcher.dispatch(events)
        logger.info(
            "Stale review check: %d application(s) overdue, %d reminder(s) sent",
            len(stale),
            len(events),
        )
        return len(events)
