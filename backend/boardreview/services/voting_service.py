"""Voting engine: one vote per board member per application, live quorum.

Quorum is always evaluated against the roster returned by the
:class:`~boardreview.services.roster.RosterProvider` at the moment of the
tally.  A member who voted and was later deactivated still counts toward the
number of votes cast, while ``votes_required`` shrinks with the roster.

Reaching quorum never changes the application's status.  It only emits a
``quorum_reached`` notification trigger so a decision maker can act.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from boardreview.models.db.review import ApplicationVote
from boardreview.models.enums import (
    VOTE_ACCEPTING_STATUSES,
    ApplicationStatus,
    VoteDecision,
)
from boardreview.services import notifications
from boardreview.services.access_control import Actor
from boardreview.services.results import ErrorKind, OperationResult
from boardreview.services.roster import RosterProvider
from boardreview.services.store import load_application
from boardreview.settings import QuorumPolicy

logger = logging.getLogger(__name__)

MAX_REASONING_LENGTH = 2000
VOTE_CONSTRAINT_NAME = "uq_vote_app_voter"


@dataclass
class VotingSummary:
    application_id: int
    total_votes: int = 0
    approval_votes: int = 0
    rejection_votes: int = 0
    needs_info_votes: int = 0
    abstain_votes: int = 0
    votes_required: int = 0
    quorum_reached: bool = False
    pending_voters: list[str] = field(default_factory=list)

    @property
    def has_any_rejection(self) -> bool:
        return self.rejection_votes > 0


def _is_duplicate_vote(exc: IntegrityError) -> bool:
    message = str(exc.orig)
    return VOTE_CONSTRAINT_NAME in message or (
        "UNIQUE constraint failed" in message and "application_votes" in message
    )


class VotingService:
    """Service layer for board votes."""

    @staticmethod
    async def get_votes(db: AsyncSession, application_id: int) -> list[ApplicationVote]:
        result = await db.execute(
            select(ApplicationVote)
            .where(ApplicationVote.application_id == application_id)
            .order_by(ApplicationVote.cast_at, ApplicationVote.id)
        )
        return list(result.scalars().all())

    @staticmethod
    async def get_vote(
        db: AsyncSession, application_id: int, voter_id: str
    ) -> Optional[ApplicationVote]:
        result = await db.execute(
            select(ApplicationVote).where(
                ApplicationVote.application_id == application_id,
                ApplicationVote.voter_id == voter_id,
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def has_voted(db: AsyncSession, application_id: int, voter_id: str) -> bool:
        return await VotingService.get_vote(db, application_id, voter_id) is not None

    @staticmethod
    async def get_voting_summary(
        db: AsyncSession,
        roster: RosterProvider,
        policy: QuorumPolicy,
        application_id: int,
    ) -> VotingSummary:
        """Recompute the tally from the stored votes and the live roster."""
        votes = await VotingService.get_votes(db, application_id)
        eligible = await roster.eligible_voters(db)

        summary = VotingSummary(application_id=application_id)
        for vote in votes:
            if vote.decision == VoteDecision.APPROVE.value:
                summary.approval_votes += 1
            elif vote.decision == VoteDecision.REJECT.value:
                summary.rejection_votes += 1
            elif vote.decision == VoteDecision.NEEDS_MORE_INFO.value:
                summary.needs_info_votes += 1
            else:
                summary.abstain_votes += 1

        summary.total_votes = (
            summary.approval_votes + summary.rejection_votes + summary.needs_info_votes
        )
        summary.votes_required = policy.votes_required(len(eligible))
        summary.quorum_reached = (
            summary.votes_required > 0 and summary.total_votes >= summary.votes_required
        )
        voted = {vote.voter_id for vote in votes}
        summary.pending_voters = sorted(eligible - voted)
        return summary

    @staticmethod
    def _validate(
        decision: str, reasoning: Optional[str], confidence_level: int
    ) -> tuple[Optional[VoteDecision], list[str]]:
        errors: list[str] = []
        parsed: Optional[VoteDecision] = None
        try:
            parsed = VoteDecision(decision)
        except ValueError:
            allowed = ", ".join(d.value for d in VoteDecision)
            errors.append(f"Invalid vote decision '{decision}'. Allowed: {allowed}")

        text = (reasoning or "").strip()
        if not text:
            errors.append("Reasoning is required")
        elif len(text) > MAX_REASONING_LENGTH:
            errors.append(
                f"Reasoning must be at most {MAX_REASONING_LENGTH} characters"
            )

        if not isinstance(confidence_level, int) or not 1 <= confidence_level <= 5:
            errors.append("Confidence level must be between 1 and 5")
        return parsed, errors

    @staticmethod
    async def cast_vote(
        db: AsyncSession,
        roster: RosterProvider,
        policy: QuorumPolicy,
        application_id: int,
        actor: Actor,
        decision: str,
        reasoning: Optional[str],
        confidence_level: int = 3,
    ) -> OperationResult:
        """Record a vote inside the caller's transaction.

        The duplicate pre-check gives a clean error for the common case; the
        unique constraint on (application_id, voter_id) settles races between
        concurrent casts by the same voter.
        """
        application = await load_application(db, application_id, for_update=True)
        if application is None:
            return OperationResult.fail(
                ErrorKind.NOT_FOUND, f"Application {application_id} not found"
            )

        if not actor.is_board_member:
            return OperationResult.fail(
                ErrorKind.UNAUTHORIZED, "Only board members can vote on applications"
            )

        current = ApplicationStatus(application.status)
        if current not in VOTE_ACCEPTING_STATUSES:
            return OperationResult.fail(
                ErrorKind.INVALID_TRANSITION,
                f"Application is '{current.value}' and is not accepting votes",
            )

        parsed, errors = VotingService._validate(decision, reasoning, confidence_level)
        if errors:
            return OperationResult.fail(ErrorKind.VALIDATION, *errors)

        if await VotingService.has_voted(db, application_id, actor.user_id):
            return OperationResult.fail(
                ErrorKind.DUPLICATE_VOTE,
                "You have already voted on this application",
            )

        vote = ApplicationVote(
            application_id=application_id,
            voter_id=actor.user_id,
            decision=parsed.value,
            reasoning=reasoning.strip(),
            confidence_level=confidence_level,
        )
        db.add(vote)
        try:
            await db.flush()
        except IntegrityError as e:
            if not _is_duplicate_vote(e):
                raise
            logger.warning(
                "Concurrent duplicate vote by %s on application %s",
                actor.user_id,
                application_id,
            )
            return OperationResult.fail(
                ErrorKind.DUPLICATE_VOTE,
                "You have already voted on this application",
            )

        # The insert holds the write lock (SQLite) or the row lock (PostgreSQL);
        # a status change committed before it must still be honoured.
        await db.refresh(application, attribute_names=["status"])
        if application.status not in {s.value for s in VOTE_ACCEPTING_STATUSES}:
            return OperationResult.fail(
                ErrorKind.INVALID_TRANSITION,
                f"Application is '{application.status}' and is not accepting votes",
            )

        after = await VotingService.get_voting_summary(
            db, roster, policy, application_id
        )
        logger.info(
            "Vote %s cast by %s on application %s (%d/%d)",
            parsed.value,
            actor.user_id,
            application_id,
            after.total_votes,
            after.votes_required,
        )

        # Tally as it stood just before this vote; derived from the same read
        # so that only the vote that crosses the threshold announces it.
        counted_before = after.total_votes
        if parsed != VoteDecision.ABSTAIN:
            counted_before -= 1
        reached_before = 0 < after.votes_required <= counted_before

        events = []
        if after.quorum_reached and not reached_before:
            board = await roster.eligible_voters(db)
            deciders = await roster.decision_makers(db)
            events.append(
                notifications.quorum_reached(
                    application_id,
                    board | deciders,
                    after.total_votes,
                    after.votes_required,
                )
            )
        return OperationResult.ok(value=vote, events=events)
