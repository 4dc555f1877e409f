"""Read-only projections over applications and votes.

Nothing here writes; every figure is recomputed from the current rows.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from boardreview.models.db.application import ClientApplication
from boardreview.models.db.base import utcnow
from boardreview.models.db.review import ApplicationVote
from boardreview.models.enums import (
    DECIDED_STATUSES,
    VOTE_ACCEPTING_STATUSES,
    ApplicationStatus,
    VoteDecision,
)
from boardreview.services.roster import RosterProvider
from boardreview.services.store import as_utc

logger = logging.getLogger(__name__)

_VOTE_ACCEPTING = [s.value for s in VOTE_ACCEPTING_STATUSES]


@dataclass
class BoardMemberStatistics:
    voter_id: str
    pending_votes: int = 0
    total_votes_cast: int = 0
    approvals_given: int = 0
    rejections_given: int = 0
    average_confidence: float = 0.0
    # Percent of applications reviewed during the member's tenure they voted on
    participation_rate: float = 0.0


@dataclass
class ApplicationStatistics:
    total_applications: int = 0
    by_status: dict[str, int] = field(default_factory=dict)
    # Percent of decided applications that were approved
    approval_rate: float = 0.0
    average_days_to_decision: float = 0.0


class StatisticsService:
    """Review queue and dashboard figures."""

    @staticmethod
    async def get_applications_needing_review(
        db: AsyncSession, voter_id: str
    ) -> list[ClientApplication]:
        """Vote-accepting applications the voter has not voted on yet,
        oldest submission first."""
        voted = select(ApplicationVote.application_id).where(
            ApplicationVote.voter_id == voter_id
        )
        result = await db.execute(
            select(ClientApplication)
            .where(
                ClientApplication.status.in_(_VOTE_ACCEPTING),
                ClientApplication.id.not_in(voted),
            )
            .order_by(ClientApplication.submitted_at, ClientApplication.id)
        )
        return list(result.scalars().all())

    @staticmethod
    async def get_board_member_statistics(
        db: AsyncSession, roster: RosterProvider, voter_id: str
    ) -> BoardMemberStatistics:
        stats = BoardMemberStatistics(voter_id=voter_id)
        stats.pending_votes = len(
            await StatisticsService.get_applications_needing_review(db, voter_id)
        )

        votes_result = await db.execute(
            select(ApplicationVote).where(ApplicationVote.voter_id == voter_id)
        )
        votes = list(votes_result.scalars().all())
        stats.total_votes_cast = len(votes)
        stats.approvals_given = sum(
            1 for v in votes if v.decision == VoteDecision.APPROVE.value
        )
        stats.rejections_given = sum(
            1 for v in votes if v.decision == VoteDecision.REJECT.value
        )
        if votes:
            stats.average_confidence = round(
                sum(v.confidence_level for v in votes) / len(votes), 2
            )

        # Participation: applications whose review started during tenure
        tenure_start = as_utc(await roster.tenure_start(db, voter_id))
        reviewed = await db.execute(
            select(ClientApplication.id, ClientApplication.review_started_at).where(
                ClientApplication.review_started_at.is_not(None)
            )
        )
        eligible_ids = {
            app_id
            for app_id, started in reviewed.all()
            if tenure_start is None or as_utc(started) >= tenure_start
        }
        if eligible_ids:
            voted_on = {v.application_id for v in votes} & eligible_ids
            stats.participation_rate = round(
                len(voted_on) / len(eligible_ids) * 100, 1
            )
        return stats

    @staticmethod
    async def get_application_statistics(db: AsyncSession) -> ApplicationStatistics:
        stats = ApplicationStatistics()

        counts = await db.execute(
            select(ClientApplication.status, func.count(ClientApplication.id)).group_by(
                ClientApplication.status
            )
        )
        stats.by_status = {status: count for status, count in counts.all()}
        stats.total_applications = sum(stats.by_status.values())

        approved = stats.by_status.get(ApplicationStatus.APPROVED.value, 0)
        rejected = stats.by_status.get(ApplicationStatus.REJECTED.value, 0)
        if approved + rejected:
            stats.approval_rate = round(approved / (approved + rejected) * 100, 1)

        decided = await db.execute(
            select(ClientApplication.submitted_at, ClientApplication.decided_at).where(
                ClientApplication.status.in_([s.value for s in DECIDED_STATUSES]),
                ClientApplication.submitted_at.is_not(None),
                ClientApplication.decided_at.is_not(None),
            )
        )
        durations = [
            (as_utc(decided_at) - as_utc(submitted_at)).total_seconds() / 86400
            for submitted_at, decided_at in decided.all()
        ]
        if durations:
            stats.average_days_to_decision = round(sum(durations) / len(durations), 1)
        return stats

    @staticmethod
    async def get_stale_applications(
        db: AsyncSession, days_threshold: int = 30, now: Optional[datetime] = None
    ) -> list[ClientApplication]:
        """Vote-accepting applications submitted ``days_threshold`` or more
        days ago."""
        cutoff = (as_utc(now) if now is not None else utcnow()) - timedelta(
            days=days_threshold
        )
        result = await db.execute(
            select(ClientApplication)
            .where(ClientApplication.status.in_(_VOTE_ACCEPTING))
            .order_by(ClientApplication.submitted_at, ClientApplication.id)
        )
        return [
            application
            for application in result.scalars().all()
            if application.submitted_at is not None
            and as_utc(application.submitted_at) <= cutoff
        ]
