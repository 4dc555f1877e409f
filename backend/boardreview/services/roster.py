"""Role/roster provider.

Answers "who currently holds board-member capability" and "who currently
holds decision-finalize capability".  Every call is a live query; nothing is
cached between calls so deactivations take effect on the next tally.
"""

import logging
from datetime import datetime
from typing import Optional, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from boardreview.models.db.user import User
from boardreview.models.enums import UserRole

logger = logging.getLogger(__name__)


class RosterProvider(Protocol):
    async def eligible_voters(self, db: AsyncSession) -> set[str]: ...

    async def decision_makers(self, db: AsyncSession) -> set[str]: ...

    async def tenure_start(
        self, db: AsyncSession, user_id: str
    ) -> Optional[datetime]: ...


class DatabaseRosterProvider:
    """Roster backed by the ``users`` table (role + ``is_active``)."""

    async def _active_ids_with_role(self, db: AsyncSession, role: UserRole) -> set[str]:
        result = await db.execute(
            select(User.id).where(User.role == role.value, User.is_active.is_(True))
        )
        return set(result.scalars().all())

    async def eligible_voters(self, db: AsyncSession) -> set[str]:
        return await self._active_ids_with_role(db, UserRole.BOARD_MEMBER)

    async def decision_makers(self, db: AsyncSession) -> set[str]:
        return await self._active_ids_with_role(db, UserRole.ADMIN)

    async def tenure_start(self, db: AsyncSession, user_id: str) -> Optional[datetime]:
        result = await db.execute(
            select(User.board_member_since).where(User.id == user_id)
        )
        return result.scalar_one_or_none()
