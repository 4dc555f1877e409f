"""User ORM model.

Only the columns the review workflow needs: identity, role and whether the
account is active.  ``board_member_since`` marks the start of a board
member's current tenure and scopes participation statistics.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column

from boardreview.models.db.base import Base, TimestampMixin
from boardreview.models.enums import UserRole

__all__ = ["User"]


class User(TimestampMixin, Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(Text, primary_key=True)

    email: Mapped[str] = mapped_column(Text, nullable=False)
    display_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    role: Mapped[str] = mapped_column(
        Text, default=UserRole.MEMBER.value, nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    board_member_since: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
