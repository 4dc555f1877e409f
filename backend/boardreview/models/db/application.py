"""ClientApplication ORM model.

Maps to the ``client_applications`` table.  Tracks a client's funding
application from draft through board review to a final decision.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import JSON, Boolean, DateTime, Integer, Numeric, Text
from sqlalchemy.orm import Mapped, mapped_column

from boardreview.models.db.base import Base, TimestampMixin
from boardreview.models.enums import ApplicationStatus

__all__ = ["ClientApplication", "MAX_AMOUNT"]

# Largest value a Numeric(10, 2) column holds
MAX_AMOUNT = Decimal("99999999.99")


class ClientApplication(TimestampMixin, Base):
    __tablename__ = "client_applications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Applicant reference + contact captured at submission
    applicant_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    first_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    email: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    phone_number: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Status
    status: Mapped[str] = mapped_column(
        Text, default=ApplicationStatus.DRAFT.value, nullable=False, index=True
    )

    # Program interest & funding
    funding_types: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    estimated_monthly_cost: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(10, 2), nullable=True
    )
    program_duration_months: Mapped[int] = mapped_column(
        Integer, default=12, nullable=False
    )
    funding_details: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Motivation & commitment
    personal_statement: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    expected_benefits: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    commitment_statement: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    concerns_obstacles: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Signature + multi-step draft progress
    signature: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    current_step: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    # Information-request sub-state of in_discussion
    info_requested: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    info_request_details: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    info_requested_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Decision outcome (approved / rejected only)
    approved_monthly_amount: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(10, 2), nullable=True
    )
    assigned_sponsor_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    decision_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    decided_by_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Withdrawal
    withdrawal_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    withdrawn_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Lifecycle timestamps
    submitted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    review_started_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    decided_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Bumped on every ORM update; a write based on a stale read raises
    # StaleDataError instead of overwriting a concurrent change
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()
