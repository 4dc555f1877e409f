"""Pydantic request/response schemas for applicant-facing endpoints."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from boardreview.models.review_models import (
    CommentResponse,
    StatusHistoryResponse,
    VoteResponse,
    VotingSummaryResponse,
)


class ApplicationFields(BaseModel):
    """Editable draft fields.  All optional; only fields sent are saved."""

    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    email: Optional[str] = Field(None, max_length=254)
    phone_number: Optional[str] = Field(None, max_length=20)
    funding_types: Optional[List[str]] = None
    estimated_monthly_cost: Optional[float] = Field(None, allow_inf_nan=False)
    program_duration_months: Optional[int] = None
    funding_details: Optional[str] = Field(None, max_length=1000)
    personal_statement: Optional[str] = Field(None, max_length=2000)
    expected_benefits: Optional[str] = Field(None, max_length=1000)
    commitment_statement: Optional[str] = Field(None, max_length=1000)
    concerns_obstacles: Optional[str] = Field(None, max_length=1000)
    signature: Optional[str] = Field(None, max_length=100)


class DraftCreate(ApplicationFields):
    """Request body for starting a new application."""


class DraftUpdate(ApplicationFields):
    """Request body for a partial draft save."""

    current_step: Optional[int] = Field(None, description="Wizard step (1-6)")


class WithdrawRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=2000)


class ApplicationResponse(BaseModel):
    """Application as shown to its applicant."""

    id: int
    applicant_id: str
    status: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone_number: Optional[str] = None
    funding_types: List[str] = Field(default_factory=list)
    estimated_monthly_cost: Optional[float] = None
    program_duration_months: int = 12
    funding_details: Optional[str] = None
    personal_statement: Optional[str] = None
    expected_benefits: Optional[str] = None
    commitment_statement: Optional[str] = None
    concerns_obstacles: Optional[str] = None
    signature: Optional[str] = None
    current_step: int = 1
    info_requested: bool = False
    info_request_details: Optional[str] = None
    info_requested_at: Optional[datetime] = None
    approved_monthly_amount: Optional[float] = None
    assigned_sponsor_id: Optional[str] = None
    decision_message: Optional[str] = None
    rejection_reason: Optional[str] = None
    decided_at: Optional[datetime] = None
    withdrawal_reason: Optional[str] = None
    withdrawn_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    review_started_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class BoardApplicationResponse(ApplicationResponse):
    """Application as shown to board members and administrators."""

    decided_by_id: Optional[str] = None


class ApplicationListResponse(BaseModel):
    applications: List[ApplicationResponse]
    total: int


class ApplicantViewResponse(BaseModel):
    """The applicant's own application with its public thread."""

    application: ApplicationResponse
    comments: List[CommentResponse] = Field(default_factory=list)


class BoardViewResponse(BaseModel):
    """Full review record: every comment, every vote, the live tally and the
    status history."""

    application: BoardApplicationResponse
    comments: List[CommentResponse] = Field(default_factory=list)
    votes: List[VoteResponse] = Field(default_factory=list)
    summary: VotingSummaryResponse
    history: List[StatusHistoryResponse] = Field(default_factory=list)

    class Config:
        from_attributes = True


class ReviewQueueResponse(BaseModel):
    """Applications awaiting the current board member's vote."""

    applications: List[BoardApplicationResponse]
    total: int
