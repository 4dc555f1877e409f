"""Pydantic request/response schemas for the board review endpoints."""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Votes
# ---------------------------------------------------------------------------


class VoteCreate(BaseModel):
    """Request body for casting a vote."""

    decision: str = Field(
        ..., description="approve, reject, needs_more_info, or abstain"
    )
    reasoning: str = Field(..., max_length=2000)
    confidence_level: int = Field(3, description="Confidence from 1 to 5")


class VoteResponse(BaseModel):
    id: int
    application_id: int
    voter_id: str
    decision: str
    reasoning: str
    confidence_level: int
    cast_at: datetime

    class Config:
        from_attributes = True


class VotingSummaryResponse(BaseModel):
    """Tally recomputed against the current board roster."""

    application_id: int
    total_votes: int
    approval_votes: int
    rejection_votes: int
    needs_info_votes: int
    abstain_votes: int
    votes_required: int
    quorum_reached: bool
    has_any_rejection: bool
    pending_voters: List[str] = Field(default_factory=list)

    class Config:
        from_attributes = True


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------


class CommentCreate(BaseModel):
    content: str = Field(..., max_length=5000)
    is_private: bool = True
    is_information_request: bool = False
    parent_comment_id: Optional[int] = None


class CommentResponse(BaseModel):
    id: int
    application_id: int
    author_id: str
    content: str
    is_private: bool
    is_information_request: bool
    parent_comment_id: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True


class CommentListResponse(BaseModel):
    comments: List[CommentResponse]
    total: int


class ReplyCreate(BaseModel):
    """Request body for an applicant's public reply."""

    content: str = Field(..., max_length=5000)
    parent_comment_id: Optional[int] = None


# ---------------------------------------------------------------------------
# Decisions & transitions
# ---------------------------------------------------------------------------


class ApproveRequest(BaseModel):
    approved_monthly_amount: float = Field(..., allow_inf_nan=False)
    sponsor_id: Optional[str] = None
    decision_message: Optional[str] = Field(None, max_length=2000)


class RejectRequest(BaseModel):
    rejection_reason: str = Field(..., max_length=2000)
    decision_message: Optional[str] = Field(None, max_length=2000)


class InformationRequest(BaseModel):
    request_details: str = Field(..., max_length=2000)


class TransitionResponse(BaseModel):
    application_id: int
    status: str
    no_op: bool = False


class DecisionOutcomeResponse(BaseModel):
    application_id: int
    outcome: str


class StatusHistoryResponse(BaseModel):
    id: int
    application_id: int
    old_status: Optional[str] = None
    new_status: str
    event: str
    changed_by: str
    reason: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------


class BoardMemberStatisticsResponse(BaseModel):
    voter_id: str
    pending_votes: int = 0
    total_votes_cast: int = 0
    approvals_given: int = 0
    rejections_given: int = 0
    average_confidence: float = 0.0
    participation_rate: float = 0.0

    class Config:
        from_attributes = True


class ApplicationStatisticsResponse(BaseModel):
    total_applications: int = 0
    by_status: Dict[str, int] = Field(default_factory=dict)
    approval_rate: float = 0.0
    average_days_to_decision: float = 0.0

    class Config:
        from_attributes = True
