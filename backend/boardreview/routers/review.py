"""Board review router.

Endpoints used by board members and administrators: the full review record,
votes, the discussion thread, decision actions, and the review queue.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from boardreview.deps import (
    _safe_error,
    get_current_actor,
    get_workflow,
    raise_for_result,
    require_reviewer,
)
from boardreview.models.application_models import (
    BoardApplicationResponse,
    BoardViewResponse,
    ReviewQueueResponse,
)
from boardreview.models.enums import ApplicationStatus
from boardreview.models.review_models import (
    ApplicationStatisticsResponse,
    ApproveRequest,
    BoardMemberStatisticsResponse,
    CommentCreate,
    CommentListResponse,
    CommentResponse,
    DecisionOutcomeResponse,
    InformationRequest,
    RejectRequest,
    StatusHistoryResponse,
    TransitionResponse,
    VoteCreate,
    VoteResponse,
    VotingSummaryResponse,
)
from boardreview.review_workflow import ReviewWorkflow
from boardreview.services.access_control import Actor
from boardreview.services.results import TransitionResult

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1", tags=["review"])


def _transition_response(application_id: int, result: TransitionResult):
    raise_for_result(result)
    return TransitionResponse(
        application_id=application_id,
        status=result.new_status.value,
        no_op=result.no_op,
    )


# ---------------------------------------------------------------------------
# Applications
# ---------------------------------------------------------------------------


@router.get("/applications", response_model=List[BoardApplicationResponse])
async def list_applications(
    status_filter: Optional[ApplicationStatus] = Query(
        None, alias="status", description="Filter by status"
    ),
    actor: Actor = Depends(require_reviewer),
    workflow: ReviewWorkflow = Depends(get_workflow),
):
    try:
        applications = await workflow.list_applications(status_filter)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("listing applications", e),
        ) from e
    return [BoardApplicationResponse.model_validate(a) for a in applications]


@router.get("/applications/{application_id}", response_model=BoardViewResponse)
async def get_application(
    application_id: int,
    actor: Actor = Depends(get_current_actor),
    workflow: ReviewWorkflow = Depends(get_workflow),
):
    """Full review record: all comments, votes, live tally and history."""
    try:
        result = await workflow.get_board_view(application_id, actor)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("fetching application", e),
        ) from e

    raise_for_result(result)
    view = result.value
    return BoardViewResponse(
        application=BoardApplicationResponse.model_validate(view.application),
        comments=[CommentResponse.model_validate(c) for c in view.comments],
        votes=[VoteResponse.model_validate(v) for v in view.votes],
        summary=VotingSummaryResponse.model_validate(view.summary),
        history=[StatusHistoryResponse.model_validate(h) for h in view.history],
    )


@router.delete(
    "/applications/{application_id}", status_code=status.HTTP_204_NO_CONTENT
)
async def delete_application(
    application_id: int,
    actor: Actor = Depends(get_current_actor),
    workflow: ReviewWorkflow = Depends(get_workflow),
):
    try:
        result = await workflow.delete_application(application_id, actor)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("deleting application", e),
        ) from e
    raise_for_result(result)


# ---------------------------------------------------------------------------
# Votes
# ---------------------------------------------------------------------------


@router.post(
    "/applications/{application_id}/votes",
    response_model=VoteResponse,
    status_code=status.HTTP_201_CREATED,
)
async def cast_vote(
    application_id: int,
    body: VoteCreate,
    actor: Actor = Depends(get_current_actor),
    workflow: ReviewWorkflow = Depends(get_workflow),
):
    """Cast the caller's single vote.  A second vote returns 409."""
    try:
        result = await workflow.cast_vote(
            application_id,
            actor,
            body.decision,
            body.reasoning,
            body.confidence_level,
        )
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("casting vote", e),
        ) from e

    raise_for_result(result)
    return VoteResponse.model_validate(result.value)


@router.get(
    "/applications/{application_id}/votes", response_model=List[VoteResponse]
)
async def list_votes(
    application_id: int,
    actor: Actor = Depends(require_reviewer),
    workflow: ReviewWorkflow = Depends(get_workflow),
):
    try:
        votes = await workflow.get_votes(application_id)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("listing votes", e),
        ) from e
    return [VoteResponse.model_validate(v) for v in votes]


@router.get(
    "/applications/{application_id}/summary", response_model=VotingSummaryResponse
)
async def get_voting_summary(
    application_id: int,
    actor: Actor = Depends(require_reviewer),
    workflow: ReviewWorkflow = Depends(get_workflow),
):
    try:
        summary = await workflow.get_voting_summary(application_id)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("computing voting summary", e),
        ) from e
    return VotingSummaryResponse.model_validate(summary)


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------


@router.post(
    "/applications/{application_id}/comments",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_comment(
    application_id: int,
    body: CommentCreate,
    actor: Actor = Depends(get_current_actor),
    workflow: ReviewWorkflow = Depends(get_workflow),
):
    try:
        result = await workflow.add_comment(
            application_id,
            actor,
            body.content,
            is_private=body.is_private,
            is_information_request=body.is_information_request,
            parent_comment_id=body.parent_comment_id,
        )
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("adding comment", e),
        ) from e

    raise_for_result(result)
    return CommentResponse.model_validate(result.value)


@router.get(
    "/applications/{application_id}/comments", response_model=CommentListResponse
)
async def list_comments(
    application_id: int,
    actor: Actor = Depends(require_reviewer),
    workflow: ReviewWorkflow = Depends(get_workflow),
):
    try:
        comments = await workflow.list_comments(application_id, include_private=True)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("listing comments", e),
        ) from e
    return CommentListResponse(
        comments=[CommentResponse.model_validate(c) for c in comments],
        total=len(comments),
    )


# ---------------------------------------------------------------------------
# Decision actions
# ---------------------------------------------------------------------------


@router.post(
    "/applications/{application_id}/start-review", response_model=TransitionResponse
)
async def start_review(
    application_id: int,
    actor: Actor = Depends(get_current_actor),
    workflow: ReviewWorkflow = Depends(get_workflow),
):
    try:
        result = await workflow.start_review_process(application_id, actor)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("starting review", e),
        ) from e
    return _transition_response(application_id, result)


@router.post(
    "/applications/{application_id}/request-info", response_model=TransitionResponse
)
async def request_information(
    application_id: int,
    body: InformationRequest,
    actor: Actor = Depends(get_current_actor),
    workflow: ReviewWorkflow = Depends(get_workflow),
):
    try:
        result = await workflow.request_additional_information(
            application_id, actor, body.request_details
        )
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("requesting information", e),
        ) from e
    return _transition_response(application_id, result)


@router.post(
    "/applications/{application_id}/resume-review", response_model=TransitionResponse
)
async def resume_review(
    application_id: int,
    actor: Actor = Depends(get_current_actor),
    workflow: ReviewWorkflow = Depends(get_workflow),
):
    try:
        result = await workflow.resume_review(application_id, actor)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("resuming review", e),
        ) from e
    return _transition_response(application_id, result)


@router.post(
    "/applications/{application_id}/approve", response_model=TransitionResponse
)
async def approve_application(
    application_id: int,
    body: ApproveRequest,
    actor: Actor = Depends(get_current_actor),
    workflow: ReviewWorkflow = Depends(get_workflow),
):
    try:
        result = await workflow.approve(
            application_id,
            actor,
            body.approved_monthly_amount,
            sponsor_id=body.sponsor_id,
            decision_message=body.decision_message,
        )
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("approving application", e),
        ) from e
    return _transition_response(application_id, result)


@router.post(
    "/applications/{application_id}/reject", response_model=TransitionResponse
)
async def reject_application(
    application_id: int,
    body: RejectRequest,
    actor: Actor = Depends(get_current_actor),
    workflow: ReviewWorkflow = Depends(get_workflow),
):
    try:
        result = await workflow.reject(
            application_id,
            actor,
            body.rejection_reason,
            decision_message=body.decision_message,
        )
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("rejecting application", e),
        ) from e
    return _transition_response(application_id, result)


@router.post(
    "/applications/{application_id}/decide", response_model=DecisionOutcomeResponse
)
async def decide_by_majority(
    application_id: int,
    actor: Actor = Depends(get_current_actor),
    workflow: ReviewWorkflow = Depends(get_workflow),
):
    """Apply the board's majority outcome once quorum is reached."""
    try:
        result = await workflow.process_application_decision(application_id, actor)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("processing decision", e),
        ) from e

    raise_for_result(result)
    return DecisionOutcomeResponse(application_id=application_id, outcome=result.value)


# ---------------------------------------------------------------------------
# Review queue & statistics
# ---------------------------------------------------------------------------


@router.get("/review/queue", response_model=ReviewQueueResponse)
async def get_review_queue(
    actor: Actor = Depends(require_reviewer),
    workflow: ReviewWorkflow = Depends(get_workflow),
):
    """Applications still awaiting the caller's vote."""
    try:
        applications = await workflow.get_applications_needing_review(actor.user_id)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("loading review queue", e),
        ) from e
    return ReviewQueueResponse(
        applications=[BoardApplicationResponse.model_validate(a) for a in applications],
        total=len(applications),
    )


@router.get("/review/statistics/me", response_model=BoardMemberStatisticsResponse)
async def get_my_statistics(
    actor: Actor = Depends(require_reviewer),
    workflow: ReviewWorkflow = Depends(get_workflow),
):
    try:
        stats = await workflow.get_board_member_statistics(actor.user_id)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("computing board member statistics", e),
        ) from e
    return BoardMemberStatisticsResponse.model_validate(stats)


@router.get("/review/statistics", response_model=ApplicationStatisticsResponse)
async def get_statistics(
    actor: Actor = Depends(require_reviewer),
    workflow: ReviewWorkflow = Depends(get_workflow),
):
    try:
        stats = await workflow.get_application_statistics()
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("computing application statistics", e),
        ) from e
    return ApplicationStatisticsResponse.model_validate(stats)


@router.get("/review/stale", response_model=List[BoardApplicationResponse])
async def get_stale_applications(
    days: Optional[int] = Query(None, ge=1, description="Days since submission"),
    actor: Actor = Depends(require_reviewer),
    workflow: ReviewWorkflow = Depends(get_workflow),
):
    try:
        applications = await workflow.get_stale_applications(days)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("listing stale applications", e),
        ) from e
    return [BoardApplicationResponse.model_validate(a) for a in applications]
