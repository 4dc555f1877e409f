"""Applicant portal router.

Endpoints for the signed-in applicant's own applications: drafting,
submission, withdrawal, and the public discussion thread.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from boardreview.deps import (
    _safe_error,
    get_current_actor,
    get_workflow,
    raise_for_result,
)
from boardreview.models.application_models import (
    ApplicantViewResponse,
    ApplicationListResponse,
    ApplicationResponse,
    DraftCreate,
    DraftUpdate,
    WithdrawRequest,
)
from boardreview.models.review_models import (
    CommentResponse,
    ReplyCreate,
    TransitionResponse,
)
from boardreview.review_workflow import ReviewWorkflow
from boardreview.services.access_control import Actor

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1", tags=["applications"])


# ---------------------------------------------------------------------------
# GET  /me/applications
# ---------------------------------------------------------------------------


@router.get("/me/applications", response_model=ApplicationListResponse)
async def list_my_applications(
    actor: Actor = Depends(get_current_actor),
    workflow: ReviewWorkflow = Depends(get_workflow),
):
    """List the caller's applications, newest first."""
    try:
        applications = await workflow.list_applications_for_applicant(actor)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("listing applications", e),
        ) from e

    return ApplicationListResponse(
        applications=[ApplicationResponse.model_validate(a) for a in applications],
        total=len(applications),
    )


# ---------------------------------------------------------------------------
# POST /me/applications
# ---------------------------------------------------------------------------


@router.post(
    "/me/applications",
    response_model=ApplicationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_application(
    body: DraftCreate,
    actor: Actor = Depends(get_current_actor),
    workflow: ReviewWorkflow = Depends(get_workflow),
):
    """Start a new draft application owned by the caller."""
    try:
        result = await workflow.create_draft(actor, body.model_dump(exclude_unset=True))
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("creating application", e),
        ) from e

    raise_for_result(result)
    return ApplicationResponse.model_validate(result.value)


# ---------------------------------------------------------------------------
# GET  /me/applications/{application_id}
# ---------------------------------------------------------------------------


@router.get("/me/applications/{application_id}", response_model=ApplicantViewResponse)
async def get_my_application(
    application_id: int,
    actor: Actor = Depends(get_current_actor),
    workflow: ReviewWorkflow = Depends(get_workflow),
):
    """The caller's application with its public comments.  Private board
    comments and votes are never part of this view."""
    try:
        result = await workflow.get_applicant_view(application_id, actor)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("fetching application", e),
        ) from e

    raise_for_result(result)
    view = result.value
    return ApplicantViewResponse(
        application=ApplicationResponse.model_validate(view.application),
        comments=[CommentResponse.model_validate(c) for c in view.comments],
    )


# ---------------------------------------------------------------------------
# PATCH /me/applications/{application_id}
# ---------------------------------------------------------------------------


@router.patch("/me/applications/{application_id}", response_model=ApplicationResponse)
async def save_draft(
    application_id: int,
    body: DraftUpdate,
    actor: Actor = Depends(get_current_actor),
    workflow: ReviewWorkflow = Depends(get_workflow),
):
    """Save part of a draft.  Only the fields present in the body change."""
    fields = body.model_dump(exclude_unset=True)
    current_step = fields.pop("current_step", None)
    try:
        result = await workflow.save_draft(application_id, actor, fields, current_step)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("saving draft", e),
        ) from e

    raise_for_result(result)
    return ApplicationResponse.model_validate(result.value)


# ---------------------------------------------------------------------------
# POST /me/applications/{application_id}/submit | /withdraw
# ---------------------------------------------------------------------------


@router.post(
    "/me/applications/{application_id}/submit", response_model=TransitionResponse
)
async def submit_application(
    application_id: int,
    actor: Actor = Depends(get_current_actor),
    workflow: ReviewWorkflow = Depends(get_workflow),
):
    try:
        result = await workflow.submit(application_id, actor)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("submitting application", e),
        ) from e

    raise_for_result(result)
    return TransitionResponse(
        application_id=application_id,
        status=result.new_status.value,
        no_op=result.no_op,
    )


@router.post(
    "/me/applications/{application_id}/withdraw", response_model=TransitionResponse
)
async def withdraw_application(
    application_id: int,
    body: WithdrawRequest,
    actor: Actor = Depends(get_current_actor),
    workflow: ReviewWorkflow = Depends(get_workflow),
):
    try:
        result = await workflow.withdraw(application_id, actor, body.reason)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("withdrawing application", e),
        ) from e

    raise_for_result(result)
    return TransitionResponse(
        application_id=application_id,
        status=result.new_status.value,
        no_op=result.no_op,
    )


# ---------------------------------------------------------------------------
# POST /me/applications/{application_id}/comments
# ---------------------------------------------------------------------------


@router.post(
    "/me/applications/{application_id}/comments",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def reply_to_board(
    application_id: int,
    body: ReplyCreate,
    actor: Actor = Depends(get_current_actor),
    workflow: ReviewWorkflow = Depends(get_workflow),
):
    """Post a public reply, e.g. answering an information request."""
    try:
        result = await workflow.add_comment(
            application_id,
            actor,
            body.content,
            is_private=False,
            is_information_request=False,
            parent_comment_id=body.parent_comment_id,
        )
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("posting reply", e),
        ) from e

    raise_for_result(result)
    return CommentResponse.model_validate(result.value)
