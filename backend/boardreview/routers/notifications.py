"""Notification inbox router."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from boardreview.deps import _safe_error, get_current_actor, get_workflow
from boardreview.models.notification_models import (
    MarkReadResponse,
    NotificationListResponse,
    NotificationResponse,
)
from boardreview.review_workflow import ReviewWorkflow
from boardreview.services.access_control import Actor

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1", tags=["notifications"])


@router.get("/me/notifications", response_model=NotificationListResponse)
async def list_unread_notifications(
    actor: Actor = Depends(get_current_actor),
    workflow: ReviewWorkflow = Depends(get_workflow),
):
    try:
        notifications = await workflow.list_unread_notifications(actor.user_id)
        unread_count = await workflow.unread_notification_count(actor.user_id)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("listing notifications", e),
        ) from e
    return NotificationListResponse(
        notifications=[NotificationResponse.model_validate(n) for n in notifications],
        unread_count=unread_count,
    )


@router.post("/me/notifications/read-all", response_model=MarkReadResponse)
async def mark_all_read(
    actor: Actor = Depends(get_current_actor),
    workflow: ReviewWorkflow = Depends(get_workflow),
):
    try:
        updated = await workflow.mark_all_notifications_read(actor.user_id)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("marking notifications read", e),
        ) from e
    return MarkReadResponse(updated=updated)


@router.post(
    "/me/notifications/{notification_id}/read", response_model=MarkReadResponse
)
async def mark_read(
    notification_id: int,
    actor: Actor = Depends(get_current_actor),
    workflow: ReviewWorkflow = Depends(get_workflow),
):
    try:
        updated = await workflow.mark_notification_read(notification_id, actor.user_id)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("marking notification read", e),
        ) from e
    if not updated:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found"
        )
    return MarkReadResponse(updated=1)
