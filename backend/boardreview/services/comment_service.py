"""Business logic for the application discussion thread."""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from boardreview.models.db.review import ApplicationComment
from boardreview.services import notifications
from boardreview.services.access_control import Actor, can_comment
from boardreview.services.results import ErrorKind, OperationResult
from boardreview.services.roster import RosterProvider
from boardreview.services.store import load_application

logger = logging.getLogger(__name__)

MAX_COMMENT_LENGTH = 5000


class CommentService:
    """Service layer for append-only application comments."""

    @staticmethod
    async def add_comment(
        db: AsyncSession,
        roster: RosterProvider,
        application_id: int,
        actor: Actor,
        content: Optional[str],
        is_private: bool = True,
        is_information_request: bool = False,
        parent_comment_id: Optional[int] = None,
    ) -> OperationResult:
        """Append a comment to an application's thread.

        Board members and decision makers may post private or public
        comments and information requests.  The applicant may only reply
        publicly; a reply while an information request is outstanding marks
        the request as answered.

        Flagging a comment as an information request does not change the
        application's status.  Callers fire the ``request_info`` transition
        separately.

        Args:
            db: Async database session.
            roster: Roster provider used for the board fan-out.
            application_id: ID of the application.
            actor: The commenting user.
            content: Comment body (1..5000 characters).
            is_private: Board-only when True.
            is_information_request: Marks the comment as a request to the
                applicant.
            parent_comment_id: Optional comment being replied to.

        Returns:
            OperationResult whose ``value`` is the new ApplicationComment.
        """
        application = await load_application(db, application_id, for_update=True)
        if application is None:
            return OperationResult.fail(
                ErrorKind.NOT_FOUND, f"Application {application_id} not found"
            )

        if not can_comment(application, actor):
            return OperationResult.fail(
                ErrorKind.UNAUTHORIZED,
                "You do not have permission to comment on this application",
            )

        applicant_reply = not actor.is_reviewer
        if applicant_reply and (is_private or is_information_request):
            return OperationResult.fail(
                ErrorKind.UNAUTHORIZED,
                "Applicants can only post public replies",
            )

        text = (content or "").strip()
        if not text:
            return OperationResult.fail(
                ErrorKind.VALIDATION, "Comment content is required"
            )
        if len(text) > MAX_COMMENT_LENGTH:
            return OperationResult.fail(
                ErrorKind.VALIDATION,
                f"Comment must be at most {MAX_COMMENT_LENGTH} characters",
            )

        if parent_comment_id is not None:
            parent = await db.execute(
                select(ApplicationComment.id).where(
                    ApplicationComment.id == parent_comment_id,
                    ApplicationComment.application_id == application_id,
                )
            )
            if parent.first() is None:
                return OperationResult.fail(
                    ErrorKind.NOT_FOUND,
                    f"Comment {parent_comment_id} not found on application "
                    f"{application_id}",
                )

        comment = ApplicationComment(
            application_id=application_id,
            author_id=actor.user_id,
            content=text,
            is_private=is_private,
            is_information_request=is_information_request,
            parent_comment_id=parent_comment_id,
        )
        db.add(comment)

        if applicant_reply and application.info_requested:
            application.info_requested = False
            logger.info(
                "Applicant responded to information request on %s", application_id
            )

        await db.flush()
        logger.info(
            "Comment %s added to application %s by %s (private=%s)",
            comment.id,
            application_id,
            actor.user_id,
            is_private,
        )

        events = []
        if not is_private or is_information_request:
            board = await roster.eligible_voters(db)
            events.append(
                notifications.comment_added(application_id, board, actor.user_id)
            )
        return OperationResult.ok(value=comment, events=events)

    @staticmethod
    async def list_comments(
        db: AsyncSession, application_id: int, include_private: bool = False
    ) -> list[ApplicationComment]:
        """Comments in creation order.  Private comments are filtered in the
        query itself unless ``include_private`` is set."""
        query = select(ApplicationComment).where(
            ApplicationComment.application_id == application_id
        )
        if not include_private:
            query = query.where(ApplicationComment.is_private.is_(False))
        query = query.order_by(ApplicationComment.created_at, ApplicationComment.id)
        result = await db.execute(query)
        return list(result.scalars().all())
