"""
Tests for the application discussion thread.

Usage:
    pytest backend/tests/test_comments.py -v
"""

from boardreview.services.results import ErrorKind

from factories import (
    ADMIN,
    APPLICANT,
    OTHER_APPLICANT,
    board,
    create_under_review,
)


class TestAddComment:
    async def test_private_board_comment(self, workflow, sink):
        application_id = await create_under_review(workflow)
        sink.events.clear()

        result = await workflow.add_comment(application_id, board(1), "Budget looks high")

        assert result.succeeded
        comment = result.value
        assert comment.is_private is True
        assert comment.author_id == "board-1"
        # Private notes do not notify anyone
        assert sink.events == []

    async def test_public_comment_notifies_board_except_author(self, workflow, sink):
        application_id = await create_under_review(workflow)
        sink.events.clear()

        await workflow.add_comment(
            application_id, board(2), "Welcome aboard", is_private=False
        )

        assert sink.types() == ["comment_added"]
        assert "board-2" not in sink.events[0].recipient_ids
        assert len(sink.events[0].recipient_ids) == 4

    async def test_information_request_comment_does_not_move_status(self, workflow):
        application_id = await create_under_review(workflow)

        result = await workflow.add_comment(
            application_id,
            ADMIN,
            "Can you share your training plan?",
            is_private=False,
            is_information_request=True,
        )

        assert result.succeeded
        view = await workflow.get_board_view(application_id, ADMIN)
        assert view.value.application.status == "under_review"

    async def test_content_limits(self, workflow):
        application_id = await create_under_review(workflow)

        empty = await workflow.add_comment(application_id, board(1), "   ")
        too_long = await workflow.add_comment(application_id, board(1), "x" * 5001)

        assert empty.error_kind == ErrorKind.VALIDATION
        assert too_long.error_kind == ErrorKind.VALIDATION

    async def test_unknown_application(self, workflow):
        result = await workflow.add_comment(777, board(1), "Hello")

        assert result.error_kind == ErrorKind.NOT_FOUND

    async def test_stranger_cannot_comment(self, workflow):
        application_id = await create_under_review(workflow)

        result = await workflow.add_comment(
            application_id, OTHER_APPLICANT, "Hi", is_private=False
        )

        assert result.error_kind == ErrorKind.UNAUTHORIZED


class TestThreading:
    async def test_reply_to_comment_on_same_application(self, workflow):
        application_id = await create_under_review(workflow)
        parent = await workflow.add_comment(application_id, board(1), "Thoughts?")

        reply = await workflow.add_comment(
            application_id, board(2), "Agree", parent_comment_id=parent.value.id
        )

        assert reply.succeeded
        assert reply.value.parent_comment_id == parent.value.id

    async def test_cross_application_threading_rejected(self, workflow):
        first = await create_under_review(workflow)
        second = await create_under_review(workflow)
        parent = await workflow.add_comment(first, board(1), "On the first one")

        result = await workflow.add_comment(
            second, board(1), "Misplaced reply", parent_comment_id=parent.value.id
        )

        assert result.error_kind == ErrorKind.NOT_FOUND
        assert await workflow.list_comments(second, include_private=True) == []

    async def test_comments_ordered_by_creation(self, workflow):
        application_id = await create_under_review(workflow)
        for n in range(1, 6):
            await workflow.add_comment(application_id, board(n), f"note {n}")

        comments = await workflow.list_comments(application_id, include_private=True)

        assert [c.content for c in comments] == [f"note {n}" for n in range(1, 6)]
        assert [c.id for c in comments] == sorted(c.id for c in comments)


class TestApplicantReplies:
    async def test_applicant_cannot_post_private_or_requests(self, workflow):
        application_id = await create_under_review(workflow)

        private = await workflow.add_comment(application_id, APPLICANT, "secret")
        request = await workflow.add_comment(
            application_id,
            APPLICANT,
            "question",
            is_private=False,
            is_information_request=True,
        )

        assert private.error_kind == ErrorKind.UNAUTHORIZED
        assert request.error_kind == ErrorKind.UNAUTHORIZED

    async def test_reply_answers_information_request(self, workflow):
        application_id = await create_under_review(workflow)
        await workflow.request_additional_information(application_id, ADMIN, "Plan?")

        result = await workflow.add_comment(
            application_id, APPLICANT, "Attached my plan", is_private=False
        )

        assert result.succeeded
        view = await workflow.get_applicant_view(application_id, APPLICANT)
        assert view.value.application.info_requested is False
        assert view.value.application.status == "in_discussion"


class TestVisibility:
    async def test_private_comments_never_in_applicant_view(self, workflow):
        application_id = await create_under_review(workflow)
        await workflow.add_comment(application_id, board(1), "Concerned about cost")
        await workflow.add_comment(
            application_id, board(2), "Thanks for applying", is_private=False
        )
        await workflow.add_comment(application_id, ADMIN, "Internal: check references")

        applicant_view = await workflow.get_applicant_view(application_id, APPLICANT)
        board_view = await workflow.get_board_view(application_id, board(3))

        assert [c.content for c in applicant_view.value.comments] == [
            "Thanks for applying"
        ]
        assert all(not c.is_private for c in applicant_view.value.comments)
        assert len(board_view.value.comments) == 3

    async def test_list_comments_filters_private_by_default(self, workflow):
        application_id = await create_under_review(workflow)
        await workflow.add_comment(application_id, board(1), "private")
        await workflow.add_comment(application_id, board(1), "public", is_private=False)

        public = await workflow.list_comments(application_id)

        assert [c.content for c in public] == ["public"]

    async def test_applicant_cannot_open_board_view(self, workflow):
        application_id = await create_under_review(workflow)

        result = await workflow.get_board_view(application_id, APPLICANT)

        assert result.error_kind == ErrorKind.UNAUTHORIZED

    async def test_other_applicant_cannot_open_applicant_view(self, workflow):
        application_id = await create_under_review(workflow)

        result = await workflow.get_applicant_view(application_id, OTHER_APPLICANT)

        assert result.error_kind == ErrorKind.UNAUTHORIZED
