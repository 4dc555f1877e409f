"""
Tests for the application state machine.

Covers legal and illegal transitions, idempotent repeats, guards on the
acting user, required-field validation, the status history trail and
decisions racing each other on the same application.

Usage:
    pytest backend/tests/test_workflow_transitions.py -v
"""

import asyncio
from decimal import Decimal

import pytest
from sqlalchemy import select

from boardreview.models.db.history import ApplicationStatusHistory
from boardreview.models.enums import ApplicationStatus, WorkflowEvent
from boardreview.services.access_control import Actor
from boardreview.services.results import ErrorKind
from boardreview.services.workflow import ApplicationStateMachine, TransitionPayload

from factories import (
    ADMIN,
    APPLICANT,
    OTHER_APPLICANT,
    board,
    create_draft,
    create_submitted,
    create_under_review,
)


async def _status(workflow, application_id):
    view = await workflow.get_applicant_view(application_id, APPLICANT)
    return view.value.application


# ============================================================================
# SUBMIT
# ============================================================================


class TestSubmit:
    async def test_submit_complete_draft(self, workflow, sink):
        application_id = await create_draft(workflow)

        result = await workflow.submit(application_id, APPLICANT)

        assert result.succeeded
        assert result.new_status == ApplicationStatus.SUBMITTED
        application = await _status(workflow, application_id)
        assert application.status == "submitted"
        assert application.submitted_at is not None
        assert sink.types() == ["application_submitted"]

    async def test_second_submit_is_invalid_transition(self, workflow):
        application_id = await create_submitted(workflow)

        result = await workflow.submit(application_id, APPLICANT)

        assert not result.succeeded
        assert result.error_kind == ErrorKind.INVALID_TRANSITION
        assert "submitted" in result.errors[0]
        assert result.new_status == ApplicationStatus.SUBMITTED

    async def test_missing_fields_are_listed(self, workflow):
        application_id = await create_draft(
            workflow, personal_statement="", estimated_monthly_cost=0, funding_types=[]
        )

        result = await workflow.submit(application_id, APPLICANT)

        assert result.error_kind == ErrorKind.VALIDATION
        assert "Personal statement is required" in result.errors
        assert "At least one funding type is required" in result.errors
        assert "Estimated monthly cost must be greater than zero" in result.errors
        application = await _status(workflow, application_id)
        assert application.status == "draft"

    async def test_only_owner_can_submit(self, workflow):
        application_id = await create_draft(workflow)

        result = await workflow.submit(application_id, OTHER_APPLICANT)

        assert result.error_kind == ErrorKind.UNAUTHORIZED

    async def test_unknown_application(self, workflow):
        result = await workflow.submit(9999, APPLICANT)

        assert result.error_kind == ErrorKind.NOT_FOUND


# ============================================================================
# START REVIEW / REQUEST INFO / RESUME
# ============================================================================


class TestReviewTransitions:
    async def test_start_review_fans_out_to_current_board(self, workflow, sink, roster):
        application_id = await create_submitted(workflow)
        roster.voters.discard("board-5")
        sink.events.clear()

        result = await workflow.start_review_process(application_id, ADMIN)

        assert result.succeeded
        assert result.new_status == ApplicationStatus.UNDER_REVIEW
        new_app = [e for e in sink.events if e.notification_type.value == "new_application"]
        assert len(new_app) == 1
        assert set(new_app[0].recipient_ids) == {"board-1", "board-2", "board-3", "board-4"}
        assert "review_started" in sink.types()

    async def test_start_review_twice_is_noop_success(self, workflow, sink):
        application_id = await create_under_review(workflow)
        sink.events.clear()

        result = await workflow.start_review_process(application_id, ADMIN)

        assert result.succeeded
        assert result.no_op
        assert result.new_status == ApplicationStatus.UNDER_REVIEW
        assert sink.events == []

    async def test_start_review_requires_finalize_capability(self, workflow):
        application_id = await create_submitted(workflow)

        result = await workflow.start_review_process(application_id, board(1))

        assert result.error_kind == ErrorKind.UNAUTHORIZED

    async def test_start_review_from_draft_is_invalid(self, workflow):
        application_id = await create_draft(workflow)

        result = await workflow.start_review_process(application_id, ADMIN)

        assert result.error_kind == ErrorKind.INVALID_TRANSITION
        assert "draft" in result.errors[0]

    async def test_request_info_moves_to_discussion(self, workflow, sink):
        application_id = await create_under_review(workflow)
        sink.events.clear()

        result = await workflow.request_additional_information(
            application_id, ADMIN, "Please send a doctor's note."
        )

        assert result.succeeded
        assert result.new_status == ApplicationStatus.IN_DISCUSSION
        application = await _status(workflow, application_id)
        assert application.info_requested is True
        assert application.info_request_details == "Please send a doctor's note."
        assert sink.types() == ["information_requested"]
        assert sink.events[0].recipient_ids == ("applicant-1",)

    async def test_request_info_requires_details(self, workflow):
        application_id = await create_under_review(workflow)

        result = await workflow.request_additional_information(application_id, ADMIN, "  ")

        assert result.error_kind == ErrorKind.VALIDATION

    async def test_repeated_request_info_is_noop(self, workflow, sink):
        application_id = await create_under_review(workflow)
        await workflow.request_additional_information(application_id, ADMIN, "Details")
        sink.events.clear()

        result = await workflow.request_additional_information(application_id, ADMIN, "Details")

        assert result.succeeded
        assert result.no_op
        assert sink.events == []

    async def test_resume_review_clears_info_flag(self, workflow):
        application_id = await create_under_review(workflow)
        await workflow.request_additional_information(application_id, ADMIN, "Details")

        result = await workflow.resume_review(application_id, ADMIN)

        assert result.new_status == ApplicationStatus.UNDER_REVIEW
        application = await _status(workflow, application_id)
        assert application.info_requested is False

        again = await workflow.resume_review(application_id, ADMIN)
        assert again.succeeded and again.no_op


# ============================================================================
# APPROVE / REJECT
# ============================================================================


class TestDecisions:
    async def test_approve_stamps_decision_fields(self, workflow, sink):
        application_id = await create_under_review(workflow)
        sink.events.clear()

        result = await workflow.approve(application_id, ADMIN, 125, sponsor_id="sponsor-9")

        assert result.succeeded
        application = await _status(workflow, application_id)
        assert application.status == "approved"
        assert application.approved_monthly_amount == Decimal("125.00")
        assert application.assigned_sponsor_id == "sponsor-9"
        assert application.decision_message == "Your application has been approved!"
        assert application.decided_at is not None
        assert application.rejection_reason is None
        assert sink.types() == ["application_approved", "sponsor_assigned"]
        assert sink.events[1].recipient_ids == ("sponsor-9",)

    async def test_approve_requires_positive_amount(self, workflow):
        application_id = await create_under_review(workflow)

        result = await workflow.approve(application_id, ADMIN, 0)

        assert result.error_kind == ErrorKind.VALIDATION
        application = await _status(workflow, application_id)
        assert application.status == "under_review"
        assert application.approved_monthly_amount is None

    @pytest.mark.parametrize(
        "amount", ["NaN", "Infinity", Decimal("-Infinity"), Decimal("100000000")]
    )
    async def test_approve_rejects_unstorable_amount(self, workflow, amount):
        application_id = await create_under_review(workflow)

        result = await workflow.approve(application_id, ADMIN, amount)

        assert result.error_kind == ErrorKind.VALIDATION
        application = await _status(workflow, application_id)
        assert application.status == "under_review"
        assert application.approved_monthly_amount is None

    async def test_reject_requires_reason(self, workflow):
        application_id = await create_under_review(workflow)

        result = await workflow.reject(application_id, ADMIN, "")

        assert result.error_kind == ErrorKind.VALIDATION

    async def test_approve_after_reject_is_invalid(self, workflow):
        application_id = await create_under_review(workflow)
        await workflow.reject(application_id, ADMIN, "Budget exhausted")

        result = await workflow.approve(application_id, ADMIN, 100)

        assert result.error_kind == ErrorKind.INVALID_TRANSITION
        assert "rejected" in result.errors[0]
        application = await _status(workflow, application_id)
        assert application.status == "rejected"
        assert application.rejection_reason == "Budget exhausted"
        assert application.approved_monthly_amount is None

    async def test_approving_twice_fails_second_time(self, workflow):
        application_id = await create_under_review(workflow)
        assert (await workflow.approve(application_id, ADMIN, 100)).succeeded

        result = await workflow.approve(application_id, ADMIN, 100)

        assert result.error_kind == ErrorKind.INVALID_TRANSITION

    async def test_board_member_cannot_decide(self, workflow):
        application_id = await create_under_review(workflow)

        result = await workflow.reject(application_id, board(1), "No")

        assert result.error_kind == ErrorKind.UNAUTHORIZED

    async def test_decision_can_require_quorum(self, workflow, settings):
        settings.require_quorum_for_decision = True
        application_id = await create_under_review(workflow)

        result = await workflow.approve(application_id, ADMIN, 100)

        assert result.error_kind == ErrorKind.VALIDATION
        assert "Quorum not reached" in result.errors[0]

        for n in (1, 2, 3):
            await workflow.cast_vote(application_id, board(n), "approve", "Fits the program")
        assert (await workflow.approve(application_id, ADMIN, 100)).succeeded


# ============================================================================
# WITHDRAW
# ============================================================================


class TestWithdraw:
    @pytest.mark.parametrize("stage", ["draft", "submitted", "under_review", "in_discussion"])
    async def test_withdraw_legal_from_non_terminal(self, workflow, stage):
        if stage == "draft":
            application_id = await create_draft(workflow)
        elif stage == "submitted":
            application_id = await create_submitted(workflow)
        else:
            application_id = await create_under_review(workflow)
            if stage == "in_discussion":
                await workflow.request_additional_information(application_id, ADMIN, "More")

        result = await workflow.withdraw(application_id, APPLICANT, "Moving away")

        assert result.succeeded
        application = await _status(workflow, application_id)
        assert application.status == "withdrawn"
        assert application.withdrawal_reason == "Moving away"
        assert application.decided_at is None
        assert application.decision_message is None

    @pytest.mark.parametrize("decision", ["approve", "reject"])
    async def test_withdraw_illegal_after_decision(self, workflow, decision):
        application_id = await create_under_review(workflow)
        if decision == "approve":
            await workflow.approve(application_id, ADMIN, 100)
        else:
            await workflow.reject(application_id, ADMIN, "Not eligible")

        result = await workflow.withdraw(application_id, APPLICANT)

        assert result.error_kind == ErrorKind.INVALID_TRANSITION

    async def test_withdraw_twice_is_noop(self, workflow):
        application_id = await create_submitted(workflow)
        await workflow.withdraw(application_id, APPLICANT)

        result = await workflow.withdraw(application_id, APPLICANT)

        assert result.succeeded and result.no_op

    async def test_only_owner_can_withdraw(self, workflow):
        application_id = await create_under_review(workflow)

        result = await workflow.withdraw(application_id, ADMIN)

        assert result.error_kind == ErrorKind.UNAUTHORIZED

    async def test_votes_rejected_after_withdraw(self, workflow):
        application_id = await create_under_review(workflow)
        await workflow.withdraw(application_id, APPLICANT)

        result = await workflow.cast_vote(application_id, board(1), "approve", "Good fit")

        assert result.error_kind == ErrorKind.INVALID_TRANSITION
        assert "withdrawn" in result.errors[0]


# ============================================================================
# HISTORY & GENERIC TRANSITION ENTRY POINT
# ============================================================================


class TestHistory:
    async def test_each_committed_transition_is_recorded(self, workflow, session_factory):
        application_id = await create_under_review(workflow)
        await workflow.request_additional_information(application_id, ADMIN, "Need info")
        await workflow.start_review_process(application_id, ADMIN)  # rejected, not recorded
        await workflow.reject(application_id, ADMIN, "Incomplete")

        async with session_factory() as db:
            rows = (
                await db.execute(
                    select(ApplicationStatusHistory)
                    .where(ApplicationStatusHistory.application_id == application_id)
                    .order_by(ApplicationStatusHistory.id)
                )
            ).scalars().all()

        assert [(r.old_status, r.new_status, r.event) for r in rows] == [
            ("draft", "submitted", "submit"),
            ("submitted", "under_review", "start_review"),
            ("under_review", "in_discussion", "request_info"),
            ("in_discussion", "rejected", "reject"),
        ]
        assert rows[-1].reason == "Incomplete"
        assert rows[-1].changed_by == "admin-1"

    async def test_generic_transition_matches_decision_wrappers(self, workflow):
        application_id = await create_under_review(workflow)

        result = await workflow.transition(
            application_id,
            WorkflowEvent.REJECT,
            ADMIN,
            TransitionPayload(rejection_reason="Out of area"),
        )

        assert result.succeeded
        assert result.new_status == ApplicationStatus.REJECTED


# ============================================================================
# CONCURRENT DECISIONS
# ============================================================================

SECOND_ADMIN = Actor("admin-2", can_finalize_decisions=True)


class TestConcurrentDecisions:
    async def test_simultaneous_approve_and_reject(self, workflow, sink):
        application_id = await create_under_review(workflow)
        sink.events.clear()

        results = await asyncio.gather(
            workflow.approve(application_id, ADMIN, Decimal("100")),
            workflow.reject(application_id, SECOND_ADMIN, "No"),
        )

        assert sorted(r.succeeded for r in results) == [False, True]
        loser = next(r for r in results if not r.succeeded)
        assert loser.error_kind == ErrorKind.INVALID_TRANSITION
        application = await _status(workflow, application_id)
        if application.status == "approved":
            assert application.approved_monthly_amount == Decimal("100.00")
            assert application.rejection_reason is None
            assert sink.types() == ["application_approved"]
        else:
            assert application.status == "rejected"
            assert application.approved_monthly_amount is None
            assert application.rejection_reason == "No"
            assert sink.types() == ["application_rejected"]

    async def test_decision_committed_after_read_is_respected(
        self, workflow, monkeypatch
    ):
        application_id = await create_under_review(workflow)
        original_validate = ApplicationStateMachine._validate
        interleaved = []

        async def approve_first(db, roster, settings, application, event, payload):
            # Commit an approval between the reject's read and its write
            if event == WorkflowEvent.REJECT and not interleaved:
                interleaved.append(
                    await workflow.approve(application_id, SECOND_ADMIN, 250)
                )
            return await original_validate(
                db, roster, settings, application, event, payload
            )

        monkeypatch.setattr(
            ApplicationStateMachine, "_validate", staticmethod(approve_first)
        )
        result = await workflow.reject(application_id, ADMIN, "Too late")

        assert interleaved[0].succeeded
        assert result.error_kind == ErrorKind.INVALID_TRANSITION
        assert "approved" in result.errors[0]
        application = await _status(workflow, application_id)
        assert application.status == "approved"
        assert application.approved_monthly_amount == Decimal("250.00")
        assert application.rejection_reason is None
        assert application.decided_by_id == "admin-2"
