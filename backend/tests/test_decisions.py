"""
Tests for majority-rule decisions and the decision-field invariant.

Usage:
    pytest backend/tests/test_decisions.py -v
"""

from decimal import Decimal

from boardreview.models.enums import DECIDED_STATUSES, ApplicationStatus
from boardreview.services.results import ErrorKind

from factories import ADMIN, APPLICANT, board, create_draft, create_submitted, create_under_review


async def _cast(workflow, application_id, decisions):
    for n, decision in enumerate(decisions, start=1):
        result = await workflow.cast_vote(application_id, board(n), decision, "Reviewed")
        assert result.succeeded, result.errors


class TestProcessApplicationDecision:
    async def test_requires_quorum(self, workflow):
        application_id = await create_under_review(workflow)
        await _cast(workflow, application_id, ["approve", "approve"])

        result = await workflow.process_application_decision(application_id, ADMIN)

        assert result.error_kind == ErrorKind.VALIDATION
        assert "2 of 3" in result.errors[0]

    async def test_unanimous_approval_uses_estimated_cost(self, workflow, sink):
        application_id = await create_under_review(workflow, estimated_monthly_cost=180)
        await _cast(workflow, application_id, ["approve", "approve", "approve"])
        sink.events.clear()

        result = await workflow.process_application_decision(application_id, ADMIN)

        assert result.succeeded
        assert result.value == "approved"
        view = await workflow.get_applicant_view(application_id, APPLICANT)
        assert view.value.application.approved_monthly_amount == Decimal("180")
        assert view.value.application.decided_by_id == "admin-1"
        assert sink.types() == ["application_approved"]

    async def test_any_rejection_rejects(self, workflow):
        application_id = await create_under_review(workflow)
        await _cast(workflow, application_id, ["approve", "approve", "reject"])

        result = await workflow.process_application_decision(application_id, ADMIN)

        assert result.value == "rejected"
        view = await workflow.get_applicant_view(application_id, APPLICANT)
        assert view.value.application.status == "rejected"
        assert "1 of 3" in view.value.application.rejection_reason

    async def test_needs_info_requests_information(self, workflow):
        application_id = await create_under_review(workflow)
        await _cast(workflow, application_id, ["approve", "approve", "needs_more_info"])

        result = await workflow.process_application_decision(application_id, ADMIN)

        assert result.value == "information_requested"
        view = await workflow.get_applicant_view(application_id, APPLICANT)
        assert view.value.application.status == "in_discussion"
        assert view.value.application.info_requested is True

    async def test_only_decision_makers(self, workflow):
        application_id = await create_under_review(workflow)
        await _cast(workflow, application_id, ["approve", "approve", "approve"])

        result = await workflow.process_application_decision(application_id, board(1))

        assert result.error_kind == ErrorKind.UNAUTHORIZED


class TestDecisionFieldInvariant:
    async def test_decision_fields_only_on_decided_applications(self, workflow):
        approved = await create_under_review(workflow)
        await workflow.approve(approved, ADMIN, 90, decision_message="Welcome!")
        rejected = await create_under_review(workflow)
        await workflow.reject(rejected, ADMIN, "Outside program scope")
        await create_draft(workflow)
        await create_submitted(workflow)
        withdrawn = await create_under_review(workflow)
        await workflow.withdraw(withdrawn, APPLICANT, "Found other funding")
        discussing = await create_under_review(workflow)
        await workflow.request_additional_information(discussing, ADMIN, "More info")
        failed = await create_under_review(workflow)
        await workflow.approve(failed, ADMIN, -5)

        for application in await workflow.list_applications():
            status = ApplicationStatus(application.status)
            assert (application.approved_monthly_amount is not None) == (
                status == ApplicationStatus.APPROVED
            )
            assert (application.rejection_reason is not None) == (
                status == ApplicationStatus.REJECTED
            )
            assert (application.decided_at is not None) == (status in DECIDED_STATUSES)
            assert (application.decision_message is not None) == (
                status in DECIDED_STATUSES
            )
