"""
Integration tests for the HTTP routers.

Drives the FastAPI app through httpx's ASGI transport against the test
database, with identities resolved from seeded ``users`` rows.

Usage:
    pytest backend/tests/test_api.py -v
"""

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from pydantic import ValidationError

from boardreview.database import get_db
from boardreview.deps import get_workflow
from boardreview.main import app
from boardreview.models.application_models import DraftCreate
from boardreview.models.enums import UserRole
from boardreview.models.review_models import ApproveRequest
from boardreview.review_workflow import ReviewWorkflow
from boardreview.services.notifications import (
    InAppNotificationSink,
    NotificationDispatcher,
)
from boardreview.services.roster import DatabaseRosterProvider

from factories import complete_fields, make_user

APPLICANT_HEADERS = {"X-User-Id": "applicant-1"}
ADMIN_HEADERS = {"X-User-Id": "admin-1"}


def board_headers(n: int) -> dict:
    return {"X-User-Id": f"board-{n}"}


@pytest_asyncio.fixture
async def client(session_factory, settings):
    tenure = datetime.now(timezone.utc) - timedelta(days=365)
    async with session_factory() as db:
        async with db.begin():
            db.add(make_user("applicant-1", UserRole.CLIENT))
            db.add(make_user("applicant-2", UserRole.CLIENT))
            db.add(make_user("admin-1", UserRole.ADMIN))
            for n in range(1, 6):
                db.add(make_user(f"board-{n}", UserRole.BOARD_MEMBER, board_member_since=tenure))
            db.add(make_user("board-6", UserRole.BOARD_MEMBER, is_active=False))

    workflow = ReviewWorkflow(
        session_factory,
        DatabaseRosterProvider(),
        settings,
        NotificationDispatcher([InAppNotificationSink(session_factory)]),
    )

    async def _get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_workflow] = lambda: workflow
    app.dependency_overrides[get_db] = _get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def _under_review(client) -> int:
    created = await client.post(
        "/api/v1/me/applications", json=complete_fields(), headers=APPLICANT_HEADERS
    )
    assert created.status_code == 201, created.text
    application_id = created.json()["id"]
    submitted = await client.post(
        f"/api/v1/me/applications/{application_id}/submit", headers=APPLICANT_HEADERS
    )
    assert submitted.status_code == 200, submitted.text
    started = await client.post(
        f"/api/v1/applications/{application_id}/start-review", headers=ADMIN_HEADERS
    )
    assert started.status_code == 200, started.text
    return application_id


class TestIdentity:
    async def test_missing_header(self, client):
        response = await client.get("/api/v1/me/applications")

        assert response.status_code == 422

    async def test_unknown_user(self, client):
        response = await client.get(
            "/api/v1/me/applications", headers={"X-User-Id": "nobody"}
        )

        assert response.status_code == 401

    async def test_inactive_board_member_cannot_vote(self, client):
        application_id = await _under_review(client)

        response = await client.post(
            f"/api/v1/applications/{application_id}/votes",
            json={"decision": "approve", "reasoning": "Still here"},
            headers=board_headers(6),
        )

        assert response.status_code == 403


class TestApplicantEndpoints:
    async def test_draft_lifecycle(self, client):
        created = await client.post(
            "/api/v1/me/applications",
            json={"first_name": "Ana"},
            headers=APPLICANT_HEADERS,
        )
        application_id = created.json()["id"]

        saved = await client.patch(
            f"/api/v1/me/applications/{application_id}",
            json={"last_name": "Diaz", "current_step": 2},
            headers=APPLICANT_HEADERS,
        )
        assert saved.status_code == 200
        assert saved.json()["last_name"] == "Diaz"
        assert saved.json()["current_step"] == 2

        submit = await client.post(
            f"/api/v1/me/applications/{application_id}/submit", headers=APPLICANT_HEADERS
        )
        assert submit.status_code == 422
        assert submit.json()["detail"]["error"] == "validation"

        listing = await client.get("/api/v1/me/applications", headers=APPLICANT_HEADERS)
        assert listing.json()["total"] == 1

    async def test_double_submit_conflict(self, client):
        created = await client.post(
            "/api/v1/me/applications", json=complete_fields(), headers=APPLICANT_HEADERS
        )
        application_id = created.json()["id"]
        url = f"/api/v1/me/applications/{application_id}/submit"

        first = await client.post(url, headers=APPLICANT_HEADERS)
        second = await client.post(url, headers=APPLICANT_HEADERS)

        assert first.json()["status"] == "submitted"
        assert second.status_code == 409
        assert second.json()["detail"]["error"] == "invalid_transition"

    async def test_applicant_view_hides_private_comments(self, client):
        application_id = await _under_review(client)
        await client.post(
            f"/api/v1/applications/{application_id}/comments",
            json={"content": "private board note"},
            headers=board_headers(1),
        )
        await client.post(
            f"/api/v1/applications/{application_id}/comments",
            json={"content": "Thanks for applying", "is_private": False},
            headers=board_headers(1),
        )
        reply = await client.post(
            f"/api/v1/me/applications/{application_id}/comments",
            json={"content": "Thank you!"},
            headers=APPLICANT_HEADERS,
        )
        assert reply.status_code == 201

        view = await client.get(
            f"/api/v1/me/applications/{application_id}", headers=APPLICANT_HEADERS
        )

        contents = [c["content"] for c in view.json()["comments"]]
        assert contents == ["Thanks for applying", "Thank you!"]
        assert "votes" not in view.json()

    async def test_other_applicant_forbidden(self, client):
        application_id = await _under_review(client)

        response = await client.get(
            f"/api/v1/me/applications/{application_id}",
            headers={"X-User-Id": "applicant-2"},
        )

        assert response.status_code == 403

    async def test_withdraw(self, client):
        application_id = await _under_review(client)

        response = await client.post(
            f"/api/v1/me/applications/{application_id}/withdraw",
            json={"reason": "Moved"},
            headers=APPLICANT_HEADERS,
        )

        assert response.json() == {
            "application_id": application_id,
            "status": "withdrawn",
            "no_op": False,
        }


class TestBoardEndpoints:
    async def test_voting_and_summary(self, client):
        application_id = await _under_review(client)
        url = f"/api/v1/applications/{application_id}/votes"

        for n in (1, 2, 3):
            response = await client.post(
                url,
                json={"decision": "approve", "reasoning": "Good fit", "confidence_level": 4},
                headers=board_headers(n),
            )
            assert response.status_code == 201

        duplicate = await client.post(
            url,
            json={"decision": "reject", "reasoning": "Again"},
            headers=board_headers(1),
        )
        summary = await client.get(
            f"/api/v1/applications/{application_id}/summary", headers=board_headers(4)
        )

        assert duplicate.status_code == 409
        assert duplicate.json()["detail"]["error"] == "duplicate_vote"
        body = summary.json()
        assert body["total_votes"] == 3
        assert body["votes_required"] == 3
        assert body["quorum_reached"] is True
        assert body["pending_voters"] == ["board-4", "board-5"]

    async def test_board_view_and_decision(self, client):
        application_id = await _under_review(client)
        for n in (1, 2, 3):
            await client.post(
                f"/api/v1/applications/{application_id}/votes",
                json={"decision": "approve", "reasoning": "Good fit"},
                headers=board_headers(n),
            )

        decided = await client.post(
            f"/api/v1/applications/{application_id}/decide", headers=ADMIN_HEADERS
        )
        view = await client.get(
            f"/api/v1/applications/{application_id}", headers=board_headers(1)
        )

        assert decided.json() == {"application_id": application_id, "outcome": "approved"}
        body = view.json()
        assert body["application"]["status"] == "approved"
        assert body["application"]["decided_by_id"] == "admin-1"
        assert len(body["votes"]) == 3
        assert [h["event"] for h in body["history"]] == [
            "submit",
            "start_review",
            "approve",
        ]

    async def test_board_member_cannot_approve(self, client):
        application_id = await _under_review(client)

        response = await client.post(
            f"/api/v1/applications/{application_id}/approve",
            json={"approved_monthly_amount": 100},
            headers=board_headers(1),
        )

        assert response.status_code == 403

    async def test_reject_then_approve_conflict(self, client):
        application_id = await _under_review(client)
        await client.post(
            f"/api/v1/applications/{application_id}/reject",
            json={"rejection_reason": "Out of scope"},
            headers=ADMIN_HEADERS,
        )

        response = await client.post(
            f"/api/v1/applications/{application_id}/approve",
            json={"approved_monthly_amount": 100},
            headers=ADMIN_HEADERS,
        )

        assert response.status_code == 409
        assert "rejected" in response.json()["detail"]["messages"][0]

    async def test_unknown_application(self, client):
        response = await client.post(
            "/api/v1/applications/999/start-review", headers=ADMIN_HEADERS
        )

        assert response.status_code == 404

    @pytest.mark.parametrize(
        "path",
        ["/api/v1/review/queue", "/api/v1/review/statistics", "/api/v1/applications"],
    )
    async def test_board_routes_forbidden_for_applicants(self, client, path):
        response = await client.get(path, headers=APPLICANT_HEADERS)

        assert response.status_code == 403

    async def test_queue_and_statistics(self, client):
        application_id = await _under_review(client)
        await client.post(
            f"/api/v1/applications/{application_id}/votes",
            json={"decision": "approve", "reasoning": "Fine"},
            headers=board_headers(1),
        )

        queue_1 = await client.get("/api/v1/review/queue", headers=board_headers(1))
        queue_2 = await client.get("/api/v1/review/queue", headers=board_headers(2))
        mine = await client.get("/api/v1/review/statistics/me", headers=board_headers(1))
        overall = await client.get("/api/v1/review/statistics", headers=ADMIN_HEADERS)

        assert queue_1.json()["total"] == 0
        assert queue_2.json()["total"] == 1
        assert mine.json()["total_votes_cast"] == 1
        assert mine.json()["participation_rate"] == 100.0
        assert overall.json()["by_status"] == {"under_review": 1}


class TestNotificationEndpoints:
    async def test_inbox_flow(self, client):
        await _under_review(client)

        inbox = await client.get("/api/v1/me/notifications", headers=board_headers(2))
        body = inbox.json()
        assert body["unread_count"] == 1
        notification_id = body["notifications"][0]["id"]

        marked = await client.post(
            f"/api/v1/me/notifications/{notification_id}/read", headers=board_headers(2)
        )
        again = await client.post(
            f"/api/v1/me/notifications/{notification_id}/read", headers=board_headers(3)
        )
        cleared = await client.post(
            "/api/v1/me/notifications/read-all", headers=APPLICANT_HEADERS
        )

        assert marked.json() == {"updated": 1}
        assert again.status_code == 404
        assert cleared.json() == {"updated": 2}


class TestRequestSchemas:
    @pytest.mark.parametrize("amount", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_amounts_rejected(self, amount):
        with pytest.raises(ValidationError):
            ApproveRequest(approved_monthly_amount=amount)
        with pytest.raises(ValidationError):
            DraftCreate(estimated_monthly_cost=amount)

    async def test_board_cannot_open_draft(self, client):
        created = await client.post(
            "/api/v1/me/applications", json=complete_fields(), headers=APPLICANT_HEADERS
        )
        application_id = created.json()["id"]

        view = await client.get(
            f"/api/v1/applications/{application_id}", headers=ADMIN_HEADERS
        )
        listing = await client.get("/api/v1/applications", headers=ADMIN_HEADERS)

        assert view.status_code == 404
        assert listing.json() == []
