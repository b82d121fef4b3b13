"""HTTP-level tests for the complaint API.

Each test gets a fresh in-memory store and a seeded user directory
injected on ``app.state`` before the lifespan runs.
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from src.models.complaint import Actor
from src.services.directory import InMemoryUserDirectory
from src.services.notifications import NullNotifier
from src.services.storage import InMemoryComplaintStore

ADMIN = {"X-Actor-Id": "admin-1", "X-Actor-Role": "admin", "X-Actor-Name": "Asha"}
OFFICER = {"X-Actor-Id": "pwd-7", "X-Actor-Role": "department"}
CITIZEN = {"X-Actor-Id": "cit-3", "X-Actor-Role": "citizen"}

WATER_COMPLAINT = {
    "name": "Ramesh Yadav",
    "email": "ramesh@example.com",
    "title": "No water",
    "description": "Water supply has been cut for 3 days, emergency for elderly residents",
}


@pytest.fixture
def client() -> Iterator[TestClient]:
    from src.main import app

    app.state.store = InMemoryComplaintStore()
    app.state.notifier = NullNotifier()
    app.state.directory = InMemoryUserDirectory(
        [
            Actor(id="pwd-7", role="department", name="Ravi (PWD)"),
            Actor(id="cit-3", role="citizen", name="Meena"),
        ]
    )
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def filed(client: TestClient) -> dict:
    response = client.post("/api/v1/complaints", json=WATER_COMPLAINT)
    assert response.status_code == 201, response.text
    return response.json()


# ---------------------------------------------------------------------------
# Filing and tracking
# ---------------------------------------------------------------------------


class TestFiling:
    def test_file_complaint(self, filed: dict) -> None:
        assert filed["tracking_id"].startswith("GRS-")
        assert filed["complaint"]["status"] == "pending"
        assert filed["complaint"]["priority"] == "critical"
        assert filed["complaint"]["department"] == "Public Works"
        assert filed["classification"]["category"] == "infrastructure"
        assert filed["tracking_id"] in filed["message"]
        assert "email" not in filed["complaint"]

    def test_validation_errors(self, client: TestClient) -> None:
        response = client.post("/api/v1/complaints", json={**WATER_COMPLAINT, "email": "nope", "name": ""})
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "validation_error"
        assert set(body["fields"]) == {"email", "name"}


class TestComplainantEndpoints:
    def test_category_suggestions(self, client: TestClient) -> None:
        response = client.get("/api/v1/complaints/categories/suggest", params={"q": "pothole"})
        assert response.status_code == 200
        assert response.json() == {"query": "pothole", "suggestions": ["infrastructure"]}

    def test_my_complaints(self, client: TestClient, filed: dict) -> None:
        client.post("/api/v1/complaints", json={**WATER_COMPLAINT, "email": "other@example.com"})

        response = client.get(
            "/api/v1/complaints/mine",
            params={"email": "RAMESH@example.com", "search": "water"},
            headers=CITIZEN,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        assert body["complaints"][0]["tracking_id"] == filed["tracking_id"]
        assert "email" not in body["complaints"][0]

    def test_my_complaints_requires_actor(self, client: TestClient) -> None:
        response = client.get("/api/v1/complaints/mine", params={"email": "ramesh@example.com"})
        assert response.status_code == 401


class TestTracking:
    def test_track_counts_views(self, client: TestClient, filed: dict) -> None:
        url = f"/api/v1/complaints/track/{filed['tracking_id']}"
        client.get(url)
        response = client.get(url)
        assert response.status_code == 200
        body = response.json()
        assert body["complaint"]["view_count"] == 2
        assert "email" not in body["complaint"]
        assert "assigned_to" not in body["complaint"]
        assert [e["kind"] for e in body["activity"]] == ["status_change"]

    def test_track_is_case_insensitive(self, client: TestClient, filed: dict) -> None:
        response = client.get(f"/api/v1/complaints/track/{filed['tracking_id'].lower()}")
        assert response.status_code == 200

    def test_unknown_tracking_id(self, client: TestClient) -> None:
        response = client.get("/api/v1/complaints/track/GRS-000000000-ZZZZZZZZ")
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    def test_internal_comments_hidden_from_tracking(self, client: TestClient, filed: dict) -> None:
        cid = filed["complaint"]["complaint_id"]
        client.post(f"/api/v1/complaints/{cid}/comments", json={"text": "Budget pending", "is_internal": True}, headers=OFFICER)
        body = client.get(f"/api/v1/complaints/track/{filed['tracking_id']}").json()
        assert body["complaint"]["comments"] == []
        assert all(e["kind"] != "comment" for e in body["activity"])


# ---------------------------------------------------------------------------
# Access control
# ---------------------------------------------------------------------------


class TestAccess:
    def test_listing_requires_actor(self, client: TestClient) -> None:
        assert client.get("/api/v1/complaints").status_code == 401

    def test_listing_requires_staff(self, client: TestClient) -> None:
        assert client.get("/api/v1/complaints", headers=CITIZEN).status_code == 403

    def test_unknown_role(self, client: TestClient) -> None:
        headers = {"X-Actor-Id": "x", "X-Actor-Role": "overlord"}
        assert client.get("/api/v1/complaints", headers=headers).status_code == 403

    def test_staff_listing(self, client: TestClient, filed: dict) -> None:
        response = client.get("/api/v1/complaints", params={"status": "pending"}, headers=ADMIN)
        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        assert body["pages"] == 1
        assert body["complaints"][0]["tracking_id"] == filed["tracking_id"]

    def test_staff_search(self, client: TestClient, filed: dict) -> None:
        hit = client.get("/api/v1/complaints", params={"search": "elderly"}, headers=ADMIN).json()
        miss = client.get("/api/v1/complaints", params={"search": "streetlight"}, headers=ADMIN).json()
        assert hit["total"] == 1
        assert miss["total"] == 0
        assert hit["complaints"][0]["email"] == "ramesh@example.com"

    def test_bad_limit(self, client: TestClient) -> None:
        response = client.get("/api/v1/complaints", params={"limit": 500}, headers=ADMIN)
        assert response.status_code == 400


# ---------------------------------------------------------------------------
# Lifecycle over HTTP
# ---------------------------------------------------------------------------


class TestLifecycle:
    def test_status_flow(self, client: TestClient, filed: dict) -> None:
        cid = filed["complaint"]["complaint_id"]
        url = f"/api/v1/complaints/{cid}/status"

        illegal = client.post(url, json={"status": "resolved"}, headers=ADMIN)
        assert illegal.status_code == 400

        started = client.post(url, json={"status": "in_progress"}, headers=OFFICER)
        assert started.status_code == 200
        assert started.json()["response_time"] is not None

        resolved = client.post(url, json={"status": "resolved", "note": "Pipeline repaired"}, headers=OFFICER)
        assert resolved.status_code == 200
        assert resolved.json()["resolved_at"] is not None

        again = client.post(url, json={"status": "resolved"}, headers=OFFICER)
        assert again.status_code == 200

    def test_escalation_needs_reason(self, client: TestClient, filed: dict) -> None:
        cid = filed["complaint"]["complaint_id"]
        response = client.post(f"/api/v1/complaints/{cid}/status", json={"status": "escalated"}, headers=ADMIN)
        assert response.status_code == 400
        assert "reason" in response.json()["fields"]

    def test_citizen_cannot_change_status(self, client: TestClient, filed: dict) -> None:
        cid = filed["complaint"]["complaint_id"]
        response = client.post(f"/api/v1/complaints/{cid}/status", json={"status": "in_progress"}, headers=CITIZEN)
        assert response.status_code == 403

    def test_assignment(self, client: TestClient, filed: dict) -> None:
        url = f"/api/v1/complaints/{filed['complaint']['complaint_id']}/assign"

        assert client.post(url, json={"assignee_id": "ghost"}, headers=ADMIN).status_code == 404
        assert client.post(url, json={"assignee_id": "cit-3"}, headers=ADMIN).status_code == 400

        response = client.post(url, json={"assignee_id": "pwd-7"}, headers=ADMIN)
        assert response.status_code == 200
        assert response.json()["assigned_to"] == "pwd-7"

    def test_triage_correction(self, client: TestClient, filed: dict) -> None:
        cid = filed["complaint"]["complaint_id"]
        response = client.patch(
            f"/api/v1/complaints/{cid}/triage",
            json={"department": "Jal Board", "priority": "high"},
            headers=ADMIN,
        )
        assert response.status_code == 200
        assert response.json()["department"] == "Jal Board"
        assert response.json()["priority"] == "high"

    def test_attachment(self, client: TestClient, filed: dict) -> None:
        cid = filed["complaint"]["complaint_id"]
        response = client.post(
            f"/api/v1/complaints/{cid}/attachments",
            json={"url": "https://media.example/dry-tap.jpg", "file_type": "image/jpeg", "file_size": 1024},
            headers=CITIZEN,
        )
        assert response.status_code == 201
        assert response.json()["filename"] == "dry-tap.jpg"

        complaint = client.get(f"/api/v1/complaints/{cid}", headers=ADMIN).json()
        assert complaint["images"] == ["https://media.example/dry-tap.jpg"]

    def test_activity_visibility(self, client: TestClient, filed: dict) -> None:
        cid = filed["complaint"]["complaint_id"]
        client.post(f"/api/v1/complaints/{cid}/comments", json={"text": "Visible"}, headers=OFFICER)
        client.post(f"/api/v1/complaints/{cid}/comments", json={"text": "Hidden", "is_internal": True}, headers=OFFICER)

        url = f"/api/v1/complaints/{cid}/activity"
        as_staff = client.get(url, params={"include_internal": True}, headers=ADMIN).json()
        as_citizen = client.get(url, params={"include_internal": True}, headers=CITIZEN).json()

        assert len(as_staff) == 3
        assert [e["description"] for e in as_citizen if e["kind"] == "comment"] == ["Visible"]

    def test_feed_is_newest_first(self, client: TestClient, filed: dict) -> None:
        cid = filed["complaint"]["complaint_id"]
        client.post(f"/api/v1/complaints/{cid}/comments", json={"text": "Crew assigned"}, headers=OFFICER)
        client.post(f"/api/v1/complaints/{cid}/comments", json={"text": "Hidden", "is_internal": True}, headers=OFFICER)

        url = f"/api/v1/complaints/{cid}/feed"
        as_staff = client.get(url, params={"limit": 2}, headers=ADMIN).json()
        as_citizen = client.get(url, headers=CITIZEN).json()

        assert [e["description"] for e in as_staff] == ["Hidden", "Crew assigned"]
        assert [e["description"] for e in as_citizen if e["kind"] == "comment"] == ["Crew assigned"]

    def test_satisfaction(self, client: TestClient, filed: dict) -> None:
        cid = filed["complaint"]["complaint_id"]
        rate_url = f"/api/v1/complaints/track/{filed['tracking_id']}/satisfaction"

        assert client.post(rate_url, json={"score": 5}).status_code == 400

        client.post(f"/api/v1/complaints/{cid}/status", json={"status": "in_progress"}, headers=ADMIN)
        client.post(f"/api/v1/complaints/{cid}/status", json={"status": "resolved"}, headers=ADMIN)

        response = client.post(rate_url, json={"score": 5})
        assert response.status_code == 200
        assert response.json()["satisfaction"] == 5


# ---------------------------------------------------------------------------
# Analytics and health
# ---------------------------------------------------------------------------


class TestAnalytics:
    def test_report(self, client: TestClient, filed: dict) -> None:
        response = client.get("/api/v1/analytics", params={"period_days": 7}, headers=ADMIN)
        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        assert body["by_department"] == {"Public Works": 1}
        assert len(body["daily_trends"]) == 8

    def test_requires_staff(self, client: TestClient) -> None:
        assert client.get("/api/v1/analytics", headers=CITIZEN).status_code == 403


class TestHealth:
    def test_liveness(self, client: TestClient) -> None:
        response = client.get("/api/v1/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_readiness(self, client: TestClient) -> None:
        body = client.get("/api/v1/health/ready").json()
        assert body["status"] == "ready"
        assert body["checks"]["store"].startswith("ok")
