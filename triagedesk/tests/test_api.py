import pytest

from triagedesk.common.enums import ClassificationTask
from triagedesk.common.exceptions import TextServiceUnavailableError
from triagedesk.tests.fakes import issue_payload

LOCKED_PLAYER = {
    "player_id": "lannister-gold",
    "player_name": "LannisterGold",
    "vip_level": 0,
    "account_status": "locked",
    "lock_reason": "automated_security",
}


async def _create_locked_case(client):
    response = await client.post(
        "/api/v1/cases",
        json={"message": "I can't log into my account", "player": LOCKED_PLAYER},
    )
    assert response.status_code == 201
    return response.json()


@pytest.mark.asyncio
async def test_create_case_awaits_approval(client):
    data = await _create_locked_case(client)

    assert data["state"] == "awaiting_approval"
    assert data["awaiting_approval"] is True
    assert data["analysis"]["issue"]["issue_type"] == "account"
    assert data["analysis"]["issue"]["player_impact"] == "critical"
    assert data["analysis"]["recommendation"]["requires_human_review"] is True
    assert data["pending_response_text"]
    assert data["released_text"] is None
    assert data["request_id"].startswith("comp_")


@pytest.mark.asyncio
async def test_approve_then_approve_again(client):
    data = await _create_locked_case(client)
    held = data["pending_response_text"]

    first = await client.post(f"/api/v1/cases/{data['id']}/approve", json={"reviewed_by": "sam"})
    second = await client.post(f"/api/v1/cases/{data['id']}/approve")

    assert first.status_code == 200
    assert first.json()["state"] == "approved"
    assert first.json()["released_text"] == held
    assert second.status_code == 200
    assert second.json()["state"] == "approved"

    status = await client.get(f"/api/v1/compensation/{data['request_id']}")
    assert status.json()["status"] == "approved"
    assert status.json()["request"]["reviewed_by"] == "sam"


@pytest.mark.asyncio
async def test_reject_case(client):
    data = await _create_locked_case(client)

    response = await client.post(f"/api/v1/cases/{data['id']}/reject", json={"notes": "duplicate"})

    assert response.status_code == 200
    assert response.json()["state"] == "rejected"
    assert response.json()["released_text"] != data["pending_response_text"]


@pytest.mark.asyncio
async def test_open_then_submit(client, fake_client):
    fake_client.responses[ClassificationTask.ISSUE_DETECTION] = issue_payload("technical", "minor")

    opened = await client.post(
        "/api/v1/cases",
        json={"message": "game crashes on launch", "player": {"player_id": "p1"}, "submit": False},
    )
    assert opened.json()["state"] == "analyzing"
    assert opened.json()["submitted"] is False

    case_id = opened.json()["id"]
    submitted = await client.post(f"/api/v1/cases/{case_id}/submit")
    again = await client.post(f"/api/v1/cases/{case_id}/submit")

    assert submitted.json()["state"] == "auto_resolved"
    assert again.json()["request_id"] == submitted.json()["request_id"]
    assert len(again.json()["history"]) == 2


@pytest.mark.asyncio
async def test_unknown_case_is_404(client):
    response = await client.get("/api/v1/cases/case_does_not_exist")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_invalid_player_is_422(client):
    response = await client.post(
        "/api/v1/cases",
        json={"message": "help", "player": {"player_id": "p", "vip_level": 99}},
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_service_unavailable_is_503(client, fake_client):
    fake_client.responses[ClassificationTask.ISSUE_DETECTION] = TextServiceUnavailableError("ollama", "connection refused")

    response = await client.post(
        "/api/v1/cases",
        json={"message": "my game crashes", "player": {"player_id": "p"}},
    )

    assert response.status_code == 503
    assert "ollama" in response.json()["detail"]


@pytest.mark.asyncio
async def test_list_distribute_and_stats(client):
    data = await _create_locked_case(client)
    await client.post(f"/api/v1/cases/{data['id']}/approve")

    listed = await client.get("/api/v1/compensation", params={"player_id": "lannister-gold"})
    assert listed.json()["total"] == 1

    distributed = await client.post(f"/api/v1/compensation/{data['request_id']}/distribute")
    assert distributed.json()["status"] == "distributed"

    stats = await client.get("/api/v1/compensation/stats")
    assert stats.status_code == 200
    assert stats.json()["total_requests"] == 1
    assert stats.json()["by_status"] == {"distributed": 1}
    assert stats.json()["by_tier"]["P1"] == 1


@pytest.mark.asyncio
async def test_unknown_request_is_404(client):
    response = await client.get("/api/v1/compensation/comp_missing")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_health(client, fake_client):
    response = await client.get("/api/v1/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert "X-Request-Duration-Ms" in response.headers

    assert (await client.get("/api/v1/health/ai")).status_code == 200
    fake_client.healthy = False
    assert (await client.get("/api/v1/health/ai")).status_code == 503
