"""HTTP surface: status codes, error envelopes and sync acknowledgement."""

import pytest
from fastapi.testclient import TestClient

from app.api import account_routes
from app.api.dependencies import get_gateway
from app.main import app


@pytest.fixture
def client(gateway):
    # No context manager: the lifespan (DB init, scheduler) stays off
    app.dependency_overrides[get_gateway] = lambda: gateway
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["service"] == "tracionar"
    assert body["scheduler_running"] is False


def test_dashboard_shape(client, account):
    response = client.get("/analytics/dashboard", params={"period": "30d"})
    assert response.status_code == 200
    body = response.json()
    assert set(body) >= {"kpis", "chart_data", "critical_campaigns", "accounts", "date_range"}
    assert body["accounts"][0]["external_id"] == "1001"


def test_bad_period_is_a_400_with_code(client):
    response = client.get("/analytics/dashboard", params={"period": "1y"})
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "VALIDATION_ERROR"


def test_desired_cpa_errors(client, account, make_campaign):
    campaign = make_campaign(account, "c-1")

    response = client.post(f"/analytics/campaigns/{campaign.id}/desired-cpa", json={"desired_cpa": -1})
    assert response.status_code == 400

    response = client.post("/analytics/campaigns/9999/desired-cpa", json={"desired_cpa": 10})
    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "NOT_FOUND"

    response = client.post(f"/analytics/campaigns/{campaign.id}/desired-cpa", json={"desired_cpa": 42.5})
    assert response.status_code == 200
    assert response.json()["desired_cpa"] == 42.5


def test_insights_without_provider_is_503(client):
    response = client.post(
        "/insights/generate",
        json={"metrics": {"total_spend": 10.0}, "context": {"period": "routes-test"}},
    )
    assert response.status_code == 503
    assert response.json()["detail"]["code"] == "AI_NOT_CONFIGURED"


def test_history_limit_bounds(client):
    assert client.get("/insights/history", params={"limit": 0}).status_code == 422
    response = client.get("/insights/history")
    assert response.status_code == 200
    assert response.json() == {"insights": [], "total": 0}


def test_sync_request_is_acknowledged(client, account, monkeypatch):
    dispatched = []
    monkeypatch.setattr(account_routes, "schedule_sync", lambda *args: dispatched.append(args))

    response = client.post(f"/accounts/{account.id}/sync", json={"mode": "full"})

    assert response.status_code == 200
    assert response.json() == {"account_id": account.id, "mode": "full", "status": "in_progress"}
    assert dispatched == [(account.id, "full")]


def test_unknown_account_is_404(client):
    assert client.post("/accounts/77/sync", json={}).status_code == 404
    assert client.get("/accounts/77/sync-status").status_code == 404
    assert client.delete("/accounts/77").status_code == 404


def test_account_listing_hides_tokens(client, account):
    response = client.get("/accounts")
    assert response.status_code == 200
    (listed,) = response.json()["accounts"]
    assert "encrypted_token" not in listed


def test_unexpected_errors_use_the_error_envelope():
    def broken_gateway():
        raise RuntimeError("connection pool exhausted")

    app.dependency_overrides[get_gateway] = broken_gateway
    try:
        response = TestClient(app, raise_server_exceptions=False).get("/accounts")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 500
    assert response.json()["detail"]["code"] == "INTERNAL_ERROR"
    assert "pool" not in response.text
