"""API endpoint integration tests using httpx AsyncClient."""
import os
from concurrent.futures import ThreadPoolExecutor
os.environ["MOCK_AWS"] = "true"
os.environ.pop("ANTHROPIC_API_KEY", None)

import pytest
from httpx import AsyncClient, ASGITransport

from cost_insight.api.routes import insights
from cost_insight.api.routes.insights import get_collector
from cost_insight.main import app
from cost_insight.services.cost_collector import zeroed_snapshot


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


def _client():
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest.mark.anyio
async def test_health_endpoint():
    async with _client() as client:
        response = await client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["mock_aws"] is True
    assert data["llm_enabled"] is False


@pytest.mark.anyio
async def test_version_endpoint():
    async with _client() as client:
        response = await client.get("/api/v1/version")
    assert response.status_code == 200
    data = response.json()
    assert "version" in data
    assert data["mock_aws"] is True
    assert "spike_detection" in data["features"]


@pytest.mark.anyio
async def test_full_insight():
    async with _client() as client:
        response = await client.get("/api/v1/insights")
    assert response.status_code == 200
    data = response.json()
    assert data["account_id"] == "123456789012"
    assert data["variant"] == "standard"
    for key in ("budget", "service_budgets", "forecast_risk", "spikes", "savings", "anomalies", "maturity"):
        assert key in data
    assert data["error"] is None


@pytest.mark.anyio
async def test_variant_override():
    async with _client() as client:
        response = await client.get("/api/v1/insights", params={"variant": "tracking"})
    assert response.status_code == 200
    assert response.json()["variant"] == "tracking"


@pytest.mark.anyio
async def test_unknown_variant_is_rejected():
    async with _client() as client:
        response = await client.get("/api/v1/insights", params={"variant": "bogus"})
    assert response.status_code == 422
    assert "bogus" in response.json()["detail"]


@pytest.mark.anyio
async def test_budget_endpoint():
    async with _client() as client:
        response = await client.get("/api/v1/insights/budget")
    assert response.status_code == 200
    data = response.json()
    assert data["budget"]["label"] == "AWS Total (Account)"
    assert data["budget"]["status"] in {"on-track", "normal", "warning", "critical"}
    assert len(data["service_budgets"]) == 3
    assert "is_over_budget" in data["variance"]


@pytest.mark.anyio
async def test_spikes_endpoint():
    async with _client() as client:
        response = await client.get("/api/v1/insights/spikes")
    assert response.status_code == 200
    data = response.json()
    changes = [s["line_item"]["change_percent"] for s in data["spikes"]]
    assert changes == sorted(changes, reverse=True)
    assert data["open_anomaly_count"] == len(data["anomalies"])


@pytest.mark.anyio
async def test_savings_endpoint_lists_every_category():
    async with _client() as client:
        response = await client.get("/api/v1/insights/savings")
    assert response.status_code == 200
    data = response.json()
    assert list(data["by_category"]) == [
        "Rightsizing", "Savings Plans / Reserved", "Storage Optimization", "Spike/Anomaly Reduction", "Idle Cleanup",
    ]
    assert all(o["estimated_monthly_savings"] > 0 for o in data["opportunities"])
    assert data["total_annual_savings"] == pytest.approx(data["total_monthly_savings"] * 12)


@pytest.mark.anyio
async def test_maturity_endpoint():
    async with _client() as client:
        response = await client.get("/api/v1/insights/maturity")
    assert response.status_code == 200
    data = response.json()
    assert data["max_score"] == 12
    assert len(data["dimensions"]) == 7
    assert data["commitment_level"] == "moderate"


@pytest.mark.anyio
async def test_chat_uses_local_responder_without_api_key():
    async with _client() as client:
        response = await client.post("/api/v1/chat", json={"message": "What's our total spend?"})
    assert response.status_code == 200
    data = response.json()
    assert data["source"] == "local"
    assert "Total Spend (MTD)" in data["reply"]


@pytest.mark.anyio
async def test_chat_rejects_empty_message():
    async with _client() as client:
        response = await client.post("/api/v1/chat", json={"message": ""})
    assert response.status_code == 422


@pytest.mark.anyio
async def test_chat_rejects_long_history():
    history = [{"role": "user", "content": "hi"}] * 21
    async with _client() as client:
        response = await client.post("/api/v1/chat", json={"message": "hello", "history": history})
    assert response.status_code == 422


class _DownCollector:
    def get_snapshot(self, force_refresh=False):
        return zeroed_snapshot("Cost Explorer API failed: AccessDenied")


@pytest.mark.anyio
async def test_degraded_collector_still_answers():
    app.dependency_overrides[get_collector] = _DownCollector
    try:
        async with _client() as client:
            response = await client.get("/api/v1/insights")
    finally:
        app.dependency_overrides.clear()
    assert response.status_code == 200
    data = response.json()
    assert "AccessDenied" in data["error"]
    assert data["total_spend_mtd"] == 0
    assert data["savings"] == []


def test_collector_is_shared_across_threads():
    insights._collector = None
    with ThreadPoolExecutor(max_workers=8) as pool:
        collectors = list(pool.map(lambda _: get_collector(), range(32)))
    assert len({id(c) for c in collectors}) == 1
