"""Tests for GET /api/health and the API root."""
import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_health_returns_200(client: AsyncClient):
    resp = await client.get("/api/health/")
    assert resp.status_code == 200
    data = resp.json()
    assert data["database"] == "ok"
    assert data["provider"] == "ok"
    assert data["status"] == "healthy"


@pytest.mark.asyncio
async def test_health_degraded_when_provider_is_down(client: AsyncClient, fake_llm):
    async def check_health():
        return False

    fake_llm.check_health = check_health

    resp = await client.get("/api/health/")
    assert resp.status_code == 200
    data = resp.json()
    assert data["provider"] == "error"
    assert data["status"] == "degraded"


@pytest.mark.asyncio
async def test_root_endpoint(client: AsyncClient):
    resp = await client.get("/")
    assert resp.status_code == 200
    data = resp.json()
    assert data["name"] == "ResearchNavigator API"
    assert "X-Process-Time" in resp.headers
