"""Health endpoint tests."""

import pytest


@pytest.mark.asyncio
async def test_health_reports_database_and_version(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["server"] == "ok"
    assert data["database"] == "ok"
    assert "version" in data


@pytest.mark.asyncio
async def test_health_degraded_without_redis(client):
    """Redis only backs rate limiting, so its absence is not fatal."""
    data = (await client.get("/health")).json()
    assert data["redis"].startswith("error")
    assert data["status"] == "degraded"
