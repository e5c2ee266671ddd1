"""Health check tests."""

import pytest


@pytest.mark.asyncio
async def test_health_check(anon_client):
    response = await anon_client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"


@pytest.mark.asyncio
async def test_readiness_check(anon_client):
    response = await anon_client.get("/ready")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ready"


@pytest.mark.asyncio
async def test_unknown_route_is_json_404(anon_client):
    response = await anon_client.get("/api/v1/nope")
    assert response.status_code == 404
    assert response.json() == {"detail": "Not Found"}
