"""
Tests for the health check endpoint.

Covers:
- Healthy state with database reachable
- Response structure validation
- No auth required, even with a bad token attached
"""

import pytest
from httpx import AsyncClient


class TestHealthEndpoint:
    """Health check endpoint tests."""

    @pytest.mark.asyncio
    async def test_health_returns_200(self, async_client: AsyncClient):
        response = await async_client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_health_response_structure(self, async_client: AsyncClient):
        data = (await async_client.get("/health")).json()
        for key in ("status", "app", "version", "environment", "uptime_seconds", "checks", "timestamp"):
            assert key in data
        assert data["environment"] == "test"
        assert isinstance(data["checks"], list)

    @pytest.mark.asyncio
    async def test_health_includes_database_check(self, async_client: AsyncClient):
        data = (await async_client.get("/health")).json()
        db_check = next(c for c in data["checks"] if c["name"] == "database")
        assert db_check["status"] == "ok"
        assert db_check["response_time_ms"] is not None

    @pytest.mark.asyncio
    async def test_health_ignores_bad_token(self, async_client: AsyncClient):
        response = await async_client.get(
            "/health", headers={"Authorization": "Bearer nonsense"}
        )
        assert response.status_code == 200
