"""Tests for the health check endpoint."""
from unittest.mock import patch

from httpx import AsyncClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import API_VERSION


async def test__health__reports_healthy_without_auth(client: AsyncClient) -> None:
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {
        "status": "healthy",
        "database": "healthy",
        "version": API_VERSION,
    }


async def test__health__database_down_is_degraded(
    client: AsyncClient,
    db_session: AsyncSession,
) -> None:
    with patch.object(
        db_session,
        "scalar",
        side_effect=OperationalError("SELECT 1", {}, Exception("connection refused")),
    ):
        response = await client.get("/health")

    assert response.status_code == 503
    assert response.json()["status"] == "degraded"
    assert response.json()["database"] == "unhealthy"
