"""Tests for the mapping of failures to HTTP responses."""
import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.exc import OperationalError

from api.errors import register_exception_handlers
from services.exceptions import (
    ConflictError,
    ForbiddenError,
    InputValidationError,
    NotFoundError,
    ServiceError,
)


def _app(exc: Exception) -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/boom")
    async def boom() -> None:
        raise exc

    return app


@pytest.mark.parametrize(
    ("exc", "status_code", "kind"),
    [
        (InputValidationError("bad"), 400, "validation_error"),
        (NotFoundError("Folder", "abc"), 404, "not_found"),
        (ForbiddenError("no"), 403, "forbidden"),
        (ConflictError("again"), 409, "conflict"),
    ],
)
async def test_service_errors_map_to_status_codes(
    exc: ServiceError, status_code: int, kind: str,
) -> None:
    async with AsyncClient(transport=ASGITransport(app=_app(exc)), base_url="http://test") as c:
        response = await c.get("/boom")

    assert response.status_code == status_code
    assert response.json() == {"error": kind, "detail": exc.message}


async def test_database_errors_are_internal(caplog: pytest.LogCaptureFixture) -> None:
    exc = OperationalError("SELECT 1", {}, Exception("connection refused"))

    async with AsyncClient(transport=ASGITransport(app=_app(exc)), base_url="http://test") as c:
        response = await c.get("/boom")

    assert response.status_code == 500
    assert response.json() == {
        "error": "internal",
        "detail": "The data store is unavailable; please retry",
    }
    # Driver details are logged, never returned
    assert "connection refused" in caplog.text
    assert "connection refused" not in response.text
