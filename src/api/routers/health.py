"""Liveness endpoint used by load balancers and the deploy smoke check."""
import logging
from typing import Literal

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel
from sqlalchemy import literal, select
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session
from core.config import API_VERSION

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Service status; `degraded` means the API is up but the store is not."""

    status: Literal["healthy", "degraded"]
    database: Literal["healthy", "unhealthy"]
    version: str


@router.get("/health", response_model=HealthResponse)
async def health_check(
    response: Response,
    db: AsyncSession = Depends(get_async_session),
) -> HealthResponse:
    """Report API and database status. Needs no authentication."""
    try:
        await db.scalar(select(literal(1)))
    except DBAPIError:
        logger.warning("Health check could not reach the database", exc_info=True)
        response.status_code = 503
        return HealthResponse(status="degraded", database="unhealthy", version=API_VERSION)

    return HealthResponse(status="healthy", database="healthy", version=API_VERSION)
