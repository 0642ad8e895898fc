"""Error response schema shared by all endpoints."""
from pydantic import BaseModel

from services.exceptions import ErrorKind


class ErrorResponse(BaseModel):
    """Body returned for every typed service failure."""

    error: ErrorKind
    detail: str
