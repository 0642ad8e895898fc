"""The authenticated principal threaded through every service call."""
from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True)
class Principal:
    """
    The user performing an operation.

    Produced once per request by the authentication dependency and passed
    explicitly into every service function; services never look up the
    "current user" themselves.
    """

    id: UUID
    email: str

    @property
    def normalized_email(self) -> str:
        """Email lower-cased and trimmed, for case-insensitive comparisons."""
        return self.email.strip().lower()
