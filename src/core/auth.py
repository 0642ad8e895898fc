"""Authentication module for Auth0 JWT validation."""
import logging

import httpx
import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import PyJWKClient
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import Settings, get_settings
from core.principal import Principal
from db.session import get_async_session
from models.user import User

logger = logging.getLogger(__name__)

DEV_USER_AUTH0_ID = "dev|local-development-user"
DEV_USER_EMAIL = "dev@localhost"

# HTTP Bearer token scheme
security = HTTPBearer(auto_error=False)

# Cache for JWKS client (reuse across requests)
_jwks_clients: dict[str, PyJWKClient] = {}


def get_jwks_client(settings: Settings) -> PyJWKClient:
    """Get or create a cached JWKS client for the given settings."""
    if settings.auth0_jwks_url not in _jwks_clients:
        _jwks_clients[settings.auth0_jwks_url] = PyJWKClient(
            settings.auth0_jwks_url,
            cache_jwk_set=True,
            lifespan=3600,  # Cache keys for 1 hour
        )
    return _jwks_clients[settings.auth0_jwks_url]


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_jwt(token: str, settings: Settings) -> dict:
    """
    Decode and validate a JWT token from Auth0.

    Raises:
        HTTPException: 401 if the token is invalid, expired, or has the wrong
            audience/issuer; 503 if the signing keys cannot be fetched.
    """
    try:
        jwks_client = get_jwks_client(settings)
        signing_key = jwks_client.get_signing_key_from_jwt(token)

        return jwt.decode(
            token,
            signing_key.key,
            algorithms=["RS256"],
            audience=settings.auth0_audience,
            issuer=settings.auth0_issuer,
        )

    except jwt.ExpiredSignatureError:
        raise _unauthorized("Token has expired")
    except jwt.InvalidAudienceError:
        raise _unauthorized("Invalid audience")
    except jwt.InvalidIssuerError:
        raise _unauthorized("Invalid issuer")
    except jwt.PyJWTError as e:
        logger.warning("JWT validation failed: %s", e)
        raise _unauthorized("Invalid token")
    except httpx.HTTPError as e:
        logger.error("Failed to fetch signing keys: %s", e, exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Could not validate credentials",
        )


async def _find_user(db: AsyncSession, auth0_id: str) -> User | None:
    result = await db.execute(select(User).where(User.auth0_id == auth0_id))
    return result.scalar_one_or_none()


async def get_or_create_user(
    db: AsyncSession,
    auth0_id: str,
    email: str | None = None,
) -> User:
    """
    Get existing user or create new one from Auth0 claims.

    Handles race conditions where multiple concurrent requests may try to create
    the same user simultaneously. The INSERT runs in a SAVEPOINT; if it hits the
    unique constraint on auth0_id, only the savepoint is rolled back and the
    row created by the other request is fetched instead.

    Note: Uses flush(), not commit. Session generator handles commit at request end.
    """
    user = await _find_user(db, auth0_id)

    if user is None:
        user = User(auth0_id=auth0_id, email=email or "")
        try:
            async with db.begin_nested():
                db.add(user)
                await db.flush()
            logger.info("Created user %s for %s", user.id, auth0_id)
        except IntegrityError:
            # Race condition: another request created the user between our SELECT
            # and INSERT.
            user = await _find_user(db, auth0_id)
            if user is None:
                raise

    # Update email if changed in Auth0 (applies to both existing users and
    # users fetched after race condition recovery)
    if email and user.email != email:
        user.email = email
        await db.flush()

    return user


async def get_or_create_dev_user(db: AsyncSession) -> User:
    """Get or create a development user for DEV_MODE."""
    return await get_or_create_user(db, auth0_id=DEV_USER_AUTH0_ID, email=DEV_USER_EMAIL)


async def authenticate_user(
    credentials: HTTPAuthorizationCredentials | None,
    db: AsyncSession,
    settings: Settings,
) -> User:
    """
    Resolve the request's bearer token to a user.

    In DEV_MODE, bypasses auth and returns a local development user.
    """
    if settings.dev_mode:
        return await get_or_create_dev_user(db)

    if credentials is None:
        raise _unauthorized("Not authenticated")

    payload = decode_jwt(credentials.credentials, settings)

    # Extract user info from JWT claims
    auth0_id = payload.get("sub")
    if not auth0_id:
        raise _unauthorized("Invalid token: missing sub claim")

    return await get_or_create_user(db, auth0_id=auth0_id, email=payload.get("email"))


async def get_current_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: AsyncSession = Depends(get_async_session),
    settings: Settings = Depends(get_settings),
) -> Principal:
    """
    Dependency that validates the token and returns the acting principal.

    This is the only place a request's identity is established; every service
    call receives the Principal explicitly.
    """
    user = await authenticate_user(credentials, db, settings)
    return Principal(id=user.id, email=user.email)
