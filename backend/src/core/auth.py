"""Authentication module for Auth0 JWT validation and the user agreement gate."""
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
from db.session import get_async_session
from models.user import User
from services import agreement_service
from services.agreement_store import AgreementStore

logger = logging.getLogger(__name__)


# HTTP Bearer token scheme
security = HTTPBearer(auto_error=False)

# Cache for JWKS client (reuse across requests)
_jwks_clients: dict[str, PyJWKClient] = {}

AGREEMENT_STATUS_URL = "/agreement/status"


def get_jwks_client(settings: Settings) -> PyJWKClient:
    """Get or create a cached JWKS client for the given settings."""
    if settings.auth0_jwks_url not in _jwks_clients:
        _jwks_clients[settings.auth0_jwks_url] = PyJWKClient(
            settings.auth0_jwks_url,
            cache_jwk_set=True,
            lifespan=3600,  # Cache keys for 1 hour
        )
    return _jwks_clients[settings.auth0_jwks_url]


def decode_jwt(token: str, settings: Settings) -> dict:
    """
    Decode and validate a JWT token from Auth0.

    Raises:
        HTTPException: If token is invalid, expired, or has wrong audience/issuer.
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
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except jwt.PyJWTError as e:
        logger.warning("JWT validation failed: %s", e, exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except httpx.HTTPError as e:
        logger.error("Failed to fetch JWKS from Auth0: %s", e, exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Could not validate credentials",
        )


async def get_or_create_user(
    db: AsyncSession,
    auth0_id: str,
    email: str | None = None,
) -> User:
    """
    Get existing user or create new one from Auth0 claims.

    Two concurrent first requests may both try to insert the same auth0_id. The
    loser's IntegrityError is rolled back and the winner's row is fetched instead.

    Note: Uses flush(), not commit. Session generator handles commit at request end.
    """
    query = select(User).where(User.auth0_id == auth0_id)
    result = await db.execute(query)
    user = result.scalar_one_or_none()

    if user is None:
        user = User(auth0_id=auth0_id, email=email)
        db.add(user)
        try:
            await db.flush()
        except IntegrityError:
            await db.rollback()
            result = await db.execute(query)
            user = result.scalar_one()

    # Update email if changed in Auth0
    if email and user.email != email:
        user.email = email
        await db.flush()

    return user


async def get_or_create_dev_user(db: AsyncSession) -> User:
    """Get or create a development user for DEV_MODE."""
    return await get_or_create_user(
        db,
        auth0_id="dev|local-development-user",
        email="dev@localhost",
    )


async def _authenticate_user(
    credentials: HTTPAuthorizationCredentials | None,
    db: AsyncSession,
    settings: Settings,
) -> User:
    """
    Internal: authenticate user without the agreement check.

    In DEV_MODE, bypasses auth and returns a test user.
    """
    if settings.dev_mode:
        return await get_or_create_dev_user(db)

    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_jwt(credentials.credentials, settings)

    auth0_id = payload.get("sub")
    if not auth0_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token: missing sub claim",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return await get_or_create_user(db, auth0_id=auth0_id, email=payload.get("email"))


async def _check_agreement(user: User, db: AsyncSession, settings: Settings) -> None:
    """
    Verify the user does not owe an acceptance of the user agreement.

    Raises HTTP 451 when the agreement must be (re-)accepted.
    Skipped in DEV_MODE.
    """
    if settings.dev_mode:
        return

    agreement_status = await agreement_service.get_agreement_status(
        AgreementStore.from_settings(db, settings),
        user.id,
        settings.days_to_reaccept,
    )
    if agreement_status.must_accept:
        raise HTTPException(
            status_code=status.HTTP_451_UNAVAILABLE_FOR_LEGAL_REASONS,
            detail={
                "error": "agreement_required",
                "message": "You must accept the user agreement before continuing.",
                "agreement_url": AGREEMENT_STATUS_URL,
            },
        )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: AsyncSession = Depends(get_async_session),
    settings: Settings = Depends(get_settings),
) -> User:
    """
    Dependency that validates the token, checks the agreement, and returns the user.

    Auth + agreement check (default for most routes).
    Use get_current_user_without_agreement for exempt routes.
    """
    user = await _authenticate_user(credentials, db, settings)
    await _check_agreement(user, db, settings)
    return user


async def get_current_user_without_agreement(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: AsyncSession = Depends(get_async_session),
    settings: Settings = Depends(get_settings),
) -> User:
    """
    Dependency that validates the token and returns the current user.

    Auth only, no agreement check (for the agreement endpoints themselves).
    """
    return await _authenticate_user(credentials, db, settings)


async def get_optional_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: AsyncSession = Depends(get_async_session),
    settings: Settings = Depends(get_settings),
) -> User | None:
    """
    Dependency that returns the current user, or None for anonymous requests.

    A missing Authorization header means anonymous; a present but invalid token
    is still rejected with 401.
    """
    if credentials is None and not settings.dev_mode:
        return None
    return await _authenticate_user(credentials, db, settings)
