"""FastAPI dependencies for database, identity, admin authorization, and idempotency."""

import logging
from dataclasses import dataclass
from typing import AsyncGenerator, Optional

import jwt
from fastapi import Depends, Header
from jwt import PyJWTError
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.user import User
from .config import Settings, settings
from .database import get_async_session
from .exceptions import AuthenticationError, AuthorizationError, ValidationError

logger = logging.getLogger(__name__)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Database dependency that provides async database sessions.

    Yields:
        AsyncSession: Database session
    """
    async for session in get_async_session():
        yield session


@dataclass(frozen=True)
class Identity:
    """Verified caller, taken from the bearer token's claims."""

    user_id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None


def resolve_identity(authorization: Optional[str], config: Settings = settings) -> Optional[Identity]:
    """
    Turn an ``Authorization`` header into an Identity.

    Pure: no I/O, no exceptions. A missing, malformed, badly signed or
    expired token all yield None.
    """
    if not authorization:
        return None

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None

    try:
        claims = jwt.decode(
            token.strip(),
            config.jwt_secret,
            algorithms=[config.jwt_algorithm],
            audience=config.jwt_audience,
            options={"require": ["sub", "exp"], "verify_aud": config.jwt_audience is not None},
        )
    except PyJWTError as e:
        logger.info("Bearer token rejected", extra={"reason": e.__class__.__name__})
        return None

    return Identity(
        user_id=str(claims["sub"]),
        email=claims.get("email"),
        first_name=claims.get("first_name"),
        last_name=claims.get("last_name"),
        profile_image_url=claims.get("profile_image_url"),
    )


def authorize_admin(identity: Optional[Identity], user: Optional[User]) -> User:
    """
    Decide the admin gate.

    Raises:
        AuthenticationError: No verified identity (401)
        AuthorizationError: Identity has no user record or is not an admin (403)
    """
    if identity is None:
        raise AuthenticationError()
    if user is None or not user.is_admin:
        logger.warning("Admin access denied", extra={"user_id": identity.user_id})
        raise AuthorizationError()
    return user


async def get_identity(
    authorization: Optional[str] = Header(None, alias="Authorization")
) -> Optional[Identity]:
    return resolve_identity(authorization)


async def require_identity(identity: Optional[Identity] = Depends(get_identity)) -> Identity:
    if identity is None:
        raise AuthenticationError()
    return identity


async def require_admin(
    identity: Optional[Identity] = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Admin-only endpoints depend on this; the admin flag is read fresh on every request."""
    user = await db.get(User, identity.user_id) if identity else None
    return authorize_admin(identity, user)


async def get_idempotency_key(
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key")
) -> Optional[str]:
    """
    Extract and validate idempotency key from request headers.

    Raises:
        ValidationError: If the key is blank or longer than 255 characters
    """
    if idempotency_key is None:
        return None

    idempotency_key = idempotency_key.strip()
    if not 1 <= len(idempotency_key) <= 255:
        raise ValidationError.for_field(
            "Idempotency-Key",
            "Idempotency key must be between 1 and 255 characters",
        )
    return idempotency_key


DB_DEPENDENCY = Depends(get_db)
IDENTITY_DEPENDENCY = Depends(get_identity)
AUTHENTICATED = Depends(require_identity)
ADMIN_REQUIRED = Depends(require_admin)
IDEMPOTENCY_KEY = Depends(get_idempotency_key)
