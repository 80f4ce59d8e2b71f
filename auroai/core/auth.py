"""
Auth utilities for the AuroAI API.

Validates the identity provider's HS256 access tokens and extracts the user
(``sub`` + ``email`` claims) from the Authorization header. Every verified
user is mirrored into ``app_users`` so webhooks can resolve customers by email.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

import jwt
from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError

from auroai.core.config import settings
from auroai.core.errors import AuthenticationError, ConfigurationError
from auroai.models.user import UserAccount

logger = logging.getLogger("auroai")


@dataclass(frozen=True)
class AuthContext:
    user: UserAccount
    access_token: str


def extract_bearer_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.lower().startswith("bearer "):
        return None
    token = auth_header[7:].strip()
    return token or None


def verify_access_token(token: str, secret: Optional[str] = None, audience: Optional[str] = None) -> UserAccount:
    """
    Verify an access token and return the user it identifies.

    Raises:
        ConfigurationError: AUTH_JWT_SECRET not configured
        AuthenticationError: expired, malformed or wrongly signed token
    """
    secret = secret or settings.AUTH_JWT_SECRET
    audience = audience if audience is not None else settings.AUTH_JWT_AUDIENCE
    if not secret:
        raise ConfigurationError("AUTH_JWT_SECRET is not set")

    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=["HS256"],
            audience=audience or None,
            options={"verify_aud": bool(audience), "require": ["sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token expired")
    except jwt.InvalidTokenError as e:
        logger.debug(f"Invalid token: {e}")
        raise AuthenticationError("Invalid token")

    return UserAccount(user_id=str(payload["sub"]), email=payload.get("email"))


def _mirror_user(user: UserAccount) -> None:
    from auroai.features.users.service import get_or_create_user
    try:
        get_or_create_user(user.user_id, user.email)
    except SQLAlchemyError as e:
        # Don't block auth if the mirror write fails
        logger.warning(f"Failed to upsert user {user.user_id}: {e}")


async def get_current_user(request: Request) -> AuthContext:
    """
    FastAPI dependency: the authenticated caller.

    Raises:
        AuthenticationError 401: missing or invalid bearer token
    """
    token = extract_bearer_token(request)
    if not token:
        raise AuthenticationError("Missing Authorization (Bearer JWT) header")

    user = verify_access_token(token)
    await asyncio.to_thread(_mirror_user, user)
    return AuthContext(user=user, access_token=token)


async def get_optional_user(request: Request) -> Optional[AuthContext]:
    """Like get_current_user, but returns None instead of raising 401."""
    try:
        return await get_current_user(request)
    except AuthenticationError as e:
        logger.info("auth.anonymous", extra={"reason": e.message})
        return None
