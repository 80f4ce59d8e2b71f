"""
Admin authentication for operator endpoints.

Shared-secret ``X-Admin-Key`` header checked against ADMIN_KEY. When no key
is configured every admin endpoint is closed.
"""
import hashlib
import hmac
import logging
from typing import Optional

from fastapi import Header

from auroai.core.config import settings
from auroai.core.errors import AppError, AuthenticationError

logger = logging.getLogger("auroai")


class PermissionDeniedError(AppError):
    code = "forbidden"
    status_code = 403


def verify_admin_key(header_key: Optional[str], expected_key: Optional[str] = None) -> str:
    """
    Check the supplied key and return an actor id safe to log.

    Raises:
        AuthenticationError 401: no key supplied
        PermissionDeniedError 403: admin access disabled or wrong key
    """
    expected = expected_key if expected_key is not None else settings.ADMIN_KEY
    supplied = (header_key or "").strip()
    if not supplied:
        raise AuthenticationError("Missing X-Admin-Key header")
    if not expected:
        raise PermissionDeniedError("Admin access is not configured")
    if not hmac.compare_digest(supplied.encode(), expected.encode()):
        logger.warning("admin.auth_failed")
        raise PermissionDeniedError("Invalid admin key")

    key_hash = hashlib.sha256(supplied.encode()).hexdigest()[:16]
    return f"admin:{key_hash}"


async def require_admin_key(x_admin_key: Optional[str] = Header(None)) -> str:
    """FastAPI dependency guarding admin routes."""
    actor = verify_admin_key(x_admin_key)
    logger.info("admin.authenticated", extra={"actor_id": actor})
    return actor
