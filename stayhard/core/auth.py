"""
Auth utilities for the StayHard API.

Validates HS256 JWTs and extracts user_id from the request.
Falls back to the X-User-Id header when ALLOW_HEADER_AUTH is enabled (dev/tests).
"""
from fastapi import Header, HTTPException, Request
from typing import Optional
from stayhard.core.config import settings
from stayhard.core.logging import bind_user_id
import jwt
import logging

logger = logging.getLogger("stayhard")


def verify_jwt(token: str) -> str:
    """
    Verify a bearer token and extract user_id.

    Args:
        token: JWT from Authorization header (Bearer {token})

    Returns:
        user_id: Extracted from the token's 'sub' claim

    Raises:
        HTTPException 401: Invalid, expired or unverifiable token
    """
    if not settings.JWT_SECRET:
        raise HTTPException(status_code=401, detail="Token verification is not configured")

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            options={"verify_signature": True, "verify_exp": True},
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError as e:
        logger.debug(f"Invalid token: {e}")
        raise HTTPException(status_code=401, detail="Invalid token")

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="No 'sub' claim in token")
    return str(user_id)


def get_current_user_id(
    request: Request,
    x_user_id: Optional[str] = Header(None, description="Dev/test user ID"),
) -> str:
    """
    Extract current user ID from request context.

    Priority:
    1. JWT from Authorization header
    2. X-User-Id header (only when ALLOW_HEADER_AUTH)
    3. Raise 401 Unauthorized

    After successful auth, upsert user into database.
    """
    from stayhard.features.users.service import get_or_create_user

    user_id = None
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        # An invalid token never falls through to X-User-Id
        user_id = verify_jwt(auth_header[7:])
    elif x_user_id and settings.ALLOW_HEADER_AUTH:
        user_id = x_user_id.strip() or None

    if not user_id:
        raise HTTPException(
            status_code=401,
            detail="Missing Authorization (Bearer JWT) or X-User-Id header",
        )

    bind_user_id(user_id)
    get_or_create_user(user_id)
    request.state.user_id = user_id
    return user_id
