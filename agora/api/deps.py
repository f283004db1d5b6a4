"""
agora.api.deps — FastAPI dependency injection
==============================================

Bearer JWT (HS256) → user id.  The token's ``sub`` claim is the forum
user id; roles and group memberships are always read fresh from the
store by the services, never trusted from the token.
"""

from __future__ import annotations

import os
from typing import Annotated

import jwt
from fastapi import Depends, Header, HTTPException, Request, status
from jwt.exceptions import InvalidTokenError

from agora.context import ForumContext
from agora.database.engine import run_db
from agora.engine.permissions import Principal
from agora.errors import ForumError
from agora.services import forum_service

_WEAK_SECRETS = frozenset({
    "agora-dev-secret-change-me",
    "change-me",
    "secret",
    "dev",
    "",
})

_MIN_SECRET_LENGTH = 32

JWT_ALGORITHM = "HS256"


def _load_jwt_secret() -> str:
    """Load and validate JWT_SECRET from the environment.

    Raises RuntimeError at import time if the secret is missing, blank,
    too short (< 32 chars), or a known weak default.
    """
    secret = os.getenv("JWT_SECRET", "")
    if not secret:
        raise RuntimeError(
            "JWT_SECRET environment variable is not set. "
            "Generate one with: python -c \"import secrets; print(secrets.token_urlsafe(64))\""
        )
    if secret in _WEAK_SECRETS:
        raise RuntimeError(
            f"JWT_SECRET is set to a known weak default ('{secret}'). "
            "Please set a strong, unique secret."
        )
    if len(secret) < _MIN_SECRET_LENGTH:
        raise RuntimeError(
            f"JWT_SECRET is too short ({len(secret)} chars). "
            f"Minimum length is {_MIN_SECRET_LENGTH} characters."
        )
    return secret


JWT_SECRET: str = _load_jwt_secret()


def issue_token(user_id: int) -> str:
    return jwt.encode({"sub": str(user_id)}, JWT_SECRET, algorithm=JWT_ALGORITHM)


def get_context(request: Request) -> ForumContext:
    ctx = getattr(request.app.state, "ctx", None)
    if ctx is None:
        raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, "Forum not ready")
    return ctx


def _decode_user_id(authorization: str) -> int:
    token = authorization.split(" ", 1)[1]
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
        return int(payload["sub"])
    except (InvalidTokenError, KeyError, ValueError):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token") from None


def get_current_user_id(
    authorization: Annotated[str | None, Header()] = None,
) -> int:
    """Validate the bearer token and return its user id. Raises 401 if invalid."""
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Missing token")
    return _decode_user_id(authorization)


def get_optional_user_id(
    authorization: Annotated[str | None, Header()] = None,
) -> int | None:
    if not authorization or not authorization.startswith("Bearer "):
        return None
    return _decode_user_id(authorization)


async def get_moderator(
    user_id: Annotated[int, Depends(get_current_user_id)],
    ctx: Annotated[ForumContext, Depends(get_context)],
) -> Principal:
    """Principal for read-only moderator endpoints (writes re-check in the service)."""
    try:
        principal = await run_db(forum_service.get_principal, ctx, user_id)
    except ForumError as exc:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, exc.message) from None
    if not principal.is_moderator:
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Moderator privileges required")
    return principal


async def get_admin(
    principal: Annotated[Principal, Depends(get_moderator)],
) -> Principal:
    if not principal.is_admin:
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Admin privileges required")
    return principal


CurrentUser = Annotated[int, Depends(get_current_user_id)]
OptionalUser = Annotated[int | None, Depends(get_optional_user_id)]
Context = Annotated[ForumContext, Depends(get_context)]
