from __future__ import annotations

import logging

import jwt
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from tumi.domain.users.db_models import User
from tumi.domain.users.statuses import UserRole
from tumi.infra.auth import decode_access_token
from tumi.infra.db import get_db_session
from tumi.infra.logging import update_log_context
from tumi.settings import settings

logger = logging.getLogger(__name__)


def _extract_bearer_token(request: Request) -> str | None:
    header = request.headers.get("Authorization")
    if not header or not header.lower().startswith("bearer "):
        return None
    return header.split(" ", 1)[1].strip() or None


async def get_current_user(
    request: Request, session: AsyncSession = Depends(get_db_session)
) -> User:
    token = _extract_bearer_token(request)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    try:
        claims = decode_access_token(token, settings.auth_secret_key)
    except jwt.InvalidTokenError as exc:
        logger.info("auth_token_rejected", extra={"extra": {"reason": type(exc).__name__}})
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token") from exc

    user_id = claims.get("sub")
    user = await session.get(User, str(user_id)) if user_id else None
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown user")
    request.state.current_user_id = user.id
    update_log_context(user_id=user.id)
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    if user.role != UserRole.ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return user
