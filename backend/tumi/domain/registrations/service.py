from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tumi.domain.errors import ConflictError
from tumi.domain.registrations.db_models import Registration

logger = logging.getLogger(__name__)


async def get_registration(session: AsyncSession, user_id: str) -> Registration | None:
    return await session.scalar(select(Registration).where(Registration.user_id == user_id))


async def submit_registration(session: AsyncSession, user_id: str, data: dict[str, Any]) -> Registration:
    """Store the registration form answers; each user submits exactly once."""
    if await get_registration(session, user_id) is not None:
        raise ConflictError("Registration already submitted")
    registration = Registration(user_id=user_id, data=data)
    try:
        async with session.begin_nested():
            session.add(registration)
            await session.flush()
    except IntegrityError as exc:
        raise ConflictError("Registration already submitted") from exc
    await session.refresh(registration, attribute_names=["created_at"])
    logger.info("registration_submitted", extra={"extra": {"user_id": user_id}})
    return registration
