from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Any, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tumi.domain.errors import ConflictError, NotFoundError
from tumi.domain.users.db_models import User
from tumi.domain.users.statuses import MemberStatus

logger = logging.getLogger(__name__)

RegistrationT = TypeVar("RegistrationT")

# Fields a member may change on their own profile.
SELF_EDITABLE_FIELDS = frozenset({"first_name", "last_name", "email"})


async def list_members(session: AsyncSession) -> list[User]:
    """Users holding any membership status, sorted by name."""
    stmt = (
        select(User)
        .where(User.status != MemberStatus.NONE)
        .order_by(User.last_name, User.first_name)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_user(session: AsyncSession, user_id: str) -> User:
    user = await session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


async def get_users(session: AsyncSession, ids: Sequence[str]) -> list[User]:
    """Batch lookup that answers in the order of ``ids``; unknown ids are skipped."""
    if not ids:
        return []
    result = await session.execute(select(User).where(User.id.in_(set(ids))))
    by_id = {user.id: user for user in result.scalars().all()}
    return [by_id[user_id] for user_id in ids if user_id in by_id]


async def populate_registrations(
    session: AsyncSession, registrations: Iterable[RegistrationT]
) -> list[tuple[RegistrationT, User | None]]:
    registrations = list(registrations)
    users = await get_users(session, list(dict.fromkeys(r.user_id for r in registrations)))
    by_id = {user.id: user for user in users}
    return [(registration, by_id.get(registration.user_id)) for registration in registrations]


async def update_user(session: AsyncSession, user_id: str, changes: dict[str, Any]) -> User:
    user = await get_user(session, user_id)
    applied = [field for field in changes if hasattr(User, field)]
    try:
        async with session.begin_nested():
            for field in applied:
                setattr(user, field, changes[field])
            await session.flush()
    except IntegrityError as exc:
        raise ConflictError("Email already in use") from exc
    logger.info("user_updated", extra={"extra": {"user_id": user_id, "fields": sorted(applied)}})
    return user
