from __future__ import annotations

import logging

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from tumi.domain.events.db_models import EventRegistration, EventRegistrationCode, TumiEvent
from tumi.domain.events.statuses import RegistrationStatus

logger = logging.getLogger(__name__)


async def adjust_participant_count(session: AsyncSession, event_id: str, delta: int) -> None:
    """Shift the cached participant counter with a single SQL UPDATE."""
    if delta == 0:
        return
    await session.execute(
        update(TumiEvent)
        .where(TumiEvent.id == event_id)
        .values(participant_registration_count=TumiEvent.participant_registration_count + delta)
    )
    logger.info(
        "event_participant_count_adjusted",
        extra={"extra": {"event_id": event_id, "delta": delta}},
    )


async def set_registration_status(
    session: AsyncSession,
    registration_id: str,
    status: RegistrationStatus,
    *,
    cancellation_reason: str | None = None,
    clear_reason: bool = False,
) -> EventRegistration | None:
    registration = await session.get(EventRegistration, registration_id)
    if registration is None:
        return None
    registration.status = status
    if cancellation_reason is not None:
        registration.cancellation_reason = cancellation_reason
    elif clear_reason:
        registration.cancellation_reason = None
    await session.flush()
    return registration


async def set_code_status(
    session: AsyncSession,
    code: EventRegistrationCode,
    status: RegistrationStatus,
    *,
    clear_created_registration: bool = False,
) -> EventRegistrationCode:
    code.status = status
    if clear_created_registration:
        code.registration_created_id = None
    await session.flush()
    return code
