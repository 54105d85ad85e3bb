import asyncio

from tumi.domain.events import service as events_service
from tumi.domain.events.db_models import EventRegistration, TumiEvent
from tumi.domain.events.statuses import RegistrationStatus


async def _seed(async_session_maker, user_id: str) -> dict:
    async with async_session_maker() as session:
        event = TumiEvent(title="City tour", participant_limit=10, participant_registration_count=3)
        session.add(event)
        await session.flush()
        registration = EventRegistration(
            event_id=event.id,
            user_id=user_id,
            status=RegistrationStatus.CANCELLED,
            cancellation_reason="Payment failed",
        )
        session.add(registration)
        await session.commit()
        return {"event_id": event.id, "registration_id": registration.id}


def test_adjust_participant_count_updates_counter(async_session_maker, make_user):
    seeded = asyncio.run(_seed(async_session_maker, make_user().id))

    async def _adjust() -> int:
        async with async_session_maker() as session:
            await events_service.adjust_participant_count(session, seeded["event_id"], 2)
            await events_service.adjust_participant_count(session, seeded["event_id"], -1)
            await events_service.adjust_participant_count(session, seeded["event_id"], 0)
            await session.commit()
        async with async_session_maker() as session:
            event = await session.get(TumiEvent, seeded["event_id"])
            return event.participant_registration_count

    assert asyncio.run(_adjust()) == 4


def test_set_registration_status_clears_reason(async_session_maker, make_user):
    seeded = asyncio.run(_seed(async_session_maker, make_user().id))

    async def _restore():
        async with async_session_maker() as session:
            registration = await events_service.set_registration_status(
                session,
                seeded["registration_id"],
                RegistrationStatus.SUCCESSFUL,
                clear_reason=True,
            )
            missing = await events_service.set_registration_status(
                session, "does-not-exist", RegistrationStatus.SUCCESSFUL
            )
            await session.commit()
            return registration.status, registration.cancellation_reason, missing

    status, reason, missing = asyncio.run(_restore())

    assert status == RegistrationStatus.SUCCESSFUL
    assert reason is None
    assert missing is None
