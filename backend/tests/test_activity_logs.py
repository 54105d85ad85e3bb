import asyncio
import json
import logging

from tumi.domain.activity_log import service as activity_log
from tumi.domain.activity_log.statuses import LogSeverity
from tumi.domain.payments.db_models import StripePayment
from tumi.domain.users.statuses import UserRole
from tumi.infra.logging import configure_logging


class _StripeLike:
    def __init__(self, payload):
        self._payload = payload

    def to_dict_recursive(self):
        return self._payload


def test_to_json_payload_normalises_known_shapes():
    payment = StripePayment(payment_intent="pi_1", status="succeeded", amount=100, events=[])

    assert activity_log.to_json_payload(None) is None
    assert activity_log.to_json_payload(ValueError("boom")) == {"error_type": "ValueError", "message": "boom"}
    assert activity_log.to_json_payload(_StripeLike({"id": "pi_1", "nested": {"a": 1}})) == {
        "id": "pi_1",
        "nested": {"a": 1},
    }
    serialized = activity_log.to_json_payload(payment)
    assert serialized["payment_intent"] == "pi_1"
    assert serialized["status"] == "succeeded"


async def _record_entries(async_session_maker) -> None:
    async with async_session_maker() as session:
        await activity_log.record(session, message="first", category="webhook", severity=LogSeverity.WARNING)
        await session.commit()
        await activity_log.record(session, message="second", category="webhook", severity=LogSeverity.ERROR)
        await activity_log.record(session, message="other", category="general")
        await session.commit()


def test_record_emits_structured_log(async_session_maker, capsys):
    configure_logging()

    async def _run():
        async with async_session_maker() as session:
            await activity_log.record(session, message="Payment missing", severity=LogSeverity.WARNING)
            await session.commit()

    asyncio.run(_run())

    lines = [json.loads(line) for line in capsys.readouterr().err.strip().splitlines() if line.startswith("{")]
    entry = next(line for line in lines if line["message"] == "activity_logged")
    assert entry["level"] == "WARNING"
    assert entry["activity_message"] == "Payment missing"
    logging.getLogger().handlers.clear()


def test_activity_logs_require_admin(client, make_user, auth_headers):
    user = make_user()

    response = client.get("/v1/activity-logs", headers=auth_headers(user))

    assert response.status_code == 403


def test_activity_logs_filter_and_order(client, async_session_maker, make_user, auth_headers):
    admin = make_user(role=UserRole.ADMIN)
    asyncio.run(_record_entries(async_session_maker))

    response = client.get("/v1/activity-logs", params={"category": "webhook"}, headers=auth_headers(admin))
    assert response.status_code == 200
    messages = {item["message"] for item in response.json()["items"]}
    assert messages == {"first", "second"}

    errors = client.get("/v1/activity-logs", params={"severity": "ERROR"}, headers=auth_headers(admin))
    assert [item["message"] for item in errors.json()["items"]] == ["second"]

    limited = client.get("/v1/activity-logs", params={"limit": 1}, headers=auth_headers(admin))
    assert len(limited.json()["items"]) == 1
