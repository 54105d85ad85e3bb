from __future__ import annotations

import hashlib
import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tumi.domain.payments import webhooks as payment_webhooks
from tumi.domain.payments.webhooks import safe_get
from tumi.domain.payments.db_models import StripeEvent
from tumi.infra import stripe_client as stripe_infra
from tumi.infra.db import get_db_session
from tumi.infra.metrics import metrics
from tumi.shared.circuit_breaker import CircuitBreakerOpenError
from tumi.settings import settings

router = APIRouter()
logger = logging.getLogger(__name__)

LEDGER_SETTLED_STATUSES = {"succeeded", "ignored", "processing"}


def _coerce_event_created_at(event: Any) -> datetime | None:
    created_raw = safe_get(event, "created")
    if isinstance(created_raw, (int, float)):
        return datetime.fromtimestamp(created_raw, tz=timezone.utc)
    if isinstance(created_raw, datetime):
        return created_raw.astimezone(timezone.utc)
    return None


async def _stripe_webhook_handler(http_request: Request, session: AsyncSession) -> dict[str, bool]:
    payload = await http_request.body()
    sig_header = http_request.headers.get("Stripe-Signature")
    if not settings.stripe_webhook_secret:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Stripe webhook disabled")

    outcome = "error"
    event_type: str | None = None
    try:
        stripe_client = stripe_infra.resolve_client(http_request.app.state)
        try:
            event = await stripe_infra.call_stripe_client_method(
                stripe_client, "verify_webhook", payload=payload, signature=sig_header
            )
        except CircuitBreakerOpenError as exc:
            metrics.record_webhook_error("stripe_unavailable")
            metrics.record_stripe_circuit_open()
            logger.warning("stripe_webhook_circuit_open", extra={"extra": {"reason": type(exc).__name__}})
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Stripe temporarily unavailable",
            ) from exc
        except Exception as exc:  # noqa: BLE001
            metrics.record_webhook("error")
            metrics.record_webhook_error("invalid_signature")
            logger.warning("stripe_webhook_invalid", extra={"extra": {"reason": type(exc).__name__}})
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid Stripe webhook") from exc

        event_id = safe_get(event, "id")
        if not event_id:
            metrics.record_webhook_error("missing_event_id")
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing event id")
        payload_hash = hashlib.sha256(payload or b"").hexdigest()
        event_type = safe_get(event, "type")
        logger.info(
            "stripe_webhook_received",
            extra={"extra": {"event_id": event_id, "event_type": event_type}},
        )

        processed = False
        processing_error: Exception | None = None
        async with session.begin():
            existing = await session.scalar(
                select(StripeEvent).where(StripeEvent.event_id == str(event_id)).with_for_update()
            )
            if existing:
                if existing.payload_hash != payload_hash:
                    logger.warning(
                        "stripe_webhook_replayed_mismatch",
                        extra={"extra": {"event_id": event_id}},
                    )
                    metrics.record_webhook_error("payload_mismatch")
                    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Event payload mismatch")

                if existing.status in LEDGER_SETTLED_STATUSES:
                    logger.info(
                        "stripe_webhook_duplicate",
                        extra={"extra": {"event_id": event_id, "status": existing.status}},
                    )
                    metrics.record_webhook("ignored")
                    outcome = "duplicate"
                    return {"received": True, "processed": False}

                record = existing
                record.status = "processing"
                if not record.event_type:
                    record.event_type = event_type
            else:
                record = StripeEvent(
                    event_id=str(event_id),
                    status="processing",
                    payload_hash=payload_hash,
                    event_type=event_type,
                    event_created_at=_coerce_event_created_at(event),
                    payment_intent=payment_webhooks.payment_intent_for_event(event),
                )
                session.add(record)
            await session.flush()

            try:
                # Handler changes roll back as a unit; the ledger row survives.
                async with session.begin_nested():
                    processed = await payment_webhooks.handle_stripe_event(session, event, stripe_client)
                record.status = "succeeded" if processed else "ignored"
                record.last_error = None
            except Exception as exc:  # noqa: BLE001
                processed = False
                record.status = "error"
                processing_error = exc
                record.last_error = str(exc)
                logger.exception(
                    "stripe_webhook_error",
                    extra={"extra": {"event_id": event_id, "reason": type(exc).__name__}},
                )
                metrics.record_webhook("error")
                metrics.record_webhook_error("processing_error")

        if processing_error is not None:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Stripe webhook processing error",
            ) from processing_error

        metrics.record_webhook("processed" if processed else "ignored")
        outcome = "processed" if processed else "ignored"
        return {"received": True, "processed": processed}
    finally:
        metrics.record_stripe_webhook(event_type, outcome)


@router.post("/webhooks/stripe", status_code=status.HTTP_200_OK)
async def stripe_webhook(
    http_request: Request, session: AsyncSession = Depends(get_db_session)
) -> dict[str, bool]:
    return await _stripe_webhook_handler(http_request, session)


@router.post("/v1/payments/stripe/webhook", status_code=status.HTTP_200_OK)
async def versioned_stripe_webhook(
    http_request: Request, session: AsyncSession = Depends(get_db_session)
) -> dict[str, bool]:
    return await _stripe_webhook_handler(http_request, session)
