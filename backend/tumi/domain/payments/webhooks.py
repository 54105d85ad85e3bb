"""Reconcile Stripe payment-lifecycle events into local payment state.

Every handler receives the already verified event and an open session whose
transaction is owned by the caller. Anomalies that Stripe cannot fix by
redelivering (unknown payment, malformed history, failed refund) are written
to the activity log and the event is still acknowledged.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from tumi.domain.activity_log import service as activity_log
from tumi.domain.activity_log.statuses import CATEGORY_WEBHOOK, LogSeverity
from tumi.domain.events import service as event_service
from tumi.domain.events.db_models import EventRegistration
from tumi.domain.events.statuses import (
    REASON_MOVE_PAYMENT_FAILED,
    REASON_MOVED,
    REASON_PAYMENT_FAILED,
    REASON_PAYMENT_TIMED_OUT,
    RegistrationStatus,
)
from tumi.domain.payments.db_models import StripePayment
from tumi.domain.shop.statuses import PurchaseStatus
from tumi.domain.users.db_models import StripeUserData
from tumi.infra import stripe_client as stripe_infra
from tumi.infra.metrics import metrics
from tumi.infra.stripe_idempotency import make_stripe_idempotency_key

logger = logging.getLogger(__name__)

MESSAGE_PAYMENT_NOT_FOUND = "No database payment found for incoming event"
MESSAGE_EVENTS_NOT_ARRAY = "Saved payment events are not an array"
MESSAGE_PAYMENT_UPDATE_FAILED = "Error updating payment in webhook"
MESSAGE_PURCHASE_UPDATE_FAILED = "Could not update the purchase"
MESSAGE_REFUND_FAILED = "Refund failed during registration move"
MESSAGE_STRIPE_USER_DATA_NOT_FOUND = "No stripe user data found for completed checkout session"
MESSAGE_REGISTRATION_NOT_FOUND = "Registration referenced by registration code not found"

# A late payment_intent.processing must not pull a settled payment back.
SETTLED_PAYMENT_STATUSES = frozenset({"succeeded", "canceled", "refunded"})


def safe_get(source: object, key: str, default: Any | None = None) -> Any:
    if isinstance(source, dict):
        return source.get(key, default)
    return getattr(source, key, default)


def _object_id(value: Any) -> str | None:
    if isinstance(value, str):
        return value
    if value is None:
        return None
    resolved = safe_get(value, "id")
    return str(resolved) if resolved else None


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class WebhookContext:
    session: AsyncSession
    stripe_client: Any
    event_id: str | None
    event_type: str
    payload_object: Any


async def _load_payment(session: AsyncSession, payment_intent_id: str | None) -> StripePayment | None:
    if not payment_intent_id:
        return None
    stmt = (
        select(StripePayment)
        .where(StripePayment.payment_intent == payment_intent_id)
        .options(
            selectinload(StripePayment.event_registration),
            selectinload(StripePayment.purchase),
            selectinload(StripePayment.event_registration_code),
        )
        .with_for_update()
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def _load_tracked_payment(ctx: WebhookContext, payment_intent_id: str | None) -> StripePayment | None:
    """Fetch the payment and check its history is appendable; log and return None otherwise."""
    payment = await _load_payment(ctx.session, payment_intent_id)
    if payment is None:
        logger.warning(
            "stripe_payment_not_found",
            extra={"extra": {"event_type": ctx.event_type, "payment_intent": payment_intent_id}},
        )
        await activity_log.record(
            ctx.session,
            message=MESSAGE_PAYMENT_NOT_FOUND,
            severity=LogSeverity.WARNING,
            category=CATEGORY_WEBHOOK,
            data=ctx.payload_object,
        )
        return None
    if not isinstance(payment.events, list):
        logger.warning(
            "stripe_payment_events_invalid",
            extra={"extra": {"event_type": ctx.event_type, "payment_id": payment.id}},
        )
        await activity_log.record(
            ctx.session,
            message=MESSAGE_EVENTS_NOT_ARRAY,
            severity=LogSeverity.WARNING,
            category=CATEGORY_WEBHOOK,
            data=ctx.payload_object,
            old_data=payment,
        )
        return None
    return payment


def _append_event(payment: StripePayment, event_type: str, name: str) -> None:
    payment.events = [*payment.events, {"type": event_type, "name": name, "date": _now_ms()}]


def _apply_shipping(payment: StripePayment, payload_object: Any) -> None:
    shipping = safe_get(payload_object, "shipping")
    if shipping:
        payment.shipping = activity_log.to_json_payload(shipping)


async def _resolve_charge(ctx: WebhookContext) -> Any | None:
    charges = safe_get(ctx.payload_object, "charges")
    charge_list = safe_get(charges, "data") if charges else None
    if charge_list:
        return charge_list[0]
    latest_charge = safe_get(ctx.payload_object, "latest_charge")
    if latest_charge is None or not isinstance(latest_charge, str):
        return latest_charge
    return await stripe_infra.call_stripe_client_method(
        ctx.stripe_client, "retrieve_charge", latest_charge
    )


async def _resolve_balance_transaction(ctx: WebhookContext, charge: Any) -> Any | None:
    balance_transaction = safe_get(charge, "balance_transaction") if charge is not None else None
    if isinstance(balance_transaction, str):
        return await stripe_infra.call_stripe_client_method(
            ctx.stripe_client, "retrieve_balance_transaction", balance_transaction
        )
    return balance_transaction


def _apply_charge(payment: StripePayment, charge: Any) -> None:
    if charge is None:
        return
    payment_method = safe_get(charge, "payment_method")
    if payment_method:
        payment.payment_method = _object_id(payment_method)
    details = safe_get(charge, "payment_method_details")
    method_type = safe_get(details, "type") if details else None
    if method_type:
        payment.payment_method_type = str(method_type)


def _apply_balance_transaction(payment: StripePayment, balance_transaction: Any) -> None:
    if balance_transaction is None:
        return
    fee = safe_get(balance_transaction, "fee")
    net = safe_get(balance_transaction, "net")
    if fee is not None:
        payment.fee_amount = int(fee)
    if net is not None:
        payment.net_amount = int(net)


async def _transition_registration(
    session: AsyncSession,
    registration_id: str,
    status: RegistrationStatus,
    *,
    cancellation_reason: str | None = None,
    clear_reason: bool = False,
) -> tuple[EventRegistration | None, RegistrationStatus | None]:
    """Set a registration status and keep the event counter in step with real transitions.

    The counter only moves when a registration enters or leaves CANCELLED, so
    redelivered or reordered events never double count.
    """
    registration = await session.get(EventRegistration, registration_id)
    if registration is None:
        return None, None
    previous = RegistrationStatus(registration.status)
    await event_service.set_registration_status(
        session,
        registration_id,
        status,
        cancellation_reason=cancellation_reason,
        clear_reason=clear_reason,
    )
    if previous != RegistrationStatus.CANCELLED and status == RegistrationStatus.CANCELLED:
        await event_service.adjust_participant_count(session, registration.event_id, -1)
    elif previous == RegistrationStatus.CANCELLED and status != RegistrationStatus.CANCELLED:
        await event_service.adjust_participant_count(session, registration.event_id, 1)
    metrics.record_reconciliation("event_registration", status.value.lower())
    return registration, previous


async def _log_missing_registration(ctx: WebhookContext, registration_id: str, payment: StripePayment) -> None:
    await activity_log.record(
        ctx.session,
        message=MESSAGE_REGISTRATION_NOT_FOUND,
        severity=LogSeverity.WARNING,
        category=CATEGORY_WEBHOOK,
        data={"registration_id": registration_id, "event_type": ctx.event_type},
        old_data=payment,
    )


async def _refund_moved_registration(ctx: WebhookContext, registration: EventRegistration) -> None:
    if not registration.payment_id:
        return
    removed_payment = await ctx.session.get(StripePayment, registration.payment_id)
    if removed_payment is None:
        return
    idempotency_key = make_stripe_idempotency_key(
        "registration_move_refund",
        payment_intent=removed_payment.payment_intent,
        registration_id=registration.id,
    )
    try:
        await stripe_infra.call_stripe_client_method(
            ctx.stripe_client,
            "create_refund",
            payment_intent=removed_payment.payment_intent,
            idempotency_key=idempotency_key,
        )
    except Exception as exc:  # noqa: BLE001
        logger.warning(
            "stripe_move_refund_failed",
            extra={"extra": {"registration_id": registration.id, "reason": type(exc).__name__}},
        )
        await activity_log.record(
            ctx.session,
            message=MESSAGE_REFUND_FAILED,
            severity=LogSeverity.ERROR,
            category=CATEGORY_WEBHOOK,
            data=exc,
            old_data=registration,
        )
        return
    metrics.record_reconciliation("stripe_refund", "created")
    logger.info(
        "stripe_move_refund_created",
        extra={"extra": {"registration_id": registration.id, "payment_intent": removed_payment.payment_intent}},
    )


async def _handle_checkout_session_completed(ctx: WebhookContext) -> bool:
    setup_intent_id = safe_get(ctx.payload_object, "setup_intent")
    client_reference_id = safe_get(ctx.payload_object, "client_reference_id")
    if not isinstance(setup_intent_id, str) or not isinstance(client_reference_id, str):
        logger.info(
            "stripe_checkout_session_ignored",
            extra={"extra": {"reason": "not_a_setup_session", "event_id": ctx.event_id}},
        )
        return False

    setup_intent = await stripe_infra.call_stripe_client_method(
        ctx.stripe_client, "retrieve_setup_intent", setup_intent_id
    )
    payment_method = safe_get(setup_intent, "payment_method")
    if not isinstance(payment_method, str):
        return False

    user_data = await ctx.session.get(StripeUserData, client_reference_id)
    if user_data is None:
        await activity_log.record(
            ctx.session,
            message=MESSAGE_STRIPE_USER_DATA_NOT_FOUND,
            severity=LogSeverity.WARNING,
            category=CATEGORY_WEBHOOK,
            data=ctx.payload_object,
        )
        return False
    user_data.payment_method_id = payment_method
    await ctx.session.flush()
    metrics.record_reconciliation("stripe_user_data", "payment_method_saved")
    return True


async def _handle_payment_intent_processing(ctx: WebhookContext) -> bool:
    payment = await _load_tracked_payment(ctx, _object_id(ctx.payload_object))
    if payment is None:
        return False
    charge = await _resolve_charge(ctx)
    incoming_status = safe_get(ctx.payload_object, "status")
    if incoming_status and payment.status not in SETTLED_PAYMENT_STATUSES:
        payment.status = str(incoming_status)
    _apply_shipping(payment, ctx.payload_object)
    _apply_charge(payment, charge)
    _append_event(payment, ctx.event_type, "processing")
    await ctx.session.flush()
    metrics.record_reconciliation("stripe_payment", "processing")
    return True


async def _handle_payment_intent_succeeded(ctx: WebhookContext) -> bool:
    payment = await _load_tracked_payment(ctx, _object_id(ctx.payload_object))
    if payment is None:
        return False
    session = ctx.session
    charge = await _resolve_charge(ctx)
    balance_transaction = await _resolve_balance_transaction(ctx, charge)
    payment_intent_id = payment.payment_intent

    try:
        async with session.begin_nested():
            payment.status = str(safe_get(ctx.payload_object, "status") or "succeeded")
            _apply_shipping(payment, ctx.payload_object)
            _apply_charge(payment, charge)
            _apply_balance_transaction(payment, balance_transaction)
            _append_event(payment, ctx.event_type, "succeeded")
            await session.flush()
    except SQLAlchemyError as exc:
        session.expire(payment)
        logger.exception(
            "stripe_payment_update_failed",
            extra={"extra": {"event_id": ctx.event_id, "payment_intent": payment_intent_id}},
        )
        await activity_log.record(
            session,
            message=MESSAGE_PAYMENT_UPDATE_FAILED,
            severity=LogSeverity.ERROR,
            category=CATEGORY_WEBHOOK,
            data=ctx.payload_object,
            old_data=exc,
        )
        return False
    metrics.record_reconciliation("stripe_payment", "succeeded")

    if payment.event_registration is not None:
        await _transition_registration(session, payment.event_registration.id, RegistrationStatus.SUCCESSFUL)

    if payment.purchase is not None:
        purchase = payment.purchase
        try:
            async with session.begin_nested():
                purchase.status = PurchaseStatus.PAID
                await session.flush()
        except SQLAlchemyError as exc:
            session.expire(purchase)
            await activity_log.record(
                session,
                message=MESSAGE_PURCHASE_UPDATE_FAILED,
                severity=LogSeverity.WARNING,
                category=CATEGORY_WEBHOOK,
                data=exc,
                old_data=payment,
            )
        else:
            metrics.record_reconciliation("purchase", "paid")

    code = payment.event_registration_code
    if code is not None:
        if code.registration_to_remove_id:
            removed, previous = await _transition_registration(
                session,
                code.registration_to_remove_id,
                RegistrationStatus.CANCELLED,
                cancellation_reason=REASON_MOVED,
            )
            if removed is None:
                await _log_missing_registration(ctx, code.registration_to_remove_id, payment)
            elif previous != RegistrationStatus.CANCELLED:
                await _refund_moved_registration(ctx, removed)

        if code.registration_created_id:
            created, _ = await _transition_registration(
                session, code.registration_created_id, RegistrationStatus.SUCCESSFUL
            )
            if created is None:
                await _log_missing_registration(ctx, code.registration_created_id, payment)

        await event_service.set_code_status(session, code, RegistrationStatus.SUCCESSFUL)
        metrics.record_reconciliation("event_registration_code", "successful")
    return True


async def _revert_after_failed_payment(
    ctx: WebhookContext, payment: StripePayment, cancellation_reason: str
) -> None:
    session = ctx.session
    if payment.event_registration is not None:
        await _transition_registration(
            session,
            payment.event_registration.id,
            RegistrationStatus.CANCELLED,
            cancellation_reason=cancellation_reason,
        )

    if payment.purchase is not None:
        payment.purchase.status = PurchaseStatus.CANCELLED
        payment.purchase.cancellation_reason = cancellation_reason
        await session.flush()
        metrics.record_reconciliation("purchase", "cancelled")

    code = payment.event_registration_code
    if code is None:
        return
    if code.registration_to_remove_id:
        restored, _ = await _transition_registration(
            session,
            code.registration_to_remove_id,
            RegistrationStatus.SUCCESSFUL,
            clear_reason=True,
        )
        if restored is None:
            await _log_missing_registration(ctx, code.registration_to_remove_id, payment)
    if code.registration_created_id:
        created, _ = await _transition_registration(
            session,
            code.registration_created_id,
            RegistrationStatus.CANCELLED,
            cancellation_reason=REASON_MOVE_PAYMENT_FAILED,
        )
        if created is None:
            await _log_missing_registration(ctx, code.registration_created_id, payment)
    await event_service.set_code_status(
        session, code, RegistrationStatus.PENDING, clear_created_registration=True
    )
    metrics.record_reconciliation("event_registration_code", "pending")


async def _handle_payment_intent_payment_failed(ctx: WebhookContext) -> bool:
    payment = await _load_tracked_payment(ctx, _object_id(ctx.payload_object))
    if payment is None:
        return False
    payment.status = str(safe_get(ctx.payload_object, "status") or payment.status)
    _apply_shipping(payment, ctx.payload_object)
    _append_event(payment, ctx.event_type, "failed")
    await ctx.session.flush()
    metrics.record_reconciliation("stripe_payment", "failed")
    await _revert_after_failed_payment(ctx, payment, REASON_PAYMENT_FAILED)
    return True


async def _handle_payment_intent_canceled(ctx: WebhookContext) -> bool:
    payment = await _load_tracked_payment(ctx, _object_id(ctx.payload_object))
    if payment is None:
        return False
    payment.status = str(safe_get(ctx.payload_object, "status") or "canceled")
    _append_event(payment, ctx.event_type, "canceled")
    await ctx.session.flush()
    metrics.record_reconciliation("stripe_payment", "canceled")
    await _revert_after_failed_payment(ctx, payment, REASON_PAYMENT_TIMED_OUT)
    return True


async def _handle_charge_dispute_created(ctx: WebhookContext) -> bool:
    payment_intent_id = _object_id(safe_get(ctx.payload_object, "payment_intent"))
    payment = await _load_tracked_payment(ctx, payment_intent_id)
    if payment is None:
        return False
    incoming_status = safe_get(ctx.payload_object, "status")
    if incoming_status:
        payment.status = str(incoming_status)
    _append_event(payment, ctx.event_type, "disputed")
    await ctx.session.flush()
    metrics.record_reconciliation("stripe_payment", "disputed")
    return True


async def _handle_charge_refunded(ctx: WebhookContext) -> bool:
    payment_intent_id = _object_id(safe_get(ctx.payload_object, "payment_intent"))
    payment = await _load_tracked_payment(ctx, payment_intent_id)
    if payment is None:
        return False
    balance_transaction = await _resolve_balance_transaction(ctx, ctx.payload_object)
    payment.status = "refunded"
    amount_refunded = safe_get(ctx.payload_object, "amount_refunded")
    if amount_refunded is not None:
        payment.refunded_amount = int(amount_refunded)
    _apply_balance_transaction(payment, balance_transaction)
    _append_event(payment, ctx.event_type, "refunded")
    await ctx.session.flush()
    metrics.record_reconciliation("stripe_payment", "refunded")
    return True


EVENT_HANDLERS: dict[str, Callable[[WebhookContext], Awaitable[bool]]] = {
    "checkout.session.completed": _handle_checkout_session_completed,
    "payment_intent.processing": _handle_payment_intent_processing,
    "payment_intent.succeeded": _handle_payment_intent_succeeded,
    "payment_intent.payment_failed": _handle_payment_intent_payment_failed,
    "payment_intent.canceled": _handle_payment_intent_canceled,
    "charge.dispute.created": _handle_charge_dispute_created,
    "charge.refunded": _handle_charge_refunded,
}


def payment_intent_for_event(event: Any) -> str | None:
    event_type = str(safe_get(event, "type", "") or "")
    data = safe_get(event, "data", {}) or {}
    payload_object = safe_get(data, "object", {}) or {}
    if event_type.startswith("payment_intent."):
        return _object_id(payload_object)
    if event_type.startswith("charge."):
        return _object_id(safe_get(payload_object, "payment_intent"))
    return None


async def handle_stripe_event(session: AsyncSession, event: Any, stripe_client: Any) -> bool:
    """Apply one verified Stripe event. Returns True when local state changed."""
    event_type = str(safe_get(event, "type", "") or "")
    data = safe_get(event, "data", {}) or {}
    ctx = WebhookContext(
        session=session,
        stripe_client=stripe_client,
        event_id=safe_get(event, "id"),
        event_type=event_type,
        payload_object=safe_get(data, "object", {}) or {},
    )
    handler = EVENT_HANDLERS.get(event_type)
    if handler is None:
        logger.info("stripe_webhook_unhandled", extra={"extra": {"event_type": event_type}})
        return False
    logger.info(
        "stripe_webhook_processing",
        extra={"extra": {"event_type": event_type, "event_id": ctx.event_id}},
    )
    return await handler(ctx)
