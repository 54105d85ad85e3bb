from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import JSON

from tumi.infra.db import Base

if TYPE_CHECKING:
    from tumi.domain.events.db_models import EventRegistration, EventRegistrationCode
    from tumi.domain.shop.db_models import Purchase


class StripePayment(Base):
    __tablename__ = "stripe_payments"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    payment_intent: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    checkout_session: Mapped[str | None] = mapped_column(String(255))
    status: Mapped[str] = mapped_column(String(64), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(8), nullable=False, default="eur")
    fee_amount: Mapped[int | None] = mapped_column(Integer)
    net_amount: Mapped[int | None] = mapped_column(Integer)
    refunded_amount: Mapped[int | None] = mapped_column(Integer)
    payment_method: Mapped[str | None] = mapped_column(String(255))
    payment_method_type: Mapped[str | None] = mapped_column(String(64))
    shipping: Mapped[dict | None] = mapped_column(JSON)
    # Historical rows were written by other clients; the column is not guaranteed to hold a list.
    events: Mapped[Any] = mapped_column(JSON, nullable=True, default=list)
    user_id: Mapped[str | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    event_registration: Mapped["EventRegistration | None"] = relationship(
        "EventRegistration", back_populates="payment", uselist=False
    )
    purchase: Mapped["Purchase | None"] = relationship(
        "Purchase", back_populates="payment", uselist=False
    )
    event_registration_code: Mapped["EventRegistrationCode | None"] = relationship(
        "EventRegistrationCode", back_populates="payment", uselist=False
    )

    __table_args__ = (
        Index("ix_stripe_payments_status", "status"),
        Index("ix_stripe_payments_checkout_session", "checkout_session"),
    )


class StripeEvent(Base):
    __tablename__ = "stripe_events"

    event_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False)
    payload_hash: Mapped[str] = mapped_column(String(128), nullable=False)
    event_type: Mapped[str | None] = mapped_column(String(128))
    event_created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    payment_intent: Mapped[str | None] = mapped_column(String(255))
    last_error: Mapped[str | None] = mapped_column(Text())
    processed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_stripe_events_payload_hash", "payload_hash"),
        Index("ix_stripe_events_payment_intent", "payment_intent"),
    )
