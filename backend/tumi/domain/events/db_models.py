from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

import sqlalchemy as sa
from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tumi.domain.events.statuses import RegistrationStatus, RegistrationType
from tumi.infra.db import Base

if TYPE_CHECKING:
    from tumi.domain.payments.db_models import StripePayment
    from tumi.domain.users.db_models import User


class TumiEvent(Base):
    __tablename__ = "tumi_events"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    start: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    end: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    participant_limit: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    participant_registration_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    registrations: Mapped[list["EventRegistration"]] = relationship(
        "EventRegistration",
        back_populates="event",
    )


class EventRegistration(Base):
    __tablename__ = "event_registrations"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    event_id: Mapped[str] = mapped_column(
        ForeignKey("tumi_events.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type: Mapped[RegistrationType] = mapped_column(
        sa.Enum(RegistrationType, name="registration_type"),
        nullable=False,
        default=RegistrationType.PARTICIPANT,
    )
    status: Mapped[RegistrationStatus] = mapped_column(
        sa.Enum(RegistrationStatus, name="registration_status"),
        nullable=False,
        default=RegistrationStatus.PENDING,
    )
    cancellation_reason: Mapped[str | None] = mapped_column(String(255))
    payment_id: Mapped[str | None] = mapped_column(
        ForeignKey("stripe_payments.id", ondelete="SET NULL"), unique=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    event: Mapped[TumiEvent] = relationship("TumiEvent", back_populates="registrations")
    user: Mapped["User"] = relationship("User")
    payment: Mapped["StripePayment | None"] = relationship(
        "StripePayment", back_populates="event_registration"
    )

    __table_args__ = (
        Index("ix_event_registrations_event_status", "event_id", "status"),
    )


class EventRegistrationCode(Base):
    __tablename__ = "event_registration_codes"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    event_id: Mapped[str] = mapped_column(
        ForeignKey("tumi_events.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_by_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False)
    registration_to_remove_id: Mapped[str | None] = mapped_column(
        ForeignKey("event_registrations.id", ondelete="SET NULL")
    )
    registration_created_id: Mapped[str | None] = mapped_column(
        ForeignKey("event_registrations.id", ondelete="SET NULL")
    )
    status: Mapped[RegistrationStatus] = mapped_column(
        sa.Enum(RegistrationStatus, name="registration_status"),
        nullable=False,
        default=RegistrationStatus.PENDING,
    )
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    payment_id: Mapped[str | None] = mapped_column(
        ForeignKey("stripe_payments.id", ondelete="SET NULL"), unique=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    event: Mapped[TumiEvent] = relationship("TumiEvent")
    payment: Mapped["StripePayment | None"] = relationship(
        "StripePayment", back_populates="event_registration_code"
    )

    __table_args__ = (
        CheckConstraint(
            "registration_to_remove_id IS NULL OR registration_created_id IS NULL "
            "OR registration_to_remove_id <> registration_created_id",
            name="ck_event_registration_codes_distinct_registrations",
        ),
    )
