from __future__ import annotations

import uuid
from datetime import datetime

import sqlalchemy as sa
from sqlalchemy import DateTime, ForeignKey, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tumi.domain.users.statuses import MemberStatus, UserRole
from tumi.infra.db import Base


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    auth_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    first_name: Mapped[str] = mapped_column(String(255), nullable=False)
    last_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    status: Mapped[MemberStatus] = mapped_column(
        sa.Enum(MemberStatus, name="member_status"),
        nullable=False,
        default=MemberStatus.NONE,
    )
    role: Mapped[UserRole] = mapped_column(
        sa.Enum(UserRole, name="user_role"),
        nullable=False,
        default=UserRole.USER,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    stripe_user_data: Mapped[StripeUserData | None] = relationship(
        "StripeUserData",
        back_populates="user",
        cascade="all, delete-orphan",
        uselist=False,
    )

    __table_args__ = (
        Index("ix_users_status", "status"),
        Index("ix_users_last_first", "last_name", "first_name"),
    )


class StripeUserData(Base):
    __tablename__ = "stripe_user_data"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    customer_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    payment_method_id: Mapped[str | None] = mapped_column(String(255))

    user: Mapped[User] = relationship("User", back_populates="stripe_user_data")
