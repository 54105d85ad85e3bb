from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

import sqlalchemy as sa
from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import JSON

from tumi.domain.shop.statuses import PurchaseStatus
from tumi.infra.db import Base

if TYPE_CHECKING:
    from tumi.domain.payments.db_models import StripePayment


class Product(Base):
    __tablename__ = "products"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    prices: Mapped[dict | None] = mapped_column(JSON)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    submission_items: Mapped[list["SubmissionItem"]] = relationship(
        "SubmissionItem",
        back_populates="product",
        cascade="all, delete-orphan",
    )


class SubmissionItem(Base):
    __tablename__ = "submission_items"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    product_id: Mapped[str] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False, default="text")

    product: Mapped[Product] = relationship("Product", back_populates="submission_items")


class ShoppingCart(Base):
    __tablename__ = "shopping_carts"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    line_items: Mapped[list["LineItem"]] = relationship("LineItem", back_populates="cart")


class Purchase(Base):
    __tablename__ = "purchases"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status: Mapped[PurchaseStatus] = mapped_column(
        sa.Enum(PurchaseStatus, name="purchase_status"),
        nullable=False,
        default=PurchaseStatus.PENDING,
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

    payment: Mapped["StripePayment | None"] = relationship("StripePayment", back_populates="purchase")
    line_items: Mapped[list["LineItem"]] = relationship("LineItem", back_populates="purchase")


class LineItem(Base):
    __tablename__ = "line_items"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    cart_id: Mapped[str | None] = mapped_column(
        ForeignKey("shopping_carts.id", ondelete="SET NULL"), index=True
    )
    product_id: Mapped[str] = mapped_column(ForeignKey("products.id"), nullable=False, index=True)
    purchase_id: Mapped[str | None] = mapped_column(
        ForeignKey("purchases.id", ondelete="SET NULL"), index=True
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    cost: Mapped[int] = mapped_column(Integer, nullable=False)
    pickup_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancellation_reason: Mapped[str | None] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    cart: Mapped[ShoppingCart | None] = relationship("ShoppingCart", back_populates="line_items")
    product: Mapped[Product] = relationship("Product")
    purchase: Mapped[Purchase | None] = relationship("Purchase", back_populates="line_items")
    submissions: Mapped[list["LineItemSubmission"]] = relationship(
        "LineItemSubmission",
        back_populates="line_item",
        cascade="all, delete-orphan",
    )

    __table_args__ = (CheckConstraint("quantity >= 1", name="ck_line_items_quantity_positive"),)


class LineItemSubmission(Base):
    __tablename__ = "line_item_submissions"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    line_item_id: Mapped[str] = mapped_column(
        ForeignKey("line_items.id", ondelete="CASCADE"), nullable=False, index=True
    )
    submission_item_id: Mapped[str] = mapped_column(
        ForeignKey("submission_items.id"), nullable=False
    )
    data: Mapped[dict | None] = mapped_column(JSON)

    line_item: Mapped[LineItem] = relationship("LineItem", back_populates="submissions")
    submission_item: Mapped[SubmissionItem] = relationship("SubmissionItem")
