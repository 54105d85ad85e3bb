from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from tumi.domain.errors import DomainError, NotFoundError
from tumi.domain.shop import schemas
from tumi.domain.shop.db_models import LineItem, LineItemSubmission, Product, ShoppingCart

logger = logging.getLogger(__name__)

MIN_LINE_ITEM_QUANTITY = 1


async def get_cart(session: AsyncSession, user_id: str) -> ShoppingCart | None:
    stmt = (
        select(ShoppingCart)
        .where(ShoppingCart.user_id == user_id)
        .options(selectinload(ShoppingCart.line_items).selectinload(LineItem.submissions))
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_or_create_cart(session: AsyncSession, user_id: str) -> ShoppingCart:
    cart = await session.scalar(select(ShoppingCart).where(ShoppingCart.user_id == user_id))
    if cart is None:
        cart = ShoppingCart(user_id=user_id)
        session.add(cart)
        await session.flush()
        logger.info("shopping_cart_created", extra={"extra": {"user_id": user_id}})
    return cart


async def get_own_line_item(session: AsyncSession, line_item_id: str, user_id: str) -> LineItem:
    """Load a line item sitting in the caller's cart.

    Line items of other users are reported as missing so ids cannot be probed.
    """
    stmt = (
        select(LineItem)
        .join(ShoppingCart, ShoppingCart.id == LineItem.cart_id)
        .where(LineItem.id == line_item_id, ShoppingCart.user_id == user_id)
        .options(selectinload(LineItem.submissions))
    )
    line_item = await session.scalar(stmt)
    if line_item is None:
        raise NotFoundError("Line item not found")
    return line_item


async def increase_line_item_quantity(session: AsyncSession, line_item: LineItem) -> LineItem:
    line_item.quantity += 1
    await session.flush()
    return line_item


async def decrease_line_item_quantity(session: AsyncSession, line_item: LineItem) -> LineItem:
    # Removing the last unit is a delete, not a decrease.
    line_item.quantity = max(MIN_LINE_ITEM_QUANTITY, line_item.quantity - 1)
    await session.flush()
    return line_item


async def delete_line_item(session: AsyncSession, line_item: LineItem) -> LineItem:
    await session.delete(line_item)
    await session.flush()
    logger.info("line_item_deleted", extra={"extra": {"line_item_id": line_item.id}})
    return line_item


async def add_line_item_to_basket(
    session: AsyncSession, user_id: str, request: schemas.AddLineItemRequest
) -> LineItem:
    product = await session.get(
        Product, request.product_id, options=[selectinload(Product.submission_items)]
    )
    if product is None:
        raise NotFoundError("Product not found")
    if not product.is_active:
        raise DomainError(detail="Product is not available", title="Product Unavailable")

    submissions = request.submissions or {}
    known_items = {item.id for item in product.submission_items}
    unknown = sorted(set(submissions) - known_items)
    if unknown:
        raise DomainError(
            detail="Unknown submission items",
            title="Invalid Submission",
            errors=[{"field": f"submissions.{item_id}", "message": "Unknown submission item"} for item_id in unknown],
        )

    cart = await get_or_create_cart(session, user_id)
    line_item = LineItem(
        cart_id=cart.id,
        product_id=product.id,
        quantity=request.quantity,
        cost=request.price.amount,
        submissions=[
            LineItemSubmission(submission_item_id=item_id, data={"value": value})
            for item_id, value in submissions.items()
        ],
    )
    session.add(line_item)
    await session.flush()
    await session.refresh(line_item, attribute_names=["created_at"])
    logger.info(
        "line_item_added",
        extra={"extra": {"line_item_id": line_item.id, "product_id": product.id, "quantity": line_item.quantity}},
    )
    return line_item


def cart_total(cart: ShoppingCart) -> int:
    return sum(item.cost * item.quantity for item in cart.line_items)
