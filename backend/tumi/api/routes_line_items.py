from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from tumi.api.identity import get_current_user
from tumi.domain.shop import schemas, service
from tumi.domain.users.db_models import User
from tumi.infra.db import get_db_session

router = APIRouter(tags=["shop"])


@router.get("/v1/cart", response_model=schemas.CartResponse)
async def get_cart(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> schemas.CartResponse:
    cart = await service.get_cart(session, user.id)
    if cart is None:
        # Carts are created on the first add; reading never writes.
        return schemas.CartResponse(id=None, user_id=user.id, line_items=[], total_cost=0)
    return schemas.CartResponse(
        id=cart.id,
        user_id=cart.user_id,
        line_items=[schemas.LineItemResponse.model_validate(item) for item in cart.line_items],
        total_cost=service.cart_total(cart),
    )


@router.post("/v1/line-items", response_model=schemas.LineItemResponse, status_code=status.HTTP_201_CREATED)
async def add_line_item_to_basket(
    payload: schemas.AddLineItemRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> schemas.LineItemResponse:
    line_item = await service.add_line_item_to_basket(session, user.id, payload)
    response = schemas.LineItemResponse.model_validate(line_item)
    await session.commit()
    return response


@router.post("/v1/line-items/{line_item_id}/increase", response_model=schemas.LineItemResponse)
async def increase_line_item_quantity(
    line_item_id: str,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> schemas.LineItemResponse:
    line_item = await service.get_own_line_item(session, line_item_id, user.id)
    line_item = await service.increase_line_item_quantity(session, line_item)
    response = schemas.LineItemResponse.model_validate(line_item)
    await session.commit()
    return response


@router.post("/v1/line-items/{line_item_id}/decrease", response_model=schemas.LineItemResponse)
async def decrease_line_item_quantity(
    line_item_id: str,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> schemas.LineItemResponse:
    line_item = await service.get_own_line_item(session, line_item_id, user.id)
    line_item = await service.decrease_line_item_quantity(session, line_item)
    response = schemas.LineItemResponse.model_validate(line_item)
    await session.commit()
    return response


@router.delete("/v1/line-items/{line_item_id}", response_model=schemas.LineItemResponse)
async def delete_line_item(
    line_item_id: str,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> schemas.LineItemResponse:
    line_item = await service.get_own_line_item(session, line_item_id, user.id)
    response = schemas.LineItemResponse.model_validate(line_item)
    await service.delete_line_item(session, line_item)
    await session.commit()
    return response
