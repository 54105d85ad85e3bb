from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class PriceInput(BaseModel):
    amount: int = Field(ge=0, description="Unit price in cents")
    currency: str | None = Field(default=None, max_length=8)


class AddLineItemRequest(BaseModel):
    product_id: str = Field(min_length=1)
    price: PriceInput
    quantity: int = Field(default=1, ge=1)
    submissions: dict[str, Any] | None = None


class LineItemSubmissionResponse(BaseModel):
    id: str
    submission_item_id: str
    data: dict | None = None

    class Config:
        from_attributes = True


class LineItemResponse(BaseModel):
    id: str
    cart_id: str | None = None
    product_id: str
    purchase_id: str | None = None
    quantity: int
    cost: int
    pickup_time: datetime | None = None
    cancellation_reason: str | None = None
    created_at: datetime
    submissions: list[LineItemSubmissionResponse] = Field(default_factory=list)

    class Config:
        from_attributes = True


class CartResponse(BaseModel):
    id: str | None
    user_id: str
    line_items: list[LineItemResponse]
    total_cost: int

    class Config:
        from_attributes = True
