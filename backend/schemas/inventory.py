# backend/schemas/inventory.py
from pydantic import BaseModel, Field, ConfigDict
from datetime import datetime
from typing import List, Optional

from models.inventory import MovementType


# Body for a manual stock adjustment (signed quantity)
class AdjustPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: int = Field(validation_alias="productId")
    quantity: int = Field(strict=True)
    reason: Optional[str] = None


# Body for reserve/release against an order
class ReservationPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: int = Field(validation_alias="productId")
    quantity: int = Field(gt=0, strict=True)
    order_id: Optional[int] = Field(default=None, validation_alias="orderId")


class StockResult(BaseModel):
    ok: bool = True
    product_id: int
    stock: int


# Schema for returning stock movement details
class MovementOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    type: MovementType
    quantity: int
    meta: Optional[dict] = None
    created_at: Optional[datetime] = None


# Paginated response for stock movement history
class MovementPage(BaseModel):
    items: List[MovementOut]
    total: int
    page: int
    page_size: int
