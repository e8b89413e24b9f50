# backend/schemas/product.py
from decimal import Decimal, ROUND_HALF_UP
from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import Optional, List


# Base configuration for ORM compatibility
class ORMBase(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# Schema for creating a new product
class ProductCreate(ORMBase):
    name: str = Field(min_length=1)
    sku: Optional[str] = None
    price: Decimal = Field(ge=0)
    stock: int = Field(default=0, ge=0)

    @field_validator("price")
    @classmethod
    def round_price(cls, v: Decimal) -> Decimal:
        return v.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


# Schema for product edits - stock is changed only via /inventory
class ProductUpdate(ORMBase):
    name: Optional[str] = Field(None, min_length=1)
    sku: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0)

    @field_validator("price")
    @classmethod
    def round_price(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        if v is None:
            return v
        return v.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


# Full product representation including ID
class ProductOut(ORMBase):
    id: int
    name: str
    sku: Optional[str] = None
    price: float
    stock: int


class ProductList(ORMBase):
    items: List[ProductOut]
    total: int
