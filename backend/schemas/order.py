from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional
from datetime import datetime

from models.order import OrderStatus


# Input schema for a single order line; accepts camelCase from mobile clients
class OrderItemIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: int = Field(validation_alias="productId")
    quantity: int = Field(gt=0, strict=True)


# Input schema for creating a new order
class OrderCreatePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    items: List[OrderItemIn] = Field(min_length=1)
    assigned_to_id: Optional[int] = Field(default=None, validation_alias="assignedToId")
    customer_id: Optional[int] = Field(default=None, validation_alias="customerId")
    # Omit for an active order; "draft" is the only status a client may pick
    status: Optional[OrderStatus] = None
    create_mapping: bool = Field(default=False, validation_alias="createMapping")

    @field_validator("status")
    @classmethod
    def only_draft(cls, v):
        if v is not None and v != OrderStatus.DRAFT:
            raise ValueError("status must be draft or omitted")
        return v


# Input schema for editing an order; unset fields are left untouched
class OrderUpdatePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    items: Optional[List[OrderItemIn]] = Field(default=None, min_length=1)
    assigned_to_id: Optional[int] = Field(default=None, validation_alias="assignedToId")
    customer_id: Optional[int] = Field(default=None, validation_alias="customerId")
    status: Optional[OrderStatus] = None
    create_mapping: bool = Field(default=False, validation_alias="createMapping")


# Schema for assigning an order to an employee (null clears the assignee)
class OrderAssignPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    assigned_to_id: Optional[int] = Field(default=None, validation_alias="assignedToId")
    create_mapping: bool = Field(default=False, validation_alias="createMapping")


# Schema for updating order status
class OrderStatusPatch(BaseModel):
    status: str


# Output schema for an individual order line item
class OrderItemOut(BaseModel):
    product_id: int
    product_name: str
    quantity: int
    unit_price: float
    line_total: float


# Output schema representing the full order details
class OrderResponse(BaseModel):
    id: int
    status: OrderStatus
    customer_id: Optional[int] = None
    created_by_id: int
    assigned_to_id: Optional[int] = None
    total: float
    created_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None
    items: List[OrderItemOut]


class OrderStatusResponse(BaseModel):
    ok: bool = True
    status: OrderStatus


class OrderAssignResponse(BaseModel):
    ok: bool = True
    assigned_to_id: Optional[int] = None
    status: OrderStatus


class OrderDeleteResponse(BaseModel):
    ok: bool = True
    id: int
    soft_deleted: bool = False
    permanent: bool = False
    released: bool = False
