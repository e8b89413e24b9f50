# backend/routes/orders.py
from typing import List
from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from sqlalchemy.orm import Session

from database import get_db
from utils.tokenJWT import get_current_user
from utils.audit import write_log
from utils.notifications import dispatch_order_event
from models.users import User
from models.order import Order, OrderStatus
from schemas.order import (
    OrderResponse, OrderStatusPatch, OrderItemOut, OrderCreatePayload, OrderUpdatePayload,
    OrderAssignPayload, OrderAssignResponse, OrderStatusResponse, OrderDeleteResponse,
)
from services import order_service
from services.order_service import ItemRequest, UNSET

router = APIRouter(prefix="/orders", tags=["Orders"])


def _client_ip(request: Request):
    return request.client.host if request.client else None


# Map Order model to OrderResponse schema
def _order_to_out(order: Order) -> OrderResponse:
    items: List[OrderItemOut] = []
    for it in order.items:
        product_name = it.product.name if it.product else "Deleted product"
        items.append(OrderItemOut(
            product_id=it.product_id,
            product_name=product_name,
            quantity=it.quantity,
            unit_price=float(it.unit_price),
            line_total=float(order_service.money(it.unit_price * it.quantity)),
        ))
    return OrderResponse(
        id=order.id,
        status=order.status,
        customer_id=order.customer_id,
        created_by_id=order.created_by_id,
        assigned_to_id=order.assigned_to_id,
        total=float(order.total),
        created_at=order.created_at,
        deleted_at=order.deleted_at,
        items=items,
    )


def _item_requests(items) -> List[ItemRequest]:
    return [ItemRequest(product_id=it.product_id, quantity=it.quantity) for it in items]


# Create an order and reserve its stock (drafts reserve nothing)
@router.post("", response_model=OrderResponse, status_code=201)
def create_order(
    payload: OrderCreatePayload,
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    draft = payload.status == OrderStatus.DRAFT
    order = order_service.create_order(
        db,
        current_user,
        _item_requests(payload.items),
        assigned_to_id=payload.assigned_to_id,
        customer_id=payload.customer_id,
        draft=draft,
        create_mapping=payload.create_mapping,
    )

    write_log(
        db,
        user_id=current_user.id,
        action="ORDER_CREATE",
        resource="orders",
        status="SUCCESS",
        ip=_client_ip(request),
        meta={"order_id": order.id, "status": order.status.value, "total": str(order.total)},
    )
    if not draft:
        background_tasks.add_task(
            dispatch_order_event, order.id, "order.created", status=order.status.value, actor_id=current_user.id
        )
    return _order_to_out(order)


# List orders visible to the current user (trash only on request)
@router.get("", response_model=List[OrderResponse])
def list_orders(
    deleted: bool = Query(False, description="Include orders in the trash"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    orders = order_service.list_orders(db, current_user, include_deleted=deleted)
    return [_order_to_out(o) for o in orders]


@router.get("/{order_id}", response_model=OrderResponse)
def get_order(
    order_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return _order_to_out(order_service.get_order(db, current_user, order_id))


# Edit items/customer/assignee, or publish a draft
@router.put("/{order_id}", response_model=OrderResponse)
def update_order(
    order_id: int,
    payload: OrderUpdatePayload,
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    sent = payload.model_fields_set
    order = order_service.update_order(
        db,
        current_user,
        order_id,
        items=_item_requests(payload.items) if payload.items is not None else None,
        assigned_to_id=payload.assigned_to_id if "assigned_to_id" in sent else UNSET,
        customer_id=payload.customer_id if "customer_id" in sent else UNSET,
        status=payload.status.value if payload.status is not None else None,
        create_mapping=payload.create_mapping,
    )

    write_log(
        db,
        user_id=current_user.id,
        action="ORDER_UPDATE",
        resource="orders",
        status="SUCCESS",
        ip=_client_ip(request),
        meta={"order_id": order.id, "fields": sorted(sent), "status": order.status.value},
    )
    if payload.status == OrderStatus.PENDING and order.status != OrderStatus.DRAFT:
        background_tasks.add_task(
            dispatch_order_event, order.id, "order.created", status=order.status.value, actor_id=current_user.id
        )
    return _order_to_out(order)


@router.post("/{order_id}/cancel")
def cancel_order(
    order_id: int,
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    order = order_service.cancel_order(db, current_user, order_id)
    write_log(
        db,
        user_id=current_user.id,
        action="ORDER_CANCEL",
        resource="orders",
        status="SUCCESS",
        ip=_client_ip(request),
        meta={"order_id": order.id},
    )
    background_tasks.add_task(
        dispatch_order_event, order.id, "order.cancelled", status=order.status.value, actor_id=current_user.id
    )
    return {"cancelled": True}


# Assign (or unassign with null) an employee; admin only
@router.put("/{order_id}/assign", response_model=OrderAssignResponse)
def assign_order(
    order_id: int,
    payload: OrderAssignPayload,
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    order = order_service.assign_order(
        db, current_user, order_id, payload.assigned_to_id, create_mapping=payload.create_mapping
    )
    write_log(
        db,
        user_id=current_user.id,
        action="ORDER_ASSIGN",
        resource="orders",
        status="SUCCESS",
        ip=_client_ip(request),
        meta={"order_id": order.id, "assigned_to_id": order.assigned_to_id},
    )
    background_tasks.add_task(
        dispatch_order_event, order.id, "order.assigned", status=order.status.value, actor_id=current_user.id
    )
    return OrderAssignResponse(assigned_to_id=order.assigned_to_id, status=order.status)


# Update order status (role-gated transitions)
@router.put("/{order_id}/status", response_model=OrderStatusResponse)
def update_order_status(
    order_id: int,
    payload: OrderStatusPatch,
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    order = order_service.change_status(db, current_user, order_id, payload.status)

    write_log(
        db,
        user_id=current_user.id,
        action="ORDER_STATUS_CHANGE",
        resource="orders",
        status="SUCCESS",
        ip=_client_ip(request),
        meta={"order_id": order.id, "new_status": order.status.value},
    )
    background_tasks.add_task(
        dispatch_order_event, order.id, "order.status_changed", status=order.status.value, actor_id=current_user.id
    )
    return OrderStatusResponse(status=order.status)


# Move an order to the trash, or delete it for good with ?permanent=true
@router.delete("/{order_id}", response_model=OrderDeleteResponse)
def delete_order(
    order_id: int,
    request: Request,
    permanent: bool = Query(False),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    released = order_service.delete_order(db, current_user, order_id, permanent=permanent)
    write_log(
        db,
        user_id=current_user.id,
        action="ORDER_DELETE",
        resource="orders",
        status="SUCCESS",
        ip=_client_ip(request),
        meta={"order_id": order_id, "permanent": permanent, "released": released},
    )
    return OrderDeleteResponse(id=order_id, soft_deleted=not permanent, permanent=permanent, released=released)


@router.post("/{order_id}/restore", response_model=OrderResponse)
def restore_order(
    order_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    order = order_service.restore_order(db, current_user, order_id)
    write_log(
        db,
        user_id=current_user.id,
        action="ORDER_RESTORE",
        resource="orders",
        status="SUCCESS",
        ip=_client_ip(request),
        meta={"order_id": order.id},
    )
    return _order_to_out(order)
