# backend/services/order_service.py
"""
Order lifecycle: creation, editing, the role-gated status machine, cancel,
trash/restore and permanent delete.

Stock is committed while an order exists in an active (non-draft,
non-cancelled) state: creating or publishing reserves every item, cancelling
or permanently deleting releases them. The reserve/release calls and the
order row changes always share one transaction.

Status writes go through a compare-and-set UPDATE so two requests racing on
the same order cannot both act on the same starting state (and so cannot
both release its stock).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Set

from sqlalchemy import select, update
from sqlalchemy.orm import Session, selectinload

from database import transaction
from models.assignment import CustomerAssignment
from models.order import Order, OrderItem, OrderStatus, allowed_actors, is_terminal
from models.product import Product
from models.users import Role, User
from services import inventory_service
from services.assignment_service import ensure_mapping
from utils.errors import Forbidden, InsufficientStock, InvalidTransition, NotFound, ValidationError

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

# Marks an optional argument the caller did not send at all (as opposed to null)
UNSET = object()


@dataclass(frozen=True)
class ItemRequest:
    product_id: int
    quantity: int


def money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


# --------------------------------------------------------------------------
# Loading and validation helpers
# --------------------------------------------------------------------------

def _order_query():
    return select(Order).options(
        selectinload(Order.items).selectinload(OrderItem.product),
    )


def _get_order(db: Session, order_id: int) -> Order:
    order = db.execute(
        _order_query().where(Order.id == order_id).execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if order is None:
        raise NotFound("Order not found")
    return order


def normalize_items(items: Iterable[ItemRequest]) -> List[ItemRequest]:
    """Validate quantities and merge repeated products, keeping first-seen order."""
    merged: Dict[int, int] = {}
    for idx, item in enumerate(items):
        qty = item.quantity
        if isinstance(qty, bool) or not isinstance(qty, int) or qty <= 0:
            raise ValidationError(
                f"Invalid quantity for product {item.product_id}", field=f"items[{idx}].quantity"
            )
        merged[item.product_id] = merged.get(item.product_id, 0) + qty
    if not merged:
        raise ValidationError("Order must contain at least one item", field="items")
    return [ItemRequest(product_id=pid, quantity=qty) for pid, qty in merged.items()]


def _load_products(db: Session, lines: Sequence[ItemRequest]) -> Dict[int, Product]:
    ids = [line.product_id for line in lines]
    # Stock is written with bulk UPDATEs, so never trust the identity map copy
    query = select(Product).where(Product.id.in_(ids)).execution_options(populate_existing=True)
    products = {p.id: p for p in db.execute(query).scalars().all()}
    for idx, line in enumerate(lines):
        if line.product_id not in products:
            raise ValidationError(f"Product {line.product_id} not found", field=f"items[{idx}].product_id")
    return products


def _precheck_stock(lines: Sequence[ItemRequest], products: Dict[int, Product]) -> None:
    # Fail fast; the authoritative check is the conditional update in reserve()
    for line in lines:
        if products[line.product_id].stock < line.quantity:
            raise InsufficientStock(line.product_id)


def _load_assignee(db: Session, user_id: int) -> User:
    assignee = db.get(User, user_id)
    if assignee is None:
        raise ValidationError("Assigned user not found", field="assigned_to_id")
    if not assignee.can_handle_orders:
        raise ValidationError("Assignee must be an employee or admin", field="assigned_to_id")
    return assignee


def _load_customer(db: Session, user_id: int) -> User:
    customer = db.get(User, user_id)
    if customer is None:
        raise ValidationError("Customer not found", field="customer_id")
    return customer


def parse_status(value) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        raise ValidationError(f"Invalid status: {value}", field="status") from None


def _actor_kinds(actor: User, order: Order) -> Set[str]:
    kinds = set()
    if actor.is_admin:
        kinds.add("admin")
    if order.customer_id is not None and actor.id == order.customer_id:
        kinds.add("owner")
    if actor.id == order.created_by_id:
        kinds.add("creator")
    if order.assigned_to_id is not None and actor.id == order.assigned_to_id:
        kinds.add("assignee")
    return kinds


def _ensure_mutable(order: Order) -> None:
    if is_terminal(order.status):
        raise InvalidTransition(f"Order is {order.status.value}; no further changes allowed")


def check_transition(order: Order, actor: User, target: OrderStatus) -> None:
    """Raise unless `actor` may move `order` to `target` right now."""
    _ensure_mutable(order)
    allowed = allowed_actors(order.status, target)
    if allowed is None:
        raise InvalidTransition(f"Cannot move order from {order.status.value} to {target.value}")
    if not allowed & _actor_kinds(actor, order):
        if "assignee" in allowed and actor.role == Role.EMPLOYEE:
            raise Forbidden("You must be assigned to this order")
        raise Forbidden("Not allowed to change this order")
    if order.status == OrderStatus.DRAFT and target == OrderStatus.PENDING and order.customer_id is None:
        raise InvalidTransition("A draft needs a customer before it can be published")


def _set_status(db: Session, order: Order, new_status: OrderStatus) -> None:
    expected = order.status
    result = db.execute(
        update(Order)
        .where(Order.id == order.id, Order.status == expected)
        .values(status=new_status)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise InvalidTransition("Order was modified by another request; reload and retry")
    order.status = new_status


def _active_status(order: Order) -> OrderStatus:
    return OrderStatus.IN_PROGRESS if order.assigned_to_id else OrderStatus.PENDING


def _build_items(order: Order, lines: Sequence[ItemRequest], products: Dict[int, Product]) -> None:
    total = Decimal("0")
    for line in lines:
        price = money(products[line.product_id].price)
        order.items.append(OrderItem(product_id=line.product_id, quantity=line.quantity, unit_price=price))
        total += price * line.quantity
    order.total = money(total)


def _reserve_items(db: Session, order: Order, actor: User) -> None:
    for item in order.items:
        inventory_service.reserve(db, item.product_id, item.quantity, order_id=order.id, actor_id=actor.id)


def _release_items(db: Session, order: Order, actor: User) -> None:
    for item in order.items:
        inventory_service.release(db, item.product_id, item.quantity, order_id=order.id, actor_id=actor.id)


# --------------------------------------------------------------------------
# Queries
# --------------------------------------------------------------------------

def list_orders(db: Session, actor: User, *, include_deleted: bool = False) -> List[Order]:
    query = _order_query()
    if actor.role == Role.EMPLOYEE:
        query = query.where(Order.assigned_to_id == actor.id)
    elif actor.role == Role.CUSTOMER:
        query = query.where(Order.customer_id == actor.id)
    if not include_deleted:
        query = query.where(Order.deleted_at.is_(None))
    query = query.order_by(Order.created_at.desc(), Order.id.desc())
    return list(db.execute(query).scalars().all())


def can_view(db: Session, actor: User, order: Order) -> bool:
    if actor.is_admin:
        return True
    if actor.role == Role.CUSTOMER:
        return actor.id in (order.customer_id, order.created_by_id)
    if order.assigned_to_id == actor.id:
        return True
    if order.customer_id is None:
        return False
    mapped = db.execute(
        select(CustomerAssignment.id).where(
            CustomerAssignment.customer_id == order.customer_id,
            CustomerAssignment.employee_id == actor.id,
        )
    ).first()
    return mapped is not None


def get_order(db: Session, actor: User, order_id: int) -> Order:
    order = _get_order(db, order_id)
    if not can_view(db, actor, order):
        raise NotFound("Order not found")
    return order


# --------------------------------------------------------------------------
# Commands
# --------------------------------------------------------------------------

def create_order(
    db: Session,
    actor: User,
    items: Iterable[ItemRequest],
    *,
    assigned_to_id: Optional[int] = None,
    customer_id: Optional[int] = None,
    draft: bool = False,
    create_mapping: bool = False,
) -> Order:
    if assigned_to_id is not None and not actor.is_admin:
        raise Forbidden("Only admins can assign orders")

    lines = normalize_items(items)
    products = _load_products(db, lines)
    if not draft:
        _precheck_stock(lines, products)

    assignee = None
    if assigned_to_id is not None:
        assignee = _load_assignee(db, assigned_to_id)

    owner_id = actor.id
    if actor.is_admin and customer_id is not None:
        owner_id = _load_customer(db, customer_id).id

    with transaction(db):
        ensure_mapping(db, customer_id=owner_id, assignee=assignee, create_mapping=create_mapping)

        # Authoritative prices come from inside the transaction
        fresh = _load_products(db, lines)
        order = Order(
            customer_id=owner_id,
            created_by_id=actor.id,
            assigned_to_id=assignee.id if assignee else None,
        )
        order.status = OrderStatus.DRAFT if draft else _active_status(order)
        _build_items(order, lines, fresh)
        db.add(order)
        db.flush()

        if not draft:
            _reserve_items(db, order, actor)

    logger.info(
        "order.create id=%s by=%s status=%s items=%s total=%s",
        order.id, actor.id, order.status.value, len(order.items), order.total,
    )
    return _get_order(db, order.id)


def update_order(
    db: Session,
    actor: User,
    order_id: int,
    *,
    items: Optional[Iterable[ItemRequest]] = None,
    assigned_to_id=UNSET,
    customer_id=UNSET,
    status: Optional[str] = None,
    create_mapping: bool = False,
) -> Order:
    """Edit an order: replace its items, publish or keep a draft, and (admin
    only) change its customer or assignee."""
    order = _get_order(db, order_id)
    if order.is_trashed:
        raise InvalidTransition("Order is in the trash")
    _ensure_mutable(order)

    if actor.role == Role.EMPLOYEE:
        raise Forbidden("Only admins or the customer can edit orders")
    if actor.role == Role.CUSTOMER and order.customer_id != actor.id:
        raise Forbidden("Not allowed to edit this order")
    if not actor.is_admin and (assigned_to_id is not UNSET or customer_id is not UNSET):
        raise Forbidden("Only admins can change the customer or assignee")

    target = parse_status(status) if status is not None else None
    if target is not None and target not in (OrderStatus.DRAFT, OrderStatus.PENDING):
        raise InvalidTransition("Use the status endpoint for this transition")
    if target == OrderStatus.DRAFT and order.status != OrderStatus.DRAFT:
        raise InvalidTransition("An active order cannot return to draft")
    if target == OrderStatus.PENDING and order.status not in (OrderStatus.DRAFT, OrderStatus.PENDING):
        raise InvalidTransition(f"Cannot move order from {order.status.value} to pending")
    publishing = order.status == OrderStatus.DRAFT and target == OrderStatus.PENDING
    was_active = order.status != OrderStatus.DRAFT

    lines = None
    if items is not None:
        if was_active and not actor.is_admin:
            raise InvalidTransition("Only draft orders can be edited")
        lines = normalize_items(items)
        products = _load_products(db, lines)
        if publishing:
            _precheck_stock(lines, products)
    elif publishing:
        _precheck_stock(
            [ItemRequest(it.product_id, it.quantity) for it in order.items],
            {it.product_id: it.product for it in order.items},
        )

    assignee = None
    if assigned_to_id is not UNSET and assigned_to_id is not None:
        assignee = _load_assignee(db, assigned_to_id)
    if customer_id is not UNSET and customer_id is not None:
        _load_customer(db, customer_id)

    with transaction(db):
        if customer_id is not UNSET:
            order.customer_id = customer_id
        if assigned_to_id is not UNSET:
            order.assigned_to_id = assigned_to_id
        if assigned_to_id is not UNSET or customer_id is not UNSET:
            current_assignee = assignee or (db.get(User, order.assigned_to_id) if order.assigned_to_id else None)
            ensure_mapping(db, customer_id=order.customer_id, assignee=current_assignee, create_mapping=create_mapping)

        if lines is not None:
            if was_active:
                _release_items(db, order, actor)
            order.items.clear()
            db.flush()
            _build_items(order, lines, _load_products(db, lines))
            db.flush()
            if was_active:
                _reserve_items(db, order, actor)

        if publishing:
            check_transition(order, actor, OrderStatus.PENDING)
            _set_status(db, order, _active_status(order))
            _reserve_items(db, order, actor)
        elif was_active and assigned_to_id is not UNSET:
            _set_status(db, order, _active_status(order))

    logger.info("order.update id=%s by=%s status=%s", order.id, actor.id, order.status.value)
    return _get_order(db, order.id)


def change_status(db: Session, actor: User, order_id: int, status) -> Order:
    target = parse_status(status)
    if target == OrderStatus.CANCELLED:
        return cancel_order(db, actor, order_id)

    order = _get_order(db, order_id)
    if order.is_trashed:
        raise InvalidTransition("Order is in the trash")
    check_transition(order, actor, target)
    previous = order.status
    publishing = previous == OrderStatus.DRAFT
    if publishing:
        _precheck_stock(
            [ItemRequest(it.product_id, it.quantity) for it in order.items],
            {it.product_id: it.product for it in order.items},
        )
        # A draft that already has an assignee goes straight to work
        target = _active_status(order)

    with transaction(db):
        _set_status(db, order, target)
        if publishing:
            _reserve_items(db, order, actor)

    logger.info("order.status_change id=%s by=%s from=%s to=%s", order.id, actor.id, previous.value, target.value)
    return _get_order(db, order.id)


def cancel_order(db: Session, actor: User, order_id: int) -> Order:
    order = _get_order(db, order_id)
    if not (actor.is_admin or actor.id in (order.created_by_id, order.customer_id)):
        raise Forbidden("Not allowed to cancel this order")
    if order.status == OrderStatus.CANCELLED:
        raise InvalidTransition("Order is already cancelled")
    check_transition(order, actor, OrderStatus.CANCELLED)

    held_stock = order.status != OrderStatus.DRAFT
    with transaction(db):
        _set_status(db, order, OrderStatus.CANCELLED)
        if held_stock:
            _release_items(db, order, actor)

    logger.info("order.cancel id=%s by=%s released=%s", order.id, actor.id, held_stock)
    return _get_order(db, order.id)


def assign_order(
    db: Session,
    actor: User,
    order_id: int,
    assigned_to_id: Optional[int],
    *,
    create_mapping: bool = False,
) -> Order:
    """Set or clear the assignee. Stock is untouched: it follows the order,
    not the person handling it."""
    if not actor.is_admin:
        raise Forbidden("Only admins can reassign orders")
    order = _get_order(db, order_id)
    _ensure_mutable(order)
    assignee = _load_assignee(db, assigned_to_id) if assigned_to_id is not None else None

    with transaction(db):
        ensure_mapping(db, customer_id=order.customer_id, assignee=assignee, create_mapping=create_mapping)
        order.assigned_to_id = assignee.id if assignee else None
        if order.status != OrderStatus.DRAFT:
            _set_status(db, order, _active_status(order))
        else:
            # Guards against a concurrent cancel of the draft
            _set_status(db, order, OrderStatus.DRAFT)

    logger.info("order.assign id=%s by=%s assigned_to=%s", order.id, actor.id, order.assigned_to_id)
    return _get_order(db, order.id)


def delete_order(db: Session, actor: User, order_id: int, *, permanent: bool = False) -> bool:
    """Trash an order, or remove it for good. Returns True when the order
    held stock that was released."""
    order = _get_order(db, order_id)
    if not actor.is_admin:
        if order.customer_id != actor.id or order.status != OrderStatus.DRAFT:
            raise Forbidden("Customers can only delete their own draft orders")

    if not permanent:
        with transaction(db):
            order.deleted_at = datetime.now(timezone.utc)
            order.deleted_by_id = actor.id
        logger.info("order.trash id=%s by=%s", order.id, actor.id)
        return False

    # Cancelled orders gave their stock back when they were cancelled
    held_stock = order.status not in (OrderStatus.DRAFT, OrderStatus.CANCELLED)
    with transaction(db):
        if held_stock:
            _set_status(db, order, OrderStatus.CANCELLED)
            _release_items(db, order, actor)
        db.delete(order)

    logger.info("order.delete id=%s by=%s permanent=True released=%s", order_id, actor.id, held_stock)
    return held_stock


def restore_order(db: Session, actor: User, order_id: int) -> Order:
    if not actor.is_admin:
        raise Forbidden("Only admins can restore orders")
    order = _get_order(db, order_id)
    if not order.is_trashed:
        raise InvalidTransition("Order is not in the trash")
    with transaction(db):
        order.deleted_at = None
        order.deleted_by_id = None
    logger.info("order.restore id=%s by=%s", order.id, actor.id)
    return _get_order(db, order.id)
