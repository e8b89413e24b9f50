# backend/services/inventory_service.py
"""
Stock primitives. Product.stock is changed only here.

Every function takes the caller's session, never commits, and must be run
inside the caller's `transaction(db)` block so the stock change and its
movement record land (or vanish) together with the rest of the operation.

reserve() is the only guard against overselling: it is a single conditional
UPDATE (stock >= quantity) and relies on the database applying it atomically.
"""
from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from models.inventory import InventoryMovement, MovementType
from models.product import Product
from utils.errors import InsufficientStock, NotFound, ValidationError

logger = logging.getLogger(__name__)


def _require_product(db: Session, product_id: int) -> None:
    found = db.execute(select(Product.id).where(Product.id == product_id)).scalar_one_or_none()
    if found is None:
        raise NotFound(f"Product {product_id} not found")


def _current_stock(db: Session, product_id: int) -> int:
    return int(db.execute(select(Product.stock).where(Product.id == product_id)).scalar_one())


def record_movement(
    db: Session,
    *,
    product_id: int,
    movement_type: MovementType,
    quantity: int,
    meta: Optional[dict] = None,
) -> Optional[InventoryMovement]:
    """Append a movement row inside a savepoint.

    A failed insert only rolls back the savepoint; it is logged and the stock
    change it describes still goes through.
    """
    movement = InventoryMovement(
        product_id=product_id,
        type=movement_type,
        quantity=quantity,
        meta={k: v for k, v in (meta or {}).items() if v is not None},
    )
    try:
        with db.begin_nested():
            db.add(movement)
    except SQLAlchemyError:
        logger.exception("Failed to record %s movement for product %s", movement_type.value, product_id)
        return None
    return movement


def adjust(
    db: Session,
    product_id: int,
    delta: int,
    *,
    reason: Optional[str] = None,
    actor_id: Optional[int] = None,
) -> int:
    """Apply a signed delta to stock. Returns the new stock level."""
    if delta == 0:
        raise ValidationError("Adjustment quantity must be non-zero", field="quantity")
    _require_product(db, product_id)

    try:
        db.execute(
            update(Product)
            .where(Product.id == product_id)
            .values(stock=Product.stock + delta)
            .execution_options(synchronize_session=False)
        )
    except IntegrityError as exc:
        raise ValidationError("Stock cannot go negative", field="quantity") from exc

    record_movement(
        db,
        product_id=product_id,
        movement_type=MovementType.ADJUST,
        quantity=delta,
        meta={"reason": reason, "actor_id": actor_id},
    )
    stock = _current_stock(db, product_id)
    logger.info("inventory.adjust product=%s delta=%s stock=%s", product_id, delta, stock)
    return stock


def reserve(
    db: Session,
    product_id: int,
    quantity: int,
    *,
    order_id: Optional[int] = None,
    actor_id: Optional[int] = None,
) -> int:
    """Take `quantity` units out of stock if, and only if, that many are available."""
    if quantity <= 0:
        raise ValidationError("Quantity must be a positive integer", field="quantity")

    result = db.execute(
        update(Product)
        .where(Product.id == product_id, Product.stock >= quantity)
        .values(stock=Product.stock - quantity)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        _require_product(db, product_id)
        raise InsufficientStock(product_id)

    record_movement(
        db,
        product_id=product_id,
        movement_type=MovementType.RESERVE,
        quantity=quantity,
        meta={"order_id": order_id, "actor_id": actor_id},
    )
    stock = _current_stock(db, product_id)
    logger.info("inventory.reserve product=%s qty=%s order=%s stock=%s", product_id, quantity, order_id, stock)
    return stock


def release(
    db: Session,
    product_id: int,
    quantity: int,
    *,
    order_id: Optional[int] = None,
    actor_id: Optional[int] = None,
) -> int:
    """Put `quantity` units back into stock, undoing an earlier reserve."""
    if quantity <= 0:
        raise ValidationError("Quantity must be a positive integer", field="quantity")
    _require_product(db, product_id)

    db.execute(
        update(Product)
        .where(Product.id == product_id)
        .values(stock=Product.stock + quantity)
        .execution_options(synchronize_session=False)
    )
    record_movement(
        db,
        product_id=product_id,
        movement_type=MovementType.RELEASE,
        quantity=quantity,
        meta={"order_id": order_id, "actor_id": actor_id},
    )
    stock = _current_stock(db, product_id)
    logger.info("inventory.release product=%s qty=%s order=%s stock=%s", product_id, quantity, order_id, stock)
    return stock


def list_movements(
    db: Session,
    *,
    product_id: Optional[int] = None,
    page: int = 1,
    page_size: int = 50,
) -> Tuple[int, List[InventoryMovement]]:
    query = select(InventoryMovement)
    count_query = select(func.count(InventoryMovement.id))
    if product_id is not None:
        query = query.where(InventoryMovement.product_id == product_id)
        count_query = count_query.where(InventoryMovement.product_id == product_id)

    total = db.execute(count_query).scalar_one()
    rows = db.execute(
        query.order_by(InventoryMovement.created_at.desc(), InventoryMovement.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    ).scalars().all()
    return total, list(rows)
