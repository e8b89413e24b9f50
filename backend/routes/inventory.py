# backend/routes/inventory.py
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session
from typing import Optional

from database import get_db, transaction
from models.users import Role, User
from utils.tokenJWT import get_current_user, role_required
from utils.audit import write_log
from services import inventory_service
import schemas.inventory as inventory_schemas

router = APIRouter(prefix="/inventory", tags=["Inventory"])

admin_only = role_required(Role.ADMIN)


def _audit(db: Session, request: Request, user: User, action: str, meta: dict):
    write_log(
        db,
        user_id=user.id,
        action=action,
        resource="inventory",
        status="SUCCESS",
        ip=request.client.host if request.client else None,
        meta=meta,
    )


# Manual correction of a product's stock (signed quantity)
@router.post("/adjust", response_model=inventory_schemas.StockResult)
def adjust_stock(
    payload: inventory_schemas.AdjustPayload,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    with transaction(db):
        stock = inventory_service.adjust(
            db, payload.product_id, payload.quantity, reason=payload.reason, actor_id=current_user.id
        )
    _audit(db, request, current_user, "STOCK_ADJUST",
           {"product_id": payload.product_id, "quantity": payload.quantity, "reason": payload.reason})
    return {"product_id": payload.product_id, "stock": stock}


@router.post("/reserve", response_model=inventory_schemas.StockResult)
def reserve_stock(
    payload: inventory_schemas.ReservationPayload,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    with transaction(db):
        stock = inventory_service.reserve(
            db, payload.product_id, payload.quantity, order_id=payload.order_id, actor_id=current_user.id
        )
    _audit(db, request, current_user, "STOCK_RESERVE",
           {"product_id": payload.product_id, "quantity": payload.quantity, "order_id": payload.order_id})
    return {"product_id": payload.product_id, "stock": stock}


@router.post("/release", response_model=inventory_schemas.StockResult)
def release_stock(
    payload: inventory_schemas.ReservationPayload,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    with transaction(db):
        stock = inventory_service.release(
            db, payload.product_id, payload.quantity, order_id=payload.order_id, actor_id=current_user.id
        )
    _audit(db, request, current_user, "STOCK_RELEASE",
           {"product_id": payload.product_id, "quantity": payload.quantity, "order_id": payload.order_id})
    return {"product_id": payload.product_id, "stock": stock}


# Movement history, newest first
@router.get("/logs", response_model=inventory_schemas.MovementPage)
def list_movements(
    product_id: Optional[int] = Query(None, alias="productId"),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(Role.ADMIN, Role.EMPLOYEE)),
):
    total, rows = inventory_service.list_movements(db, product_id=product_id, page=page, page_size=page_size)
    return {"items": rows, "total": total, "page": page, "page_size": page_size}
