# backend/routes/products.py
from typing import Optional
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from database import get_db, transaction
from utils.tokenJWT import get_current_user, role_required
from utils.audit import write_log
from utils.errors import Conflict, NotFound
from models.users import Role, User
from models.order import OrderItem
from models.product import Product
import schemas.product as product_schemas

router = APIRouter(tags=["Products"])

admin_only = role_required(Role.ADMIN)


# ---- HELPERS ----
def _norm_sku(sku: Optional[str]) -> Optional[str]:
    if sku is None:
        return None
    s = sku.strip().upper()
    return s if s else None


def _get_product(db: Session, product_id: int) -> Product:
    product = db.get(Product, product_id)
    if product is None:
        raise NotFound("Product not found")
    return product


def _ensure_sku_free(db: Session, sku: Optional[str], exclude_id: Optional[int] = None):
    if sku is None:
        return
    query = select(Product.id).where(Product.sku == sku)
    if exclude_id is not None:
        query = query.where(Product.id != exclude_id)
    if db.execute(query).first() is not None:
        raise Conflict(f"SKU {sku} is already in use")


def _audit(db: Session, request: Request, user: User, action: str, meta: dict):
    write_log(
        db,
        user_id=user.id,
        action=action,
        resource="products",
        status="SUCCESS",
        ip=request.client.host if request.client else None,
        meta=meta,
    )


# List products with optional name/SKU search
@router.get("/products", response_model=product_schemas.ProductList)
def list_products(
    q: Optional[str] = Query(None, description="Search by name or SKU"),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    query = select(Product)
    count_query = select(func.count(Product.id))
    if q:
        like = f"%{q}%"
        cond = or_(Product.name.ilike(like), Product.sku.ilike(like))
        query = query.where(cond)
        count_query = count_query.where(cond)

    total = db.execute(count_query).scalar_one()
    items = db.execute(
        query.order_by(Product.name, Product.id).offset((page - 1) * page_size).limit(page_size)
    ).scalars().all()
    return {"items": items, "total": total}


@router.get("/products/{product_id}", response_model=product_schemas.ProductOut)
def get_product(
    product_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return _get_product(db, product_id)


@router.post("/products", response_model=product_schemas.ProductOut, status_code=201)
def create_product(
    payload: product_schemas.ProductCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    sku = _norm_sku(payload.sku)
    _ensure_sku_free(db, sku)

    product = Product(name=payload.name.strip(), sku=sku, price=payload.price, stock=payload.stock)
    try:
        with transaction(db):
            db.add(product)
            db.flush()
    except IntegrityError as exc:
        raise Conflict("Product conflicts with an existing one") from exc

    _audit(db, request, current_user, "PRODUCT_CREATE", {"product_id": product.id, "sku": sku})
    return product


# Name/SKU/price only; stock goes through /inventory
@router.put("/products/{product_id}", response_model=product_schemas.ProductOut)
def update_product(
    product_id: int,
    payload: product_schemas.ProductUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    product = _get_product(db, product_id)
    data = payload.model_dump(exclude_unset=True)
    if "sku" in data:
        data["sku"] = _norm_sku(data["sku"])
        _ensure_sku_free(db, data["sku"], exclude_id=product.id)
    if data.get("name") is not None:
        data["name"] = data["name"].strip()

    try:
        with transaction(db):
            for field, value in data.items():
                if field in ("name", "price") and value is None:
                    continue
                setattr(product, field, value)
            db.flush()
    except IntegrityError as exc:
        raise Conflict("Product conflicts with an existing one") from exc

    _audit(db, request, current_user, "PRODUCT_UPDATE", {"product_id": product.id, "fields": sorted(data)})
    return product


@router.delete("/products/{product_id}")
def delete_product(
    product_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    product = _get_product(db, product_id)
    referenced = db.execute(select(OrderItem.id).where(OrderItem.product_id == product.id)).first()
    if referenced is not None:
        raise Conflict("Product is used by existing orders")

    try:
        with transaction(db):
            db.delete(product)
            db.flush()
    except IntegrityError as exc:
        raise Conflict("Product is still referenced") from exc

    _audit(db, request, current_user, "PRODUCT_DELETE", {"product_id": product_id})
    return {"ok": True, "id": product_id}
