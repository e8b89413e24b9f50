# backend/routes/admin.py
from fastapi import APIRouter, Depends, Query, Request
from typing import List, Optional, Literal
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from pydantic import BaseModel

from database import get_db, transaction
from models.users import Role, User
from utils.tokenJWT import role_required
from utils.audit import write_log
from utils.errors import Conflict, NotFound, ValidationError
from utils.hashing import get_password_hash
from schemas.user import RoleUpdate, UserCreate, UserResponse

router = APIRouter(tags=["Admin"])

admin_only = role_required(Role.ADMIN)


# Schema for paginated user list response
class PaginatedUsersResponse(BaseModel):
    items: List[UserResponse]
    total: int
    page: int
    page_size: int


# Retrieve a list of users with filtering, sorting, and pagination (Admin only)
@router.get("/users", response_model=PaginatedUsersResponse)
def get_all_users(
    q: Optional[str] = Query(None, description="Search by email"),
    role: Optional[Role] = Query(None, description="Filter by role"),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    sort_by: Literal["id", "email", "role", "first_name", "last_name"] = "id",
    order: Literal["asc", "desc"] = "asc",
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    query = select(User)
    count_query = select(func.count(User.id))

    # Filter by email
    if q:
        like = f"%{q.lower()}%"
        query = query.where(User.email.ilike(like))
        count_query = count_query.where(User.email.ilike(like))

    if role is not None:
        query = query.where(User.role == role)
        count_query = count_query.where(User.role == role)

    sort_map = {
        "id": User.id,
        "email": User.email,
        "role": User.role,
        "first_name": User.first_name,
        "last_name": User.last_name,
    }
    col = sort_map.get(sort_by, User.id)
    query = query.order_by(col.asc() if order == "asc" else col.desc())

    total = db.execute(count_query).scalar_one()
    users = db.execute(query.offset((page - 1) * page_size).limit(page_size)).scalars().all()

    return {
        "items": users,
        "total": total,
        "page": page,
        "page_size": page_size,
    }


# Create an employee, customer or admin account (Admin only)
@router.post("/users", response_model=UserResponse, status_code=201)
def create_user(
    payload: UserCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    email = payload.email.strip().lower()
    existing = db.execute(select(User.id).where(func.lower(User.email) == email)).first()
    if existing is not None:
        raise Conflict("Email already registered")

    user = User(
        email=email,
        password_hash=get_password_hash(payload.password),
        role=payload.role,
        first_name=payload.first_name,
        last_name=payload.last_name,
        created_by_id=current_user.id,
    )
    try:
        with transaction(db):
            db.add(user)
            db.flush()
    except IntegrityError as exc:
        raise Conflict("Email already registered") from exc

    write_log(
        db,
        user_id=current_user.id,
        action="USER_CREATE",
        resource="users",
        status="SUCCESS",
        ip=request.client.host if request.client else None,
        meta={"created_user_id": user.id, "role": user.role.value},
    )
    return user


# Update user role (Admin only)
@router.put("/users/{user_id}/role", response_model=UserResponse)
def update_user_role(
    user_id: int,
    new_role: RoleUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    user = db.get(User, user_id)
    if not user:
        raise NotFound("User not found")
    if user.id == current_user.id and new_role.role != Role.ADMIN:
        raise ValidationError("You cannot remove your own admin role", field="role")

    with transaction(db):
        user.role = new_role.role

    write_log(
        db,
        user_id=current_user.id,
        action="USER_ROLE_CHANGE",
        resource="users",
        status="SUCCESS",
        ip=request.client.host if request.client else None,
        meta={"target_user_id": user.id, "role": user.role.value},
    )
    return user
