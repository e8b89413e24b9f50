# backend/routes/logs.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.orm import Session
from typing import List, Optional, Any
from datetime import datetime
from pydantic import BaseModel, ConfigDict

from database import get_db
from models.log import Log
from models.users import Role, User
from utils.errors import ValidationError
from utils.tokenJWT import role_required

router = APIRouter(prefix="/logs", tags=["Logs"])


# --- SCHEMAS ---
class LogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: Optional[int] = None
    action: str
    resource: str
    status: str
    ip: Optional[str] = None
    ts: Optional[datetime] = None
    meta: Optional[Any] = None


class LogPage(BaseModel):
    items: List[LogResponse]
    total: int
    page: int
    page_size: int


def _parse_day(value: str, field: str, end_of_day: bool = False) -> datetime:
    text = value
    # Cover the whole closing day when only a date is given
    if end_of_day and len(text) == 10:
        text += " 23:59:59"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        raise ValidationError(f"Invalid date: {value}", field=field) from None


# --- ENDPOINT ---
@router.get("", response_model=LogPage)
def get_logs(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    action: Optional[str] = Query(None, description="Filter by action"),
    user_id: Optional[int] = Query(None, description="Filter by user ID"),
    resource: Optional[str] = Query(None, description="Filter by resource"),
    status: Optional[str] = Query(None, description="Filter by status (SUCCESS/FAIL)"),
    date_from: Optional[str] = Query(None, description="From date (YYYY-MM-DD)"),
    date_to: Optional[str] = Query(None, description="To date (YYYY-MM-DD)"),
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(Role.ADMIN)),
):
    conditions = []
    if action:
        conditions.append(Log.action.ilike(f"%{action}%"))
    if user_id is not None:
        conditions.append(Log.user_id == user_id)
    if resource:
        conditions.append(Log.resource.ilike(f"%{resource}%"))
    if status:
        conditions.append(Log.status == status)
    if date_from:
        conditions.append(Log.ts >= _parse_day(date_from, "date_from"))
    if date_to:
        conditions.append(Log.ts <= _parse_day(date_to, "date_to", end_of_day=True))

    total = db.execute(select(func.count(Log.id)).where(*conditions)).scalar_one()
    logs = db.execute(
        select(Log).where(*conditions)
        .order_by(Log.ts.desc(), Log.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    ).scalars().all()

    return {
        "items": logs,
        "total": total,
        "page": page,
        "page_size": page_size,
    }
