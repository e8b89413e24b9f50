# backend/routes/assignments.py
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from database import get_db, transaction
from models.users import Role, User
from schemas.assignment import AssignmentOut, AssignmentPayload
from services import assignment_service
from utils.audit import write_log
from utils.tokenJWT import role_required

router = APIRouter(prefix="/assignments", tags=["Assignments"])

admin_only = role_required(Role.ADMIN)


def _audit(db: Session, request: Request, user: User, action: str, payload: AssignmentPayload):
    write_log(
        db,
        user_id=user.id,
        action=action,
        resource="assignments",
        status="SUCCESS",
        ip=request.client.host if request.client else None,
        meta={"customer_id": payload.customer_id, "employee_id": payload.employee_id},
    )


@router.get("", response_model=List[AssignmentOut])
def list_assignments(
    customer_id: Optional[int] = Query(None, alias="customerId"),
    employee_id: Optional[int] = Query(None, alias="employeeId"),
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    return assignment_service.list_assignments(db, customer_id=customer_id, employee_id=employee_id)


# Map a customer to an employee allowed to handle their orders
@router.post("", response_model=AssignmentOut, status_code=201)
def create_assignment(
    payload: AssignmentPayload,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    with transaction(db):
        assignment = assignment_service.create_assignment(
            db, customer_id=payload.customer_id, employee_id=payload.employee_id
        )
    _audit(db, request, current_user, "ASSIGNMENT_CREATE", payload)
    return assignment


@router.delete("")
def delete_assignment(
    payload: AssignmentPayload,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    with transaction(db):
        assignment_service.delete_assignment(db, customer_id=payload.customer_id, employee_id=payload.employee_id)
    _audit(db, request, current_user, "ASSIGNMENT_DELETE", payload)
    return {"ok": True}
