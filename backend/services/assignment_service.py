# backend/services/assignment_service.py
from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from models.assignment import CustomerAssignment
from models.users import Role, User
from utils.errors import Conflict, MappingRequired, NotFound, ValidationError

logger = logging.getLogger(__name__)


def find_assignment(db: Session, *, customer_id: int, employee_id: int) -> Optional[CustomerAssignment]:
    return db.execute(
        select(CustomerAssignment).where(
            CustomerAssignment.customer_id == customer_id,
            CustomerAssignment.employee_id == employee_id,
        )
    ).scalar_one_or_none()


def list_assignments(
    db: Session,
    *,
    customer_id: Optional[int] = None,
    employee_id: Optional[int] = None,
) -> List[CustomerAssignment]:
    query = select(CustomerAssignment).options(
        joinedload(CustomerAssignment.customer),
        joinedload(CustomerAssignment.employee),
    )
    if customer_id is not None:
        query = query.where(CustomerAssignment.customer_id == customer_id)
    if employee_id is not None:
        query = query.where(CustomerAssignment.employee_id == employee_id)
    return list(db.execute(query.order_by(CustomerAssignment.id)).scalars().all())


def _validate_pair(db: Session, customer_id: int, employee_id: int) -> None:
    customer = db.get(User, customer_id)
    employee = db.get(User, employee_id)
    if customer is None or employee is None:
        raise ValidationError("User not found", field="customer_id" if customer is None else "employee_id")
    if customer.role != Role.CUSTOMER:
        raise ValidationError("customer_id must reference a customer", field="customer_id")
    if not employee.can_handle_orders:
        raise ValidationError("employee_id must reference an employee or admin", field="employee_id")


def create_assignment(db: Session, *, customer_id: int, employee_id: int) -> CustomerAssignment:
    """Add the (customer, employee) pair. Flushes but does not commit."""
    _validate_pair(db, customer_id, employee_id)
    if find_assignment(db, customer_id=customer_id, employee_id=employee_id) is not None:
        raise Conflict("Assignment already exists")

    assignment = CustomerAssignment(customer_id=customer_id, employee_id=employee_id)
    db.add(assignment)
    try:
        db.flush()
    except IntegrityError as exc:
        # Lost a race against an identical insert
        raise Conflict("Assignment already exists") from exc
    logger.info("assignment.create customer=%s employee=%s", customer_id, employee_id)
    return assignment


def delete_assignment(db: Session, *, customer_id: int, employee_id: int) -> CustomerAssignment:
    existing = find_assignment(db, customer_id=customer_id, employee_id=employee_id)
    if existing is None:
        raise NotFound("Assignment not found")
    db.delete(existing)
    db.flush()
    logger.info("assignment.delete customer=%s employee=%s", customer_id, employee_id)
    return existing


def ensure_mapping(
    db: Session,
    *,
    customer_id: Optional[int],
    assignee: Optional[User],
    create_mapping: bool = False,
) -> None:
    """Check that an employee assignee is mapped to the order's customer.

    Admin assignees and orders not placed for a customer account need no
    mapping. When the pair is missing, either create it (create_mapping=True,
    inside the caller's transaction) or raise MappingRequired so the client
    can confirm.
    """
    if customer_id is None or assignee is None or assignee.role != Role.EMPLOYEE:
        return
    customer = db.get(User, customer_id)
    if customer is None or customer.role != Role.CUSTOMER:
        return
    if find_assignment(db, customer_id=customer_id, employee_id=assignee.id) is not None:
        return
    if not create_mapping:
        raise MappingRequired(customer_id, assignee.id)
    create_assignment(db, customer_id=customer_id, employee_id=assignee.id)
