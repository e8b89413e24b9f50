# backend/models/assignment.py
from sqlalchemy import Column, Integer, ForeignKey, DateTime, UniqueConstraint, func
from sqlalchemy.orm import relationship
from database import Base


# Links a customer to an employee allowed to handle the customer's orders
class CustomerAssignment(Base):
    __tablename__ = "customer_assignments"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    employee_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    customer = relationship("User", foreign_keys=[customer_id])
    employee = relationship("User", foreign_keys=[employee_id])

    __table_args__ = (
        UniqueConstraint("customer_id", "employee_id", name="uq_customer_assignment_pair"),
    )
