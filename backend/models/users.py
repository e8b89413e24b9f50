# backend/models/users.py
import enum

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Integer, String, func
from database import Base


# Closed set of roles understood by the role gate
class Role(str, enum.Enum):
    ADMIN = "admin"
    EMPLOYEE = "employee"
    CUSTOMER = "customer"


# Represents a user account with authentication details and system role
class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    role = Column(Enum(Role, values_callable=lambda e: [m.value for m in e], name="user_role"), nullable=False)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)

    # Admin who created the account (null for self-registered or seeded users)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def can_handle_orders(self) -> bool:
        return self.role in (Role.ADMIN, Role.EMPLOYEE)
