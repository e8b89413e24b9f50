# backend/models/order.py
import enum

from sqlalchemy import Column, Integer, Numeric, ForeignKey, DateTime, Enum, CheckConstraint, func
from sqlalchemy.orm import relationship
from database import Base


class OrderStatus(str, enum.Enum):
    DRAFT = "draft"
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED})

# Who may move an order along each edge. "assignee" and "owner" are resolved
# against the order at call time; "admin" is the admin role.
TRANSITIONS = {
    (OrderStatus.DRAFT, OrderStatus.PENDING): {"owner", "admin"},
    (OrderStatus.PENDING, OrderStatus.IN_PROGRESS): {"assignee", "admin"},
    (OrderStatus.IN_PROGRESS, OrderStatus.COMPLETED): {"assignee", "admin"},
    (OrderStatus.DRAFT, OrderStatus.CANCELLED): {"owner", "creator", "admin"},
    (OrderStatus.PENDING, OrderStatus.CANCELLED): {"owner", "creator", "admin"},
    (OrderStatus.IN_PROGRESS, OrderStatus.CANCELLED): {"owner", "creator", "admin"},
}


def allowed_actors(current: OrderStatus, target: OrderStatus):
    """Return the actor kinds allowed on the edge, or None if there is no such edge."""
    return TRANSITIONS.get((OrderStatus(current), OrderStatus(target)))


def is_terminal(status: OrderStatus) -> bool:
    return OrderStatus(status) in TERMINAL_STATUSES


_status_enum = Enum(OrderStatus, values_callable=lambda e: [m.value for m in e], name="order_status")


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    assigned_to_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)

    status = Column(_status_enum, nullable=False, default=OrderStatus.PENDING, index=True)
    total = Column(Numeric(12, 2), nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Soft delete ("trash"); independent of status
    deleted_at = Column(DateTime(timezone=True), nullable=True, index=True)
    deleted_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    items = relationship(
        "OrderItem", back_populates="order", cascade="all, delete-orphan", order_by="OrderItem.id"
    )
    customer = relationship("User", foreign_keys=[customer_id])
    created_by = relationship("User", foreign_keys=[created_by_id])
    assigned_to = relationship("User", foreign_keys=[assigned_to_id])

    @property
    def is_trashed(self) -> bool:
        return self.deleted_at is not None


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    quantity = Column(Integer, CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"), nullable=False)
    # Price captured when the item was created
    unit_price = Column(Numeric(12, 2), nullable=False)

    order = relationship("Order", back_populates="items")
    product = relationship("Product")
