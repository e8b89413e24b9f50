# backend/models/inventory.py
import enum

from sqlalchemy import Column, Integer, ForeignKey, DateTime, Enum, JSON, func
from sqlalchemy.orm import relationship
from database import Base


class MovementType(str, enum.Enum):
    ADJUST = "adjust"
    RESERVE = "reserve"
    RELEASE = "release"


# Append-only record of every stock change; a product with history cannot be deleted
class InventoryMovement(Base):
    __tablename__ = "inventory_movements"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="RESTRICT"), nullable=False, index=True)
    type = Column(Enum(MovementType, values_callable=lambda e: [m.value for m in e], name="movement_type"), nullable=False)

    # Signed delta for adjust, positive amount for reserve/release
    quantity = Column(Integer, nullable=False)

    # reason / order_id / actor_id
    meta = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    product = relationship("Product")
