# backend/models/log.py
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, JSON, func
from sqlalchemy.orm import relationship
from database import Base


# Administrative audit trail: who did what to which resource.
# Stock changes have their own trail in inventory_movements.
class Log(Base):
    __tablename__ = "logs"

    id = Column(Integer, primary_key=True, index=True)
    ts = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    # Survives deletion of the acting user
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    # e.g. ORDER_CANCEL / orders, STOCK_ADJUST / inventory, LOGIN / auth
    action = Column(String(50), nullable=False, index=True)
    resource = Column(String(50), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="SUCCESS", index=True)
    ip = Column(String(64), nullable=True)

    # order_id, product_id, quantities, ...
    meta = Column(JSON, nullable=True)

    user = relationship("User", lazy="joined", uselist=False)

    __table_args__ = (
        Index("ix_logs_resource_ts", "resource", "ts"),
    )
