# backend/models/product.py
from sqlalchemy import Column, Integer, String, Numeric, CheckConstraint, DateTime, func
from database import Base


# Single catalogue entry and the ledger of its current stock.
# stock is only ever written through services.inventory_service.
class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    sku = Column(String, unique=True, nullable=True, index=True)

    price = Column(Numeric(12, 2), CheckConstraint("price >= 0", name="ck_products_price_non_negative"), nullable=False)
    stock = Column(Integer, CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"), nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
