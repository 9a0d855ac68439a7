# storefront/data/models/order.py
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, ForeignKey, String, DateTime, Numeric, JSON

from storefront.data.database import Base


class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    cart_id = Column(Integer, ForeignKey("carts.id"), nullable=False, unique=True)
    user_id = Column(Integer, nullable=True, index=True)  # null for guest checkout

    name = Column(String, nullable=False)
    phone = Column(String(32), nullable=False)
    secondary_phone = Column(String(32), nullable=True)
    address = Column(String, nullable=False)

    status = Column(String(20), nullable=False, default="pending")  # pending, processing, shipped, completed, cancelled
    version = Column(Integer, nullable=False, default=1)
    total_price = Column(Numeric(12, 2), nullable=False)
    #lines as they were priced at checkout, never recomputed
    items_snapshot = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
