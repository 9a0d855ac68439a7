# storefront/data/models/special.py
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, ForeignKey, String, DateTime, Numeric, Text, JSON
from sqlalchemy.orm import relationship

from storefront.data.database import Base


class SpecialModel(Base):
    __tablename__ = "specials"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)

    discounted_price = Column(Numeric(12, 2), nullable=False)
    status = Column(String(20), nullable=False, default="active")
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    items = relationship(
        "SpecialItemModel",
        back_populates="special",
        order_by="SpecialItemModel.id",
        cascade="all, delete-orphan",
    )


class SpecialItemModel(Base):
    __tablename__ = "special_items"

    id = Column(Integer, primary_key=True)
    special_id = Column(Integer, ForeignKey("specials.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)

    quantity = Column(Integer, nullable=False, default=1)
    #fixed by the admin, copied onto every cart line created from this item
    selected_parameters = Column(JSON, nullable=True)

    special = relationship("SpecialModel", back_populates="items")
