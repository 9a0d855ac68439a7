# storefront/data/models/cart.py
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, DateTime, Index, CheckConstraint, text
from sqlalchemy.orm import relationship

from storefront.data.database import Base

CART_ACTIVE = "active"
CART_CHECKED_OUT = "checked_out"
CART_MERGED = "merged"


class CartModel(Base):
    __tablename__ = "carts"

    id = Column(Integer, primary_key=True)
    #owner: user or guest session, never both
    user_id = Column(Integer, nullable=True)
    session_id = Column(String(128), nullable=True)

    status = Column(String(20), nullable=False, default=CART_ACTIVE)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    items = relationship(
        "CartItemModel",
        back_populates="cart",
        order_by="CartItemModel.id",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint(
            "(user_id IS NULL) <> (session_id IS NULL)",
            name="ck_cart_single_owner",
        ),
        #at most one active cart per owner
        Index(
            "uq_active_cart_user",
            "user_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
        Index(
            "uq_active_cart_session",
            "session_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )
