# storefront/data/models/catalog.py
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, ForeignKey, String, DateTime, Numeric, Text
from sqlalchemy.orm import relationship

from storefront.data.database import Base


class ProductModel(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    category_id = Column(Integer, nullable=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)

    base_price = Column(Numeric(12, 2), nullable=False, default=0)
    status = Column(String(20), nullable=False, default="active")  # active, inactive, draft
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    parameter_groups = relationship(
        "ProductParameterGroupModel",
        back_populates="product",
        order_by="ProductParameterGroupModel.id",
        cascade="all, delete-orphan",
    )


class ParameterGroupModel(Base):
    __tablename__ = "parameter_groups"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    internal_name = Column(String, nullable=True)

    parameters = relationship(
        "ParameterModel",
        back_populates="group",
        order_by="ParameterModel.id",
        cascade="all, delete-orphan",
    )


class ParameterModel(Base):
    __tablename__ = "parameters"

    id = Column(Integer, primary_key=True)
    parameter_group_id = Column(
        Integer, ForeignKey("parameter_groups.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String, nullable=False)
    price_modifier = Column(Numeric(12, 2), nullable=False, default=0)

    group = relationship("ParameterGroupModel", back_populates="parameters")


class ProductParameterGroupModel(Base):
    """Product x ParameterGroup join. The same group may be joined more than once."""

    __tablename__ = "product_parameter_groups"

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    parameter_group_id = Column(Integer, ForeignKey("parameter_groups.id", ondelete="CASCADE"), nullable=False)
    default_parameter_id = Column(Integer, ForeignKey("parameters.id", ondelete="SET NULL"), nullable=True)

    product = relationship("ProductModel", back_populates="parameter_groups")
    parameter_group = relationship("ParameterGroupModel")
