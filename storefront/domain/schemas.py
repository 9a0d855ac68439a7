# storefront/domain/schemas.py
from pydantic import BaseModel, Field, ConfigDict
from typing import Dict, List, Optional
from decimal import Decimal
from datetime import datetime


# carts
class ItemIn(BaseModel):
    """Adding a configured product to the cart."""

    product_id: int = Field(..., gt=0, description="Product id (> 0)")
    quantity: int = Field(..., gt=0, description="Quantity (> 0)")
    selected_parameters: Optional[Dict[int, int]] = Field(
        None, description="parameter group id -> parameter id; omitted means the product defaults"
    )


class ItemUpdateIn(BaseModel):
    """Partial update of one cart line."""

    quantity: Optional[int] = Field(None, gt=0)
    selected_parameters: Optional[Dict[int, int]] = None


class BundleIn(BaseModel):
    special_id: int = Field(..., gt=0)


class MergeIn(BaseModel):
    """Sent on login/registration: move the guest cart into the user's cart."""

    session_id: str = Field(..., min_length=1, max_length=128)
    user_id: int = Field(..., gt=0)


class CartItemOut(BaseModel):
    id: int
    product_id: int
    product_name: Optional[str] = None
    quantity: int
    selected_parameters: Dict[int, int]
    special_id: Optional[int] = None
    unit_price: Decimal
    line_total: Decimal


class BundleOut(BaseModel):
    special_id: int
    name: str
    discounted_price: Decimal
    subtotal: Decimal


class CartOut(BaseModel):
    cart_id: int
    user_id: Optional[int] = None
    session_id: Optional[str] = None
    status: str
    version: int
    items: List[CartItemOut]
    bundles: List[BundleOut] = []
    total: Decimal

    model_config = ConfigDict(from_attributes=True)


# orders
class OrderCreate(BaseModel):
    cart_id: int = Field(..., gt=0)
    name: str = Field(..., min_length=1, max_length=200)
    phone: str = Field(..., min_length=6, max_length=32)
    address: str = Field(..., min_length=1)
    secondary_phone: Optional[str] = Field(None, max_length=32)


class OrderUpdateIn(BaseModel):
    """Admin edit of contact data; only the fields sent are changed."""

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    phone: Optional[str] = Field(None, max_length=32)
    secondary_phone: Optional[str] = Field(None, max_length=32)
    address: Optional[str] = Field(None, min_length=1)


class OrderStatusIn(BaseModel):
    status: str = Field(..., min_length=1)


class OrderItemIn(BaseModel):
    """Admin adds a line to an order; the catalog prices it unless unit_price is given."""

    product_id: int = Field(..., gt=0)
    quantity: int = Field(..., gt=0)
    selected_parameters: Optional[Dict[int, int]] = None
    unit_price: Optional[Decimal] = Field(None, ge=0)


class OrderItemUpdateIn(BaseModel):
    quantity: Optional[int] = Field(None, gt=0)
    unit_price: Optional[Decimal] = Field(None, ge=0)


class OrderParameterOut(BaseModel):
    group: str
    name: str
    price_modifier: Decimal


class OrderLineOut(BaseModel):
    id: int
    product_id: int
    product_name: Optional[str] = None
    quantity: int
    selected_parameters: Dict[int, int] = {}
    parameters: List[OrderParameterOut] = []
    unit_price: Decimal
    line_total: Decimal
    special_id: Optional[int] = None
    special_name: Optional[str] = None


class OrderOut(BaseModel):
    id: int
    cart_id: int
    user_id: Optional[int] = None
    name: str
    phone: str
    secondary_phone: Optional[str] = None
    address: str
    status: str
    version: int
    total_price: Decimal
    items: List[OrderLineOut]
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# history
class ActorOut(BaseModel):
    kind: str
    id: Optional[int] = None


class HistoryOut(BaseModel):
    id: int
    entity_type: str
    entity_id: int
    action: str
    field: Optional[str] = None
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    changed_by: ActorOut
    created_at: datetime


# catalog
class ParameterOut(BaseModel):
    id: int
    name: str
    price_modifier: Decimal


class ParameterGroupOut(BaseModel):
    join_id: int
    group_id: int
    name: str
    internal_name: Optional[str] = None
    default_parameter_id: Optional[int] = None
    parameters: List[ParameterOut]


class ProductOut(BaseModel):
    id: int
    name: str
    base_price: Decimal
    status: str
    category_id: Optional[int] = None
    parameter_groups: List[ParameterGroupOut]
    default_selection: Dict[int, int]


class SelectedParameterOut(BaseModel):
    group_id: int
    group: str
    parameter_id: int
    name: str
    price_modifier: Decimal


class PriceOut(BaseModel):
    product_id: int
    base_price: Decimal
    unit_price: Decimal
    parameters: List[SelectedParameterOut]


class SpecialItemOut(BaseModel):
    id: int
    product_id: int
    quantity: int
    selected_parameters: Dict[int, int]


class SpecialOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    status: str
    discounted_price: Decimal
    original_price: Decimal
    savings: Decimal
    savings_percent: int
    items: List[SpecialItemOut]
