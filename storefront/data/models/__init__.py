#import every model so SQLAlchemy registers it in Base.metadata

from storefront.data.models.catalog import (
    ProductModel,
    ParameterGroupModel,
    ParameterModel,
    ProductParameterGroupModel,
)
from storefront.data.models.special import SpecialModel, SpecialItemModel
from storefront.data.models.cart import CartModel
from storefront.data.models.cart_item import CartItemModel
from storefront.data.models.order import OrderModel
from storefront.data.models.history import HistoryModel

__all__ = [
    "ProductModel",
    "ParameterGroupModel",
    "ParameterModel",
    "ProductParameterGroupModel",
    "SpecialModel",
    "SpecialItemModel",
    "CartModel",
    "CartItemModel",
    "OrderModel",
    "HistoryModel",
]
