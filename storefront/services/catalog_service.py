# storefront/services/catalog_service.py
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.orm import Session

from storefront.data.models.special import SpecialModel
from storefront.domain.catalog import ProductCatalog
from storefront.domain.errors import NotFoundError
from storefront.repos.catalog_repo import CatalogRepo
from storefront.repos.special_repo import SpecialRepo
from storefront.services.pricing import (
    calculate_price,
    describe_selection,
    line_total,
    savings_summary,
    sum_totals,
)
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class CatalogService:
    """Read side: products with their parameter groups, and specials with derived prices."""

    def __init__(self, db: Session):
        self.catalog = CatalogRepo(db)
        self.specials = SpecialRepo(db)

    def _product(self, product_id: int) -> ProductCatalog:
        product = self.catalog.get_product_catalog(product_id)
        if not product:
            raise NotFoundError(f"Product {product_id} not found")
        return product

    def get_product(self, product_id: int) -> Dict[str, Any]:
        product = self._product(product_id)
        return {
            "id": product.product_id,
            "name": product.name,
            "base_price": product.base_price,
            "status": product.status,
            "category_id": product.category_id,
            # joins stay separate even when two of them share a group
            "parameter_groups": [
                {
                    "join_id": g.join_id,
                    "group_id": g.group_id,
                    "name": g.name,
                    "internal_name": g.internal_name,
                    "default_parameter_id": g.default_parameter_id,
                    "parameters": [
                        {"id": p.id, "name": p.name, "price_modifier": p.price_modifier}
                        for p in g.parameters
                    ],
                }
                for g in product.groups
            ],
            "default_selection": product.default_selection(),
        }

    def price_product(self, product_id: int, selection: Optional[Mapping]) -> Dict[str, Any]:
        product = self._product(product_id)
        return {
            "product_id": product.product_id,
            "base_price": product.base_price,
            "unit_price": calculate_price(product, selection),
            "parameters": describe_selection(product, selection),
        }

    # specials
    def special_original_price(self, special: SpecialModel) -> Decimal:
        products = self.catalog.get_product_catalogs(i.product_id for i in special.items)
        totals = []
        for item in special.items:
            product = products.get(item.product_id)
            if product is None:
                logger.warning(f"Special {special.id} item {item.id} points at missing product {item.product_id}")
                continue
            totals.append(line_total(product, item.selected_parameters, item.quantity))
        return sum_totals(totals)

    def special_view(self, special: SpecialModel) -> Dict[str, Any]:
        original = self.special_original_price(special)
        savings, percent = savings_summary(original, Decimal(special.discounted_price))
        return {
            "id": special.id,
            "name": special.name,
            "description": special.description,
            "status": special.status,
            "discounted_price": special.discounted_price,
            "original_price": original,
            "savings": savings,
            "savings_percent": percent,
            "items": [
                {
                    "id": item.id,
                    "product_id": item.product_id,
                    "quantity": item.quantity,
                    "selected_parameters": dict(item.selected_parameters or {}),
                }
                for item in special.items
            ],
        }

    def get_special(self, special_id: int) -> Dict[str, Any]:
        special = self.specials.get_special(special_id)
        if not special:
            raise NotFoundError(f"Special {special_id} not found")
        return self.special_view(special)

    def list_specials(self, status: str | None = None) -> List[Dict[str, Any]]:
        return [self.special_view(s) for s in self.specials.list_specials(status)]
