# storefront/domain/catalog.py
"""Read-only view of a product and the parameter groups joined to it.

Built by CatalogRepo from the ORM rows; the pricing calculator and the
selection type only ever see these plain objects.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional


@dataclass(frozen=True)
class CatalogParameter:
    id: int
    group_id: int
    name: str
    price_modifier: Decimal


@dataclass(frozen=True)
class CatalogGroup:
    join_id: int
    group_id: int
    name: str
    internal_name: Optional[str] = None
    default_parameter_id: Optional[int] = None
    parameters: List[CatalogParameter] = field(default_factory=list)

    def find_parameter(self, parameter_id: int) -> Optional[CatalogParameter]:
        for param in self.parameters:
            if param.id == parameter_id:
                return param
        return None


@dataclass(frozen=True)
class ProductCatalog:
    product_id: int
    name: str
    base_price: Decimal
    status: str = "active"
    category_id: Optional[int] = None
    groups: List[CatalogGroup] = field(default_factory=list)

    def find_group(self, group_id: int) -> Optional[CatalogGroup]:
        # groups are kept in join-id order, so a group joined twice resolves to its first join
        for group in self.groups:
            if group.group_id == group_id:
                return group
        return None

    def default_selection(self) -> Dict[int, int]:
        defaults: Dict[int, int] = {}
        for group in self.groups:
            if group.default_parameter_id is not None and group.group_id not in defaults:
                defaults[group.group_id] = group.default_parameter_id
        return defaults

    @property
    def is_active(self) -> bool:
        return self.status == "active"
