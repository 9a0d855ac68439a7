# storefront/repos/catalog_repo.py
from decimal import Decimal
from typing import Dict, Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from storefront.data.models.catalog import (
    ProductModel,
    ParameterGroupModel,
    ProductParameterGroupModel,
)
from storefront.domain.catalog import CatalogGroup, CatalogParameter, ProductCatalog


def _to_catalog(product: ProductModel) -> ProductCatalog:
    groups = []
    for join in product.parameter_groups:
        group = join.parameter_group
        groups.append(
            CatalogGroup(
                join_id=join.id,
                group_id=join.parameter_group_id,
                name=group.name,
                internal_name=group.internal_name,
                default_parameter_id=join.default_parameter_id,
                parameters=[
                    CatalogParameter(
                        id=p.id,
                        group_id=p.parameter_group_id,
                        name=p.name,
                        price_modifier=Decimal(p.price_modifier or 0),
                    )
                    for p in group.parameters
                ],
            )
        )

    return ProductCatalog(
        product_id=product.id,
        name=product.name,
        base_price=Decimal(product.base_price or 0),
        status=product.status,
        category_id=product.category_id,
        groups=groups,
    )


class CatalogRepo:
    def __init__(self, db: Session):
        self.db = db

    def _query(self):
        return select(ProductModel).options(
            selectinload(ProductModel.parameter_groups)
            .selectinload(ProductParameterGroupModel.parameter_group)
            .selectinload(ParameterGroupModel.parameters)
        )

    def get_product_catalog(self, product_id: int) -> ProductCatalog | None:
        product = self.db.execute(
            self._query().where(ProductModel.id == product_id)
        ).scalar_one_or_none()
        return _to_catalog(product) if product else None

    def get_product_catalogs(self, product_ids: Iterable[int]) -> Dict[int, ProductCatalog]:
        ids = set(product_ids)
        if not ids:
            return {}
        products = self.db.execute(
            self._query().where(ProductModel.id.in_(ids))
        ).scalars()
        return {p.id: _to_catalog(p) for p in products}
