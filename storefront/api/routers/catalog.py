# storefront/api/routers/catalog.py
import json
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from storefront.api.deps import http_error
from storefront.data.database import get_db
from storefront.domain.errors import StorefrontError
from storefront.domain.schemas import PriceOut, ProductOut, SpecialOut
from storefront.services.catalog_service import CatalogService

router = APIRouter(tags=["catalog"])


@router.get("/products/{product_id}", response_model=ProductOut)
def get_product(product_id: int, db: Session = Depends(get_db)):
    try:
        return CatalogService(db).get_product(product_id)
    except StorefrontError as e:
        raise http_error(e)


@router.get("/products/{product_id}/price", response_model=PriceOut)
def price_product(
    product_id: int,
    selection: Optional[str] = Query(None, description='JSON object, e.g. {"1": 4}'),
    db: Session = Depends(get_db),
):
    try:
        parsed = json.loads(selection) if selection else None
    except json.JSONDecodeError:
        raise HTTPException(status_code=400, detail="selection must be a JSON object")
    if parsed is not None and not isinstance(parsed, dict):
        raise HTTPException(status_code=400, detail="selection must be a JSON object")

    try:
        return CatalogService(db).price_product(product_id, parsed)
    except StorefrontError as e:
        raise http_error(e)


@router.get("/specials", response_model=List[SpecialOut])
def list_specials(status: Optional[str] = Query(None), db: Session = Depends(get_db)):
    return CatalogService(db).list_specials(status)


@router.get("/specials/{special_id}", response_model=SpecialOut)
def get_special(special_id: int, db: Session = Depends(get_db)):
    try:
        return CatalogService(db).get_special(special_id)
    except StorefrontError as e:
        raise http_error(e)
