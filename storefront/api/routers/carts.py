# storefront/api/routers/carts.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.api.deps import get_identity, get_lock_service, http_error
from storefront.data.database import get_db
from storefront.domain.errors import StorefrontError
from storefront.domain.identity import Identity
from storefront.domain.schemas import (
    BundleIn,
    CartOut,
    ItemIn,
    ItemUpdateIn,
    MergeIn,
)
from storefront.services.cart_service import CartService
from storefront.services.lock_service import LockService

router = APIRouter(prefix="/cart", tags=["cart"])


def get_service(db: Session, lock_service: LockService) -> CartService:
    return CartService(db=db, lock_service=lock_service)


@router.get("/", response_model=CartOut)
def get_cart(
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
    lock_service: LockService = Depends(get_lock_service),
):
    """Current active cart of the caller, created on first use."""
    svc = get_service(db, lock_service)
    cart = svc.get_or_create_cart(identity)
    return svc.cart_view(cart)


@router.post("/items", response_model=CartOut)
def add_item(
    payload: ItemIn,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
    lock_service: LockService = Depends(get_lock_service),
):
    svc = get_service(db, lock_service)
    try:
        cart = svc.get_or_create_cart(identity)
        return svc.add_item(
            cart_id=cart.id,
            product_id=payload.product_id,
            quantity=payload.quantity,
            selection=payload.selected_parameters,
            identity=identity,
        )
    except (StorefrontError, PermissionError) as e:
        raise http_error(e)


@router.put("/items/{item_id}", response_model=CartOut)
def update_item(
    item_id: int,
    payload: ItemUpdateIn,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
    lock_service: LockService = Depends(get_lock_service),
):
    svc = get_service(db, lock_service)
    try:
        return svc.update_item(
            item_id,
            quantity=payload.quantity,
            selection=payload.selected_parameters,
            identity=identity,
        )
    except (StorefrontError, PermissionError) as e:
        raise http_error(e)


@router.delete("/items/{item_id}", response_model=CartOut)
def remove_item(
    item_id: int,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
    lock_service: LockService = Depends(get_lock_service),
):
    svc = get_service(db, lock_service)
    try:
        return svc.remove_item(item_id, identity=identity)
    except (StorefrontError, PermissionError) as e:
        raise http_error(e)


@router.post("/specials", response_model=CartOut)
def add_bundle(
    payload: BundleIn,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
    lock_service: LockService = Depends(get_lock_service),
):
    svc = get_service(db, lock_service)
    try:
        cart = svc.get_or_create_cart(identity)
        return svc.add_bundle(cart.id, payload.special_id, identity=identity)
    except (StorefrontError, PermissionError) as e:
        raise http_error(e)


@router.delete("/specials/{special_id}", response_model=CartOut)
def remove_bundle(
    special_id: int,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
    lock_service: LockService = Depends(get_lock_service),
):
    svc = get_service(db, lock_service)
    try:
        cart = svc.get_or_create_cart(identity)
        return svc.remove_bundle(cart.id, special_id, identity=identity)
    except (StorefrontError, PermissionError) as e:
        raise http_error(e)


@router.post("/merge", response_model=CartOut)
def merge_guest_cart(
    payload: MergeIn,
    db: Session = Depends(get_db),
    lock_service: LockService = Depends(get_lock_service),
):
    """Called by the auth layer right after login/registration."""
    svc = get_service(db, lock_service)
    try:
        return svc.merge_guest_cart_into_user(payload.session_id, payload.user_id)
    except (StorefrontError, PermissionError) as e:
        raise http_error(e)
