# storefront/api/routers/orders.py
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from storefront.api.deps import get_lock_service, get_notification_service, http_error
from storefront.data.database import get_db
from storefront.domain.errors import StorefrontError
from storefront.domain.identity import Identity
from storefront.domain.schemas import (
    OrderCreate,
    OrderItemIn,
    OrderItemUpdateIn,
    OrderOut,
    OrderStatusIn,
    OrderUpdateIn,
)
from storefront.services.lock_service import LockService
from storefront.services.notification_service import NotificationService
from storefront.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])


def get_service(
    db: Session = Depends(get_db),
    lock_service: LockService = Depends(get_lock_service),
    notification_service: NotificationService = Depends(get_notification_service),
) -> OrderService:
    return OrderService(db, lock_service, notification_service)


@router.post("/", response_model=OrderOut, status_code=201)
def create_order(
    payload: OrderCreate,
    user_id: Optional[int] = Query(None, gt=0),
    session_id: Optional[str] = Query(None, min_length=1, max_length=128),
    svc: OrderService = Depends(get_service),
):
    """
    Creates an order from the caller's cart and checks the cart out.
    Guests pass their session_id, logged-in users their user_id.
    """
    try:
        identity = None
        if user_id is not None or session_id is not None:
            identity = Identity.of(user_id=user_id, session_id=session_id)
        return svc.create_order(
            cart_id=payload.cart_id,
            identity=identity,
            name=payload.name,
            phone=payload.phone,
            address=payload.address,
            secondary_phone=payload.secondary_phone,
        )
    except (StorefrontError, PermissionError) as e:
        raise http_error(e)


@router.get("/", response_model=List[OrderOut])
def list_orders(
    user_id: Optional[int] = Query(None, gt=0),
    admin_id: Optional[int] = Query(None, gt=0),
    svc: OrderService = Depends(get_service),
):
    """Admins see every order, users only their own."""
    if admin_id is not None:
        return svc.list_orders()
    if user_id is not None:
        return svc.list_orders(user_id=user_id)
    raise HTTPException(status_code=401, detail="user_id or admin_id is required")


@router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: int,
    user_id: Optional[int] = Query(None, gt=0),
    admin_id: Optional[int] = Query(None, gt=0),
    svc: OrderService = Depends(get_service),
):
    if admin_id is None and user_id is None:
        raise HTTPException(status_code=401, detail="user_id or admin_id is required")
    identity = None if admin_id is not None else Identity(user_id=user_id)
    try:
        return svc.get_order(order_id, identity)
    except (StorefrontError, PermissionError) as e:
        raise http_error(e)


@router.put("/{order_id}", response_model=OrderOut)
def update_order(
    order_id: int,
    payload: OrderUpdateIn,
    admin_id: int = Query(..., gt=0),
    svc: OrderService = Depends(get_service),
):
    try:
        return svc.update_order(order_id, payload.model_dump(exclude_unset=True), admin_id=admin_id)
    except (StorefrontError, PermissionError) as e:
        raise http_error(e)


@router.put("/{order_id}/status", response_model=OrderOut)
def update_order_status(
    order_id: int,
    payload: OrderStatusIn,
    admin_id: int = Query(..., gt=0),
    svc: OrderService = Depends(get_service),
):
    try:
        return svc.update_order_status(order_id, payload.status, admin_id=admin_id)
    except (StorefrontError, PermissionError) as e:
        raise http_error(e)


# line items (admin)
@router.post("/{order_id}/items", response_model=OrderOut, status_code=201)
def add_order_item(
    order_id: int,
    payload: OrderItemIn,
    admin_id: int = Query(..., gt=0),
    svc: OrderService = Depends(get_service),
):
    """Adds a line to the order snapshot; the total is recomputed from the snapshot."""
    try:
        return svc.add_order_item(
            order_id,
            product_id=payload.product_id,
            quantity=payload.quantity,
            selection=payload.selected_parameters,
            unit_price=payload.unit_price,
            admin_id=admin_id,
        )
    except (StorefrontError, PermissionError) as e:
        raise http_error(e)


@router.patch("/{order_id}/items/{item_id}", response_model=OrderOut)
def update_order_item(
    order_id: int,
    item_id: int,
    payload: OrderItemUpdateIn,
    admin_id: int = Query(..., gt=0),
    svc: OrderService = Depends(get_service),
):
    try:
        return svc.update_order_item(
            order_id,
            item_id,
            quantity=payload.quantity,
            unit_price=payload.unit_price,
            admin_id=admin_id,
        )
    except (StorefrontError, PermissionError) as e:
        raise http_error(e)


@router.delete("/{order_id}/items/{item_id}", response_model=OrderOut)
def remove_order_item(
    order_id: int,
    item_id: int,
    admin_id: int = Query(..., gt=0),
    svc: OrderService = Depends(get_service),
):
    try:
        return svc.remove_order_item(order_id, item_id, admin_id=admin_id)
    except (StorefrontError, PermissionError) as e:
        raise http_error(e)
