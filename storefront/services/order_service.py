# storefront/services/order_service.py
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.data.models.cart import CART_ACTIVE, CART_CHECKED_OUT
from storefront.data.models.order import OrderModel
from storefront.domain.attribution import SYSTEM, Actor, AdminActor, UserActor
from storefront.domain.catalog import ProductCatalog
from storefront.domain.errors import (
    ConcurrencyConflictError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from storefront.domain.identity import Identity
from storefront.domain.order_status import OrderStatus, check_transition
from storefront.domain.selection import ParameterSelection
from storefront.repos.cart_repo import CartRepo
from storefront.repos.catalog_repo import CatalogRepo
from storefront.repos.order_repo import OrderRepo
from storefront.repos.special_repo import SpecialRepo
from storefront.services.cart_service import CartService, PricedLine, validate_quantity
from storefront.services.history_service import (
    HistoryService,
    ENTITY_ORDER,
    ACTION_CREATED,
    ACTION_STATUS_CHANGED,
    ACTION_UPDATED,
    ACTION_ITEM_ADDED,
    ACTION_ITEM_UPDATED,
    ACTION_ITEM_REMOVED,
)
from storefront.services.lock_service import LockService
from storefront.services.notification_service import NotificationService
from storefront.services.pricing import calculate_price, describe_selection, sum_totals
from storefront.utils.settings import ORDER_STRICT_TRANSITIONS
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

PHONE_RE = re.compile(r"^\+?[0-9][0-9 \-]{5,19}$")

EDITABLE_FIELDS = ("name", "phone", "secondary_phone", "address")

CENTS = Decimal("0.01")


def _required_text(value: Optional[str], field: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required")
    return str(value).strip()


def _phone(value: Optional[str], field: str = "phone", required: bool = True) -> Optional[str]:
    if value is None or not str(value).strip():
        if required:
            raise ValidationError(f"{field} is required")
        return None
    value = str(value).strip()
    if not PHONE_RE.match(value):
        raise ValidationError(f"{field} '{value}' is not a valid phone number")
    return value


def _unit_price(value: Any) -> Decimal:
    try:
        price = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(f"unit_price '{value}' is not a number")
    if not price.is_finite() or price < 0:
        raise ValidationError("unit_price must be zero or more")
    return price.quantize(CENTS)


def _admin(admin_id: Optional[int]) -> Actor:
    return AdminActor(admin_id) if admin_id is not None else SYSTEM


def _snapshot_parameters(product: ProductCatalog, selection: Optional[Mapping]) -> List[Dict[str, str]]:
    return [
        {"group": p["group"], "name": p["name"], "price_modifier": str(p["price_modifier"])}
        for p in describe_selection(product, selection)
    ]


def _describe_line(line: Dict[str, Any]) -> str:
    name = line.get("product_name") or f"product {line['product_id']}"
    return f"{name} x{line['quantity']} @ {line['unit_price']}"


class OrderService:
    """
    Order use cases, separate from CartService.
    The total is priced live exactly once, at creation, and frozen on the order.
    Later line edits only touch the frozen snapshot.
    """

    def __init__(
        self,
        db: Session,
        lock_service: LockService,
        notification_service: NotificationService | None = None,
        strict_transitions: bool | None = None,
    ):
        self.db = db
        self.repo = OrderRepo(db)
        self.carts = CartRepo(db)
        self.catalog = CatalogRepo(db)
        self.specials = SpecialRepo(db)
        self.cart_service = CartService(db, lock_service)
        self.history = HistoryService(db)
        self.lock_service = lock_service
        self.notification_service = notification_service or NotificationService()
        self.strict_transitions = (
            ORDER_STRICT_TRANSITIONS if strict_transitions is None else strict_transitions
        )

    def create_order(
        self,
        cart_id: int,
        identity: Identity | None,
        name: str,
        phone: str,
        address: str,
        secondary_phone: str | None = None,
    ) -> Dict[str, Any]:
        """
        1. validates contact data (nothing written yet)
        2. prices the cart live and snapshots its lines
        3. inserts the order and checks the cart out in one transaction
        4. history + notification, both best effort
        """
        name = _required_text(name, "name")
        address = _required_text(address, "address")
        phone = _phone(phone)
        secondary_phone = _phone(secondary_phone, "secondary_phone", required=False)

        cart = self.carts.get_cart(cart_id)
        if not cart:
            raise NotFoundError(f"Cart {cart_id} not found")
        CartService._check_owner(cart, identity)
        if cart.status != CART_ACTIVE:
            raise StateConflictError(f"Cart {cart_id} is already {cart.status}")

        with self.lock_service.cart_lock(cart.id):
            self.carts.refresh_cart(cart)
            if cart.status != CART_ACTIVE:
                raise StateConflictError(f"Cart {cart_id} is already {cart.status}")

            lines = self.cart_service.priced_lines(self.carts.get_cart_items(cart.id))
            if not lines:
                raise ValidationError("Cannot create an order from an empty cart")
            total = sum_totals(line.line_total for line in lines)

            order = OrderModel(
                cart_id=cart.id,
                user_id=cart.user_id,
                name=name,
                phone=phone,
                secondary_phone=secondary_phone,
                address=address,
                status=OrderStatus.PENDING.value,
                version=1,
                total_price=total,
                items_snapshot=self._snapshot(lines),
            )

            old_version = cart.version
            try:
                self.repo.add_order(order)
                rowcount = self.carts.update_cart_version(
                    cart_id=cart.id,
                    old_version=old_version,
                    new_data={"status": CART_CHECKED_OUT, "version": old_version + 1},
                )
                if rowcount == 0:
                    raise ConcurrencyConflictError(
                        f"Cart {cart.id} was modified while the order was being created"
                    )
                self.repo.commit()
            except IntegrityError:
                self.repo.rollback()
                raise StateConflictError(f"Cart {cart_id} already has an order")
            except Exception:
                self.repo.rollback()
                raise

        logger.info(f"Order {order.id} created from cart {cart.id}, total {total}")

        buyer = UserActor(cart.user_id) if cart.user_id is not None else SYSTEM
        self.history.record(
            ENTITY_ORDER, order.id, ACTION_CREATED, buyer, new_value=OrderStatus.PENDING
        )

        result = self.order_view(order)
        try:
            self.notification_service.notify_order_created(result, result["items"])
        except Exception:
            logger.exception(f"Failed to queue notification for order {order.id}, continuing")

        return result

    def _snapshot(self, lines: List[PricedLine]) -> List[Dict[str, Any]]:
        special_ids = {l.item.special_id for l in lines if l.item.special_id is not None}
        special_names = {s.id: s.name for s in self.specials.get_specials(special_ids)}

        snapshot = []
        for number, line in enumerate(lines, start=1):
            item = line.item
            snapshot.append(
                {
                    "id": number,
                    "product_id": item.product_id,
                    "product_name": line.product.name if line.product else None,
                    "quantity": item.quantity,
                    "selected_parameters": dict(item.selected_parameters or {}),
                    "parameters": (
                        _snapshot_parameters(line.product, item.selected_parameters)
                        if line.product
                        else []
                    ),
                    "unit_price": str(line.unit_price),
                    "line_total": str(line.line_total),
                    "special_id": item.special_id,
                    "special_name": special_names.get(item.special_id),
                }
            )
        return snapshot

    def _write(self, order: OrderModel, changes: Dict[str, Any]) -> None:
        """Version-checked write of one order; a lost race changes nothing."""
        try:
            rowcount = self.repo.update_order_version(
                order_id=order.id,
                old_version=order.version,
                new_data=changes,
            )
            if rowcount == 0:
                raise ConcurrencyConflictError(f"Order {order.id} was modified by another request")
            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise
        self.repo.refresh_order(order)

    def update_order_status(
        self, order_id: int, new_status: str | OrderStatus, admin_id: int | None = None
    ) -> Dict[str, Any]:
        status = OrderStatus.parse(new_status)
        order = self._load(order_id)
        current = OrderStatus.parse(order.status)

        if status == current:
            # no-op changes are not audited
            return self.order_view(order)

        check_transition(current, status, self.strict_transitions)

        self._write(order, {"status": status.value})
        logger.info(f"Order {order.id} status {current.value} -> {status.value}")

        self.history.record(
            ENTITY_ORDER,
            order.id,
            ACTION_STATUS_CHANGED,
            _admin(admin_id),
            field="status",
            old_value=current,
            new_value=status,
        )
        return self.order_view(order)

    def update_order(self, order_id: int, changes: Dict[str, Any], admin_id: int | None = None) -> Dict[str, Any]:
        """Admin edit of contact fields; one history row per field that really changed."""
        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")

        cleaned: Dict[str, Any] = {}
        for field, value in changes.items():
            if field in ("name", "address"):
                cleaned[field] = _required_text(value, field)
            elif field == "phone":
                cleaned[field] = _phone(value)
            else:
                cleaned[field] = _phone(value, field, required=False)

        order = self._load(order_id)
        diff = [
            (field, getattr(order, field), value)
            for field, value in cleaned.items()
            if getattr(order, field) != value
        ]
        if not diff:
            return self.order_view(order)

        self._write(order, {field: new for field, _, new in diff})
        logger.info(f"Order {order.id} updated: {', '.join(f for f, _, _ in diff)}")

        self.history.record_changes(ENTITY_ORDER, order.id, ACTION_UPDATED, _admin(admin_id), diff)
        return self.order_view(order)

    # line items
    @staticmethod
    def _require_editable(order: OrderModel) -> None:
        if OrderStatus.parse(order.status).is_terminal:
            raise StateConflictError(f"Order {order.id} is {order.status} and can no longer be edited")

    @staticmethod
    def _find_line(lines: List[Dict[str, Any]], order_id: int, item_id: int) -> Tuple[int, Dict[str, Any]]:
        for index, line in enumerate(lines):
            if line.get("id") == item_id:
                return index, line
        raise NotFoundError(f"Order {order_id} has no line {item_id}")

    @staticmethod
    def _lines_changes(lines: List[Dict[str, Any]]) -> Dict[str, Any]:
        # the total follows the snapshot, never the live catalog
        return {
            "items_snapshot": lines,
            "total_price": sum_totals(Decimal(line["line_total"]) for line in lines),
        }

    def add_order_item(
        self,
        order_id: int,
        product_id: int,
        quantity: int,
        selection: Optional[Mapping] = None,
        unit_price: Any = None,
        admin_id: int | None = None,
    ) -> Dict[str, Any]:
        quantity = validate_quantity(quantity)
        price = _unit_price(unit_price) if unit_price is not None else None

        order = self._load(order_id)
        self._require_editable(order)

        product = self.catalog.get_product_catalog(product_id)
        if not product:
            raise NotFoundError(f"Product {product_id} not found")
        if not product.is_active:
            raise StateConflictError(f"Product {product_id} is not available")

        if selection is None:
            chosen = ParameterSelection.defaults_for(product)
        else:
            chosen = ParameterSelection.for_product(product, selection)
        if price is None:
            price = calculate_price(product, chosen)

        lines = [dict(line) for line in order.items_snapshot or []]
        line = {
            "id": max((l.get("id") or 0 for l in lines), default=0) + 1,
            "product_id": product.product_id,
            "product_name": product.name,
            "quantity": quantity,
            "selected_parameters": chosen.to_json(),
            "parameters": _snapshot_parameters(product, chosen),
            "unit_price": str(price),
            "line_total": str(price * quantity),
            "special_id": None,
            "special_name": None,
        }
        lines.append(line)

        self._write(order, self._lines_changes(lines))
        logger.info(f"Order {order.id}: added line {line['id']} ({_describe_line(line)})")

        self.history.record(
            ENTITY_ORDER,
            order.id,
            ACTION_ITEM_ADDED,
            _admin(admin_id),
            field=f"item:{line['id']}",
            new_value=_describe_line(line),
        )
        return self.order_view(order)

    def update_order_item(
        self,
        order_id: int,
        item_id: int,
        quantity: Optional[int] = None,
        unit_price: Any = None,
        admin_id: int | None = None,
    ) -> Dict[str, Any]:
        if quantity is not None:
            quantity = validate_quantity(quantity)
        price = _unit_price(unit_price) if unit_price is not None else None

        order = self._load(order_id)
        self._require_editable(order)

        lines = [dict(line) for line in order.items_snapshot or []]
        index, line = self._find_line(lines, order.id, item_id)

        diff = []
        if quantity is not None and quantity != line["quantity"]:
            diff.append(("quantity", line["quantity"], quantity))
            line["quantity"] = quantity
        if price is not None and price != Decimal(line["unit_price"]):
            diff.append(("unit_price", line["unit_price"], str(price)))
            line["unit_price"] = str(price)
        if not diff:
            return self.order_view(order)

        line["line_total"] = str(Decimal(line["unit_price"]) * line["quantity"])
        lines[index] = line

        self._write(order, self._lines_changes(lines))
        logger.info(f"Order {order.id}: updated line {item_id} ({', '.join(f for f, _, _ in diff)})")

        self.history.record_changes(
            ENTITY_ORDER,
            order.id,
            ACTION_ITEM_UPDATED,
            _admin(admin_id),
            [(f"item:{item_id}.{field}", old, new) for field, old, new in diff],
        )
        return self.order_view(order)

    def remove_order_item(self, order_id: int, item_id: int, admin_id: int | None = None) -> Dict[str, Any]:
        order = self._load(order_id)
        self._require_editable(order)

        lines = [dict(line) for line in order.items_snapshot or []]
        index, line = self._find_line(lines, order.id, item_id)
        if len(lines) == 1:
            raise StateConflictError(
                f"Line {item_id} is the last line of order {order.id}; cancel the order instead"
            )
        del lines[index]

        self._write(order, self._lines_changes(lines))
        logger.info(f"Order {order.id}: removed line {item_id}")

        self.history.record(
            ENTITY_ORDER,
            order.id,
            ACTION_ITEM_REMOVED,
            _admin(admin_id),
            field=f"item:{item_id}",
            old_value=_describe_line(line),
        )
        return self.order_view(order)

    # queries
    def _load(self, order_id: int) -> OrderModel:
        order = self.repo.get_order(order_id)
        if not order:
            raise NotFoundError(f"Order {order_id} not found")
        return order

    def get_order(self, order_id: int, identity: Identity | None = None) -> Dict[str, Any]:
        """identity=None means an admin read; a user only sees their own orders."""
        order = self._load(order_id)
        if identity is not None and (identity.user_id is None or order.user_id != identity.user_id):
            raise PermissionError("No access to this order")
        return self.order_view(order)

    def list_orders(self, user_id: int | None = None) -> List[Dict[str, Any]]:
        return [self.order_view(o) for o in self.repo.list_orders(user_id)]

    @staticmethod
    def order_view(order: OrderModel) -> Dict[str, Any]:
        return {
            "id": order.id,
            "cart_id": order.cart_id,
            "user_id": order.user_id,
            "name": order.name,
            "phone": order.phone,
            "secondary_phone": order.secondary_phone,
            "address": order.address,
            "status": order.status,
            "version": order.version,
            "total_price": order.total_price,
            "items": list(order.items_snapshot or []),
            "created_at": order.created_at,
            "updated_at": order.updated_at,
        }
