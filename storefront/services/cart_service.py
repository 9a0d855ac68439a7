# storefront/services/cart_service.py
from contextlib import contextmanager
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Any, List, Mapping, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from storefront.data.models.cart import CartModel, CART_ACTIVE, CART_MERGED
from storefront.data.models.cart_item import CartItemModel
from storefront.domain.catalog import ProductCatalog
from storefront.domain.errors import (
    ConcurrencyConflictError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from storefront.domain.identity import Identity
from storefront.domain.selection import ParameterSelection
from storefront.repos.cart_repo import CartRepo
from storefront.repos.catalog_repo import CatalogRepo
from storefront.repos.special_repo import SpecialRepo
from storefront.services.lock_service import LockService
from storefront.services.pricing import calculate_price, describe_selection, sum_totals, ZERO
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def validate_quantity(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError("Quantity must be a whole number")
    if quantity < 1:
        raise ValidationError("Quantity must be at least 1")
    return quantity


@dataclass
class PricedLine:
    item: CartItemModel
    product: Optional[ProductCatalog]
    unit_price: Decimal
    line_total: Decimal

    @property
    def parameters(self) -> List[dict]:
        if self.product is None:
            return []
        return describe_selection(self.product, self.item.selected_parameters)


class CartService:
    """
    Cart use cases.
    commands (get-or-create, add/update/remove line, add/remove bundle, merge) change state,
    queries (get, total) only read.
    Every command runs under the per-cart redis lock and bumps cart.version.
    """

    def __init__(self, db: Session, lock_service: LockService):
        self.repo = CartRepo(db)
        self.catalog = CatalogRepo(db)
        self.specials = SpecialRepo(db)
        self.lock_service = lock_service

    # helpers
    def _load_cart(self, cart_id: int, identity: Identity | None = None) -> CartModel:
        cart = self.repo.get_cart(cart_id)
        if not cart:
            raise NotFoundError(f"Cart {cart_id} not found")
        self._check_owner(cart, identity)
        return cart

    @staticmethod
    def _check_owner(cart: CartModel, identity: Identity | None) -> None:
        if identity is None:
            return
        if identity.user_id is not None and cart.user_id == identity.user_id:
            return
        if identity.session_id is not None and cart.session_id == identity.session_id:
            return
        raise PermissionError("No access to this cart")

    @staticmethod
    def _require_active(cart: CartModel) -> None:
        if cart.status != CART_ACTIVE:
            raise StateConflictError(
                f"Cart {cart.id} is {cart.status} and can no longer be modified"
            )

    def _load_line(self, item_id: int, identity: Identity | None) -> tuple[CartItemModel, CartModel]:
        item = self.repo.get_cart_item(item_id)
        if not item:
            raise NotFoundError(f"Cart line {item_id} not found")
        cart = self._load_cart(item.cart_id, identity)
        return item, cart

    def _product(self, product_id: int) -> ProductCatalog:
        product = self.catalog.get_product_catalog(product_id)
        if not product:
            raise NotFoundError(f"Product {product_id} not found")
        return product

    @contextmanager
    def _writing(self, cart: CartModel):
        """One cart write unit: lock, re-read, run the block, bump version, commit.

        Anything raised inside the block rolls the whole unit back.
        """
        self._require_active(cart)
        with self.lock_service.cart_lock(cart.id):
            self.repo.refresh_cart(cart)
            self._require_active(cart)
            old_version = cart.version
            try:
                yield
                # optimistic locking: UPDATE ... WHERE id = :id AND version = :old
                rowcount = self.repo.update_cart_version(
                    cart_id=cart.id,
                    old_version=old_version,
                    new_data={"version": old_version + 1},
                )
                if rowcount == 0:
                    raise ConcurrencyConflictError(
                        f"Cart {cart.id} was modified by another operation"
                    )
                self.repo.commit()
            except Exception:
                self.repo.rollback()
                raise

    # queries
    def priced_lines(self, items: List[CartItemModel]) -> List[PricedLine]:
        products = self.catalog.get_product_catalogs(i.product_id for i in items)
        lines = []
        for item in items:
            product = products.get(item.product_id)
            if product is None:
                logger.warning(
                    f"Cart line {item.id} points at missing product {item.product_id}, priced at 0"
                )
                lines.append(PricedLine(item, None, ZERO, ZERO))
                continue
            unit_price = calculate_price(product, item.selected_parameters)
            lines.append(PricedLine(item, product, unit_price, unit_price * item.quantity))
        return lines

    def cart_total(self, cart_id: int) -> Decimal:
        cart = self._load_cart(cart_id)
        items = self.repo.get_cart_items(cart.id)
        return sum_totals(line.line_total for line in self.priced_lines(items))

    def get_cart(self, cart_id: int, identity: Identity | None = None) -> Dict[str, Any]:
        cart = self._load_cart(cart_id, identity)
        return self.cart_view(cart)

    def cart_view(self, cart: CartModel) -> Dict[str, Any]:
        lines = self.priced_lines(self.repo.get_cart_items(cart.id))

        bundles: Dict[int, Dict[str, Any]] = {}
        special_ids = {line.item.special_id for line in lines if line.item.special_id is not None}
        for special in self.specials.get_specials(special_ids):
            bundles[special.id] = {
                "special_id": special.id,
                "name": special.name,
                "discounted_price": special.discounted_price,
                "subtotal": ZERO,
            }
        for line in lines:
            bundle = bundles.get(line.item.special_id)
            if bundle is not None:
                bundle["subtotal"] += line.line_total

        return {
            "cart_id": cart.id,
            "user_id": cart.user_id,
            "session_id": cart.session_id,
            "status": cart.status,
            "version": cart.version,
            "items": [
                {
                    "id": line.item.id,
                    "product_id": line.item.product_id,
                    "product_name": line.product.name if line.product else None,
                    "quantity": line.item.quantity,
                    "selected_parameters": dict(line.item.selected_parameters or {}),
                    "special_id": line.item.special_id,
                    "unit_price": line.unit_price,
                    "line_total": line.line_total,
                }
                for line in lines
            ],
            "bundles": list(bundles.values()),
            "total": sum_totals(line.line_total for line in lines),
        }

    # commands
    def get_or_create_cart(self, identity: Identity) -> CartModel:
        existing = self._find_active(identity)
        if existing:
            return existing

        new_cart = CartModel(
            user_id=identity.user_id,
            session_id=identity.session_id,
            status=CART_ACTIVE,
            version=1,
        )
        try:
            created = self.repo.create_cart(new_cart)
        except IntegrityError:
            # lost the race against a concurrent create; the partial unique index kept one
            self.repo.rollback()
            existing = self._find_active(identity)
            if existing:
                return existing
            raise

        logger.info(f"Created cart {created.id} for {identity}")
        return created

    def _find_active(self, identity: Identity) -> CartModel | None:
        if identity.user_id is not None:
            return self.repo.get_active_cart_by_user(identity.user_id)
        return self.repo.get_active_cart_by_session(identity.session_id)

    def add_item(
        self,
        cart_id: int,
        product_id: int,
        quantity: int,
        selection: Optional[Mapping] = None,
        identity: Identity | None = None,
    ) -> Dict[str, Any]:
        quantity = validate_quantity(quantity)
        cart = self._load_cart(cart_id, identity)
        self._require_active(cart)

        product = self._product(product_id)
        if not product.is_active:
            raise StateConflictError(f"Product {product_id} is not available")

        if selection is None:
            chosen = ParameterSelection.defaults_for(product)
        else:
            chosen = ParameterSelection.for_product(product, selection)

        with self._writing(cart):
            # never merged with an identical line, every add is its own line
            item = self.repo.add_cart_item(
                CartItemModel(
                    cart_id=cart.id,
                    product_id=product.product_id,
                    quantity=quantity,
                    selected_parameters=chosen.to_json(),
                )
            )

        logger.info(f"Added product {product_id} x{quantity} to cart {cart.id} as line {item.id}")
        return self.cart_view(cart)

    def update_item(
        self,
        item_id: int,
        quantity: Optional[int] = None,
        selection: Optional[Mapping] = None,
        identity: Identity | None = None,
    ) -> Dict[str, Any]:
        if quantity is not None:
            quantity = validate_quantity(quantity)

        item, cart = self._load_line(item_id, identity)
        self._require_active(cart)

        if item.special_id is not None and (quantity is not None or selection is not None):
            raise StateConflictError(
                f"Line {item.id} is part of special {item.special_id} and cannot be changed on its own"
            )

        chosen = None
        if selection is not None:
            chosen = ParameterSelection.for_product(self._product(item.product_id), selection)

        if quantity is None and chosen is None:
            return self.cart_view(cart)

        with self._writing(cart):
            if quantity is not None:
                item.quantity = quantity
            if chosen is not None:
                item.selected_parameters = chosen.to_json()
            self.repo.add_cart_item(item)

        logger.info(f"Updated line {item.id} in cart {cart.id}")
        return self.cart_view(cart)

    def remove_item(self, item_id: int, identity: Identity | None = None) -> Dict[str, Any]:
        item, cart = self._load_line(item_id, identity)
        self._require_active(cart)

        if item.special_id is not None:
            raise StateConflictError(
                f"Line {item.id} is part of special {item.special_id}; remove the whole bundle instead"
            )

        with self._writing(cart):
            self.repo.delete_cart_item(item)

        logger.info(f"Removed line {item_id} from cart {cart.id}")
        return self.cart_view(cart)

    def add_bundle(self, cart_id: int, special_id: int, identity: Identity | None = None) -> Dict[str, Any]:
        cart = self._load_cart(cart_id, identity)
        self._require_active(cart)

        special = self.specials.get_special(special_id)
        if not special:
            raise NotFoundError(f"Special {special_id} not found")
        if special.status != "active":
            raise StateConflictError(f"Special {special_id} is not available")
        if not special.items:
            raise StateConflictError(f"Special {special_id} has no items")
        if self.repo.get_bundle_items(cart.id, special.id):
            raise StateConflictError(f"Special {special_id} is already in cart {cart.id}")

        products = self.catalog.get_product_catalogs(si.product_id for si in special.items)
        missing = [si.product_id for si in special.items if si.product_id not in products]
        if missing:
            raise NotFoundError(f"Special {special_id} refers to missing products {missing}")

        # all lines in one transaction: either every item lands or none does
        with self._writing(cart):
            for special_item in special.items:
                self.repo.add_cart_item(
                    CartItemModel(
                        cart_id=cart.id,
                        product_id=special_item.product_id,
                        quantity=special_item.quantity,
                        selected_parameters=dict(special_item.selected_parameters or {}),
                        special_id=special.id,
                    )
                )

        logger.info(f"Added special {special_id} ({len(special.items)} lines) to cart {cart.id}")
        return self.cart_view(cart)

    def remove_bundle(self, cart_id: int, special_id: int, identity: Identity | None = None) -> Dict[str, Any]:
        cart = self._load_cart(cart_id, identity)
        self._require_active(cart)

        if not self.repo.get_bundle_items(cart.id, special_id):
            raise NotFoundError(f"Special {special_id} is not in cart {cart.id}")

        with self._writing(cart):
            removed = self.repo.delete_bundle_items(cart.id, special_id)

        logger.info(f"Removed special {special_id} ({removed} lines) from cart {cart.id}")
        return self.cart_view(cart)

    @retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.05, min=0.05, max=0.5),
        retry=retry_if_exception_type(ConcurrencyConflictError),
    )
    def merge_guest_cart_into_user(self, guest_session_id: str, user_id: int) -> Dict[str, Any]:
        """Move every line of the guest's active cart into the user's active cart.

        Guest bundles the user cart already holds are dropped instead of moved.
        The guest cart ends up `merged`. A second call finds no active guest
        cart and changes nothing, so concurrent logins converge.
        """
        user_cart = self.get_or_create_cart(Identity(user_id=user_id))

        guest = self.repo.get_active_cart_by_session(guest_session_id)
        if not guest:
            return self.cart_view(user_cart)

        with self.lock_service.cart_lock(guest.id, user_cart.id):
            self.repo.refresh_cart(guest)
            self.repo.refresh_cart(user_cart)
            if guest.status != CART_ACTIVE:
                logger.info(f"Guest cart {guest.id} already {guest.status}, nothing to merge")
                return self.cart_view(user_cart)
            self._require_active(user_cart)

            guest_version, user_version = guest.version, user_cart.version
            try:
                # a special stays in a cart once; the user's copy wins
                duplicates = self.repo.get_cart_special_ids(guest.id) & self.repo.get_cart_special_ids(user_cart.id)
                for special_id in sorted(duplicates):
                    self.repo.delete_bundle_items(guest.id, special_id)
                moved = self.repo.move_items(guest.id, user_cart.id)
                retired = self.repo.update_cart_version(
                    cart_id=guest.id,
                    old_version=guest_version,
                    new_data={"status": CART_MERGED, "version": guest_version + 1},
                )
                bumped = self.repo.update_cart_version(
                    cart_id=user_cart.id,
                    old_version=user_version,
                    new_data={"version": user_version + 1},
                )
                if retired == 0 or bumped == 0:
                    raise ConcurrencyConflictError("Carts changed during merge")
                self.repo.commit()
            except Exception:
                self.repo.rollback()
                raise

        if duplicates:
            logger.info(f"Guest cart {guest.id}: specials {sorted(duplicates)} already in cart {user_cart.id}, guest copies dropped")
        logger.info(
            f"Merged guest cart {guest.id} into cart {user_cart.id} of user {user_id}, {moved} lines moved"
        )
        return self.cart_view(user_cart)
