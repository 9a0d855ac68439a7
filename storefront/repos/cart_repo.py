# storefront/repos/cart_repo.py
from datetime import datetime, timezone
from typing import List, Set

from sqlalchemy import select, update, delete
from sqlalchemy.orm import Session

from storefront.data.models.cart import CartModel, CART_ACTIVE
from storefront.data.models.cart_item import CartItemModel


class CartRepo:
    def __init__(self, db: Session):
        self.db = db

    #carts
    def get_cart(self, cart_id: int) -> CartModel | None:
        return self.db.get(CartModel, cart_id)

    def refresh_cart(self, cart: CartModel) -> CartModel:
        self.db.refresh(cart)
        return cart

    def get_active_cart_by_user(self, user_id: int) -> CartModel | None:
        return self.db.execute(
            select(CartModel).where(
                CartModel.user_id == user_id,
                CartModel.status == CART_ACTIVE,
            )
        ).scalar_one_or_none()

    def get_active_cart_by_session(self, session_id: str) -> CartModel | None:
        return self.db.execute(
            select(CartModel).where(
                CartModel.session_id == session_id,
                CartModel.status == CART_ACTIVE,
            )
        ).scalar_one_or_none()

    def create_cart(self, cart: CartModel) -> CartModel:
        self.db.add(cart)
        self.db.commit()
        self.db.refresh(cart)
        return cart

    def update_cart_version(self, cart_id: int, old_version: int, new_data: dict) -> int:
        """Conditional update; 0 rows means someone else bumped the version first."""
        values = {"updated_at": datetime.now(timezone.utc), **new_data}
        result = self.db.execute(
            update(CartModel)
            .where(CartModel.id == cart_id, CartModel.version == old_version)
            .values(**values)
        )
        return result.rowcount

    #lines
    def get_cart_items(self, cart_id: int) -> List[CartItemModel]:
        return list(
            self.db.execute(
                select(CartItemModel)
                .where(CartItemModel.cart_id == cart_id)
                .order_by(CartItemModel.id)
            ).scalars()
        )

    def get_cart_item(self, item_id: int) -> CartItemModel | None:
        return self.db.get(CartItemModel, item_id)

    def add_cart_item(self, item: CartItemModel) -> CartItemModel:
        self.db.add(item)
        self.db.flush()
        return item

    def delete_cart_item(self, item: CartItemModel) -> None:
        self.db.delete(item)
        self.db.flush()

    def get_bundle_items(self, cart_id: int, special_id: int) -> List[CartItemModel]:
        return list(
            self.db.execute(
                select(CartItemModel)
                .where(
                    CartItemModel.cart_id == cart_id,
                    CartItemModel.special_id == special_id,
                )
                .order_by(CartItemModel.id)
            ).scalars()
        )

    def get_cart_special_ids(self, cart_id: int) -> Set[int]:
        return set(
            self.db.execute(
                select(CartItemModel.special_id)
                .where(
                    CartItemModel.cart_id == cart_id,
                    CartItemModel.special_id.is_not(None),
                )
                .distinct()
            ).scalars()
        )

    def delete_bundle_items(self, cart_id: int, special_id: int) -> int:
        result = self.db.execute(
            delete(CartItemModel)
            .where(
                CartItemModel.cart_id == cart_id,
                CartItemModel.special_id == special_id,
            )
        )
        return result.rowcount

    def move_items(self, from_cart_id: int, to_cart_id: int) -> int:
        result = self.db.execute(
            update(CartItemModel)
            .where(CartItemModel.cart_id == from_cart_id)
            .values(cart_id=to_cart_id, updated_at=datetime.now(timezone.utc))
        )
        return result.rowcount

    #transaction
    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
