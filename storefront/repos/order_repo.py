# storefront/repos/order_repo.py
from datetime import datetime, timezone
from typing import List

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from storefront.data.models.order import OrderModel


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def add_order(self, order: OrderModel) -> OrderModel:
        #no commit here; the caller commits together with the cart status change
        self.db.add(order)
        self.db.flush()
        return order

    def get_order(self, order_id: int) -> OrderModel | None:
        return self.db.get(OrderModel, order_id)

    def refresh_order(self, order: OrderModel) -> OrderModel:
        self.db.refresh(order)
        return order

    def list_orders(self, user_id: int | None = None) -> List[OrderModel]:
        query = select(OrderModel)
        if user_id is not None:
            query = query.where(OrderModel.user_id == user_id)
        query = query.order_by(OrderModel.created_at.desc(), OrderModel.id.desc())
        return list(self.db.execute(query).scalars())

    def update_order_version(self, order_id: int, old_version: int, new_data: dict) -> int:
        """Conditional update, same contract as CartRepo.update_cart_version."""
        values = {"updated_at": datetime.now(timezone.utc), "version": old_version + 1, **new_data}
        result = self.db.execute(
            update(OrderModel)
            .where(OrderModel.id == order_id, OrderModel.version == old_version)
            .values(**values)
        )
        return result.rowcount

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
