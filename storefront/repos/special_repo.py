# storefront/repos/special_repo.py
from typing import List

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from storefront.data.models.special import SpecialModel


class SpecialRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_special(self, special_id: int) -> SpecialModel | None:
        return self.db.execute(
            select(SpecialModel)
            .options(selectinload(SpecialModel.items))
            .where(SpecialModel.id == special_id)
        ).scalar_one_or_none()

    def list_specials(self, status: str | None = None) -> List[SpecialModel]:
        query = select(SpecialModel).options(selectinload(SpecialModel.items))
        if status:
            query = query.where(SpecialModel.status == status)
        return list(self.db.execute(query.order_by(SpecialModel.id)).scalars())

    def get_specials(self, special_ids) -> List[SpecialModel]:
        ids = set(special_ids)
        if not ids:
            return []
        return list(
            self.db.execute(
                select(SpecialModel).where(SpecialModel.id.in_(ids))
            ).scalars()
        )
