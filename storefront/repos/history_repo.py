# storefront/repos/history_repo.py
from typing import List

from sqlalchemy import select
from sqlalchemy.orm import Session

from storefront.data.models.history import HistoryModel


class HistoryRepo:
    """Insert and read only."""

    def __init__(self, db: Session):
        self.db = db

    def add_entries(self, entries: List[HistoryModel]) -> List[HistoryModel]:
        self.db.add_all(entries)
        self.db.commit()
        return entries

    def list_for_entity(self, entity_type: str, entity_id: int) -> List[HistoryModel]:
        return list(
            self.db.execute(
                select(HistoryModel)
                .where(
                    HistoryModel.entity_type == entity_type,
                    HistoryModel.entity_id == entity_id,
                )
                .order_by(HistoryModel.created_at.desc(), HistoryModel.id.desc())
            ).scalars()
        )

    def rollback(self) -> None:
        self.db.rollback()
