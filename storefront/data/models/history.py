# storefront/data/models/history.py
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, DateTime, Text, Index, CheckConstraint

from storefront.data.database import Base


class HistoryModel(Base):
    """Append-only audit row. Nothing updates or deletes these."""

    __tablename__ = "history"

    id = Column(Integer, primary_key=True)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(Integer, nullable=False)

    action = Column(String(50), nullable=False)  # created, status_changed, updated
    field_name = Column(String(50), nullable=True)
    old_value = Column(Text, nullable=True)
    new_value = Column(Text, nullable=True)

    admin_id = Column(Integer, nullable=True)
    user_id = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        CheckConstraint(
            "admin_id IS NULL OR user_id IS NULL",
            name="ck_history_single_actor",
        ),
        Index("ix_history_entity", "entity_type", "entity_id", "created_at"),
    )
