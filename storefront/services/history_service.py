# storefront/services/history_service.py
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from storefront.data.models.history import HistoryModel
from storefront.domain.attribution import SYSTEM, Actor, actor_columns, actor_from_columns
from storefront.repos.history_repo import HistoryRepo
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

ENTITY_ORDER = "order"

ACTION_CREATED = "created"
ACTION_STATUS_CHANGED = "status_changed"
ACTION_UPDATED = "updated"
ACTION_ITEM_ADDED = "item_added"
ACTION_ITEM_UPDATED = "item_updated"
ACTION_ITEM_REMOVED = "item_removed"


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


class HistoryService:
    """
    Append-only audit trail.
    Writes are best effort: a failed write is logged and swallowed so the
    audited operation (already committed) still succeeds.
    """

    def __init__(self, db: Session):
        self.repo = HistoryRepo(db)

    def record(
        self,
        entity_type: str,
        entity_id: int,
        action: str,
        actor: Actor = SYSTEM,
        field: Optional[str] = None,
        old_value: Any = None,
        new_value: Any = None,
    ) -> Optional[HistoryModel]:
        rows = self.record_changes(
            entity_type, entity_id, action, actor, [(field, old_value, new_value)]
        )
        return rows[0] if rows else None

    def record_changes(
        self,
        entity_type: str,
        entity_id: int,
        action: str,
        actor: Actor,
        changes: Iterable[Tuple[Optional[str], Any, Any]],
    ) -> List[HistoryModel]:
        """One row per (field, old, new) tuple, written together."""
        entries = [
            HistoryModel(
                entity_type=entity_type,
                entity_id=entity_id,
                action=action,
                field_name=field,
                old_value=_text(old),
                new_value=_text(new),
                **actor_columns(actor),
            )
            for field, old, new in changes
        ]
        if not entries:
            return []

        try:
            return self.repo.add_entries(entries)
        except Exception:
            self.repo.rollback()
            logger.exception(
                f"Failed to write history for {entity_type} {entity_id} ({action}), continuing"
            )
            return []

    def list_for_entity(self, entity_type: str, entity_id: int) -> List[Dict[str, Any]]:
        return [self.to_dict(row) for row in self.repo.list_for_entity(entity_type, entity_id)]

    @staticmethod
    def to_dict(row: HistoryModel) -> Dict[str, Any]:
        actor = actor_from_columns(row.admin_id, row.user_id)
        return {
            "id": row.id,
            "entity_type": row.entity_type,
            "entity_id": row.entity_id,
            "action": row.action,
            "field": row.field_name,
            "old_value": row.old_value,
            "new_value": row.new_value,
            "changed_by": {"kind": actor.kind, "id": actor.id},
            "created_at": row.created_at,
        }
