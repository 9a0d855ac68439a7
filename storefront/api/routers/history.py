# storefront/api/routers/history.py
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront.data.database import get_db
from storefront.domain.schemas import HistoryOut
from storefront.services.history_service import HistoryService
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/history", tags=["history"])


@router.get("/{entity_type}/{entity_id}", response_model=List[HistoryOut])
def get_history(
    entity_type: str,
    entity_id: int,
    admin_id: int = Query(..., gt=0),
    db: Session = Depends(get_db),
):
    """
    Audit trail of one entity, newest first.
    admin_id names the calling admin; it is required and logged with the read.
    Checking that the caller really is that admin happens upstream of this service.
    """
    logger.info(f"History of {entity_type} {entity_id} read by admin {admin_id}")
    return HistoryService(db).list_for_entity(entity_type, entity_id)
