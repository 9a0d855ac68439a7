# storefront/api/deps.py
from typing import Optional

from fastapi import HTTPException, Query

from storefront.domain.errors import (
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from storefront.domain.identity import Identity
from storefront.services.lock_service import LockService
from storefront.services.notification_service import NotificationService


def get_lock_service() -> LockService:
    return LockService()


def get_notification_service() -> NotificationService:
    return NotificationService()


def get_identity(
    user_id: Optional[int] = Query(None, gt=0),
    session_id: Optional[str] = Query(None, min_length=1, max_length=128),
) -> Identity:
    try:
        return Identity.of(user_id=user_id, session_id=session_id)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))


def http_error(e: Exception) -> HTTPException:
    """Domain error -> HTTP status, same mapping for every router."""
    if isinstance(e, PermissionError):
        return HTTPException(status_code=403, detail=str(e))
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, StateConflictError):
        return HTTPException(status_code=409, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))
