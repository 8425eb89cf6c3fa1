"""Sync history routes."""
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from fieldsync.api.deps import get_history_logger
from fieldsync.models.history import Initiator, SyncHistoryEntry, SyncResult
from fieldsync.models.tracking import SyncDirection
from fieldsync.tracking.history import SyncHistoryLogger

router = APIRouter()


class LogOperationRequest(BaseModel):
    category: str
    field: Optional[str] = None  # None: whole category
    direction: SyncDirection
    result: SyncResult
    local_before: Optional[Any] = None
    google_before: Optional[Any] = None
    value_after: Optional[Any] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    initiated_by: Initiator = Initiator.USER


@router.get("/{tenant_id}", response_model=List[SyncHistoryEntry])
def sync_history(
    tenant_id: str,
    category: Optional[str] = None,
    limit: Optional[int] = Query(default=None, ge=1),  # None: configured page size
    offset: int = Query(default=0, ge=0),
    history: SyncHistoryLogger = Depends(get_history_logger),
):
    """Newest-first history for a tenant."""
    return history.get_history(tenant_id, category=category, limit=limit, offset=offset)


@router.post("/{tenant_id}", response_model=SyncHistoryEntry)
def log_operation(
    tenant_id: str,
    request: LogOperationRequest,
    history: SyncHistoryLogger = Depends(get_history_logger),
):
    """Append an entry, e.g. a failed push reported by an external worker."""
    snapshots = request.model_dump(
        include={"local_before", "google_before", "value_after"}, exclude_unset=True
    )
    entry = history.log_operation(
        tenant_id,
        request.category,
        request.field,
        request.direction,
        request.result,
        error_code=request.error_code,
        error_message=request.error_message,
        initiated_by=request.initiated_by,
        **snapshots,
    )
    if entry is None:
        raise HTTPException(status_code=503, detail="History store unavailable")
    return entry
