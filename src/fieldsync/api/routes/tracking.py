"""Sync tracking routes: field state, transitions and rollups."""
from typing import Any, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from fieldsync.api.deps import get_tracker
from fieldsync.models.tracking import ConflictResolution, SyncDirection, SyncRecord
from fieldsync.tracking.service import SyncTrackingService
from fieldsync.tracking.summary import get_status_summary, get_sync_stats

router = APIRouter()


class FieldValueRequest(BaseModel):
    category: str
    field: str
    value: Any = None


class MarkSyncedRequest(BaseModel):
    category: str
    field: str
    direction: SyncDirection
    value_hash: str
    expected_hash: Optional[str] = None  # source-side hash when the copy started


class ResolveConflictRequest(BaseModel):
    category: str
    field: str
    resolution: ConflictResolution
    value_hash: str


@router.get("/{tenant_id}", response_model=List[SyncRecord])
def sync_tracking(
    tenant_id: str,
    category: Optional[str] = None,
    tracker: SyncTrackingService = Depends(get_tracker),
):
    """All tracked fields for a tenant, optionally one category."""
    return tracker.get_sync_tracking(tenant_id, category)


@router.get("/{tenant_id}/summary")
def status_summary(tenant_id: str, tracker: SyncTrackingService = Depends(get_tracker)):
    """Status counts plus the worst-status-wins rollup per category."""
    return get_status_summary(tracker.store, tenant_id)


@router.get("/{tenant_id}/stats")
def sync_stats(tenant_id: str, tracker: SyncTrackingService = Depends(get_tracker)):
    """History-derived sync statistics."""
    return get_sync_stats(tracker.store, tenant_id)


@router.get("/{tenant_id}/pending-push", response_model=List[SyncRecord])
def pending_push(tenant_id: str, tracker: SyncTrackingService = Depends(get_tracker)):
    return tracker.get_pending_push(tenant_id)


@router.get("/{tenant_id}/pending-pull", response_model=List[SyncRecord])
def pending_pull(tenant_id: str, tracker: SyncTrackingService = Depends(get_tracker)):
    return tracker.get_pending_pull(tenant_id)


@router.get("/{tenant_id}/conflicts", response_model=List[SyncRecord])
def conflicts(tenant_id: str, tracker: SyncTrackingService = Depends(get_tracker)):
    return tracker.get_conflicts(tenant_id)


@router.post("/{tenant_id}/initialize")
def initialize(tenant_id: str, tracker: SyncTrackingService = Depends(get_tracker)):
    """Seed records for every registry field the tenant does not have yet."""
    created = tracker.initialize(tenant_id)
    return {"tenant_id": tenant_id, "created": created}


@router.post("/{tenant_id}/local", response_model=SyncRecord)
def local_changed(
    tenant_id: str,
    request: FieldValueRequest,
    tracker: SyncTrackingService = Depends(get_tracker),
):
    """Report a local write."""
    return tracker.update_local_value(tenant_id, request.category, request.field, request.value)


@router.post("/{tenant_id}/remote", response_model=SyncRecord)
def remote_changed(
    tenant_id: str,
    request: FieldValueRequest,
    tracker: SyncTrackingService = Depends(get_tracker),
):
    """Report a value read from the business-profile service."""
    return tracker.update_remote_value(tenant_id, request.category, request.field, request.value)


@router.post("/{tenant_id}/mark-synced", response_model=SyncRecord)
def mark_synced(
    tenant_id: str,
    request: MarkSyncedRequest,
    tracker: SyncTrackingService = Depends(get_tracker),
):
    return tracker.mark_synced(
        tenant_id, request.category, request.field, request.direction, request.value_hash,
        expected_hash=request.expected_hash,
    )


@router.post("/{tenant_id}/resolve", response_model=SyncRecord)
def resolve_conflict(
    tenant_id: str,
    request: ResolveConflictRequest,
    tracker: SyncTrackingService = Depends(get_tracker),
):
    return tracker.resolve_conflict(
        tenant_id, request.category, request.field, request.resolution, request.value_hash
    )
