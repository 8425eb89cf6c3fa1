"""
Status rollups for operator tooling.

get_status_summary() folds a tenant's field states into totals and a
per-category status. A category reports the worst status any of its fields
is in, so a category never reads "synced" while one of its fields is
conflicted.

get_sync_stats() is derived from the history log: what was attempted,
how it went, and how much of the tenant is currently conflicted.
"""
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, List

from sqlalchemy import func
from sqlmodel import Session, select

from fieldsync.models.history import SyncHistoryEntry, SyncResult
from fieldsync.models.tracking import SyncDirection, SyncStatus
from fieldsync.tracking.store import SyncStateStore, translate_store_errors

# Most severe first
STATUS_PRIORITY: List[SyncStatus] = [
    SyncStatus.CONFLICT,
    SyncStatus.PENDING_PUSH,
    SyncStatus.PENDING_PULL,
    SyncStatus.UNKNOWN,
    SyncStatus.SYNCED,
]


@dataclass
class CategoryStatus:
    status: SyncStatus
    fields: int


@dataclass
class StatusSummary:
    total: int = 0
    synced: int = 0
    pending_push: int = 0
    pending_pull: int = 0
    conflicts: int = 0
    unknown: int = 0
    by_category: Dict[str, CategoryStatus] = field(default_factory=dict)


@dataclass
class SyncStats:
    total_operations: int = 0
    by_result: Dict[str, int] = field(default_factory=dict)
    by_direction: Dict[str, int] = field(default_factory=dict)
    by_category: Dict[str, int] = field(default_factory=dict)
    success_rate: float = 0.0
    error_rate: float = 0.0
    conflict_rate: float = 0.0


def rollup_status(statuses: Iterable[SyncStatus]) -> SyncStatus:
    """Worst status wins. An empty group reads as synced."""
    present = set(statuses)
    for status in STATUS_PRIORITY:
        if status in present:
            return status
    return SyncStatus.SYNCED


def get_status_summary(store: SyncStateStore, tenant_id: str) -> StatusSummary:
    """Counts per status plus a per-category rollup for one tenant."""
    records = store.list_records(tenant_id)

    counts = Counter(r.sync_status for r in records)
    grouped: Dict[str, List[SyncStatus]] = {}
    for r in records:
        grouped.setdefault(r.field_category, []).append(r.sync_status)

    return StatusSummary(
        total=len(records),
        synced=counts[SyncStatus.SYNCED],
        pending_push=counts[SyncStatus.PENDING_PUSH],
        pending_pull=counts[SyncStatus.PENDING_PULL],
        conflicts=counts[SyncStatus.CONFLICT],
        unknown=counts[SyncStatus.UNKNOWN],
        by_category={
            category: CategoryStatus(status=rollup_status(statuses), fields=len(statuses))
            for category, statuses in grouped.items()
        },
    )


def _grouped_counts(s: Session, tenant_id: str, column) -> Dict[str, int]:
    rows = s.exec(
        select(column, func.count())
        .where(SyncHistoryEntry.tenant_id == tenant_id)
        .group_by(column)
    ).all()
    return {getattr(key, "value", key): count for key, count in rows}


def get_sync_stats(store: SyncStateStore, tenant_id: str) -> SyncStats:
    """Operational statistics from the tenant's history and current records."""
    with translate_store_errors("computing sync statistics"):
        with Session(store.engine) as s:
            by_result = _grouped_counts(s, tenant_id, SyncHistoryEntry.sync_status)
            by_direction = _grouped_counts(s, tenant_id, SyncHistoryEntry.sync_direction)
            by_category = _grouped_counts(s, tenant_id, SyncHistoryEntry.field_category)

    summary = get_status_summary(store, tenant_id)
    total = sum(by_result.values())

    return SyncStats(
        total_operations=total,
        by_result={r.value: by_result.get(r.value, 0) for r in SyncResult},
        by_direction={d.value: by_direction.get(d.value, 0) for d in SyncDirection},
        by_category=by_category,
        success_rate=by_result.get(SyncResult.SUCCESS.value, 0) / total if total else 0.0,
        error_rate=by_result.get(SyncResult.FAILED.value, 0) / total if total else 0.0,
        conflict_rate=summary.conflicts / summary.total if summary.total else 0.0,
    )
