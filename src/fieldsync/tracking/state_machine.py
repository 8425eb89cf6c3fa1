"""
Sync state transitions.

Each transition is a pure, total function of (current state, event) to the
next state. Nothing here touches the database; the store reads the record,
runs one of these, and writes the result back under the key's lock.

States:
  unknown       never seen, or seeded by initialize()
  synced        both sides hold the same hash
  pending_push  local changed, remote has not caught up
  pending_pull  remote changed, local has not caught up
  conflict      both sides changed since they last agreed

Conflict detection is a wall-clock heuristic: a change on one side is a
conflict when the other side's last update is strictly newer than the
agreement baseline. Clock skew between the two reporters shifts the result.
"""
from dataclasses import dataclass, fields, replace
from datetime import datetime
from typing import Optional

from fieldsync.models.tracking import (
    ConflictResolution,
    SyncDirection,
    SyncRecord,
    SyncStatus,
)

EPOCH = datetime(1970, 1, 1)


@dataclass(frozen=True)
class FieldState:
    """The mutable part of a SyncRecord, as a value."""

    local_value_hash: Optional[str] = None
    google_value_hash: Optional[str] = None
    local_updated_at: Optional[datetime] = None
    google_updated_at: Optional[datetime] = None
    last_sync_at: Optional[datetime] = None
    last_sync_direction: Optional[SyncDirection] = None
    last_agreed_at: Optional[datetime] = None
    sync_status: SyncStatus = SyncStatus.UNKNOWN
    conflict_detected_at: Optional[datetime] = None
    conflict_resolution: Optional[ConflictResolution] = None

    @classmethod
    def from_record(cls, record: Optional[SyncRecord]) -> "FieldState":
        if record is None:
            return cls()
        return cls(**{f.name: getattr(record, f.name) for f in fields(cls)})

    def as_values(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def apply_to(self, record: SyncRecord) -> SyncRecord:
        for f in fields(self):
            setattr(record, f.name, getattr(self, f.name))
        return record

    @property
    def baseline(self) -> datetime:
        """The last point at which both sides are known to have agreed."""
        points = [p for p in (self.last_sync_at, self.last_agreed_at) if p is not None]
        return max(points) if points else EPOCH


def _changed_since_agreement(other_hash, other_updated_at, baseline) -> bool:
    return (
        other_hash is not None
        and other_updated_at is not None
        and other_updated_at > baseline
    )


def local_changed(state: FieldState, value_hash: str, now: datetime) -> FieldState:
    """The local store now holds a value with this hash."""
    if state.google_value_hash == value_hash:
        status, detected, agreed = SyncStatus.SYNCED, None, now
    elif _changed_since_agreement(
        state.google_value_hash, state.google_updated_at, state.baseline
    ):
        status, detected, agreed = SyncStatus.CONFLICT, now, state.last_agreed_at
    else:
        status, detected, agreed = SyncStatus.PENDING_PUSH, None, state.last_agreed_at

    return replace(
        state,
        local_value_hash=value_hash,
        local_updated_at=now,
        sync_status=status,
        conflict_detected_at=detected,
        last_agreed_at=agreed,
    )


def remote_changed(state: FieldState, value_hash: str, now: datetime) -> FieldState:
    """The external service now reports a value with this hash."""
    if state.local_value_hash == value_hash:
        status, detected, agreed = SyncStatus.SYNCED, None, now
    elif _changed_since_agreement(
        state.local_value_hash, state.local_updated_at, state.baseline
    ):
        status, detected, agreed = SyncStatus.CONFLICT, now, state.last_agreed_at
    else:
        status, detected, agreed = SyncStatus.PENDING_PULL, None, state.last_agreed_at

    return replace(
        state,
        google_value_hash=value_hash,
        google_updated_at=now,
        sync_status=status,
        conflict_detected_at=detected,
        last_agreed_at=agreed,
    )


def mark_synced(
    state: FieldState,
    direction: SyncDirection,
    final_hash: str,
    now: datetime,
) -> FieldState:
    """Both sides have been confirmed to hold final_hash."""
    return replace(
        state,
        local_value_hash=final_hash,
        google_value_hash=final_hash,
        # A record first created by mark_synced gets both sides stamped
        local_updated_at=state.local_updated_at or now,
        google_updated_at=state.google_updated_at or now,
        last_sync_at=now,
        last_sync_direction=direction,
        last_agreed_at=now,
        sync_status=SyncStatus.SYNCED,
        conflict_detected_at=None,
        conflict_resolution=None,
    )


def resolve_conflict(
    state: FieldState,
    resolution: ConflictResolution,
    final_hash: str,
    now: datetime,
) -> FieldState:
    """An operator picked a winner; both sides now hold final_hash."""
    if resolution == ConflictResolution.LOCAL_WINS:
        direction = SyncDirection.PUSH
    else:
        direction = SyncDirection.PULL
    return replace(
        state,
        local_value_hash=final_hash,
        google_value_hash=final_hash,
        last_sync_at=now,
        last_sync_direction=direction,
        last_agreed_at=now,
        sync_status=SyncStatus.SYNCED,
        conflict_resolution=resolution,
    )
