"""
SyncTrackingService: the state machine engine exposed to orchestrators.

Flow for one observed change:
  1. Validate (category, field) against the registry
  2. Fingerprint the value
  3. Store.apply(): read record, run the pure transition, write it back

The service never talks to the external profile service. An orchestrator
reads the pending lists, performs the push or pull itself, and reports the
outcome through mark_synced() (success) or the history logger (failure).
"""
import logging
from datetime import datetime
from functools import partial
from typing import Any, List, Optional, Union

from fieldsync.config import get_settings
from fieldsync.models.tracking import (
    ConflictResolution,
    SyncDirection,
    SyncRecord,
    SyncStatus,
)
from fieldsync.tracking import registry
from fieldsync.tracking import state_machine as sm
from fieldsync.tracking.errors import ConflictNotPending, SyncSuperseded
from fieldsync.tracking.hashing import fingerprint
from fieldsync.tracking.store import Clock, SyncStateStore

logger = logging.getLogger(__name__)


class SyncTrackingService:
    """Per-field sync state for every tenant."""

    def __init__(
        self,
        store: SyncStateStore,
        clock: Clock = datetime.utcnow,
        strict_conflict_resolution: Optional[bool] = None,
    ):
        """
        Args:
            store: SyncStateStore holding the records.
            clock: Returns the current naive-UTC time. Must be shared with
                whatever reports remote changes, since the conflict heuristic
                compares timestamps from both sides.
            strict_conflict_resolution: Reject resolve_conflict() on records
                not in conflict. Defaults to the configured setting.
        """
        self.store = store
        self.clock = clock
        if strict_conflict_resolution is None:
            strict_conflict_resolution = get_settings().strict_conflict_resolution
        self.strict_conflict_resolution = strict_conflict_resolution

    # ─── Transitions ──────────────────────────────────────────────────────────

    def update_local_value(
        self, tenant_id: str, category: str, field_name: str, value: Any
    ) -> SyncRecord:
        """Record that the local store now holds `value` for this field."""
        registry.validate(category, field_name)
        record = self.store.apply(
            tenant_id, category, field_name,
            partial(sm.local_changed, value_hash=fingerprint(value)),
            clock=self.clock,
        )
        logger.debug(
            "Local change %s/%s/%s -> %s",
            tenant_id, category, field_name, record.sync_status.value,
        )
        return record

    def update_remote_value(
        self, tenant_id: str, category: str, field_name: str, value: Any
    ) -> SyncRecord:
        """Record that the external service now reports `value` for this field."""
        registry.validate(category, field_name)
        record = self.store.apply(
            tenant_id, category, field_name,
            partial(sm.remote_changed, value_hash=fingerprint(value)),
            clock=self.clock,
        )
        logger.debug(
            "Remote change %s/%s/%s -> %s",
            tenant_id, category, field_name, record.sync_status.value,
        )
        return record

    def mark_synced(
        self,
        tenant_id: str,
        category: str,
        field_name: str,
        direction: Union[SyncDirection, str],
        value_hash: str,
        expected_hash: Optional[str] = None,
    ) -> SyncRecord:
        """
        Confirm that both sides hold the value with `value_hash`.

        Only call this after the external client reported success. A failed
        push or pull must be logged to history and leave the record alone.

        Args:
            expected_hash: The source side's hash when the copy started (the
                local hash for a push, the remote hash for a pull). If given
                and the source side has moved on since, nothing is written.

        Raises:
            InvalidField: undeclared (category, field).
            ValueError: direction is not push or pull.
            SyncSuperseded: the source side changed while the copy was in flight.
        """
        registry.validate(category, field_name)
        direction = SyncDirection(direction)
        if direction == SyncDirection.COMPARE:
            raise ValueError("mark_synced direction must be 'push' or 'pull'")

        def transition(state: sm.FieldState, now: datetime) -> sm.FieldState:
            if expected_hash is not None:
                if direction == SyncDirection.PUSH:
                    current = state.local_value_hash
                else:
                    current = state.google_value_hash
                if current != expected_hash:
                    raise SyncSuperseded(tenant_id, category, field_name, direction)
            return sm.mark_synced(state, direction, value_hash, now)

        record = self.store.apply(
            tenant_id, category, field_name, transition, clock=self.clock
        )
        logger.info(
            "Marked %s/%s/%s synced via %s",
            tenant_id, category, field_name, direction.value,
        )
        return record

    def resolve_conflict(
        self,
        tenant_id: str,
        category: str,
        field_name: str,
        resolution: Union[ConflictResolution, str],
        value_hash: str,
    ) -> SyncRecord:
        """
        Close a conflict with the value an operator settled on.

        Raises:
            InvalidField: undeclared (category, field).
            NotFound: no record exists for this key.
            ConflictNotPending: strict mode and the record is not in conflict.
        """
        registry.validate(category, field_name)
        resolution = ConflictResolution(resolution)

        def transition(state: sm.FieldState, now: datetime) -> sm.FieldState:
            # Checked under the key lock so a concurrent change can't slip in
            if self.strict_conflict_resolution and state.sync_status != SyncStatus.CONFLICT:
                raise ConflictNotPending(tenant_id, category, field_name, state.sync_status)
            return sm.resolve_conflict(state, resolution, value_hash, now)

        record = self.store.apply(
            tenant_id, category, field_name, transition, clock=self.clock, create=False
        )
        logger.info(
            "Resolved conflict on %s/%s/%s (%s)",
            tenant_id, category, field_name, resolution.value,
        )
        return record

    # ─── Queries ──────────────────────────────────────────────────────────────

    def get_sync_tracking(
        self, tenant_id: str, category: Optional[str] = None
    ) -> List[SyncRecord]:
        if category is not None:
            registry.validate_category(category)
        return self.store.list_records(tenant_id, category=category)

    def get_record(
        self, tenant_id: str, category: str, field_name: str
    ) -> Optional[SyncRecord]:
        registry.validate(category, field_name)
        return self.store.get(tenant_id, category, field_name)

    def get_pending_push(self, tenant_id: str) -> List[SyncRecord]:
        return self.store.list_records(tenant_id, status=SyncStatus.PENDING_PUSH)

    def get_pending_pull(self, tenant_id: str) -> List[SyncRecord]:
        return self.store.list_records(tenant_id, status=SyncStatus.PENDING_PULL)

    def get_conflicts(self, tenant_id: str) -> List[SyncRecord]:
        return self.store.list_records(tenant_id, status=SyncStatus.CONFLICT)

    def list_tenants(self) -> List[str]:
        return self.store.tenants()

    # ─── Bulk initialization ──────────────────────────────────────────────────

    def initialize(self, tenant_id: str) -> int:
        """
        Seed an `unknown` record for every registry field the tenant lacks.

        Existing records are left untouched. Each insert is independent, so
        an interrupted run can simply be repeated.

        Returns:
            Number of records created by this call.
        """
        created = 0
        for descriptor in registry.iter_fields():
            if self.store.insert_if_absent(
                tenant_id, descriptor.category, descriptor.field_name, now=self.clock()
            ):
                created += 1
        logger.info(
            "Initialized tracking for tenant %s (%d new of %d fields)",
            tenant_id, created, registry.field_count(),
        )
        return created
