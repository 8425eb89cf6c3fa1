"""
ReconcileService: drives pending fields to the other side.

Flow for one tenant:
  1. pending_push: read the local value → client.push → mark_synced(push)
  2. pending_pull: client.pull → write locally → mark_synced(pull)
  3. conflict:     left alone; a skipped compare entry is logged
Each field outcome is written to history.

mark_synced is guarded by the source hash seen when the copy started. If the
source side reports a newer value while the client call is in flight, the
confirmation is dropped, a skipped entry is logged and the field stays
pending for the newer value.

A client error on one field is logged as a failed history entry and the
SyncRecord is left untouched, so the field stays pending and is retried on
the next run. Store errors (TransientStoreError) abort the run and propagate.

The service holds no network code of its own; the profile-service client and
the local value store are injected.
"""
import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol, Union

from fieldsync.models.history import Initiator, SyncResult
from fieldsync.models.tracking import SyncDirection, SyncRecord
from fieldsync.tracking.errors import SyncSuperseded, TransientStoreError
from fieldsync.tracking.hashing import fingerprint
from fieldsync.tracking.history import SyncHistoryLogger
from fieldsync.tracking.service import SyncTrackingService

logger = logging.getLogger(__name__)


class ExternalSystemClient(Protocol):
    """The external business-profile service, one field at a time."""

    async def push(self, tenant_id: str, category: str, field_name: str, value: Any) -> None: ...

    async def pull(self, tenant_id: str, category: str, field_name: str) -> Any: ...


class LocalValueStore(Protocol):
    """The locally-owned copy of each field's value."""

    async def read(self, tenant_id: str, category: str, field_name: str) -> Any: ...

    async def write(self, tenant_id: str, category: str, field_name: str, value: Any) -> None: ...


@dataclass
class ReconcileResult:
    tenant_id: str
    pushed: int = 0
    pulled: int = 0
    failed: int = 0
    superseded: int = 0  # source changed mid-copy; still pending
    conflicts_skipped: int = 0

    @property
    def attempted(self) -> int:
        return self.pushed + self.pulled + self.failed + self.superseded


class ReconcileService:
    """Pushes and pulls pending fields for a tenant and reports the outcome."""

    def __init__(
        self,
        tracker: SyncTrackingService,
        history: SyncHistoryLogger,
        client: ExternalSystemClient,
        local_store: LocalValueStore,
    ):
        """
        Args:
            tracker: SyncTrackingService holding field state.
            history: SyncHistoryLogger for the audit trail.
            client: External profile-service client (or AsyncMock in tests).
            local_store: Local value store (or AsyncMock in tests).
        """
        self.tracker = tracker
        self.history = history
        self.client = client
        self.local_store = local_store

    async def reconcile_tenant(
        self,
        tenant_id: str,
        initiated_by: Union[Initiator, str] = Initiator.SYSTEM,
    ) -> ReconcileResult:
        """
        Push, pull and report every pending field for one tenant.

        Raises:
            TransientStoreError: the tracker's store is unavailable.
        """
        initiated_by = Initiator(initiated_by)
        result = ReconcileResult(tenant_id=tenant_id)

        for record in self.tracker.get_pending_push(tenant_id):
            outcome = await self._push(record, initiated_by)
            if outcome == SyncResult.SUCCESS:
                result.pushed += 1
            else:
                self._count_unsynced(result, outcome)

        for record in self.tracker.get_pending_pull(tenant_id):
            outcome = await self._pull(record, initiated_by)
            if outcome == SyncResult.SUCCESS:
                result.pulled += 1
            else:
                self._count_unsynced(result, outcome)

        for record in self.tracker.get_conflicts(tenant_id):
            self.history.log_operation(
                tenant_id,
                record.field_category,
                record.field_name,
                SyncDirection.COMPARE,
                SyncResult.SKIPPED,
                error_code="conflict_unresolved",
                error_message="Field is in conflict; resolve it before syncing",
                initiated_by=initiated_by,
            )
            result.conflicts_skipped += 1

        logger.info(
            "Reconciled tenant %s: pushed=%d pulled=%d failed=%d superseded=%d conflicts=%d",
            tenant_id, result.pushed, result.pulled, result.failed,
            result.superseded, result.conflicts_skipped,
        )
        return result

    # ─── Internal helpers ─────────────────────────────────────────────────────

    @staticmethod
    def _count_unsynced(result: ReconcileResult, outcome: SyncResult) -> None:
        if outcome == SyncResult.SKIPPED:
            result.superseded += 1
        else:
            result.failed += 1

    async def _push(self, record: SyncRecord, initiated_by: Initiator) -> SyncResult:
        key = (record.tenant_id, record.field_category, record.field_name)
        try:
            value = await self.local_store.read(*key)
            await self.client.push(*key, value)
        except TransientStoreError:
            raise
        except Exception as exc:
            logger.warning("Push failed for %s/%s/%s: %s", *key, exc)
            self.history.log_failure(*key, SyncDirection.PUSH, exc, initiated_by=initiated_by)
            return SyncResult.FAILED

        return self._confirm(
            key, SyncDirection.PUSH, value, record.local_value_hash, initiated_by
        )

    async def _pull(self, record: SyncRecord, initiated_by: Initiator) -> SyncResult:
        key = (record.tenant_id, record.field_category, record.field_name)
        try:
            value = await self.client.pull(*key)
            await self.local_store.write(*key, value)
        except TransientStoreError:
            raise
        except Exception as exc:
            logger.warning("Pull failed for %s/%s/%s: %s", *key, exc)
            self.history.log_failure(*key, SyncDirection.PULL, exc, initiated_by=initiated_by)
            return SyncResult.FAILED

        return self._confirm(
            key, SyncDirection.PULL, value, record.google_value_hash, initiated_by
        )

    def _confirm(
        self,
        key: tuple,
        direction: SyncDirection,
        value: Any,
        expected_hash: Optional[str],
        initiated_by: Initiator,
    ) -> SyncResult:
        """Mark the copy synced unless its source reported a newer value meanwhile."""
        try:
            self.tracker.mark_synced(
                *key, direction, fingerprint(value), expected_hash=expected_hash
            )
        except SyncSuperseded as exc:
            logger.info("Sync of %s/%s/%s superseded: %s", *key, exc)
            self.history.log_operation(
                *key,
                direction,
                SyncResult.SKIPPED,
                value_after=value,
                error_code="superseded",
                error_message=str(exc),
                initiated_by=initiated_by,
            )
            return SyncResult.SKIPPED

        self.history.log_operation(
            *key,
            direction,
            SyncResult.SUCCESS,
            value_after=value,
            initiated_by=initiated_by,
        )
        return SyncResult.SUCCESS
