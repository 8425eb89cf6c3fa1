"""
SyncHistoryLogger: append-only audit trail of sync attempts.

History is a side channel. A failed history write is handed to the failure
handler and swallowed, so an audit outage never fails or rolls back the
transition that triggered it. Reads, on the other hand, propagate
TransientStoreError like any other query.
"""
import logging
from datetime import datetime
from typing import Any, Callable, List, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from fieldsync.config import get_settings
from fieldsync.models.history import Initiator, SyncHistoryEntry, SyncResult
from fieldsync.models.tracking import SyncDirection
from fieldsync.tracking import registry
from fieldsync.tracking.errors import HistoryWriteFailure
from fieldsync.tracking.hashing import fingerprint
from fieldsync.tracking.store import translate_store_errors

logger = logging.getLogger(__name__)

FailureHandler = Callable[[HistoryWriteFailure], None]

# Snapshot arguments default to this so that an explicit None is still recorded
_UNSET = object()


def log_failure_handler(failure: HistoryWriteFailure) -> None:
    """Default failure channel: log with traceback and carry on."""
    logger.error("History write failed: %s", failure, exc_info=failure.__cause__)


def _snapshot(value: Any) -> Optional[str]:
    if value is _UNSET:
        return None
    return fingerprint(value)


class SyncHistoryLogger:
    """Writes and pages through SyncHistoryEntry rows."""

    def __init__(
        self,
        engine,
        clock: Callable[[], datetime] = datetime.utcnow,
        on_failure: Optional[FailureHandler] = None,
    ):
        """
        Args:
            engine: SQLAlchemy engine (SQLModel create_engine result).
            clock: Source of created_at timestamps.
            on_failure: Called with a HistoryWriteFailure whenever an entry
                could not be written. Defaults to logging it.
        """
        self.engine = engine
        self.clock = clock
        self.on_failure = on_failure or log_failure_handler

    def log_operation(
        self,
        tenant_id: str,
        category: str,
        field_name: Optional[str],
        direction: Union[SyncDirection, str],
        result: Union[SyncResult, str],
        *,
        local_before: Any = _UNSET,
        google_before: Any = _UNSET,
        value_after: Any = _UNSET,
        error_code: Optional[str] = None,
        error_message: Optional[str] = None,
        initiated_by: Union[Initiator, str] = Initiator.SYSTEM,
    ) -> Optional[SyncHistoryEntry]:
        """
        Append one history entry.

        Values are stored as fingerprints only. Pass field_name=None for an
        operation covering the whole category.

        Returns:
            The written entry, or None if the write failed (the failure has
            already been reported to on_failure).

        Raises:
            InvalidField / ValueError: bad arguments. These are caller bugs,
                not audit outages, so they are not swallowed.
        """
        if field_name is None:
            registry.validate_category(category)
        else:
            registry.validate(category, field_name)

        entry = SyncHistoryEntry(
            tenant_id=tenant_id,
            field_category=category,
            field_name=field_name,
            sync_direction=SyncDirection(direction),
            sync_status=SyncResult(result),
            local_value_before=_snapshot(local_before),
            google_value_before=_snapshot(google_before),
            value_after=_snapshot(value_after),
            error_code=error_code,
            error_message=error_message,
            initiated_by=Initiator(initiated_by),
            created_at=self.clock(),
        )

        try:
            with Session(self.engine) as s:
                s.add(entry)
                s.commit()
                s.refresh(entry)
            return entry
        except SQLAlchemyError as exc:
            failure = HistoryWriteFailure(
                f"Could not record {entry.sync_direction.value} "
                f"{entry.sync_status.value} for {tenant_id} "
                f"{category}/{field_name or '*'}: {exc}"
            )
            failure.__cause__ = exc
            self._report(failure)
            return None

    def log_failure(
        self,
        tenant_id: str,
        category: str,
        field_name: Optional[str],
        direction: Union[SyncDirection, str],
        exc: BaseException,
        *,
        error_code: Optional[str] = None,
        initiated_by: Union[Initiator, str] = Initiator.SYSTEM,
    ) -> Optional[SyncHistoryEntry]:
        """Record a failed push/pull. The SyncRecord is deliberately not touched."""
        return self.log_operation(
            tenant_id,
            category,
            field_name,
            direction,
            SyncResult.FAILED,
            error_code=error_code or type(exc).__name__,
            error_message=str(exc),
            initiated_by=initiated_by,
        )

    def get_history(
        self,
        tenant_id: str,
        category: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[SyncHistoryEntry]:
        """Newest-first page of history for a tenant, optionally one category."""
        settings = get_settings()
        if limit is None:
            limit = settings.history_default_page_size
        limit = max(0, min(limit, settings.history_max_page_size))
        offset = max(0, offset)

        stmt = select(SyncHistoryEntry).where(SyncHistoryEntry.tenant_id == tenant_id)
        if category is not None:
            registry.validate_category(category)
            stmt = stmt.where(SyncHistoryEntry.field_category == category)
        stmt = (
            stmt.order_by(SyncHistoryEntry.created_at.desc(), SyncHistoryEntry.id.desc())
            .offset(offset)
            .limit(limit)
        )

        with translate_store_errors("reading sync history"):
            with Session(self.engine) as s:
                return list(s.exec(stmt).all())

    def _report(self, failure: HistoryWriteFailure) -> None:
        try:
            self.on_failure(failure)
        except Exception:
            # The failure channel itself must not break the caller either
            logger.exception("History failure handler raised")
