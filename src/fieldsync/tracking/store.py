"""
SyncStateStore: durable holder of SyncRecord rows.

Every write is a single read-modify-write, run under the per-key lock for
(tenant, category, field). Records are never deleted.

The key lock only serializes writers in this process. Across processes the
database decides:
  - updates are conditional on the row's version column; a writer whose
    UPDATE matches no row lost the race, re-reads and re-applies
  - the unique constraint on (tenant_id, field_category, field_name) settles
    creation races the same way
"""
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Callable, Iterator, List, Optional

from sqlalchemy import update
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlmodel import Session, select

from fieldsync.models.tracking import SyncRecord, SyncStatus
from fieldsync.tracking.errors import NotFound, TransientStoreError
from fieldsync.tracking.locks import KeyedLocks
from fieldsync.tracking.state_machine import FieldState

logger = logging.getLogger(__name__)

Transition = Callable[..., FieldState]
Clock = Callable[[], datetime]

MAX_WRITE_ATTEMPTS = 5


class _StaleRead(Exception):
    """The row changed between our read and our conditional update."""


@contextmanager
def translate_store_errors(action: str) -> Iterator[None]:
    """Re-raise database driver errors as TransientStoreError."""
    try:
        yield
    except IntegrityError:
        raise
    except DBAPIError as exc:
        raise TransientStoreError(f"Store unavailable while {action}: {exc}") from exc


class SyncStateStore:
    """Keyed access to SyncRecord rows."""

    def __init__(self, engine, locks: Optional[KeyedLocks] = None):
        """
        Args:
            engine: SQLAlchemy engine (SQLModel create_engine result).
            locks: KeyedLocks shared by every store writing to this engine.
        """
        self.engine = engine
        self.locks = locks or KeyedLocks()

    # ─── Writes ───────────────────────────────────────────────────────────────

    def apply(
        self,
        tenant_id: str,
        category: str,
        field_name: str,
        transition: Transition,
        *,
        clock: Clock,
        create: bool = True,
    ) -> SyncRecord:
        """
        Run `transition` against the current record and persist the result.

        Args:
            transition: Pure function called as transition(state, now=now),
                returning the next FieldState. May raise to abort; nothing is
                written in that case.
            clock: Read once under the key lock, so timestamps follow the
                order in which writes to the key are serialized.
            create: If False, a missing record raises NotFound.

        Returns:
            The persisted record, detached from its session.
        """
        key = (tenant_id, category, field_name)
        with self.locks.hold(key):
            for _ in range(MAX_WRITE_ATTEMPTS):
                try:
                    return self._apply_once(key, transition, now=clock(), create=create)
                except IntegrityError:
                    # Another process inserted the row between our read and write
                    logger.debug("Insert race on %s, retrying against existing row", key)
                    create = False
                except _StaleRead:
                    logger.debug("Concurrent update on %s, retrying", key)
            raise TransientStoreError(
                f"Could not write sync record {key}: "
                f"{MAX_WRITE_ATTEMPTS} attempts lost to concurrent writers"
            )

    def _apply_once(self, key, transition: Transition, *, now: datetime, create: bool) -> SyncRecord:
        tenant_id, category, field_name = key
        with translate_store_errors(f"updating {category}/{field_name}"):
            with Session(self.engine) as s:
                record = self._find(s, tenant_id, category, field_name)
                if record is None:
                    if not create:
                        raise NotFound(tenant_id, category, field_name)
                    record = SyncRecord(
                        tenant_id=tenant_id,
                        field_category=category,
                        field_name=field_name,
                        created_at=now,
                        updated_at=now,
                    )
                    transition(FieldState(), now=now).apply_to(record)
                    s.add(record)
                    s.commit()
                    s.refresh(record)
                    return record

                read_version = record.version
                next_state = transition(FieldState.from_record(record), now=now)
                result = s.connection().execute(
                    update(SyncRecord.__table__)
                    .where(
                        SyncRecord.id == record.id,
                        SyncRecord.version == read_version,
                    )
                    .values(
                        **next_state.as_values(),
                        updated_at=now,
                        version=read_version + 1,
                    )
                )
                if result.rowcount == 0:
                    s.rollback()
                    raise _StaleRead(key)
                s.commit()
                s.refresh(record)
                return record

    def insert_if_absent(
        self, tenant_id: str, category: str, field_name: str, *, now: datetime
    ) -> bool:
        """Insert an `unknown` record unless one exists. Returns True if inserted."""
        key = (tenant_id, category, field_name)
        with self.locks.hold(key):
            try:
                with translate_store_errors(f"initializing {category}/{field_name}"):
                    with Session(self.engine) as s:
                        if self._find(s, tenant_id, category, field_name) is not None:
                            return False
                        s.add(SyncRecord(
                            tenant_id=tenant_id,
                            field_category=category,
                            field_name=field_name,
                            sync_status=SyncStatus.UNKNOWN,
                            created_at=now,
                            updated_at=now,
                        ))
                        s.commit()
                        return True
            except IntegrityError:
                return False

    # ─── Reads ────────────────────────────────────────────────────────────────

    def get(self, tenant_id: str, category: str, field_name: str) -> Optional[SyncRecord]:
        with translate_store_errors("reading a sync record"):
            with Session(self.engine) as s:
                return self._find(s, tenant_id, category, field_name)

    def list_records(
        self,
        tenant_id: str,
        *,
        category: Optional[str] = None,
        status: Optional[SyncStatus] = None,
    ) -> List[SyncRecord]:
        """Records for a tenant ordered by category then field name."""
        stmt = select(SyncRecord).where(SyncRecord.tenant_id == tenant_id)
        if category is not None:
            stmt = stmt.where(SyncRecord.field_category == category)
        if status is not None:
            stmt = stmt.where(SyncRecord.sync_status == status)
        stmt = stmt.order_by(SyncRecord.field_category, SyncRecord.field_name)

        with translate_store_errors("listing sync records"):
            with Session(self.engine) as s:
                return list(s.exec(stmt).all())

    def tenants(self) -> List[str]:
        """Distinct tenant ids that have at least one record."""
        stmt = select(SyncRecord.tenant_id).distinct().order_by(SyncRecord.tenant_id)
        with translate_store_errors("listing tenants"):
            with Session(self.engine) as s:
                return list(s.exec(stmt).all())

    @staticmethod
    def _find(s: Session, tenant_id: str, category: str, field_name: str) -> Optional[SyncRecord]:
        return s.exec(
            select(SyncRecord).where(
                SyncRecord.tenant_id == tenant_id,
                SyncRecord.field_category == category,
                SyncRecord.field_name == field_name,
            )
        ).first()
