"""FastAPI dependencies for the tracker and history logger."""
from fieldsync.db.engine import get_engine
from fieldsync.tracking.history import SyncHistoryLogger
from fieldsync.tracking.locks import KeyedLocks
from fieldsync.tracking.service import SyncTrackingService
from fieldsync.tracking.store import SyncStateStore

# One lock table per process: every request must serialize on the same keys
_locks = KeyedLocks()


def get_tracker() -> SyncTrackingService:
    return SyncTrackingService(SyncStateStore(get_engine(), _locks))


def get_history_logger() -> SyncHistoryLogger:
    return SyncHistoryLogger(get_engine())
