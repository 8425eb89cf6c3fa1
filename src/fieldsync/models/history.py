"""Sync history audit model."""
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlmodel import Field, SQLModel

from fieldsync.models.tracking import SyncDirection


class SyncResult(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    PARTIAL = "partial"
    SKIPPED = "skipped"


class Initiator(str, Enum):
    USER = "user"
    SYSTEM = "system"
    WEBHOOK = "webhook"
    SCHEDULED = "scheduled"


class SyncHistoryEntry(SQLModel, table=True):
    """Records each sync attempt for audit. Rows are never updated."""

    id: Optional[int] = Field(default=None, primary_key=True)
    tenant_id: str = Field(index=True)
    field_category: str
    field_name: Optional[str] = None  # None: whole-category operation

    sync_direction: SyncDirection
    sync_status: SyncResult

    # Fingerprints of the values involved, never the raw values
    local_value_before: Optional[str] = None
    google_value_before: Optional[str] = None
    value_after: Optional[str] = None

    error_code: Optional[str] = None
    error_message: Optional[str] = None
    initiated_by: Initiator = Initiator.SYSTEM
    created_at: datetime = Field(default_factory=datetime.utcnow)
