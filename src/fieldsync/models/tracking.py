"""Per-field sync tracking model and its state enums."""
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel


class SyncStatus(str, Enum):
    UNKNOWN = "unknown"
    SYNCED = "synced"
    PENDING_PUSH = "pending_push"
    PENDING_PULL = "pending_pull"
    CONFLICT = "conflict"


class SyncDirection(str, Enum):
    PUSH = "push"
    PULL = "pull"
    COMPARE = "compare"  # history only; never stored on a SyncRecord


class ConflictResolution(str, Enum):
    LOCAL_WINS = "local_wins"
    GOOGLE_WINS = "google_wins"
    MANUAL = "manual"


class SyncRecord(SQLModel, table=True):
    """
    Sync state for one (tenant, category, field).

    Only hashes of the values are kept; the values themselves live in the
    local store and in the external profile service.
    """

    __table_args__ = (
        UniqueConstraint("tenant_id", "field_category", "field_name"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    tenant_id: str = Field(index=True)
    field_category: str
    field_name: str

    local_value_hash: Optional[str] = None
    google_value_hash: Optional[str] = None
    local_updated_at: Optional[datetime] = None
    google_updated_at: Optional[datetime] = None

    last_sync_at: Optional[datetime] = None  # explicit confirmations only
    last_sync_direction: Optional[SyncDirection] = None
    # Last time the two hashes were known to match, by any transition
    last_agreed_at: Optional[datetime] = None

    sync_status: SyncStatus = Field(default=SyncStatus.UNKNOWN, index=True)
    conflict_detected_at: Optional[datetime] = None
    conflict_resolution: Optional[ConflictResolution] = None

    # Bumped on every update; writers only commit against the version they read
    version: int = Field(default=0)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
