"""Exceptions raised by the sync tracker."""


class SyncTrackingError(Exception):
    """Base class for all tracker errors."""


class InvalidField(SyncTrackingError, ValueError):
    """Raised when a (category, field) pair is not declared in the registry."""

    def __init__(self, category: str, field_name=None):
        self.category = category
        self.field_name = field_name
        if field_name is None:
            msg = f"Unknown sync category {category!r}"
        else:
            msg = f"Unknown sync field {category!r}/{field_name!r}"
        super().__init__(msg)


class NotFound(SyncTrackingError, LookupError):
    """Raised when an operation needs an existing SyncRecord and none exists."""

    def __init__(self, tenant_id: str, category: str, field_name: str):
        self.tenant_id = tenant_id
        self.category = category
        self.field_name = field_name
        super().__init__(
            f"No sync record for tenant {tenant_id!r} field {category}/{field_name}"
        )


class ConflictNotPending(SyncTrackingError):
    """Raised when a conflict resolution targets a record that is not in conflict."""

    def __init__(self, tenant_id: str, category: str, field_name: str, status):
        self.status = status
        super().__init__(
            f"Field {category}/{field_name} for tenant {tenant_id!r} is "
            f"{getattr(status, 'value', status)}, not conflict"
        )


class SyncSuperseded(SyncTrackingError):
    """
    Raised when a sync confirmation arrives for a value that is no longer current.

    The side the value was copied from reported a newer value while the copy
    was in flight, so the record stays pending for the newer one.
    """

    def __init__(self, tenant_id: str, category: str, field_name: str, direction):
        self.direction = direction
        super().__init__(
            f"Field {category}/{field_name} for tenant {tenant_id!r} changed during "
            f"{getattr(direction, 'value', direction)}; confirmation dropped"
        )


class TransientStoreError(SyncTrackingError):
    """Raised when the persistence layer is unavailable. Callers should retry."""


class HistoryWriteFailure(SyncTrackingError):
    """
    A history entry could not be written.

    Never raised to callers of the tracker; handed to the history failure
    channel instead.
    """
