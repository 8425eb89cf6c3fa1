"""
Content fingerprints for field values.

Only fingerprints are stored and compared; values are never recovered from
them. None always maps to NULL_FINGERPRINT, which cannot collide with a
real digest (those are 32 hex characters).
"""
import hashlib
import json
from typing import Any

NULL_FINGERPRINT = "null"


def _json_default(obj: Any) -> Any:
    # Set iteration order follows PYTHONHASHSEED, so sort members by their
    # own encoding
    if isinstance(obj, (set, frozenset)):
        return sorted(obj, key=_dumps)
    return str(obj)


def _dumps(value: Any) -> str:
    return json.dumps(
        value,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=_json_default,
    )


def canonical_encode(value: Any) -> bytes:
    """Encode a value so that equal structures always give equal bytes.

    Strings are taken as-is; everything else goes through JSON with sorted
    keys and compact separators. Sets become sorted lists. Other non-JSON
    types (dates, decimals) are stringified.
    """
    if isinstance(value, str):
        return value.encode("utf-8")
    return _dumps(value).encode("utf-8")


def fingerprint(value: Any) -> str:
    """Return the deterministic digest of a field value."""
    if value is None:
        return NULL_FINGERPRINT
    return hashlib.md5(canonical_encode(value)).hexdigest()
