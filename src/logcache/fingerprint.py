"""Deterministic cache keys for log queries."""

from __future__ import annotations

import hashlib
from typing import Final

from logcache.config import FINGERPRINT_VERSION
from logcache.schemas import LogQuery

# Placeholders hashed in place of absent optional fields. Each field has its
# own literal so that "missing" differs between fields.
FIELD_SENTINELS: Final[tuple[tuple[str, str], ...]] = (
    ("log_group", "log-group-name"),
    ("log_stream", "log-stream-name"),
    ("filter_pattern", "filter-pattern"),
    ("start_time", "start-time"),
    ("end_time", "end-time"),
    ("max_items", "max-items"),
)

_SEPARATOR: Final[bytes] = b"\x00"


def compute_fingerprint(query: LogQuery, version: int = FINGERPRINT_VERSION) -> str:
    """Derive the cache key for a query.

    The digest covers a one-byte format version followed by every query
    field in a fixed order. The result depends only on its inputs, never on
    the process, clock or environment.

    Args:
        query: The query to fingerprint.
        version: Format version marker (0-255).

    Returns:
        A 40 character lowercase hex string.

    Raises:
        ValueError: If version does not fit in one byte.
    """
    if not 0 <= version <= 0xFF:
        raise ValueError(f"Fingerprint version must fit in one byte: {version}")

    hasher = hashlib.sha1(usedforsecurity=False)
    hasher.update(bytes([version]))
    for field_name, sentinel in FIELD_SENTINELS:
        value = getattr(query, field_name)
        text = sentinel if value is None else str(value)
        hasher.update(text.encode("utf-8"))
        hasher.update(_SEPARATOR)
    return hasher.hexdigest()
