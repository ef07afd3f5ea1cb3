"""Canonical ID, hash and timestamp factories for the journal.

ID Categories
-------------
1. Internal IDs: UUID v4 strings (snapshot ids, orderbook ids)
2. Content-derived IDs: SHA256 hex digests of uploaded files (``file_hash``)

Timestamp Rule
--------------
All timestamps are ``datetime`` with ``tzinfo=timezone.utc``; never naive.
"""

from __future__ import annotations

import hashlib
import uuid
from datetime import datetime, timezone


def new_id() -> str:
    """Generate a new UUID v4 string.  Use for all internal entity IDs."""
    return str(uuid.uuid4())


def utc_now() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(timezone.utc)


def file_hash(data: bytes) -> str:
    """Full SHA256 hex digest of raw file bytes.

    Two uploads with byte-identical content produce the same hash, which
    is what orderbook deduplication keys on.
    """
    return hashlib.sha256(data).hexdigest()
