"""Per-user cache of the most recent upload's statistics.

Entries are replaced on the next upload, expire after a TTL, and the
oldest entry is evicted once the cache reaches its size cap.  Nothing is
persisted: a restart empties the cache and only frozen day snapshots
survive.
"""

from __future__ import annotations

import logging
from collections import OrderedDict

from tradebook_journal.core.clock import IClock, WallClock
from tradebook_journal.observability.metrics import update_cache_size

from .stats import Stats

logger = logging.getLogger(__name__)


class StatsCache:
    """TTL + size-bounded map of ``user_id -> Stats``.

    Parameters
    ----------
    ttl_seconds : float
        Lifetime of an entry from the moment it is stored.
    max_entries : int
        Size cap; storing beyond it evicts the least recently stored user.
    clock : IClock
        Time source.  Tests pass a :class:`SimClock`.
    """

    def __init__(
        self,
        ttl_seconds: float = 6 * 60 * 60,
        max_entries: int = 10_000,
        clock: IClock | None = None,
    ) -> None:
        if ttl_seconds <= 0 or max_entries <= 0:
            raise ValueError("ttl_seconds and max_entries must be positive")
        self._ttl = ttl_seconds
        self._max = max_entries
        self._clock = clock or WallClock()
        # user_id -> (stored_at, stats); insertion order is store order
        self._entries: OrderedDict[str, tuple[float, Stats]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, user_id: object) -> bool:
        return isinstance(user_id, str) and self.get(user_id) is not None

    def put(self, user_id: str, stats: Stats) -> None:
        """Store *stats* as the user's latest result."""
        self._evict_expired()
        self._entries.pop(user_id, None)
        self._entries[user_id] = (self._clock.monotonic(), stats)
        while len(self._entries) > self._max:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Stats cache full, evicted user %s", evicted)
        update_cache_size(len(self._entries))

    def get(self, user_id: str) -> Stats | None:
        """Latest stats for the user, or ``None`` if absent or expired."""
        entry = self._entries.get(user_id)
        if entry is None:
            return None
        stored_at, stats = entry
        if self._clock.monotonic() - stored_at >= self._ttl:
            del self._entries[user_id]
            update_cache_size(len(self._entries))
            return None
        return stats

    def invalidate(self, user_id: str) -> None:
        if self._entries.pop(user_id, None) is not None:
            update_cache_size(len(self._entries))

    def clear(self) -> None:
        self._entries.clear()
        update_cache_size(0)

    def _evict_expired(self) -> None:
        now = self._clock.monotonic()
        expired = [
            uid for uid, (stored_at, _) in self._entries.items()
            if now - stored_at >= self._ttl
        ]
        for uid in expired:
            del self._entries[uid]
