"""In-process cache of generated fill values.

Entries are keyed by a fingerprint of the form's shape, so two pages with the
same fields get the same answer for ``cache_ttl_seconds`` without another
upstream call.
"""

import hashlib
import json
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

from formfill.app.core.logging import get_logger
from formfill.app.schemas import FormField, ResultSet

logger = get_logger(__name__)


@dataclass
class _CacheEntry:
    """Internal cache entry with its store time."""

    result: ResultSet
    stored_at: float

    def is_expired(self, now: float, ttl: float) -> bool:
        return now - self.stored_at >= ttl


class ResponseCache:
    """Fingerprint -> result set map with TTL expiry and a size bound.

    Methods are plain synchronous calls guarded by a lock, so a lookup or
    store never yields to the event loop halfway through.

    The table is an OrderedDict kept in store order: a store moves its entry
    to the end, so when the table is over capacity the front holds the
    oldest entries.
    """

    def __init__(
        self,
        ttl_seconds: float = 300.0,
        max_entries: int = 1000,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, _CacheEntry] = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    @staticmethod
    def fingerprint(fields: Sequence[FormField]) -> str:
        """Digest of the ordered (name, type, label) triples.

        ``id`` and ``existingValue`` are deliberately left out: they change
        between page loads while the form itself does not. Field order is
        part of the fingerprint.
        """
        shape = [[f.name, f.type, f.label] for f in fields]
        encoded = json.dumps(shape, ensure_ascii=False, separators=(",", ":"))
        return hashlib.sha256(encoded.encode("utf-8")).hexdigest()

    def lookup(self, fields: Sequence[FormField]) -> Optional[ResultSet]:
        """Return the cached result set, or None when missing or expired."""
        key = self.fingerprint(fields)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if entry.is_expired(self._clock(), self.ttl_seconds):
                del self._entries[key]
                self._misses += 1
                return None
            self._hits += 1
            return dict(entry.result)

    def store(self, fields: Sequence[FormField], result: ResultSet) -> None:
        """Store ``result`` under the fields' fingerprint, stamped with now."""
        key = self.fingerprint(fields)
        with self._lock:
            now = self._clock()
            self._entries[key] = _CacheEntry(result=dict(result), stored_at=now)
            self._entries.move_to_end(key)
            if len(self._entries) > self.max_entries:
                self._evict(now)

    def _evict(self, now: float) -> None:
        expired = [
            key for key, entry in self._entries.items()
            if entry.is_expired(now, self.ttl_seconds)
        ]
        for key in expired:
            del self._entries[key]

        evicted = 0
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)
            evicted += 1

        logger.debug(
            f"Response cache trimmed: {len(expired)} expired, {evicted} evicted, "
            f"{len(self._entries)} remaining"
        )

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0

    def stats(self) -> dict[str, Any]:
        """Cache statistics for the health endpoint."""
        with self._lock:
            total = self._hits + self._misses
            return {
                "size": len(self._entries),
                "max_entries": self.max_entries,
                "ttl_seconds": self.ttl_seconds,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": round(self._hits / total, 4) if total else 0.0,
            }
