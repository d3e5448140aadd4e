"""In-memory TTL cache for raw per-(source, query, filters) results."""
from __future__ import annotations

import hashlib
import json
import threading
import time
from collections import OrderedDict
from typing import Callable

from remote_jobs.log import get_logger
from remote_jobs.models import Job, SearchFilters

log = get_logger(__name__)


def cache_key(source: str, query: str, filters: SearchFilters | None) -> str:
    payload = {
        "source": source.lower(),
        "query": query.lower().strip(),
        "filters": (filters or SearchFilters()).as_dict(),
    }
    return hashlib.md5(json.dumps(payload, sort_keys=True).encode()).hexdigest()


class ResultCache:
    """Bounded; the oldest entry is evicted once ``max_size`` is reached."""

    def __init__(
        self,
        ttl: float = 900.0,
        max_size: int = 100,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl = ttl
        self.max_size = max_size
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: OrderedDict[str, tuple[float, list[Job]]] = OrderedDict()

    def get(self, key: str) -> list[Job] | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, jobs = entry
            if expires_at <= self._clock():
                del self._entries[key]
                return None
            log.debug("Cache hit %s...", key[:8])
            return list(jobs)

    @property
    def enabled(self) -> bool:
        return self.max_size > 0 and self.ttl > 0

    def set(self, key: str, jobs: list[Job]) -> None:
        if not self.enabled:
            return
        with self._lock:
            self._entries.pop(key, None)
            while self._entries and len(self._entries) >= self.max_size:
                self._entries.popitem(last=False)
            self._entries[key] = (self._clock() + self.ttl, list(jobs))

    def clear(self) -> int:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        log.info("Result cache cleared (%d entries)", count)
        return count

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
