"""In-memory cache of Diagnosis results.

Entries are keyed by ``UnitIdentity``: namespace, name, pod UID and the
highest restart count across all of the pod's containers. A restart of any
container produces a new key, so a verdict from before the restart is never
served afterwards, whatever its TTL.

Expiry
------
``get`` treats an entry as a miss once ``now > expires_at`` but leaves it in
place. Entries are only removed by ``sweep``, which the reconcile pass calls
with the keys of every pod it still observes as non-ready.

Concurrency
-----------
Reconcile passes for different monitored groups and status readers may hit
the cache from different threads or tasks. Every read and write of the
entry map happens under one lock and never awaits while holding it.
"""

from __future__ import annotations

import dataclasses
import threading
from collections.abc import Callable, Iterable
from datetime import UTC, datetime, timedelta

from podsleuth.models.analysis import CacheEntry, Diagnosis, UnitIdentity
from podsleuth.models.resources import Unit
from podsleuth.observability.logging import get_logger
from podsleuth.observability.metrics import (
    analysis_cache_entries,
    analysis_cache_evictions_total,
    analysis_cache_lookups_total,
)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


def cache_key(unit: Unit) -> UnitIdentity:
    """Identity of ``unit`` fenced by its restart generation."""
    return UnitIdentity(
        namespace=unit.namespace,
        name=unit.name,
        uid=unit.uid,
        generation=unit.max_restart_count,
    )


class AnalysisCache:
    """TTL cache of diagnoses, safe for concurrent use.

    Example::

        cache = AnalysisCache()
        key = cache_key(unit)
        diagnosis = cache.get(key)
        if diagnosis is None:
            diagnosis = cache.put(key, fresh, ttl=timedelta(minutes=5))
    """

    def __init__(self, clock: Clock = _utcnow) -> None:
        self._log = get_logger("cache.analysis")
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[UnitIdentity, CacheEntry] = {}

    def get(self, key: UnitIdentity) -> Diagnosis | None:
        """Return the cached diagnosis for ``key`` unless absent or expired."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)

        if entry is None:
            analysis_cache_lookups_total.labels(result="miss").inc()
            return None
        if now > entry.expires_at:
            analysis_cache_lookups_total.labels(result="expired").inc()
            self._log.debug("analysis_cache_expired", key=str(key), expired_at=entry.expires_at.isoformat())
            return None

        analysis_cache_lookups_total.labels(result="hit").inc()
        return entry.diagnosis

    def put(self, key: UnitIdentity, diagnosis: Diagnosis, ttl: timedelta) -> Diagnosis:
        """Store a copy of ``diagnosis`` stamped with its cache window and return it."""
        now = self._clock()
        expires_at = now + ttl
        stamped = dataclasses.replace(diagnosis, cached_at=now, cache_expires_at=expires_at)
        entry = CacheEntry(identity=key, diagnosis=stamped, cached_at=now, expires_at=expires_at)

        with self._lock:
            self._entries[key] = entry
            size = len(self._entries)

        analysis_cache_entries.set(size)
        self._log.debug("analysis_cache_stored", key=str(key), expires_at=expires_at.isoformat())
        return stamped

    def sweep(self, live_keys: Iterable[UnitIdentity]) -> int:
        """Drop every entry whose key is not in ``live_keys``; return how many."""
        live = set(live_keys)
        with self._lock:
            stale = [key for key in self._entries if key not in live]
            for key in stale:
                del self._entries[key]
            size = len(self._entries)

        analysis_cache_entries.set(size)
        if stale:
            analysis_cache_evictions_total.inc(len(stale))
            self._log.debug("analysis_cache_swept", evicted=len(stale), remaining=size)
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries
