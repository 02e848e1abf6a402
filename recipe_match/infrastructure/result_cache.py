# recipe_match/infrastructure/result_cache.py
from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterable, Optional, Set

from recipe_match.domain.entities import CacheEntry

log = logging.getLogger("infra.result_cache")


class ResultCache(ABC):
    """Key-value cache of query payloads keyed by fingerprint.

    Entries may be tagged with the recipe ids they contain so a recipe
    mutation can drop every payload that mentions it. Backends raise
    CacheError when unreachable; callers treat that as a miss.
    """

    @abstractmethod
    def get(self, fingerprint: str) -> Optional[CacheEntry]: ...

    @abstractmethod
    def put(self, fingerprint: str, payload: Any, ttl: float, tags: Iterable[str] = ()) -> None: ...

    @abstractmethod
    def invalidate_by_recipe(self, recipe_id: str) -> int: ...

    @abstractmethod
    def clear(self) -> None: ...


class InMemoryResultCache(ResultCache):
    def __init__(
        self,
        max_items: int = 2048,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_items = max_items
        self._clock = clock
        self._data: Dict[str, CacheEntry] = {}
        self._by_tag: Dict[str, Set[str]] = {}
        self._lock = threading.Lock()

    def get(self, fingerprint: str) -> Optional[CacheEntry]:
        with self._lock:
            entry = self._data.get(fingerprint)
            if entry is None:
                return None
            if entry.expired(self._clock()):
                self._drop(fingerprint)
                return None
            return entry

    def put(self, fingerprint: str, payload: Any, ttl: float, tags: Iterable[str] = ()) -> None:
        with self._lock:
            if fingerprint not in self._data and len(self._data) >= self.max_items:
                self._evict()
            self._drop(fingerprint)
            entry = CacheEntry(
                fingerprint=fingerprint,
                payload=payload,
                created_at=self._clock(),
                ttl=float(ttl),
                tags=tuple(sorted(set(tags))),
            )
            self._data[fingerprint] = entry
            for tag in entry.tags:
                self._by_tag.setdefault(tag, set()).add(fingerprint)

    def invalidate_by_recipe(self, recipe_id: str) -> int:
        with self._lock:
            fps = self._by_tag.pop(str(recipe_id), set())
            for fp in fps:
                self._drop(fp)
        if fps:
            log.info("Invalidated %d cached results for recipe %s", len(fps), recipe_id)
        return len(fps)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()
            self._by_tag.clear()

    def __len__(self) -> int:
        return len(self._data)

    def _drop(self, fingerprint: str) -> None:
        entry = self._data.pop(fingerprint, None)
        if entry is None:
            return
        for tag in entry.tags:
            fps = self._by_tag.get(tag)
            if fps is not None:
                fps.discard(fingerprint)
                if not fps:
                    self._by_tag.pop(tag, None)

    def _evict(self) -> None:
        now = self._clock()
        expired = [k for k, v in self._data.items() if v.expired(now)]
        for k in expired:
            self._drop(k)
        if len(self._data) < self.max_items:
            return
        # drop oldest
        oldest = sorted(self._data.values(), key=lambda e: e.created_at)[: max(1, self.max_items // 10)]
        for e in oldest:
            self._drop(e.fingerprint)
