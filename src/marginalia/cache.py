"""Bounded LRU note cache and the cached note-loading workflow."""

import logging
import time
from collections import OrderedDict
from collections.abc import Callable, Hashable
from dataclasses import dataclass
from threading import Lock
from typing import Any, Generic, TypeVar

from .core.model import Note, NoteId
from .core.ports import NoteStore

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 20

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


@dataclass
class CacheEntry(Generic[K, V]):
    key: K
    content: V
    last_accessed: float


class NoteCache(Generic[K, V]):
    """
    Fixed-capacity store that evicts the least recently used entry.

    Entries are kept in recency order, oldest first, so eviction always
    removes the entry with the oldest last_accessed even when the clock
    returns the same value twice. Entries never expire on their own; write
    paths must call invalidate() or clear().

    Reads may come from any thread; put/invalidate/clear take a lock
    because the vault watcher invalidates from its observer thread.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        clock: Callable[[], float] = time.monotonic,
    ):
        if capacity < 1:
            raise ValueError(f"Cache capacity must be at least 1, got {capacity}")
        self._capacity = capacity
        self._clock = clock
        self._entries: OrderedDict[K, CacheEntry[K, V]] = OrderedDict()
        self._lock = Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def get(self, key: K) -> V | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            entry.last_accessed = self._clock()
            self._entries.move_to_end(key)
            return entry.content

    def entry(self, key: K) -> CacheEntry[K, V] | None:
        """Peek at an entry without refreshing its recency."""
        return self._entries.get(key)

    def put(self, key: K, content: V) -> None:
        with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)
            elif len(self._entries) >= self._capacity:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Evicted %s from cache", evicted)
            self._entries[key] = CacheEntry(key=key, content=content, last_accessed=self._clock())

    def invalidate(self, key: K) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def keys(self) -> list[K]:
        """Keys from least to most recently used."""
        return list(self._entries)

    def __contains__(self, key: Any) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class CachedNotes:
    """Load notes through the cache, falling back to the store on a miss."""

    def __init__(self, store: NoteStore, cache: NoteCache[NoteId, Note] | None = None):
        self.store = store
        self.cache: NoteCache[NoteId, Note] = cache if cache is not None else NoteCache()

    async def load(self, id: NoteId) -> Note:
        cached = self.cache.get(id)
        if cached is not None:
            logger.debug("Using cached note %s", id)
            return cached

        logger.debug("Loading note %s from store", id)
        note = await self.store.fetch_note(id)
        self.cache.put(id, note)
        return note

    def update(self, note: Note) -> None:
        self.cache.put(note.id, note)

    def invalidate(self, id: NoteId) -> None:
        self.cache.invalidate(id)

    def clear(self) -> None:
        self.cache.clear()
