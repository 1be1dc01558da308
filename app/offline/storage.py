"""
Named cache storage.

The controller never touches a global cache registry; it is handed a
``CacheStorage`` and opens caches through it by logical name. Any backend
that satisfies the two protocols below can be substituted (the in-memory one
here, the SQLAlchemy one in ``sql_storage``).
"""
import logging
import threading
from typing import Dict, List, Optional, Protocol, Tuple

from .core import CachedResponse, OfflineRequest

logger = logging.getLogger("offline.storage")


class NamedCache(Protocol):
    """A request -> response store addressed by a string name."""

    name: str

    def match(self, request: OfflineRequest) -> Optional[CachedResponse]:
        ...

    def put(self, request: OfflineRequest, response: CachedResponse) -> None:
        ...

    def delete(self, request: OfflineRequest) -> bool:
        ...

    def keys(self) -> List[str]:
        ...

    def entries(self) -> List[Tuple[str, CachedResponse]]:
        ...

    def __len__(self) -> int:
        ...


class CacheStorage(Protocol):
    """The set of named caches shared by every controller instance."""

    def open(self, name: str) -> NamedCache:
        ...

    def has(self, name: str) -> bool:
        ...

    def keys(self) -> List[str]:
        ...

    def delete(self, name: str) -> bool:
        ...

    def match(self, request: OfflineRequest) -> Optional[CachedResponse]:
        ...


class MemoryNamedCache:
    """In-process named cache. Insertion overwrites any prior entry."""

    def __init__(self, name: str, lock: threading.RLock):
        self.name = name
        self._entries: Dict[str, CachedResponse] = {}
        self._lock = lock

    def match(self, request: OfflineRequest) -> Optional[CachedResponse]:
        with self._lock:
            return self._entries.get(request.cache_key)

    def put(self, request: OfflineRequest, response: CachedResponse) -> None:
        with self._lock:
            self._entries[request.cache_key] = response.stamped()
        logger.debug(f"PUT {self.name}: {request.cache_key} [{response.status}]")

    def delete(self, request: OfflineRequest) -> bool:
        with self._lock:
            return self._entries.pop(request.cache_key, None) is not None

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._entries.keys())

    def entries(self) -> List[Tuple[str, CachedResponse]]:
        with self._lock:
            return list(self._entries.items())

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class MemoryCacheStorage:
    """
    In-memory cache storage.

    Caches are created lazily on first ``open`` and kept in creation order,
    which is the order ``match`` searches them in.
    """

    def __init__(self):
        self._caches: Dict[str, MemoryNamedCache] = {}
        self._lock = threading.RLock()

    def open(self, name: str) -> MemoryNamedCache:
        with self._lock:
            cache = self._caches.get(name)
            if cache is None:
                cache = MemoryNamedCache(name, self._lock)
                self._caches[name] = cache
                logger.debug(f"Created cache: {name}")
            return cache

    def has(self, name: str) -> bool:
        with self._lock:
            return name in self._caches

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._caches.keys())

    def delete(self, name: str) -> bool:
        with self._lock:
            if name in self._caches:
                del self._caches[name]
                logger.info(f"Deleted cache: {name}")
                return True
            return False

    def match(self, request: OfflineRequest) -> Optional[CachedResponse]:
        with self._lock:
            for cache in self._caches.values():
                response = cache.match(request)
                if response is not None:
                    return response
        return None
