"""
Offline cache controller: generational named caches with per-request
stale-while-revalidate, network-first and cache-first strategies.
"""
from .core import CachedResponse, OfflineRequest, Strategy, WorkerState
from .exceptions import (
    InstallError,
    LifecycleError,
    NetworkError,
    OfflineCacheError,
    StorageError,
)
from .policies import (
    API_CACHE,
    API_CACHE_DURATION,
    CACHE_NAME,
    CACHEABLE_API_ROUTES,
    CURRENT_CACHES,
    FONT_CACHE,
    STATIC_ASSETS,
    classify_request,
)
from .strategies import CacheWrite, NetworkResult, StrategyResult, offline_response
from .storage import CacheStorage, MemoryCacheStorage, NamedCache
from .network import Network, RequestsNetwork
from .controller import FetchOutcome, OfflineCacheController
from .registration import (
    ClientRegistry,
    Registration,
    build_controller,
    create_storage,
    get_registration,
    get_storage,
)

__all__ = [
    # Core types
    "CachedResponse",
    "OfflineRequest",
    "Strategy",
    "WorkerState",
    # Errors
    "InstallError",
    "LifecycleError",
    "NetworkError",
    "OfflineCacheError",
    "StorageError",
    # Policies
    "API_CACHE",
    "API_CACHE_DURATION",
    "CACHE_NAME",
    "CACHEABLE_API_ROUTES",
    "CURRENT_CACHES",
    "FONT_CACHE",
    "STATIC_ASSETS",
    "classify_request",
    # Strategies
    "CacheWrite",
    "NetworkResult",
    "StrategyResult",
    "offline_response",
    # Storage / network
    "CacheStorage",
    "MemoryCacheStorage",
    "NamedCache",
    "Network",
    "RequestsNetwork",
    # Controller
    "FetchOutcome",
    "OfflineCacheController",
    "ClientRegistry",
    "Registration",
    "build_controller",
    "create_storage",
    "get_registration",
    "get_storage",
]
