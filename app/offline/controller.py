"""
Offline cache controller: lifecycle handling and per-request strategy dispatch.
"""
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, List, Optional, Set, Tuple

from .core import CachedResponse, OfflineRequest, Strategy, WorkerState
from .exceptions import InstallError, LifecycleError, NetworkError
from .network import Network
from .policies import (
    API_CACHE,
    API_CACHE_DURATION,
    CACHE_NAME,
    CURRENT_CACHES,
    STATIC_ASSETS,
    cache_for_strategy,
    classify_request,
    is_stale_cache,
    resolve_asset,
)
from .storage import CacheStorage
from .strategies import CacheWrite, NetworkResult, StrategyResult, get_strategy

logger = logging.getLogger("offline.controller")

SKIP_WAITING_MESSAGE = "SKIP_WAITING"


@dataclass
class FetchOutcome:
    """
    What the controller did with a request.

    ``intercepted`` False means the request should go to the network
    untouched. An intercepted outcome may still carry no response: the API
    strategy returns nothing when it is offline and has no cached entry.
    """
    strategy: Strategy
    intercepted: bool
    response: Optional[CachedResponse] = None
    from_cache: bool = False
    offline: bool = False


class OfflineCacheController:
    """
    Offline cache controller with:
    - Install: atomic precache of the static asset manifest
    - Activate: generational cleanup of caches from older versions
    - Fetch: per-request strategy selection (stale-while-revalidate,
      network-first, cache-first)
    - Message: page-requested skip-waiting

    Cache storage and network are injected so tests can swap in fakes.
    """

    def __init__(
        self,
        storage: CacheStorage,
        network: Network,
        origin: str,
        clients: Optional[Any] = None,
        skip_waiting_on_install: bool = True,
        max_refresh_workers: int = 4,
    ):
        """
        Initialize the controller.

        Args:
            storage: Named cache storage shared by every controller instance
            network: Network capability used for live fetches
            origin: Origin of the application shell (e.g. http://localhost:5000)
            clients: Client registry to claim on activation
            skip_waiting_on_install: Request immediate activation after install
            max_refresh_workers: Thread pool size for background refreshes
        """
        self.storage = storage
        self.network = network
        self.origin = origin.rstrip("/")
        self.clients = clients
        self.skip_waiting_on_install = skip_waiting_on_install
        self.version = CACHE_NAME

        self.state = WorkerState.PARSED
        self.skip_waiting_requested = False

        # Background refresh
        self._refresh_pool = ThreadPoolExecutor(
            max_workers=max_refresh_workers,
            thread_name_prefix="cache-refresh",
        )
        self._pending: Set[Future] = set()
        self._pending_lock = threading.Lock()

        # Stats tracking
        self._stats = {
            "requests": 0,
            "passed_through": 0,
            "cache_hits": 0,
            "cache_misses": 0,
            "network_failures": 0,
            "offline_fallbacks": 0,
            "refreshes": 0,
            "refresh_failures": 0,
        }
        self._strategy_counts: Dict[str, int] = {s.value: 0 for s in Strategy}
        self._stats_lock = threading.Lock()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def install(self) -> None:
        """
        Precache the static asset manifest.

        All-or-nothing: every manifest path must fetch with a 2xx status
        before anything is stored.

        Raises:
            LifecycleError: If the controller was already installed
            InstallError: If any manifest entry could not be fetched
        """
        if self.state is not WorkerState.PARSED:
            raise LifecycleError(f"Cannot install from state {self.state.value}")

        self.state = WorkerState.INSTALLING
        cache = self.storage.open(CACHE_NAME)

        fetched = []
        for path in STATIC_ASSETS:
            request = OfflineRequest(url=resolve_asset(self.origin, path))
            try:
                response = self.network.fetch(request)
            except NetworkError as e:
                self._fail_install(f"{path}: {e.reason or e}")
                raise InstallError(f"Failed to precache {path}") from e
            if not response.ok:
                self._fail_install(f"{path}: HTTP {response.status}")
                raise InstallError(f"Failed to precache {path}: HTTP {response.status}")
            fetched.append((request, response))

        for request, response in fetched:
            cache.put(request, response)

        self.state = WorkerState.INSTALLED
        logger.info(f"Installed {self.version}: precached {len(fetched)} assets")

        if self.skip_waiting_on_install:
            self.skip_waiting()

    def _fail_install(self, reason: str) -> None:
        logger.error(f"Install failed for {self.version} - {reason}")
        self.state = WorkerState.REDUNDANT

    def skip_waiting(self) -> None:
        """Ask to be activated without waiting for older controllers to release."""
        self.skip_waiting_requested = True
        logger.debug(f"Skip waiting requested for {self.version}")

    def activate(self) -> List[str]:
        """
        Delete caches from older generations and claim open clients.

        Returns:
            Names of the caches that were deleted

        Raises:
            LifecycleError: If the controller is not installed
        """
        if self.state is not WorkerState.INSTALLED:
            raise LifecycleError(f"Cannot activate from state {self.state.value}")

        self.state = WorkerState.ACTIVATING

        deleted = []
        for name in self.storage.keys():
            if is_stale_cache(name) and self.storage.delete(name):
                deleted.append(name)
        if deleted:
            logger.info(f"Deleted stale caches: {', '.join(deleted)}")

        self.evict_expired()

        self.state = WorkerState.ACTIVATED
        if self.clients is not None:
            self.clients.claim(self)
        logger.info(f"Activated {self.version}")
        return deleted

    def retire(self) -> None:
        """Mark this controller as superseded and stop background work."""
        self.state = WorkerState.REDUNDANT
        self._refresh_pool.shutdown(wait=False)

    def handle_message(self, data: Any) -> bool:
        """
        Handle a message posted by a page.

        Returns:
            True if the message requested skip-waiting
        """
        if isinstance(data, dict) and data.get("type") == SKIP_WAITING_MESSAGE:
            self.skip_waiting()
            return True
        return False

    # =========================================================================
    # Fetch
    # =========================================================================

    def handle_fetch(self, request: OfflineRequest) -> FetchOutcome:
        """
        Serve a request according to its strategy.

        Network failures never escape this method.

        Raises:
            LifecycleError: If the controller is not active
        """
        if self.state is not WorkerState.ACTIVATED:
            raise LifecycleError(f"Cannot handle fetch in state {self.state.value}")

        strategy = classify_request(request)
        self._count("requests", strategy=strategy)

        if strategy is Strategy.PASS_THROUGH:
            self._count("passed_through")
            return FetchOutcome(strategy=strategy, intercepted=False)

        if strategy.serves_cache_immediately:
            result = self._serve_cache_first(strategy, request)
        else:
            result = self._serve_network_first(strategy, request)

        if result.offline:
            self._count("offline_fallbacks")

        return FetchOutcome(
            strategy=strategy,
            intercepted=True,
            response=result.response,
            from_cache=result.from_cache,
            offline=result.offline,
        )

    def _serve_cache_first(self, strategy: Strategy, request: OfflineRequest) -> StrategyResult:
        """Stale-while-revalidate and cache-first: cached copy now, refresh in background."""
        resolve = get_strategy(strategy)
        cached = self.storage.open(cache_for_strategy(strategy)).match(request)

        if cached is not None:
            logger.debug(f"CACHE HIT ({strategy.value}): {request.cache_key}")
            self._count("cache_hits")
            self._schedule_refresh(strategy, request, cached)
            return resolve(request, cached, None, self.origin)

        logger.debug(f"CACHE MISS ({strategy.value}): {request.cache_key}")
        self._count("cache_misses")
        network = self._fetch(request)
        result = resolve(request, None, network, self.origin)
        self._apply(result.writes)
        return result

    def _serve_network_first(self, strategy: Strategy, request: OfflineRequest) -> StrategyResult:
        """Network-first strategies: the cache is only read after a transport failure."""
        resolve = get_strategy(strategy)
        network = self._fetch(request)

        cached = None
        shell = None
        if network.failed:
            if strategy is Strategy.NETWORK_FIRST_API:
                cached = self.storage.open(API_CACHE).match(request)
            else:
                cached = self.storage.match(request)
                if cached is None and request.is_navigation:
                    shell = self.storage.match(
                        OfflineRequest(url=resolve_asset(self.origin, "/"))
                    )
            found = cached is not None or shell is not None
            self._count("cache_hits" if found else "cache_misses")

        result = resolve(request, cached, network, self.origin, shell)
        self._apply(result.writes)
        return result

    def _fetch(self, request: OfflineRequest) -> NetworkResult:
        try:
            return NetworkResult.success(self.network.fetch(request))
        except NetworkError as e:
            self._count("network_failures")
            logger.info(f"NETWORK FAILED: {request.cache_key} - {e.reason or e}")
            return NetworkResult.failure(e)

    def _apply(self, writes: Tuple[CacheWrite, ...]) -> None:
        for write in writes:
            self.storage.open(write.cache_name).put(write.request, write.response)

    def _schedule_refresh(
        self,
        strategy: Strategy,
        request: OfflineRequest,
        cached: CachedResponse,
    ) -> None:
        """Refresh a cache entry without blocking the response."""
        resolve = get_strategy(strategy)

        def do_refresh():
            try:
                network = self._fetch(request)
                if network.failed:
                    self._count("refresh_failures")
                    return
                result = resolve(request, cached, network, self.origin)
                self._apply(result.writes)
                self._count("refreshes")
                logger.debug(f"Background refresh complete: {request.cache_key}")
            except Exception as e:
                self._count("refresh_failures")
                logger.warning(f"Background refresh failed: {request.cache_key} - {e}")

        try:
            future = self._refresh_pool.submit(do_refresh)
        except RuntimeError:
            # Pool already shut down (controller retired)
            logger.debug(f"Skipping refresh for retired controller: {request.cache_key}")
            return

        with self._pending_lock:
            self._pending.add(future)
        future.add_done_callback(self._discard_pending)

    def _discard_pending(self, future: Future) -> None:
        with self._pending_lock:
            self._pending.discard(future)

    def wait_for_refreshes(self, timeout: Optional[float] = None) -> bool:
        """
        Block until in-flight background refreshes finish.

        Returns:
            True if nothing is left pending
        """
        with self._pending_lock:
            pending = set(self._pending)
        if not pending:
            return True
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    # =========================================================================
    # Maintenance
    # =========================================================================

    def evict_expired(
        self,
        cache_name: str = API_CACHE,
        max_age: timedelta = API_CACHE_DURATION,
    ) -> int:
        """
        Delete entries older than ``max_age`` from a cache.

        Returns:
            Number of entries removed
        """
        if not self.storage.has(cache_name):
            return 0

        cache = self.storage.open(cache_name)
        removed = 0
        for key, response in cache.entries():
            age = response.age_seconds
            if age is not None and age > max_age.total_seconds():
                if cache.delete(OfflineRequest(url=key)):
                    removed += 1
        if removed:
            logger.info(f"Evicted {removed} expired entries from {cache_name}")
        return removed

    def close(self) -> None:
        """Wait for background refreshes and release the thread pool."""
        self._refresh_pool.shutdown(wait=True)

    # =========================================================================
    # Stats
    # =========================================================================

    def _count(self, key: str, strategy: Optional[Strategy] = None) -> None:
        with self._stats_lock:
            self._stats[key] += 1
            if strategy is not None:
                self._strategy_counts[strategy.value] += 1

    def get_stats(self) -> Dict[str, Any]:
        """Get controller statistics."""
        with self._stats_lock:
            stats = dict(self._stats)
            strategies = dict(self._strategy_counts)

        lookups = stats["cache_hits"] + stats["cache_misses"]
        hit_rate = (stats["cache_hits"] / lookups * 100) if lookups > 0 else 0

        caches = {}
        for name in self.storage.keys():
            caches[name] = len(self.storage.open(name))

        with self._pending_lock:
            pending = len(self._pending)

        return {
            "version": self.version,
            "state": self.state.value,
            **stats,
            "hit_rate_percent": round(hit_rate, 1),
            "strategies": strategies,
            "caches": caches,
            "current_caches": list(CURRENT_CACHES),
            "refreshing_count": pending,
        }
