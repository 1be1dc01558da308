"""
Caching strategies as pure functions.

Each strategy maps (cached entry or None, network result or None) to the
response handed back to the page plus the cache writes to perform. No I/O
happens here; the controller reads the caches, talks to the network and
applies the writes.

A ``network`` of None means the network has not answered yet. Strategies
that serve the cache immediately are evaluated once with ``network=None`` to
pick the response, and again when the background fetch completes to pick the
writes.
"""
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from .core import CachedResponse, OfflineRequest, Strategy, is_same_origin
from .policies import API_CACHE, CACHE_NAME, FONT_CACHE


@dataclass(frozen=True)
class NetworkResult:
    """Outcome of a single network attempt."""
    response: Optional[CachedResponse] = None
    error: Optional[Exception] = None

    @property
    def failed(self) -> bool:
        return self.response is None

    @classmethod
    def success(cls, response: CachedResponse) -> "NetworkResult":
        return cls(response=response)

    @classmethod
    def failure(cls, error: Exception) -> "NetworkResult":
        return cls(error=error)


@dataclass(frozen=True)
class CacheWrite:
    """A pending ``cache.put``."""
    cache_name: str
    request: OfflineRequest
    response: CachedResponse


@dataclass(frozen=True)
class StrategyResult:
    response: Optional[CachedResponse]
    writes: Tuple[CacheWrite, ...] = ()
    from_cache: bool = False
    offline: bool = False


def offline_response() -> CachedResponse:
    """Synthetic response used when both network and cache come up empty."""
    return CachedResponse(
        status=503,
        body=b"Offline",
        headers={"Content-Type": "text/plain; charset=utf-8"},
    )


def _succeeded(network: Optional[NetworkResult]) -> bool:
    return network is not None and not network.failed


def stale_while_revalidate(
    request: OfflineRequest,
    cached: Optional[CachedResponse],
    network: Optional[NetworkResult],
    origin: str,
    shell: Optional[CachedResponse] = None,
) -> StrategyResult:
    """Fonts: cached copy now, successful network copy stored for next time."""
    writes: Tuple[CacheWrite, ...] = ()
    if _succeeded(network) and network.response.ok:
        writes = (CacheWrite(FONT_CACHE, request, network.response),)

    if cached is not None:
        return StrategyResult(cached, writes, from_cache=True)
    if _succeeded(network):
        return StrategyResult(network.response, writes)
    return StrategyResult(offline_response(), writes, offline=True)


def network_first_api(
    request: OfflineRequest,
    cached: Optional[CachedResponse],
    network: Optional[NetworkResult],
    origin: str,
    shell: Optional[CachedResponse] = None,
) -> StrategyResult:
    """
    Allow-listed API routes: live response when reachable, stored as-is.

    HTTP error statuses count as success here and are cached. On a transport
    failure the cached entry is returned, which may be None.
    """
    if _succeeded(network):
        return StrategyResult(
            network.response,
            (CacheWrite(API_CACHE, request, network.response),),
        )
    return StrategyResult(cached, from_cache=cached is not None)


def cache_first(
    request: OfflineRequest,
    cached: Optional[CachedResponse],
    network: Optional[NetworkResult],
    origin: str,
    shell: Optional[CachedResponse] = None,
) -> StrategyResult:
    """Static assets: cached copy if present, refreshed from same-origin 2xx responses."""
    writes: Tuple[CacheWrite, ...] = ()
    if (
        _succeeded(network)
        and network.response.ok
        and is_same_origin(request.url, origin)
    ):
        writes = (CacheWrite(CACHE_NAME, request, network.response),)

    if cached is not None:
        return StrategyResult(cached, writes, from_cache=True)
    if _succeeded(network):
        return StrategyResult(network.response, writes)
    return StrategyResult(offline_response(), writes, offline=True)


def network_first(
    request: OfflineRequest,
    cached: Optional[CachedResponse],
    network: Optional[NetworkResult],
    origin: str,
    shell: Optional[CachedResponse] = None,
) -> StrategyResult:
    """
    Navigations and everything else.

    Fallback chain on transport failure: cached entry from any cache, then
    the cached app shell (``/``) for document requests, then 503 Offline.
    """
    if _succeeded(network):
        writes: Tuple[CacheWrite, ...] = ()
        if network.response.ok and is_same_origin(request.url, origin):
            writes = (CacheWrite(CACHE_NAME, request, network.response),)
        return StrategyResult(network.response, writes)

    if cached is not None:
        return StrategyResult(cached, from_cache=True)
    if request.is_navigation and shell is not None:
        return StrategyResult(shell, from_cache=True)
    return StrategyResult(offline_response(), offline=True)


StrategyFn = Callable[..., StrategyResult]

STRATEGIES: Dict[Strategy, StrategyFn] = {
    Strategy.STALE_WHILE_REVALIDATE: stale_while_revalidate,
    Strategy.NETWORK_FIRST_API: network_first_api,
    Strategy.CACHE_FIRST: cache_first,
    Strategy.NETWORK_FIRST: network_first,
}


def get_strategy(strategy: Strategy) -> StrategyFn:
    return STRATEGIES[strategy]
