"""
Cache names, precache manifest and request-to-strategy classification.
"""
import re
from datetime import timedelta
from typing import Tuple
from urllib.parse import urljoin

from .core import OfflineRequest, Strategy


# Named caches (the version tag is the generation identifier)
CACHE_NAME = "postpartum-recovery-v2"
FONT_CACHE = "postpartum-fonts-v1"
API_CACHE = "postpartum-api-v1"

CURRENT_CACHES: Tuple[str, ...] = (CACHE_NAME, FONT_CACHE, API_CACHE)

# Fetched and stored unconditionally at install time
STATIC_ASSETS: Tuple[str, ...] = (
    "/",
    "/index.html",
    "/manifest.json",
)

# Only these /api/ prefixes are eligible for network-first with cache fallback
CACHEABLE_API_ROUTES: Tuple[str, ...] = (
    "/api/programs",
    "/api/courses",
)

FONT_HOSTS: Tuple[str, ...] = (
    "fonts.googleapis.com",
    "fonts.gstatic.com",
)

STATIC_ASSET_PATTERN = re.compile(r"\.(js|css|png|jpg|jpeg|gif|svg|woff2?|ttf|eot)$")

API_CACHE_DURATION = timedelta(minutes=5)

# Strategy -> named cache it reads from and writes to
STRATEGY_CACHES = {
    Strategy.STALE_WHILE_REVALIDATE: FONT_CACHE,
    Strategy.NETWORK_FIRST_API: API_CACHE,
    Strategy.CACHE_FIRST: CACHE_NAME,
    Strategy.NETWORK_FIRST: CACHE_NAME,
}


def is_font_request(request: OfflineRequest) -> bool:
    hostname = request.hostname
    return any(host in hostname for host in FONT_HOSTS)


def is_cacheable_api_path(path: str) -> bool:
    return any(path.startswith(route) for route in CACHEABLE_API_ROUTES)


def is_static_asset_path(path: str) -> bool:
    return STATIC_ASSET_PATTERN.search(path) is not None


def classify_request(request: OfflineRequest) -> Strategy:
    """
    Pick the caching strategy for a request.

    Precedence:
    1. Non-GET requests are never intercepted
    2. Web-font hosts -> stale-while-revalidate
    3. /api/ paths -> network-first with cache fallback when allow-listed,
       otherwise not intercepted
    4. Static asset extensions -> cache-first with background refresh
    5. Everything else -> network-first with full fallback chain
    """
    if request.method.upper() != "GET":
        return Strategy.PASS_THROUGH

    if is_font_request(request):
        return Strategy.STALE_WHILE_REVALIDATE

    path = request.path
    if path.startswith("/api/"):
        if is_cacheable_api_path(path):
            return Strategy.NETWORK_FIRST_API
        return Strategy.PASS_THROUGH

    if is_static_asset_path(path):
        return Strategy.CACHE_FIRST

    return Strategy.NETWORK_FIRST


def cache_for_strategy(strategy: Strategy) -> str:
    """Name of the cache a strategy stores into."""
    try:
        return STRATEGY_CACHES[strategy]
    except KeyError:
        raise ValueError(f"Strategy {strategy.value} does not use a cache")


def is_stale_cache(name: str) -> bool:
    """True for caches left behind by an older generation."""
    return name not in CURRENT_CACHES


def resolve_asset(origin: str, path: str) -> str:
    """Resolve a root-relative manifest path against the application origin."""
    return urljoin(origin.rstrip("/") + "/", path.lstrip("/"))
