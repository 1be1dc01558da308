"""
Core offline cache data structures.
"""
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Dict, Optional
from urllib.parse import urldefrag, urlsplit


class Strategy(Enum):
    """Caching strategies the controller can apply to a request."""
    PASS_THROUGH = "pass_through"                       # Not intercepted
    STALE_WHILE_REVALIDATE = "stale_while_revalidate"   # Fonts
    NETWORK_FIRST_API = "network_first_api"             # Allow-listed API routes
    CACHE_FIRST = "cache_first"                         # Static assets
    NETWORK_FIRST = "network_first"                     # Navigations and the rest

    @property
    def serves_cache_immediately(self) -> bool:
        """True if a cached copy is returned before the network answers."""
        return self in (Strategy.STALE_WHILE_REVALIDATE, Strategy.CACHE_FIRST)


class WorkerState(Enum):
    """Lifecycle states of a controller instance."""
    PARSED = "parsed"
    INSTALLING = "installing"
    INSTALLED = "installed"
    ACTIVATING = "activating"
    ACTIVATED = "activated"
    REDUNDANT = "redundant"


@dataclass(frozen=True)
class OfflineRequest:
    """
    An outgoing request as seen by the controller.

    Only method, URL and destination drive policy selection; headers and
    body are carried along so pass-through requests reach the network intact.
    """
    url: str
    method: str = "GET"
    destination: str = ""
    headers: Dict[str, str] = field(default_factory=dict, compare=False, hash=False)
    body: bytes = field(default=b"", compare=False, hash=False)

    @property
    def cache_key(self) -> str:
        """Request identity inside a named cache (fragment is ignored)."""
        return urldefrag(self.url)[0]

    @property
    def path(self) -> str:
        return urlsplit(self.url).path or "/"

    @property
    def hostname(self) -> str:
        return urlsplit(self.url).hostname or ""

    @property
    def is_navigation(self) -> bool:
        return self.destination == "document"


@dataclass(frozen=True)
class CachedResponse:
    """
    A response body plus headers, as stored in (or served from) a named cache.
    """
    status: int
    body: bytes = b""
    headers: Dict[str, str] = field(default_factory=dict, compare=False, hash=False)
    url: str = ""
    stored_at: Optional[datetime] = field(default=None, compare=False, hash=False)

    @property
    def ok(self) -> bool:
        """Mirror of the Fetch API's ``response.ok``."""
        return 200 <= self.status <= 299

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    @property
    def age_seconds(self) -> Optional[float]:
        """Seconds since the response was stored, or None if never stored."""
        if self.stored_at is None:
            return None
        return (datetime.utcnow() - self.stored_at).total_seconds()

    def stamped(self, when: Optional[datetime] = None) -> "CachedResponse":
        """Copy of this response carrying a storage timestamp."""
        return replace(self, stored_at=when or datetime.utcnow())


def origin_of(url: str) -> str:
    """Return ``scheme://host[:port]`` for a URL."""
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}".lower()


def is_same_origin(url: str, origin: str) -> bool:
    """Check whether ``url`` belongs to ``origin``."""
    return origin_of(url) == origin_of(origin)
