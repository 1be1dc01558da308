"""
Network capability used by the controller.

A fetch either yields a response (whatever its HTTP status) or raises
NetworkError when the request never completed.
"""
import logging
from typing import Optional, Protocol

import requests

from .core import CachedResponse, OfflineRequest
from .exceptions import NetworkError

logger = logging.getLogger("offline.network")

# Headers that describe the wire encoding rather than the stored body;
# requests has already decoded the body by the time we see it
HOP_BY_HOP_HEADERS = {
    "connection",
    "content-encoding",
    "content-length",
    "keep-alive",
    "transfer-encoding",
}


class Network(Protocol):
    def fetch(self, request: OfflineRequest) -> CachedResponse:
        ...


class RequestsNetwork:
    """
    Network implementation backed by a ``requests.Session``.

    Exactly one attempt per fetch: no retries, no backoff.
    """

    def __init__(self, timeout: float = 30.0, session: Optional[requests.Session] = None):
        self.timeout = timeout
        self._session = session or requests.Session()

    def fetch(self, request: OfflineRequest) -> CachedResponse:
        try:
            response = self._session.request(
                request.method,
                request.url,
                headers=request.headers or None,
                data=request.body or None,
                timeout=self.timeout,
                allow_redirects=True,
            )
        except requests.RequestException as e:
            logger.warning(f"Network failure: {request.method} {request.url} - {e}")
            raise NetworkError(request.url, str(e)) from e

        headers = {
            key: value
            for key, value in response.headers.items()
            if key.lower() not in HOP_BY_HOP_HEADERS
        }
        logger.debug(f"{request.method} {request.url} -> {response.status_code}")
        return CachedResponse(
            status=response.status_code,
            body=response.content,
            headers=headers,
            url=response.url or request.url,
        )

    def close(self) -> None:
        self._session.close()
