"""
Shared fixtures: an in-memory fake network and ready-to-use controllers.
"""
import threading
from typing import Dict, List, Optional

import pytest

from app.offline.controller import OfflineCacheController
from app.offline.core import CachedResponse, OfflineRequest
from app.offline.exceptions import NetworkError
from app.offline.storage import MemoryCacheStorage

ORIGIN = "http://localhost:5000"

SHELL_HTML = b"<!doctype html><div id=root></div>"


class FakeNetwork:
    """
    Scriptable network.

    Unknown URLs answer 404. ``offline`` (or a URL in ``failing``) makes
    fetch raise NetworkError. ``hold(url)`` blocks fetches of that URL until
    ``release(url)`` is called.
    """

    def __init__(self):
        self.routes: Dict[str, CachedResponse] = {}
        self.calls: List[str] = []
        self.offline = False
        self.failing = set()
        self._gates: Dict[str, threading.Event] = {}
        self._lock = threading.Lock()

    def set(self, url: str, body: bytes = b"", status: int = 200, headers: Optional[dict] = None):
        self.routes[url] = CachedResponse(
            status=status,
            body=body,
            headers=headers or {"Content-Type": "text/plain"},
            url=url,
        )

    def hold(self, url: str) -> None:
        self._gates[url] = threading.Event()

    def release(self, url: str) -> None:
        gate = self._gates.pop(url, None)
        if gate is not None:
            gate.set()

    def call_count(self, url: str) -> int:
        with self._lock:
            return self.calls.count(url)

    def fetch(self, request: OfflineRequest) -> CachedResponse:
        with self._lock:
            self.calls.append(request.url)
        gate = self._gates.get(request.url)
        if gate is not None:
            gate.wait(timeout=5)
        if self.offline or request.url in self.failing:
            raise NetworkError(request.url, "simulated offline")
        response = self.routes.get(request.url)
        if response is None:
            return CachedResponse(status=404, body=b"Not Found", url=request.url)
        return response


def url(path: str) -> str:
    return f"{ORIGIN}{path}"


@pytest.fixture
def network():
    """Fake network serving the app shell manifest."""
    fake = FakeNetwork()
    fake.set(url("/"), SHELL_HTML, headers={"Content-Type": "text/html"})
    fake.set(url("/index.html"), SHELL_HTML, headers={"Content-Type": "text/html"})
    fake.set(url("/manifest.json"), b'{"name": "Postpartum Recovery"}',
             headers={"Content-Type": "application/json"})
    return fake


@pytest.fixture
def storage():
    return MemoryCacheStorage()


@pytest.fixture
def make_controller(storage, network):
    """Factory for controllers sharing the same storage and network."""
    created = []

    def _make(**kwargs) -> OfflineCacheController:
        options = {"storage": storage, "network": network, "origin": ORIGIN}
        options.update(kwargs)
        controller = OfflineCacheController(**options)
        created.append(controller)
        return controller

    yield _make

    for controller in created:
        controller.close()


@pytest.fixture
def controller(make_controller):
    """An installed and activated controller."""
    ctrl = make_controller()
    ctrl.install()
    ctrl.activate()
    return ctrl
