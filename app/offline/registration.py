"""
Host side of the controller lifecycle.

Tracks the active and waiting controllers plus the open application
instances (clients) they control, and decides when an installed controller
takes over.
"""
import logging
import threading
from typing import Any, Dict, List, Optional, Tuple

from config.settings import settings

from .controller import FetchOutcome, OfflineCacheController
from .core import OfflineRequest, Strategy, WorkerState
from .exceptions import InstallError, LifecycleError
from .network import RequestsNetwork
from .sql_storage import SqlCacheStorage
from .storage import CacheStorage, MemoryCacheStorage

logger = logging.getLogger("offline.registration")


class ClientRegistry:
    """Open application instances and the controller version controlling each."""

    def __init__(self):
        self._clients: Dict[str, Optional[str]] = {}
        self._lock = threading.Lock()

    def connect(self, client_id: str, controller: Optional[OfflineCacheController] = None) -> None:
        """Register a client; a newly opened page is controlled by the active controller."""
        with self._lock:
            if client_id not in self._clients:
                self._clients[client_id] = controller.version if controller else None

    def disconnect(self, client_id: str) -> None:
        with self._lock:
            self._clients.pop(client_id, None)

    def claim(self, controller: OfflineCacheController) -> int:
        """Make ``controller`` control every open client. Returns the client count."""
        with self._lock:
            for client_id in self._clients:
                self._clients[client_id] = controller.version
            count = len(self._clients)
        logger.debug(f"{controller.version} claimed {count} clients")
        return count

    def controller_of(self, client_id: str) -> Optional[str]:
        with self._lock:
            return self._clients.get(client_id)

    def snapshot(self) -> Dict[str, Optional[str]]:
        with self._lock:
            return dict(self._clients)


class Registration:
    """
    Registration for the application scope.

    A freshly installed controller becomes active immediately when it asked
    to skip waiting or when nothing is active yet; otherwise it waits until
    a page posts a skip-waiting message.
    """

    def __init__(self, clients: Optional[ClientRegistry] = None):
        self.clients = clients or ClientRegistry()
        self.active: Optional[OfflineCacheController] = None
        self.waiting: Optional[OfflineCacheController] = None
        self._lock = threading.RLock()

    def register(self, controller: OfflineCacheController) -> OfflineCacheController:
        """
        Install a controller and activate it if allowed.

        Raises:
            InstallError: If precaching fails (the controller is discarded)
        """
        if controller.clients is None:
            controller.clients = self.clients

        try:
            controller.install()
        except InstallError:
            controller.retire()
            raise

        with self._lock:
            if controller.skip_waiting_requested or self.active is None:
                if self.waiting is not None and self.waiting is not controller:
                    logger.info(f"Replacing waiting controller {self.waiting.version}")
                    self.waiting.retire()
                    self.waiting = None
                self._promote(controller)
            else:
                if self.waiting is not None:
                    self.waiting.retire()
                self.waiting = controller
                logger.info(f"{controller.version} installed and waiting")
        return controller

    def post_message(self, data: Any) -> Tuple[bool, bool]:
        """
        Deliver a page message; the waiting controller gets it first.

        Returns:
            (delivered, activated): whether any controller received the
            message, and whether it caused a waiting controller to activate
        """
        with self._lock:
            target = self.waiting or self.active
            if target is None:
                return False, False
            target.handle_message(data)
            if target is self.waiting and target.skip_waiting_requested:
                self._promote(target)
                return True, True
        return True, False

    def _promote(self, controller: OfflineCacheController) -> None:
        previous = self.active
        if previous is not None and previous is not controller:
            previous.retire()
            logger.info(f"Retired previous controller {previous.version}")
        if self.waiting is controller:
            self.waiting = None
        controller.activate()
        self.active = controller

    def fetch(self, request: OfflineRequest, client_id: Optional[str] = None) -> FetchOutcome:
        """
        Route a request through the active controller, if any.

        A controller retired between lookup and dispatch hands the request to
        its successor once; without one the request is not intercepted.
        """
        with self._lock:
            active = self.active
        if client_id:
            self.clients.connect(client_id, active)

        for _ in range(2):
            if active is None or active.state is not WorkerState.ACTIVATED:
                break
            try:
                return active.handle_fetch(request)
            except LifecycleError:
                logger.debug(f"{active.version} retired mid-request: {request.cache_key}")
                with self._lock:
                    successor = self.active
                if successor is active:
                    break
                active = successor
        return FetchOutcome(strategy=Strategy.PASS_THROUGH, intercepted=False)

    def state(self) -> Dict[str, Any]:
        with self._lock:
            active = self.active
            waiting = self.waiting
        return {
            "active": _describe(active),
            "waiting": _describe(waiting),
            "clients": self.clients.snapshot(),
        }

    def close(self) -> None:
        with self._lock:
            controllers: List[OfflineCacheController] = [
                c for c in (self.active, self.waiting) if c is not None
            ]
        for controller in controllers:
            controller.close()


def _describe(controller: Optional[OfflineCacheController]) -> Optional[Dict[str, Any]]:
    if controller is None:
        return None
    return {
        "version": controller.version,
        "state": controller.state.value,
        "skip_waiting_requested": controller.skip_waiting_requested,
    }


# =============================================================================
# Global registration
# =============================================================================

_registration: Optional[Registration] = None
_storage: Optional[CacheStorage] = None


def create_storage(backend: str, database_url: str) -> CacheStorage:
    """Build the cache storage backend named in settings."""
    if backend == "sql":
        return SqlCacheStorage(database_url)
    return MemoryCacheStorage()


def get_storage() -> CacheStorage:
    """Get or create the process-wide cache storage."""
    global _storage
    if _storage is None:
        _storage = create_storage(settings.cache_backend, settings.cache_database_url)
    return _storage


def build_controller(**overrides) -> OfflineCacheController:
    """Create a controller wired to the configured storage and network."""
    options = dict(overrides)
    if "storage" not in options:
        options["storage"] = get_storage()
    if "network" not in options:
        options["network"] = RequestsNetwork(timeout=settings.request_timeout_seconds)
    options.setdefault("origin", settings.app_origin)
    options.setdefault("max_refresh_workers", settings.revalidation_workers)
    return OfflineCacheController(**options)


def get_registration() -> Registration:
    """Get or create the global registration."""
    global _registration
    if _registration is None:
        _registration = Registration()
    return _registration
