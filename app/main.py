"""
Postpartum Recovery Offline Cache - Main FastAPI Application
Serves the application shell through the offline cache controller
"""
import logging
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import Response

from app.offline import (
    API_CACHE,
    CachedResponse,
    FetchOutcome,
    InstallError,
    LifecycleError,
    Network,
    NetworkError,
    OfflineRequest,
    Registration,
    RequestsNetwork,
    build_controller,
    get_registration,
    get_storage,
)
from app.schemas import (
    CacheStats,
    ControllerMessage,
    EvictionResult,
    MessageResult,
    RegisterResult,
    RegistrationState,
)
from config.settings import settings

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger("main")

# Version tracking
APP_VERSION = "v0.3.0"
APP_NAME = "Postpartum Recovery Offline Cache"
APP_STAGE = "Beta"

app = FastAPI(
    title=f"{APP_NAME} ({APP_STAGE})",
    description="Offline-first cache in front of the postpartum recovery app shell",
    version=APP_VERSION
)

# Request headers that must not be forwarded upstream
DROPPED_REQUEST_HEADERS = {"host", "content-length", "connection", "accept-encoding"}

_network: Optional[Network] = None


def get_network() -> Network:
    """Network used for requests the controller does not intercept."""
    global _network
    if _network is None:
        _network = RequestsNetwork(timeout=settings.request_timeout_seconds)
    return _network


def _cache_header(outcome: FetchOutcome) -> str:
    if not outcome.intercepted:
        return "bypass"
    if outcome.offline:
        return "offline"
    return "hit" if outcome.from_cache else "network"


def _to_response(cached: CachedResponse, source: str) -> Response:
    headers = dict(cached.headers)
    headers["X-Offline-Cache"] = source
    return Response(content=cached.body, status_code=cached.status, headers=headers)


def _build_request(url: str, request: Request, body: bytes = b"") -> OfflineRequest:
    headers = {
        key: value
        for key, value in request.headers.items()
        if key.lower() not in DROPPED_REQUEST_HEADERS
    }
    return OfflineRequest(
        url=url,
        method=request.method,
        destination=request.headers.get("sec-fetch-dest", ""),
        headers=headers,
        body=body,
    )


def _serve(
    offline_request: OfflineRequest,
    registration: Registration,
    network: Network,
    client_id: Optional[str],
) -> Response:
    """Run a request through the registration, falling back to a direct fetch."""
    outcome = registration.fetch(offline_request, client_id=client_id)

    if not outcome.intercepted:
        try:
            live = network.fetch(offline_request)
        except NetworkError as e:
            raise HTTPException(status_code=502, detail=str(e))
        return _to_response(live, _cache_header(outcome))

    if outcome.response is None:
        raise HTTPException(status_code=504, detail="Not cached and network unavailable")

    return _to_response(outcome.response, _cache_header(outcome))


@app.on_event("shutdown")
def drain_refreshes():
    """Let in-flight background refreshes finish before the process exits."""
    registration = get_registration()
    if registration.active is not None:
        registration.active.wait_for_refreshes(timeout=settings.request_timeout_seconds)
    registration.close()


# ===== SERVICE =====

@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "ok", "origin": settings.app_origin, "backend": settings.cache_backend}


@app.get("/version")
def version_info():
    """Version information endpoint."""
    return {
        "name": APP_NAME,
        "version": APP_VERSION,
        "stage": APP_STAGE,
        "full": f"{APP_NAME} {APP_VERSION} ({APP_STAGE})"
    }


@app.get("/cache/stats", response_model=CacheStats)
def cache_stats(registration: Registration = Depends(get_registration)):
    """Get statistics of the active controller."""
    if registration.active is None:
        raise HTTPException(status_code=404, detail="No active controller")
    return registration.active.get_stats()


# ===== LIFECYCLE =====

@app.get("/sw/state", response_model=RegistrationState)
def registration_state(registration: Registration = Depends(get_registration)):
    """Active and waiting controllers plus controlled clients."""
    return registration.state()


@app.post("/sw/register", response_model=RegisterResult)
def register_controller(
    skip_waiting: bool = Query(True, description="Activate without waiting for the current controller"),
    registration: Registration = Depends(get_registration),
    network: Network = Depends(get_network),
    storage=Depends(get_storage),
):
    """
    Install a new controller: precache the app shell and, when allowed,
    activate it (deleting caches from older generations).
    """
    controller = build_controller(
        storage=storage,
        network=network,
        skip_waiting_on_install=skip_waiting,
    )
    try:
        registration.register(controller)
    except InstallError as e:
        logger.error(f"Register failed: {e}")
        raise HTTPException(status_code=502, detail=str(e))
    except LifecycleError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return {
        "version": controller.version,
        "state": controller.state.value,
        "activated": registration.active is controller,
    }


@app.post("/sw/message", response_model=MessageResult)
def post_message(message: ControllerMessage, registration: Registration = Depends(get_registration)):
    """Deliver a page message (SKIP_WAITING promotes a waiting controller)."""
    delivered, activated = registration.post_message(message.model_dump())
    return {"delivered": delivered, "activated": activated}


@app.post("/sw/evict-expired", response_model=EvictionResult)
def evict_expired(registration: Registration = Depends(get_registration)):
    """Drop API cache entries older than the API cache duration."""
    if registration.active is None:
        raise HTTPException(status_code=404, detail="No active controller")
    removed = registration.active.evict_expired()
    return {"cache": API_CACHE, "removed": removed}


# ===== PROXY =====

@app.get("/sw/fetch")
async def fetch_absolute(
    request: Request,
    url: str = Query(..., description="Absolute URL to fetch through the controller"),
    registration: Registration = Depends(get_registration),
    network: Network = Depends(get_network),
):
    """Fetch any absolute URL (e.g. a web font) through the controller."""
    if not url.startswith(("http://", "https://")):
        raise HTTPException(status_code=422, detail="url must be absolute")
    offline_request = _build_request(url, request)
    client_id = request.headers.get("x-client-id")
    return await run_in_threadpool(_serve, offline_request, registration, network, client_id)


@app.api_route("/{path:path}", methods=["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE"])
async def proxy(
    path: str,
    request: Request,
    registration: Registration = Depends(get_registration),
    network: Network = Depends(get_network),
):
    """Serve an application path through the controller."""
    url = f"{settings.app_origin.rstrip('/')}/{path}"
    if request.url.query:
        url = f"{url}?{request.url.query}"

    body = await request.body()
    offline_request = _build_request(url, request, body)
    client_id = request.headers.get("x-client-id")
    return await run_in_threadpool(_serve, offline_request, registration, network, client_id)
