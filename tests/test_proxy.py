"""
Service tests: lifecycle endpoints and the offline proxy
"""
import pytest
from fastapi.testclient import TestClient

from app.main import app, get_network
from app.offline import OfflineRequest, get_registration, get_storage
from app.offline.policies import API_CACHE, CACHE_NAME
from app.offline.registration import Registration
from config.settings import settings

from conftest import ORIGIN, SHELL_HTML, url

FONT_URL = "https://fonts.gstatic.com/s/inter/v12/inter.woff2"


@pytest.fixture
def registration():
    reg = Registration()
    yield reg
    reg.close()


@pytest.fixture
def client(registration, network, storage, monkeypatch):
    monkeypatch.setattr(settings, "app_origin", ORIGIN)
    app.dependency_overrides[get_registration] = lambda: registration
    app.dependency_overrides[get_network] = lambda: network
    app.dependency_overrides[get_storage] = lambda: storage
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def registered(client):
    response = client.post("/sw/register")
    assert response.status_code == 200
    return client


# =============================================================================
# Lifecycle endpoints
# =============================================================================

class TestLifecycleEndpoints:
    def test_register_installs_and_activates(self, client, storage):
        response = client.post("/sw/register")
        data = response.json()
        assert data["activated"] is True
        assert data["state"] == "activated"
        assert data["version"] == CACHE_NAME
        assert len(storage.open(CACHE_NAME).keys()) == 3

    def test_register_failure_is_502(self, client, network):
        network.offline = True
        response = client.post("/sw/register")
        assert response.status_code == 502

    def test_waiting_controller_and_skip_waiting_message(self, registered, registration):
        response = registered.post("/sw/register?skip_waiting=false")
        assert response.json()["activated"] is False
        state = registered.get("/sw/state").json()
        assert state["waiting"]["state"] == "installed"

        response = registered.post("/sw/message", json={"type": "SKIP_WAITING"})
        assert response.json() == {"delivered": True, "activated": True}
        state = registered.get("/sw/state").json()
        assert state["waiting"] is None
        assert state["active"]["state"] == "activated"

    def test_message_without_controller_is_not_delivered(self, client):
        response = client.post("/sw/message", json={"type": "SKIP_WAITING"})
        assert response.json() == {"delivered": False, "activated": False}

    def test_stats_require_active_controller(self, client):
        assert client.get("/cache/stats").status_code == 404

    def test_stats(self, registered):
        registered.get("/dashboard")
        data = registered.get("/cache/stats").json()
        assert data["requests"] == 1
        assert data["state"] == "activated"

    def test_evict_expired(self, registered):
        response = registered.post("/sw/evict-expired")
        assert response.json() == {"cache": API_CACHE, "removed": 0}


# =============================================================================
# Proxy
# =============================================================================

class TestProxy:
    def test_without_controller_requests_bypass(self, client, network):
        network.set(url("/dashboard"), b"dashboard")
        response = client.get("/dashboard")
        assert response.status_code == 200
        assert response.headers["x-offline-cache"] == "bypass"

    def test_navigation_served_live_then_offline(self, registered, network):
        network.set(url("/dashboard"), b"dashboard", headers={"Content-Type": "text/html"})
        live = registered.get("/dashboard", headers={"Sec-Fetch-Dest": "document"})
        assert live.headers["x-offline-cache"] == "network"

        network.offline = True
        cached = registered.get("/dashboard", headers={"Sec-Fetch-Dest": "document"})
        assert cached.status_code == 200
        assert cached.content == b"dashboard"
        assert cached.headers["x-offline-cache"] == "hit"

    def test_offline_navigation_falls_back_to_shell(self, registered, network):
        network.offline = True
        response = registered.get("/programs/core", headers={"Sec-Fetch-Dest": "document"})
        assert response.status_code == 200
        assert response.content == SHELL_HTML

    def test_offline_asset_is_503(self, registered, network):
        network.offline = True
        response = registered.get("/community/feed")
        assert response.status_code == 503
        assert response.text == "Offline"
        assert response.headers["x-offline-cache"] == "offline"

    def test_uncached_api_offline_is_504(self, registered, network):
        network.offline = True
        response = registered.get("/api/programs")
        assert response.status_code == 504

    def test_pass_through_api_failure_is_502(self, registered, network):
        network.offline = True
        response = registered.get("/api/auth/user")
        assert response.status_code == 502

    def test_post_goes_straight_to_network(self, registered, network, storage):
        network.set(url("/api/checkins"), b'{"ok": true}', status=201)
        response = registered.post("/api/checkins", json={"mood": 4})
        assert response.status_code == 201
        assert response.headers["x-offline-cache"] == "bypass"
        assert storage.match(OfflineRequest(url=url("/api/checkins"))) is None

    def test_query_string_forwarded(self, registered, network):
        network.set(url("/api/courses?category=core"), b"[]")
        response = registered.get("/api/courses?category=core")
        assert response.status_code == 200
        assert url("/api/courses?category=core") in network.calls

    def test_font_through_absolute_fetch(self, registered, network):
        network.set(FONT_URL, b"font", headers={"Content-Type": "font/woff2"})
        response = registered.get("/sw/fetch", params={"url": FONT_URL})
        assert response.status_code == 200
        assert response.content == b"font"

    def test_absolute_fetch_requires_absolute_url(self, registered):
        response = registered.get("/sw/fetch", params={"url": "/relative"})
        assert response.status_code == 422

    def test_client_id_is_tracked(self, registered):
        registered.get("/", headers={"X-Client-Id": "tab-1"})
        state = registered.get("/sw/state").json()
        assert state["clients"] == {"tab-1": CACHE_NAME}
