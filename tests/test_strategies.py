"""
Tests for the pure caching strategy functions.
"""
from app.offline.core import CachedResponse, OfflineRequest
from app.offline.exceptions import NetworkError
from app.offline.policies import API_CACHE, CACHE_NAME, FONT_CACHE
from app.offline.strategies import (
    NetworkResult,
    cache_first,
    network_first,
    network_first_api,
    offline_response,
    stale_while_revalidate,
)

from conftest import ORIGIN, url

FONT_URL = "https://fonts.gstatic.com/s/inter/v12/inter.woff2"


def ok(body=b"live", status=200):
    return NetworkResult.success(CachedResponse(status=status, body=body))


def down(request_url=url("/")):
    return NetworkResult.failure(NetworkError(request_url, "offline"))


CACHED = CachedResponse(status=200, body=b"cached")


# =============================================================================
# Stale-while-revalidate
# =============================================================================

class TestStaleWhileRevalidate:
    request = OfflineRequest(url=FONT_URL)

    def test_cached_served_before_network_answers(self):
        result = stale_while_revalidate(self.request, CACHED, None, ORIGIN)
        assert result.response is CACHED
        assert result.from_cache
        assert result.writes == ()

    def test_network_result_only_produces_write(self):
        result = stale_while_revalidate(self.request, CACHED, ok(b"fresh"), ORIGIN)
        assert result.response is CACHED
        assert len(result.writes) == 1
        assert result.writes[0].cache_name == FONT_CACHE
        assert result.writes[0].response.body == b"fresh"

    def test_cross_origin_font_is_cached(self):
        result = stale_while_revalidate(self.request, None, ok(b"font"), ORIGIN)
        assert result.response.body == b"font"
        assert result.writes[0].request == self.request

    def test_error_status_not_stored(self):
        result = stale_while_revalidate(self.request, None, ok(b"nope", status=404), ORIGIN)
        assert result.response.status == 404
        assert result.writes == ()

    def test_miss_and_offline_is_503(self):
        result = stale_while_revalidate(self.request, None, down(FONT_URL), ORIGIN)
        assert result.offline
        assert result.response.status == 503


# =============================================================================
# Network-first (API)
# =============================================================================

class TestNetworkFirstApi:
    request = OfflineRequest(url=url("/api/programs"))

    def test_live_response_is_stored(self):
        result = network_first_api(self.request, None, ok(b"[1]"), ORIGIN)
        assert result.response.body == b"[1]"
        assert result.writes[0].cache_name == API_CACHE
        assert not result.from_cache

    def test_http_error_status_is_stored_as_is(self):
        result = network_first_api(self.request, None, ok(b"boom", status=500), ORIGIN)
        assert result.response.status == 500
        assert result.writes[0].response.status == 500

    def test_offline_returns_cached(self):
        result = network_first_api(self.request, CACHED, down(), ORIGIN)
        assert result.response is CACHED
        assert result.from_cache
        assert result.writes == ()

    def test_offline_without_cache_returns_nothing(self):
        result = network_first_api(self.request, None, down(), ORIGIN)
        assert result.response is None
        assert not result.offline


# =============================================================================
# Cache-first
# =============================================================================

class TestCacheFirst:
    request = OfflineRequest(url=url("/assets/index.js"))

    def test_cached_wins(self):
        result = cache_first(self.request, CACHED, None, ORIGIN)
        assert result.response is CACHED

    def test_same_origin_ok_response_is_stored(self):
        result = cache_first(self.request, None, ok(b"js"), ORIGIN)
        assert result.writes[0].cache_name == CACHE_NAME

    def test_cross_origin_response_not_stored(self):
        request = OfflineRequest(url="https://cdn.example.com/lib.js")
        result = cache_first(request, None, ok(b"js"), ORIGIN)
        assert result.response.body == b"js"
        assert result.writes == ()

    def test_not_ok_response_not_stored(self):
        result = cache_first(self.request, None, ok(b"", status=404), ORIGIN)
        assert result.writes == ()

    def test_miss_and_offline_is_503(self):
        result = cache_first(self.request, None, down(), ORIGIN)
        assert result.response.status == 503
        assert result.response.body == b"Offline"


# =============================================================================
# Network-first (navigation)
# =============================================================================

class TestNetworkFirst:
    page = OfflineRequest(url=url("/dashboard"), destination="document")
    image = OfflineRequest(url=url("/community/feed"), destination="image")
    shell = CachedResponse(status=200, body=b"shell")

    def test_live_same_origin_response_is_stored(self):
        result = network_first(self.page, None, ok(b"page"), ORIGIN)
        assert result.response.body == b"page"
        assert result.writes[0].cache_name == CACHE_NAME

    def test_live_error_not_stored_but_returned(self):
        result = network_first(self.page, None, ok(b"err", status=500), ORIGIN)
        assert result.response.status == 500
        assert result.writes == ()

    def test_offline_prefers_cached_entry(self):
        result = network_first(self.page, CACHED, down(), ORIGIN, self.shell)
        assert result.response is CACHED

    def test_offline_document_falls_back_to_shell(self):
        result = network_first(self.page, None, down(), ORIGIN, self.shell)
        assert result.response is self.shell
        assert result.from_cache

    def test_offline_non_document_ignores_shell(self):
        result = network_first(self.image, None, down(), ORIGIN, self.shell)
        assert result.offline
        assert result.response.status == 503

    def test_offline_document_without_shell_is_503(self):
        result = network_first(self.page, None, down(), ORIGIN, None)
        assert result.response.status == 503
        assert result.response.text == "Offline"


def test_offline_response_shape():
    response = offline_response()
    assert response.status == 503
    assert response.body == b"Offline"
    assert not response.ok
