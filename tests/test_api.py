"""
Tests for the HTTP and WebSocket surface.
"""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from token_aggregator.config import Settings
from token_aggregator.main import build_aggregation_service, create_app
from token_aggregator.services.aggregation_service import AggregationService
from token_aggregator.services.cache_service import CacheService

from .conftest import FakeRedis, make_provider, make_token


def _build(redis=None, dex_tokens=None, lookup=None):
    cache = CacheService(client=redis or FakeRedis())
    dexscreener = make_provider(
        "dexscreener",
        dex_tokens if dex_tokens is not None else [
            make_token(f"t{i}", volume_in_base_unit=float(i)) for i in range(35)
        ],
        lookup=lookup,
    )
    jupiter = make_provider("jupiter", [])
    service = AggregationService(cache, [dexscreener, jupiter])
    app = create_app(Settings(), cache=cache, aggregation=service, start_background=False)
    return app, service, dexscreener


@pytest.fixture
def api():
    app, service, dexscreener = _build(lookup=make_token("known", name="Known"))
    with TestClient(app) as client:
        yield client, service, dexscreener


def test_root_lists_endpoints(api):
    client, _, _ = api

    response = client.get("/")

    assert response.status_code == 200
    body = response.json()
    assert body["name"] == "Token Aggregator API"
    assert body["endpoints"]["tokens"] == "/api/tokens"


def test_health_reports_redis_connected(api):
    client, _, _ = api

    body = client.get("/api/health").json()

    assert body["status"] == "ok"
    assert body["redis"] == "connected"
    assert body["uptime"] >= 0
    assert "timestamp" in body


def test_health_reports_redis_disconnected():
    app, _, _ = _build(redis=FakeRedis(fail=True))
    with TestClient(app) as client:
        body = client.get("/api/health").json()

    assert body["redis"] == "disconnected"


def test_list_tokens_default_page(api):
    client, _, _ = api

    response = client.get("/api/tokens")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert len(body["data"]) == 20
    assert body["has_more"] is True
    assert body["next_cursor"] == "20"
    assert body["total"] == 35


def test_list_tokens_sorted_with_cursor(api):
    client, _, _ = api

    body = client.get("/api/tokens", params={
        "sortBy": "volume", "sortOrder": "desc", "limit": 10, "cursor": "30",
    }).json()

    assert [t["address"] for t in body["data"]] == ["t4", "t3", "t2", "t1", "t0"]
    assert body["has_more"] is False
    assert "next_cursor" not in body


def test_list_tokens_uses_cached_snapshot(api):
    client, _, dexscreener = api

    client.get("/api/tokens")
    client.get("/api/tokens")

    assert dexscreener.search_tokens.await_count == 1


@pytest.mark.parametrize("params", [
    {"sortBy": "name"},
    {"sortOrder": "sideways"},
    {"limit": 0},
])
def test_list_tokens_rejects_invalid_options(api, params):
    client, _, _ = api

    assert client.get("/api/tokens", params=params).status_code == 422


def test_list_tokens_failure_returns_500(api):
    client, service, _ = api
    service.get_tokens = AsyncMock(side_effect=RuntimeError("boom"))

    response = client.get("/api/tokens")

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Failed to fetch tokens"}


def test_get_token_found(api):
    client, _, dexscreener = api

    response = client.get("/api/tokens/known")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["name"] == "Known"
    dexscreener.get_token_by_address.assert_awaited_once_with("known")


def test_get_token_not_found():
    app, _, _ = _build(lookup=None)
    with TestClient(app) as client:
        response = client.get("/api/tokens/ghost")

    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "Token not found"}


def test_refresh_refetches_providers(api):
    client, _, dexscreener = api
    client.get("/api/tokens")

    response = client.post("/api/tokens/refresh")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert "35" in body["message"]
    assert dexscreener.search_tokens.await_count == 2


def test_metrics_endpoint_exposes_counters(api):
    client, _, _ = api

    response = client.get("/metrics/")

    assert response.status_code == 200
    assert "token_aggregator_cache_lookups_total" in response.text


def test_websocket_sends_initial_page(api):
    client, _, _ = api

    with client.websocket_connect("/ws") as websocket:
        message = websocket.receive_json()

    assert message["event"] == "tokens"
    assert len(message["data"]["data"]) == 30
    assert message["data"]["total"] == 35


def test_websocket_filter_request(api):
    client, _, _ = api

    with client.websocket_connect("/ws") as websocket:
        websocket.receive_json()
        websocket.send_json({"event": "filter", "data": {"sortBy": "volume", "sortOrder": "asc", "limit": 3}})
        message = websocket.receive_json()

    assert message["event"] == "tokens"
    assert [t["address"] for t in message["data"]["data"]] == ["t0", "t1", "t2"]


def test_websocket_invalid_filter_and_unknown_event(api):
    client, _, _ = api

    with client.websocket_connect("/ws") as websocket:
        websocket.receive_json()
        websocket.send_json({"event": "filter", "data": {"sortBy": "bogus"}})
        invalid = websocket.receive_json()
        websocket.send_text("not json")
        malformed = websocket.receive_json()
        websocket.send_json({"event": "dance"})
        unknown = websocket.receive_json()

    assert invalid["event"] == "error"
    assert malformed["event"] == "error"
    assert unknown["event"] == "error"


def test_websocket_subscription_rooms(api):
    client, _, _ = api
    stream = client.app.state.stream

    with client.websocket_connect("/ws") as websocket:
        websocket.receive_json()
        websocket.send_json({"event": "subscribe", "data": "known"})
        # Round trip so the subscribe has been handled
        websocket.send_json({"event": "ping"})
        websocket.receive_json()
        assert "known" in stream.rooms

        websocket.send_json({"event": "unsubscribe", "data": "known"})
        websocket.send_json({"event": "ping"})
        websocket.receive_json()
        assert "known" not in stream.rooms


@pytest.mark.asyncio
async def test_rate_limit_window_applies_to_both_providers():
    settings = Settings(rate_limit_max_requests=40, rate_limit_window_ms=1500)

    service = build_aggregation_service(settings, CacheService(client=FakeRedis()))
    dexscreener, jupiter = service.providers

    assert dexscreener.rate_limit.window_seconds == 1.5
    assert jupiter.rate_limit.window_seconds == 1.5
    assert dexscreener.rate_limit.max_requests == 250
    assert jupiter.rate_limit.max_requests == 40
    await service.close()
