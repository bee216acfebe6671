"""
Tests for the Jupiter provider and its deterministic placeholder data.
"""

import httpx
import pytest

from token_aggregator.clients.jupiter_client import JUPITER_SOURCE, MAX_RESULTS, JupiterClient
from token_aggregator.models.token import Token


def _items(count):
    return [{"id": f"mint{i}", "name": f"Mint {i}", "symbol": f"M{i}"} for i in range(count)]


def _client(fake_clock, handler):
    return JupiterClient(
        transport=httpx.MockTransport(handler),
        clock=fake_clock,
        sleep=fake_clock.sleep,
    )


@pytest.mark.asyncio
async def test_search_tokens_caps_results(fake_clock):
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json=_items(30))

    client = _client(fake_clock, handler)
    tokens = await client.search_tokens("BONK")
    await client.close()

    assert seen[0].url.path == "/tokens/v2/search"
    assert seen[0].url.params["query"] == "BONK"
    assert len(tokens) == MAX_RESULTS
    assert tokens[0].address == "mint0"
    assert tokens[0].ticker == "M0"
    assert all(t.source == JUPITER_SOURCE for t in tokens)
    assert all(t.protocol == "Jupiter" for t in tokens)


def test_placeholder_values_are_deterministic_and_bounded():
    client = JupiterClient()
    first = client.transform_tokens(_items(5))
    second = client.transform_tokens(_items(5))

    for a, b in zip(first, second):
        assert a.price_in_base_unit == b.price_in_base_unit
        assert a.volume_in_base_unit == b.volume_in_base_unit
        assert a.transaction_count == b.transaction_count
        assert a.price_change_1h_pct == b.price_change_1h_pct

    for token in first:
        assert 0 <= token.price_in_base_unit < 0.0001
        assert 0 <= token.volume_in_base_unit < 1000
        assert 0 <= token.transaction_count < 1000
        assert -50 <= token.price_change_1h_pct < 50
        assert token.market_cap_in_base_unit == pytest.approx(token.price_in_base_unit * 1_000_000)
        assert token.liquidity_in_base_unit == pytest.approx(token.volume_in_base_unit * 0.1)


def test_reported_daily_volume_wins():
    client = JupiterClient()
    [token] = client.transform_tokens([{"address": "vol", "name": "V", "symbol": "V", "daily_volume": 1234.5}])

    assert token.volume_in_base_unit == 1234.5
    assert token.liquidity_in_base_unit == pytest.approx(123.45)


def test_entries_without_address_are_skipped():
    client = JupiterClient()
    tokens = client.transform_tokens([{"name": "nameless"}, {"address": "ok"}, None])

    assert [t.address for t in tokens] == ["ok"]
    assert tokens[0].name == ""


@pytest.mark.asyncio
async def test_search_tokens_returns_empty_list_on_failure(fake_clock):
    client = _client(fake_clock, lambda request: httpx.Response(503, json={}))

    assert await client.search_tokens("SOL") == []
    await client.close()


@pytest.mark.asyncio
async def test_search_tokens_rejects_unexpected_payload(fake_clock):
    client = _client(fake_clock, lambda request: httpx.Response(200, json={"tokens": []}))

    assert await client.search_tokens("SOL") == []
    await client.close()


def test_non_string_fields_default_and_good_entries_survive():
    client = JupiterClient()
    tokens = client.transform_tokens([
        {"address": "J1", "name": 7, "symbol": ["J"]},
        {"address": 99, "name": "numeric address"},
        {"address": "J2", "name": "Good", "symbol": "GD"},
    ])

    assert [t.address for t in tokens] == ["J1", "J2"]
    assert tokens[0].name == ""
    assert tokens[0].ticker == ""
    assert tokens[1].name == "Good"


@pytest.mark.asyncio
async def test_search_tokens_keeps_good_entries_next_to_malformed_ones(fake_clock):
    payload = [{"address": "J1", "name": 7}, {"id": "J2", "name": "Good", "symbol": "GD"}]
    client = _client(fake_clock, lambda request: httpx.Response(200, json=payload))

    tokens = await client.search_tokens("SOL")
    await client.close()

    assert [t.address for t in tokens] == ["J1", "J2"]
    assert tokens[1].ticker == "GD"


def test_non_finite_daily_volume_uses_estimate():
    client = JupiterClient()
    [reported] = client.transform_tokens([{"address": "inf", "daily_volume": float("inf")}])
    [estimated] = client.transform_tokens([{"address": "inf"}])

    assert reported.volume_in_base_unit == estimated.volume_in_base_unit


def test_record_failing_validation_is_skipped(monkeypatch):
    client = JupiterClient()
    original = client._transform_token

    def transform(item, address, now_ms):
        if address == "Broken":
            return Token(address=address, name=None, ticker="")
        return original(item, address, now_ms)

    monkeypatch.setattr(client, "_transform_token", transform)

    tokens = client.transform_tokens([{"address": "Broken"}, {"address": "Fine"}])

    assert [t.address for t in tokens] == ["Fine"]
