import pytest
import requests

from core.market import MarketDataCache


def _row(cid, symbol, price, name=None):
    return {
        "id": cid,
        "symbol": symbol,
        "name": name or cid.title(),
        "image": f"https://img.example/{cid}.png",
        "current_price": price,
        "price_change_percentage_24h": 1.5,
        "market_cap": 1e9,
        "total_volume": 1e6,
    }


def test_refresh_replaces_snapshot_and_records_quote():
    calls = []

    def fetch(vs, per_page, page):
        calls.append((vs, per_page, page))
        return [_row("bitcoin", "btc", 60000), _row("ethereum", "eth", 3000)]

    cache = MarketDataCache(fetch)
    coins = cache.refresh("EUR")

    assert calls == [("eur", 100, 1)]
    assert [c.id for c in coins] == ["bitcoin", "ethereum"]
    assert cache.quote_currency == "EUR"
    assert cache.fetched_at is not None
    assert cache.find_by_id("ethereum").current_price == 3000.0
    assert cache.find_by_id("dogecoin") is None


@pytest.mark.parametrize("exc", [
    requests.ConnectionError("offline"),
    requests.HTTPError("404"),
    RuntimeError("retries exhausted"),
    ValueError("not a list"),
])
def test_failed_refresh_keeps_previous_snapshot(exc):
    state = {"fail": False}

    def fetch(vs, per_page, page):
        if state["fail"]:
            raise exc
        return [_row("bitcoin", "btc", 100)]

    cache = MarketDataCache(fetch)
    cache.refresh("USD")
    state["fail"] = True
    coins = cache.refresh("GBP")

    assert [c.id for c in coins] == ["bitcoin"]
    assert cache.quote_currency == "USD"
    assert cache.find_by_id("bitcoin").current_price == 100.0


def test_malformed_row_fails_whole_refresh():
    cache = MarketDataCache(lambda vs, per_page, page: [_row("bitcoin", "btc", 1)])
    cache.refresh("USD")
    cache._fetch = lambda vs, per_page, page: [{"symbol": "x"}]
    cache.refresh("USD")
    assert [c.id for c in cache.coins] == ["bitcoin"]


def test_null_figures_become_zero():
    row = _row("newcoin", "new", None)
    row["price_change_percentage_24h"] = None
    cache = MarketDataCache(lambda vs, per_page, page: [row])
    cache.refresh("USD")
    coin = cache.find_by_id("newcoin")
    assert coin.current_price == 0.0
    assert coin.price_change_percent_24h == 0.0


def test_superseded_refresh_is_discarded():
    # the USD fetch resolves only after a later EUR refresh already landed
    cache = MarketDataCache(None)

    def fetch(vs, per_page, page):
        if vs == "usd":
            cache._fetch = lambda vs, per_page, page: [_row("bitcoin", "btc", 55000)]
            cache.refresh("EUR")
            return [_row("bitcoin", "btc", 60000)]
        raise AssertionError("unexpected")

    cache._fetch = fetch
    cache.refresh("USD")

    assert cache.quote_currency == "EUR"
    assert cache.find_by_id("bitcoin").current_price == 55000.0


def test_search_by_name_or_symbol():
    cache = MarketDataCache(lambda vs, per_page, page: [
        _row("bitcoin", "btc", 1, "Bitcoin"),
        _row("bitcoin-cash", "bch", 1, "Bitcoin Cash"),
        _row("ethereum", "eth", 1, "Ethereum"),
    ])
    cache.refresh("USD")
    assert [c.id for c in cache.search("BIT")] == ["bitcoin", "bitcoin-cash"]
    assert [c.id for c in cache.search("eth")] == ["ethereum"]
    assert [c.id for c in cache.search("bit", limit=1)] == ["bitcoin"]
    assert len(cache.search("")) == 3


def test_resolve_by_id_then_symbol():
    cache = MarketDataCache(lambda vs, per_page, page: [_row("bitcoin", "btc", 1)])
    cache.refresh("USD")
    assert cache.resolve("bitcoin").id == "bitcoin"
    assert cache.resolve("BTC").id == "bitcoin"
    assert cache.resolve("doge") is None


@pytest.mark.parametrize("field,value", [
    ("current_price", {"usd": 1}),
    ("market_cap", [1, 2]),
    ("total_volume", "lots"),
])
def test_non_numeric_figure_keeps_previous_snapshot(field, value):
    cache = MarketDataCache(lambda vs, per_page, page: [_row("bitcoin", "btc", 1)])
    cache.refresh("USD")
    bad = _row("bitcoin", "btc", 2)
    bad[field] = value
    cache._fetch = lambda vs, per_page, page: [bad]

    coins = cache.refresh("USD")
    assert [c.current_price for c in coins] == [1.0]
    assert cache.find_by_id("bitcoin").current_price == 1.0
