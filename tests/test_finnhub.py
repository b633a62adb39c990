from datetime import date, datetime, timezone

import pytest
import requests
from tradebook.config import settings as settings_module
from tradebook.core.exceptions import ConfigurationError, DataSourceError
from tradebook.infrastructure.candle_cache import CachedCandleProvider
from tradebook.infrastructure.finnhub.client import FinnhubClient
from tradebook.infrastructure.finnhub.mapper import FinnhubMapper

from test_risk import CANDLES, StaticProvider

START = datetime(2025, 12, 1, 10, 30, tzinfo=timezone.utc)
END = datetime(2025, 12, 3, 16, 0, tzinfo=timezone.utc)

OK_PAYLOAD = {
    "s": "ok",
    "t": [1764547200, 1764633600],
    "o": [100, 102],
    "h": [104, 110],
    "l": [97, 95],
    "c": [102, 108],
}


class FakeResponse:
    def __init__(self, payload, status=200):
        self.payload = payload
        self.status = status

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.exceptions.HTTPError(f"{self.status} Error")

    def json(self):
        return self.payload


def test_resolve_symbol():
    assert FinnhubMapper.resolve_symbol("BTCUSD") == ("/crypto/candle", "BINANCE:BTCUSDT")
    assert FinnhubMapper.resolve_symbol("eth-usdt") == ("/crypto/candle", "BINANCE:ETHUSDT")
    assert FinnhubMapper.resolve_symbol("EURUSD") == ("/forex/candle", "OANDA:EUR_USD")
    assert FinnhubMapper.resolve_symbol("AAPL") == ("/stock/candle", "AAPL")


def test_to_candles():
    candles = FinnhubMapper.to_candles(OK_PAYLOAD)
    assert len(candles) == 2
    assert candles[0].date == date(2025, 12, 1)
    assert candles[1].high == 110.0
    assert candles[1].low == 95.0


def test_to_candles_no_data():
    assert FinnhubMapper.to_candles({"s": "no_data"}) == []
    assert FinnhubMapper.to_candles({"s": "ok", "t": []}) == []


def test_to_candles_drops_rows_with_nulls():
    payload = dict(OK_PAYLOAD, o=[100, None], c=[None, 108])
    assert FinnhubMapper.to_candles(payload) == []

    payload = dict(OK_PAYLOAD, l=[97, None])
    candles = FinnhubMapper.to_candles(payload)
    assert [c.date for c in candles] == [date(2025, 12, 1)]


def test_get_candles_sends_day_aligned_window(monkeypatch):
    captured = {}

    def fake_get(url, params=None, timeout=None):
        captured.update(url=url, params=params, timeout=timeout)
        return FakeResponse(OK_PAYLOAD)

    monkeypatch.setattr(requests, "get", fake_get)
    client = FinnhubClient(api_key="k", base_url="https://example.test/api/v1", timeout=5)

    candles = client.get_candles("BTCUSD", START, END)

    assert len(candles) == 2
    assert captured["url"] == "https://example.test/api/v1/crypto/candle"
    assert captured["params"]["symbol"] == "BINANCE:BTCUSDT"
    assert captured["params"]["resolution"] == "D"
    assert captured["params"]["from"] == int(datetime(2025, 12, 1, tzinfo=timezone.utc).timestamp())
    assert captured["params"]["to"] == int(END.timestamp())
    assert captured["params"]["token"] == "k"
    assert captured["timeout"] == 5


def test_connection_error_becomes_data_source_error(monkeypatch):
    def fake_get(url, params=None, timeout=None):
        raise requests.exceptions.ConnectionError("refused")

    monkeypatch.setattr(requests, "get", fake_get)
    client = FinnhubClient(api_key="k")

    with pytest.raises(DataSourceError):
        client.get_candles("AAPL", START, END)


def test_api_error_payload(monkeypatch):
    monkeypatch.setattr(requests, "get", lambda url, params=None, timeout=None: FakeResponse({"error": "bad token"}))
    with pytest.raises(DataSourceError, match="bad token"):
        FinnhubClient(api_key="k").get_candles("AAPL", START, END)


def test_http_error_status(monkeypatch):
    monkeypatch.setattr(requests, "get", lambda url, params=None, timeout=None: FakeResponse({}, status=429))
    with pytest.raises(DataSourceError):
        FinnhubClient(api_key="k").get_candles("AAPL", START, END)


def test_missing_api_key(monkeypatch):
    monkeypatch.setattr(settings_module.settings, "FINNHUB_API_KEY", None)
    with pytest.raises(ConfigurationError):
        FinnhubClient()


def test_cache_reuses_non_empty_results():
    provider = StaticProvider(CANDLES)
    cached = CachedCandleProvider(provider)

    first = cached.get_candles("btcusd", START, END)
    second = cached.get_candles("BTCUSD", START.replace(hour=12), END)

    assert first == second == CANDLES
    assert len(provider.calls) == 1


def test_cache_does_not_keep_empty_results():
    provider = StaticProvider([])
    cached = CachedCandleProvider(provider)

    cached.get_candles("AAPL", START, END)
    cached.get_candles("AAPL", START, END)
    assert len(provider.calls) == 2
