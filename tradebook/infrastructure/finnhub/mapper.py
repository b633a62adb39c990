from datetime import datetime, timezone
from typing import Any, Dict, List, Tuple

from tradebook.core.models import PriceCandle
from tradebook.services.volatility import infer_asset_class, normalize_symbol


class FinnhubMapper:
    """
    Translates between stored symbols / Finnhub candle payloads and the
    core PriceCandle model.
    """

    @staticmethod
    def resolve_symbol(symbol: str) -> Tuple[str, str]:
        """
        (endpoint, finnhub_symbol) for a stored symbol.
        BTCUSD -> crypto/candle BINANCE:BTCUSDT, EURUSD -> forex/candle
        OANDA:EUR_USD, anything else is queried as a stock ticker.
        """
        asset_class = infer_asset_class(symbol)
        if asset_class == "crypto":
            return "/crypto/candle", f"BINANCE:{normalize_symbol(symbol)}USDT"
        if asset_class == "forex":
            compact = "".join(ch for ch in symbol.upper() if ch.isalpha())
            return "/forex/candle", f"OANDA:{compact[:3]}_{compact[3:]}"
        return "/stock/candle", normalize_symbol(symbol)

    @staticmethod
    def to_candles(raw: Dict[str, Any]) -> List[PriceCandle]:
        """
        Finnhub returns parallel arrays (t, o, h, l, c) and s="ok".
        s="no_data" or missing arrays yield an empty list; rows with a
        null value are dropped.
        """
        if raw.get("s") != "ok" or not raw.get("t"):
            return []

        candles = []
        for row in zip(raw["t"], raw.get("o", []), raw.get("h", []), raw.get("l", []), raw.get("c", [])):
            if any(value is None for value in row):
                continue
            ts, o, h, low, c = row
            candles.append(PriceCandle(
                date=datetime.fromtimestamp(int(ts), tz=timezone.utc).date(),
                open=float(o),
                high=float(h),
                low=float(low),
                close=float(c),
            ))
        return candles
