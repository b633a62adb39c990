from datetime import date, datetime
from typing import Dict, List, Tuple

from tradebook.config.logging import logger
from tradebook.core.models import PriceCandle
from tradebook.infrastructure.base import CandleProvider


class CachedCandleProvider(CandleProvider):
    """
    Cache-or-fetch wrapper keyed by (symbol, start date, end date).
    Empty results and errors are not cached, so they are retried next time.
    """

    def __init__(self, provider: CandleProvider):
        self.provider = provider
        self._cache: Dict[Tuple[str, date, date], List[PriceCandle]] = {}

    def get_candles(self, symbol: str, start: datetime, end: datetime) -> List[PriceCandle]:
        key = (symbol.upper(), start.date(), end.date())
        if key in self._cache:
            logger.debug(f"Cache hit for {symbol}: {len(self._cache[key])} candles")
            return self._cache[key]

        candles = self.provider.get_candles(symbol, start, end)
        if candles:
            self._cache[key] = candles
        return candles
