from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests

from tradebook.config.logging import get_logger
from tradebook.config.settings import settings
from tradebook.core.exceptions import ConfigurationError, DataSourceError
from tradebook.core.models import PriceCandle
from tradebook.infrastructure.base import CandleProvider
from .mapper import FinnhubMapper

logger = get_logger("finnhub")


class FinnhubClient(CandleProvider):
    """
    Finnhub REST client for daily candles.
    Handles auth and errors, then hands the payload to FinnhubMapper.
    """

    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None, timeout: Optional[int] = None):
        self.api_key = api_key or (settings.FINNHUB_API_KEY if settings else None)
        if not self.api_key:
            raise ConfigurationError("FINNHUB_API_KEY is not set")
        self.base_url = base_url or (settings.FINNHUB_BASE_URL if settings else "https://finnhub.io/api/v1")
        self.timeout = timeout or (settings.HTTP_TIMEOUT_SECONDS if settings else 10)

    def _request(self, endpoint: str, params: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}{endpoint}"
        try:
            response = requests.get(url, params={**params, "token": self.api_key}, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            logger.error(f"Finnhub Connection Error: {e}")
            raise DataSourceError(f"Failed to connect to Finnhub: {e}")
        except ValueError as e:
            raise DataSourceError(f"Finnhub returned invalid JSON: {e}")

        if isinstance(data, dict) and data.get("error"):
            raise DataSourceError(f"Finnhub API Error: {data['error']}")
        return data

    def get_candles(self, symbol: str, start: datetime, end: datetime) -> List[PriceCandle]:
        endpoint, finnhub_symbol = FinnhubMapper.resolve_symbol(symbol)
        # Daily candles are stamped at midnight, so widen to the entry day's start
        day_start = start.astimezone(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
        params = {
            "symbol": finnhub_symbol,
            "resolution": "D",
            "from": int(day_start.timestamp()),
            "to": int(end.timestamp()),
        }

        logger.info(f"Fetching candles from Finnhub: {finnhub_symbol}")
        candles = FinnhubMapper.to_candles(self._request(endpoint, params))
        if not candles:
            logger.info(f"No data from Finnhub for {symbol}")
        return candles
