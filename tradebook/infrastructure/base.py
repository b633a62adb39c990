from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from tradebook.core.models import ExchangeConnection, Position, PriceCandle, TradingMetrics


class CandleProvider(ABC):
    """
    Source of historical daily candles.
    Implementations raise DataSourceError when the upstream is unusable and
    return an empty list when it simply has no data for the window.
    """

    @abstractmethod
    def get_candles(self, symbol: str, start: datetime, end: datetime) -> List[PriceCandle]:
        """
        Fetch daily candles covering [start, end].

        Args:
            symbol: Symbol as stored on the position (e.g. "BTCUSD").
            start: Window start (entry time).
            end: Window end (exit time).

        Returns:
            Candles in ascending date order.
        """
        pass


class TradeStore(ABC):
    """
    Persistence collaborator for positions, exchange connections and the
    per-user metrics row. Write failures raise DataDestinationError.
    """

    @abstractmethod
    def list_positions(self, user_id: str) -> List[Position]:
        """All positions of a user, open or closed."""
        pass

    @abstractmethod
    def get_closed_positions(self, user_id: str) -> List[Position]:
        """Closed positions with an exit price and exit timestamp, newest exit first."""
        pass

    @abstractmethod
    def insert_positions(self, positions: List[Position]) -> List[Position]:
        """Insert new positions; returns them with their assigned ids."""
        pass

    @abstractmethod
    def update_position_metrics(
        self,
        position_id: str,
        mae: Optional[float],
        mfe: Optional[float],
        r_multiple: float,
        estimated_risk: float,
        calculated_at: datetime,
    ) -> None:
        pass

    @abstractmethod
    def get_exchange_connection(self, user_id: str) -> Optional[ExchangeConnection]:
        """The user's connected exchange, or None if there is none."""
        pass

    @abstractmethod
    def upsert_metrics(self, metrics: TradingMetrics) -> None:
        """Create or overwrite the metrics row keyed by user id."""
        pass

    @abstractmethod
    def get_metrics(self, user_id: str) -> Optional[TradingMetrics]:
        pass
