import itertools
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional

from tradebook.core.exceptions import DataDestinationError
from tradebook.core.models import ExchangeConnection, Position, TradingMetrics
from tradebook.infrastructure.base import TradeStore


class InMemoryTradeStore(TradeStore):
    """Process-local TradeStore, used for dry runs and tests."""

    def __init__(self):
        self._ids = itertools.count(1)
        self.positions: Dict[str, Position] = {}
        self.connections: Dict[str, ExchangeConnection] = {}
        self.metrics: Dict[str, TradingMetrics] = {}

    def add_position(self, position: Position) -> Position:
        stored = replace(position, id=position.id or str(next(self._ids)))
        self.positions[stored.id] = stored
        return stored

    def set_exchange_connection(self, connection: ExchangeConnection):
        self.connections[connection.user_id] = connection

    def list_positions(self, user_id: str) -> List[Position]:
        return [p for p in self.positions.values() if p.user_id == user_id]

    def get_closed_positions(self, user_id: str) -> List[Position]:
        closed = [p for p in self.list_positions(user_id) if p.is_closed]
        return sorted(closed, key=lambda p: p.exit_timestamp, reverse=True)

    def insert_positions(self, positions: List[Position]) -> List[Position]:
        return [self.add_position(p) for p in positions]

    def update_position_metrics(
        self,
        position_id: str,
        mae: Optional[float],
        mfe: Optional[float],
        r_multiple: float,
        estimated_risk: float,
        calculated_at: datetime,
    ) -> None:
        if position_id not in self.positions:
            raise DataDestinationError(f"Unknown position {position_id}")
        self.positions[position_id] = replace(
            self.positions[position_id],
            mae=mae,
            mfe=mfe,
            r_multiple=r_multiple,
            estimated_risk=estimated_risk,
            metrics_calculated_at=calculated_at,
        )

    def get_exchange_connection(self, user_id: str) -> Optional[ExchangeConnection]:
        return self.connections.get(user_id)

    def upsert_metrics(self, metrics: TradingMetrics) -> None:
        self.metrics[metrics.user_id] = metrics

    def get_metrics(self, user_id: str) -> Optional[TradingMetrics]:
        return self.metrics.get(user_id)
