from typing import List, Set, Tuple

from tradebook.config.logging import logger
from tradebook.core.exceptions import DataDestinationError
from tradebook.core.models import ImportResult, MatchedTrade, Position
from tradebook.infrastructure.base import TradeStore

DEFAULT_BATCH_SIZE = 50


class ImportService:
    """
    Persists FIFO-matched trades as closed positions.
    A trade is skipped when an identical (symbol, side, entry price,
    exit price, entry time, quantity) position already exists.
    """

    def __init__(self, store: TradeStore, batch_size: int = DEFAULT_BATCH_SIZE):
        self.store = store
        self.batch_size = batch_size

    @staticmethod
    def signature(position: Position) -> Tuple:
        return (
            position.symbol,
            position.side,
            position.entry_price,
            position.exit_price,
            position.entry_timestamp,
            position.quantity,
        )

    @staticmethod
    def to_position(user_id: str, trade: MatchedTrade, platform: str) -> Position:
        # pnl is already net of commission, so fees stay at 0
        return Position(
            user_id=user_id,
            symbol=trade.symbol,
            side=trade.side,
            entry_price=trade.entry_price,
            exit_price=trade.exit_price,
            entry_timestamp=trade.entry_time,
            exit_timestamp=trade.exit_time,
            quantity=trade.quantity,
            pnl=trade.net_pnl,
            fees_total=0.0,
            platform=platform,
            open=False,
        )

    def import_trades(self, user_id: str, trades: List[MatchedTrade], platform: str = "csv") -> ImportResult:
        if not trades:
            logger.info("No matched trades to import.")
            return ImportResult(imported=0, duplicates=0, errors=0)

        seen: Set[Tuple] = {self.signature(p) for p in self.store.list_positions(user_id)}

        pending: List[Position] = []
        duplicates = 0
        for trade in trades:
            position = self.to_position(user_id, trade, platform)
            key = self.signature(position)
            if key in seen:
                duplicates += 1
                continue
            seen.add(key)
            pending.append(position)

        if duplicates:
            logger.info(f"Skipped {duplicates} duplicate trades already in the store.")

        imported = 0
        errors = 0
        for start in range(0, len(pending), self.batch_size):
            batch = pending[start:start + self.batch_size]
            try:
                imported += len(self.store.insert_positions(batch))
            except DataDestinationError as e:
                logger.error(f"Import batch starting at {start} failed: {e}")
                errors += len(batch)

        logger.info(f"Import completed. Imported: {imported}, duplicates: {duplicates}, errors: {errors}")
        return ImportResult(imported=imported, duplicates=duplicates, errors=errors)
