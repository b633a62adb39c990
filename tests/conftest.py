from datetime import datetime, timedelta, timezone

import pytest
from tradebook.core.models import Position
from tradebook.infrastructure.memory_store import InMemoryTradeStore

BASE_TIME = datetime(2025, 11, 3, 14, 0, tzinfo=timezone.utc)


def make_position(index=0, user_id="u1", symbol="BTCUSD", side="long", entry=40000.0, qty=0.5,
                  pnl=600.0, fees=0.0, verified=False, **overrides):
    values = dict(
        user_id=user_id,
        symbol=symbol,
        side=side,
        entry_price=entry,
        entry_timestamp=BASE_TIME + timedelta(days=index),
        quantity=qty,
        exit_price=entry * 1.01,
        exit_timestamp=BASE_TIME + timedelta(days=index, hours=6),
        pnl=pnl,
        fees_total=fees,
        is_exchange_verified=verified,
    )
    values.update(overrides)
    return Position(**values)


@pytest.fixture()
def store():
    return InMemoryTradeStore()
