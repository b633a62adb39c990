from dataclasses import replace
from datetime import datetime, timezone

import pytest
from tradebook.core.exceptions import DataDestinationError
from tradebook.core.models import ExchangeConnection
from tradebook.infrastructure.memory_store import InMemoryTradeStore
from tradebook.services.metrics import MetricsService
from tradebook.services.risk import PriceRiskEstimator, VolatilityRiskEstimator

from conftest import make_position
from test_risk import CANDLES, StaticProvider

SYNCED_AT = datetime(2025, 12, 1, tzinfo=timezone.utc)


def connect(store, user_id="u1", status="connected"):
    store.set_exchange_connection(ExchangeConnection(user_id, "bybit", status, SYNCED_AT))


def test_no_positions_saves_empty_metrics(store):
    metrics = MetricsService(store, VolatilityRiskEstimator()).recalculate("u1")

    assert metrics.trades_processed == 0
    assert metrics.win_rate is None
    assert metrics.accuracy_score is None
    assert metrics.is_verified is False
    assert metrics.api_status == "disconnected"
    assert store.get_metrics("u1") == metrics


def test_positions_get_r_multiple_and_risk_written_back(store):
    win = store.add_position(make_position(0, pnl=600.0))      # risk 400 -> +1.5R
    loss = store.add_position(make_position(1, pnl=-1000.0))   # risk floored to 1000 -> -1R
    flat = store.add_position(make_position(2, pnl=0.005))     # breakeven band

    metrics = MetricsService(store, VolatilityRiskEstimator()).recalculate("u1")

    assert store.positions[win.id].r_multiple == pytest.approx(1.5)
    assert store.positions[win.id].estimated_risk == pytest.approx(400.0)
    assert store.positions[loss.id].r_multiple == pytest.approx(-1.0)
    assert store.positions[loss.id].estimated_risk == pytest.approx(1000.0)
    assert store.positions[flat.id].mae is None
    assert store.positions[flat.id].metrics_calculated_at is not None

    assert metrics.total_wins == 1
    assert metrics.total_losses == 1
    assert metrics.total_breakeven == 1
    assert metrics.trades_processed == 3
    assert metrics.win_rate == pytest.approx(100 / 3)
    assert metrics.total_r == pytest.approx(0.5 + 0.005 / 400)
    assert metrics.accuracy_score is None


def test_open_positions_are_ignored(store):
    store.add_position(make_position(0))
    store.add_position(make_position(1, open=True))
    store.add_position(make_position(2, exit_price=None))

    metrics = MetricsService(store, VolatilityRiskEstimator()).recalculate("u1")
    assert metrics.trades_processed == 1


def test_accuracy_score_gate_and_verification(store):
    connect(store)
    for i in range(30):
        store.add_position(make_position(i, pnl=600.0 if i % 3 else -300.0, verified=True))

    metrics = MetricsService(store, VolatilityRiskEstimator()).recalculate("u1")

    assert metrics.trades_processed == 30
    assert metrics.accuracy_score is not None
    assert 0.0 <= metrics.accuracy_score <= 100.0
    assert metrics.total_verified_trades == 30
    assert metrics.is_verified is True
    assert metrics.api_status == "connected"
    assert metrics.last_api_sync_at == SYNCED_AT


def test_not_verified_without_active_connection(store):
    connect(store, status="error")
    for i in range(30):
        store.add_position(make_position(i, exchange_source="bybit"))

    metrics = MetricsService(store, VolatilityRiskEstimator()).recalculate("u1")
    assert metrics.total_verified_trades == 30
    assert metrics.is_verified is False
    assert metrics.api_status == "disconnected"
    assert metrics.last_api_sync_at is None


def test_recalculation_is_idempotent(store):
    for i in range(5):
        store.add_position(make_position(i, pnl=100.0 * (i - 2)))
    service = MetricsService(store, VolatilityRiskEstimator())

    first = service.recalculate("u1")
    first_positions = {pid: (p.r_multiple, p.estimated_risk) for pid, p in store.positions.items()}
    second = service.recalculate("u1")
    second_positions = {pid: (p.r_multiple, p.estimated_risk) for pid, p in store.positions.items()}

    assert first_positions == second_positions
    assert replace(first, updated_at=None) == replace(second, updated_at=None)


class FlakyStore(InMemoryTradeStore):
    def __init__(self, failing_id):
        super().__init__()
        self.failing_id = failing_id

    def update_position_metrics(self, position_id, **kwargs):
        if position_id == self.failing_id:
            raise DataDestinationError("write rejected")
        super().update_position_metrics(position_id, **kwargs)


def test_failed_position_update_does_not_stop_the_batch():
    store = FlakyStore(failing_id="2")
    for i in range(3):
        store.add_position(make_position(i))

    metrics = MetricsService(store, VolatilityRiskEstimator()).recalculate("u1")

    assert metrics.trades_processed == 2
    assert store.positions["2"].r_multiple is None
    assert store.positions["1"].r_multiple is not None
    assert store.positions["3"].r_multiple is not None


def test_price_model_writes_mae_and_mfe(store):
    pos = store.add_position(make_position(0, symbol="AAPL", entry=100.0, qty=10.0, pnl=60.0))

    MetricsService(store, PriceRiskEstimator(StaticProvider(CANDLES))).recalculate("u1")

    updated = store.positions[pos.id]
    assert updated.mae == 5
    assert updated.mfe == 10
    assert updated.estimated_risk == pytest.approx(50.0)
    assert updated.r_multiple == pytest.approx(1.2)


def test_estimated_risk_covers_every_loss(store):
    for i, pnl in enumerate([-5000.0, -1.0, 250.0, -399.0, 0.0]):
        store.add_position(make_position(i, pnl=pnl, fees=2.0))

    MetricsService(store, VolatilityRiskEstimator()).recalculate("u1")

    for p in store.positions.values():
        assert p.estimated_risk > 0
        if p.net_pnl < 0:
            assert p.estimated_risk >= abs(p.net_pnl)
