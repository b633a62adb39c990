from datetime import datetime, timedelta, timezone

import pytest
from tradebook.core.models import RawOrder
from tradebook.services.fifo_matcher import QUANTITY_TOLERANCE, match_orders_fifo

T0 = datetime(2025, 12, 5, 9, 0, tzinfo=timezone.utc)


def order(row, side, qty, price, minutes, symbol="BTCUSD", commission=None):
    return RawOrder(
        row_number=row,
        symbol=symbol,
        side=side,
        quantity=qty,
        fill_price=price,
        placing_time=T0 + timedelta(minutes=minutes),
        commission=commission,
    )


def test_long_round_trip_pnl():
    result = match_orders_fifo([
        order(2, "buy", 1.0, 42500, 0, commission=12.5),
        order(3, "sell", 1.0, 43200, 60, commission=12.5),
    ])
    assert result.unmatched == []
    trade = result.matched[0]
    assert trade.side == "long"
    assert trade.id == "BTCUSD-2-3"
    assert trade.gross_pnl == pytest.approx(700)
    assert trade.total_commission == 25
    assert trade.net_pnl == pytest.approx(675)
    assert trade.net_pnl == trade.gross_pnl - trade.total_commission
    assert trade.pnl_percent == pytest.approx(1.647, abs=1e-3)


def test_short_round_trip_when_sell_comes_first():
    result = match_orders_fifo([
        order(2, "sell", 100000, 1.27850, 0, symbol="GBPUSD"),
        order(3, "buy", 100000, 1.27650, 30, symbol="GBPUSD"),
    ])
    trade = result.matched[0]
    assert trade.side == "short"
    assert trade.entry_price == 1.27850
    assert trade.exit_price == 1.27650
    assert trade.gross_pnl == pytest.approx(200)
    # no commission column -> zero commission
    assert trade.net_pnl == trade.gross_pnl


def test_lone_order_is_unmatched():
    lone = order(2, "buy", 1.0, 100, 0, symbol="ETHUSD")
    result = match_orders_fifo([
        lone,
        order(3, "buy", 1.0, 42500, 1),
        order(4, "sell", 1.0, 43000, 2),
    ])
    assert len(result.matched) == 1
    assert result.unmatched == [lone]


def test_one_sided_symbol_never_matches():
    orders = [order(i, "sell", 1.0, 100 + i, i) for i in range(2, 5)]
    result = match_orders_fifo(orders)
    assert result.matched == []
    assert result.unmatched == orders


def test_earliest_queued_order_is_paired_first():
    buy_a = order(2, "buy", 1.0, 100, 0)
    buy_b = order(3, "buy", 1.0, 110, 10)
    sell_a = order(4, "sell", 1.0, 120, 20)
    sell_b = order(5, "sell", 1.0, 130, 30)

    result = match_orders_fifo([sell_b, buy_b, sell_a, buy_a])

    assert [(t.entry_row, t.exit_row) for t in result.matched] == [(2, 4), (3, 5)]


def test_first_fit_not_best_fit():
    # both buys are within tolerance of the sell; the earlier one wins
    result = match_orders_fifo([
        order(2, "buy", 100.0, 10, 0),
        order(3, "buy", 100.005, 10, 1),
        order(4, "sell", 100.005, 11, 2),
    ])
    assert result.matched[0].entry_row == 2
    assert [o.row_number for o in result.unmatched] == [3]


def test_quantity_tolerance():
    within = match_orders_fifo([order(2, "buy", 1.0, 10, 0), order(3, "sell", 1.00005, 11, 1)])
    assert len(within.matched) == 1
    assert within.matched[0].quantity == pytest.approx(1.000025)

    outside = match_orders_fifo([order(2, "buy", 1.0, 10, 0), order(3, "sell", 1.001, 11, 1)])
    assert outside.matched == []
    assert len(outside.unmatched) == 2


def test_matched_legs_are_ordered_and_consistent():
    orders = [
        order(2, "buy", 2.0, 100, 50, symbol="AAA"),
        order(3, "sell", 2.0, 90, 5, symbol="AAA"),
        order(4, "sell", 5.0, 10, 20, symbol="BBB"),
        order(5, "buy", 5.0, 12, 0, symbol="BBB"),
        order(6, "buy", 3.0, 7, 40, symbol="CCC"),
        order(7, "sell", 3.0003, 8, 45, symbol="CCC"),
    ]
    result = match_orders_fifo(orders)
    assert len(result.matched) == 3
    for trade in result.matched:
        assert trade.entry_time <= trade.exit_time
        assert trade.net_pnl == trade.gross_pnl - trade.total_commission
    entry_times = [t.entry_time for t in result.matched]
    assert entry_times == sorted(entry_times)


def test_equal_timestamps_keep_input_order():
    result = match_orders_fifo([order(2, "buy", 1.0, 10, 0), order(3, "sell", 1.0, 12, 0)])
    trade = result.matched[0]
    assert trade.side == "long"
    assert (trade.entry_row, trade.exit_row) == (2, 3)


def test_input_is_not_mutated_and_empty_input():
    orders = [order(3, "sell", 1.0, 12, 5), order(2, "buy", 1.0, 10, 0)]
    snapshot = list(orders)
    match_orders_fifo(orders)
    assert orders == snapshot

    empty = match_orders_fifo([])
    assert empty.matched == [] and empty.unmatched == []


def test_default_tolerance_is_one_basis_point():
    assert QUANTITY_TOLERANCE == 0.0001
