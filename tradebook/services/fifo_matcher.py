"""
FIFO order matching.

Pairs buy and sell orders of the same symbol into round-trip trades.
Orders are walked in chronological order; each one is matched against
the earliest queued opposite-side order whose quantity agrees within a
relative tolerance, otherwise it waits in its own side's queue.

The pairing is greedy first-fit, not a global optimum: an early order
with a compatible quantity always wins over a later, arguably better
counterpart. Partial fills are never split or merged.
"""
from collections import deque
from typing import Deque, Dict, List, Optional

from tradebook.core.models import FifoMatchResult, MatchedTrade, RawOrder

# 0.01 % relative difference, absorbs rounding in exported quantities
QUANTITY_TOLERANCE = 0.0001


def _take_first_fit(queue: Deque[RawOrder], quantity: float, tolerance: float) -> Optional[RawOrder]:
    for index, candidate in enumerate(queue):
        if abs(candidate.quantity - quantity) / quantity <= tolerance:
            del queue[index]
            return candidate
    return None


def build_trade(queued: RawOrder, incoming: RawOrder) -> MatchedTrade:
    """
    Turn two opposite-side orders into a MatchedTrade.
    The earlier leg is the entry. On equal timestamps the leg that was
    queued first stays the entry, so a same-time buy then sell is a long
    rather than a short.
    """
    if incoming.placing_time < queued.placing_time:
        entry, exit_ = incoming, queued
    else:
        entry, exit_ = queued, incoming

    is_long = entry.side == "buy"
    quantity = (entry.quantity + exit_.quantity) / 2

    entry_commission = entry.commission or 0.0
    exit_commission = exit_.commission or 0.0
    total_commission = entry_commission + exit_commission

    if is_long:
        gross_pnl = (exit_.fill_price - entry.fill_price) * quantity
    else:
        gross_pnl = (entry.fill_price - exit_.fill_price) * quantity

    return MatchedTrade(
        id=f"{entry.symbol}-{entry.row_number}-{exit_.row_number}",
        symbol=entry.symbol,
        side="long" if is_long else "short",
        entry_price=entry.fill_price,
        exit_price=exit_.fill_price,
        quantity=quantity,
        entry_time=entry.placing_time,
        exit_time=exit_.placing_time,
        entry_commission=entry_commission,
        exit_commission=exit_commission,
        total_commission=total_commission,
        gross_pnl=gross_pnl,
        net_pnl=gross_pnl - total_commission,
        pnl_percent=gross_pnl / (entry.fill_price * quantity) * 100,
        leverage=entry.leverage if entry.leverage is not None else exit_.leverage,
        margin=entry.margin if entry.margin is not None else exit_.margin,
        entry_order_id=entry.order_id,
        exit_order_id=exit_.order_id,
        entry_row=entry.row_number,
        exit_row=exit_.row_number,
    )


def match_orders_fifo(orders: List[RawOrder], tolerance: float = QUANTITY_TOLERANCE) -> FifoMatchResult:
    """
    Match orders per symbol. The input list is left untouched.

    Orders are sorted globally by placing time (stable, so ties keep
    their input order) before being grouped by symbol. Matched trades come
    back sorted by entry time; leftover orders per symbol (buys first,
    then sells) are returned as unmatched.
    """
    chronological = sorted(orders, key=lambda o: o.placing_time)

    by_symbol: Dict[str, List[RawOrder]] = {}
    for order in chronological:
        by_symbol.setdefault(order.symbol, []).append(order)

    matched: List[MatchedTrade] = []
    unmatched: List[RawOrder] = []

    for symbol_orders in by_symbol.values():
        queues: Dict[str, Deque[RawOrder]] = {"buy": deque(), "sell": deque()}

        for order in symbol_orders:
            opposite = queues["sell" if order.side == "buy" else "buy"]
            counterpart = _take_first_fit(opposite, order.quantity, tolerance)
            if counterpart is None:
                queues[order.side].append(order)
            else:
                matched.append(build_trade(counterpart, order))

        unmatched.extend(queues["buy"])
        unmatched.extend(queues["sell"])

    matched.sort(key=lambda t: t.entry_time)
    return FifoMatchResult(matched=matched, unmatched=unmatched)
