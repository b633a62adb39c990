from collections import defaultdict
from typing import Dict, List

from tradebook.core.models import (
    AnalysisSummary,
    DailySummary,
    MatchedTrade,
    RawOrder,
    SymbolSummary,
)


class AnalyticsService:
    """
    Aggregates matched trades into an AnalysisSummary.
    A trade with net P/L > 0 is a win; anything else, including exactly
    zero, counts as a loss.
    """

    @staticmethod
    def win_rate(trades: List[MatchedTrade]) -> float:
        if not trades:
            return 0.0
        wins = sum(1 for t in trades if t.is_win())
        return (wins / len(trades)) * 100

    @staticmethod
    def max_consecutive_losses(trades: List[MatchedTrade]) -> int:
        """Longest run of non-winning trades, in the order given."""
        max_loss_streak = 0
        current_loss_streak = 0
        for trade in trades:
            if not trade.is_win():
                current_loss_streak += 1
            else:
                max_loss_streak = max(max_loss_streak, current_loss_streak)
                current_loss_streak = 0
        return max(max_loss_streak, current_loss_streak)

    @staticmethod
    def daily_summaries(trades: List[MatchedTrade]) -> List[DailySummary]:
        """One row per UTC exit date, newest first."""
        by_date: Dict[str, List[MatchedTrade]] = defaultdict(list)
        for trade in trades:
            by_date[trade.exit_time.date().isoformat()].append(trade)

        summaries = []
        for day in sorted(by_date, reverse=True):
            day_trades = by_date[day]
            count = len(day_trades)
            net_pnl = sum(t.net_pnl for t in day_trades)
            wins = sum(1 for t in day_trades if t.is_win())
            summaries.append(DailySummary(
                date=day,
                trades=count,
                gross_pnl=sum(t.gross_pnl for t in day_trades),
                net_pnl=net_pnl,
                total_commission=sum(t.total_commission for t in day_trades),
                wins=wins,
                losses=count - wins,
                win_rate=(wins / count) * 100,
                avg_pnl=net_pnl / count,
            ))
        return summaries

    @staticmethod
    def by_symbol(trades: List[MatchedTrade]) -> Dict[str, SymbolSummary]:
        grouped: Dict[str, List[MatchedTrade]] = defaultdict(list)
        for trade in trades:
            grouped[trade.symbol].append(trade)

        return {
            symbol: SymbolSummary(
                trades=len(symbol_trades),
                pnl=sum(t.net_pnl for t in symbol_trades),
                win_rate=AnalyticsService.win_rate(symbol_trades),
            )
            for symbol, symbol_trades in grouped.items()
        }

    @staticmethod
    def summarize(
        trades: List[MatchedTrade],
        unmatched_orders: List[RawOrder],
        skipped_rows: int,
    ) -> AnalysisSummary:
        count = len(trades)
        net_pnl = sum(t.net_pnl for t in trades)
        wins = sum(1 for t in trades if t.is_win())
        pnls = [t.net_pnl for t in trades]

        return AnalysisSummary(
            total_trades=count,
            matched_orders=count * 2,
            unmatched_orders=len(unmatched_orders),
            skipped_rows=skipped_rows,
            gross_pnl=sum(t.gross_pnl for t in trades),
            net_pnl=net_pnl,
            total_commission=sum(t.total_commission for t in trades),
            wins=wins,
            losses=count - wins,
            win_rate=AnalyticsService.win_rate(trades),
            avg_pnl=net_pnl / count if count else 0.0,
            best_trade=max(pnls) if pnls else 0.0,
            worst_trade=min(pnls) if pnls else 0.0,
            max_consecutive_losses=AnalyticsService.max_consecutive_losses(trades),
            by_symbol=AnalyticsService.by_symbol(trades),
            daily_summaries=AnalyticsService.daily_summaries(trades),
        )
