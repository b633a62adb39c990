from typing import List

from tradebook.core.models import ImportResult, TradeAnalysisResult, TradingMetrics


def _signed(value: float, digits: int = 2) -> str:
    sign = '+' if value > 0 else ''
    return f"{sign}{value:.{digits}f}"


class ReportFormatter:
    @staticmethod
    def format_analysis(result: TradeAnalysisResult, max_trades: int = 20) -> str:
        """
        Plain-text rendering of a CSV analysis: summary, per-symbol and
        per-day breakdowns, the first trades and the parse diagnostics.
        """
        s = result.summary
        lines = ["📊 Trade Analysis"]
        lines.append(f"Trades: {s.total_trades} (orders matched: {s.matched_orders}, "
                     f"unmatched: {s.unmatched_orders}, skipped rows: {s.skipped_rows})")
        lines.append("")

        lines.append("🔢 P/L")
        lines.append(f"Gross: {_signed(s.gross_pnl)}")
        lines.append(f"Net: {_signed(s.net_pnl)}")
        lines.append(f"Commission: {s.total_commission:.2f}")
        lines.append(f"Win rate: {s.win_rate:.1f}% ({s.wins}W / {s.losses}L)")
        lines.append(f"Avg: {_signed(s.avg_pnl)}  Best: {_signed(s.best_trade)}  Worst: {_signed(s.worst_trade)}")
        lines.append(f"Max consecutive losses: {s.max_consecutive_losses}")
        lines.append("")

        if s.by_symbol:
            lines.append("📈 By symbol")
            for symbol, row in sorted(s.by_symbol.items()):
                lines.append(f"{symbol}: {row.trades} trades, {_signed(row.pnl)}, {row.win_rate:.1f}%")
            lines.append("")

        if s.daily_summaries:
            lines.append("📅 By day")
            for day in s.daily_summaries:
                lines.append(f"{day.date}: {day.trades} trades, {_signed(day.net_pnl)}, {day.win_rate:.1f}%")
            lines.append("")

        if result.matched_trades:
            lines.append("🧾 Trades")
            for i, t in enumerate(result.matched_trades[:max_trades], 1):
                lines.append(
                    f"{i}) {t.symbol} {t.side} {t.quantity:g} @ {t.entry_price:g} -> {t.exit_price:g} "
                    f"{_signed(t.net_pnl)} ({_signed(t.pnl_percent)}%)"
                )
            hidden = len(result.matched_trades) - max_trades
            if hidden > 0:
                lines.append(f"... {hidden} more")
            lines.append("")

        lines.extend(ReportFormatter.format_diagnostics(result))
        return "\n".join(lines).rstrip()

    @staticmethod
    def format_diagnostics(result: TradeAnalysisResult) -> List[str]:
        parse = result.parse_result
        lines = ["🔎 Detected columns"]
        for header, field_name in parse.field_mappings.items():
            lines.append(f"{header} -> {field_name}")

        if parse.skipped_rows:
            lines.append("")
            lines.append("⚠️ Skipped rows")
            for row in parse.skipped_rows:
                lines.append(f"Row {row.row_number}: {row.reason}")

        if result.unmatched_orders:
            lines.append("")
            lines.append("⏳ Unmatched orders")
            for order in result.unmatched_orders:
                lines.append(f"Row {order.row_number}: {order.symbol} {order.side} {order.quantity:g} @ {order.fill_price:g}")
        return lines

    @staticmethod
    def format_import(result: ImportResult) -> str:
        return (f"Imported {result.imported} trades. "
                f"{result.duplicates} duplicates skipped. {result.errors} errors.")

    @staticmethod
    def format_metrics(metrics: TradingMetrics) -> str:
        lines = [f"🏅 Trading metrics ({metrics.user_id})"]
        lines.append(f"Trades processed: {metrics.trades_processed} "
                     f"({metrics.total_wins}W / {metrics.total_losses}L / {metrics.total_breakeven}BE)")
        win_rate = f"{metrics.win_rate:.1f}%" if metrics.win_rate is not None else "n/a"
        lines.append(f"Win rate: {win_rate}")
        lines.append(f"Avg R: {_signed(metrics.average_r)}R  Total R: {_signed(metrics.total_r)}R")
        lines.append(f"Positive R: {metrics.positive_r_percentage:.1f}%  R variance: {metrics.r_variance:.2f}")
        if metrics.accuracy_score is None:
            lines.append("Accuracy score: not enough trades yet")
        else:
            lines.append(f"Accuracy score: {metrics.accuracy_score:.1f}/100")
        verified = "yes" if metrics.is_verified else "no"
        lines.append(f"Verified: {verified} ({metrics.total_verified_trades} exchange trades, API {metrics.api_status})")
        return "\n".join(lines)
