from tradebook.config.logging import logger
from tradebook.core.models import TradeAnalysisResult
from tradebook.services.analytics import AnalyticsService
from tradebook.services.fifo_matcher import QUANTITY_TOLERANCE, match_orders_fifo
from tradebook.services.order_parser import parse_orders_csv


class TradeAnalyzer:
    """CSV text -> parsed orders -> FIFO matched trades -> summary."""

    def __init__(self, tolerance: float = QUANTITY_TOLERANCE):
        self.tolerance = tolerance

    def analyze(self, csv_text: str) -> TradeAnalysisResult:
        parse_result = parse_orders_csv(csv_text)
        logger.info(
            f"Parsed {len(parse_result.orders)} orders, "
            f"skipped {len(parse_result.skipped_rows)} rows. "
            f"Detected fields: {', '.join(parse_result.detected_fields) or 'none'}"
        )

        fifo = match_orders_fifo(parse_result.orders, self.tolerance)
        if fifo.unmatched:
            logger.info(f"{len(fifo.unmatched)} orders left without a counterpart.")

        summary = AnalyticsService.summarize(
            fifo.matched, fifo.unmatched, len(parse_result.skipped_rows)
        )
        logger.info(f"Matched {summary.total_trades} trades. Net P/L: {summary.net_pnl:.2f}")

        return TradeAnalysisResult(
            matched_trades=fifo.matched,
            unmatched_orders=fifo.unmatched,
            summary=summary,
            parse_result=parse_result,
        )
