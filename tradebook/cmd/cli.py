import argparse
import sys
from pathlib import Path

from tradebook.config.logging import logger
from tradebook.config.settings import settings
from tradebook.core.exceptions import AppError, CSVStructureError
from tradebook.infrastructure.base import TradeStore
from tradebook.infrastructure.candle_cache import CachedCandleProvider
from tradebook.services.importer import DEFAULT_BATCH_SIZE, ImportService
from tradebook.services.metrics import MetricsService
from tradebook.services.order_parser import generate_orders_template
from tradebook.services.report_formatter import ReportFormatter
from tradebook.services.risk import RiskEstimator, build_risk_estimator
from tradebook.services.scoring import MIN_SAMPLE_SIZE
from tradebook.services.trade_analyzer import TradeAnalyzer


def build_store() -> TradeStore:
    """Notion when configured; an in-memory store for dry runs."""
    if settings and settings.DRY_RUN:
        from tradebook.infrastructure.memory_store import InMemoryTradeStore
        logger.info("[DRY RUN] Using in-memory store, nothing will be persisted.")
        return InMemoryTradeStore()

    from tradebook.infrastructure.notion.client import NotionTradeStore
    return NotionTradeStore()


def build_estimator() -> RiskEstimator:
    provider = None
    if settings and settings.FINNHUB_API_KEY:
        from tradebook.infrastructure.finnhub.client import FinnhubClient
        provider = CachedCandleProvider(FinnhubClient())
    model = settings.RISK_MODEL if settings else "auto"
    return build_risk_estimator(model, provider)


def _read_csv(path: str) -> str:
    return Path(path).read_text(encoding="utf-8-sig")


def cmd_analyze(args) -> int:
    result = TradeAnalyzer().analyze(_read_csv(args.file))
    print(ReportFormatter.format_analysis(result, max_trades=args.limit))
    return 0


def cmd_template(args) -> int:
    template = generate_orders_template()
    if args.output:
        Path(args.output).write_text(template + "\n", encoding="utf-8")
        logger.info(f"Template written to {args.output}")
    else:
        print(template)
    return 0


def cmd_import(args) -> int:
    result = TradeAnalyzer().analyze(_read_csv(args.file))
    if not result.matched_trades:
        print("No matched trades found. Nothing to import.")
        return 0

    batch_size = settings.IMPORT_BATCH_SIZE if settings else DEFAULT_BATCH_SIZE
    outcome = ImportService(build_store(), batch_size).import_trades(
        args.user_id, result.matched_trades, platform=args.platform
    )
    print(ReportFormatter.format_import(outcome))
    return 0 if outcome.errors == 0 else 2


def cmd_metrics(args) -> int:
    min_sample = settings.MIN_SAMPLE_SIZE if settings else MIN_SAMPLE_SIZE
    metrics = MetricsService(build_store(), build_estimator(), min_sample).recalculate(args.user_id)
    print(ReportFormatter.format_metrics(metrics))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tradebook", description="Order CSV analysis and trade metrics")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    analyze_parser = subparsers.add_parser("analyze", help="Match orders in a CSV and print the analysis")
    analyze_parser.add_argument("file", help="Path to the orders CSV")
    analyze_parser.add_argument("--limit", type=int, default=20, help="Trades to list (default 20)")

    template_parser = subparsers.add_parser("template", help="Print or save a sample orders CSV")
    template_parser.add_argument("-o", "--output", help="Write the template to this file")

    import_parser = subparsers.add_parser("import", help="Import matched trades as positions")
    import_parser.add_argument("file", help="Path to the orders CSV")
    import_parser.add_argument("--user-id", required=True)
    import_parser.add_argument("--platform", default="csv", help="Platform tag stored on each position")

    metrics_parser = subparsers.add_parser("metrics", help="Recalculate R-multiple metrics for a user")
    metrics_parser.add_argument("--user-id", required=True)

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        if args.command == "analyze":
            return cmd_analyze(args)
        elif args.command == "template":
            return cmd_template(args)
        elif args.command == "import":
            return cmd_import(args)
        elif args.command == "metrics":
            return cmd_metrics(args)
        return 1
    except CSVStructureError as e:
        logger.error(f"Invalid CSV: {e}")
        return 1
    except (OSError, UnicodeDecodeError) as e:
        logger.error(f"Cannot read input: {e}")
        return 1
    except AppError as e:
        logger.error(f"{args.command} failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
