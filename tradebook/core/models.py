from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Optional


@dataclass(frozen=True)
class RawOrder:
    """
    One parsed CSV order row.
    Created by the order parser and discarded after matching; orders that
    find no counterpart are handed back to the caller as unmatched.
    """
    row_number: int        # 1-based CSV line number, header is line 1
    symbol: str            # upper-cased (e.g. "BTCUSD")
    side: str              # "buy" | "sell"
    quantity: float        # > 0
    fill_price: float      # > 0
    placing_time: datetime # UTC

    closing_time: Optional[datetime] = None
    commission: Optional[float] = None
    leverage: Optional[float] = None
    margin: Optional[float] = None
    order_id: Optional[str] = None
    order_type: Optional[str] = None
    raw: Dict[str, str] = field(default_factory=dict, compare=False)


@dataclass(frozen=True)
class SkippedRow:
    row_number: int
    reason: str


@dataclass(frozen=True)
class OrderParseResult:
    orders: List[RawOrder]
    skipped_rows: List[SkippedRow]
    field_mappings: Dict[str, str]   # CSV header -> canonical field
    detected_fields: List[str]


@dataclass(frozen=True)
class MatchedTrade:
    """
    A round trip built from exactly two orders of the same symbol.
    entry_time <= exit_time always holds.
    """
    id: str
    symbol: str
    side: str              # "long" (bought first) | "short" (sold first)
    entry_price: float
    exit_price: float
    quantity: float        # mean of both legs
    entry_time: datetime
    exit_time: datetime
    entry_commission: float
    exit_commission: float
    total_commission: float
    gross_pnl: float
    net_pnl: float
    pnl_percent: float

    leverage: Optional[float] = None
    margin: Optional[float] = None
    entry_order_id: Optional[str] = None
    exit_order_id: Optional[str] = None
    entry_row: int = 0
    exit_row: int = 0

    def is_win(self) -> bool:
        return self.net_pnl > 0


@dataclass(frozen=True)
class FifoMatchResult:
    matched: List[MatchedTrade]
    unmatched: List[RawOrder]


@dataclass(frozen=True)
class DailySummary:
    date: str              # YYYY-MM-DD of the exit (UTC)
    trades: int
    gross_pnl: float
    net_pnl: float
    total_commission: float
    wins: int
    losses: int
    win_rate: float
    avg_pnl: float


@dataclass(frozen=True)
class SymbolSummary:
    trades: int
    pnl: float
    win_rate: float


@dataclass(frozen=True)
class AnalysisSummary:
    total_trades: int
    matched_orders: int
    unmatched_orders: int
    skipped_rows: int
    gross_pnl: float
    net_pnl: float
    total_commission: float
    wins: int
    losses: int
    win_rate: float
    avg_pnl: float
    best_trade: float
    worst_trade: float
    max_consecutive_losses: int
    by_symbol: Dict[str, SymbolSummary]
    daily_summaries: List[DailySummary]


@dataclass(frozen=True)
class TradeAnalysisResult:
    matched_trades: List[MatchedTrade]
    unmatched_orders: List[RawOrder]
    summary: AnalysisSummary
    parse_result: OrderParseResult


@dataclass(frozen=True)
class Position:
    """
    A persisted, closed (or open) position owned by a user.
    mae / mfe / r_multiple / estimated_risk are written back by the
    metrics recalculation; everything else comes from import or sync.
    """
    user_id: str
    symbol: str
    side: str
    entry_price: float
    entry_timestamp: datetime
    quantity: float

    id: Optional[str] = None
    exit_price: Optional[float] = None
    exit_timestamp: Optional[datetime] = None
    pnl: Optional[float] = None
    fees_total: float = 0.0
    asset_class: Optional[str] = None
    is_exchange_verified: bool = False
    exchange_source: Optional[str] = None
    platform: Optional[str] = None
    open: bool = False

    mae: Optional[float] = None
    mfe: Optional[float] = None
    r_multiple: Optional[float] = None
    estimated_risk: Optional[float] = None
    metrics_calculated_at: Optional[datetime] = None

    @property
    def net_pnl(self) -> float:
        return (self.pnl or 0.0) - (self.fees_total or 0.0)

    @property
    def is_closed(self) -> bool:
        return not self.open and self.exit_price is not None and self.exit_timestamp is not None


@dataclass(frozen=True)
class PriceCandle:
    date: date
    open: float
    high: float
    low: float
    close: float


@dataclass(frozen=True)
class RiskEstimate:
    estimated_risk: float
    net_pnl: float
    method: str                  # "mae" | "notional" | "volatility"
    mae: Optional[float] = None
    mfe: Optional[float] = None


@dataclass(frozen=True)
class RStatistics:
    count: int
    average_r: float
    total_r: float
    positive_r_percentage: float
    r_variance: float
    accuracy_score: Optional[float]


@dataclass(frozen=True)
class ExchangeConnection:
    user_id: str
    exchange: str
    status: str
    last_sync_at: Optional[datetime] = None

    def is_active(self) -> bool:
        return self.status == "connected"


@dataclass(frozen=True)
class TradingMetrics:
    """One row per user, overwritten on every recalculation."""
    user_id: str
    total_verified_trades: int
    total_wins: int
    total_losses: int
    total_breakeven: int
    win_rate: Optional[float]
    average_r: float
    total_r: float
    positive_r_percentage: float
    r_variance: float
    accuracy_score: Optional[float]   # None until the sample gate is met
    is_verified: bool
    api_status: str                   # "connected" | "disconnected"
    trades_processed: int = 0
    last_api_sync_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class ImportResult:
    imported: int
    duplicates: int
    errors: int
