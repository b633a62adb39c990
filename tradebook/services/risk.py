"""
Per-position risk estimation.

Two strategies share one interface: PriceRiskEstimator derives risk from
the maximum adverse excursion seen in daily candles, VolatilityRiskEstimator
from a static volatility table. Both run the result through
apply_risk_floor so risk is never below a realised loss and never zero.
"""
from abc import ABC, abstractmethod
from typing import Callable, List, Optional

from tradebook.config.logging import logger
from tradebook.core.exceptions import ConfigurationError, DataSourceError
from tradebook.core.models import Position, PriceCandle, RiskEstimate
from tradebook.infrastructure.base import CandleProvider
from tradebook.services.volatility import get_volatility

RISK_EPSILON = 0.01
FALLBACK_RISK_PCT = 0.02

RISK_MODELS = ("auto", "price", "volatility")


def apply_risk_floor(estimated_risk: float, net_pnl: float, epsilon: float = RISK_EPSILON) -> float:
    realised_loss = abs(net_pnl) if net_pnl < 0 else 0.0
    return max(estimated_risk, realised_loss, epsilon)


def _is_long(side: str) -> bool:
    return side.lower() in ("buy", "long")


def calculate_mae(candles: List[PriceCandle], entry_price: float, side: str) -> float:
    """Largest move against the position over the candles, 0 if none."""
    if _is_long(side):
        moves = [entry_price - c.low for c in candles]
    else:
        moves = [c.high - entry_price for c in candles]
    return max([0.0] + moves)


def calculate_mfe(candles: List[PriceCandle], entry_price: float, side: str) -> float:
    """Largest move in favour of the position over the candles, 0 if none."""
    if _is_long(side):
        moves = [c.high - entry_price for c in candles]
    else:
        moves = [entry_price - c.low for c in candles]
    return max([0.0] + moves)


class RiskEstimator(ABC):
    name = "base"

    @abstractmethod
    def estimate(self, position: Position) -> RiskEstimate:
        pass


class PriceRiskEstimator(RiskEstimator):
    """
    MAE x quantity from the position's holding window.
    Falls back to 2 % of notional when no candles (or no adverse move)
    are available; a failing provider is logged, not raised.
    """
    name = "price"

    def __init__(self, candle_provider: CandleProvider, fallback_pct: float = FALLBACK_RISK_PCT):
        self.candle_provider = candle_provider
        self.fallback_pct = fallback_pct

    def _fetch(self, position: Position) -> List[PriceCandle]:
        end = position.exit_timestamp or position.entry_timestamp
        try:
            return self.candle_provider.get_candles(position.symbol, position.entry_timestamp, end)
        except DataSourceError as e:
            logger.warning(f"Price lookup failed for {position.symbol}, using notional fallback: {e}")
            return []

    def estimate(self, position: Position) -> RiskEstimate:
        candles = self._fetch(position)
        quantity = abs(position.quantity)
        mae = calculate_mae(candles, position.entry_price, position.side)
        mfe = calculate_mfe(candles, position.entry_price, position.side)
        net_pnl = position.net_pnl

        mae_risk = mae * quantity
        if mae_risk > 0:
            risk, method = mae_risk, "mae"
        else:
            risk, method = position.entry_price * quantity * self.fallback_pct, "notional"

        return RiskEstimate(
            estimated_risk=apply_risk_floor(risk, net_pnl),
            net_pnl=net_pnl,
            method=method,
            mae=mae,
            mfe=mfe,
        )


class VolatilityRiskEstimator(RiskEstimator):
    """entry x |quantity| x daily volatility; no price fetch, no MAE/MFE."""
    name = "volatility"

    def __init__(self, volatility_lookup: Callable[[str, Optional[str]], float] = get_volatility):
        self.volatility_lookup = volatility_lookup

    def estimate(self, position: Position) -> RiskEstimate:
        volatility = self.volatility_lookup(position.symbol, position.asset_class)
        risk = position.entry_price * abs(position.quantity) * volatility
        net_pnl = position.net_pnl
        return RiskEstimate(
            estimated_risk=apply_risk_floor(risk, net_pnl),
            net_pnl=net_pnl,
            method="volatility",
        )


def build_risk_estimator(model: str = "auto", candle_provider: Optional[CandleProvider] = None) -> RiskEstimator:
    """
    Pick the strategy from configuration.
    "auto" uses price candles when a provider is available.
    """
    model = (model or "auto").lower().strip()
    if model not in RISK_MODELS:
        raise ConfigurationError(f"Unknown RISK_MODEL '{model}'. Expected one of {', '.join(RISK_MODELS)}")

    if model == "price" and candle_provider is None:
        raise ConfigurationError("RISK_MODEL=price requires a candle provider (set FINNHUB_API_KEY)")

    if model == "price" or (model == "auto" and candle_provider is not None):
        return PriceRiskEstimator(candle_provider)
    return VolatilityRiskEstimator()
