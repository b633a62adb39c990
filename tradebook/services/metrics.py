from datetime import datetime, timezone
from typing import List

from tradebook.config.logging import logger
from tradebook.core.exceptions import AppError
from tradebook.core.models import TradingMetrics
from tradebook.infrastructure.base import TradeStore
from tradebook.services.risk import RiskEstimator
from tradebook.services.scoring import (
    MIN_SAMPLE_SIZE,
    ScoringWeights,
    DEFAULT_WEIGHTS,
    classify_outcome,
    r_multiple,
    summarize_r_multiples,
)


class MetricsService:
    """
    Recalculates a user's risk-adjusted trading metrics.

    Walks the user's closed positions one at a time, estimates risk,
    writes mae / mfe / r_multiple / estimated_risk back to each position
    and finally upserts one TradingMetrics row. Every value is recomputed
    from scratch, so running it twice gives the same result.
    """

    def __init__(
        self,
        store: TradeStore,
        estimator: RiskEstimator,
        min_sample: int = MIN_SAMPLE_SIZE,
        weights: ScoringWeights = DEFAULT_WEIGHTS,
    ):
        self.store = store
        self.estimator = estimator
        self.min_sample = min_sample
        self.weights = weights

    def _empty_metrics(self, user_id: str, connected: bool, last_sync_at, now: datetime) -> TradingMetrics:
        return TradingMetrics(
            user_id=user_id,
            total_verified_trades=0,
            total_wins=0,
            total_losses=0,
            total_breakeven=0,
            win_rate=None,
            average_r=0.0,
            total_r=0.0,
            positive_r_percentage=0.0,
            r_variance=0.0,
            accuracy_score=None,
            is_verified=False,
            api_status="connected" if connected else "disconnected",
            trades_processed=0,
            last_api_sync_at=last_sync_at,
            updated_at=now,
        )

    def recalculate(self, user_id: str) -> TradingMetrics:
        logger.info(f"Calculating metrics for user {user_id} (risk model: {self.estimator.name})")
        now = datetime.now(timezone.utc)

        connection = self.store.get_exchange_connection(user_id)
        connected = connection is not None and connection.is_active()
        last_sync_at = connection.last_sync_at if connected else None

        positions = [p for p in self.store.get_closed_positions(user_id) if p.is_closed]
        if not positions:
            logger.info("No closed positions found. Saving empty metrics.")
            metrics = self._empty_metrics(user_id, connected, last_sync_at, now)
            self.store.upsert_metrics(metrics)
            return metrics

        logger.info(f"Processing {len(positions)} closed positions")

        r_values: List[float] = []
        wins = losses = breakeven = verified = 0

        for position in positions:
            try:
                estimate = self.estimator.estimate(position)
                r = r_multiple(estimate.net_pnl, estimate.estimated_risk)
                self.store.update_position_metrics(
                    position.id,
                    mae=estimate.mae,
                    mfe=estimate.mfe,
                    r_multiple=r,
                    estimated_risk=estimate.estimated_risk,
                    calculated_at=now,
                )
            except AppError as e:
                logger.error(f"Failed to update metrics for position {position.id} ({position.symbol}): {e}")
                continue

            r_values.append(r)
            outcome = classify_outcome(estimate.net_pnl)
            if outcome == "win":
                wins += 1
            elif outcome == "loss":
                losses += 1
            else:
                breakeven += 1

            if position.is_exchange_verified or position.exchange_source:
                verified += 1

        stats = summarize_r_multiples(r_values, self.min_sample, self.weights)
        total = wins + losses + breakeven

        metrics = TradingMetrics(
            user_id=user_id,
            total_verified_trades=verified,
            total_wins=wins,
            total_losses=losses,
            total_breakeven=breakeven,
            win_rate=(wins / total) * 100 if total else None,
            average_r=stats.average_r,
            total_r=stats.total_r,
            positive_r_percentage=stats.positive_r_percentage,
            r_variance=stats.r_variance,
            accuracy_score=stats.accuracy_score,
            is_verified=connected and verified >= self.min_sample,
            api_status="connected" if connected else "disconnected",
            trades_processed=total,
            last_api_sync_at=last_sync_at,
            updated_at=now,
        )
        self.store.upsert_metrics(metrics)

        score = f"{metrics.accuracy_score:.1f}" if metrics.accuracy_score is not None else "n/a"
        win_rate = f"{metrics.win_rate:.1f}%" if metrics.win_rate is not None else "n/a"
        logger.info(
            f"Metrics calculated: {verified} verified trades, Win Rate: {win_rate}, Accuracy: {score}"
        )
        return metrics
