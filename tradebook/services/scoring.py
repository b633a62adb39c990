from dataclasses import dataclass
from typing import List, Optional

from tradebook.core.models import RStatistics

MIN_SAMPLE_SIZE = 30
BREAKEVEN_BAND = 0.01


@dataclass(frozen=True)
class ScoringWeights:
    """
    Constants of the 0-100 accuracy score.

    avg_r is mapped linearly from [avg_r_floor, avg_r_ceiling] onto
    [0, avg_r_points]; the share of positive-R trades from 0-100 % onto
    [0, positive_r_points]; consistency starts at consistency_points and
    loses variance_penalty_per_unit for every unit of R variance above
    variance_allowance.
    """
    avg_r_floor: float = -1.0
    avg_r_ceiling: float = 3.0
    avg_r_points: float = 40.0
    positive_r_points: float = 40.0
    consistency_points: float = 20.0
    variance_allowance: float = 1.0
    variance_penalty_per_unit: float = 5.0


DEFAULT_WEIGHTS = ScoringWeights()


def _clamp(value: float, low: float, high: float) -> float:
    return min(high, max(low, value))


def r_multiple(net_pnl: float, risk: float) -> float:
    if risk <= 0:
        return 0.0
    return net_pnl / risk


def r_variance(values: List[float]) -> float:
    """Population variance; 0 for fewer than two values."""
    if len(values) < 2:
        return 0.0
    mean = sum(values) / len(values)
    return sum((v - mean) ** 2 for v in values) / len(values)


def classify_outcome(net_pnl: float, band: float = BREAKEVEN_BAND) -> str:
    if net_pnl > band:
        return "win"
    if net_pnl < -band:
        return "loss"
    return "breakeven"


def accuracy_score(
    average_r: float,
    positive_r_percentage: float,
    variance: float,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
) -> float:
    span = weights.avg_r_ceiling - weights.avg_r_floor
    avg_r_score = _clamp(
        (average_r - weights.avg_r_floor) / span * weights.avg_r_points,
        0.0, weights.avg_r_points,
    )

    positive_r_score = _clamp(
        positive_r_percentage / 100 * weights.positive_r_points,
        0.0, weights.positive_r_points,
    )

    variance_penalty = _clamp(
        (variance - weights.variance_allowance) * weights.variance_penalty_per_unit,
        0.0, weights.consistency_points,
    )
    consistency_score = weights.consistency_points - variance_penalty

    return _clamp(avg_r_score + positive_r_score + consistency_score, 0.0, 100.0)


def summarize_r_multiples(
    values: List[float],
    min_sample: int = MIN_SAMPLE_SIZE,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
) -> RStatistics:
    """
    Aggregate R-multiples. accuracy_score stays None until at least
    min_sample values exist.
    """
    count = len(values)
    total_r = sum(values)
    average_r = total_r / count if count else 0.0
    positive_pct = (sum(1 for r in values if r > 0) / count) * 100 if count else 0.0
    variance = r_variance(values)

    score: Optional[float] = None
    if count >= min_sample:
        score = accuracy_score(average_r, positive_pct, variance, weights)

    return RStatistics(
        count=count,
        average_r=average_r,
        total_r=total_r,
        positive_r_percentage=positive_pct,
        r_variance=variance,
        accuracy_score=score,
    )
