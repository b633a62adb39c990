import pytest
from tradebook.services.scoring import (
    ScoringWeights,
    accuracy_score,
    classify_outcome,
    r_multiple,
    r_variance,
    summarize_r_multiples,
)


def test_r_multiple():
    assert r_multiple(50.0, 25.0) == 2.0
    assert r_multiple(-25.0, 25.0) == -1.0
    assert r_multiple(10.0, 0.0) == 0.0


def test_r_variance_is_population_variance():
    assert r_variance([]) == 0.0
    assert r_variance([1.5]) == 0.0
    assert r_variance([1.0, 3.0]) == 1.0
    assert r_variance([2.0, 2.0, 2.0]) == 0.0


@pytest.mark.parametrize("pnl,expected", [
    (0.02, "win"), (-0.02, "loss"), (0.0, "breakeven"), (0.01, "breakeven"), (-0.005, "breakeven"),
])
def test_classify_outcome(pnl, expected):
    assert classify_outcome(pnl) == expected


def test_accuracy_score_components():
    # (1 + 1) * 10 = 20, 50% * 0.4 = 20, variance 1 -> no penalty = 20
    assert accuracy_score(1.0, 50.0, 1.0) == pytest.approx(60.0)
    # avg R capped at 40 points, variance 2 -> 5 point penalty
    assert accuracy_score(5.0, 100.0, 2.0) == pytest.approx(95.0)
    assert accuracy_score(5.0, 100.0, 0.0) == pytest.approx(100.0)
    assert accuracy_score(-3.0, 0.0, 10.0) == 0.0


def test_accuracy_score_custom_weights():
    weights = ScoringWeights(avg_r_floor=0.0, avg_r_ceiling=2.0, variance_penalty_per_unit=10.0)
    # avg 1 -> 20 points, 50% -> 20 points, variance 1.5 -> 5 point penalty
    assert accuracy_score(1.0, 50.0, 1.5, weights) == pytest.approx(55.0)


def test_summary_below_sample_gate_has_no_score():
    stats = summarize_r_multiples([1.0, -1.0, 2.0] * 9 + [0.5, 0.5])   # 29 values
    assert stats.count == 29
    assert stats.accuracy_score is None


def test_summary_at_sample_gate():
    values = [1.0, -1.0, 2.0] * 10
    stats = summarize_r_multiples(values)
    assert stats.count == 30
    assert stats.total_r == pytest.approx(20.0)
    assert stats.average_r == pytest.approx(20.0 / 30)
    assert stats.positive_r_percentage == pytest.approx(200 / 3)
    assert stats.r_variance == pytest.approx(r_variance(values))
    assert stats.accuracy_score is not None
    assert 0.0 <= stats.accuracy_score <= 100.0


def test_summary_custom_gate_and_empty():
    assert summarize_r_multiples([2.0], min_sample=1).accuracy_score is not None
    empty = summarize_r_multiples([])
    assert empty.count == 0
    assert empty.average_r == 0.0
    assert empty.positive_r_percentage == 0.0
    assert empty.accuracy_score is None
