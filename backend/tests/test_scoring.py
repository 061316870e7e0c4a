import pytest
from dailychallenge.schemas.submission import TestResult
from dailychallenge.services.scoring import normalized_weights, rating_for, score


def _results(passed: list[bool], time_ms: float = 0, memory_mb: float = 0) -> list[TestResult]:
    return [
        TestResult(test_case_index=i, input="x", expected_output="y", passed=p,
                   execution_time=time_ms, memory_usage=memory_mb)
        for i, p in enumerate(passed)
    ]


def test_four_of_five_default_weights():
    res = score(_results([True, True, True, True, False], time_ms=200, memory_mb=20), None)
    b = res.breakdown
    assert b["correctness"] == pytest.approx(80)
    assert b["speed"] == pytest.approx(40)
    assert b["efficiency"] == pytest.approx(24)
    assert b["consistency_bonus"] == 0
    assert res.total == 61
    assert res.rating == "Competent"

def test_all_passed_gets_consistency_bonus_outside_weights():
    # 100*0.6 + 50*0.2 + 30*0.2 + 20*0.1
    res = score(_results([True] * 3), {})
    assert res.breakdown["consistency_bonus"] == 20
    assert res.breakdown["weighted_score"] == pytest.approx(78)
    assert res.total == 78
    assert res.rating == "Intermediate"

def test_correctness_only_clamps_to_100():
    res = score(_results([True] * 4), {"correctness": 1, "speed": 0, "efficiency": 0})
    assert res.breakdown["weighted_score"] == pytest.approx(102)
    assert res.total == 100
    assert res.rating == "Expert"

def test_nothing_passed_scores_zero():
    res = score(_results([False, False], time_ms=1, memory_mb=1), None)
    assert res.breakdown["speed"] == 0
    assert res.breakdown["efficiency"] == 0
    assert res.total == 0
    assert res.rating == "Beginner"

def test_no_results_scores_zero():
    res = score([], None)
    assert res.total == 0
    assert res.breakdown["total_tests"] == 0

def test_slow_and_heavy_runs_floor_at_zero():
    res = score(_results([True, True], time_ms=5000, memory_mb=500), None)
    assert res.breakdown["speed"] == 0
    assert res.breakdown["efficiency"] == 0
    # 100*0.6 + 2
    assert res.total == 62

@pytest.mark.parametrize("criteria", [
    {"correctness": 3, "speed": 1, "efficiency": 1},
    {"correctness": {"weight": 0.9}, "speed": {"weight": 0.05}, "efficiency": {"weight": 0.05}},
    {"speed": 0.5},
    {"correctness": 0, "speed": 0, "efficiency": 0},
])
def test_weights_always_sum_to_one(criteria):
    w = normalized_weights(criteria)
    assert sum(w.values()) == pytest.approx(1.0)
    assert set(w) == {"correctness", "speed", "efficiency"}

def test_weights_rescaled_proportionally():
    w = normalized_weights({"correctness": 3, "speed": 1, "efficiency": 1})
    assert w["correctness"] == pytest.approx(0.6)
    assert w["speed"] == pytest.approx(0.2)

def test_missing_factor_uses_default_weight():
    w = normalized_weights({"speed": 0.4})
    # 0.6 / 0.4 / 0.2 rescaled by 1.2
    assert w["correctness"] == pytest.approx(0.5)
    assert w["speed"] == pytest.approx(1 / 3)

def test_all_zero_weights_fall_back_to_defaults():
    assert normalized_weights({"correctness": 0, "speed": 0, "efficiency": 0}) == pytest.approx(
        {"correctness": 0.6, "speed": 0.2, "efficiency": 0.2}
    )

@pytest.mark.parametrize("passed,time_ms,memory_mb", [
    ([True], 0, 0),
    ([True, False, True], 999, 99),
    ([False] * 10, 0, 0),
    ([True] * 10, 10_000, 10_000),
    ([True, False], 1, 0),
])
def test_total_in_range(passed, time_ms, memory_mb):
    for criteria in (None, {"correctness": 1, "speed": 0, "efficiency": 0}, {"speed": 5}):
        res = score(_results(passed, time_ms, memory_mb), criteria)
        assert 0 <= res.total <= 100
        assert res.rating == rating_for(res.total)

@pytest.mark.parametrize("total,rating", [
    (100, "Expert"), (90, "Expert"), (89, "Advanced"), (80, "Advanced"),
    (79, "Intermediate"), (70, "Intermediate"), (69, "Competent"), (60, "Competent"),
    (59, "Beginner"), (0, "Beginner"),
])
def test_rating_tiers(total, rating):
    assert rating_for(total) == rating

def test_half_rounds_up():
    # 1 of 8 passed under correctness-only weights: 12.5 + 0 bonus
    res = score(_results([True] + [False] * 7), {"correctness": 1, "speed": 0, "efficiency": 0})
    assert res.breakdown["weighted_score"] == pytest.approx(12.5)
    assert res.total == 13
