from __future__ import annotations
import math
from typing import Mapping, Sequence

from dailychallenge.schemas.challenge import ScoringCriteria
from dailychallenge.schemas.submission import ScoreResult, TestResult

DEFAULT_WEIGHTS = {"correctness": 0.6, "speed": 0.2, "efficiency": 0.2}

SPEED_MAX = 50
SPEED_BASELINE_MS = 1000
EFFICIENCY_MAX = 30
EFFICIENCY_BASELINE_MB = 100
CONSISTENCY_BONUS = 20
CONSISTENCY_WEIGHT = 0.1

RATING_TIERS = (
    (90, "Expert"),
    (80, "Advanced"),
    (70, "Intermediate"),
    (60, "Competent"),
)


def _clamp(lo: float, hi: float, v: float) -> float:
    return max(lo, min(hi, v))


def _round_half_up(v: float) -> int:
    return int(math.floor(v + 0.5))


def rating_for(total: int) -> str:
    for floor_, name in RATING_TIERS:
        if total >= floor_:
            return name
    return "Beginner"


def normalized_weights(criteria: ScoringCriteria | Mapping | None) -> dict[str, float]:
    """
    Pull correctness/speed/efficiency weights (defaults 0.6/0.2/0.2 for missing factors)
    and rescale them so they sum to exactly 1. All-zero weights fall back to the defaults.
    """
    if criteria is None:
        criteria = ScoringCriteria()
    elif not isinstance(criteria, ScoringCriteria):
        criteria = ScoringCriteria.model_validate(dict(criteria))

    raw: dict[str, float] = {}
    for name, default in DEFAULT_WEIGHTS.items():
        factor = getattr(criteria, name)
        raw[name] = max(0.0, float(factor.weight)) if factor is not None else default

    total = sum(raw.values())
    if total <= 0:
        raw, total = dict(DEFAULT_WEIGHTS), sum(DEFAULT_WEIGHTS.values())
    return {name: w / total for name, w in raw.items()}


def score(test_results: Sequence[TestResult | Mapping], criteria: ScoringCriteria | Mapping | None) -> ScoreResult:
    """
    Pure scoring of one submission's test outcomes.

    weighted = correctness*w_c + speed*w_s + efficiency*w_e + consistency_bonus*0.1
    total    = round(min(100, weighted))

    The consistency bonus sits outside the renormalized weights, so a perfect run can
    exceed 100 before the clamp. Speed/efficiency are only credited when at least one
    test passed.
    """
    results = [r if isinstance(r, TestResult) else TestResult.model_validate(r) for r in test_results]
    weights = normalized_weights(criteria)

    total_count = len(results)
    passed_count = sum(1 for r in results if r.passed)

    if total_count:
        avg_time = sum(r.execution_time for r in results) / total_count
        avg_memory = sum(r.memory_usage for r in results) / total_count
        correctness = 100 * passed_count / total_count
    else:
        avg_time = avg_memory = 0.0
        correctness = 0.0

    if passed_count:
        speed = _clamp(0, SPEED_MAX, SPEED_MAX * (1 - avg_time / SPEED_BASELINE_MS))
        efficiency = _clamp(0, EFFICIENCY_MAX, EFFICIENCY_MAX * (1 - avg_memory / EFFICIENCY_BASELINE_MB))
    else:
        speed = efficiency = 0.0

    all_passed = total_count > 0 and passed_count == total_count
    consistency_bonus = CONSISTENCY_BONUS if all_passed else 0

    weighted = (
        correctness * weights["correctness"]
        + speed * weights["speed"]
        + efficiency * weights["efficiency"]
        + consistency_bonus * CONSISTENCY_WEIGHT
    )
    total = _round_half_up(_clamp(0, 100, weighted))

    breakdown = {
        "correctness": correctness,
        "speed": speed,
        "efficiency": efficiency,
        "consistency_bonus": consistency_bonus,
        "weights": weights,
        "weighted_score": weighted,
        "passed": passed_count,
        "total_tests": total_count,
        "avg_execution_time_ms": avg_time,
        "avg_memory_mb": avg_memory,
    }
    return ScoreResult(total=total, rating=rating_for(total), breakdown=breakdown)
