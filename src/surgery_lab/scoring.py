"""Multi-factor performance scoring for surgical decisions."""
import math

from surgery_lab.models import METRIC_NAMES, Option, PerformanceMetrics

DEFAULT_EXPECTED_TIME = 300
METRIC_MIN = 0
METRIC_MAX = 100

WEIGHTS = {
    "decision_making": 0.30,
    "technical_skill": 0.25,
    "time_management": 0.20,
    "tissue_handling": 0.15,
    "safety_score": 0.10,
}

# (max ratio, delta); last bucket catches everything slower
TIME_BUCKETS = ((1.0, 20), (1.5, 15), (2.0, 10), (math.inf, 5))
STRICT_TIME_BUCKETS = ((1.0, 20), (1.5, 10), (2.0, 0), (math.inf, -10))


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def clamp(value: float, low: int = METRIC_MIN, high: int = METRIC_MAX):
    return max(low, min(high, value))


def time_delta(time_spent: float, expected_time: float, strict: bool = False) -> int:
    """Score time management from the ratio of time spent to time expected.

    The default buckets never go negative, so slow work is rewarded less but
    never penalised. ``strict`` switches to buckets that can subtract.
    """
    if not expected_time or expected_time <= 0:
        expected_time = DEFAULT_EXPECTED_TIME
    ratio = max(0.0, time_spent) / expected_time
    buckets = STRICT_TIME_BUCKETS if strict else TIME_BUCKETS
    for limit, delta in buckets:
        if ratio <= limit:
            return delta
    return buckets[-1][1]


def score_decision(
    option: Option,
    time_spent: float,
    expected_time: float = DEFAULT_EXPECTED_TIME,
    strict_timing: bool = False,
) -> dict:
    """Calculate the per-metric deltas for one decision.

    Args:
        option: The chosen option.
        time_spent: Seconds the trainee took on the step.
        expected_time: Seconds the step is expected to take.
        strict_timing: Use the penalising time buckets.

    Returns:
        Dict keyed by metric name with signed integer deltas.
    """
    if option.is_correct:
        decision = 20
    else:
        decision = -10 if option.is_critical else -5

    if option.technique_score is not None:
        technique = option.technique_score
    else:
        technique = 15 if option.is_correct else 5

    if option.safety_score is not None:
        safety = option.safety_score
    elif option.is_correct:
        safety = 15
    else:
        safety = -20 if option.is_critical else -5

    return {
        "technical_skill": technique,
        "decision_making": decision,
        "time_management": time_delta(time_spent, expected_time, strict_timing),
        "tissue_handling": round_half_up((technique + safety) / 2),
        "safety_score": safety,
    }


def apply_deltas(metrics: PerformanceMetrics, deltas: dict) -> PerformanceMetrics:
    """Add deltas onto the running metrics, clamping each into [0, 100]."""
    for name in METRIC_NAMES:
        if name in deltas:
            setattr(metrics, name, clamp(getattr(metrics, name) + deltas[name]))
    return metrics


def overall_score(metrics: PerformanceMetrics) -> int:
    total = sum(getattr(metrics, name) * weight for name, weight in WEIGHTS.items())
    return round_half_up(total)


def grade_for(score: float) -> str:
    if score >= 90:
        return "A"
    elif score >= 80:
        return "B"
    elif score >= 70:
        return "C"
    elif score >= 60:
        return "D"
    return "F"


def grade_color(grade: str) -> str:
    return {
        "A": "green",
        "B": "green",
        "C": "yellow",
        "D": "dark_orange",
    }.get(grade, "red")
