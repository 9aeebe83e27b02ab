"""Progress statistics and trend detection for the dashboard."""
import math
from datetime import datetime

from surgery_lab.scoring import round_half_up

MAX_MINUTES_PER_ITEM = 600
TREND_WINDOW = 10


def _parse_minutes(value) -> float | None:
    try:
        minutes = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(minutes) or minutes < 0:
        return None
    return min(minutes, MAX_MINUTES_PER_ITEM)


def _timestamp(value) -> float | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.timestamp()
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return datetime.fromisoformat(str(value)).timestamp()
    except ValueError:
        return None


def normalize_score(score: dict) -> float | None:
    """Score as a percentage, or None if it cannot be normalized."""
    value = score.get("score")
    max_score = score.get("max_score") or 0
    if value is None or max_score <= 0:
        return None
    return max(0.0, min(100.0, value * 100 / max_score))


def trend_label(improvement: float) -> str:
    if improvement > 0:
        return "positive"
    elif improvement < 0:
        return "negative"
    return "neutral"


def _mean(values: list[float]) -> float:
    return sum(values) / len(values)


def summarize_progress(records: list[dict], completed_cases: int = 0) -> dict:
    """Aggregate study time and scores from progress records.

    Each record has ``time_spent`` in minutes and a ``scores`` list of
    ``{"score", "max_score", "date"}``. Only dated scores feed the trend.
    """
    total_minutes = 0.0
    all_scores = []
    dated = []
    for record in records or []:
        if not isinstance(record, dict):
            continue
        minutes = _parse_minutes(record.get("time_spent"))
        if minutes is not None:
            total_minutes += minutes
        for score in record.get("scores") or []:
            pct = normalize_score(score)
            if pct is None:
                continue
            all_scores.append(pct)
            ts = _timestamp(score.get("date"))
            if ts is not None:
                dated.append((ts, pct))

    average = round_half_up(_mean(all_scores)) if all_scores else 0
    recent = [pct for _, pct in sorted(dated, key=lambda item: item[0])[-TREND_WINDOW:]]

    improvement = 0
    if len(recent) >= 3:
        third = math.ceil(len(recent) / 3)
        improvement = round_half_up(_mean(recent[-third:]) - _mean(recent[:third]))

    consistency = 0
    if len(recent) >= 5:
        variance = sum((pct - average) ** 2 for pct in recent) / len(recent)
        consistency = round_half_up(100 - math.sqrt(variance))

    efficiency = 0
    if total_minutes > 0 and average > 0:
        efficiency = round_half_up(average / (total_minutes / 60))

    return {
        "total_study_minutes": round_half_up(total_minutes),
        "total_study_hours": round_half_up(total_minutes / 60),
        "completed_cases": completed_cases,
        "average_score": average,
        "improvement": improvement,
        "consistency": consistency,
        "efficiency": efficiency,
        "trend": trend_label(improvement),
    }
