"""Dashboard statistics over persisted training sessions."""
import logging

from surgery_lab.cache import BoundedCache
from surgery_lab.db import get_connection
from surgery_lab.scoring import grade_for
from surgery_lab.sessions import get_user_sessions
from surgery_lab.stats import summarize_progress

logger = logging.getLogger(__name__)

_MISSING = object()


def dashboard_key(user_id: str) -> str:
    return f"dashboard_data_{user_id}"


def _decision_accuracy(db_path: str, user_id: str) -> float:
    conn = get_connection(db_path)
    row = conn.execute(
        """SELECT COUNT(*) as t, SUM(d.is_correct) as c
        FROM decision_records d JOIN procedure_sessions s ON d.session_id = s.id
        WHERE s.user_id = ?""",
        (user_id,),
    ).fetchone()
    conn.close()
    if not row["t"]:
        return 0.0
    return round((row["c"] / row["t"]) * 100, 1)


def _complication_counts(db_path: str, user_id: str) -> dict:
    conn = get_connection(db_path)
    rows = conn.execute(
        """SELECT c.type, COUNT(*) as n
        FROM complications c JOIN procedure_sessions s ON c.session_id = s.id
        WHERE s.user_id = ?
        GROUP BY c.type ORDER BY c.type""",
        (user_id,),
    ).fetchall()
    conn.close()
    return {r["type"]: r["n"] for r in rows}


def sessions_to_records(sessions: list[dict]) -> list[dict]:
    """Shape persisted sessions as progress records (minutes plus percentage scores)."""
    records = []
    for s in sessions:
        scores = []
        if s.get("completed_at") and s.get("overall_score") is not None:
            scores.append({"score": s["overall_score"], "max_score": 100, "date": s["completed_at"]})
        records.append({"time_spent": (s.get("total_time") or 0) / 60, "scores": scores})
    return records


def compute_dashboard_stats(db_path: str, user_id: str) -> dict:
    sessions = get_user_sessions(db_path, user_id)
    completed = [s for s in sessions if s["completed_at"]]
    stats = summarize_progress(sessions_to_records(sessions), completed_cases=len(completed))
    stats.update({
        "user_id": user_id,
        "sessions_started": len(sessions),
        "decision_accuracy": _decision_accuracy(db_path, user_id),
        "complications": _complication_counts(db_path, user_id),
        "average_grade": grade_for(stats["average_score"]) if completed else None,
    })
    return stats


def get_dashboard_stats(db_path: str, user_id: str, cache: BoundedCache | None = None) -> dict:
    """Dashboard statistics for one user, served from ``cache`` when fresh."""
    key = dashboard_key(user_id)
    if cache is not None:
        cached = cache.get(key, _MISSING)
        if cached is not _MISSING:
            return cached
    stats = compute_dashboard_stats(db_path, user_id)
    if cache is not None:
        cache.set(key, stats)
        logger.debug("Cached dashboard stats for %s", user_id)
    return stats


def invalidate_dashboard(cache: BoundedCache | None, user_id: str) -> None:
    if cache is not None:
        cache.delete(dashboard_key(user_id))
