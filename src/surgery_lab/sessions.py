"""Training session persistence and user settings."""
import json
from datetime import datetime

from surgery_lab.db import get_connection
from surgery_lab.models import DecisionRecord


def get_setting(db_path: str, key: str, default: str = None) -> str | None:
    conn = get_connection(db_path)
    row = conn.execute("SELECT value FROM user_settings WHERE key = ?", (key,)).fetchone()
    conn.close()
    return row["value"] if row else default


def set_setting(db_path: str, key: str, value: str) -> None:
    conn = get_connection(db_path)
    conn.execute(
        "INSERT INTO user_settings (key, value) VALUES (?, ?) ON CONFLICT(key) DO UPDATE SET value=?",
        (key, value, value),
    )
    conn.commit()
    conn.close()


def get_user_id(db_path: str) -> str:
    return get_setting(db_path, "user_id", "local")


def is_strict_timing(db_path: str) -> bool:
    return get_setting(db_path, "strict_timing", "0") == "1"


def start_session(db_path: str, user_id: str, procedure_id: str) -> int:
    conn = get_connection(db_path)
    cursor = conn.execute(
        "INSERT INTO procedure_sessions (user_id, procedure_id, started_at) VALUES (?, ?, ?)",
        (user_id, procedure_id, datetime.now().isoformat()),
    )
    conn.commit()
    session_id = cursor.lastrowid
    conn.close()
    return session_id


def record_decision(db_path: str, session_id: int, record: DecisionRecord) -> int:
    """Persist one scored decision and its complications in a single transaction."""
    conn = get_connection(db_path)
    try:
        with conn:
            cursor = conn.execute(
                """INSERT INTO decision_records
                (session_id, step_index, option_index, is_correct, time_spent,
                 performance_impact, deltas, metrics, recorded_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    session_id, record.step_index, record.option_index, int(record.is_correct),
                    record.time_spent, json.dumps(record.performance_impact),
                    json.dumps(record.deltas), json.dumps(record.metrics),
                    datetime.now().isoformat(),
                ),
            )
            decision_id = cursor.lastrowid
            for comp in record.complications:
                conn.execute(
                    """INSERT INTO complications
                    (session_id, decision_id, type, description, intervention_required, recovery_time)
                    VALUES (?, ?, ?, ?, ?, ?)""",
                    (session_id, decision_id, comp.type, comp.description,
                     int(comp.intervention_required), comp.recovery_time),
                )
            conn.execute(
                """UPDATE procedure_sessions
                SET steps_completed = MAX(steps_completed, ?), total_time = total_time + ?
                WHERE id = ?""",
                (record.step_index + 1, record.time_spent, session_id),
            )
    finally:
        conn.close()
    return decision_id


def complete_session(db_path: str, session_id: int, performance: dict) -> None:
    metrics = {
        k: v for k, v in performance.items()
        if k not in ("overall_score", "grade", "complications", "decision_path")
    }
    conn = get_connection(db_path)
    conn.execute(
        """UPDATE procedure_sessions
        SET completed_at = ?, overall_score = ?, grade = ?, metrics = ?
        WHERE id = ?""",
        (datetime.now().isoformat(), performance["overall_score"], performance["grade"],
         json.dumps(metrics), session_id),
    )
    conn.commit()
    conn.close()


def get_session(db_path: str, session_id: int) -> dict | None:
    conn = get_connection(db_path)
    row = conn.execute("SELECT * FROM procedure_sessions WHERE id = ?", (session_id,)).fetchone()
    conn.close()
    return dict(row) if row else None


def get_session_decisions(db_path: str, session_id: int) -> list[dict]:
    conn = get_connection(db_path)
    rows = conn.execute(
        "SELECT * FROM decision_records WHERE session_id = ? ORDER BY id", (session_id,)
    ).fetchall()
    conn.close()
    return [dict(r) for r in rows]


def get_session_complications(db_path: str, session_id: int) -> list[dict]:
    conn = get_connection(db_path)
    rows = conn.execute(
        "SELECT * FROM complications WHERE session_id = ? ORDER BY id", (session_id,)
    ).fetchall()
    conn.close()
    return [dict(r) for r in rows]


def get_user_sessions(db_path: str, user_id: str, completed_only: bool = False) -> list[dict]:
    query = """SELECT s.*, p.name as procedure_name
        FROM procedure_sessions s
        LEFT JOIN procedures p ON s.procedure_id = p.id
        WHERE s.user_id = ?"""
    if completed_only:
        query += " AND s.completed_at IS NOT NULL"
    query += " ORDER BY s.started_at, s.id"
    conn = get_connection(db_path)
    rows = conn.execute(query, (user_id,)).fetchall()
    conn.close()
    return [dict(r) for r in rows]
