"""Database initialization and connection management."""
import os
import sqlite3
from pathlib import Path

DEFAULT_DB_PATH = os.environ.get(
    "SURGERY_LAB_DB", str(Path.home() / ".surgery_lab" / "lab.db")
)

SCHEMA = """
CREATE TABLE IF NOT EXISTS procedures (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    category TEXT,
    difficulty TEXT,
    species TEXT,
    definition TEXT NOT NULL,
    source TEXT DEFAULT 'seeded',
    imported_at TEXT
);

CREATE TABLE IF NOT EXISTS procedure_sessions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    procedure_id TEXT NOT NULL REFERENCES procedures(id),
    started_at TEXT NOT NULL,
    completed_at TEXT,
    steps_completed INTEGER DEFAULT 0,
    total_time REAL DEFAULT 0,
    overall_score INTEGER,
    grade TEXT,
    metrics TEXT
);

CREATE TABLE IF NOT EXISTS decision_records (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id INTEGER NOT NULL REFERENCES procedure_sessions(id),
    step_index INTEGER NOT NULL,
    option_index INTEGER NOT NULL,
    is_correct INTEGER NOT NULL,
    time_spent REAL NOT NULL,
    performance_impact TEXT,
    deltas TEXT,
    metrics TEXT,
    recorded_at TEXT
);

CREATE TABLE IF NOT EXISTS complications (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id INTEGER NOT NULL REFERENCES procedure_sessions(id),
    decision_id INTEGER REFERENCES decision_records(id),
    type TEXT NOT NULL,
    description TEXT,
    intervention_required INTEGER NOT NULL,
    recovery_time INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS user_settings (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    key TEXT NOT NULL UNIQUE,
    value TEXT
);
"""


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Return a SQLite connection with row factory and foreign keys enabled."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def init_db(db_path: str = DEFAULT_DB_PATH) -> None:
    """Initialize the database, creating all tables if they don't exist."""
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = get_connection(db_path)
    conn.executescript(SCHEMA)
    conn.commit()
    conn.close()
