"""Database initialization and connection management."""
import os
import sqlite3
from pathlib import Path

DEFAULT_DB_PATH = str(Path.home() / ".stade" / "stade.db")

SCHEMA = """
CREATE TABLE IF NOT EXISTS sessions (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    created_at TEXT NOT NULL,
    touched INTEGER NOT NULL,
    share_token TEXT UNIQUE,
    summary TEXT NOT NULL,
    questions TEXT NOT NULL,
    source_text TEXT
);

CREATE TABLE IF NOT EXISTS session_attempts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id TEXT NOT NULL REFERENCES sessions(id) ON DELETE CASCADE,
    position INTEGER NOT NULL,
    date TEXT NOT NULL,
    score INTEGER NOT NULL,
    max INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS weak_questions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id TEXT NOT NULL REFERENCES sessions(id) ON DELETE CASCADE,
    position INTEGER NOT NULL,
    question TEXT NOT NULL,
    type TEXT NOT NULL,
    wrong_count INTEGER NOT NULL DEFAULT 1,
    last_seen TEXT,
    UNIQUE(session_id, question)
);

CREATE TABLE IF NOT EXISTS card_schedules (
    card_key TEXT PRIMARY KEY,
    term TEXT NOT NULL,
    interval INTEGER DEFAULT 0,
    ease_factor REAL DEFAULT 2.5,
    repetitions INTEGER DEFAULT 0,
    due_date TEXT
);

CREATE TABLE IF NOT EXISTS flashcard_results (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    card_key TEXT NOT NULL REFERENCES card_schedules(card_key),
    rating INTEGER NOT NULL,
    reviewed_at TEXT
);

CREATE TABLE IF NOT EXISTS user_settings (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    key TEXT NOT NULL UNIQUE,
    value TEXT
);
"""


def default_db_path() -> str:
    """Database location, overridable with STADE_DB_PATH."""
    return os.getenv("STADE_DB_PATH", DEFAULT_DB_PATH)


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
