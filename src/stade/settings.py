"""Persisted user preferences."""
from stade.db import get_connection

DEFAULTS = {
    "question_count": "7",
    "difficulty": "mixed",
    "quiz_time_limit": "0",
}


def get_setting(db_path: str, key: str, default: str = None) -> str | None:
    conn = get_connection(db_path)
    row = conn.execute("SELECT value FROM user_settings WHERE key = ?", (key,)).fetchone()
    conn.close()
    if row:
        return row["value"]
    return default if default is not None else DEFAULTS.get(key)


def set_setting(db_path: str, key: str, value: str) -> None:
    conn = get_connection(db_path)
    conn.execute(
        "INSERT INTO user_settings (key, value) VALUES (?, ?) ON CONFLICT(key) DO UPDATE SET value=?",
        (key, value, value),
    )
    conn.commit()
    conn.close()


def get_question_count(db_path: str) -> int:
    return int(get_setting(db_path, "question_count"))


def get_difficulty(db_path: str) -> str:
    return get_setting(db_path, "difficulty")


def get_quiz_time_limit(db_path: str) -> int | None:
    """Quiz countdown in seconds, or None when the timer is off."""
    seconds = int(get_setting(db_path, "quiz_time_limit"))
    return seconds if seconds > 0 else None
