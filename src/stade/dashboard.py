"""Progress dashboard scoring and statistics."""
from datetime import datetime

from stade.attempts import best_score, previous_score, score_delta
from stade.db import get_connection
from stade.flashcards import count_due
from stade.models import Session


def get_readiness_label(score: float) -> str:
    if score >= 80:
        return "READY"
    elif score >= 65:
        return "LIKELY"
    elif score >= 50:
        return "NEEDS WORK"
    return "NOT READY"


def get_readiness_color(score: float) -> str:
    if score >= 80:
        return "green"
    elif score >= 65:
        return "yellow"
    elif score >= 50:
        return "dark_orange"
    return "red"


def _quiz_score(db_path: str) -> float:
    """Average percentage over every session's most recent attempt."""
    conn = get_connection(db_path)
    row = conn.execute(
        """SELECT AVG(CAST(a.score AS REAL) / a.max) * 100 as avg
        FROM session_attempts a
        WHERE a.max > 0 AND a.position = (
            SELECT MAX(position) FROM session_attempts WHERE session_id = a.session_id
        )"""
    ).fetchone()
    conn.close()
    return row["avg"] or 0.0


def _flashcard_retention(db_path: str) -> float:
    conn = get_connection(db_path)
    row = conn.execute(
        "SELECT COUNT(*) as t, SUM(CASE WHEN rating >= 2 THEN 1 ELSE 0 END) as c FROM flashcard_results"
    ).fetchone()
    conn.close()
    if not row["t"]:
        return 0.0
    return (row["c"] / row["t"]) * 100


def calc_readiness_score(db_path: str) -> float:
    quiz = _quiz_score(db_path)
    flash = _flashcard_retention(db_path)
    # Weighted: quiz 60%, flashcard 40%
    return round(quiz * 0.6 + flash * 0.4, 1)


def get_study_stats(db_path: str, now: datetime | None = None) -> dict:
    conn = get_connection(db_path)
    sessions = conn.execute("SELECT COUNT(*) FROM sessions").fetchone()[0]
    cards = conn.execute("SELECT COUNT(*) FROM card_schedules").fetchone()[0]
    reviews = conn.execute("SELECT COUNT(*) FROM flashcard_results").fetchone()[0]
    quizzes = conn.execute("SELECT COUNT(*) FROM session_attempts").fetchone()[0]
    weak = conn.execute("SELECT COUNT(*) FROM weak_questions").fetchone()[0]
    avg_row = conn.execute(
        "SELECT AVG(CAST(score AS REAL) / max) * 100 as avg FROM session_attempts WHERE max > 0"
    ).fetchone()
    conn.close()
    return {
        "sessions": sessions,
        "cards_tracked": cards,
        "cards_due": count_due(db_path, now),
        "flashcards_reviewed": reviews,
        "quizzes_taken": quizzes,
        "avg_quiz_score": round(avg_row["avg"], 1) if avg_row["avg"] is not None else 0.0,
        "weak_questions": weak,
    }


def session_progress(session: Session) -> dict:
    """Best, latest and previous scores for one session, computed from its history."""
    latest = session.attempts[-1] if session.attempts else None
    return {
        "attempts": len(session.attempts),
        "best": best_score(session.attempts),
        "latest": latest.score if latest else None,
        "max": latest.max if latest else None,
        "previous": previous_score(session.attempts),
        "delta": score_delta(session.attempts),
        "weak": len(session.weak_questions),
    }
