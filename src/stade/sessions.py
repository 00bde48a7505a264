"""Session persistence: summary, quiz, attempt history and weak list under one id."""
import json
import logging
import secrets
import uuid
from dataclasses import asdict
from datetime import date, datetime

from stade.db import get_connection
from stade.models import (
    AttemptRecord, QuestionSet, Session, Summary, WeakQuestion,
    question_set_from_dict, summary_from_dict,
)

logger = logging.getLogger(__name__)

MAX_SESSIONS = 20


class SessionNotFound(LookupError):
    """Raised when a session id or share token has no stored session."""


def create_session(
    title: str, summary: Summary, questions: QuestionSet, source_text: str = "",
) -> Session:
    """Build a new, not yet persisted, session."""
    return Session(
        id=uuid.uuid1().hex,
        title=title,
        created_at=date.today().isoformat(),
        summary=summary,
        questions=questions,
        share_token=secrets.token_urlsafe(9),
        source_text=source_text,
    )


def upsert_session(db_path: str, session: Session) -> None:
    """Save the session and make it the most recently touched one.

    Only the 20 most recently touched sessions are kept; older ones are
    deleted along with their attempts and weak questions.
    """
    conn = get_connection(db_path)
    touched = conn.execute("SELECT COALESCE(MAX(touched), 0) + 1 FROM sessions").fetchone()[0]
    conn.execute(
        """INSERT INTO sessions (id, title, created_at, touched, share_token, summary, questions, source_text)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(id) DO UPDATE SET
            title=excluded.title, touched=excluded.touched, share_token=excluded.share_token,
            summary=excluded.summary, questions=excluded.questions, source_text=excluded.source_text""",
        (
            session.id, session.title, session.created_at, touched, session.share_token,
            json.dumps(asdict(session.summary)), json.dumps(asdict(session.questions)),
            session.source_text,
        ),
    )
    conn.execute("DELETE FROM session_attempts WHERE session_id = ?", (session.id,))
    conn.executemany(
        "INSERT INTO session_attempts (session_id, position, date, score, max) VALUES (?, ?, ?, ?, ?)",
        [(session.id, i, a.date, a.score, a.max) for i, a in enumerate(session.attempts)],
    )
    conn.execute("DELETE FROM weak_questions WHERE session_id = ?", (session.id,))
    conn.executemany(
        """INSERT INTO weak_questions (session_id, position, question, type, wrong_count, last_seen)
        VALUES (?, ?, ?, ?, ?, ?)""",
        [
            (session.id, i, w.question, w.type, w.wrong_count,
             w.last_seen.isoformat() if w.last_seen else None)
            for i, w in enumerate(session.weak_questions)
        ],
    )
    evicted = conn.execute(
        "DELETE FROM sessions WHERE id NOT IN (SELECT id FROM sessions ORDER BY touched DESC LIMIT ?)",
        (MAX_SESSIONS,),
    ).rowcount
    conn.commit()
    conn.close()
    if evicted:
        logger.info("Evicted %d least recently used session(s)", evicted)


def _load(conn, row) -> Session:
    attempts = conn.execute(
        "SELECT * FROM session_attempts WHERE session_id = ? ORDER BY position", (row["id"],)
    ).fetchall()
    weak = conn.execute(
        "SELECT * FROM weak_questions WHERE session_id = ? ORDER BY position", (row["id"],)
    ).fetchall()
    return Session(
        id=row["id"],
        title=row["title"],
        created_at=row["created_at"],
        summary=summary_from_dict(json.loads(row["summary"])),
        questions=question_set_from_dict(json.loads(row["questions"])),
        attempts=[AttemptRecord(date=a["date"], score=a["score"], max=a["max"]) for a in attempts],
        weak_questions=[
            WeakQuestion(
                question=w["question"],
                type=w["type"],
                wrong_count=w["wrong_count"],
                last_seen=datetime.fromisoformat(w["last_seen"]) if w["last_seen"] else None,
            )
            for w in weak
        ],
        share_token=row["share_token"],
        source_text=row["source_text"] or "",
    )


def load_session(db_path: str, session_id: str) -> Session:
    conn = get_connection(db_path)
    row = conn.execute("SELECT * FROM sessions WHERE id = ?", (session_id,)).fetchone()
    if row is None:
        conn.close()
        raise SessionNotFound(session_id)
    session = _load(conn, row)
    conn.close()
    return session


def load_shared_session(db_path: str, share_token: str) -> Session:
    """Look a session up by its share token, for read-only viewing."""
    conn = get_connection(db_path)
    row = conn.execute("SELECT * FROM sessions WHERE share_token = ?", (share_token,)).fetchone()
    if row is None:
        conn.close()
        raise SessionNotFound(share_token)
    session = _load(conn, row)
    conn.close()
    return session


def list_sessions(db_path: str) -> list[dict]:
    """Session summaries, most recently touched first."""
    conn = get_connection(db_path)
    rows = conn.execute(
        """SELECT s.id, s.title, s.created_at, s.share_token, s.questions,
            (SELECT COUNT(*) FROM session_attempts a WHERE a.session_id = s.id) as attempt_count,
            (SELECT MAX(a.score) FROM session_attempts a WHERE a.session_id = s.id) as best_score,
            (SELECT a.max FROM session_attempts a WHERE a.session_id = s.id
                ORDER BY a.score DESC, a.position DESC LIMIT 1) as best_max,
            (SELECT COUNT(*) FROM weak_questions w WHERE w.session_id = s.id) as weak_count
        FROM sessions s
        ORDER BY s.touched DESC"""
    ).fetchall()
    conn.close()
    results = []
    for r in rows:
        questions = json.loads(r["questions"])
        results.append({
            "id": r["id"],
            "title": r["title"],
            "created_at": r["created_at"],
            "share_token": r["share_token"],
            "question_count": len(questions.get("multiple_choice", [])) + len(questions.get("short_answer", [])),
            "attempt_count": r["attempt_count"],
            "best_score": r["best_score"],
            "best_max": r["best_max"],
            "weak_count": r["weak_count"],
        })
    return results


def delete_session(db_path: str, session_id: str) -> None:
    """Remove a session; deleting an unknown id is not an error."""
    conn = get_connection(db_path)
    conn.execute("DELETE FROM sessions WHERE id = ?", (session_id,))
    conn.commit()
    conn.close()


def replace_questions(db_path: str, session: Session, questions: QuestionSet) -> Session:
    """Swap in a newly generated quiz, keeping attempt history and weak questions.

    Weak entries are matched by question text, so they only apply to the
    new quiz where a question was generated with the same wording.
    """
    session.questions = questions
    upsert_session(db_path, session)
    logger.info("Replaced quiz for session %s (%d weak question(s) kept)",
                session.id, len(session.weak_questions))
    return session
