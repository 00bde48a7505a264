"""Weak question identification and review drill logic."""
from stade.db import get_connection
from stade.models import QuestionSet, Session


def get_weak_questions(db_path: str, limit: int | None = None) -> list[dict]:
    """Weak questions across all sessions, most-missed first."""
    conn = get_connection(db_path)
    rows = conn.execute(
        """SELECT w.question, w.type, w.wrong_count, w.last_seen,
            s.id as session_id, s.title as session_title
        FROM weak_questions w
        JOIN sessions s ON w.session_id = s.id
        ORDER BY w.wrong_count DESC, w.last_seen DESC
        LIMIT ?""",
        (limit if limit is not None else -1,),
    ).fetchall()
    conn.close()
    return [dict(r) for r in rows]


def build_review_set(session: Session) -> QuestionSet:
    """Quiz made of the session's weak questions, in weak-list order.

    Weak questions whose text no longer appears in the session's quiz (it was
    regenerated) cannot be drilled and are left out.
    """
    rank = {w.question: i for i, w in enumerate(session.weak_questions)}
    return QuestionSet(
        title=f"Review: {session.questions.title}",
        difficulty=session.questions.difficulty,
        multiple_choice=sorted(
            (q for q in session.questions.multiple_choice if q.question in rank),
            key=lambda q: rank[q.question],
        ),
        short_answer=sorted(
            (q for q in session.questions.short_answer if q.question in rank),
            key=lambda q: rank[q.question],
        ),
    )
