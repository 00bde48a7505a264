# tests/test_sessions.py
from dataclasses import replace
from datetime import datetime

import pytest

from stade.db import get_connection
from stade.models import AttemptRecord, MCQuestion, QuestionSet, Summary, WeakQuestion
from stade.sessions import (
    MAX_SESSIONS, SessionNotFound, create_session, delete_session, list_sessions,
    load_session, load_shared_session, replace_questions, upsert_session,
)


def make(title):
    return create_session(title, Summary(title=title), QuestionSet(title=title))


def test_create_session_fields(session):
    assert session.id
    assert session.title == "Cell Biology"
    assert session.attempts == []
    assert session.weak_questions == []
    assert len(session.share_token) == 12
    assert session.created_at == datetime.now().date().isoformat()


def test_create_session_ids_are_unique():
    ids = {make("x").id for _ in range(50)}
    assert len(ids) == 50


def test_upsert_and_load_round_trip(db, session):
    session.attempts = [AttemptRecord(date="2026-03-01", score=2, max=3)]
    session.weak_questions = [
        WeakQuestion("Which organelle produces ATP?", "multiple_choice", 2, datetime(2026, 3, 1, 9, 0)),
    ]
    upsert_session(db, session)
    loaded = load_session(db, session.id)
    assert loaded == session


def test_load_missing_session_raises(db):
    with pytest.raises(SessionNotFound):
        load_session(db, "does-not-exist")


def test_list_sessions_most_recent_first(db):
    a, b, c = make("A"), make("B"), make("C")
    for s in (a, b, c):
        upsert_session(db, s)
    assert [s["title"] for s in list_sessions(db)] == ["C", "B", "A"]


def test_reupsert_moves_to_front_without_growing(db):
    a, b, c = make("A"), make("B"), make("C")
    for s in (a, b, c):
        upsert_session(db, s)
    upsert_session(db, replace(a, title="A again"))
    listed = list_sessions(db)
    assert [s["title"] for s in listed] == ["A again", "C", "B"]
    assert len(listed) == 3


def test_session_count_is_capped(db):
    sessions = [make(f"S{i}") for i in range(MAX_SESSIONS + 3)]
    for s in sessions:
        upsert_session(db, s)
    listed = list_sessions(db)
    assert len(listed) == MAX_SESSIONS
    assert listed[-1]["title"] == "S3"
    with pytest.raises(SessionNotFound):
        load_session(db, sessions[0].id)


def test_touching_old_session_keeps_it_alive(db):
    sessions = [make(f"S{i}") for i in range(MAX_SESSIONS)]
    for s in sessions:
        upsert_session(db, s)
    upsert_session(db, sessions[0])
    upsert_session(db, make("newcomer"))
    titles = [s["title"] for s in list_sessions(db)]
    assert "S0" in titles
    assert "S1" not in titles


def test_eviction_removes_history(db):
    first = make("first")
    first.attempts = [AttemptRecord("2026-03-01", 1, 2)]
    first.weak_questions = [WeakQuestion("Q", "short_answer", 1, None)]
    upsert_session(db, first)
    for i in range(MAX_SESSIONS):
        upsert_session(db, make(f"S{i}"))
    conn = get_connection(db)
    assert conn.execute("SELECT COUNT(*) FROM session_attempts").fetchone()[0] == 0
    assert conn.execute("SELECT COUNT(*) FROM weak_questions").fetchone()[0] == 0
    conn.close()


def test_upsert_replaces_history(db, session):
    session.attempts = [AttemptRecord("2026-03-01", 1, 3)]
    upsert_session(db, session)
    session.attempts = session.attempts + [AttemptRecord("2026-03-02", 3, 3)]
    session.weak_questions = []
    upsert_session(db, session)
    loaded = load_session(db, session.id)
    assert [a.score for a in loaded.attempts] == [1, 3]


def test_list_sessions_summary_fields(db, session):
    session.attempts = [AttemptRecord("2026-03-01", 1, 3), AttemptRecord("2026-03-02", 2, 3)]
    session.weak_questions = [WeakQuestion("Q", "multiple_choice", 1, None)]
    upsert_session(db, session)
    [summary] = list_sessions(db)
    assert summary["id"] == session.id
    assert summary["question_count"] == 3
    assert summary["attempt_count"] == 2
    assert summary["best_score"] == 2
    assert summary["best_max"] == 3
    assert summary["weak_count"] == 1


def test_list_sessions_empty(db):
    assert list_sessions(db) == []


def test_delete_session_is_idempotent(db, session):
    upsert_session(db, session)
    delete_session(db, session.id)
    delete_session(db, session.id)
    assert list_sessions(db) == []


def test_load_shared_session(db, session):
    upsert_session(db, session)
    shared = load_shared_session(db, session.share_token)
    assert shared.id == session.id
    with pytest.raises(SessionNotFound):
        load_shared_session(db, "nope")


def test_best_max_comes_from_best_attempt(db, session):
    # the quiz had 5 questions when the best score was set
    session.attempts = [AttemptRecord("2026-03-01", 4, 5), AttemptRecord("2026-03-02", 2, 3)]
    upsert_session(db, session)
    [summary] = list_sessions(db)
    assert summary["best_score"] == 4
    assert summary["best_max"] == 5
    assert summary["question_count"] == 3


def test_best_max_without_attempts(db, session):
    upsert_session(db, session)
    [summary] = list_sessions(db)
    assert summary["best_score"] is None
    assert summary["best_max"] is None


def test_replace_questions_keeps_history(db, session):
    session.attempts = [AttemptRecord("2026-03-01", 1, 3)]
    session.weak_questions = [
        WeakQuestion("Which organelle produces ATP?", "multiple_choice", 2, None),
        WeakQuestion("A question the new quiz dropped", "short_answer", 1, None),
    ]
    upsert_session(db, session)
    new_quiz = QuestionSet(title="Take two", multiple_choice=[
        MCQuestion("Which organelle produces ATP?", ["Mitochondrion", "Nucleus"], "Mitochondrion"),
    ])

    replace_questions(db, session, new_quiz)

    loaded = load_session(db, session.id)
    assert loaded.questions.title == "Take two"
    assert [(a.score, a.max) for a in loaded.attempts] == [(1, 3)]
    assert [(w.question, w.wrong_count) for w in loaded.weak_questions] == [
        ("Which organelle produces ATP?", 2),
        ("A question the new quiz dropped", 1),
    ]
    assert loaded.share_token == session.share_token
