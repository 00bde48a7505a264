# tests/test_settings.py
from stade.settings import (
    get_difficulty, get_question_count, get_quiz_time_limit, get_setting, set_setting,
)


def test_defaults(db):
    assert get_question_count(db) == 7
    assert get_difficulty(db) == "mixed"
    assert get_quiz_time_limit(db) is None


def test_unknown_key_uses_given_default(db):
    assert get_setting(db, "theme") is None
    assert get_setting(db, "theme", "dark") == "dark"


def test_set_and_overwrite(db):
    set_setting(db, "difficulty", "hard")
    set_setting(db, "difficulty", "easy")
    assert get_difficulty(db) == "easy"


def test_quiz_time_limit(db):
    set_setting(db, "quiz_time_limit", "300")
    assert get_quiz_time_limit(db) == 300
