# tests/test_quiz.py
import itertools
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from copy import deepcopy
from unittest.mock import patch

from stade.models import GradeResult, QuestionSet
from stade.quiz import MCState, QuizRun, SAState, build_question_list
from stade.sessions import load_session, upsert_session

MC1 = "Which organelle produces ATP?"
MC2 = "Where are proteins assembled?"
SA1 = "Why is the cell membrane called selectively permeable?"


def correct_grader(question, model_answer, user_answer):
    return GradeResult(score=5, is_correct=True, feedback="Spot on.")


def wrong_grader(question, model_answer, user_answer):
    return GradeResult(score=1, is_correct=False, feedback="Missed the point.")


def broken_grader(question, model_answer, user_answer):
    raise RuntimeError("service unavailable")


class ManualExecutor:
    """Holds submitted work until the test decides to run it."""

    def __init__(self):
        self.pending = []

    def submit(self, fn, *args):
        future = Future()
        self.pending.append((future, fn, args))
        return future

    def run(self, index):
        future, fn, args = self.pending[index]
        future.set_result(fn(*args))


def test_build_question_list_orders_mc_first(question_set):
    questions = build_question_list(question_set)
    assert [q.question for q in questions] == [MC1, MC2, SA1]


def test_initial_states(db, session):
    run = QuizRun(db, session, grader=correct_grader)
    assert run.question_count == 3
    assert isinstance(run.states[0], MCState)
    assert isinstance(run.states[2], SAState)
    assert not run.is_done()


def test_two_wrong_mc_one_right_sa(db, session):
    run = QuizRun(db, session, grader=correct_grader)
    run.select_option(0, "Nucleus")
    run.select_option(1, "Lysosome")
    run.submit_answer(2, "Some things pass, others don't.")
    assert run.finished
    assert run.score() == (1, 3)
    assert [(w.question, w.wrong_count) for w in session.weak_questions] == [(MC1, 1), (MC2, 1)]
    assert [(a.score, a.max) for a in session.attempts] == [(1, 3)]

    stored = load_session(db, session.id)
    assert [(w.question, w.wrong_count) for w in stored.weak_questions] == [(MC1, 1), (MC2, 1)]
    assert [(a.score, a.max) for a in stored.attempts] == [(1, 3)]


def test_select_option_is_write_once(db, session):
    run = QuizRun(db, session, grader=correct_grader)
    assert run.select_option(0, "Nucleus") is True
    assert run.select_option(0, "Mitochondrion") is False
    assert run.states[0].selected == "Nucleus"
    assert not run.is_correct(0)


def test_select_option_on_short_answer_is_ignored(db, session):
    run = QuizRun(db, session, grader=correct_grader)
    assert run.select_option(2, "anything") is False
    assert run.states[2] == SAState()


def test_blank_short_answer_is_ignored(db, session):
    calls = []
    run = QuizRun(db, session, grader=lambda *a: calls.append(a) or correct_grader(*a))
    run.submit_answer(2, "   ")
    assert run.states[2] == SAState()
    assert calls == []


def test_second_submit_is_ignored(db, session):
    calls = []

    def grader(*args):
        calls.append(args)
        return wrong_grader(*args)

    run = QuizRun(db, session, grader=grader)
    run.submit_answer(2, "first")
    run.submit_answer(2, "second")
    assert len(calls) == 1
    assert run.states[2].user_answer == "first"


def test_grading_failure_scores_zero_and_finishes(db, session):
    run = QuizRun(db, session, grader=broken_grader)
    run.select_option(0, "Mitochondrion")
    run.select_option(1, "Ribosome")
    run.submit_answer(2, "It filters things.")
    result = run.states[2].result
    assert result.score == 0
    assert result.is_correct is False
    assert "failed" in result.feedback.lower()
    assert run.finished
    assert session.attempts[-1].score == 2


def test_grading_in_flight_until_response(db, session):
    executor = ManualExecutor()
    run = QuizRun(db, session, grader=correct_grader, executor=executor)
    future = run.submit_answer(2, "Some pass.")
    assert future is not None
    assert run.states[2].grading is True
    assert run.states[2].result is None
    executor.run(0)
    assert run.states[2].grading is False
    assert run.states[2].result.is_correct


def test_finalize_runs_once_for_every_arrival_order(db, question_set, session):
    template = deepcopy(session)
    results = []
    steps = ["mc0", "mc1", "sa2"]
    for order in itertools.permutations(steps):
        s = deepcopy(template)
        finished = []
        executor = ManualExecutor()
        run = QuizRun(db, s, grader=correct_grader, executor=executor, on_finish=finished.append)
        run.submit_answer(2, "Some pass, some don't.")
        for step in order:
            if step == "mc0":
                run.select_option(0, "Nucleus")
            elif step == "mc1":
                run.select_option(1, "Ribosome")
            else:
                executor.run(0)
        # Late duplicate events change nothing
        run.select_option(0, "Mitochondrion")
        run._set_result(2, GradeResult(score=0, is_correct=False))
        assert finished == [run]
        results.append((
            [(w.question, w.wrong_count) for w in s.weak_questions],
            [(a.score, a.max) for a in s.attempts],
        ))
    assert all(r == results[0] for r in results)
    assert results[0] == ([(MC1, 1)], [(2, 3)])


def test_concurrent_grading_finalizes_once(db, session):
    session.questions = QuestionSet(
        title="Short answers",
        short_answer=[deepcopy(session.questions.short_answer[0]) for _ in range(6)],
    )
    for i, q in enumerate(session.questions.short_answer):
        q.question = f"Question {i}"
    barrier = threading.Barrier(3)

    def slow_grader(question, model_answer, user_answer):
        barrier.wait(timeout=5)
        return GradeResult(score=4, is_correct=True)

    finished = []
    with ThreadPoolExecutor(max_workers=3) as executor:
        run = QuizRun(db, session, grader=slow_grader, executor=executor, on_finish=finished.append)
        futures = [run.submit_answer(i, "answer") for i in range(6)]
    assert all(f.done() for f in futures)
    assert finished == [run]
    assert session.attempts[-1].score == 6
    assert session.weak_questions == []


def test_correct_answers_clear_weak_questions_on_rerun(db, session):
    first = QuizRun(db, session, grader=wrong_grader)
    first.select_option(0, "Nucleus")
    first.select_option(1, "Vacuole")
    first.submit_answer(2, "No idea")
    assert len(session.weak_questions) == 3

    second = QuizRun(db, session, grader=correct_grader)
    second.select_option(0, "Mitochondrion")
    second.select_option(1, "Lysosome")
    second.submit_answer(2, "Some pass, some don't.")
    assert [(w.question, w.wrong_count) for w in session.weak_questions] == [(MC2, 2)]
    assert [a.score for a in session.attempts] == [0, 2]


def test_expire_counts_unanswered_wrong(db, session):
    run = QuizRun(db, session, grader=correct_grader)
    run.select_option(0, "Mitochondrion")
    run.expire()
    assert run.finished
    assert run.timed_out
    assert run.states[1].locked and run.states[1].selected is None
    assert run.states[2].result.score == 0
    assert run.score() == (1, 3)
    assert session.attempts[-1].score == 1
    assert {w.question for w in session.weak_questions} == {MC2, SA1}


def test_late_grade_after_expiry_is_ignored(db, session):
    executor = ManualExecutor()
    finished = []
    run = QuizRun(db, session, grader=correct_grader, executor=executor, on_finish=finished.append)
    run.submit_answer(2, "Some pass.")
    run.expire()
    executor.run(0)
    assert run.states[2].result.feedback == "Time ran out."
    assert finished == [run]


def test_timer_starts_on_first_answer_and_expires(db, session):
    run = QuizRun(db, session, grader=correct_grader, time_limit=0.05)
    assert run._timer is None
    run.select_option(0, "Mitochondrion")
    assert run.completed.wait(timeout=5)
    assert run.timed_out
    assert session.attempts[-1].score == 1


def test_timer_cancelled_on_normal_finish(db, session):
    run = QuizRun(db, session, grader=correct_grader, time_limit=30)
    run.select_option(0, "Mitochondrion")
    run.select_option(1, "Ribosome")
    run.submit_answer(2, "Some pass.")
    assert run.finished
    assert not run.timed_out
    assert not run._timer.is_alive() or run._timer.finished.is_set()


def test_review_run_does_not_record_attempt(db, session):
    review = QuestionSet(multiple_choice=[session.questions.multiple_choice[0]])
    run = QuizRun(db, session, grader=correct_grader, questions=review, count_attempt=False)
    run.select_option(0, "Mitochondrion")
    assert run.finished
    assert session.attempts == []


def test_failed_save_is_reported_and_run_completes(db, session):
    upsert_session(db, session)
    executor = ManualExecutor()
    run = QuizRun(db, session, grader=correct_grader, executor=executor)
    run.select_option(0, "Mitochondrion")
    run.select_option(1, "Ribosome")
    future = run.submit_answer(2, "Only some molecules pass.")

    with patch("stade.quiz.upsert_session", side_effect=RuntimeError("disk full")):
        executor.run(0)

    assert future.exception() is None
    assert run.finished
    assert run.completed.is_set()
    assert isinstance(run.save_error, RuntimeError)
    assert load_session(db, session.id).attempts == []


def test_successful_save_has_no_error(db, session):
    run = QuizRun(db, session, grader=correct_grader)
    run.select_option(0, "Mitochondrion")
    run.select_option(1, "Ribosome")
    run.submit_answer(2, "Only some molecules pass.")
    assert run.completed.is_set()
    assert run.save_error is None
