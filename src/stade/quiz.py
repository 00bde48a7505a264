"""Quiz run state machine.

A run tracks one attempt at a session's questions. Multiple-choice answers
lock on first selection; short answers go empty -> grading -> graded. When
every question is terminal the run finalizes exactly once: the weak list and
attempt history are updated and the session is saved.
"""
import logging
import threading
from concurrent.futures import Executor, Future
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from stade.attempts import record_attempt
from stade.grader import failed_grade, grade_answer
from stade.mastery import update_weak_questions
from stade.models import (
    MULTIPLE_CHOICE, SHORT_ANSWER, GradeResult, MCQuestion, QuestionOutcome,
    QuestionSet, SAQuestion, Session,
)
from stade.sessions import upsert_session

logger = logging.getLogger(__name__)

Grader = Callable[[str, str, str], GradeResult]


@dataclass
class MCState:
    selected: Optional[str] = None
    locked: bool = False


@dataclass
class SAState:
    user_answer: str = ""
    grading: bool = False
    result: Optional[GradeResult] = None


def build_question_list(question_set: QuestionSet) -> list:
    """Multiple-choice questions first, then short answer, addressed by index."""
    return list(question_set.multiple_choice) + list(question_set.short_answer)


class QuizRun:
    def __init__(
        self,
        db_path: str,
        session: Session,
        grader: Optional[Grader] = None,
        executor: Optional[Executor] = None,
        time_limit: Optional[float] = None,
        questions: Optional[QuestionSet] = None,
        count_attempt: bool = True,
        on_finish: Optional[Callable[["QuizRun"], None]] = None,
    ):
        self.db_path = db_path
        self.session = session
        self.grader = grader or grade_answer
        self.executor = executor
        self.time_limit = time_limit
        self.count_attempt = count_attempt
        self.on_finish = on_finish
        self.questions = build_question_list(questions or session.questions)
        self.states = [
            MCState() if isinstance(q, MCQuestion) else SAState() for q in self.questions
        ]
        self.finished = False
        self.timed_out = False
        self.save_error: Optional[Exception] = None
        self.completed = threading.Event()
        self._lock = threading.RLock()
        self._timer: Optional[threading.Timer] = None

    @property
    def question_count(self) -> int:
        return len(self.questions)

    def _start_timer(self) -> None:
        if self.time_limit and self._timer is None:
            self._timer = threading.Timer(self.time_limit, self.expire)
            self._timer.daemon = True
            self._timer.start()

    def select_option(self, qi: int, option: str) -> bool:
        """Lock a multiple-choice answer. Returns False if the question was already locked."""
        with self._lock:
            state = self.states[qi]
            if not isinstance(state, MCState) or state.locked or self.finished:
                return False
            state.selected = option
            state.locked = True
            self._start_timer()
        self._check_done()
        return True

    def submit_answer(self, qi: int, text: str) -> Optional[Future]:
        """Send a short answer for grading.

        With an executor the grading call runs in the background and its
        Future is returned; otherwise it runs inline and None is returned.
        Blank text, or a question that is not empty, is ignored.
        """
        with self._lock:
            state = self.states[qi]
            if (not isinstance(state, SAState) or state.grading or state.result is not None
                    or self.finished or not text.strip()):
                return None
            state.user_answer = text
            state.grading = True
            self._start_timer()
        question = self.questions[qi]
        if self.executor is not None:
            return self.executor.submit(self._grade, qi, question, text)
        self._grade(qi, question, text)
        return None

    def _grade(self, qi: int, question: SAQuestion, text: str) -> None:
        try:
            result = self.grader(question.question, question.answer, text)
        except Exception:
            logger.exception("Grading question %d failed, scoring it 0", qi)
            result = failed_grade()
        self._set_result(qi, result)

    def _set_result(self, qi: int, result: GradeResult) -> None:
        with self._lock:
            state = self.states[qi]
            if state.result is not None:
                return
            state.result = result
            state.grading = False
        self._check_done()

    def is_done(self) -> bool:
        with self._lock:
            return all(
                s.locked if isinstance(s, MCState) else s.result is not None
                for s in self.states
            )

    def expire(self) -> None:
        """Time is up: unanswered questions are counted wrong and the run finishes."""
        with self._lock:
            if self.finished:
                return
            self.timed_out = True
            for state in self.states:
                if isinstance(state, MCState) and not state.locked:
                    state.locked = True
                elif isinstance(state, SAState) and state.result is None:
                    state.result = GradeResult(score=0, is_correct=False, feedback="Time ran out.")
                    state.grading = False
        logger.info("Quiz timer expired for session %s", self.session.id)
        self._check_done()

    def cancel(self) -> None:
        """Stop the countdown of an abandoned run; it will not finalize on its own."""
        if self._timer is not None:
            self._timer.cancel()

    def is_correct(self, qi: int) -> bool:
        state = self.states[qi]
        if isinstance(state, MCState):
            return state.locked and state.selected == self.questions[qi].answer
        return state.result is not None and state.result.is_correct

    def outcomes(self) -> list[QuestionOutcome]:
        with self._lock:
            return [
                QuestionOutcome(
                    question=q.question,
                    type=MULTIPLE_CHOICE if isinstance(q, MCQuestion) else SHORT_ANSWER,
                    correct=self.is_correct(qi),
                )
                for qi, q in enumerate(self.questions)
            ]

    def score(self) -> tuple[int, int]:
        outcomes = self.outcomes()
        return sum(1 for o in outcomes if o.correct), len(outcomes)

    def _check_done(self) -> None:
        with self._lock:
            if self.finished or not self.is_done():
                return
            self.finished = True
        self._finalize()

    def _finalize(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        try:
            outcomes = self.outcomes()
            score, max_score = self.score()
            self.session.weak_questions = update_weak_questions(self.session, outcomes, datetime.now())
            if self.count_attempt:
                self.session.attempts = record_attempt(self.session, score, max_score)
            upsert_session(self.db_path, self.session)
            logger.info("Quiz finished for session %s: %d/%d", self.session.id, score, max_score)
        except Exception as e:
            logger.exception("Saving quiz results for session %s failed", self.session.id)
            self.save_error = e
        finally:
            self.completed.set()
        if self.on_finish is not None:
            self.on_finish(self)
