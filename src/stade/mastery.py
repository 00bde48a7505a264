"""Weak question tracking across repeated quiz attempts."""
from dataclasses import replace
from datetime import datetime

from stade.models import QuestionOutcome, Session, WeakQuestion


def update_weak_questions(
    session: Session,
    outcomes: list[QuestionOutcome],
    now: datetime | None = None,
) -> list[WeakQuestion]:
    """Fold one finished run's outcomes into the session's weak list.

    A correct answer drops the question from the list entirely, so a later
    miss starts counting from 1 again. Questions the run did not ask are
    kept as they are. The result is ordered by wrong_count, highest first.
    The session itself is not modified.
    """
    now = now or datetime.now()
    weak = {w.question: replace(w) for w in session.weak_questions}
    for outcome in outcomes:
        if outcome.correct:
            weak.pop(outcome.question, None)
        elif outcome.question in weak:
            entry = weak[outcome.question]
            entry.wrong_count += 1
            entry.last_seen = now
        else:
            weak[outcome.question] = WeakQuestion(
                question=outcome.question, type=outcome.type, wrong_count=1, last_seen=now,
            )
    return sorted(weak.values(), key=lambda w: w.wrong_count, reverse=True)
