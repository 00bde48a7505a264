"""Rolling per-session attempt history."""
from datetime import date

from stade.models import AttemptRecord, Session

MAX_ATTEMPTS = 10


def record_attempt(
    session: Session, score: int, max_score: int, today: date | None = None,
) -> list[AttemptRecord]:
    """Return the session's attempt list with a new record appended, oldest evicted past 10."""
    today = today or date.today()
    attempts = session.attempts + [AttemptRecord(date=today.isoformat(), score=score, max=max_score)]
    return attempts[-MAX_ATTEMPTS:]


def best_score(attempts: list[AttemptRecord]) -> int | None:
    if not attempts:
        return None
    return max(a.score for a in attempts)


def previous_score(attempts: list[AttemptRecord]) -> int | None:
    """Score of the attempt before the latest one."""
    if len(attempts) < 2:
        return None
    return attempts[-2].score


def score_delta(attempts: list[AttemptRecord]) -> int | None:
    if len(attempts) < 2:
        return None
    return attempts[-1].score - attempts[-2].score
