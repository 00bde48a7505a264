"""SM-2 spaced repetition algorithm."""
from datetime import datetime, timedelta

from stade.models import CardSchedule

# Learner ratings: 1=forgot, 2=hard, 3=good, 4=easy
RATING_QUALITY = {1: 0, 2: 2, 3: 4, 4: 5}
RATING_LABELS = {1: "Again", 2: "Hard", 3: "Good", 4: "Easy"}

# Quality 2 comes from "recalled with difficulty", which is still a recall.
PASSING_QUALITY = 2
MIN_EASE_FACTOR = 1.3


def sm2_update(
    quality: int,
    repetitions: int,
    ease_factor: float,
    interval: int,
) -> dict:
    """Calculate next review parameters using SM-2.

    Args:
        quality: Rating 0-5 (0=complete blackout, 5=perfect)
        repetitions: Number of consecutive correct reviews
        ease_factor: Current ease factor (minimum 1.3)
        interval: Current interval in days

    Returns:
        Dict with updated interval, repetitions, ease_factor.
    """
    # Ease moves on every review, pass or fail
    new_ef = ease_factor + (0.1 - (5 - quality) * (0.08 + (5 - quality) * 0.02))
    new_ef = max(MIN_EASE_FACTOR, new_ef)

    if quality >= PASSING_QUALITY:
        if repetitions == 0:
            new_interval = 1
        elif repetitions == 1:
            new_interval = 6
        else:
            new_interval = round(interval * ease_factor)
        new_repetitions = repetitions + 1
    else:
        # Forgotten: retry tomorrow
        new_repetitions = 0
        new_interval = 1

    return {
        "interval": new_interval,
        "repetitions": new_repetitions,
        "ease_factor": new_ef,
    }


def schedule(previous: CardSchedule, rating: int, now: datetime) -> CardSchedule:
    """Return the card's next schedule after a 1-4 learner rating."""
    updated = sm2_update(
        quality=RATING_QUALITY[rating],
        repetitions=previous.repetitions,
        ease_factor=previous.ease_factor,
        interval=previous.interval,
    )
    return CardSchedule(
        interval=updated["interval"],
        ease_factor=updated["ease_factor"],
        repetitions=updated["repetitions"],
        due_date=now + timedelta(days=updated["interval"]),
    )
