"""Flashcard session logic with SM-2 scheduling.

Schedules live in one global table keyed by the card's normalized term, so a
term that shows up in several sessions shares a single review history.
"""
import logging
import re
from datetime import datetime

from stade.db import get_connection
from stade.models import CardSchedule, Concept
from stade.sm2 import schedule

logger = logging.getLogger(__name__)

CARD_KEY_MAX_LENGTH = 100


def card_key(term: str) -> str:
    """Case-folded, whitespace-collapsed, length-capped term."""
    return re.sub(r"\s+", " ", term.casefold()).strip()[:CARD_KEY_MAX_LENGTH]


def _to_iso(value: datetime | None) -> str | None:
    return value.isoformat(timespec="seconds") if value else None


def _row_to_schedule(row) -> CardSchedule:
    return CardSchedule(
        interval=row["interval"],
        ease_factor=row["ease_factor"],
        repetitions=row["repetitions"],
        due_date=datetime.fromisoformat(row["due_date"]) if row["due_date"] else None,
    )


def get_schedule(db_path: str, term: str) -> CardSchedule:
    conn = get_connection(db_path)
    row = conn.execute(
        "SELECT * FROM card_schedules WHERE card_key = ?", (card_key(term),)
    ).fetchone()
    conn.close()
    return _row_to_schedule(row) if row else CardSchedule()


def is_due(card: CardSchedule, now: datetime) -> bool:
    return card.due_date is None or card.due_date <= now


def rate_card(db_path: str, term: str, rating: int, now: datetime | None = None) -> CardSchedule:
    """Apply a 1-4 rating to the card for ``term`` and persist the new schedule."""
    now = now or datetime.now()
    key = card_key(term)
    previous = get_schedule(db_path, term)
    updated = schedule(previous, rating, now)
    conn = get_connection(db_path)
    conn.execute(
        """INSERT INTO card_schedules (card_key, term, interval, ease_factor, repetitions, due_date)
        VALUES (?, ?, ?, ?, ?, ?)
        ON CONFLICT(card_key) DO UPDATE SET
            interval=excluded.interval, ease_factor=excluded.ease_factor,
            repetitions=excluded.repetitions, due_date=excluded.due_date""",
        (key, term, updated.interval, updated.ease_factor, updated.repetitions, _to_iso(updated.due_date)),
    )
    conn.execute(
        "INSERT INTO flashcard_results (card_key, rating, reviewed_at) VALUES (?, ?, ?)",
        (key, rating, _to_iso(now)),
    )
    conn.commit()
    conn.close()
    logger.info("Rated card %r %d: interval=%d reps=%d ef=%.2f",
                key, rating, updated.interval, updated.repetitions, updated.ease_factor)
    return updated


def get_due_cards(db_path: str, concepts: list[Concept], now: datetime | None = None) -> list[Concept]:
    """Cards from a deck that are due, never-reviewed first, then oldest due date."""
    now = now or datetime.now()
    keys = list({card_key(c.term) for c in concepts})
    schedules = {}
    if keys:
        conn = get_connection(db_path)
        placeholders = ",".join("?" for _ in keys)
        rows = conn.execute(
            f"SELECT * FROM card_schedules WHERE card_key IN ({placeholders})", keys
        ).fetchall()
        conn.close()
        schedules = {row["card_key"]: _row_to_schedule(row) for row in rows}

    due = []
    for concept in concepts:
        card = schedules.get(card_key(concept.term), CardSchedule())
        if is_due(card, now):
            due.append((card.due_date or datetime.min, concept))
    due.sort(key=lambda pair: pair[0])
    return [concept for _, concept in due]


def count_due(db_path: str, now: datetime | None = None) -> int:
    """Scheduled cards across all sessions whose review date has passed."""
    now = now or datetime.now()
    conn = get_connection(db_path)
    count = conn.execute(
        "SELECT COUNT(*) FROM card_schedules WHERE due_date IS NULL OR due_date <= ?",
        (_to_iso(now),),
    ).fetchone()[0]
    conn.close()
    return count


def next_card_index(index: int, deck_size: int) -> int:
    """Advance through a deck, wrapping to the first card after the last."""
    if deck_size <= 0:
        return 0
    return (index + 1) % deck_size
