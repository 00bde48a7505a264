"""Data classes for the study domain model."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

MULTIPLE_CHOICE = "multiple_choice"
SHORT_ANSWER = "short_answer"

MIN_OPTIONS = 2
MAX_OPTIONS = 8


@dataclass
class Concept:
    term: str
    definition: str


@dataclass
class Summary:
    title: str
    overview: str = ""
    key_points: list[str] = field(default_factory=list)
    concepts: list[Concept] = field(default_factory=list)
    quick_facts: list[str] = field(default_factory=list)


@dataclass
class MCQuestion:
    question: str
    options: list[str]
    answer: str
    difficulty: str = "medium"


@dataclass
class SAQuestion:
    question: str
    answer: str
    difficulty: str = "medium"


@dataclass
class QuestionSet:
    title: str = "Untitled Quiz"
    difficulty: str = "mixed"
    multiple_choice: list[MCQuestion] = field(default_factory=list)
    short_answer: list[SAQuestion] = field(default_factory=list)


@dataclass
class CardSchedule:
    interval: int = 0
    ease_factor: float = 2.5
    repetitions: int = 0
    due_date: Optional[datetime] = None


@dataclass
class GradeResult:
    score: int
    is_correct: bool
    feedback: str = ""


@dataclass
class QuestionOutcome:
    question: str
    type: str
    correct: bool


@dataclass
class WeakQuestion:
    question: str
    type: str
    wrong_count: int = 1
    last_seen: Optional[datetime] = None


@dataclass
class AttemptRecord:
    date: str
    score: int
    max: int


@dataclass
class Session:
    id: str
    title: str
    created_at: str
    summary: Summary
    questions: QuestionSet
    attempts: list[AttemptRecord] = field(default_factory=list)
    weak_questions: list[WeakQuestion] = field(default_factory=list)
    share_token: Optional[str] = None
    source_text: str = ""


def summary_from_dict(data: dict) -> Summary:
    """Build a Summary from generator or stored JSON, tolerating missing keys."""
    return Summary(
        title=data.get("title") or "Untitled",
        overview=data.get("overview") or "",
        key_points=list(data.get("key_points") or []),
        concepts=[
            Concept(term=c["term"], definition=c.get("definition", ""))
            for c in data.get("concepts") or []
            if c.get("term")
        ],
        quick_facts=list(data.get("quick_facts") or []),
    )


def _usable_mc(q: dict) -> bool:
    """A multiple-choice item needs a few options and an answer that is one of them."""
    options = q.get("options") or []
    return MIN_OPTIONS <= len(options) <= MAX_OPTIONS and q.get("answer") in options


def question_set_from_dict(data: dict) -> QuestionSet:
    """Build a QuestionSet from generator or stored JSON, tolerating missing keys.

    Multiple-choice items that could never be answered are dropped.
    """
    return QuestionSet(
        title=data.get("title") or "Untitled Quiz",
        difficulty=data.get("difficulty") or "mixed",
        multiple_choice=[
            MCQuestion(
                question=q["question"],
                options=list(q.get("options") or []),
                answer=q.get("answer", ""),
                difficulty=q.get("difficulty") or "medium",
            )
            for q in data.get("multiple_choice") or []
            if _usable_mc(q)
        ],
        short_answer=[
            SAQuestion(
                question=q["question"],
                answer=q.get("answer", ""),
                difficulty=q.get("difficulty") or "medium",
            )
            for q in data.get("short_answer") or []
        ],
    )
