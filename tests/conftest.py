import pytest

from stade.db import init_db
from stade.models import Concept, MCQuestion, QuestionSet, SAQuestion, Summary
from stade.sessions import create_session


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary SQLite database path for tests."""
    db_path = str(tmp_path / "test_stade.db")
    return db_path


@pytest.fixture
def db(tmp_db):
    """A temporary database with the schema created."""
    init_db(tmp_db)
    return tmp_db


@pytest.fixture
def question_set():
    return QuestionSet(
        title="Cell Biology",
        multiple_choice=[
            MCQuestion(
                question="Which organelle produces ATP?",
                options=["Nucleus", "Mitochondrion", "Ribosome", "Golgi body"],
                answer="Mitochondrion",
            ),
            MCQuestion(
                question="Where are proteins assembled?",
                options=["Ribosome", "Lysosome", "Vacuole", "Cell wall"],
                answer="Ribosome",
            ),
        ],
        short_answer=[
            SAQuestion(
                question="Why is the cell membrane called selectively permeable?",
                answer="It lets some substances through while blocking others.",
            ),
        ],
    )


@pytest.fixture
def session(question_set):
    summary = Summary(
        title="Cell Biology",
        overview="How cells are organized.",
        key_points=["Cells are the basic unit of life."],
        concepts=[
            Concept(term="Mitochondrion", definition="Organelle that produces ATP."),
            Concept(term="Ribosome", definition="Site of protein synthesis."),
        ],
        quick_facts=["Red blood cells have no nucleus."],
    )
    return create_session("Cell Biology", summary, question_set, source_text="Cells...")
