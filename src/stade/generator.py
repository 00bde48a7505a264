"""Summary and quiz generation through the language model."""
import json
import logging

from openai import OpenAI, OpenAIError

from stade.llm import complete_json
from stade.models import QuestionSet, Summary, question_set_from_dict, summary_from_dict

logger = logging.getLogger(__name__)

SUMMARY_INPUT_LIMIT = 12000
QUIZ_INPUT_LIMIT = 14000
DIFFICULTIES = ("easy", "medium", "hard", "mixed")

DIFFICULTY_GUIDE = {
    "easy": "Questions should test basic recall and definitions.",
    "medium": "Questions should test understanding and application of concepts.",
    "hard": "Questions should test deep understanding and require synthesizing multiple concepts.",
    "mixed": "Mix of easy recall, medium understanding, and hard synthesis questions.",
}

SUMMARY_PROMPT = """You are an expert study assistant. Analyze the material below and extract a structured summary.

Return ONLY valid JSON with this exact structure:
{{
  "title": "concise title for this material",
  "overview": "2-3 sentence overview of what this material covers",
  "key_points": ["clear, specific key point", "another key point"],
  "concepts": [
    {{ "term": "term or concept name", "definition": "clear definition or explanation" }}
  ],
  "quick_facts": ["short memorable fact", "another fact"]
}}

Rules:
- key_points: 4-6 points, each a full sentence summarizing something important
- concepts: 3-6 important terms/concepts worth knowing
- quick_facts: 3-5 short, punchy facts that are easy to memorize
- Only use information from the material, no outside knowledge

[MATERIAL]
{material}
[END MATERIAL]"""

QUIZ_PROMPT = """You are an expert exam writer. Create exam questions based ONLY on the material provided. Questions must be specific to the material and test understanding, not surface-level trivia.

Difficulty: {difficulty_upper} - {guide}

Create exactly:
- {mc_count} multiple choice questions (4 options each)
- {sa_count} short answer questions

Rules:
- Multiple choice distractors must be plausible: common misconceptions or easily confused alternatives
- The "answer" field for multiple choice must exactly match one of the option strings
- Short answer questions need a 1-3 sentence response; the "answer" is a model answer
- Spread questions across the whole material

Return ONLY valid JSON:
{{
  "title": "short title for this quiz",
  "multiple_choice": [
    {{ "question": "question text", "options": ["A", "B", "C", "D"], "answer": "A", "difficulty": "easy" }}
  ],
  "short_answer": [
    {{ "question": "question text", "answer": "model answer", "difficulty": "medium" }}
  ]
}}

[START MATERIAL]
{material}
[END MATERIAL]"""


class GenerationError(Exception):
    """The generation service failed; nothing was created."""


def split_question_count(question_count: int) -> tuple[int, int]:
    """60% multiple choice (rounded half up), the rest short answer."""
    mc_count = int(question_count * 0.6 + 0.5)
    return mc_count, question_count - mc_count


def _check_material(material: str) -> None:
    if not material or not material.strip():
        raise ValueError("No content provided")


def summarize(material: str, client: OpenAI | None = None) -> Summary:
    _check_material(material)
    prompt = SUMMARY_PROMPT.format(material=material[:SUMMARY_INPUT_LIMIT])
    try:
        return summary_from_dict(complete_json(prompt, client=client))
    except (OpenAIError, json.JSONDecodeError, KeyError, TypeError, AttributeError) as e:
        logger.error("Summary generation failed: %s", e)
        raise GenerationError(f"Failed to generate summary: {e}") from e


def generate_questions(
    material: str, question_count: int = 7, difficulty: str = "mixed", client: OpenAI | None = None,
) -> QuestionSet:
    _check_material(material)
    if difficulty not in DIFFICULTIES:
        difficulty = "mixed"
    mc_count, sa_count = split_question_count(question_count)
    prompt = QUIZ_PROMPT.format(
        difficulty_upper=difficulty.upper(),
        guide=DIFFICULTY_GUIDE[difficulty],
        mc_count=mc_count,
        sa_count=sa_count,
        material=material[:QUIZ_INPUT_LIMIT],
    )
    try:
        data = complete_json(prompt, client=client)
        questions = question_set_from_dict({**data, "difficulty": difficulty})
    except (OpenAIError, json.JSONDecodeError, KeyError, TypeError, AttributeError) as e:
        logger.error("Quiz generation failed: %s", e)
        raise GenerationError(f"Failed to generate quiz: {e}") from e
    if not questions.multiple_choice and not questions.short_answer:
        raise GenerationError("The quiz came back with no questions")
    return questions


def generate_study_set(
    material: str, question_count: int = 7, difficulty: str = "mixed", client: OpenAI | None = None,
) -> tuple[Summary, QuestionSet]:
    """Summary (with flashcard concepts) and quiz for one piece of material."""
    summary = summarize(material, client=client)
    questions = generate_questions(material, question_count, difficulty, client=client)
    logger.info("Generated %r: %d concepts, %d MC, %d SA", summary.title, len(summary.concepts),
                len(questions.multiple_choice), len(questions.short_answer))
    return summary, questions
