"""Short-answer grading through the language model."""
import json
import logging

from openai import OpenAI, OpenAIError

from stade.llm import complete_json
from stade.models import GradeResult

logger = logging.getLogger(__name__)

PASS_SCORE = 3

GRADE_PROMPT = """You are grading a student's short answer on an exam.

Question: {question}
Correct answer: {model_answer}
Student's answer: {user_answer}

Grade the student on a 0-5 scale:
- 5: Perfect, correct and complete
- 4: Mostly correct, minor omissions
- 3: Partially correct, got the main idea but missing key details
- 2: Shows some understanding but mostly incorrect
- 1: Attempted but significantly wrong
- 0: No answer or completely irrelevant

Return ONLY valid JSON:
{{ "score": <0-5>, "isCorrect": <true if score >= 3>, "feedback": "<1-2 sentences: what they got right, what they missed>" }}"""


class GradingError(Exception):
    """The grading service could not produce a grade."""


def failed_grade() -> GradeResult:
    return GradeResult(score=0, is_correct=False, feedback="Grading failed, so this answer was scored 0.")


def grade_answer(
    question: str, model_answer: str, user_answer: str, client: OpenAI | None = None,
) -> GradeResult:
    """Grade a free-text answer 0-5; a score of 3 or more counts as correct."""
    if not user_answer.strip():
        return GradeResult(score=0, is_correct=False, feedback="No answer provided.")
    prompt = GRADE_PROMPT.format(question=question, model_answer=model_answer, user_answer=user_answer)
    try:
        data = complete_json(prompt, client=client)
        score = min(5, max(0, int(data["score"])))
    except (OpenAIError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
        logger.warning("Grading failed for %r: %s", question[:60], e)
        raise GradingError(str(e)) from e
    return GradeResult(score=score, is_correct=score >= PASS_SCORE, feedback=str(data.get("feedback", "")))
