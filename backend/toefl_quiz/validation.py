from __future__ import annotations

import json
import logging
import re
from typing import Annotated, Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import InvalidAIResponse
from .settings import settings


logger = logging.getLogger(__name__)

Category = Literal["reading", "grammar", "vocabulary", "listening", "mixed"]
Difficulty = Literal["easy", "medium", "hard"]
TimerMode = Literal["none", "soft", "strict"]
QuizMode = Literal["learning", "exam"]
QuestionType = Literal["multiple_choice", "error_identification", "sentence_completion", "reading_comprehension"]
AnswerLetter = Literal["A", "B", "C", "D"]

UUID4_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$", re.IGNORECASE)


def _check_uuid4(value: str, label: str) -> str:
    if not UUID4_RE.match(value):
        raise ValueError(f"Invalid {label} format")
    return value


# ---- API request models ----

class GenerateQuizRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    category: Category
    difficulty: Difficulty
    questions_count: Annotated[
        int, Field(strict=True, ge=settings.min_questions, le=settings.max_questions, alias="questionsCount")
    ]
    timer_mode: TimerMode = Field(default="none", alias="timerMode")
    quiz_mode: QuizMode = Field(default="exam", alias="quizMode")


class SubmittedAnswer(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    question_id: str = Field(alias="questionId")
    answer: str = Field(min_length=1)

    @field_validator("question_id")
    @classmethod
    def _question_id_is_uuid(cls, v: str) -> str:
        return _check_uuid4(v, "question ID")


class SubmitQuizRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    quiz_id: str = Field(alias="quizId")
    answers: List[SubmittedAnswer]
    # At most 24 hours, in seconds
    time_spent: Annotated[int, Field(strict=True, ge=0, le=86400, alias="timeSpent")]

    @field_validator("quiz_id")
    @classmethod
    def _quiz_id_is_uuid(cls, v: str) -> str:
        return _check_uuid4(v, "quiz ID")


# ---- AI output schema ----

class GeneratedQuestion(BaseModel):
    question_type: QuestionType
    passage: Optional[str] = None
    question_text: str = Field(min_length=1)
    options: List[str] = Field(min_length=4, max_length=4)
    correct_answer: AnswerLetter
    explanation: str = Field(min_length=1)


class GeneratedQuiz(BaseModel):
    questions: List[GeneratedQuestion] = Field(min_length=1)


# ---- normalisation ----

_OPEN_FENCE_RE = re.compile(r"^```[A-Za-z0-9_-]*")


def strip_code_fence(text: str) -> str:
    """Remove a surrounding markdown code fence (optionally language-tagged)."""
    cleaned = text.strip()
    match = _OPEN_FENCE_RE.match(cleaned)
    if match:
        cleaned = cleaned[match.end():]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


def normalize_answer_letter(value: Any) -> str:
    # "(a)", " B ", "C)" -> "A", "B", "C"
    cleaned = str(value).replace("(", "").replace(")", "").strip()
    return cleaned[:1].upper()


def _normalize_answers(parsed: Any) -> Any:
    if not isinstance(parsed, dict) or not isinstance(parsed.get("questions"), list):
        return parsed
    questions = []
    for item in parsed["questions"]:
        if isinstance(item, dict) and "correct_answer" in item:
            item = {**item, "correct_answer": normalize_answer_letter(item["correct_answer"])}
        questions.append(item)
    return {**parsed, "questions": questions}


def _field_errors(exc: ValidationError) -> List[Dict[str, Any]]:
    return [
        {"loc": ".".join(str(part) for part in err.get("loc", ())), "msg": err.get("msg", "")}
        for err in exc.errors()
    ]


def normalize_and_validate(raw_text: str) -> GeneratedQuiz:
    """Turn raw model output into a validated quiz or raise ``InvalidAIResponse``."""
    cleaned = strip_code_fence(raw_text or "")
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        logger.debug("AI returned malformed JSON: %s", cleaned[:500])
        raise InvalidAIResponse(f"Malformed JSON from AI: {exc.msg}") from exc

    parsed = _normalize_answers(parsed)
    try:
        return GeneratedQuiz.model_validate(parsed)
    except ValidationError as exc:
        errors = _field_errors(exc)
        logger.debug("AI response validation failed: %s; content: %s", errors, cleaned[:500])
        raise InvalidAIResponse("Invalid response format from AI", errors) from exc
