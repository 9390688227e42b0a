from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from ..db import get_db
from ..errors import InfrastructureError, NotFound, ValidationFailed
from ..gemini_client import AIClient, GeminiClient
from ..generator import generate_validated_quiz
from ..grading import authorize_quiz_access, submit_quiz
from ..data_access import PrivilegedDataAccess
from ..procedures import remaining_daily_quizzes
from ..prompts import build_prompt
from ..quiz_service import create_quiz
from ..quota import QuotaManager, set_guest_cookie
from ..rate_limit import RateLimiter
from ..settings import settings
from ..validation import UUID4_RE, GenerateQuizRequest, SubmitQuizRequest
from .auth import User, get_current_user, get_optional_user


router = APIRouter(prefix="/api", tags=["quizzes"])

logger = logging.getLogger(__name__)


def get_ai_client_factory() -> Callable[[], AIClient]:
    return GeminiClient


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def get_quota_manager(
    db: Session = Depends(get_db),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> QuotaManager:
    return QuotaManager(db, limiter)


@router.post("/generate-quiz")
async def generate_quiz(
    req: GenerateQuizRequest,
    request: Request,
    response: Response,
    user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
    quota: QuotaManager = Depends(get_quota_manager),
    make_client: Callable[[], AIClient] = Depends(get_ai_client_factory),
):
    user_id = user.username if user else None
    admission = quota.admit(user_id, request.headers)

    # Built only after admission so a throttled caller never reaches provider setup
    try:
        client = make_client()
    except ValueError as exc:
        quota.rollback(admission)
        raise InfrastructureError(f"AI provider is not configured: {exc}") from exc

    prompt = build_prompt(req.category, req.difficulty, req.questions_count)
    try:
        result = await generate_validated_quiz(
            client,
            prompt.system,
            prompt.task,
            max_attempts=settings.ai_max_attempts,
            backoff_seconds=settings.ai_backoff_seconds,
            attempt_timeout=settings.ai_attempt_timeout_seconds,
        )
    finally:
        await client.aclose()
    if not result.ok:
        quota.rollback(admission)
    generated = result.unwrap()

    created = create_quiz(db, req, generated, admission, quota)
    if created.session_token:
        set_guest_cookie(response, created.session_token)
    logger.info(
        "Created quiz %s (%s/%s, %d questions, %s)",
        created.quiz_id, req.category, req.difficulty, created.questions_count,
        "member" if user_id else "guest",
    )
    return created.to_response()


@router.post("/submit-quiz")
async def submit(
    req: SubmitQuizRequest,
    request: Request,
    user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    session_token = request.cookies.get(settings.guest_cookie_name)
    result = submit_quiz(db, user.username if user else None, session_token, req)
    return result.to_response()


def _question_payload(question, reveal: bool) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "id": question.id,
        "questionType": question.question_type,
        "passage": question.passage,
        "questionText": question.question_text,
        "options": question.options,
        "orderIndex": question.order_index,
        "userAnswer": question.user_answer,
        "isCorrect": question.is_correct,
    }
    if reveal:
        payload["correctAnswer"] = question.correct_answer
        payload["explanation"] = question.explanation
    return payload


@router.get("/quizzes/{quiz_id}")
async def get_quiz(
    quiz_id: str,
    request: Request,
    user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    if not UUID4_RE.match(quiz_id):
        raise ValidationFailed("Invalid quiz ID format")
    quiz = PrivilegedDataAccess(db).get_quiz(quiz_id)
    if quiz is None:
        raise NotFound("Quiz not found")
    authorize_quiz_access(quiz, user.username if user else None, request.cookies.get(settings.guest_cookie_name))
    # Learning mode shows answers as you go; exam mode only after submission
    reveal = quiz.completed or quiz.quiz_mode == "learning"
    return {
        "quizId": quiz.id,
        "category": quiz.category,
        "difficulty": quiz.difficulty,
        "questionsCount": quiz.questions_count,
        "timerMode": quiz.timer_mode,
        "quizMode": quiz.quiz_mode,
        "completed": quiz.completed,
        "score": quiz.score,
        "timeSpent": quiz.time_spent_seconds,
        "expiresAt": quiz.expires_at.isoformat() if quiz.expires_at else None,
        "questions": [_question_payload(q, reveal) for q in quiz.questions],
    }


@router.get("/quotas/me")
async def my_quota(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    remaining = remaining_daily_quizzes(db, user.username, settings.free_daily_quizzes)
    return {
        "dailyLimit": settings.free_daily_quizzes,
        "remaining": remaining,
        "unlimited": remaining is None,
    }
