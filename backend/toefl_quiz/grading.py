from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from .data_access import PrivilegedDataAccess, ScopedDataAccess
from .errors import AlreadyCompleted, Forbidden, Gone, NotFound
from .models import Quiz, utcnow
from .validation import SubmitQuizRequest


logger = logging.getLogger(__name__)


@dataclass
class SubmissionResult:
    quiz_id: str
    score: int
    total: int
    percentage: int
    time_spent: int

    def to_response(self) -> Dict[str, Any]:
        return {
            "quizId": self.quiz_id,
            "score": self.score,
            "total": self.total,
            "percentage": self.percentage,
            "timeSpent": self.time_spent,
        }


def percentage(correct: int, total: int) -> int:
    if total == 0:
        return 0
    # Half-up, so 2.5 -> 3 rather than banker's rounding
    return math.floor(100 * correct / total + 0.5)


def authorize_quiz_access(
    quiz: Quiz,
    user_id: Optional[str],
    session_token: Optional[str],
    now: Optional[datetime] = None,
) -> None:
    """Raise unless the caller owns ``quiz``.

    Member quizzes need the owning signed-in user. Guest quizzes need the
    matching session token, and are ``Gone`` once expired.
    """
    if quiz.user_id is not None:
        if user_id is None or quiz.user_id != user_id:
            raise Forbidden("Unauthorized: you can only submit answers to your own quiz")
        return
    if not session_token or quiz.session_token != session_token:
        raise Forbidden("Unauthorized: invalid session token for guest quiz")
    if quiz.expires_at is not None and quiz.expires_at < (now or utcnow()):
        raise Gone("Guest quiz has expired")


def submit_quiz(
    db: Session,
    user_id: Optional[str],
    session_token: Optional[str],
    request: SubmitQuizRequest,
    now: Optional[datetime] = None,
) -> SubmissionResult:
    quiz_id = request.quiz_id
    quiz = PrivilegedDataAccess(db).get_quiz(quiz_id)
    if quiz is None:
        raise NotFound("Quiz not found")

    authorize_quiz_access(quiz, user_id, session_token, now)
    if quiz.completed:
        raise AlreadyCompleted()

    store = ScopedDataAccess(db, quiz.user_id) if quiz.user_id is not None else PrivilegedDataAccess(db)
    questions = store.list_questions(quiz_id)
    if not questions:
        raise NotFound("Quiz questions not found")

    answers: Dict[str, str] = {}
    for submitted in request.answers:
        # First answer wins when a question id is repeated
        answers.setdefault(submitted.question_id, submitted.answer)
    correct = 0
    updates = []
    for question in questions:
        user_answer = answers.get(question.id)
        is_correct = user_answer is not None and user_answer == question.correct_answer
        if is_correct:
            correct += 1
        updates.append({"id": question.id, "user_answer": user_answer, "is_correct": is_correct})

    # The completed check above is only a fast path; the conditional update decides
    store.submit_answers(quiz_id, updates, score=correct, time_spent_seconds=request.time_spent)

    total = len(questions)
    logger.info("Quiz %s graded: %d/%d", quiz_id, correct, total)
    return SubmissionResult(
        quiz_id=quiz_id,
        score=correct,
        total=total,
        percentage=percentage(correct, total),
        time_spent=request.time_spent,
    )
