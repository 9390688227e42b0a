from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from .data_access import data_access_for
from .errors import PersistenceFailed
from .procedures import update_user_streak
from .quota import Admission, QuotaManager
from .validation import GeneratedQuiz, GenerateQuizRequest


logger = logging.getLogger(__name__)


@dataclass
class CreatedQuiz:
    quiz_id: str
    category: str
    difficulty: str
    questions_count: int
    timer_mode: str
    quiz_mode: str
    session_token: Optional[str] = None

    def to_response(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "quizId": self.quiz_id,
            "category": self.category,
            "difficulty": self.difficulty,
            "questionsCount": self.questions_count,
            "timerMode": self.timer_mode,
            "quizMode": self.quiz_mode,
        }
        if self.session_token:
            body["sessionToken"] = self.session_token
        return body


def question_rows(generated: GeneratedQuiz) -> List[Dict[str, Any]]:
    return [
        {
            "question_type": q.question_type,
            "passage": q.passage or None,
            "question_text": q.question_text,
            "options": list(q.options),
            "correct_answer": q.correct_answer,
            "explanation": q.explanation,
            "order_index": index,
        }
        for index, q in enumerate(generated.questions)
    ]


def create_quiz(
    db: Session,
    request: GenerateQuizRequest,
    generated: GeneratedQuiz,
    admission: Admission,
    quota: QuotaManager,
) -> CreatedQuiz:
    """Persist a validated quiz and its questions for an admitted caller.

    The quiz row and the question rows are written in two commits. If the
    questions fail, the quiz row is deleted again and a member's reserved slot
    is released, so no caller ever sees a quiz without questions.
    """
    store = data_access_for(db, admission.user_id)
    # The stored count is what was generated, so questionsCount always matches the graded total
    questions_count = len(generated.questions)
    if questions_count != request.questions_count:
        logger.warning(
            "Model returned %d questions, %d requested; storing %d",
            questions_count, request.questions_count, questions_count,
        )

    try:
        quiz = store.insert_quiz(
            user_id=admission.user_id,
            session_token=admission.session_token,
            expires_at=admission.expires_at,
            category=request.category,
            difficulty=request.difficulty,
            questions_count=questions_count,
            timer_mode=request.timer_mode,
            quiz_mode=request.quiz_mode,
        )
    except PersistenceFailed:
        logger.error(
            "Error creating quiz (category=%s difficulty=%s count=%d)",
            request.category, request.difficulty, request.questions_count,
        )
        quota.rollback(admission)
        raise
    quiz_id = quiz.id

    try:
        store.insert_questions(quiz_id, question_rows(generated))
    except PersistenceFailed:
        logger.error("Error creating questions for quiz %s; removing quiz", quiz_id)
        try:
            store.delete_quiz(quiz_id)
        except PersistenceFailed:
            logger.error("Compensating delete failed for quiz %s", quiz_id)
        quota.rollback(admission)
        raise PersistenceFailed("Failed to create questions")

    if admission.user_id is not None:
        try:
            update_user_streak(db, admission.user_id)
        except Exception as exc:
            # Streak is cosmetic; the quiz already exists
            logger.warning("Streak update failed for %s: %s", admission.user_id, exc)

    return CreatedQuiz(
        quiz_id=quiz_id,
        category=request.category,
        difficulty=request.difficulty,
        questions_count=questions_count,
        timer_mode=request.timer_mode,
        quiz_mode=request.quiz_mode,
        session_token=admission.session_token,
    )
