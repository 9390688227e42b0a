"""Storage capabilities for quiz and question rows.

``ScopedDataAccess`` acts on behalf of one signed-in user and refuses to touch
quizzes that user does not own. ``PrivilegedDataAccess`` has no ownership
filter and is used for guest requests and for the owner lookup on submission.
Pick one per request with ``data_access_for``.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import AlreadyCompleted, Forbidden, PersistenceFailed
from .models import Quiz, QuizQuestion


logger = logging.getLogger(__name__)


class DataAccess:
    def __init__(self, db: Session) -> None:
        self.db = db

    # ---- ownership hook ----

    def _authorize(self, quiz: Quiz) -> None:
        pass

    def _authorize_owner_fields(self, user_id: Optional[str]) -> None:
        pass

    # ---- helpers ----

    def _commit(self, what: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Failed to %s: %s", what, exc)
            raise PersistenceFailed(f"Failed to {what}") from exc

    # ---- quizzes ----

    def insert_quiz(
        self,
        *,
        user_id: Optional[str],
        session_token: Optional[str],
        expires_at: Optional[datetime],
        category: str,
        difficulty: str,
        questions_count: int,
        timer_mode: str,
        quiz_mode: str,
    ) -> Quiz:
        self._authorize_owner_fields(user_id)
        quiz = Quiz(
            user_id=user_id,
            session_token=session_token,
            expires_at=expires_at,
            category=category,
            difficulty=difficulty,
            questions_count=questions_count,
            timer_mode=timer_mode,
            quiz_mode=quiz_mode,
            score=0,
            completed=False,
        )
        self.db.add(quiz)
        self._commit("create quiz")
        return quiz

    def delete_quiz(self, quiz_id: str) -> None:
        quiz = self.get_quiz(quiz_id)
        if quiz is None:
            return
        self.db.delete(quiz)
        self._commit("delete quiz")

    def get_quiz(self, quiz_id: str) -> Optional[Quiz]:
        try:
            quiz = self.db.get(Quiz, quiz_id)
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise PersistenceFailed("Failed to load quiz") from exc
        if quiz is not None:
            self._authorize(quiz)
        return quiz

    def complete_quiz(self, quiz_id: str, *, score: int, time_spent_seconds: int) -> None:
        """Flip ``completed`` inside the caller's transaction, at most once.

        The update only matches a quiz that is still open, so a submission that
        lost a race gets ``AlreadyCompleted`` instead of overwriting the score.
        """
        if self.get_quiz(quiz_id) is None:
            raise PersistenceFailed("Failed to save results")
        stmt = (
            update(Quiz)
            .where(Quiz.id == quiz_id, Quiz.completed.is_(False))
            .values(score=score, time_spent_seconds=time_spent_seconds, completed=True)
            .execution_options(synchronize_session=False)
        )
        try:
            result = self.db.execute(stmt)
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Failed to save results for quiz %s: %s", quiz_id, exc)
            raise PersistenceFailed("Failed to save results") from exc
        if result.rowcount != 1:
            self.db.rollback()
            raise AlreadyCompleted()

    # ---- questions ----

    def insert_questions(self, quiz_id: str, rows: Sequence[Dict[str, object]]) -> List[QuizQuestion]:
        quiz = self.get_quiz(quiz_id)
        if quiz is None:
            raise PersistenceFailed("Failed to create questions")
        questions = [QuizQuestion(quiz_id=quiz_id, **row) for row in rows]
        self.db.add_all(questions)
        self._commit("create questions")
        return questions

    def list_questions(self, quiz_id: str) -> List[QuizQuestion]:
        if self.get_quiz(quiz_id) is None:
            return []
        try:
            stmt = select(QuizQuestion).where(QuizQuestion.quiz_id == quiz_id).order_by(QuizQuestion.order_index)
            return list(self.db.scalars(stmt))
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise PersistenceFailed("Failed to load questions") from exc

    def record_answers(self, quiz_id: str, updates: Iterable[Dict[str, object]]) -> None:
        """Batch-write ``user_answer``/``is_correct`` keyed by question id. Does not commit."""
        if self.get_quiz(quiz_id) is None:
            raise PersistenceFailed("Failed to save answers")
        try:
            # ORM bulk UPDATE by primary key: one executemany for the whole batch
            self.db.execute(update(QuizQuestion), [dict(row) for row in updates])
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Failed to save answers for quiz %s: %s", quiz_id, exc)
            raise PersistenceFailed("Failed to save answers") from exc

    def submit_answers(
        self,
        quiz_id: str,
        updates: Iterable[Dict[str, object]],
        *,
        score: int,
        time_spent_seconds: int,
    ) -> None:
        # Completion and answers commit together; either both land or neither does
        try:
            self.complete_quiz(quiz_id, score=score, time_spent_seconds=time_spent_seconds)
            self.record_answers(quiz_id, updates)
        except Exception:
            self.db.rollback()
            raise
        self._commit("save results")


class PrivilegedDataAccess(DataAccess):
    pass


class ScopedDataAccess(DataAccess):
    def __init__(self, db: Session, user_id: str) -> None:
        super().__init__(db)
        self.user_id = user_id

    def _authorize(self, quiz: Quiz) -> None:
        if quiz.user_id != self.user_id:
            raise Forbidden("Quiz is not owned by the current user")

    def _authorize_owner_fields(self, user_id: Optional[str]) -> None:
        if user_id != self.user_id:
            raise Forbidden("Cannot create a quiz for another user")


def data_access_for(db: Session, user_id: Optional[str]) -> DataAccess:
    if user_id is not None:
        return ScopedDataAccess(db, user_id)
    return PrivilegedDataAccess(db)
