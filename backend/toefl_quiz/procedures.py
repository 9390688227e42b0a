"""Single-statement datastore procedures for quota, streak and cleanup.

Each procedure runs as its own transaction: it commits on success and rolls
the session back before re-raising on failure. The quota check-and-increment
is one conditional UPDATE, so concurrent reservations for the same user cannot
both pass the cap.
"""
from __future__ import annotations
from datetime import date, datetime, timedelta
from typing import Optional
from sqlalchemy import and_, case, delete, or_, select, update
from sqlalchemy.orm import Session

from .models import AuthUser, Quiz, QuizQuestion, utcnow


def _today(today: Optional[date]) -> date:
	return today or utcnow().date()


def _has_active_pro(now: datetime):
	return and_(
		AuthUser.subscription_status == "pro",
		or_(AuthUser.subscription_end.is_(None), AuthUser.subscription_end > now),
	)


def check_and_reserve_quiz_limit(db: Session, user_id: str, daily_limit: int, today: Optional[date] = None) -> bool:
	day = _today(today)
	stmt = (
		update(AuthUser)
		.where(AuthUser.username == user_id)
		.where(
			or_(
				AuthUser.last_quiz_date.is_(None),
				AuthUser.last_quiz_date != day,
				AuthUser.daily_quizzes_count < daily_limit,
				_has_active_pro(utcnow()),
			)
		)
		.values(
			daily_quizzes_count=case(
				(AuthUser.last_quiz_date == day, AuthUser.daily_quizzes_count + 1),
				else_=1,
			),
			last_quiz_date=day,
		)
		.execution_options(synchronize_session=False)
	)
	try:
		result = db.execute(stmt)
		db.commit()
	except Exception:
		db.rollback()
		raise
	return result.rowcount == 1


def rollback_quiz_reservation(db: Session, user_id: str, today: Optional[date] = None) -> None:
	day = _today(today)
	stmt = (
		update(AuthUser)
		.where(AuthUser.username == user_id)
		.where(AuthUser.last_quiz_date == day)
		.where(AuthUser.daily_quizzes_count > 0)
		.values(daily_quizzes_count=AuthUser.daily_quizzes_count - 1)
		.execution_options(synchronize_session=False)
	)
	try:
		db.execute(stmt)
		db.commit()
	except Exception:
		db.rollback()
		raise


def update_user_streak(db: Session, user_id: str, today: Optional[date] = None) -> None:
	day = _today(today)
	yesterday = day - timedelta(days=1)
	stmt = (
		update(AuthUser)
		.where(AuthUser.username == user_id)
		.values(
			streak_days=case(
				(AuthUser.last_activity_date == day, AuthUser.streak_days),
				(AuthUser.last_activity_date == yesterday, AuthUser.streak_days + 1),
				else_=1,
			),
			last_activity_date=day,
		)
		.execution_options(synchronize_session=False)
	)
	try:
		db.execute(stmt)
		db.commit()
	except Exception:
		db.rollback()
		raise


def remaining_daily_quizzes(db: Session, user_id: str, daily_limit: int, today: Optional[date] = None) -> Optional[int]:
	"""Quizzes left today, ``None`` for unlimited (active pro) users."""
	day = _today(today)
	user = db.get(AuthUser, user_id)
	if user is None:
		return 0
	if user.subscription_status == "pro" and (user.subscription_end is None or user.subscription_end > utcnow()):
		return None
	used = user.daily_quizzes_count if user.last_quiz_date == day else 0
	return max(0, daily_limit - used)


def cleanup_expired_guest_quizzes(db: Session, now: Optional[datetime] = None) -> int:
	cutoff = now or utcnow()
	expired_ids = (
		select(Quiz.id)
		.where(Quiz.session_token.is_not(None))
		.where(Quiz.expires_at.is_not(None))
		.where(Quiz.expires_at < cutoff)
	)
	try:
		db.execute(
			delete(QuizQuestion)
			.where(QuizQuestion.quiz_id.in_(expired_ids))
			.execution_options(synchronize_session=False)
		)
		res = db.execute(
			delete(Quiz).where(Quiz.id.in_(expired_ids)).execution_options(synchronize_session=False)
		)
		db.commit()
	except Exception:
		db.rollback()
		raise
	return res.rowcount or 0
