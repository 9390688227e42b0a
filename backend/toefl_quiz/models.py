from __future__ import annotations
import uuid
from datetime import datetime, timezone
from sqlalchemy import (
	JSON,
	Boolean,
	CheckConstraint,
	Column,
	Date,
	DateTime,
	ForeignKey,
	Integer,
	String,
	Text,
)
from sqlalchemy.orm import relationship
from .db import Base


def utcnow() -> datetime:
	# Naive UTC, matching what SQLite hands back for DateTime columns
	return datetime.now(timezone.utc).replace(tzinfo=None)


def _new_id() -> str:
	return str(uuid.uuid4())


class AuthUser(Base):
	__tablename__ = "auth_users"
	# Primary key is username; it is the stable user identifier quizzes point at
	username = Column(String(128), primary_key=True, index=True)
	password_hash = Column(String(256), nullable=False)
	email = Column(String(256), nullable=True)
	subscription_status = Column(String(16), default="free", nullable=False)
	subscription_end = Column(DateTime, nullable=True)
	daily_quizzes_count = Column(Integer, default=0, nullable=False)
	last_quiz_date = Column(Date, nullable=True)
	streak_days = Column(Integer, default=0, nullable=False)
	last_activity_date = Column(Date, nullable=True)
	created_at = Column(DateTime, default=utcnow, nullable=False)
	updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class AuthSession(Base):
	__tablename__ = "auth_sessions"
	session_id = Column(String(64), primary_key=True)
	username = Column(String(128), ForeignKey("auth_users.username", ondelete="CASCADE"), nullable=False, index=True)
	created_at = Column(DateTime, default=utcnow, nullable=False)
	last_activity_at = Column(DateTime, default=utcnow, nullable=False)


class Quiz(Base):
	__tablename__ = "quizzes"
	__table_args__ = (
		# Exactly one owner representation: a user or a guest session token
		CheckConstraint(
			"(user_id IS NOT NULL AND session_token IS NULL) OR (user_id IS NULL AND session_token IS NOT NULL)",
			name="ck_quizzes_single_owner",
		),
	)

	id = Column(String(36), primary_key=True, default=_new_id)
	user_id = Column(String(128), ForeignKey("auth_users.username", ondelete="CASCADE"), nullable=True, index=True)
	session_token = Column(String(128), nullable=True, index=True)
	category = Column(String(16), nullable=False)
	difficulty = Column(String(16), nullable=False)
	questions_count = Column(Integer, nullable=False)
	timer_mode = Column(String(16), default="none", nullable=False)
	quiz_mode = Column(String(16), default="exam", nullable=False)
	score = Column(Integer, default=0, nullable=False)
	time_spent_seconds = Column(Integer, default=0, nullable=False)
	completed = Column(Boolean, default=False, nullable=False)
	created_at = Column(DateTime, default=utcnow, nullable=False)
	expires_at = Column(DateTime, nullable=True)

	questions = relationship(
		"QuizQuestion",
		back_populates="quiz",
		order_by="QuizQuestion.order_index",
		cascade="all, delete-orphan",
		passive_deletes=True,
	)


class QuizQuestion(Base):
	__tablename__ = "quiz_questions"
	id = Column(String(36), primary_key=True, default=_new_id)
	quiz_id = Column(String(36), ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False, index=True)
	question_type = Column(String(32), nullable=False)
	passage = Column(Text, nullable=True)
	question_text = Column(Text, nullable=False)
	options = Column(JSON, nullable=False)
	correct_answer = Column(String(1), nullable=False)
	explanation = Column(Text, nullable=False)
	order_index = Column(Integer, nullable=False)
	user_answer = Column(Text, nullable=True)
	is_correct = Column(Boolean, nullable=True)

	quiz = relationship("Quiz", back_populates="questions")
