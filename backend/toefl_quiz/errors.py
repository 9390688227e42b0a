"""Error taxonomy shared by the generation and submission pipelines.

Every error carries a machine-readable ``code``, a human-readable ``message``
and the HTTP status it maps to. ``extra`` is merged into the JSON body.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional


class QuizServiceError(Exception):
	code = "internal_error"
	status_code = 500

	def __init__(self, message: str, *, extra: Optional[Dict[str, Any]] = None) -> None:
		super().__init__(message)
		self.message = message
		self.extra: Dict[str, Any] = dict(extra or {})

	def to_dict(self) -> Dict[str, Any]:
		return {"error": self.code, "message": self.message, **self.extra}


class ValidationFailed(QuizServiceError):
	code = "validation_error"
	status_code = 400


class AuthenticationRequired(QuizServiceError):
	code = "unauthorized"
	status_code = 401


class RateLimited(QuizServiceError):
	"""Guest window exhausted; retryable once the window resets."""

	code = "rate_limited"
	status_code = 429

	def __init__(self, reset_in_minutes: int, reset_at: float) -> None:
		super().__init__(
			"Guest quiz limit reached. Please sign up for more quizzes or try again "
			f"in {reset_in_minutes} minutes.",
			extra={"resetIn": reset_in_minutes},
		)
		self.reset_in = reset_in_minutes
		self.reset_at = reset_at


class QuotaExceeded(QuizServiceError):
	"""Member daily cap reached; only an upgrade lifts it."""

	code = "quota_exceeded"
	status_code = 429

	def __init__(self, message: str = "Daily quiz limit reached. Upgrade to Pro for unlimited quizzes.") -> None:
		super().__init__(message)


class InvalidAIResponse(QuizServiceError):
	code = "invalid_ai_response"
	status_code = 502

	def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None) -> None:
		super().__init__(message, extra={"details": errors or []})
		self.errors = errors or []


class GenerationFailed(QuizServiceError):
	code = "generation_failed"
	status_code = 500

	def __init__(self, last_error: Optional[BaseException], attempts: int) -> None:
		# Provider errors can embed request details; callers only get a fixed message
		super().__init__("Failed to generate quiz. Please try again.")
		self.last_error = last_error
		self.attempts = attempts


class PersistenceFailed(QuizServiceError):
	code = "persistence_failed"
	status_code = 500


class InfrastructureError(QuizServiceError):
	code = "infrastructure_error"
	status_code = 500


class Forbidden(QuizServiceError):
	code = "forbidden"
	status_code = 403


class Gone(QuizServiceError):
	code = "expired"
	status_code = 410


class AlreadyCompleted(QuizServiceError):
	code = "already_completed"
	status_code = 400

	def __init__(self, message: str = "Quiz already completed") -> None:
		super().__init__(message)


class NotFound(QuizServiceError):
	code = "not_found"
	status_code = 404
