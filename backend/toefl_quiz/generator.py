from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from .errors import GenerationFailed, QuizServiceError
from .gemini_client import AIClient, describe_error
from .validation import GeneratedQuiz, normalize_and_validate


logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


def _summary(exc: Optional[BaseException]) -> str:
    if isinstance(exc, QuizServiceError):
        return f"{type(exc).__name__}: {exc.message}"
    return describe_error(exc)


@dataclass
class GenerationResult:
    ok: bool
    attempts: int
    quiz: Optional[GeneratedQuiz] = None
    error: Optional[BaseException] = None

    def unwrap(self) -> GeneratedQuiz:
        if self.ok and self.quiz is not None:
            return self.quiz
        raise GenerationFailed(self.error, self.attempts)


async def _attempt(client: AIClient, system: str, task: str, timeout: Optional[float]) -> GeneratedQuiz:
    call = client.generate(task, system=system, json_mode=True)
    raw = await (asyncio.wait_for(call, timeout) if timeout else call)
    return normalize_and_validate(raw)


async def generate_validated_quiz(
    client: AIClient,
    system: str,
    task: str,
    *,
    max_attempts: int = 3,
    backoff_seconds: float = 1.0,
    attempt_timeout: Optional[float] = None,
    sleep: Sleep = asyncio.sleep,
) -> GenerationResult:
    """Ask the model for a quiz until one validates or attempts run out.

    Waits ``backoff_seconds * attempt`` between attempts (1s, 2s with the
    defaults). Transport, timeout, parse and schema failures are all retried;
    the last one observed is returned on the failed result.
    """
    last_error: Optional[BaseException] = None
    for attempt in range(1, max_attempts + 1):
        try:
            quiz = await _attempt(client, system, task, attempt_timeout)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            last_error = exc
            logger.warning("Quiz generation attempt %d/%d failed: %s", attempt, max_attempts, _summary(exc))
            if attempt < max_attempts:
                await sleep(backoff_seconds * attempt)
            continue
        if attempt > 1:
            logger.info("Quiz generation succeeded on attempt %d", attempt)
        return GenerationResult(ok=True, attempts=attempt, quiz=quiz)
    logger.error("Quiz generation gave up after %d attempts: %s", max_attempts, _summary(last_error))
    return GenerationResult(ok=False, attempts=max_attempts, error=last_error)
