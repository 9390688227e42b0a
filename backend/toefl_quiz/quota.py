from __future__ import annotations

import logging
import math
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Mapping, Optional

from fastapi import Response
from sqlalchemy.orm import Session

from .errors import InfrastructureError, QuotaExceeded, RateLimited
from .models import utcnow
from .procedures import check_and_reserve_quiz_limit, rollback_quiz_reservation
from .rate_limit import RateLimitConfig, RateLimiter, client_ip
from .settings import settings


logger = logging.getLogger(__name__)


@dataclass
class Admission:
    """Outcome of a granted generation request.

    Members carry ``user_id`` and hold one reserved daily slot; guests carry a
    fresh ``session_token`` and its ``expires_at``.
    """

    user_id: Optional[str] = None
    session_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    reserved: bool = False

    @property
    def is_guest(self) -> bool:
        return self.user_id is None


def new_session_token() -> str:
    return secrets.token_urlsafe(32)


class QuotaManager:
    def __init__(
        self,
        db: Session,
        limiter: RateLimiter,
        *,
        daily_limit: Optional[int] = None,
        guest_config: Optional[RateLimitConfig] = None,
        session_ttl: Optional[timedelta] = None,
        now: Callable[[], datetime] = utcnow,
    ) -> None:
        self.db = db
        self.limiter = limiter
        self.daily_limit = settings.free_daily_quizzes if daily_limit is None else daily_limit
        self.guest_config = guest_config or RateLimitConfig(
            limit=settings.guest_quiz_limit, window_seconds=settings.guest_quiz_window_seconds
        )
        self.session_ttl = session_ttl or timedelta(hours=settings.guest_session_hours)
        self._now = now

    def admit(self, user_id: Optional[str], headers: Mapping[str, str]) -> Admission:
        if user_id is None:
            return self._admit_guest(headers)
        return self._admit_member(user_id)

    def _admit_guest(self, headers: Mapping[str, str]) -> Admission:
        ip = client_ip(headers)
        result = self.limiter.check(f"guest:quiz:{ip}", self.guest_config)
        if not result.success:
            seconds_left = max(0.0, result.reset_at - self.limiter.now())
            reset_in = max(1, math.ceil(seconds_left / 60))
            logger.info("Guest quiz rate limit hit for %s; resets in %d min", ip, reset_in)
            raise RateLimited(reset_in, result.reset_at)
        return Admission(
            session_token=new_session_token(),
            expires_at=self._now() + self.session_ttl,
        )

    def _admit_member(self, user_id: str) -> Admission:
        try:
            reserved = check_and_reserve_quiz_limit(self.db, user_id, self.daily_limit, self._now().date())
        except Exception as exc:
            logger.error("Error checking quiz limit for %s: %s", user_id, exc)
            raise InfrastructureError("Failed to check quiz limit") from exc
        if not reserved:
            raise QuotaExceeded()
        return Admission(user_id=user_id, reserved=True)

    def rollback(self, admission: Admission) -> None:
        """Release a member's reserved slot; guests have nothing to release."""
        if admission.is_guest or not admission.reserved:
            return
        try:
            rollback_quiz_reservation(self.db, admission.user_id, self._now().date())
        except Exception as exc:
            logger.error("Failed to roll back quiz reservation for %s: %s", admission.user_id, exc)
            return
        admission.reserved = False


def set_guest_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.guest_cookie_name,
        value=token,
        max_age=settings.guest_session_hours * 60 * 60,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.is_production,
    )
