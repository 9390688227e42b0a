"""In-process fixed-window rate limiter used for guest admission control.

One ``RateLimiter`` is created at application startup and shared by the
request handlers through ``app.state``. Entries past their reset time are
treated as absent on access and reaped by ``run_sweeper``.
"""
from __future__ import annotations

import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Mapping


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitConfig:
	limit: int
	window_seconds: float


@dataclass
class RateLimitEntry:
	count: int
	reset_at: float


@dataclass(frozen=True)
class RateLimitResult:
	success: bool
	remaining: int
	reset_at: float


# Guest quizzes: 1 per hour
GUEST_QUIZ = RateLimitConfig(limit=1, window_seconds=60 * 60)


class RateLimiter:
	def __init__(self, clock: Callable[[], float] = time.time) -> None:
		self._clock = clock
		self._entries: Dict[str, RateLimitEntry] = {}
		# FastAPI runs sync dependencies in a threadpool, so the map needs a lock
		self._lock = threading.Lock()

	def now(self) -> float:
		return self._clock()

	def check(self, identifier: str, config: RateLimitConfig) -> RateLimitResult:
		now = self._clock()
		with self._lock:
			entry = self._entries.get(identifier)
			if entry is None or entry.reset_at <= now:
				reset_at = now + config.window_seconds
				self._entries[identifier] = RateLimitEntry(count=1, reset_at=reset_at)
				return RateLimitResult(success=True, remaining=config.limit - 1, reset_at=reset_at)
			if entry.count >= config.limit:
				return RateLimitResult(success=False, remaining=0, reset_at=entry.reset_at)
			entry.count += 1
			return RateLimitResult(success=True, remaining=config.limit - entry.count, reset_at=entry.reset_at)

	def sweep(self) -> int:
		now = self._clock()
		with self._lock:
			expired = [key for key, entry in self._entries.items() if entry.reset_at <= now]
			for key in expired:
				del self._entries[key]
		return len(expired)

	def __len__(self) -> int:
		with self._lock:
			return len(self._entries)

	async def run_sweeper(self, interval_seconds: float) -> None:
		while True:
			await asyncio.sleep(interval_seconds)
			removed = self.sweep()
			if removed:
				logger.debug("Rate limiter swept %d expired entries", removed)


def client_ip(headers: Mapping[str, str]) -> str:
	forwarded_for = headers.get("x-forwarded-for")
	if forwarded_for:
		# First hop is the original client
		first = forwarded_for.split(",")[0].strip()
		if first:
			return first
	real_ip = headers.get("x-real-ip")
	if real_ip:
		return real_ip.strip()
	return "unknown"
