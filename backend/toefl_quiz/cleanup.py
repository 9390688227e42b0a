from __future__ import annotations
import asyncio
import logging
from typing import Callable

from sqlalchemy.orm import Session

from .procedures import cleanup_expired_guest_quizzes


logger = logging.getLogger(__name__)


def purge_expired_guest_quizzes(session_factory: Callable[[], Session]) -> int:
	db = session_factory()
	try:
		removed = cleanup_expired_guest_quizzes(db)
	finally:
		db.close()
	if removed:
		logger.info("Purged %d expired guest quizzes", removed)
	return removed


async def cleanup_watcher(session_factory: Callable[[], Session], interval_seconds: float) -> None:
	# Run once at startup, then every interval
	while True:
		try:
			purge_expired_guest_quizzes(session_factory)
		except Exception:
			logger.exception("Expired guest quiz cleanup failed")
		await asyncio.sleep(interval_seconds)
