import asyncio

from conftest import FakeClock
from toefl_quiz.rate_limit import GUEST_QUIZ, RateLimitConfig, RateLimiter, client_ip


def test_guest_window_allows_one_then_denies_until_reset():
    clock = FakeClock()
    limiter = RateLimiter(clock=clock)

    first = limiter.check("guest:quiz:1.2.3.4", GUEST_QUIZ)
    assert first.success and first.remaining == 0
    assert first.reset_at == clock.now + 3600

    clock.advance(600)
    second = limiter.check("guest:quiz:1.2.3.4", GUEST_QUIZ)
    assert not second.success
    assert second.reset_at - clock.now == 3000

    clock.advance(3000)
    third = limiter.check("guest:quiz:1.2.3.4", GUEST_QUIZ)
    assert third.success


def test_counts_up_to_limit_within_window():
    limiter = RateLimiter(clock=FakeClock())
    config = RateLimitConfig(limit=3, window_seconds=60)
    results = [limiter.check("k", config) for _ in range(4)]
    assert [r.success for r in results] == [True, True, True, False]
    assert [r.remaining for r in results] == [2, 1, 0, 0]


def test_keys_are_independent():
    limiter = RateLimiter(clock=FakeClock())
    assert limiter.check("a", GUEST_QUIZ).success
    assert limiter.check("b", GUEST_QUIZ).success
    assert not limiter.check("a", GUEST_QUIZ).success


def test_sweep_removes_only_expired_entries():
    clock = FakeClock()
    limiter = RateLimiter(clock=clock)
    limiter.check("old", RateLimitConfig(limit=1, window_seconds=10))
    limiter.check("new", RateLimitConfig(limit=1, window_seconds=1000))
    clock.advance(20)
    assert limiter.sweep() == 1
    assert len(limiter) == 1


def test_sweeper_task_runs_until_cancelled():
    clock = FakeClock()
    limiter = RateLimiter(clock=clock)
    limiter.check("old", RateLimitConfig(limit=1, window_seconds=10))
    clock.advance(20)

    async def scenario():
        task = asyncio.create_task(limiter.run_sweeper(0.01))
        await asyncio.sleep(0.05)
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    asyncio.run(scenario())
    assert len(limiter) == 0


def test_client_ip_precedence():
    assert client_ip({"x-forwarded-for": "9.9.9.9, 10.0.0.1", "x-real-ip": "8.8.8.8"}) == "9.9.9.9"
    assert client_ip({"x-real-ip": "8.8.8.8"}) == "8.8.8.8"
    assert client_ip({}) == "unknown"
