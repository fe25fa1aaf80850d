import asyncio
import time

import pytest

from tools.async_tools import run_async_function
from tools.rate_limiter import (
    RateLimiter,
    RateLimitTimeoutException,
    dune_rate_limiter,
    zerox_rate_limiter,
)


class ManualClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_burst_is_admitted_without_queueing() -> None:
    limiter = RateLimiter(max_tokens=5, refill_rate=5)

    async def burst():
        start = time.monotonic()
        for _ in range(5):
            await limiter.acquire("k")
        return time.monotonic() - start

    elapsed = run_async_function(burst)

    assert elapsed < 0.05
    status = limiter.get_status("k")
    assert status.queue_length == 0
    assert status.available_tokens < 1


def test_sixth_request_waits_for_refill() -> None:
    limiter = RateLimiter(max_tokens=5, refill_rate=5)

    async def six_requests():
        start = time.monotonic()
        for _ in range(5):
            await limiter.acquire("k")
        await limiter.acquire("k")
        return time.monotonic() - start

    elapsed = run_async_function(six_requests)

    # One token refills in 200ms at 5 tokens per second
    assert 0.15 <= elapsed < 1.0


def test_tokens_never_exceed_max() -> None:
    clock = ManualClock()
    limiter = RateLimiter(max_tokens=5, refill_rate=5, clock=clock)

    async def consume(n):
        for _ in range(n):
            await limiter.acquire("k")

    run_async_function(consume, 3)
    assert limiter.get_status("k").available_tokens == 2

    clock.now += 0.2
    assert limiter.get_status("k").available_tokens == pytest.approx(3)

    clock.now += 3600
    assert limiter.get_status("k").available_tokens == 5

    run_async_function(consume, 5)
    clock.now += 10
    assert limiter.get_status("k").available_tokens == 5


def test_wait_time_reflects_missing_tokens() -> None:
    clock = ManualClock()
    limiter = RateLimiter(max_tokens=1, refill_rate=4, clock=clock)

    assert limiter.get_wait_time("k") == 0
    run_async_function(limiter.acquire, "k")
    assert limiter.get_wait_time("k") == pytest.approx(0.25)

    clock.now += 0.1
    assert limiter.get_wait_time("k") == pytest.approx(0.15)


def test_queued_request_times_out() -> None:
    limiter = RateLimiter(max_tokens=1, refill_rate=0.01, queue_timeout=0.05)

    async def exhaust_and_wait():
        await limiter.acquire("k")
        with pytest.raises(RateLimitTimeoutException):
            await limiter.acquire("k")

    run_async_function(exhaust_and_wait)
    assert limiter.get_status("k").queue_length == 0


def test_exhausted_key_does_not_block_other_keys() -> None:
    limiter = RateLimiter(max_tokens=1, refill_rate=0.01, queue_timeout=5)

    async def scenario():
        await limiter.acquire("slow")
        blocked = asyncio.create_task(limiter.acquire("slow"))
        await asyncio.sleep(0)
        assert limiter.get_status("slow").queue_length == 1

        await asyncio.wait_for(limiter.acquire("fast"), timeout=0.05)
        assert not blocked.done()

        limiter.reset("slow")
        with pytest.raises(asyncio.CancelledError):
            await blocked

    run_async_function(scenario)


def test_queue_is_served_in_order() -> None:
    limiter = RateLimiter(max_tokens=1, refill_rate=50, max_poll_interval=0.01)
    served = []

    async def request(i):
        await limiter.acquire("k")
        served.append(i)

    async def scenario():
        await asyncio.gather(*[request(i) for i in range(4)])

    run_async_function(scenario)
    assert served == [0, 1, 2, 3]


def test_execute_passes_arguments_and_returns_result() -> None:
    limiter = RateLimiter(max_tokens=2, refill_rate=2)

    async def fetch(a, b, scale=1):
        return (a + b) * scale

    result = run_async_function(limiter.execute, fetch, "provider", 1, 2, scale=10)

    assert result == 30
    assert limiter.get_status("provider").available_tokens == pytest.approx(1, abs=0.01)


def test_reset_refills_buckets() -> None:
    clock = ManualClock()
    limiter = RateLimiter(max_tokens=2, refill_rate=1, clock=clock)

    async def drain():
        await limiter.acquire("a")
        await limiter.acquire("a")
        await limiter.acquire("b")

    run_async_function(drain)
    limiter.reset("a")
    assert limiter.get_status("a").available_tokens == 2
    assert limiter.get_status("b").available_tokens == 1

    limiter.reset()
    assert limiter.get_status("b").available_tokens == 2


def test_provider_limiters_are_configured() -> None:
    assert (dune_rate_limiter.max_tokens, dune_rate_limiter.refill_rate) == (5, 5)
    assert (zerox_rate_limiter.max_tokens, zerox_rate_limiter.refill_rate) == (10, 10)
