import asyncio
import logging
import time
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Dict, Optional

from pydantic import BaseModel

logger = logging.getLogger(__name__)

QUEUE_TIMEOUT_SECONDS = 30
MAX_POLL_INTERVAL_SECONDS = 0.1


class RateLimitTimeoutException(Exception):
    pass


class TokenBucket(BaseModel):
    tokens: float
    last_refill: float


class RateLimiterStatus(BaseModel):
    available_tokens: float
    queue_length: int
    wait_time: float


class _PendingAcquire:
    __slots__ = ("future", "enqueued_at")

    def __init__(self, future: asyncio.Future, enqueued_at: float):
        self.future = future
        self.enqueued_at = enqueued_at


class RateLimiter:
    """Token bucket rate limiter with one FIFO wait queue per key.

    Requests that find the bucket empty wait in their key's queue instead of
    failing. Each key is drained by its own processor task, so an exhausted
    key never blocks callers of another key.
    """

    def __init__(
        self,
        max_tokens: int,
        refill_rate: float,
        *,
        queue_timeout: float = QUEUE_TIMEOUT_SECONDS,
        max_poll_interval: float = MAX_POLL_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        # refill_rate is in tokens per second
        self.max_tokens = max_tokens
        self.refill_rate = refill_rate
        self.queue_timeout = queue_timeout
        self.max_poll_interval = max_poll_interval
        self._clock = clock
        self._buckets: Dict[str, TokenBucket] = {}
        self._queues: Dict[str, Deque[_PendingAcquire]] = {}
        self._processors: Dict[str, asyncio.Task] = {}

    def _get_bucket(self, key: str) -> TokenBucket:
        bucket = self._buckets.get(key)
        if bucket is None:
            bucket = TokenBucket(tokens=self.max_tokens, last_refill=self._clock())
            self._buckets[key] = bucket

        return bucket

    def _refill(self, bucket: TokenBucket):
        now = self._clock()
        elapsed = max(0.0, now - bucket.last_refill)
        bucket.tokens = min(self.max_tokens, bucket.tokens + elapsed * self.refill_rate)
        bucket.last_refill = now

    def _try_consume(self, key: str) -> bool:
        bucket = self._get_bucket(key)
        self._refill(bucket)

        if bucket.tokens >= 1:
            bucket.tokens -= 1
            return True

        return False

    def get_wait_time(self, key: str = "default") -> float:
        """Seconds until the next token for `key` is available."""
        bucket = self._get_bucket(key)
        self._refill(bucket)

        if bucket.tokens >= 1:
            return 0.0
        if self.refill_rate <= 0:
            return float("inf")

        return (1 - bucket.tokens) / self.refill_rate

    async def acquire(self, key: str = "default"):
        queue = self._queues.get(key)
        if not queue and self._try_consume(key):
            logger.debug("Rate limiter admitted %s immediately", key)
            return

        loop = asyncio.get_running_loop()
        pending = _PendingAcquire(loop.create_future(), self._clock())
        self._queues.setdefault(key, deque()).append(pending)
        logger.debug(
            "Rate limiter queued %s (queue length %s)", key, len(self._queues[key])
        )

        if key not in self._processors:
            self._processors[key] = loop.create_task(self._process_queue(key))

        await pending.future

    async def _process_queue(self, key: str):
        queue = self._queues[key]
        try:
            while queue:
                pending = queue[0]

                # Caller went away (cancelled) while waiting
                if pending.future.done():
                    queue.popleft()
                    continue

                waited = self._clock() - pending.enqueued_at
                if waited > self.queue_timeout:
                    queue.popleft()
                    logger.warning(
                        "Rate limit wait for %s exceeded %s seconds",
                        key,
                        self.queue_timeout,
                    )
                    pending.future.set_exception(
                        RateLimitTimeoutException(
                            f"Request timeout: rate limit wait exceeded {self.queue_timeout} seconds"
                        )
                    )
                    continue

                if self._try_consume(key):
                    queue.popleft()
                    pending.future.set_result(None)
                    continue

                await asyncio.sleep(
                    min(self.get_wait_time(key), self.max_poll_interval)
                )
        finally:
            if self._processors.get(key) is asyncio.current_task():
                del self._processors[key]

    async def execute(
        self,
        fn: Callable[..., Awaitable[Any]],
        key: str = "default",
        *args,
        **kwargs,
    ):
        await self.acquire(key)
        return await fn(*args, **kwargs)

    def get_status(self, key: str = "default") -> RateLimiterStatus:
        bucket = self._get_bucket(key)
        self._refill(bucket)

        return RateLimiterStatus(
            available_tokens=bucket.tokens,
            queue_length=len(self._queues.get(key, ())),
            wait_time=self.get_wait_time(key),
        )

    def reset(self, key: Optional[str] = None):
        keys = [key] if key is not None else list(self._buckets.keys() | self._queues.keys())
        for k in keys:
            self._buckets.pop(k, None)

            processor = self._processors.pop(k, None)
            if processor is not None:
                processor.cancel()

            for pending in self._queues.pop(k, ()):
                if not pending.future.done():
                    pending.future.cancel()


# Dune Sim API allows 5 requests per second
dune_rate_limiter = RateLimiter(max_tokens=5, refill_rate=5)

# More lenient for 0x price/quote requests
zerox_rate_limiter = RateLimiter(max_tokens=10, refill_rate=10)
