import asyncio
import logging
import aiohttp
from aiohttp import ClientTimeout

from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception,
)

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 4
BASE_WAIT = 1
MAX_WAIT = 30


class RateLimitException(Exception):
    pass


def is_retryable_error(exc: BaseException) -> bool:
    # Client errors (4xx) are never retried, except for 429
    if isinstance(exc, RateLimitException):
        return True
    if isinstance(exc, aiohttp.ClientResponseError):
        return exc.status >= 500
    return isinstance(exc, (aiohttp.ClientConnectionError, asyncio.TimeoutError))


@retry(
    stop=stop_after_attempt(MAX_ATTEMPTS),
    wait=wait_exponential(multiplier=BASE_WAIT, max=MAX_WAIT),
    retry=retry_if_exception(is_retryable_error),
    reraise=True,
)
async def req_get(
    url: str,
    *,
    headers: dict = {},
    params: dict = {},
    timeout: int = 60,
):
    timeout = ClientTimeout(total=timeout)
    # Drop unset query params so providers don't see "None"
    params = {k: str(v) for k, v in params.items() if v is not None}
    async with aiohttp.ClientSession(timeout=timeout) as session:
        async with session.get(url, headers=headers, params=params) as response:
            if response.status == 429:  # Too Many Requests
                response_text = await response.text()
                logger.warning(
                    "Rate limit exceeded for %s with response %s",
                    url,
                    response_text,
                )
                raise RateLimitException("Rate limit exceeded")

            # Raise an error if the response is not ok
            response.raise_for_status()

            return await response.json()
