import os
import logging
from typing import Optional

from tools.http import req_get
from tools.rate_limiter import dune_rate_limiter

logger = logging.getLogger(__name__)

DUNE_API_KEY = os.getenv("DUNE_API_KEY")
BASE_URL = os.getenv("DUNE_BASE_URL", "https://api.sim.dune.com/")

BALANCE_RATE_LIMIT_KEY = "dune-balance"
ACTIVITY_RATE_LIMIT_KEY = "dune-activity"


def _headers() -> dict:
    if not DUNE_API_KEY:
        logger.warning("DUNE_API_KEY is not set, Dune requests will be rejected")
    return {"X-Dune-Api-Key": DUNE_API_KEY or ""}


async def get_token_balances(
    address: str,
    *,
    chain_ids: Optional[str] = None,
    limit: Optional[int] = None,
    offset: Optional[str] = None,
) -> dict:
    return await dune_rate_limiter.execute(
        req_get,
        BALANCE_RATE_LIMIT_KEY,
        f"{BASE_URL}v1/evm/balances/{address}",
        headers=_headers(),
        params={"chain_ids": chain_ids, "limit": limit, "offset": offset},
    )


async def get_activity(
    address: str,
    *,
    chain_ids: Optional[str] = None,
    limit: Optional[int] = None,
    offset: Optional[str] = None,
) -> dict:
    return await dune_rate_limiter.execute(
        req_get,
        ACTIVITY_RATE_LIMIT_KEY,
        f"{BASE_URL}v1/evm/activity/{address}",
        headers=_headers(),
        params={"chain_ids": chain_ids, "limit": limit, "offset": offset},
    )
