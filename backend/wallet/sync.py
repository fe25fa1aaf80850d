import asyncio
import logging
from typing import List, Optional

import aiohttp

from chaindata.constants import BALANCE_REFETCH_INTERVAL, PRICE_REFETCH_INTERVAL
from chaindata.evm.activity import get_all_activity
from chaindata.evm.pricing import get_latest_prices
from chaindata.evm.token_balances import get_wallet_balance_feed
from chaindata.evm.typing import ActivityEvent_
from tools.http import RateLimitException
from tools.rate_limiter import RateLimitTimeoutException
from wallet.portfolio_history import build_portfolio_history
from wallet.store import TokenStore
from wallet.typing import PortfolioPoint, TimeFrames

logger = logging.getLogger(__name__)

PROVIDER_ERRORS = (
    aiohttp.ClientError,
    asyncio.TimeoutError,
    RateLimitException,
    RateLimitTimeoutException,
    ValueError,
)


async def refresh_balances(store: TokenStore, user_address: str) -> bool:
    """Fetches the balance snapshot into `store`.

    Provider failures are recorded on the store's loading state, the last
    known balances stay in place. Returns True when a snapshot was applied.
    """
    store.set_balance_loading(True)
    try:
        feed = await get_wallet_balance_feed(user_address)
    except PROVIDER_ERRORS as e:
        logger.warning("Fetching balances for %s failed: %s", user_address, e)
        store.set_balance_error(str(e) or e.__class__.__name__)
        return False

    applied = store.update_balances(feed)
    if not applied:
        store.set_balance_loading(False)
    return applied


async def refresh_prices(store: TokenStore) -> bool:
    store.set_price_loading(True)
    try:
        feed = await get_latest_prices()
    except PROVIDER_ERRORS as e:
        logger.warning("Fetching prices failed: %s", e)
        store.set_price_error(str(e) or e.__class__.__name__)
        return False

    store.update_prices(feed)
    return True


async def fetch_portfolio_history(
    store: TokenStore,
    user_address: str,
    timeframe: TimeFrames = TimeFrames.TWO_WEEKS,
    activities: Optional[List[ActivityEvent_]] = None,
) -> List[PortfolioPoint]:
    if activities is None:
        activities = await get_all_activity(user_address)

    return build_portfolio_history(
        store.balances, store.prices, activities, timeframe, tokens=store.tokens
    )


async def poll_wallet(
    store: TokenStore,
    user_address: str,
    *,
    balance_interval: float = BALANCE_REFETCH_INTERVAL,
    price_interval: float = PRICE_REFETCH_INTERVAL,
    stop_event: Optional[asyncio.Event] = None,
):
    """Keeps `store` reconciled until `stop_event` is set."""
    stop_event = stop_event or asyncio.Event()

    async def poll(refresh, interval):
        while not stop_event.is_set():
            await refresh()
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass

    await asyncio.gather(
        poll(lambda: refresh_prices(store), price_interval),
        poll(lambda: refresh_balances(store, user_address), balance_interval),
    )
