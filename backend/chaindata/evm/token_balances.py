import logging
from typing import List, Optional

from chaindata.constants import BASE_CHAIN_ID
from chaindata.dune import get_token_balances
from chaindata.evm.token_lists import is_whitelisted_address
from chaindata.evm.typing import BalanceFeedEntry_

logger = logging.getLogger(__name__)


async def get_wallet_balance_feed(
    user_address: str, chain_ids: Optional[str] = str(BASE_CHAIN_ID)
) -> List[BalanceFeedEntry_]:
    """Balances of the supported tokens held by `user_address`, largest first."""
    resp = await get_token_balances(user_address, chain_ids=chain_ids)

    if resp.get("balances") is None:
        raise ValueError(f"No balance data received for {user_address}")

    feed = [
        BalanceFeedEntry_.model_validate(balance)
        for balance in resp["balances"]
        if is_whitelisted_address(balance["address"])
    ]
    logger.debug(
        "Kept %s of %s balances for %s", len(feed), len(resp["balances"]), user_address
    )

    # Sort by decimal adjusted amount, then by symbol
    feed.sort(
        key=lambda entry: (-(entry.amount / 10**entry.decimals), entry.symbol or "")
    )
    return feed
