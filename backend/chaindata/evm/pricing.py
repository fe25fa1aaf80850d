import asyncio
import logging
from typing import Dict

from aiocache import cached

from chaindata.constants import PRICE_CACHE_TTL
from chaindata.evm.token_lists import SUPPORTED_TOKENS
from chaindata.evm.typing import PriceFeedEntry_
from chaindata.zerox import get_price

logger = logging.getLogger(__name__)

QUOTE_SYMBOL = "USDC"


@cached(ttl=PRICE_CACHE_TTL, namespace="token_prices")
async def get_latest_prices() -> Dict[str, PriceFeedEntry_]:
    return await fetch_latest_prices()


async def fetch_latest_prices() -> Dict[str, PriceFeedEntry_]:
    """USD prices for every supported token, quoted against USDC pinned at $1"""
    symbols = [symbol for symbol in SUPPORTED_TOKENS if symbol != QUOTE_SYMBOL]
    prices = await asyncio.gather(*[get_token_price(symbol) for symbol in symbols])

    feed = dict(zip(symbols, prices))
    feed[QUOTE_SYMBOL] = PriceFeedEntry_(
        price="1",
        estimatedGas="0",
        decimals=SUPPORTED_TOKENS[QUOTE_SYMBOL].decimals,
    )
    return feed


async def get_token_price(symbol: str) -> PriceFeedEntry_:
    token = SUPPORTED_TOKENS[symbol]
    quote_token = SUPPORTED_TOKENS[QUOTE_SYMBOL]

    # Price of one whole token
    resp = await get_price(token.address, quote_token.address, 10**token.decimals)
    if resp.get("buyAmount") is None:
        raise ValueError(f"No price quote received for {symbol}")

    price = int(resp["buyAmount"]) / 10**quote_token.decimals
    logger.debug("Price for %s is %s", symbol, price)

    return PriceFeedEntry_(
        price=str(price),
        estimatedGas=str(resp.get("gas") or resp.get("estimatedGas") or "0"),
        decimals=token.decimals,
    )
