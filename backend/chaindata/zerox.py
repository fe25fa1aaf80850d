import os

from chaindata.constants import BASE_CHAIN_ID
from tools.http import req_get
from tools.rate_limiter import zerox_rate_limiter

ZEROX_API_KEY = os.getenv("ZEROX_API_KEY")
BASE_URL = "https://api.0x.org/swap/allowance-holder"

PRICE_RATE_LIMIT_KEY = "zerox-price"


async def get_price(
    sell_token_address: str,
    buy_token_address: str,
    sell_amount: int,
    chain_id: int = BASE_CHAIN_ID,
) -> dict:
    """Indicative price for selling `sell_amount` (smallest unit) of a token"""
    return await zerox_rate_limiter.execute(
        req_get,
        PRICE_RATE_LIMIT_KEY,
        f"{BASE_URL}/price",
        headers={"0x-api-key": ZEROX_API_KEY or "", "0x-version": "v2"},
        params={
            "sellToken": sell_token_address,
            "buyToken": buy_token_address,
            "sellAmount": str(sell_amount),
            "chainId": chain_id,
        },
    )
