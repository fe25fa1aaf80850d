from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from chaindata.constants import BASE_CHAIN_ID, ActivityTypes, TokenCategories


class TokenConfig_(BaseModel):
    model_config = ConfigDict(frozen=True)

    address: str
    decimals: int
    symbol: str
    display_symbol: str
    name: str
    chain_id: int = BASE_CHAIN_ID
    is_stablecoin: bool = False
    category: TokenCategories = TokenCategories.CRYPTO


class BalanceFeedEntry_(BaseModel):
    """One token balance as returned by the balance indexer."""

    address: str
    amount: int
    decimals: int
    symbol: Optional[str] = None
    chain_id: int = BASE_CHAIN_ID


class PriceFeedEntry_(BaseModel):
    price: str
    estimatedGas: str = "0"
    decimals: int


class ActivityTokenMetadata_(BaseModel):
    symbol: Optional[str] = None
    decimals: Optional[int] = None
    price_usd: Optional[float] = None


class ActivityEvent_(BaseModel):
    type: ActivityTypes
    token_address: Optional[str] = None
    value: int
    block_time: datetime
    asset_type: str
    chain_id: Optional[int] = None
    tx_hash: Optional[str] = None
    token_metadata: Optional[ActivityTokenMetadata_] = None


class ActivityPage_(BaseModel):
    activity: List[ActivityEvent_]
    next_offset: Optional[str] = None
