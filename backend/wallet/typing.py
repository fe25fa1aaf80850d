import datetime
from typing import Dict, List, Optional

from django.db import models
from pydantic import BaseModel, ConfigDict

from tools.typing import DisplayValue_


class TokenBalance(BaseModel):
    model_config = ConfigDict(frozen=True)

    symbol: str
    value: int = 0
    decimals: int
    formatted: str
    usd_value: float = 0.0
    loading: bool = False
    error: bool = False
    last_updated: int = 0


class TokenPrice(BaseModel):
    model_config = ConfigDict(frozen=True)

    price: float = 0.0
    estimated_gas: str = "0"
    last_updated: int = 0


class LoadingState(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_loading: bool = False
    error: Optional[str] = None
    last_fetch: int = 0


class OptimisticUpdateState(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_active: bool = False
    original_balances: Optional[Dict[str, TokenBalance]] = None
    tx_hash: Optional[str] = None


class OptimisticSwapStatus(models.TextChoices):
    APPLIED = "applied"
    ALREADY_ACTIVE = "already_active"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    UNKNOWN_TOKEN = "unknown_token"
    INVALID_AMOUNT = "invalid_amount"


class TimeFrames(models.TextChoices):
    ONE_DAY = "1d"
    ONE_WEEK = "7d"
    TWO_WEEKS = "14d"
    ONE_MONTH = "30d"
    THREE_MONTHS = "90d"


class PortfolioPoint(BaseModel):
    date: datetime.date
    value: float


class OptimisticSwapRequest_(BaseModel):
    sell_symbol: str
    buy_symbol: str
    sell_amount: int
    buy_amount: int
    tx_hash: Optional[str] = None


class OptimisticSwapResponse_(BaseModel):
    status: OptimisticSwapStatus
    balances: List[TokenBalance]


class WalletBalancesResponse_(BaseModel):
    balances: List[TokenBalance]
    total_usd_value: Optional[DisplayValue_] = None
    stablecoin_usd_value: Optional[DisplayValue_] = None
    loading_state: LoadingState
    optimistic_update_active: bool = False


class PortfolioHistoryResponse_(BaseModel):
    timeframe: TimeFrames
    points: List[PortfolioPoint]
