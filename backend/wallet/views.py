import logging
import os
from typing import Dict

from aiocache import SimpleMemoryCache
from fastapi import APIRouter, Depends, HTTPException, Request

from chaindata.evm.token_lists import is_valid_wallet_address
from tools.display import money_approx_dv
from wallet.store import TokenStore
from wallet.sync import (
    PROVIDER_ERRORS,
    fetch_portfolio_history,
    refresh_balances,
    refresh_prices,
)
from wallet.typing import (
    OptimisticSwapRequest_,
    OptimisticSwapResponse_,
    OptimisticSwapStatus,
    PortfolioHistoryResponse_,
    TimeFrames,
    TokenPrice,
    WalletBalancesResponse_,
)

logger = logging.getLogger(__name__)
router = APIRouter()

# Seconds a wallet store is kept without requests
WALLET_STORE_TTL = int(os.getenv("WALLET_STORE_TTL", "3600"))

SWAP_STATUS_CODES = {
    OptimisticSwapStatus.ALREADY_ACTIVE: 409,
    OptimisticSwapStatus.INSUFFICIENT_BALANCE: 422,
    OptimisticSwapStatus.UNKNOWN_TOKEN: 422,
    OptimisticSwapStatus.INVALID_AMOUNT: 422,
}


class WalletStores:
    """One TokenStore per wallet address, owned by the app.

    Stores live in an in-memory cache and are evicted after ``ttl`` seconds
    without a request for that wallet.
    """

    def __init__(self, ttl: float = WALLET_STORE_TTL):
        self.ttl = ttl
        self._cache = SimpleMemoryCache(namespace="wallet_stores")

    async def get(self, user_address: str) -> TokenStore:
        key = user_address.lower()
        store = await self._cache.get(key)
        if store is None:
            logger.debug("Creating token store for %s", key)
            store = TokenStore()
        # Every access pushes the eviction back
        await self._cache.set(key, store, ttl=self.ttl)
        return store


def get_wallet_stores(request: Request) -> WalletStores:
    stores = getattr(request.app.state, "wallet_stores", None)
    if stores is None:
        stores = request.app.state.wallet_stores = WalletStores()
    return stores


async def get_wallet_store(
    user_address: str, stores: WalletStores = Depends(get_wallet_stores)
) -> TokenStore:
    if not is_valid_wallet_address(user_address):
        raise HTTPException(status_code=400, detail="Invalid wallet address format")
    return await stores.get(user_address)


def build_balances_response(store: TokenStore) -> WalletBalancesResponse_:
    return WalletBalancesResponse_(
        balances=list(store.balances.values()),
        total_usd_value=money_approx_dv(store.get_total_usd_value()),
        stablecoin_usd_value=money_approx_dv(store.get_stablecoin_balance()),
        loading_state=store.balance_loading_state,
        optimistic_update_active=store.optimistic_update.is_active,
    )


@router.get("/{user_address}/balances", response_model=WalletBalancesResponse_)
async def get_balances(
    user_address: str, store: TokenStore = Depends(get_wallet_store)
) -> WalletBalancesResponse_:
    await refresh_prices(store)
    await refresh_balances(store, user_address)
    return build_balances_response(store)


@router.get("/{user_address}/prices")
async def get_prices(
    user_address: str, store: TokenStore = Depends(get_wallet_store)
) -> Dict[str, TokenPrice]:
    await refresh_prices(store)
    if store.price_loading_state.error:
        raise HTTPException(status_code=502, detail=store.price_loading_state.error)
    return dict(store.prices)


@router.get("/{user_address}/portfolio_history", response_model=PortfolioHistoryResponse_)
async def get_portfolio_history(
    user_address: str,
    timeframe: TimeFrames = TimeFrames.TWO_WEEKS,
    store: TokenStore = Depends(get_wallet_store),
) -> PortfolioHistoryResponse_:
    try:
        points = await fetch_portfolio_history(store, user_address, timeframe)
    except PROVIDER_ERRORS as e:
        logger.warning("Fetching activity for %s failed: %s", user_address, e)
        raise HTTPException(status_code=502, detail="Failed to fetch activity")

    return PortfolioHistoryResponse_(timeframe=timeframe, points=points)


@router.post("/{user_address}/optimistic_swap", response_model=OptimisticSwapResponse_)
async def apply_optimistic_swap(
    user_address: str,
    request: OptimisticSwapRequest_,
    store: TokenStore = Depends(get_wallet_store),
) -> OptimisticSwapResponse_:
    status = store.apply_optimistic_swap(
        request.sell_symbol,
        request.buy_symbol,
        request.sell_amount,
        request.buy_amount,
        tx_hash=request.tx_hash,
    )
    if status != OptimisticSwapStatus.APPLIED:
        raise HTTPException(status_code=SWAP_STATUS_CODES[status], detail=status.value)

    return OptimisticSwapResponse_(status=status, balances=list(store.balances.values()))


@router.post("/{user_address}/optimistic_swap/confirm", response_model=WalletBalancesResponse_)
async def confirm_optimistic_swap(
    user_address: str, store: TokenStore = Depends(get_wallet_store)
) -> WalletBalancesResponse_:
    store.confirm_optimistic_swap()
    return build_balances_response(store)


@router.post("/{user_address}/optimistic_swap/revert", response_model=WalletBalancesResponse_)
async def revert_optimistic_swap(
    user_address: str, store: TokenStore = Depends(get_wallet_store)
) -> WalletBalancesResponse_:
    if not store.revert_optimistic_swap():
        raise HTTPException(status_code=409, detail="No optimistic swap to revert")
    return build_balances_response(store)
