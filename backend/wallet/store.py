import logging
import time
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict

from chaindata.evm.token_lists import (
    SUPPORTED_TOKENS,
    build_address_index,
    get_stablecoin_symbols,
)
from chaindata.evm.typing import BalanceFeedEntry_, PriceFeedEntry_, TokenConfig_
from tools.display import format_units
from wallet.typing import (
    LoadingState,
    OptimisticSwapStatus,
    OptimisticUpdateState,
    TokenBalance,
    TokenPrice,
)

logger = logging.getLogger(__name__)

Selector = Callable[["TokenStore"], Any]
Listener = Callable[[Any, Any], None]


def now_ms() -> int:
    return int(time.time() * 1000)


class StoreState(BaseModel):
    model_config = ConfigDict(frozen=True)

    balances: Dict[str, TokenBalance]
    prices: Dict[str, TokenPrice]
    balance_loading_state: LoadingState
    price_loading_state: LoadingState
    optimistic_update: OptimisticUpdateState


class _Subscription:
    __slots__ = ("listener", "selector")

    def __init__(self, listener: Listener, selector: Selector):
        self.listener = listener
        self.selector = selector


def create_initial_balances(tokens: Dict[str, TokenConfig_]) -> Dict[str, TokenBalance]:
    return {
        symbol: TokenBalance(
            symbol=symbol,
            value=0,
            decimals=token.decimals,
            formatted=format_units(0, token.decimals),
        )
        for symbol, token in tokens.items()
    }


def create_initial_prices(tokens: Dict[str, TokenConfig_]) -> Dict[str, TokenPrice]:
    return {symbol: TokenPrice() for symbol in tokens}


class TokenStore:
    """Current balances and prices of one wallet.

    Provider snapshots replace the balances wholesale. Swaps can be applied
    optimistically and later confirmed or reverted. Only one optimistic swap
    may be pending at a time, and balance snapshots that arrive while it is
    pending are held back until it settles.

    State is only replaced, never mutated in place, so readers can keep
    references to the maps they were handed.
    """

    def __init__(
        self,
        tokens: Optional[Dict[str, TokenConfig_]] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.tokens = SUPPORTED_TOKENS if tokens is None else tokens
        self._clock = clock
        self._symbol_by_address = build_address_index(self.tokens)
        self._stablecoin_symbols = set(get_stablecoin_symbols(self.tokens))

        self._balances = create_initial_balances(self.tokens)
        self._prices = create_initial_prices(self.tokens)
        self._balance_loading_state = LoadingState()
        self._price_loading_state = LoadingState()
        self._optimistic_update = OptimisticUpdateState()
        self._deferred_balance_feed: Optional[List[BalanceFeedEntry_]] = None
        self._subscriptions: List[_Subscription] = []

    @property
    def balances(self) -> Mapping[str, TokenBalance]:
        return MappingProxyType(self._balances)

    @property
    def prices(self) -> Mapping[str, TokenPrice]:
        return MappingProxyType(self._prices)

    @property
    def balance_loading_state(self) -> LoadingState:
        return self._balance_loading_state

    @property
    def price_loading_state(self) -> LoadingState:
        return self._price_loading_state

    @property
    def optimistic_update(self) -> OptimisticUpdateState:
        return self._optimistic_update

    @property
    def has_deferred_balances(self) -> bool:
        return self._deferred_balance_feed is not None

    def get_state(self) -> StoreState:
        return StoreState(
            balances=self._balances,
            prices=self._prices,
            balance_loading_state=self._balance_loading_state,
            price_loading_state=self._price_loading_state,
            optimistic_update=self._optimistic_update,
        )

    def subscribe(
        self, listener: Listener, selector: Optional[Selector] = None
    ) -> Callable[[], None]:
        """Calls `listener(new, old)` whenever the selected slice changes.

        Without a selector the listener sees the whole `StoreState`.
        Returns a callable that removes the subscription.
        """
        subscription = _Subscription(
            listener, selector if selector is not None else TokenStore.get_state
        )
        self._subscriptions.append(subscription)

        def unsubscribe():
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

        return unsubscribe

    def _commit(self, **changes):
        subscriptions = list(self._subscriptions)
        previous = [sub.selector(self) for sub in subscriptions]

        for name, value in changes.items():
            setattr(self, f"_{name}", value)

        for sub, before in zip(subscriptions, previous):
            after = sub.selector(self)
            if after != before:
                sub.listener(after, before)

    def _with_value(self, balance: TokenBalance, value: int, timestamp: int) -> TokenBalance:
        formatted = format_units(value, balance.decimals)
        price = self._prices[balance.symbol].price
        return balance.model_copy(
            update={
                "value": value,
                "formatted": formatted,
                "usd_value": price * float(formatted),
                "last_updated": timestamp,
                "error": False,
            }
        )

    def update_balances(
        self, feed: Iterable[Union[BalanceFeedEntry_, dict]]
    ) -> bool:
        """Reconciles balances with a provider snapshot.

        Returns False when the snapshot was deferred because an optimistic
        swap is pending.
        """
        entries = [
            entry
            if isinstance(entry, BalanceFeedEntry_)
            else BalanceFeedEntry_.model_validate(entry)
            for entry in feed
        ]

        if self._optimistic_update.is_active:
            logger.info(
                "Deferring balance snapshot while optimistic swap %s is pending",
                self._optimistic_update.tx_hash,
            )
            self._deferred_balance_feed = entries
            return False

        self._apply_balance_feed(entries)
        return True

    def _apply_balance_feed(self, entries: List[BalanceFeedEntry_]):
        timestamp = self._clock()

        balances = {
            symbol: self._with_value(balance, 0, timestamp)
            for symbol, balance in self._balances.items()
        }

        for entry in entries:
            symbol = self._symbol_by_address.get(entry.address.lower())
            if symbol is None:
                logger.debug("Ignoring balance for unsupported token %s", entry.address)
                continue

            balances[symbol] = self._with_value(balances[symbol], entry.amount, timestamp)

        self._commit(
            balances=balances,
            balance_loading_state=LoadingState(
                is_loading=False, error=None, last_fetch=timestamp
            ),
        )

    def update_prices(self, feed: Mapping[str, Union[PriceFeedEntry_, dict]]):
        timestamp = self._clock()
        prices = dict(self._prices)
        balances = dict(self._balances)

        for symbol, data in feed.items():
            if symbol not in prices:
                logger.debug("Ignoring price for unsupported token %s", symbol)
                continue

            if not isinstance(data, PriceFeedEntry_):
                data = PriceFeedEntry_.model_validate(data)

            price = float(data.price)
            prices[symbol] = TokenPrice(
                price=price, estimated_gas=data.estimatedGas, last_updated=timestamp
            )
            balance = balances[symbol]
            balances[symbol] = balance.model_copy(
                update={"usd_value": price * float(balance.formatted)}
            )

        self._commit(
            prices=prices,
            balances=balances,
            price_loading_state=LoadingState(
                is_loading=False, error=None, last_fetch=timestamp
            ),
        )

    def set_balance_loading(self, loading: bool):
        self._commit(
            balance_loading_state=self._balance_loading_state.model_copy(
                update={"is_loading": loading}
            )
        )

    def set_balance_error(self, error: Optional[str]):
        self._commit(
            balance_loading_state=self._balance_loading_state.model_copy(
                update={"error": error, "is_loading": False}
            )
        )

    def set_price_loading(self, loading: bool):
        self._commit(
            price_loading_state=self._price_loading_state.model_copy(
                update={"is_loading": loading}
            )
        )

    def set_price_error(self, error: Optional[str]):
        self._commit(
            price_loading_state=self._price_loading_state.model_copy(
                update={"error": error, "is_loading": False}
            )
        )

    def clear_errors(self):
        self._commit(
            balance_loading_state=self._balance_loading_state.model_copy(
                update={"error": None}
            ),
            price_loading_state=self._price_loading_state.model_copy(
                update={"error": None}
            ),
        )

    def apply_optimistic_swap(
        self,
        sell_symbol: str,
        buy_symbol: str,
        sell_amount: int,
        buy_amount: int,
        tx_hash: Optional[str] = None,
    ) -> OptimisticSwapStatus:
        if sell_symbol not in self._balances or buy_symbol not in self._balances:
            return OptimisticSwapStatus.UNKNOWN_TOKEN

        if sell_amount < 0 or buy_amount < 0:
            return OptimisticSwapStatus.INVALID_AMOUNT

        if self._optimistic_update.is_active:
            logger.warning(
                "Refusing optimistic swap %s -> %s, swap %s still pending",
                sell_symbol,
                buy_symbol,
                self._optimistic_update.tx_hash,
            )
            return OptimisticSwapStatus.ALREADY_ACTIVE

        if sell_amount > self._balances[sell_symbol].value:
            return OptimisticSwapStatus.INSUFFICIENT_BALANCE

        timestamp = self._clock()
        original_balances = dict(self._balances)
        balances = dict(self._balances)

        sell_balance = balances[sell_symbol]
        balances[sell_symbol] = self._with_value(
            sell_balance, sell_balance.value - sell_amount, timestamp
        )
        # Read back so a same token swap nets out
        buy_balance = balances[buy_symbol]
        balances[buy_symbol] = self._with_value(
            buy_balance, buy_balance.value + buy_amount, timestamp
        )

        logger.info(
            "Applied optimistic swap of %s %s for %s %s",
            sell_amount,
            sell_symbol,
            buy_amount,
            buy_symbol,
        )
        self._commit(
            balances=balances,
            optimistic_update=OptimisticUpdateState(
                is_active=True, original_balances=original_balances, tx_hash=tx_hash
            ),
        )
        return OptimisticSwapStatus.APPLIED

    def revert_optimistic_swap(self) -> bool:
        original_balances = self._optimistic_update.original_balances
        if original_balances is None:
            return False

        logger.info("Reverting optimistic swap %s", self._optimistic_update.tx_hash)
        # Prices may have moved since the snapshot was taken
        balances = {
            symbol: balance.model_copy(
                update={
                    "usd_value": self._prices[symbol].price * float(balance.formatted)
                }
            )
            for symbol, balance in original_balances.items()
        }
        self._commit(
            balances=balances,
            optimistic_update=OptimisticUpdateState(),
        )

        deferred, self._deferred_balance_feed = self._deferred_balance_feed, None
        if deferred is not None:
            self._apply_balance_feed(deferred)

        return True

    def confirm_optimistic_swap(self):
        if self._deferred_balance_feed is not None:
            # Fetched before the swap landed, the next poll will reconcile
            logger.info("Dropping balance snapshot deferred during pending swap")
            self._deferred_balance_feed = None

        self._commit(optimistic_update=OptimisticUpdateState())

    def get_total_usd_value(self) -> float:
        return sum(balance.usd_value for balance in self._balances.values())

    def get_balance_by_symbol(self, symbol: str) -> Optional[TokenBalance]:
        return self._balances.get(symbol)

    def get_tokens_with_balance(self) -> List[TokenBalance]:
        return [balance for balance in self._balances.values() if balance.value > 0]

    def get_stablecoin_balance(self) -> float:
        return sum(
            balance.usd_value
            for symbol, balance in self._balances.items()
            if symbol in self._stablecoin_symbols
        )
