import datetime
import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Mapping, Optional

from chaindata.constants import ActivityTypes
from chaindata.evm.token_lists import SUPPORTED_TOKENS, get_symbol_by_address
from chaindata.evm.typing import ActivityEvent_, TokenConfig_
from tools.dictionary import get_from_dict
from wallet.typing import PortfolioPoint, TimeFrames, TokenBalance, TokenPrice

logger = logging.getLogger(__name__)

TIMEFRAME_DAYS = {
    TimeFrames.ONE_DAY: 1,
    TimeFrames.ONE_WEEK: 7,
    TimeFrames.TWO_WEEKS: 14,
    TimeFrames.ONE_MONTH: 30,
    TimeFrames.THREE_MONTHS: 90,
}

# Reversing an inflow removes it, reversing an outflow puts it back.
# Swaps need both legs and are not replayed.
REVERSAL_SIGN = {
    ActivityTypes.RECEIVE: -1,
    ActivityTypes.MINT: -1,
    ActivityTypes.SEND: 1,
    ActivityTypes.BURN: 1,
}


def event_day(event: ActivityEvent_) -> datetime.date:
    block_time = event.block_time
    if block_time.tzinfo is None:
        return block_time.date()
    return block_time.astimezone(datetime.timezone.utc).date()


def resolve_event_symbol(
    event: ActivityEvent_, tokens: Dict[str, TokenConfig_]
) -> Optional[str]:
    symbol = get_symbol_by_address(event.token_address, tokens)
    if symbol is not None:
        return symbol

    # Fall back to the indexer's metadata when the address is unknown
    symbol = get_from_dict(event, ["token_metadata", "symbol"])
    return symbol if symbol in tokens else None


def value_balances(
    balances: Mapping[str, int],
    prices: Mapping[str, TokenPrice],
    tokens: Dict[str, TokenConfig_],
) -> float:
    total = 0.0
    for symbol, amount in balances.items():
        token = tokens.get(symbol)
        if token is None:
            continue
        price = prices[symbol].price if symbol in prices else 0.0
        total += amount / 10**token.decimals * price

    return total


def build_portfolio_history(
    balances: Mapping[str, TokenBalance],
    prices: Mapping[str, TokenPrice],
    activities: Iterable[ActivityEvent_],
    timeframe: TimeFrames = TimeFrames.TWO_WEEKS,
    today: Optional[datetime.date] = None,
    tokens: Optional[Dict[str, TokenConfig_]] = None,
) -> List[PortfolioPoint]:
    """Daily portfolio value for the last `timeframe`, oldest day first.

    Starts from the current balances and walks back one day at a time,
    undoing the receives, mints, sends and burns that happened on the
    following day. Every day is valued at today's prices, and holdings that
    would go negative are clamped to zero.
    """
    tokens = SUPPORTED_TOKENS if tokens is None else tokens
    today = datetime.datetime.now(datetime.timezone.utc).date() if today is None else today
    num_days = TIMEFRAME_DAYS[TimeFrames(timeframe)]

    events_by_day = defaultdict(list)
    for event in activities:
        events_by_day[event_day(event)].append(event)

    current_balances = {
        symbol: balances[symbol].value if symbol in balances else 0 for symbol in tokens
    }
    history = [
        PortfolioPoint(date=today, value=value_balances(current_balances, prices, tokens))
    ]

    for days_back in range(1, num_days + 1):
        day = today - datetime.timedelta(days=days_back)
        next_day = day + datetime.timedelta(days=1)

        balances_for_day = dict(current_balances)
        for event in events_by_day.get(next_day, []):
            sign = REVERSAL_SIGN.get(event.type)
            if sign is None:
                continue

            symbol = resolve_event_symbol(event, tokens)
            if symbol is None:
                continue

            balances_for_day[symbol] += sign * event.value

        for symbol, amount in balances_for_day.items():
            if amount < 0:
                logger.debug(
                    "Clamping reconstructed %s balance on %s from %s to 0",
                    symbol,
                    day,
                    amount,
                )
                balances_for_day[symbol] = 0

        history.append(
            PortfolioPoint(date=day, value=value_balances(balances_for_day, prices, tokens))
        )
        current_balances = balances_for_day

    history.reverse()
    return history
