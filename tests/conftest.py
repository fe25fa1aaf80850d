import pytest

from chaindata.evm.token_lists import SUPPORTED_TOKENS
from wallet.store import TokenStore

USDC_ADDRESS = SUPPORTED_TOKENS["USDC"].address
EURC_ADDRESS = SUPPORTED_TOKENS["EURC"].address
WETH_ADDRESS = SUPPORTED_TOKENS["WETH"].address
CBBTC_ADDRESS = SUPPORTED_TOKENS["CBBTC"].address

WALLET_ADDRESS = "0x" + "ab" * 20


class FakeClock:
    def __init__(self, now: int = 1_700_000_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> TokenStore:
    return TokenStore(clock=clock)


@pytest.fixture
def price_feed() -> dict:
    return {
        "USDC": {"price": "1", "estimatedGas": "0", "decimals": 6},
        "EURC": {"price": "1.1", "estimatedGas": "21000", "decimals": 6},
        "WETH": {"price": "3000", "estimatedGas": "21000", "decimals": 18},
        "CBBTC": {"price": "60000", "estimatedGas": "21000", "decimals": 8},
    }


@pytest.fixture
def balance_feed() -> list:
    return [
        {
            "address": USDC_ADDRESS.lower(),
            "amount": "1500000",
            "decimals": 6,
            "symbol": "USDC",
            "chain_id": 8453,
        },
        {
            "address": WETH_ADDRESS,
            "amount": str(2 * 10**18),
            "decimals": 18,
            "symbol": "WETH",
            "chain_id": 8453,
        },
    ]


@pytest.fixture
def funded_store(store: TokenStore, price_feed: dict, balance_feed: list) -> TokenStore:
    store.update_prices(price_feed)
    store.update_balances(balance_feed)
    return store
