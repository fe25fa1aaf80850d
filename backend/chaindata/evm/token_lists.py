import logging
from typing import Dict, List, Optional

from web3 import Web3

from chaindata.constants import TokenCategories
from chaindata.evm.typing import TokenConfig_

logger = logging.getLogger(__name__)

# Single source of truth for the tokens the wallet tracks on Base
SUPPORTED_TOKENS: Dict[str, TokenConfig_] = {
    "USDC": TokenConfig_(
        address="0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
        decimals=6,
        symbol="USDC",
        display_symbol="USD",
        name="USD Coin",
        is_stablecoin=True,
        category=TokenCategories.STABLECOIN,
    ),
    "EURC": TokenConfig_(
        address="0x60a3E35Cc302bFA44Cb288Bc5a4F316Fdb1adb42",
        decimals=6,
        symbol="EURC",
        display_symbol="EUR",
        name="Euro Coin",
        is_stablecoin=True,
        category=TokenCategories.STABLECOIN,
    ),
    "WETH": TokenConfig_(
        address="0x4200000000000000000000000000000000000006",
        decimals=18,
        symbol="WETH",
        display_symbol="ETH",
        name="Wrapped Ethereum",
    ),
    "CBBTC": TokenConfig_(
        address="0xcbB7C0000aB88B473b1f5aFd9ef808440eed33Bf",
        decimals=8,
        symbol="CBBTC",
        display_symbol="BTC",
        name="Coinbase Wrapped BTC",
    ),
}


def build_address_index(tokens: Dict[str, TokenConfig_]) -> Dict[str, str]:
    """Lowercased address -> symbol"""
    return {token.address.lower(): symbol for symbol, token in tokens.items()}


_SYMBOL_BY_ADDRESS = build_address_index(SUPPORTED_TOKENS)


def get_symbol_by_address(
    address: Optional[str], tokens: Optional[Dict[str, TokenConfig_]] = None
) -> Optional[str]:
    if not address:
        return None

    if tokens is None:
        return _SYMBOL_BY_ADDRESS.get(address.lower())

    return build_address_index(tokens).get(address.lower())


def is_whitelisted_address(address: str) -> bool:
    return address.lower() in _SYMBOL_BY_ADDRESS


def get_stablecoin_symbols(tokens: Optional[Dict[str, TokenConfig_]] = None) -> List[str]:
    tokens = SUPPORTED_TOKENS if tokens is None else tokens
    return [symbol for symbol, token in tokens.items() if token.is_stablecoin]


def is_valid_wallet_address(address: str) -> bool:
    return address.startswith("0x") and Web3.is_address(address)
