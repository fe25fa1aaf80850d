import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from tools.typing import DisplayValue_
from chaindata.constants import ONE_TRILLION


POWER_LABELS = [(12, "T"), (9, "B"), (6, "M"), (3, "K")]
FORMATTED_PLACES = 6
VERY_SMALL_CUTOFF = 1e-2


def format_units(value: int, decimals: int, places: int = FORMATTED_PLACES) -> str:
    """Smallest-unit integer to a fixed point decimal string.

    >>> format_units(1500000, 6)
    '1.500000'
    """
    amount = Decimal(value).scaleb(-decimals)
    return str(amount.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP))


def round_to_n_sig_dig(x, n):
    if x == 0:
        return x
    float_res = round(x, -int(math.floor(math.log10(abs(x)))) + (n - 1))
    if int(float_res) == float_res:
        return int(float_res)

    return float_res


def money_approx(amount: float, prefix: str = "$", sig_digs: int = 3) -> str:
    sign = "-" if amount < 0 else ""
    amount = abs(amount)

    if amount >= 1000 * ONE_TRILLION:
        return f"{sign}{prefix}{amount:.2e}"

    if amount >= 1000:
        for power, label in POWER_LABELS:
            multiple = round_to_n_sig_dig(amount / 10**power, sig_digs)
            if multiple >= 1:
                return f"{sign}{prefix}{multiple}{label}"

    if amount == 0:
        return f"{prefix}0"

    if amount < VERY_SMALL_CUTOFF:
        # Dust balances still show a non zero value
        return f"<{prefix}{VERY_SMALL_CUTOFF}"

    return f"{sign}{prefix}{round_to_n_sig_dig(amount, sig_digs)}"


def money_approx_dv(value: Optional[float]) -> Optional[DisplayValue_]:
    if value is None:
        return None

    sig_digs = 3
    if abs(value) < 1:
        sig_digs = 2

    return DisplayValue_(
        value=value,
        display_value=money_approx(value, sig_digs=sig_digs),
    )
