"""Currency amount helpers.

Amounts are held as integers in minor units everywhere in the application.
The processor API speaks decimal major units.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Union

ZERO_DECIMAL_CURRENCIES = {"JPY", "KRW", "VND", "IDR", "CLP", "TWD"}


def currency_exponent(currency: str) -> int:
    """Number of minor-unit digits for a currency."""
    return 0 if currency.upper() in ZERO_DECIMAL_CURRENCIES else 2


def to_major_units(amount: int, currency: str) -> Decimal:
    """50000 HKD cents -> Decimal('500.00')."""
    exponent = currency_exponent(currency)
    quantum = Decimal(1).scaleb(-exponent)
    return (Decimal(amount) / (Decimal(10) ** exponent)).quantize(quantum)


def to_minor_units(amount: Union[int, float, str, Decimal], currency: str) -> int:
    """Decimal('500.00') HKD -> 50000."""
    exponent = currency_exponent(currency)
    value = Decimal(str(amount)) * (Decimal(10) ** exponent)
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))
