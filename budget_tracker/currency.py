"""
Currency and Decimal Helpers

Handles ISO 4217 currency precision, coercion of stored values to Decimal,
and display formatting. Amounts are accumulated at full precision and only
rounded when presented.
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation, getcontext
from enum import Enum
from typing import Any, Optional

# Set global decimal context for financial precision
getcontext().prec = 28

ZERO = Decimal('0')


class Currency(Enum):
    """ISO 4217 Currency Codes with precision info"""
    AUD = ("AUD", 2, "$")
    USD = ("USD", 2, "$")
    NZD = ("NZD", 2, "$")
    EUR = ("EUR", 2, "€")
    GBP = ("GBP", 2, "£")
    CAD = ("CAD", 2, "$")
    CHF = ("CHF", 2, "CHF ")
    JPY = ("JPY", 0, "¥")

    def __init__(self, code: str, precision: int, symbol: str):
        self.code = code
        self.precision = precision
        self.symbol = symbol

    @classmethod
    def from_code(cls, code: Optional[str]) -> Optional['Currency']:
        """Look up a currency by code; None for unknown codes"""
        if not code:
            return None
        try:
            return cls[code.upper()]
        except KeyError:
            return None


def to_decimal(value: Any, default: Decimal = ZERO) -> Decimal:
    """
    Coerce a stored or user-supplied value to Decimal.

    Floats go through str() so 0.1 becomes Decimal('0.1'), not its binary
    expansion. None and empty strings give the default.
    """
    if value is None or value == "":
        return default
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Not a monetary value: {value!r}")
    if isinstance(value, float):
        return Decimal(str(value))
    try:
        return Decimal(str(value).strip())
    except InvalidOperation:
        raise ValueError(f"Not a monetary value: {value!r}")


def round_money(amount: Any, currency_code: Optional[str] = None) -> Decimal:
    """Round to the currency's minor unit (2 places for unknown codes)"""
    currency = Currency.from_code(currency_code)
    precision = currency.precision if currency else 2
    return to_decimal(amount).quantize(Decimal('0.1') ** precision, rounding=ROUND_HALF_UP)


def format_currency(amount: Any, currency_code: Optional[str] = None) -> str:
    """Format for display, e.g. "AUD 1,234.50" or "-AUD 20.00" """
    currency = Currency.from_code(currency_code)
    code = currency.code if currency else (currency_code or "").upper()
    precision = currency.precision if currency else 2
    rounded = round_money(amount, currency_code)
    sign = "-" if rounded < 0 else ""
    body = f"{abs(rounded):,.{precision}f}"
    if code:
        return f"{sign}{code} {body}"
    return f"{sign}{body}"
