"""
Currency-tagged exact decimal amounts.

Money is used for every price and quantity in the depth model. Prices carry
the quote currency of their pair, quantities the base currency, so mixing the
two by accident fails loudly instead of producing a meaningless number.
"""

from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from msgspec import Struct

from depthfeed.infrastructure.exceptions import CurrencyMismatchError
from .types import CurrencyCode, RawNumber


def to_decimal(value: RawNumber) -> Decimal:
    """
    Convert a raw exchange value to a finite Decimal.

    Floats go through str() so 0.1 stays 0.1 instead of its binary expansion.

    Raises:
        ValueError: value is not a finite decimal number
    """
    if isinstance(value, bool):
        raise ValueError(f"Boolean is not a decimal number: {value!r}")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, (float, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValueError(f"Unparsable decimal: {value!r}") from None
    else:
        raise ValueError(f"Unsupported numeric type {type(value).__name__}: {value!r}")

    if not result.is_finite():
        raise ValueError(f"Non-finite decimal: {value!r}")
    return result


class Money(Struct, frozen=True):
    """Immutable decimal amount tagged with a currency code."""
    amount: Decimal
    currency: Optional[CurrencyCode] = None

    @classmethod
    def of(cls, value: RawNumber, currency: Optional[str] = None) -> "Money":
        return cls(to_decimal(value), CurrencyCode(currency) if currency else None)

    @classmethod
    def zero(cls, currency: Optional[str] = None) -> "Money":
        return cls(Decimal(0), CurrencyCode(currency) if currency else None)

    def _check_currency(self, other: "Money", operation: str) -> None:
        if not isinstance(other, Money):
            raise TypeError(f"Cannot {operation} Money and {type(other).__name__}")
        if self.currency != other.currency:
            raise CurrencyMismatchError(
                f"Cannot {operation} {self.currency} and {other.currency}"
            )

    def __add__(self, other: "Money") -> "Money":
        self._check_currency(other, "add")
        return Money(self.amount + other.amount, self.currency)

    def __sub__(self, other: "Money") -> "Money":
        self._check_currency(other, "subtract")
        return Money(self.amount - other.amount, self.currency)

    def __mul__(self, factor: Union[int, Decimal]) -> "Money":
        if isinstance(factor, Money):
            raise TypeError("Cannot multiply Money by Money")
        return Money(self.amount * to_decimal(factor), self.currency)

    __rmul__ = __mul__

    def __neg__(self) -> "Money":
        return Money(-self.amount, self.currency)

    def __lt__(self, other: "Money") -> bool:
        self._check_currency(other, "compare")
        return self.amount < other.amount

    def __le__(self, other: "Money") -> bool:
        self._check_currency(other, "compare")
        return self.amount <= other.amount

    def __gt__(self, other: "Money") -> bool:
        self._check_currency(other, "compare")
        return self.amount > other.amount

    def __ge__(self, other: "Money") -> bool:
        self._check_currency(other, "compare")
        return self.amount >= other.amount

    def is_positive(self) -> bool:
        return self.amount > 0

    def __str__(self) -> str:
        if self.currency:
            return f"{self.amount} {self.currency}"
        return str(self.amount)
