"""Fixed-point money helpers.

All monetary values in the domain are ``Decimal`` quantized to cents.
Storage keeps integer cents so database-side increments stay exact.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable, Union

from envelope_ledger.domain.exceptions import InvalidAmountError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

MoneyLike = Union[Decimal, int, str]


def to_money(value: MoneyLike) -> Decimal:
    """Parse a value into a Decimal rounded to cents.

    Floats are rejected; they cannot represent most cent amounts exactly.
    """
    if isinstance(value, float):
        raise InvalidAmountError(f"Float amounts are not accepted: {value!r}")
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as e:
        raise InvalidAmountError(f"Malformed amount: {value!r}") from e
    if not amount.is_finite():
        raise InvalidAmountError(f"Malformed amount: {value!r}")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def parse_money(value: MoneyLike) -> Decimal:
    """Parse external input exactly; sub-cent precision is malformed, not rounded"""
    amount = to_money(value)
    if Decimal(value) != amount:
        raise InvalidAmountError(f"Amount {value!r} has more than two decimal places")
    return amount


def to_cents(amount: Decimal) -> int:
    return int(to_money(amount) * 100)


def from_cents(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(CENT)


def total(amounts: Iterable[Decimal]) -> Decimal:
    return sum((to_money(a) for a in amounts), ZERO)


def require_positive(amount: Decimal, what: str = "amount") -> Decimal:
    amount = to_money(amount)
    if amount <= ZERO:
        raise InvalidAmountError(f"{what} must be positive, got {amount}")
    return amount


def require_non_zero(amount: Decimal, what: str = "amount") -> Decimal:
    amount = to_money(amount)
    if amount == ZERO:
        raise InvalidAmountError(f"{what} must not be zero")
    return amount
