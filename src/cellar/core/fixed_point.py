"""Checked fixed-point arithmetic on Decimal amounts.

Every amount is bounded by MAX_AMOUNT; anything that would leave
[0, MAX_AMOUNT] or divide by zero raises ArithmeticFaultError instead of
saturating or truncating.
"""

import decimal
from contextlib import contextmanager
from decimal import ROUND_DOWN, ROUND_UP, Decimal
from typing import Iterator

from cellar.core.exceptions import ArithmeticFaultError

ZERO = Decimal("0")
ONE = Decimal("1")

MAX_AMOUNT = Decimal(2**256 - 1)
UNLIMITED = MAX_AMOUNT

SHARE_DECIMALS = 18
PRICE_DECIMALS = 8

_CONTEXT = decimal.Context(
    prec=100,
    rounding=decimal.ROUND_HALF_EVEN,
    traps=[decimal.Overflow, decimal.DivisionByZero, decimal.InvalidOperation],
)


@contextmanager
def arithmetic_guard() -> Iterator[None]:
    """Run Decimal math in the vault context, surfacing faults as ArithmeticFaultError."""
    with decimal.localcontext(_CONTEXT):
        try:
            yield
        except decimal.DecimalException as e:
            raise ArithmeticFaultError(f"Decimal fault: {e!r}") from e


def checked(value: Decimal, what: str = "value") -> Decimal:
    """Ensure value is a finite amount inside [0, MAX_AMOUNT]."""
    if not value.is_finite():
        raise ArithmeticFaultError(f"{what} is not finite: {value}")
    if value < ZERO:
        raise ArithmeticFaultError(f"{what} underflows: {value}")
    if value > MAX_AMOUNT:
        raise ArithmeticFaultError(f"{what} overflows: {value}")
    return value


def checked_add(a: Decimal, b: Decimal, what: str = "sum") -> Decimal:
    with arithmetic_guard():
        return checked(a + b, what)


def checked_sub(a: Decimal, b: Decimal, what: str = "difference") -> Decimal:
    with arithmetic_guard():
        return checked(a - b, what)


def floor_sub(a: Decimal, b: Decimal) -> Decimal:
    """a - b floored at zero (for limits, not balances)."""
    return a - b if a > b else ZERO


def quantize(value: Decimal, decimals: int, rounding: str = ROUND_DOWN) -> Decimal:
    with arithmetic_guard():
        return value.quantize(Decimal(1).scaleb(-decimals), rounding=rounding)


def mul_div(
    a: Decimal,
    b: Decimal,
    c: Decimal,
    decimals: int,
    round_up: bool = False,
    what: str = "mul_div",
) -> Decimal:
    """Compute a * b / c quantized to `decimals`, rounding down unless round_up."""
    if c == ZERO:
        raise ArithmeticFaultError(f"{what}: division by zero")
    with arithmetic_guard():
        result = (a * b) / c
        result = result.quantize(
            Decimal(1).scaleb(-decimals),
            rounding=ROUND_UP if round_up else ROUND_DOWN,
        )
    return checked(result, what)


def fits_bits(value: Decimal, bits: int, decimals: int = PRICE_DECIMALS) -> bool:
    """Whether value in `decimals` fixed point fits an unsigned `bits`-bit integer."""
    if not value.is_finite() or value < ZERO:
        return False
    with arithmetic_guard():
        scaled = int(value.scaleb(decimals).to_integral_value(rounding=ROUND_DOWN))
    return scaled < 2**bits
