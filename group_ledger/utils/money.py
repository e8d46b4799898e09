"""Exact decimal helpers for balances, amounts and service rates.

Every monetary value in the ledger is a ``decimal.Decimal``. Floats are
refused outright so that ``0.1 + 0.2`` is always exactly ``0.3``.
"""
import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from group_ledger.exceptions import InvalidAmount

# Fractional digits kept in the database
SCALE = 6
# Fractional digits shown to people
DISPLAY_SCALE = 2

ZERO = Decimal(0)
_QUANTUM = Decimal(1).scaleb(-SCALE)

# Integer digits left by NUMERIC(18, 6) balances and NUMERIC(10, 6) rates
AMOUNT_INTEGER_DIGITS = 12
RATE_INTEGER_DIGITS = 4

_RATE_PATTERN = re.compile(r'^([0-9]*\.?[0-9]+)\s*([%％])?$')


def to_decimal(value: Decimal | str | int | None) -> Decimal:
    """Coerce a stored or user supplied value into a finite Decimal.

    ``None`` is treated as zero, matching empty numeric columns.
    """
    if value is None:
        return ZERO
    if isinstance(value, bool) or isinstance(value, float):
        raise InvalidAmount(f'Refusing non-decimal value {value!r}')
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation:
            raise InvalidAmount(f'Not a number: {value!r}') from None
    else:
        raise InvalidAmount(f'Unsupported amount type {type(value).__name__}')

    if not result.is_finite():
        raise InvalidAmount(f'Amount must be finite, got {value!r}')
    return result


def parse_amount(value: Decimal | str | int, allow_negative: bool = False) -> Decimal:
    """Parse a principal amount for a ledger operation.

    The result is quantized to the storage scale. Zero, including anything
    that rounds to zero, is always rejected. Negative amounts are only
    accepted for adjustments, which callers opt into with ``allow_negative``.
    """
    amount = fit_storage(to_decimal(value))
    if amount.is_zero():
        raise InvalidAmount(f'Amount must not be zero, got {value!r}')
    if amount < 0 and not allow_negative:
        raise InvalidAmount(f'Amount must be positive, got {amount}')
    return amount


def check_rate(rate: Decimal) -> Decimal:
    """Validate a numeric service rate and quantize it to the storage scale."""
    if rate < 0:
        raise InvalidAmount(f'Service rate must not be negative, got {rate}')
    return fit_storage(rate, RATE_INTEGER_DIGITS)


def parse_rate(value: Decimal | str | int) -> Decimal:
    """Parse a service rate given as a fraction (``0.03``) or percent (``3%``).

    A bare fraction above 1 is almost always a forgotten percent sign, so it
    is rejected; rates above 100% must be written with ``%``.
    """
    percent = False
    if isinstance(value, str):
        match = _RATE_PATTERN.match(value.strip())
        if not match:
            raise InvalidAmount(f'Not a service rate: {value!r}')
        rate = to_decimal(match.group(1))
        if match.group(2):
            rate, percent = rate / 100, True
    else:
        rate = to_decimal(value)

    if rate > 1 and not percent:
        raise InvalidAmount(f'Service rate {rate} is above 1, use a percent instead')
    return check_rate(rate)


def quantize(value: Decimal) -> Decimal:
    """Round to the storage scale."""
    return value.quantize(_QUANTUM, rounding=ROUND_HALF_UP)


def fit_storage(value: Decimal, integer_digits: int = AMOUNT_INTEGER_DIGITS) -> Decimal:
    """Quantize ``value``, refusing it when the column cannot hold the result."""
    limit = Decimal(10) ** integer_digits
    # Checked before quantizing too, huge exponents overflow the decimal context
    if abs(value) < limit:
        result = quantize(value)
        if abs(result) < limit:
            return result
    raise InvalidAmount(f'{value} does not fit in {integer_digits} integer digits')


def to_storage(value: Decimal) -> str:
    return f'{quantize(value):.{SCALE}f}'


def format_display(value: Decimal | str | int, digits: int = DISPLAY_SCALE) -> str:
    """Format for people: fixed ``digits`` fractional digits."""
    amount = to_decimal(value)
    quantum = Decimal(1).scaleb(-digits)
    return f'{amount.quantize(quantum, rounding=ROUND_HALF_UP):.{digits}f}'


def format_rate(rate: Decimal) -> str:
    """``Decimal('0.03')`` -> ``'3.00% (0.030000)'``"""
    return f'{format_display(rate * 100)}% ({to_storage(rate)})'


def decimal_min(a: Decimal, b: Decimal) -> Decimal:
    return a if a <= b else b


def decimal_max(a: Decimal, b: Decimal) -> Decimal:
    return a if a >= b else b
