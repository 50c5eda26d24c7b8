"""
Unit Conversion
Exact decimal <-> base unit arithmetic, hex quantities and address checks
"""

import re
from decimal import Decimal, InvalidOperation, localcontext
from typing import Optional, Union

from .exceptions import InvalidAddress, InvalidAmount

Amount = Union[str, int, float, Decimal]

UINT256_MAX = 2**256 - 1

# UINT256_MAX is about 1.16e77
MAX_SCALED_DIGITS = 77

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
_HEX_RE = re.compile(r"^0x[0-9a-fA-F]*$")


def parse_amount(amount: Amount) -> Decimal:
    """
    Parse a human amount into a Decimal without going through binary floats

    Floats are converted via their shortest repr, so ``0.1`` parses as
    exactly ``Decimal("0.1")``.

    Raises:
        InvalidAmount: if the amount is not a positive finite number
    """
    if isinstance(amount, bool) or amount is None:
        raise InvalidAmount(f"Invalid amount: {amount!r}")

    if isinstance(amount, Decimal):
        value = amount
    else:
        text = repr(amount) if isinstance(amount, float) else str(amount).strip()
        try:
            value = Decimal(text)
        except InvalidOperation:
            raise InvalidAmount(f"Invalid amount: {amount!r}")

    if not value.is_finite() or value <= 0:
        raise InvalidAmount(f"Amount must be a positive number: {amount!r}")

    return value


def to_base_units(amount: Amount, decimals: int) -> int:
    """
    Scale a human amount to the smallest on-chain unit

    Works on the decimal digits directly so no rounding can occur. An amount
    carrying more fractional digits than ``decimals`` is rejected rather
    than truncated.

    Args:
        amount: Decimal string, int, float or Decimal
        decimals: Unit decimals (18 for most native currencies)

    Returns:
        Integer amount in base units
    """
    value = parse_amount(amount)
    _, digits, exponent = value.as_tuple()

    # Reject by magnitude before any power of ten is computed
    if value.adjusted() + decimals > MAX_SCALED_DIGITS:
        raise InvalidAmount(f"Amount {value} overflows uint256")

    shift = exponent + decimals
    if -shift > len(digits):
        raise InvalidAmount(
            f"Amount {value} has more than {decimals} decimal places"
        )

    coefficient = int("".join(str(d) for d in digits))
    if shift >= 0:
        scaled = coefficient * 10 ** shift
    else:
        divisor = 10 ** -shift
        if coefficient % divisor:
            raise InvalidAmount(
                f"Amount {value} has more than {decimals} decimal places"
            )
        scaled = coefficient // divisor

    if scaled > UINT256_MAX:
        raise InvalidAmount(f"Amount {value} overflows uint256")

    return scaled


def from_base_units(value: int, decimals: int) -> Decimal:
    """Convert base units back to a human Decimal"""
    with localcontext() as ctx:
        ctx.prec = 100
        return Decimal(value).scaleb(-decimals)


def format_decimal(value: Decimal) -> str:
    """Plain decimal string without exponent or trailing zeros"""
    if value == 0:
        return "0"
    with localcontext() as ctx:
        ctx.prec = 100
        return format(value.normalize(), "f")


def format_units(value: int, decimals: int) -> str:
    """Render base units as a plain decimal string, e.g. ``"0.00042"``"""
    return format_decimal(from_base_units(value, decimals))


def to_hex_quantity(value: int) -> str:
    """Big-integer hex string as used by JSON-RPC (``0x0`` for zero)"""
    if value < 0:
        raise ValueError(f"Quantity must be non-negative: {value}")
    return hex(value)


def is_hex_address(address: Optional[str]) -> bool:
    return isinstance(address, str) and bool(_ADDRESS_RE.match(address))


def normalize_address(address: Optional[str], field: str = "address") -> str:
    """
    Check address well-formedness and return its lower-case form

    Raises:
        InvalidAddress: if the value is not a 0x-prefixed 20-byte hex string
    """
    if not is_hex_address(address):
        raise InvalidAddress(address, field)
    return address.lower()


def is_hex_string(value: Optional[str]) -> bool:
    return isinstance(value, str) and bool(_HEX_RE.match(value))
