"""Numeric parsing, rounding and display helpers"""

import math
import re
from decimal import Decimal, ROUND_HALF_UP, localcontext
from typing import Any, Optional, Union

from config import settings

# Leading numeric prefix, the way browsers' parseFloat reads user input
FLOAT_PREFIX = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")
FULL_NUMBER = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")


def _finite(value: float) -> Optional[float]:
    return value if math.isfinite(value) else None


def parse_float(value: Any) -> Optional[float]:
    """
    Permissive float parsing.

    Reads the longest numeric prefix of a string ("12.5kg" -> 12.5).
    Returns None when nothing numeric is found.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        return _finite(float(value))
    match = FLOAT_PREFIX.match(str(value))
    if not match:
        return None
    return _finite(float(match.group(1)))


def to_number(value: Any) -> Optional[float]:
    """
    Strict numeric coercion.

    The whole string must be a number; blank strings and None count as 0.
    Returns None for anything else.
    """
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float, Decimal)):
        return _finite(float(value))
    text = str(value).strip()
    if not text:
        return 0.0
    if not FULL_NUMBER.match(text):
        return None
    return _finite(float(text))


def quantize_half_up(value: Union[float, Decimal], decimals: int = 2) -> Decimal:
    """
    Exact Decimal of a finite number rounded half-up to ``decimals`` places.

    Precision grows with the magnitude so large amounts never overflow the
    default 28-digit context.
    """
    number = Decimal(value)
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, number.adjusted() + decimals + 2)
        return number.quantize(Decimal(1).scaleb(-decimals), rounding=ROUND_HALF_UP)


def round_half_up(value: float, decimals: int = 2) -> float:
    """Round the exact binary value half-up, matching fixed-point display rounding"""
    if not math.isfinite(value):
        return value
    return float(quantize_half_up(value, decimals))


def format_plain(value: float) -> str:
    """Render a float without exponent notation"""
    if not math.isfinite(value):
        return settings.EMPTY_VALUE
    if value == int(value) and abs(value) < 1e15:
        return str(int(value))
    text = repr(value)
    if "e" in text or "E" in text:
        text = format(Decimal(value), "f")
    return text


def group_indian(integer_digits: str) -> str:
    """Group digits the Indian way: 12,34,567"""
    if len(integer_digits) <= 3:
        return integer_digits
    head, tail = integer_digits[:-3], integer_digits[-3:]
    pairs = []
    while len(head) > 2:
        pairs.insert(0, head[-2:])
        head = head[:-2]
    if head:
        pairs.insert(0, head)
    return ",".join(pairs + [tail])


def format_amount(value: float, decimals: int = 2) -> str:
    """Format a number with Indian digit grouping and fixed decimals"""
    if not math.isfinite(value):
        return settings.EMPTY_VALUE
    rounded = quantize_half_up(value, decimals)
    sign = "-" if rounded < 0 else ""
    text = format(abs(rounded), "f")
    integer, _, fraction = text.partition(".")
    grouped = group_indian(integer)
    return f"{sign}{grouped}.{fraction}" if fraction else f"{sign}{grouped}"


def format_fixed(value: float, decimals: int = 2) -> str:
    """Fixed decimals without grouping, e.g. 1234.5 -> '1234.50'"""
    if not math.isfinite(value):
        return settings.EMPTY_VALUE
    return format(quantize_half_up(value, decimals), "f")
