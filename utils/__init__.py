"""Utility modules"""

from .numbers import parse_float, to_number, quantize_half_up, round_half_up, format_amount, format_fixed, format_plain
from .words import amount_in_words

__all__ = [
    "parse_float",
    "to_number",
    "quantize_half_up",
    "round_half_up",
    "format_amount",
    "format_fixed",
    "format_plain",
    "amount_in_words",
]
