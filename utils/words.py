"""Amount-in-words conversion"""

import logging
import math
from decimal import Decimal

from num2words import num2words

from config import settings
from .numbers import quantize_half_up

logger = logging.getLogger(__name__)


def _spell(number: int, lang: str) -> str:
    return num2words(number, lang=lang).replace("-", " ").replace(",", "").title()


def amount_in_words(amount: float, lang: str = None) -> str:
    """
    Spell out a currency amount in rupees and paise.

    Args:
        amount: Amount to convert; negative amounts are spelled as their magnitude
        lang: num2words language code, defaults to config

    Returns:
        Text such as "One Hundred Twenty Three Rupees And Forty Five Paise Only",
        or the empty placeholder when the amount is not finite or too large to spell
    """
    lang = lang or settings.WORDS_LANG
    if not math.isfinite(amount):
        return settings.EMPTY_VALUE
    value = abs(quantize_half_up(Decimal(str(amount)), 2))
    rupees = int(value)
    paise = int((value - rupees) * 100)

    parts = []
    try:
        if rupees > 0:
            parts.append(f"{_spell(rupees, lang)} Rupees")
        if paise > 0:
            parts.append(f"{_spell(paise, lang)} Paise")
    except OverflowError as e:
        logger.warning(f"Amount {amount} cannot be spelled out: {e}")
        return settings.EMPTY_VALUE
    if not parts:
        return "Zero Rupees Only"
    return " And ".join(parts) + " Only"
