"""
Price / quantity string formatting for broker payloads.

Prices go out as fixed decimal strings (no exponent, no trailing zeros)
so that the broker and any later parser agree on the exact value.
"""

from __future__ import annotations

import math
from decimal import Decimal, InvalidOperation
from typing import Optional


def format_price(value: float) -> str:
    """
    Shortest decimal string that round-trips to `value`.

    45000.0 -> "45000", 1e-05 -> "0.00001", 0.1 -> "0.1"
    """
    if not math.isfinite(value):
        raise ValueError(f"cannot format non-finite price {value!r}")
    text = format(Decimal(repr(float(value))).normalize(), "f")
    if text in ("-0", ""):
        return "0"
    return text


def format_slippage(value: float) -> str:
    return f"{value:.6f}"


def parse_price_string(value: Optional[str]) -> Optional[float]:
    """
    Parse a decimal price string.

    Returns None for blank, unparsable, non-finite or non-positive input.
    """
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    try:
        parsed = float(Decimal(text))
    except (InvalidOperation, ValueError):
        return None
    if not math.isfinite(parsed) or parsed <= 0:
        return None
    return parsed
