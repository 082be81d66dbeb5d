"""Formatting utilities for common data types."""

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional


def format_initials_from_full_name(full_name: Optional[str]) -> str:
    """
    Generate dotted initials from a full name.

    Args:
        full_name: Full name (any number of parts)

    Returns:
        Initials (e.g., "J.D."), or "?" when the name is empty
    """
    if not full_name or not full_name.strip():
        return "?"

    parts = full_name.split()
    # First and last part only, middle names are dropped
    picked = [parts[0]] if len(parts) == 1 else [parts[0], parts[-1]]
    return "".join(f"{part[0].upper()}." for part in picked)


def round_money(amount: float | Decimal) -> float:
    """
    Round an amount or percentage to two decimals, half away from zero.

    Args:
        amount: Value to round

    Returns:
        Rounded value as float
    """
    quantized = Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return float(quantized)
