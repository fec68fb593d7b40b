"""Smallest-unit balance arithmetic.

Balances arrive as integers in the token's smallest unit (Planck for DOT)
and can exceed 64 bits, so everything here stays in Python ints; nothing
is routed through ``float``.
"""

from __future__ import annotations

from typing import Any


def to_planck(value: Any) -> int:
    """Coerce an API-provided balance field into a non-negative int."""

    if isinstance(value, bool) or isinstance(value, float):
        raise ValueError(f"Refusing non-integer balance value: {value!r}")
    if isinstance(value, int):
        amount = value
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            raise ValueError("Empty balance value")
        try:
            amount = int(text, 16) if text.lower().startswith("0x") else int(text, 10)
        except ValueError as exc:
            raise ValueError(f"Invalid balance value: {value!r}") from exc
    else:
        raise ValueError(f"Unsupported balance type: {type(value).__name__}")

    if amount < 0:
        raise ValueError(f"Negative balance value: {value!r}")
    return amount


def format_planck(value: int, decimals: int) -> str:
    """Render ``value`` with ``decimals`` fractional digits, trailing zeros trimmed."""

    if decimals < 0:
        raise ValueError("decimals must be >= 0")
    sign = "-" if value < 0 else ""
    whole, fraction = divmod(abs(value), 10 ** decimals)
    if decimals == 0 or fraction == 0:
        return f"{sign}{whole}"
    fraction_str = str(fraction).rjust(decimals, "0").rstrip("0")
    return f"{sign}{whole}.{fraction_str}"


def parse_amount(text: str, decimals: int) -> int:
    """Inverse of :func:`format_planck`: decimal string back to smallest units."""

    cleaned = text.strip()
    sign = 1
    if cleaned.startswith("-"):
        sign, cleaned = -1, cleaned[1:]
    whole, _, fraction = cleaned.partition(".")
    if not whole.isdigit() or (fraction and not fraction.isdigit()):
        raise ValueError(f"Invalid decimal amount: {text!r}")
    if len(fraction) > decimals:
        raise ValueError(f"{text!r} has more than {decimals} fractional digits")
    scaled = int(whole) * 10 ** decimals + int(fraction.ljust(decimals, "0") or "0")
    return sign * scaled
