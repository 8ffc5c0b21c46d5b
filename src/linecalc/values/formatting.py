"""Number formatting honoring precision, notation and grouping settings."""

from __future__ import annotations

import math
import re
from typing import Final

from linecalc.config import CalcSettings

_GROUPING: Final = re.compile(r"(\d)(?=(\d{3})+(?!\d))")
_EXPONENT: Final = re.compile(r"e([+-])0*(\d+)")


def _trim_zeros(text: str) -> str:
    if "." not in text:
        return text
    return text.rstrip("0").rstrip(".")


def _group(text: str) -> str:
    sign = "-" if text.startswith("-") else ""
    body = text[1:] if sign else text
    integer, dot, fraction = body.partition(".")
    grouped = _GROUPING.sub(r"\1,", integer)
    return f"{sign}{grouped}{dot}{fraction}"


def format_scientific(value: float, settings: CalcSettings) -> str:
    text = f"{value:.{settings.decimal_places}e}"
    mantissa, _, exponent = text.partition("e")
    if settings.trim_trailing_zeros:
        mantissa = _trim_zeros(mantissa)
    return _EXPONENT.sub(r"e\1\2", f"{mantissa}e{exponent}")


def format_number(value: float, settings: CalcSettings, decimal_places: int | None = None) -> str:
    """Format a number for display.

    Args:
        value: Number to format.
        settings: Display settings (precision, notation thresholds, grouping).
        decimal_places: Override for settings.decimal_places (currencies).

    Returns:
        Formatted string, e.g. ``11.524``, ``1.5e+12`` or ``1,234.5``.
    """
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"

    places = settings.decimal_places if decimal_places is None else decimal_places
    magnitude = abs(value)
    if magnitude != 0 and (
        magnitude >= 10.0**settings.scientific_upper_exponent
        or magnitude < 10.0**settings.scientific_lower_exponent
    ):
        return format_scientific(value, settings)

    rounded = round(value, places)
    if rounded == 0:
        rounded = 0.0
    if decimal_places is None and rounded == int(rounded):
        text = str(int(rounded))
    else:
        text = f"{rounded:.{places}f}"
        if settings.trim_trailing_zeros and decimal_places is None:
            text = _trim_zeros(text)
    if settings.group_thousands:
        text = _group(text)
    return text
