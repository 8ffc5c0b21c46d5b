"""Inclusive integer ranges: ``a..b`` and ``a..b step n``.

Text scans skip quoted string literals so a ".." inside quotes never makes a
line look like a range.
"""

from __future__ import annotations

import re
from typing import Final

from linecalc.errors import InvalidOperationError
from linecalc.values.base import SemanticValue
from linecalc.values.scalars import NumberValue

RANGE_OPERATOR: Final[str] = ".."
MAX_RANGE_LENGTH: Final[int] = 10_000

_STEP_KEYWORD: Final = re.compile(r"(?<![A-Za-z0-9_])step(?![A-Za-z0-9_])", re.IGNORECASE)


def _outside_strings(text: str) -> list[bool]:
    """Flag each character that sits outside '...' and "..." literals."""
    flags = [False] * len(text)
    quote: str | None = None
    escaped = False
    for index, char in enumerate(text):
        if quote is not None:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == quote:
                quote = None
            continue
        if char in "'\"":
            quote = char
            continue
        flags[index] = True
    return flags


def find_range_operator(text: str) -> int:
    """Offset of the first ".." outside string literals, or -1."""
    flags = _outside_strings(text)
    for index in range(len(text) - 1):
        if flags[index] and flags[index + 1] and text.startswith(RANGE_OPERATOR, index):
            return index
    return -1


def contains_range_operator(text: str) -> bool:
    return find_range_operator(text) >= 0


def _find_step_keyword(text: str) -> int:
    flags = _outside_strings(text)
    for match in _STEP_KEYWORD.finditer(text):
        if flags[match.start()]:
            return match.start()
    return -1


def is_range_candidate(text: str) -> bool:
    """Cheap shape check before parsing.

    Both endpoints must be present, a "step" keyword needs a value, and no
    part may hold a second range operator.
    """
    index = find_range_operator(text)
    if index < 0:
        return True
    left = text[:index].strip()
    rest = text[index + len(RANGE_OPERATOR) :].strip()
    if not left or not rest:
        return False
    step_index = _find_step_keyword(rest)
    right = (rest[:step_index] if step_index >= 0 else rest).strip()
    step = rest[step_index + 4 :].strip() if step_index >= 0 else ""
    if not right or (step_index >= 0 and not step):
        return False
    return not any(contains_range_operator(part) for part in (left, right, step))


def normalize_range_error(raw: str, message: str) -> str:
    """Keep range-specific messages; replace generic parser noise."""
    if "range" in message.lower():
        return message
    return f'Invalid range expression near "{raw}"'


def _shown(value: float) -> str:
    return str(int(value)) if value.is_integer() else f"{value:g}"


def integer_range(
    start: SemanticValue, stop: SemanticValue, step: SemanticValue | None = None
) -> list[int]:
    """Expand an inclusive range, descending when ``stop < start``.

    Raises:
        InvalidOperationError: Non-integer or unit-bearing bounds, a zero or
            wrongly signed step, or more than MAX_RANGE_LENGTH elements.
    """
    if not isinstance(start, NumberValue) or not isinstance(stop, NumberValue):
        raise InvalidOperationError("range endpoints must be unitless integers")
    for bound in (start.value, stop.value):
        if not bound.is_integer():
            raise InvalidOperationError(f"range endpoints must be integers (got {_shown(bound)})")
    first, last = int(start.value), int(stop.value)

    if step is None:
        increment = 1 if last >= first else -1
    else:
        if not isinstance(step, NumberValue):
            raise InvalidOperationError("range step must be a unitless integer")
        if not step.value.is_integer():
            raise InvalidOperationError(f"step must be an integer (got {_shown(step.value)})")
        increment = int(step.value)
        if increment == 0:
            raise InvalidOperationError("step cannot be 0")
        if last > first and increment < 0:
            raise InvalidOperationError("step must be positive for an increasing range")
        if last < first and increment > 0:
            raise InvalidOperationError("step must be negative for a decreasing range")

    count = (last - first) // increment + 1
    if count > MAX_RANGE_LENGTH:
        raise InvalidOperationError(
            f"range too large ({count} elements; max {MAX_RANGE_LENGTH})"
        )
    return list(range(first, last + (1 if increment > 0 else -1), increment))
