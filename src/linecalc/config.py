"""Evaluation settings for linecalc.

Settings are an explicit, immutable input to every document pass. They can be
built directly or loaded from LINECALC_* environment variables; invalid values
fail closed with SettingsConfigError.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from typing import Any, Final

logger = logging.getLogger(__name__)

ENV_DECIMAL_PLACES: Final[str] = "LINECALC_DECIMAL_PLACES"
ENV_SCIENTIFIC_UPPER: Final[str] = "LINECALC_SCIENTIFIC_UPPER"
ENV_SCIENTIFIC_LOWER: Final[str] = "LINECALC_SCIENTIFIC_LOWER"
ENV_TRIM_ZEROS: Final[str] = "LINECALC_TRIM_ZEROS"
ENV_GROUP_THOUSANDS: Final[str] = "LINECALC_GROUP_THOUSANDS"
ENV_LIVE_RESULTS: Final[str] = "LINECALC_LIVE_RESULTS"
ENV_MAX_FUNCTION_DEPTH: Final[str] = "LINECALC_MAX_FUNCTION_DEPTH"

DEFAULT_DECIMAL_PLACES: Final[int] = 6
DEFAULT_SCIENTIFIC_UPPER: Final[int] = 12
DEFAULT_SCIENTIFIC_LOWER: Final[int] = -4
DEFAULT_MAX_FUNCTION_DEPTH: Final[int] = 32
MAX_DECIMAL_PLACES: Final[int] = 15
# Formatting compares against 10.0 ** exponent; floats overflow past 1e308.
MAX_SCIENTIFIC_EXPONENT: Final[int] = 300
MAX_FUNCTION_DEPTH: Final[int] = 100

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


class SettingsConfigError(Exception):
    """Raised when evaluation settings are invalid."""


@dataclass(frozen=True)
class CalcSettings:
    """Display and evaluation settings (immutable).

    Attributes:
        decimal_places: Digits kept after the decimal point when formatting.
        scientific_upper_exponent: Magnitudes >= 10**this use scientific notation.
        scientific_lower_exponent: Non-zero magnitudes < 10**this use scientific notation.
        trim_trailing_zeros: Strip trailing fractional zeros from formatted numbers.
        group_thousands: Insert "," between groups of three integer digits.
        live_result_enabled: Evaluate lines that carry no explicit "=>" trigger.
        max_function_depth: Maximum nesting of user-defined function calls.
    """

    decimal_places: int = DEFAULT_DECIMAL_PLACES
    scientific_upper_exponent: int = DEFAULT_SCIENTIFIC_UPPER
    scientific_lower_exponent: int = DEFAULT_SCIENTIFIC_LOWER
    trim_trailing_zeros: bool = True
    group_thousands: bool = False
    live_result_enabled: bool = True
    max_function_depth: int = DEFAULT_MAX_FUNCTION_DEPTH

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if not 0 <= self.decimal_places <= MAX_DECIMAL_PLACES:
            raise SettingsConfigError(
                f"decimal_places must be between 0 and {MAX_DECIMAL_PLACES}, "
                f"got {self.decimal_places}"
            )
        if not 0 < self.scientific_upper_exponent <= MAX_SCIENTIFIC_EXPONENT:
            raise SettingsConfigError(
                f"scientific_upper_exponent must be between 1 and {MAX_SCIENTIFIC_EXPONENT}, "
                f"got {self.scientific_upper_exponent}"
            )
        if not -MAX_SCIENTIFIC_EXPONENT <= self.scientific_lower_exponent < 0:
            raise SettingsConfigError(
                f"scientific_lower_exponent must be between -{MAX_SCIENTIFIC_EXPONENT} and -1, "
                f"got {self.scientific_lower_exponent}"
            )
        if not 1 <= self.max_function_depth <= MAX_FUNCTION_DEPTH:
            raise SettingsConfigError(
                f"max_function_depth must be between 1 and {MAX_FUNCTION_DEPTH}, "
                f"got {self.max_function_depth}"
            )

    def with_overrides(self, **overrides: Any) -> CalcSettings:
        """Return a copy with the given fields replaced (validated again)."""
        unknown = set(overrides) - set(self.__dataclass_fields__)
        if unknown:
            raise SettingsConfigError(f"Unknown settings: {', '.join(sorted(unknown))}")
        return replace(self, **overrides)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dict for JSON output."""
        return {name: getattr(self, name) for name in self.__dataclass_fields__}


def _parse_int(env_var: str, default: int) -> int:
    raw = os.environ.get(env_var)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError as e:
        raise SettingsConfigError(f"{env_var} must be an integer, got '{raw}'") from e


def _parse_bool(env_var: str, default: bool) -> bool:
    raw = os.environ.get(env_var)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise SettingsConfigError(f"{env_var} must be a boolean flag, got '{raw}'")


def load_settings_from_env() -> CalcSettings:
    """Load evaluation settings from environment variables.

    Environment variables:
        LINECALC_DECIMAL_PLACES: Digits after the decimal point (default: 6)
        LINECALC_SCIENTIFIC_UPPER: Upper scientific-notation exponent (default: 12)
        LINECALC_SCIENTIFIC_LOWER: Lower scientific-notation exponent (default: -4)
        LINECALC_TRIM_ZEROS: Trim trailing zeros (default: 1)
        LINECALC_GROUP_THOUSANDS: Group thousands with "," (default: 0)
        LINECALC_LIVE_RESULTS: Enable live evaluation (default: 1)
        LINECALC_MAX_FUNCTION_DEPTH: User function call depth limit (default: 32)

    Returns:
        CalcSettings with validated values.

    Raises:
        SettingsConfigError: If any value is set but invalid.
    """
    settings = CalcSettings(
        decimal_places=_parse_int(ENV_DECIMAL_PLACES, DEFAULT_DECIMAL_PLACES),
        scientific_upper_exponent=_parse_int(ENV_SCIENTIFIC_UPPER, DEFAULT_SCIENTIFIC_UPPER),
        scientific_lower_exponent=_parse_int(ENV_SCIENTIFIC_LOWER, DEFAULT_SCIENTIFIC_LOWER),
        trim_trailing_zeros=_parse_bool(ENV_TRIM_ZEROS, True),
        group_thousands=_parse_bool(ENV_GROUP_THOUSANDS, False),
        live_result_enabled=_parse_bool(ENV_LIVE_RESULTS, True),
        max_function_depth=_parse_int(ENV_MAX_FUNCTION_DEPTH, DEFAULT_MAX_FUNCTION_DEPTH),
    )
    logger.debug("Loaded settings from environment: %s", settings)
    return settings
