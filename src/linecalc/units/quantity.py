"""Quantity arithmetic: values paired with composite units."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Final

from linecalc.errors import (
    ConversionError,
    DimensionMismatchError,
    DivisionByZeroError,
    InvalidOperationError,
)
from linecalc.units.composite import CompositeUnit
from linecalc.units.dimension import Dimension, format_dimension
from linecalc.units.registry import RegistryView


def _checked_value(value: float) -> float:
    if isinstance(value, complex) or not math.isfinite(value):
        raise InvalidOperationError("Result is not a finite real number")
    return value


@dataclass(frozen=True, slots=True)
class Quantity:
    """An immutable ``(value, unit)`` pair. Operations return new quantities."""

    value: float
    unit: CompositeUnit

    @property
    def dimension(self) -> Dimension:
        return self.unit.dimension

    @property
    def is_dimensionless(self) -> bool:
        return self.unit.dimension.is_dimensionless

    def is_compatible_with(self, other: Quantity) -> bool:
        return self.unit.is_compatible_with(other.unit)

    def _require_compatible(self, other: Quantity, operation: str) -> None:
        if not self.is_compatible_with(other):
            raise DimensionMismatchError(
                operation, format_dimension(self.dimension), format_dimension(other.dimension)
            )

    def _value_in_own_unit(self, other: Quantity) -> float:
        target_factor = self.unit.base_factor
        if target_factor == 0:
            raise ConversionError(f"Cannot convert into {self.unit}: unit has no scale")
        return other.value * other.unit.base_factor / target_factor

    def add(self, other: Quantity) -> Quantity:
        """Add ``other`` converted into this quantity's unit; the left unit is kept."""
        self._require_compatible(other, "add")
        return Quantity(_checked_value(self.value + self._value_in_own_unit(other)), self.unit)

    def subtract(self, other: Quantity) -> Quantity:
        self._require_compatible(other, "subtract")
        return Quantity(_checked_value(self.value - self._value_in_own_unit(other)), self.unit)

    def multiply(self, other: Quantity | float) -> Quantity:
        if isinstance(other, Quantity):
            unit = self.unit.multiply(other.unit)
            return Quantity(_checked_value(self.value * other.value), unit)
        return Quantity(_checked_value(self.value * other), self.unit)

    def divide(self, other: Quantity | float) -> Quantity:
        if isinstance(other, Quantity):
            if other.value == 0:
                raise DivisionByZeroError()
            return Quantity(_checked_value(self.value / other.value), self.unit.divide(other.unit))
        if other == 0:
            raise DivisionByZeroError()
        return Quantity(_checked_value(self.value / other), self.unit)

    def power(self, exponent: float) -> Quantity:
        if self.value == 0 and exponent < 0:
            raise DivisionByZeroError()
        try:
            raised = self.value**exponent
        except OverflowError as e:
            raise InvalidOperationError("Result is too large") from e
        return Quantity(_checked_value(raised), self.unit.power(exponent))

    def negate(self) -> Quantity:
        return Quantity(-self.value, self.unit)

    def scaled(self, factor: float) -> Quantity:
        return Quantity(_checked_value(self.value * factor), self.unit)

    def base_value(self) -> float:
        """Value expressed in base SI units, offsets included for single units."""
        single = self.unit.single_unit
        if single is not None and single.has_offset:
            return self.value * single.factor + single.offset
        return self.value * self.unit.base_factor

    def convert_to(self, target: CompositeUnit) -> Quantity:
        """Convert into a compatible unit.

        Raises:
            DimensionMismatchError: If the dimensions differ.
            ConversionError: If an offset unit is part of a compound unit, or the
                target has no scale.
        """
        self._require_compatible(Quantity(0.0, target), "convert between")
        if self.unit.has_offset or target.has_offset:
            source_unit = self.unit.single_unit
            target_unit = target.single_unit
            if source_unit is None or target_unit is None:
                raise ConversionError(
                    "Temperature offsets can only be converted between single, unscaled units"
                )
            base = self.value * source_unit.factor + source_unit.offset
            converted = (base - target_unit.offset) / target_unit.factor
            return Quantity(_checked_value(converted), target)
        target_factor = target.base_factor
        if target_factor == 0 or not math.isfinite(target_factor):
            raise ConversionError(f"Cannot convert to {target}: unit has no scale")
        return Quantity(_checked_value(self.value * self.unit.base_factor / target_factor), target)

    def format_unit(self) -> str:
        return self.unit.format(self.value)

    def __str__(self) -> str:
        unit = self.format_unit()
        return f"{self.value:g} {unit}" if unit else f"{self.value:g}"


# (base symbol, lower bound on |value|, display symbol); first match wins.
_DISPLAY_THRESHOLDS: Final[dict[str, tuple[tuple[float, float, str], ...]]] = {
    "m": ((1000.0, math.inf, "km"), (0.0, 0.01, "mm")),
    "g": ((1000.0, math.inf, "kg"),),
    "kg": ((1000.0, math.inf, "t"), (0.0, 1.0, "g")),
    "A": ((0.0, 1.0, "mA"),),
    "W": ((1e6, math.inf, "MW"), (1000.0, 1e6, "kW")),
    "s": ((86400.0, math.inf, "day"), (3600.0, 86400.0, "h"), (60.0, 3600.0, "min")),
}


def best_display_quantity(quantity: Quantity, view: RegistryView) -> Quantity:
    """Pick a friendlier unit for display when the magnitude crosses a threshold.

    Only single base units of length, mass, current, power and time qualify.
    The returned quantity is for display only; callers keep the original for
    further arithmetic.
    """
    unit = quantity.unit.single_unit
    if unit is None:
        return quantity
    thresholds = _DISPLAY_THRESHOLDS.get(unit.symbol)
    if thresholds is None or unit.category not in ("length", "mass", "current", "power", "time"):
        return quantity
    magnitude = abs(quantity.value)
    if magnitude == 0:
        return quantity
    for low, high, symbol in thresholds:
        if low <= magnitude < high:
            target = view.try_resolve(symbol, allow_count=False)
            if target is None:
                return quantity
            return quantity.convert_to(CompositeUnit.of(target))
    return quantity
