"""Physical dimension vectors.

A Dimension is an immutable vector of rational exponents over eight base
quantities. Multiplying units adds exponents, dividing subtracts them and
raising to a power scales them.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from fractions import Fraction

# Order used for SI-style rendering ("kg*m/s^2"), not the storage order.
_DISPLAY_ORDER: tuple[tuple[str, str], ...] = (
    ("mass", "kg"),
    ("length", "m"),
    ("time", "s"),
    ("current", "A"),
    ("temperature", "K"),
    ("amount", "mol"),
    ("luminosity", "cd"),
    ("count", "count"),
)


def _as_fraction(value: int | float | Fraction) -> Fraction:
    if isinstance(value, Fraction):
        return value
    if isinstance(value, int):
        return Fraction(value)
    return Fraction(value).limit_denominator(1000)


@dataclass(frozen=True, slots=True)
class Dimension:
    """Exponents over length, mass, time, current, temperature, amount, luminosity, count."""

    length: Fraction = Fraction(0)
    mass: Fraction = Fraction(0)
    time: Fraction = Fraction(0)
    current: Fraction = Fraction(0)
    temperature: Fraction = Fraction(0)
    amount: Fraction = Fraction(0)
    luminosity: Fraction = Fraction(0)
    count: Fraction = Fraction(0)

    @classmethod
    def of(cls, **exponents: int | float | Fraction) -> Dimension:
        """Build a dimension from keyword exponents, e.g. ``Dimension.of(length=1, time=-1)``."""
        return cls(**{name: _as_fraction(value) for name, value in exponents.items()})

    def components(self) -> tuple[Fraction, ...]:
        return tuple(getattr(self, f.name) for f in fields(self))

    def multiply(self, other: Dimension) -> Dimension:
        pairs = zip(self.components(), other.components(), strict=True)
        return Dimension(*(a + b for a, b in pairs))

    def divide(self, other: Dimension) -> Dimension:
        pairs = zip(self.components(), other.components(), strict=True)
        return Dimension(*(a - b for a, b in pairs))

    def power(self, exponent: int | float | Fraction) -> Dimension:
        scale = _as_fraction(exponent)
        return Dimension(*(a * scale for a in self.components()))

    @property
    def is_dimensionless(self) -> bool:
        return all(c == 0 for c in self.components())

    def __str__(self) -> str:
        return format_dimension(self)


DIMENSIONLESS = Dimension()
LENGTH = Dimension.of(length=1)
MASS = Dimension.of(mass=1)
TIME = Dimension.of(time=1)
CURRENT = Dimension.of(current=1)
TEMPERATURE = Dimension.of(temperature=1)
AMOUNT = Dimension.of(amount=1)
LUMINOSITY = Dimension.of(luminosity=1)
COUNT = Dimension.of(count=1)


def _format_exponent(symbol: str, exponent: Fraction) -> str:
    if exponent == 1:
        return symbol
    if exponent.denominator == 1:
        return f"{symbol}^{exponent.numerator}"
    return f"{symbol}^({exponent.numerator}/{exponent.denominator})"


def format_dimension(dimension: Dimension) -> str:
    """Render a dimension in SI base-unit form.

    Examples: ``kg*m/s^2`` for force, ``1/s`` for frequency, ``1`` for
    dimensionless.
    """
    numerator: list[str] = []
    denominator: list[str] = []
    for name, symbol in _DISPLAY_ORDER:
        exponent = getattr(dimension, name)
        if exponent > 0:
            numerator.append(_format_exponent(symbol, exponent))
        elif exponent < 0:
            denominator.append(_format_exponent(symbol, -exponent))

    if not numerator and not denominator:
        return "1"
    top = "*".join(numerator) if numerator else "1"
    if not denominator:
        return top
    return f"{top}/{'*'.join(denominator)}"
