"""Unit definitions and the built-in unit table.

Factors convert a value in the unit into the base SI unit of its dimension
(metre, kilogram, second, ampere, kelvin, mole, candela, count). Temperature
scales additionally carry an additive offset applied after the factor.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Final

from linecalc.units.dimension import (
    AMOUNT,
    COUNT,
    CURRENT,
    DIMENSIONLESS,
    LENGTH,
    LUMINOSITY,
    MASS,
    TEMPERATURE,
    TIME,
    Dimension,
)


@dataclass(frozen=True, slots=True)
class UnitDefinition:
    """A single named unit.

    Attributes:
        symbol: Canonical symbol used for display and simplification.
        name: Human-readable name.
        dimension: Physical dimension of the unit.
        factor: Multiplier converting a value in this unit to the base SI unit.
        offset: Additive offset to the base unit (temperature scales only).
        category: Category tag, e.g. "length", "alias", "count".
        plural: Display form used when the magnitude is not 1 (count units).
        aliases: Alternative spellings resolved to this definition.
        prefixable: Whether SI prefixes may be applied to the symbol.
        prefixed: Whether the symbol already carries an SI prefix.
    """

    symbol: str
    name: str
    dimension: Dimension
    factor: float
    offset: float = 0.0
    category: str = "other"
    plural: str | None = None
    aliases: tuple[str, ...] = ()
    prefixable: bool = False
    prefixed: bool = False

    @property
    def has_offset(self) -> bool:
        return self.offset != 0.0

    def display_symbol(self, magnitude: float | None = None) -> str:
        if self.plural and magnitude is not None and abs(magnitude) != 1:
            return self.plural
        return self.symbol


@dataclass(frozen=True, slots=True)
class SIPrefix:
    symbol: str
    name: str
    factor: float


SI_PREFIXES: Final[tuple[SIPrefix, ...]] = (
    SIPrefix("Y", "yotta", 1e24),
    SIPrefix("Z", "zetta", 1e21),
    SIPrefix("E", "exa", 1e18),
    SIPrefix("P", "peta", 1e15),
    SIPrefix("T", "tera", 1e12),
    SIPrefix("G", "giga", 1e9),
    SIPrefix("M", "mega", 1e6),
    SIPrefix("k", "kilo", 1e3),
    SIPrefix("h", "hecto", 1e2),
    SIPrefix("da", "deca", 1e1),
    SIPrefix("d", "deci", 1e-1),
    SIPrefix("c", "centi", 1e-2),
    SIPrefix("m", "milli", 1e-3),
    SIPrefix("µ", "micro", 1e-6),
    SIPrefix("μ", "micro", 1e-6),
    SIPrefix("u", "micro", 1e-6),
    SIPrefix("n", "nano", 1e-9),
    SIPrefix("p", "pico", 1e-12),
    SIPrefix("f", "femto", 1e-15),
    SIPrefix("a", "atto", 1e-18),
)

# Longest prefix first so "da" wins over "d".
PREFIXES_BY_LENGTH: Final[tuple[SIPrefix, ...]] = tuple(
    sorted(SI_PREFIXES, key=lambda p: len(p.symbol), reverse=True)
)

FORCE = Dimension.of(mass=1, length=1, time=-2)
ENERGY = Dimension.of(mass=1, length=2, time=-2)
POWER = Dimension.of(mass=1, length=2, time=-3)
PRESSURE = Dimension.of(mass=1, length=-1, time=-2)
VOLTAGE = Dimension.of(mass=1, length=2, time=-3, current=-1)
RESISTANCE = Dimension.of(mass=1, length=2, time=-3, current=-2)
CHARGE = Dimension.of(current=1, time=1)
FREQUENCY = Dimension.of(time=-1)
AREA = Dimension.of(length=2)
VOLUME = Dimension.of(length=3)
SPEED = Dimension.of(length=1, time=-1)

SECONDS_PER_DAY: Final[float] = 86400.0
SECONDS_PER_MONTH: Final[float] = 2629746.0
SECONDS_PER_YEAR: Final[float] = 31556952.0


def _u(
    symbol: str,
    name: str,
    dimension: Dimension,
    factor: float,
    category: str,
    *aliases: str,
    offset: float = 0.0,
    prefixable: bool = False,
    prefixed: bool = False,
) -> UnitDefinition:
    return UnitDefinition(
        symbol=symbol,
        name=name,
        dimension=dimension,
        factor=factor,
        offset=offset,
        category=category,
        aliases=aliases,
        prefixable=prefixable,
        prefixed=prefixed,
    )


BUILTIN_UNITS: Final[tuple[UnitDefinition, ...]] = (
    # length
    _u("m", "meter", LENGTH, 1.0, "length", "meter", "meters", "metre", "metres", prefixable=True),
    _u("km", "kilometer", LENGTH, 1000.0, "length", "kilometer", "kilometers", prefixed=True),
    _u("cm", "centimeter", LENGTH, 0.01, "length", "centimeter", "centimeters", prefixed=True),
    _u("mm", "millimeter", LENGTH, 0.001, "length", "millimeter", "millimeters", prefixed=True),
    _u("in", "inch", LENGTH, 0.0254, "length", "inch", "inches"),
    _u("ft", "foot", LENGTH, 0.3048, "length", "foot", "feet"),
    _u("yd", "yard", LENGTH, 0.9144, "length", "yard", "yards"),
    _u("mi", "mile", LENGTH, 1609.344, "length", "mile", "miles"),
    _u("nmi", "nautical mile", LENGTH, 1852.0, "length"),
    # mass
    _u(
        "kg", "kilogram", MASS, 1.0, "mass", "kilogram", "kilograms", "kilo", "kilos",
        prefixed=True,
    ),
    _u("g", "gram", MASS, 0.001, "mass", "gram", "grams", prefixable=True),
    _u("t", "tonne", MASS, 1000.0, "mass", "tonne", "tonnes", "ton", "tons"),
    _u("lb", "pound", MASS, 0.45359237, "mass", "lbs", "pound", "pounds"),
    _u("oz", "ounce", MASS, 0.028349523125, "mass", "ounce", "ounces"),
    _u("st", "stone", MASS, 6.35029318, "mass", "stone"),
    # time
    _u("s", "second", TIME, 1.0, "time", "sec", "secs", "second", "seconds", prefixable=True),
    _u("min", "minute", TIME, 60.0, "time", "mins", "minute", "minutes"),
    _u("h", "hour", TIME, 3600.0, "time", "hr", "hrs", "hour", "hours"),
    _u("day", "day", TIME, SECONDS_PER_DAY, "time", "days", "d"),
    _u("week", "week", TIME, 7 * SECONDS_PER_DAY, "time", "weeks", "wk"),
    _u("month", "month", TIME, SECONDS_PER_MONTH, "time", "months", "mo"),
    _u("year", "year", TIME, SECONDS_PER_YEAR, "time", "years", "yr", "yrs"),
    # electric current and charge
    _u("A", "ampere", CURRENT, 1.0, "current", "amp", "amps", "ampere", "amperes", prefixable=True),
    _u("Ah", "ampere hour", CHARGE, 3600.0, "charge", prefixable=True),
    # temperature
    _u("K", "kelvin", TEMPERATURE, 1.0, "temperature", "kelvin"),
    _u(
        "°C",
        "celsius",
        TEMPERATURE,
        1.0,
        "temperature",
        "C",
        "degC",
        "celsius",
        offset=273.15,
    ),
    _u(
        "°F",
        "fahrenheit",
        TEMPERATURE,
        5.0 / 9.0,
        "temperature",
        "F",
        "degF",
        "fahrenheit",
        offset=459.67 * 5.0 / 9.0,
    ),
    # amount and luminosity
    _u("mol", "mole", AMOUNT, 1.0, "amount", "mole", "moles", prefixable=True),
    _u("cd", "candela", LUMINOSITY, 1.0, "luminosity", "candela", prefixable=True),
    # area and volume
    _u("ha", "hectare", AREA, 1e4, "area", "hectare", "hectares"),
    _u("acre", "acre", AREA, 4046.8564224, "area", "acres"),
    _u("sqft", "square foot", AREA, 0.09290304, "area"),
    _u("sqm", "square meter", AREA, 1.0, "area"),
    _u(
        "L", "liter", VOLUME, 0.001, "volume", "l", "liter", "liters", "litre", "litres",
        prefixable=True,
    ),
    _u("ml", "milliliter", VOLUME, 1e-6, "volume", "milliliter", "milliliters", prefixed=True),
    _u("gal", "gallon", VOLUME, 0.003785411784, "volume", "gallon", "gallons"),
    _u("qt", "quart", VOLUME, 0.000946352946, "volume", "quart", "quarts"),
    _u("pt", "pint", VOLUME, 0.000473176473, "volume", "pint", "pints"),
    _u("cup", "cup", VOLUME, 0.0002365882365, "volume", "cups"),
    _u("tbsp", "tablespoon", VOLUME, 1.478676478125e-5, "volume", "tablespoon", "tablespoons"),
    _u("tsp", "teaspoon", VOLUME, 4.92892159375e-6, "volume", "teaspoon", "teaspoons"),
    # speed
    _u("mph", "mile per hour", SPEED, 0.44704, "speed"),
    _u("kph", "kilometer per hour", SPEED, 1 / 3.6, "speed", "kmh"),
    _u("knot", "knot", SPEED, 1852.0 / 3600.0, "speed", "knots", "kn"),
    # mechanics
    _u("N", "newton", FORCE, 1.0, "force", "newton", "newtons", prefixable=True),
    _u("lbf", "pound force", FORCE, 4.4482216152605, "force"),
    _u("Pa", "pascal", PRESSURE, 1.0, "pressure", "pascal", "pascals", prefixable=True),
    _u("bar", "bar", PRESSURE, 1e5, "pressure", prefixable=True),
    _u("psi", "pound per square inch", PRESSURE, 6894.757293168, "pressure"),
    _u("atm", "atmosphere", PRESSURE, 101325.0, "pressure"),
    _u("J", "joule", ENERGY, 1.0, "energy", "joule", "joules", prefixable=True),
    _u("cal", "calorie", ENERGY, 4.184, "energy", "calorie", "calories"),
    _u(
        "kcal", "kilocalorie", ENERGY, 4184.0, "energy", "kilocalorie", "kilocalories",
        prefixed=True,
    ),
    _u("Wh", "watt hour", ENERGY, 3600.0, "energy", prefixable=True),
    _u("eV", "electronvolt", ENERGY, 1.602176634e-19, "energy", prefixable=True),
    _u("BTU", "british thermal unit", ENERGY, 1055.05585262, "energy", "btu"),
    _u("W", "watt", POWER, 1.0, "power", "watt", "watts", prefixable=True),
    _u("hp", "horsepower", POWER, 745.69987158227, "power", "horsepower"),
    # electrical
    _u("V", "volt", VOLTAGE, 1.0, "voltage", "volt", "volts", prefixable=True),
    _u("ohm", "ohm", RESISTANCE, 1.0, "resistance", "ohms", "Ω", prefixable=True),
    # frequency and angle
    _u("Hz", "hertz", FREQUENCY, 1.0, "frequency", "hertz", prefixable=True),
    _u("rpm", "revolution per minute", FREQUENCY, 1 / 60.0, "frequency"),
    _u("rad", "radian", DIMENSIONLESS, 1.0, "angle", "radian", "radians"),
    _u("deg", "degree", DIMENSIONLESS, math.pi / 180.0, "angle", "degree", "degrees", "°"),
)

# Derived units used to name composite results whose conversion factor is 1.
DERIVED_UNIT_NAMES: Final[dict[Dimension, str]] = {
    FORCE: "N",
    ENERGY: "J",
    POWER: "W",
    PRESSURE: "Pa",
    VOLTAGE: "V",
}


def make_count_unit(word: str) -> UnitDefinition:
    """Build an ad-hoc count unit for a bare noun such as "widgets".

    The singular form becomes the canonical symbol so "widget" and "widgets"
    simplify together; the plural form is used for display.
    """
    singular = singularize(word)
    plural = word if word != singular else pluralize(singular)
    return UnitDefinition(
        symbol=singular,
        name=singular,
        dimension=COUNT,
        factor=1.0,
        category="count",
        plural=plural,
    )


def singularize(word: str) -> str:
    lower = word.lower()
    if lower.endswith("ies") and len(word) > 4:
        return word[:-3] + "y"
    if lower.endswith(("ses", "xes", "zes", "ches", "shes")):
        return word[:-2]
    if lower.endswith("s") and not lower.endswith("ss") and len(word) > 2:
        return word[:-1]
    return word


def pluralize(word: str) -> str:
    lower = word.lower()
    if lower.endswith("y") and len(word) > 1 and lower[-2] not in "aeiou":
        return word[:-1] + "ies"
    if lower.endswith(("s", "x", "z", "ch", "sh")):
        return word + "es"
    return word + "s"
