"""Composite units: products of unit definitions raised to rational powers."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from fractions import Fraction
from typing import Final

from linecalc.errors import ConversionError, InvalidOperationError
from linecalc.units.definitions import DERIVED_UNIT_NAMES, UnitDefinition
from linecalc.units.dimension import DIMENSIONLESS, Dimension
from linecalc.units.registry import RegistryView


def _to_fraction(value: int | float | Fraction) -> Fraction:
    if isinstance(value, Fraction):
        return value
    if isinstance(value, int):
        return Fraction(value)
    return Fraction(value).limit_denominator(1000)


@dataclass(frozen=True, slots=True)
class UnitTerm:
    unit: UnitDefinition
    power: Fraction


@dataclass(frozen=True, slots=True)
class CompositeUnit:
    """An ordered product of ``(UnitDefinition, power)`` terms.

    Instances produced by the algebra methods are always simplified: powers
    are summed per symbol and zero-power terms dropped.
    """

    terms: tuple[UnitTerm, ...] = ()

    @classmethod
    def of(cls, unit: UnitDefinition, power: int | float | Fraction = 1) -> CompositeUnit:
        return cls((UnitTerm(unit, _to_fraction(power)),)).simplified()

    @classmethod
    def dimensionless(cls) -> CompositeUnit:
        return cls(())

    def simplified(self) -> CompositeUnit:
        order: list[str] = []
        units: dict[str, UnitDefinition] = {}
        powers: dict[str, Fraction] = {}
        for term in self.terms:
            key = term.unit.symbol
            if key not in powers:
                order.append(key)
                units[key] = term.unit
                powers[key] = Fraction(0)
            powers[key] += term.power
        return CompositeUnit(tuple(UnitTerm(units[k], powers[k]) for k in order if powers[k] != 0))

    @property
    def dimension(self) -> Dimension:
        result = DIMENSIONLESS
        for term in self.terms:
            result = result.multiply(term.unit.dimension.power(term.power))
        return result

    @property
    def base_factor(self) -> float:
        factor = 1.0
        for term in self.terms:
            factor *= term.unit.factor ** float(term.power)
        return factor

    @property
    def is_empty(self) -> bool:
        return not self.terms

    @property
    def has_offset(self) -> bool:
        return any(term.unit.has_offset for term in self.terms)

    @property
    def is_single_unscaled(self) -> bool:
        return len(self.terms) == 1 and self.terms[0].power == 1

    @property
    def single_unit(self) -> UnitDefinition | None:
        return self.terms[0].unit if self.is_single_unscaled else None

    def is_compatible_with(self, other: CompositeUnit) -> bool:
        return self.dimension == other.dimension

    def symbols(self) -> tuple[str, ...]:
        return tuple(term.unit.symbol for term in self.terms)

    def multiply(self, other: CompositeUnit) -> CompositeUnit:
        return CompositeUnit(self.terms + other.terms).simplified()._checked()

    def divide(self, other: CompositeUnit) -> CompositeUnit:
        return self.multiply(other.power(-1))

    def power(self, exponent: int | float | Fraction) -> CompositeUnit:
        scale = _to_fraction(exponent)
        raised = CompositeUnit(tuple(UnitTerm(t.unit, t.power * scale) for t in self.terms))
        return raised.simplified()._checked()

    def substitute(self, replacements: dict[str, UnitDefinition]) -> CompositeUnit:
        """Replace terms whose symbol is a key of ``replacements``."""
        return CompositeUnit(
            tuple(UnitTerm(replacements.get(t.unit.symbol, t.unit), t.power) for t in self.terms)
        )

    def _checked(self) -> CompositeUnit:
        if self.has_offset and not self.is_single_unscaled:
            offset_unit = next(t.unit.symbol for t in self.terms if t.unit.has_offset)
            raise InvalidOperationError(
                f"Cannot use {offset_unit} in a compound unit expression; convert to K first"
            )
        return self

    def format(self, magnitude: float | None = None) -> str:
        """Render the unit, e.g. ``m/s^2``, ``kg*m/(s*A)``, ``N`` or ``widgets``."""
        if not self.terms:
            return ""
        if len(self.terms) > 1 and math.isclose(self.base_factor, 1.0, rel_tol=1e-12):
            derived = DERIVED_UNIT_NAMES.get(self.dimension)
            if derived is not None:
                return derived
        if self.is_single_unscaled:
            return self.terms[0].unit.display_symbol(magnitude)

        numerator = [_format_term(t.unit.symbol, t.power) for t in self.terms if t.power > 0]
        denominator = [_format_term(t.unit.symbol, -t.power) for t in self.terms if t.power < 0]
        top = "*".join(numerator) if numerator else "1"
        if not denominator:
            return top
        if len(denominator) == 1:
            return f"{top}/{denominator[0]}"
        return f"{top}/({'*'.join(denominator)})"

    def __str__(self) -> str:
        return self.format()


def _format_term(symbol: str, power: Fraction) -> str:
    if power == 1:
        return symbol
    if power.denominator == 1:
        return f"{symbol}^{power.numerator}"
    return f"{symbol}^{float(power):g}"


# Unit strings: symbols joined by "*" or "/", each with an optional exponent.
_SUPERSCRIPTS: Final[dict[str, str]] = {"²": "^2", "³": "^3", "⁻¹": "^-1"}
_UNIT_TOKEN: Final = re.compile(
    r"\s*(?:(?P<op>[*/])|(?P<lparen>\()|(?P<rparen>\))|(?P<one>1)(?![\d.])"
    r"|(?P<symbol>[A-Za-z°µμΩ][A-Za-z°µμΩ_]*)"
    r"(?:\^(?P<exp>-?\d+(?:\.\d+)?|\(-?\d+/\d+\))|(?P<digits>\d+))?)"
)


def normalize_unit_text(text: str) -> str:
    normalized = text.replace("·", "*").replace("×", "*").strip()
    for source, target in _SUPERSCRIPTS.items():
        normalized = normalized.replace(source, target)
    return normalized


class _UnitStringParser:
    """Recursive-descent parser for unit strings such as ``kg*m/s^2``."""

    def __init__(self, text: str, view: RegistryView) -> None:
        self._text = normalize_unit_text(text)
        self._view = view
        self._tokens = self._lex()
        self._pos = 0

    def _lex(self) -> list[re.Match[str]]:
        tokens: list[re.Match[str]] = []
        pos = 0
        text = self._text
        while pos < len(text):
            if text[pos].isspace():
                pos += 1
                continue
            match = _UNIT_TOKEN.match(text, pos)
            if match is None or match.end() == pos:
                raise ConversionError(f"Invalid unit expression: {self._text}")
            tokens.append(match)
            pos = match.end()
        return tokens

    def parse(self) -> CompositeUnit:
        if not self._tokens:
            raise ConversionError("Expected unit after 'to'")
        unit = self._expression()
        if self._pos != len(self._tokens):
            raise ConversionError(f"Invalid unit expression: {self._text}")
        return unit

    def _peek(self, group: str) -> bool:
        return self._pos < len(self._tokens) and self._tokens[self._pos].group(group) is not None

    def _expression(self) -> CompositeUnit:
        unit = self._term()
        while self._peek("op"):
            op = self._tokens[self._pos].group("op")
            self._pos += 1
            right = self._term()
            unit = unit.multiply(right) if op == "*" else unit.divide(right)
        return unit

    def _term(self) -> CompositeUnit:
        if self._pos >= len(self._tokens):
            raise ConversionError(f"Invalid unit expression: {self._text}")
        token = self._tokens[self._pos]
        self._pos += 1
        if token.group("lparen") is not None:
            inner = self._expression()
            if not self._peek("rparen"):
                raise ConversionError(f"Unbalanced parentheses in unit: {self._text}")
            self._pos += 1
            return inner
        if token.group("one") is not None:
            return CompositeUnit.dimensionless()
        symbol = token.group("symbol")
        if symbol is None:
            raise ConversionError(f"Invalid unit expression: {self._text}")
        definition = self._view.resolve(symbol)
        return CompositeUnit.of(definition, _parse_exponent(token))


def _parse_exponent(token: re.Match[str]) -> Fraction:
    exp = token.group("exp")
    if exp is None:
        digits = token.group("digits")
        return Fraction(int(digits)) if digits else Fraction(1)
    if exp.startswith("("):
        return Fraction(exp.strip("()"))
    return _to_fraction(float(exp)) if "." in exp else Fraction(int(exp))


def parse_unit_string(text: str, view: RegistryView) -> CompositeUnit:
    """Parse a unit expression into a simplified CompositeUnit.

    Args:
        text: Unit text such as ``km/h``, ``kg*m/s^2`` or ``1/s``.
        view: Registry view used to resolve each symbol.

    Returns:
        The simplified composite unit.

    Raises:
        UnknownUnitError: If a symbol cannot be resolved.
        CircularUnitAliasError: If a symbol names a blocked alias.
        ConversionError: If the text is not a well-formed unit expression.
        InvalidOperationError: If an offset unit appears in a compound unit.
    """
    return _UnitStringParser(text, view).parse()
