"""Scalar semantic values: numbers, quantities, currencies and percentages."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar, Final

from linecalc.units.quantity import Quantity
from linecalc.values.base import SemanticValue, ValueType
from linecalc.values.formatting import format_number

if TYPE_CHECKING:
    from linecalc.config import CalcSettings


@dataclass(frozen=True, slots=True)
class NumberValue(SemanticValue):
    """A dimensionless number."""

    value_type: ClassVar[ValueType] = ValueType.NUMBER

    value: float

    def format(self, settings: CalcSettings) -> str:
        return format_number(self.value, settings)

    def to_dict(self, settings: CalcSettings) -> dict[str, Any]:
        return {
            "type": self.value_type.value,
            "display": self.format(settings),
            "value": self.value,
        }


@dataclass(frozen=True, slots=True)
class UnitValue(SemanticValue):
    """A quantity with a physical (or count) unit.

    Attributes:
        quantity: Unit of record used for all further arithmetic.
        display: Optional display-only variant chosen by the best-unit heuristic.
    """

    value_type: ClassVar[ValueType] = ValueType.UNIT

    quantity: Quantity
    display: Quantity | None = None

    def format(self, settings: CalcSettings) -> str:
        shown = self.display or self.quantity
        number = format_number(shown.value, settings)
        unit = shown.format_unit()
        return f"{number} {unit}" if unit else number

    def describe(self) -> str:
        return self.quantity.format_unit() or "1"

    def to_dict(self, settings: CalcSettings) -> dict[str, Any]:
        return {
            "type": self.value_type.value,
            "display": self.format(settings),
            "value": self.quantity.value,
            "unit": self.quantity.format_unit(),
        }


@dataclass(frozen=True, slots=True)
class CurrencyInfo:
    code: str
    symbol: str
    decimals: int
    symbol_before: bool = True


CURRENCIES: Final[dict[str, CurrencyInfo]] = {
    "USD": CurrencyInfo("USD", "$", 2),
    "EUR": CurrencyInfo("EUR", "€", 2),
    "GBP": CurrencyInfo("GBP", "£", 2),
    "JPY": CurrencyInfo("JPY", "¥", 0),
    "INR": CurrencyInfo("INR", "₹", 2),
    "BTC": CurrencyInfo("BTC", "₿", 8),
    "CHF": CurrencyInfo("CHF", "CHF", 2, symbol_before=False),
    "CAD": CurrencyInfo("CAD", "CAD", 2, symbol_before=False),
    "AUD": CurrencyInfo("AUD", "AUD", 2, symbol_before=False),
}

CURRENCY_BY_SYMBOL: Final[dict[str, str]] = {
    info.symbol: code for code, info in CURRENCIES.items() if info.symbol_before
}


@dataclass(frozen=True, slots=True)
class CurrencyValue(SemanticValue):
    """An amount of money in a single currency (ISO code)."""

    value_type: ClassVar[ValueType] = ValueType.CURRENCY

    code: str
    amount: float

    @property
    def info(self) -> CurrencyInfo:
        return CURRENCIES[self.code]

    def with_amount(self, amount: float) -> CurrencyValue:
        return CurrencyValue(self.code, amount)

    def format(self, settings: CalcSettings) -> str:
        info = self.info
        number = format_number(abs(self.amount), settings, decimal_places=info.decimals)
        sign = "-" if self.amount < 0 and number.strip("0.,") else ""
        if info.symbol_before:
            return f"{sign}{info.symbol}{number}"
        return f"{sign}{number} {info.symbol}"

    def describe(self) -> str:
        return self.code

    def to_dict(self, settings: CalcSettings) -> dict[str, Any]:
        return {
            "type": self.value_type.value,
            "display": self.format(settings),
            "value": self.amount,
            "currency": self.code,
        }


@dataclass(frozen=True, slots=True)
class PercentageValue(SemanticValue):
    """A percentage; ``percent=20`` means 20%."""

    value_type: ClassVar[ValueType] = ValueType.PERCENTAGE

    percent: float

    @property
    def fraction(self) -> float:
        return self.percent / 100.0

    def format(self, settings: CalcSettings) -> str:
        return f"{format_number(self.percent, settings)}%"

    def to_dict(self, settings: CalcSettings) -> dict[str, Any]:
        return {
            "type": self.value_type.value,
            "display": self.format(settings),
            "value": self.percent,
        }
