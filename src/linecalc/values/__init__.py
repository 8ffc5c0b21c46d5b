"""Semantic value system.

This package provides:
- SemanticValue variants: Number, Unit, Currency, Percentage, Date, Duration,
  List, Symbolic and Error
- binary_op / negate: operator dispatch with fixed promotion rules
- format_number: precision-aware number rendering
"""

from linecalc.values.arithmetic import binary_op, negate
from linecalc.values.base import BinaryOperator, SemanticValue, ValueType
from linecalc.values.formatting import format_number
from linecalc.values.scalars import (
    CURRENCIES,
    CurrencyValue,
    NumberValue,
    PercentageValue,
    UnitValue,
)
from linecalc.values.special import ErrorValue, ListValue, SymbolicValue
from linecalc.values.temporal import DateValue, DurationValue

__all__ = [
    "CURRENCIES",
    "BinaryOperator",
    "CurrencyValue",
    "DateValue",
    "DurationValue",
    "ErrorValue",
    "ListValue",
    "NumberValue",
    "PercentageValue",
    "SemanticValue",
    "SymbolicValue",
    "UnitValue",
    "ValueType",
    "binary_op",
    "format_number",
    "negate",
]
