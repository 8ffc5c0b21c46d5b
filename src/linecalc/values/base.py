"""Shared contract for semantic values.

SemanticValue is a closed set of variants identified by ValueType. Binary
arithmetic between variants is dispatched in linecalc.values.arithmetic, which
keeps one handler per left-hand ValueType.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar

if TYPE_CHECKING:
    from linecalc.config import CalcSettings


class ValueType(str, Enum):
    """Closed set of semantic value variants."""

    NUMBER = "number"
    UNIT = "unit"
    CURRENCY = "currency"
    PERCENTAGE = "percentage"
    DATE = "date"
    DURATION = "duration"
    LIST = "list"
    SYMBOLIC = "symbolic"
    ERROR = "error"


class BinaryOperator(str, Enum):
    ADD = "+"
    SUBTRACT = "-"
    MULTIPLY = "*"
    DIVIDE = "/"
    POWER = "^"

    @property
    def verb(self) -> str:
        return _VERBS[self]


_VERBS = {
    BinaryOperator.ADD: "add",
    BinaryOperator.SUBTRACT: "subtract",
    BinaryOperator.MULTIPLY: "multiply",
    BinaryOperator.DIVIDE: "divide",
    BinaryOperator.POWER: "raise",
}


class SemanticValue(ABC):
    """Base class for all values produced by evaluation."""

    value_type: ClassVar[ValueType]

    @abstractmethod
    def format(self, settings: CalcSettings) -> str:
        """Render the value for inline display."""

    def describe(self) -> str:
        """Short type description used in error messages."""
        return self.value_type.value

    def to_dict(self, settings: CalcSettings) -> dict[str, Any]:
        return {"type": self.value_type.value, "display": self.format(settings)}

    def add(self, other: SemanticValue) -> SemanticValue:
        return self._apply(BinaryOperator.ADD, other)

    def subtract(self, other: SemanticValue) -> SemanticValue:
        return self._apply(BinaryOperator.SUBTRACT, other)

    def multiply(self, other: SemanticValue) -> SemanticValue:
        return self._apply(BinaryOperator.MULTIPLY, other)

    def divide(self, other: SemanticValue) -> SemanticValue:
        return self._apply(BinaryOperator.DIVIDE, other)

    def power(self, other: SemanticValue) -> SemanticValue:
        return self._apply(BinaryOperator.POWER, other)

    def negate(self) -> SemanticValue:
        from linecalc.values.arithmetic import negate

        return negate(self)

    def _apply(self, op: BinaryOperator, other: SemanticValue) -> SemanticValue:
        from linecalc.values.arithmetic import binary_op

        return binary_op(op, self, other)
