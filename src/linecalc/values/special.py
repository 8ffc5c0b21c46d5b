"""Lists, symbolic placeholders and error values."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar

from linecalc.errors import CalcError, ErrorKind
from linecalc.values.base import SemanticValue, ValueType

if TYPE_CHECKING:
    from linecalc.config import CalcSettings


@dataclass(frozen=True, slots=True)
class ListValue(SemanticValue):
    value_type: ClassVar[ValueType] = ValueType.LIST

    items: tuple[SemanticValue, ...]

    def format(self, settings: CalcSettings) -> str:
        return ", ".join(item.format(settings) for item in self.items)

    def to_dict(self, settings: CalcSettings) -> dict[str, Any]:
        return {
            "type": self.value_type.value,
            "display": self.format(settings),
            "items": [item.to_dict(settings) for item in self.items],
        }


@dataclass(frozen=True, slots=True)
class SymbolicValue(SemanticValue):
    """Deferred value carrying raw expression text that could not be resolved."""

    value_type: ClassVar[ValueType] = ValueType.SYMBOLIC

    raw: str

    def format(self, settings: CalcSettings) -> str:
        return self.raw


@dataclass(frozen=True, slots=True)
class ErrorValue(SemanticValue):
    """A failed computation; propagates through any operator it touches."""

    value_type: ClassVar[ValueType] = ValueType.ERROR

    kind: ErrorKind
    message: str

    @classmethod
    def from_exception(cls, error: CalcError) -> ErrorValue:
        return cls(error.kind, error.message)

    def format(self, settings: CalcSettings) -> str:
        return f"⚠️ {self.message}"

    def to_dict(self, settings: CalcSettings) -> dict[str, Any]:
        return {
            "type": self.value_type.value,
            "display": self.format(settings),
            "error_kind": self.kind.value,
            "message": self.message,
        }
