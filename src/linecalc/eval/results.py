"""Render results handed to the rendering collaborator."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from linecalc.config import CalcSettings
from linecalc.errors import (
    BROKEN_REFERENCE_DISPLAY,
    BROKEN_REFERENCE_MESSAGE,
    CalcError,
    ErrorKind,
)
from linecalc.values.base import SemanticValue

ERROR_PREFIX = "⚠️"


class RenderKind(str, Enum):
    MATH_RESULT = "mathResult"
    COMBINED = "combined"
    ERROR = "error"


@dataclass(frozen=True)
class RenderResult:
    """Outcome of evaluating one line.

    Attributes:
        kind: mathResult, combined (assignment shown with its value) or error.
        line_number: 1-based line position.
        expression: Evaluated left-hand expression text.
        result: Formatted result (or error display) string.
        display_text: ``expr => result`` as shown inline.
        variable_name: Assigned variable for combined results.
        error_kind: ErrorKind for error results.
        error_message: Human-readable error message.
        value: Semantic value behind the result, if any.
        live: True when produced by implicit (non-triggered) evaluation.
    """

    kind: RenderKind
    line_number: int
    expression: str
    result: str
    display_text: str
    variable_name: str | None = None
    error_kind: ErrorKind | None = None
    error_message: str | None = None
    value: SemanticValue | None = None
    live: bool = False

    @property
    def has_error(self) -> bool:
        return self.kind is RenderKind.ERROR

    @classmethod
    def math_result(
        cls,
        line_number: int,
        expression: str,
        value: SemanticValue,
        settings: CalcSettings,
        *,
        live: bool = False,
    ) -> RenderResult:
        formatted = value.format(settings)
        return cls(
            kind=RenderKind.MATH_RESULT,
            line_number=line_number,
            expression=expression,
            result=formatted,
            display_text=f"{expression} => {formatted}",
            value=value,
            live=live,
        )

    @classmethod
    def combined(
        cls,
        line_number: int,
        name: str,
        expression: str,
        value: SemanticValue,
        settings: CalcSettings,
        *,
        live: bool = False,
    ) -> RenderResult:
        formatted = value.format(settings)
        return cls(
            kind=RenderKind.COMBINED,
            line_number=line_number,
            expression=expression,
            result=formatted,
            display_text=f"{name} = {expression} => {formatted}",
            variable_name=name,
            value=value,
            live=live,
        )

    @classmethod
    def error(
        cls,
        line_number: int,
        expression: str,
        kind: ErrorKind,
        message: str,
        *,
        variable_name: str | None = None,
        live: bool = False,
    ) -> RenderResult:
        if kind is ErrorKind.BROKEN_REFERENCE:
            shown = BROKEN_REFERENCE_DISPLAY
        else:
            shown = f"{ERROR_PREFIX} {message}"
        return cls(
            kind=RenderKind.ERROR,
            line_number=line_number,
            expression=expression,
            result=shown,
            display_text=f"{expression} => {shown}" if expression else shown,
            variable_name=variable_name,
            error_kind=kind,
            error_message=message,
            live=live,
        )

    @classmethod
    def from_exception(
        cls,
        line_number: int,
        expression: str,
        error: CalcError,
        *,
        variable_name: str | None = None,
        live: bool = False,
    ) -> RenderResult:
        return cls.error(
            line_number,
            expression,
            error.kind,
            error.message,
            variable_name=variable_name,
            live=live,
        )

    @classmethod
    def broken_reference(cls, line_number: int, expression: str) -> RenderResult:
        return cls.error(
            line_number, expression, ErrorKind.BROKEN_REFERENCE, BROKEN_REFERENCE_MESSAGE
        )

    def to_dict(self, settings: CalcSettings) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "line_number": self.line_number,
            "expression": self.expression,
            "result": self.result,
            "display_text": self.display_text,
            "variable_name": self.variable_name,
            "error_kind": self.error_kind.value if self.error_kind is not None else None,
            "error_message": self.error_message,
            "value": self.value.to_dict(settings) if self.value is not None else None,
            "live": self.live,
        }
