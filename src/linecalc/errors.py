"""Typed errors for the linecalc evaluation core.

Every failure raised while evaluating a line is a CalcError subclass carrying an
ErrorKind. Errors are scoped to the line that produced them: the orchestrator
converts them into error render results and never lets them abort a pass.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Machine-readable error categories exposed on error render results."""

    PARSE = "ParseError"
    UNKNOWN_UNIT = "UnknownUnitError"
    DIMENSION_MISMATCH = "DimensionMismatchError"
    CIRCULAR_UNIT_ALIAS = "CircularUnitAliasError"
    CONVERSION = "ConversionError"
    DIVISION_BY_ZERO = "DivisionByZeroError"
    UNDEFINED_VARIABLE = "UndefinedVariableError"
    INCOMPATIBLE_CURRENCY = "IncompatibleCurrencyError"
    INVALID_OPERATION = "InvalidOperationError"
    FUNCTION_CALL = "FunctionCallError"
    SOLVE = "SolveError"
    BROKEN_REFERENCE = "BrokenReferenceWarning"
    EVALUATION = "EvaluationError"


BROKEN_REFERENCE_MESSAGE = "source line has error"
BROKEN_REFERENCE_DISPLAY = "⚠ source line has error"


class CalcError(Exception):
    """Base class for all line-scoped evaluation failures.

    Attributes:
        kind: ErrorKind of the failure.
        message: Human-readable message suitable for inline display.
    """

    kind: ErrorKind = ErrorKind.EVALUATION

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ExpressionSyntaxError(CalcError):
    """Raised when a sub-expression evaluated on behalf of another fails to parse."""

    kind = ErrorKind.PARSE

    def __init__(self, message: str, kind: ErrorKind = ErrorKind.PARSE) -> None:
        super().__init__(message)
        self.kind = kind


class UnknownUnitError(CalcError):
    """Raised when a unit symbol cannot be resolved by any lookup step."""

    kind = ErrorKind.UNKNOWN_UNIT

    def __init__(self, symbol: str, reason: str | None = None) -> None:
        message = f"Unknown unit: {symbol}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.symbol = symbol


class DimensionMismatchError(CalcError):
    """Raised when two quantities with different dimensions are combined."""

    kind = ErrorKind.DIMENSION_MISMATCH

    def __init__(self, operation: str, left: str, right: str) -> None:
        super().__init__(f"Cannot {operation} {left} and {right}: incompatible dimensions")
        self.operation = operation
        self.left = left
        self.right = right


class CircularUnitAliasError(CalcError):
    """Raised when an expression references a unit alias that sits on a cycle."""

    kind = ErrorKind.CIRCULAR_UNIT_ALIAS

    def __init__(self, cycle: tuple[str, ...]) -> None:
        super().__init__(f"Circular unit alias detected ({' -> '.join(cycle)})")
        self.cycle = cycle


class ConversionError(CalcError):
    """Raised for an invalid conversion target or a conversion with no scale."""

    kind = ErrorKind.CONVERSION


class DivisionByZeroError(CalcError):
    """Raised instead of producing an infinite or NaN result."""

    kind = ErrorKind.DIVISION_BY_ZERO

    def __init__(self, message: str = "Division by zero") -> None:
        super().__init__(message)


class UndefinedVariableError(CalcError):
    """Raised when an identifier resolves to no variable, constant or unit.

    Not fatal: evaluators fall back to a symbolic value for the line.
    """

    kind = ErrorKind.UNDEFINED_VARIABLE

    def __init__(self, name: str) -> None:
        super().__init__(f"Undefined variable: {name}")
        self.name = name


class IncompatibleCurrencyError(CalcError):
    """Raised when two different currencies are combined."""

    kind = ErrorKind.INCOMPATIBLE_CURRENCY


class InvalidOperationError(CalcError):
    """Raised when an operator is not defined for the operand types."""

    kind = ErrorKind.INVALID_OPERATION


class FunctionCallError(CalcError):
    """Raised for bad function arity, unknown functions or runaway recursion."""

    kind = ErrorKind.FUNCTION_CALL


class SolveError(CalcError):
    """Raised when an equation cannot be rearranged for the requested unknown."""

    kind = ErrorKind.SOLVE


class PassInProgressError(RuntimeError):
    """Raised when a document pass is started while another is still running."""
