"""Equations recorded from assignment lines for the solver."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

from linecalc.state.variables import variable_key


@dataclass(frozen=True, slots=True)
class Equation:
    """``name = expression`` as written on a document line."""

    name: str
    expression: str
    line_number: int


class EquationStore:
    """Assignment equations of the current pass, in line order."""

    def __init__(self) -> None:
        self._equations: list[Equation] = []

    def record(self, name: str, expression: str, line_number: int) -> None:
        self._equations.append(Equation(variable_key(name), expression.strip(), line_number))

    def before(self, line_number: int) -> list[Equation]:
        """Equations from lines above ``line_number``, nearest first."""
        return [e for e in reversed(self._equations) if e.line_number < line_number]

    def clear(self) -> None:
        self._equations.clear()

    def __iter__(self) -> Iterator[Equation]:
        return iter(self._equations)

    def __len__(self) -> int:
        return len(self._equations)
