"""Variable store owned by the document orchestrator.

Variables are keyed by their normalized name (internal whitespace collapsed).
The store is cleared at the start of every pass and repopulated top to bottom,
so a line only ever sees variables committed by earlier lines.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from linecalc.config import CalcSettings
from linecalc.units.quantity import Quantity
from linecalc.values.base import SemanticValue
from linecalc.values.scalars import UnitValue

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(UTC)


def variable_key(name: str) -> str:
    return " ".join(name.split())


@dataclass(frozen=True, slots=True)
class Variable:
    """A named value committed by an assignment line.

    Attributes:
        name: Variable name as written (whitespace-normalized).
        value: Current semantic value.
        raw_expression: Expression text the value was computed from.
        line_id: Identity of the defining line.
        line_number: 1-based position of the defining line in its pass.
        created_at: When the variable was first set.
        updated_at: When the variable was last set.
    """

    name: str
    value: SemanticValue
    raw_expression: str
    line_id: str | None = None
    line_number: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def quantity(self) -> Quantity | None:
        if isinstance(self.value, UnitValue):
            return self.value.quantity
        return None

    @property
    def unit(self) -> str | None:
        quantity = self.quantity
        return quantity.format_unit() if quantity is not None else None

    def to_dict(self, settings: CalcSettings) -> dict[str, Any]:
        return {
            "name": self.name,
            "value": self.value.to_dict(settings),
            "raw_expression": self.raw_expression,
            "unit": self.unit,
            "line_id": self.line_id,
            "line_number": self.line_number,
        }


class VariableStore:
    """In-memory, insertion-ordered variable store."""

    def __init__(self, clock: Callable[[], datetime] = _utc_now) -> None:
        self._variables: dict[str, Variable] = {}
        self._clock = clock

    def get(self, name: str) -> Variable | None:
        return self._variables.get(variable_key(name))

    def set(
        self,
        name: str,
        value: SemanticValue,
        raw_expression: str,
        *,
        line_id: str | None = None,
        line_number: int | None = None,
    ) -> Variable:
        """Create or overwrite a variable, keeping its original creation time."""
        key = variable_key(name)
        now = self._clock()
        previous = self._variables.get(key)
        variable = Variable(
            name=key,
            value=value,
            raw_expression=raw_expression,
            line_id=line_id,
            line_number=line_number,
            created_at=previous.created_at if previous is not None else now,
            updated_at=now,
        )
        # Re-insert so iteration order follows the most recent definition.
        self._variables.pop(key, None)
        self._variables[key] = variable
        logger.debug("Set variable %s from line %s", key, line_number)
        return variable

    def delete(self, name: str) -> bool:
        return self._variables.pop(variable_key(name), None) is not None

    def list(self) -> list[Variable]:
        return list(self._variables.values())

    def names(self) -> list[str]:
        return list(self._variables)

    def clear(self) -> None:
        self._variables.clear()

    def snapshot(self) -> dict[str, SemanticValue]:
        """Name to value mapping, in definition order."""
        return {key: v.value for key, v in self._variables.items()}

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and variable_key(name) in self._variables

    def __iter__(self) -> Iterator[Variable]:
        return iter(list(self._variables.values()))

    def __len__(self) -> int:
        return len(self._variables)
