"""Line records and pass results exchanged with the editing and rendering sides."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from linecalc.config import CalcSettings
from linecalc.eval.live import SuppressionReason
from linecalc.eval.results import RenderResult
from linecalc.parsing.ast import ASTNode
from linecalc.state.variables import Variable


@dataclass(frozen=True, slots=True)
class CrossLineReference:
    """A placeholder in a line's text standing for another line's result.

    Attributes:
        placeholder: Exact text in the line to substitute.
        target_line_id: Identity of the source line (tried first).
        target_line_number: 1-based position of the source line.
        fallback: Expression text used when the source line is not in the document.
    """

    placeholder: str
    target_line_id: str | None = None
    target_line_number: int | None = None
    fallback: str | None = None


@dataclass(frozen=True, slots=True)
class LineRecord:
    line_id: str
    text: str
    references: tuple[CrossLineReference, ...] = ()

    @classmethod
    def from_texts(cls, texts: Sequence[str]) -> list[LineRecord]:
        """Records for plain text lines, identified by position."""
        return [cls(f"line-{number}", text) for number, text in enumerate(texts, start=1)]


@dataclass(frozen=True, slots=True)
class LineResultState:
    """What dependents and the renderer need to know about a line's result."""

    has_error: bool
    display_text: str
    error_message: str | None = None

    @classmethod
    def from_result(cls, result: RenderResult) -> LineResultState:
        return cls(result.has_error, result.display_text, result.error_message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "has_error": self.has_error,
            "error_message": self.error_message,
            "display_text": self.display_text,
        }


class LineStatus(str, Enum):
    """Per-line outcome of a pass."""

    RESULT = "result"
    ERROR = "error"
    BROKEN_REFERENCE = "broken_reference"
    SUPPRESSED = "suppressed"
    DEFINITION = "definition"
    NO_RESULT = "no_result"


@dataclass(frozen=True)
class PassResult:
    """Everything one document pass produced.

    Attributes:
        results: Displayed render results by 1-based line number.
        line_states: Result state by line identity, for cross-line references.
        statuses: Outcome of every line by line number.
        suppressed: Live suppression reasons by line number.
        variables: Variables committed by the pass, in definition order.
        nodes: Parsed line nodes in document order.
    """

    results: Mapping[int, RenderResult] = field(default_factory=dict)
    line_states: Mapping[str, LineResultState] = field(default_factory=dict)
    statuses: Mapping[int, LineStatus] = field(default_factory=dict)
    suppressed: Mapping[int, SuppressionReason] = field(default_factory=dict)
    variables: Sequence[Variable] = ()
    nodes: Sequence[ASTNode] = ()

    @property
    def error_count(self) -> int:
        return sum(1 for r in self.results.values() if r.has_error)

    @property
    def has_errors(self) -> bool:
        return self.error_count > 0

    def to_dict(self, settings: CalcSettings) -> dict[str, Any]:
        """Convert to a plain dict for JSON output."""
        return {
            "results": [self.results[n].to_dict(settings) for n in sorted(self.results)],
            "line_states": {k: v.to_dict() for k, v in self.line_states.items()},
            "statuses": {str(n): s.value for n, s in sorted(self.statuses.items())},
            "suppressed": {str(n): r.value for n, r in sorted(self.suppressed.items())},
            "variables": [v.to_dict(settings) for v in self.variables],
            "error_count": self.error_count,
        }
