"""Live (implicit) evaluation heuristics.

Lines without an explicit ``=>`` trigger are evaluated only when they look like
a plausible expression. Every suppressed line is tagged with a reason and
counted in LiveMetrics.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Final

from linecalc.eval.context import EvaluationContext
from linecalc.eval.interpreter import is_builtin_function
from linecalc.parsing.expression import (
    ExprNode,
    FunctionCall,
    ParseErrorCode,
    VariableRef,
    parse_expression,
    walk,
)
from linecalc.parsing.lines import TRIGGER
from linecalc.parsing.tokenizer import UNIT_RUN

logger = logging.getLogger(__name__)

_WORD_OPERATOR: Final = re.compile(r"\b(?:of|off|on|to|in|as|is|per)\b", re.IGNORECASE)
_MATH_OPERATOR: Final = re.compile(r"[+\-*/^%()]")
_ASSIGNMENT_OPERATOR: Final = re.compile(r"[+\-*/^()]")
# A number with its unit run ("60 km/h"); the "/" inside is part of the unit.
_QUANTITY_LITERAL: Final = re.compile(rf"\d\s*(?:{UNIT_RUN.pattern})")
_CONSTANT: Final = re.compile(r"\b(?:PI|E)\b")
_DANGLING_SYMBOL: Final = re.compile(r"[+\-*/^(,=]\s*$")
_DANGLING_WORD: Final = re.compile(r"\s(?:to|in|of|on|off|as)\s*$", re.IGNORECASE)
_IDENTIFIER_BOUNDARY: Final[str] = r"[\s+\-*/^%()=<>!,]"

_INCOMPLETE_CODES: Final[frozenset[ParseErrorCode]] = frozenset(
    {
        ParseErrorCode.UNEXPECTED_END,
        ParseErrorCode.MISSING_CONVERSION_TARGET,
        ParseErrorCode.UNBALANCED_PARENTHESES,
    }
)


class SuppressionReason(str, Enum):
    DISABLED = "disabled"
    PLAINTEXT = "plaintext"
    INCOMPLETE = "incomplete"
    UNRESOLVED = "unresolved"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class LiveDecision:
    """Whether a line may be evaluated live, and why not when it may not."""

    eligible: bool
    reason: SuppressionReason | None = None

    @classmethod
    def allow(cls) -> LiveDecision:
        return cls(True)

    @classmethod
    def suppress(cls, reason: SuppressionReason) -> LiveDecision:
        return cls(False, reason)


@dataclass
class LiveMetrics:
    """Counters for live evaluation, owned by one orchestrator."""

    attempted: int = 0
    shown: int = 0
    suppressed: dict[SuppressionReason, int] = field(
        default_factory=lambda: dict.fromkeys(SuppressionReason, 0)
    )

    def record_attempt(self) -> None:
        self.attempted += 1

    def record_shown(self) -> None:
        self.shown += 1

    def record_suppressed(self, reason: SuppressionReason) -> None:
        self.suppressed[reason] += 1

    def reset(self) -> None:
        self.attempted = 0
        self.shown = 0
        self.suppressed = dict.fromkeys(SuppressionReason, 0)

    def to_dict(self) -> dict[str, Any]:
        return {
            "attempted": self.attempted,
            "shown": self.shown,
            "suppressed": {reason.value: count for reason, count in self.suppressed.items()},
        }


def _mentions_identifier(text: str, name: str) -> bool:
    if not name:
        return False
    pattern = rf"(?:^|{_IDENTIFIER_BOUNDARY}){re.escape(name)}(?:$|{_IDENTIFIER_BOUNDARY})"
    return re.search(pattern, text) is not None


def _mentions_call(text: str, name: str) -> bool:
    return re.search(rf"\b{re.escape(name)}\s*\(", text) is not None


def is_likely_live_expression(
    text: str, variable_names: Iterable[str] = (), function_names: Iterable[str] = ()
) -> bool:
    """Cheap prose filter for a line without a trigger."""
    stripped = text.strip()
    if not stripped:
        return False
    if stripped.startswith(("#", "//", "@")):
        return False
    if TRIGGER in stripped or "=" in stripped:
        return False

    if any(ch.isdigit() for ch in stripped):
        return True
    if _MATH_OPERATOR.search(stripped) or _WORD_OPERATOR.search(stripped):
        return True
    if _CONSTANT.search(stripped):
        return True
    if any(_mentions_identifier(stripped, name) for name in variable_names):
        return True
    return any(_mentions_call(stripped, name) for name in function_names)


def has_dangling_operator(text: str) -> bool:
    """True when the line ends mid-expression (``5 +``, ``3 m to``)."""
    stripped = text.rstrip()
    return bool(_DANGLING_SYMBOL.search(stripped) or _DANGLING_WORD.search(stripped))


def find_unresolved_identifiers(tree: ExprNode, ctx: EvaluationContext) -> list[str]:
    """Names in the tree that are neither variables, units nor known functions."""
    unresolved: list[str] = []
    for node in walk(tree):
        if isinstance(node, VariableRef):
            if ctx.lookup(node.name) is not None or ctx.view.is_registered_unit(node.name):
                continue
            unresolved.append(node.name)
        elif isinstance(node, FunctionCall):
            if node.name in ctx.functions or is_builtin_function(node.name):
                continue
            unresolved.append(node.name)
    return list(dict.fromkeys(unresolved))


def assess_live_line(text: str, ctx: EvaluationContext) -> LiveDecision:
    """Decide whether an untriggered line is evaluated live."""
    if not ctx.settings.live_result_enabled:
        return LiveDecision.suppress(SuppressionReason.DISABLED)
    if not is_likely_live_expression(text, ctx.known_names(), ctx.functions.names()):
        return LiveDecision.suppress(SuppressionReason.PLAINTEXT)
    if has_dangling_operator(text):
        return LiveDecision.suppress(SuppressionReason.INCOMPLETE)

    # Percentage phrases do not parse as plain expressions; the evaluator decides.
    if _WORD_OPERATOR.search(text) and not re.search(r"\s(?:to|in)\s", text):
        return LiveDecision.allow()

    parsed = parse_expression(text, ctx.view, ctx.known_names())
    if parsed.error is not None:
        if parsed.error.code in _INCOMPLETE_CODES:
            return LiveDecision.suppress(SuppressionReason.INCOMPLETE)
        if parsed.error.code is ParseErrorCode.UNIT_ALIAS_CYCLE:
            return LiveDecision.suppress(SuppressionReason.ERROR)
        return LiveDecision.suppress(SuppressionReason.PLAINTEXT)
    assert parsed.tree is not None

    unresolved = find_unresolved_identifiers(parsed.tree, ctx)
    if unresolved:
        logger.debug("Line %d: unresolved identifiers %s", ctx.line_number, unresolved)
        return LiveDecision.suppress(SuppressionReason.UNRESOLVED)
    return LiveDecision.allow()


def should_show_live_assignment(
    value_expr: str, variable_names: Iterable[str] = (), function_names: Iterable[str] = ()
) -> bool:
    """Untriggered ``name = value`` lines show a result only for computed values."""
    stripped = value_expr.strip()
    if not stripped:
        return False
    without_units = _QUANTITY_LITERAL.sub("0", stripped)
    if _ASSIGNMENT_OPERATOR.search(without_units) or _WORD_OPERATOR.search(stripped):
        return True
    if any(_mentions_identifier(stripped, name) for name in variable_names):
        return True
    return any(_mentions_call(stripped, name) for name in function_names)
