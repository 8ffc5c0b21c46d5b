"""Incremental line orchestrator.

A pass evaluates a whole document top to bottom:

1. clear the variable, function and equation stores
2. parse every line independently
3. for each line, resolve its cross-line references against results recorded
   for earlier lines; a broken reference short-circuits the line to a warning
4. rebuild dynamic unit aliases from the committed variables, dispatch the line
   through the evaluator pipeline and commit assignments before the next line;
   assignment lines also record their equation for the solver
5. record the line's result by line number and by line identity

Passes are synchronous and not re-entrant. Each pass starts from empty stores,
so results depend only on the input lines, the settings and the pass clock.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from datetime import date
from enum import Enum
from types import MappingProxyType
from typing import Final

from linecalc.config import CalcSettings
from linecalc.document.models import (
    CrossLineReference,
    LineRecord,
    LineResultState,
    LineStatus,
    PassResult,
)
from linecalc.errors import BROKEN_REFERENCE_MESSAGE, CalcError, ErrorKind, PassInProgressError
from linecalc.eval.context import EvaluationContext
from linecalc.eval.evaluators import evaluate_text
from linecalc.eval.live import (
    LiveMetrics,
    SuppressionReason,
    assess_live_line,
    should_show_live_assignment,
)
from linecalc.eval.pipeline import EvaluatorPipeline
from linecalc.eval.results import RenderResult
from linecalc.observability.tracing import PASS_SPAN, set_span_attributes, start_span
from linecalc.parsing.ast import (
    ASTNode,
    CombinedAssignmentNode,
    CommentNode,
    ExpressionNode,
    FunctionDefinitionNode,
    PlainTextNode,
    VariableAssignmentNode,
    assigned_name,
    expression_text,
)
from linecalc.parsing.lines import parse_document
from linecalc.state.equations import EquationStore
from linecalc.state.functions import FunctionStore
from linecalc.state.variables import VariableStore
from linecalc.units.aliases import build_dynamic_aliases
from linecalc.units.quantity import Quantity
from linecalc.units.registry import UnitRegistry
from linecalc.values.arithmetic import duration_to_quantity
from linecalc.values.base import SemanticValue
from linecalc.values.scalars import UnitValue
from linecalc.values.special import ErrorValue, SymbolicValue
from linecalc.values.temporal import DurationValue

logger = logging.getLogger(__name__)

_BINDING_PREFIX: Final[str] = "__ref_"
_BINDING_PATTERN: Final = re.compile(rf"{_BINDING_PREFIX}(\d+)(?![0-9])")


class OrchestratorState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


@dataclass
class _PassState:
    """Mutable bookkeeping for one pass."""

    produced: dict[int, RenderResult] = field(default_factory=dict)
    results: dict[int, RenderResult] = field(default_factory=dict)
    line_states: dict[str, LineResultState] = field(default_factory=dict)
    statuses: dict[int, LineStatus] = field(default_factory=dict)
    suppressed: dict[int, SuppressionReason] = field(default_factory=dict)
    reported_cycles: set[tuple[str, ...]] = field(default_factory=set)


@dataclass(frozen=True, slots=True)
class _PreparedLine:
    record: LineRecord
    text: str
    references: tuple[tuple[str, CrossLineReference], ...]

    def restore(self, text: str) -> str:
        """Put the original placeholders back in place of binding names."""
        if not self.references:
            return text
        placeholders = {binding: ref.placeholder for binding, ref in self.references}

        def swap(match: re.Match[str]) -> str:
            return placeholders.get(match.group(0), match.group(0))

        return _BINDING_PATTERN.sub(swap, text)


def _prepare(record: LineRecord) -> _PreparedLine:
    text = record.text
    references: list[tuple[str, CrossLineReference]] = []
    for index, ref in enumerate(record.references):
        if not ref.placeholder or ref.placeholder not in text:
            continue
        binding = f"{_BINDING_PREFIX}{index}"
        text = text.replace(ref.placeholder, binding)
        references.append((binding, ref))
    return _PreparedLine(record, text, tuple(references))


def _as_records(lines: Sequence[LineRecord | str]) -> list[LineRecord]:
    return [
        line if isinstance(line, LineRecord) else LineRecord(f"line-{number}", line)
        for number, line in enumerate(lines, start=1)
    ]


def _alias_quantity(value: SemanticValue) -> Quantity | None:
    if isinstance(value, UnitValue):
        return value.quantity
    if isinstance(value, DurationValue):
        return duration_to_quantity(value)
    return None


def _display_expression(node: ASTNode) -> str:
    if isinstance(node, VariableAssignmentNode | ExpressionNode | CombinedAssignmentNode):
        return expression_text(node)
    return node.raw.strip()


class DocumentOrchestrator:
    """Runs full-document passes and owns the stores they populate.

    Attributes:
        variables: Variables committed by the latest pass.
        functions: User functions defined by the latest pass.
        equations: Assignment equations recorded by the latest pass.
        metrics: Live evaluation counters across passes.
    """

    def __init__(
        self,
        registry: UnitRegistry | None = None,
        pipeline: EvaluatorPipeline | None = None,
        *,
        clock: Callable[[], date] = date.today,
    ) -> None:
        self._registry = registry or UnitRegistry.get_instance()
        self._pipeline = pipeline or EvaluatorPipeline()
        self._clock = clock
        self._state = OrchestratorState.IDLE
        self.variables = VariableStore()
        self.functions = FunctionStore()
        self.equations = EquationStore()
        self.metrics = LiveMetrics()

    @property
    def state(self) -> OrchestratorState:
        return self._state

    def run_pass(
        self,
        lines: Sequence[LineRecord | str],
        settings: CalcSettings | None = None,
        today: date | None = None,
    ) -> PassResult:
        """Evaluate every line of the document.

        Args:
            lines: Line records, or plain strings identified by position.
            settings: Display and evaluation settings (defaults if omitted).
            today: Pass clock for date keywords (defaults to the orchestrator clock).

        Returns:
            PassResult with per-line results, states and committed variables.

        Raises:
            PassInProgressError: If called while a pass is running.
        """
        if self._state is OrchestratorState.RUNNING:
            raise PassInProgressError("A document pass is already running")
        self._state = OrchestratorState.RUNNING
        try:
            return self._run(_as_records(lines), settings or CalcSettings(), today or self._clock())
        finally:
            self._state = OrchestratorState.IDLE

    def _run(self, records: list[LineRecord], settings: CalcSettings, today: date) -> PassResult:
        self.variables.clear()
        self.functions.clear()
        self.equations.clear()

        prepared = [_prepare(record) for record in records]
        nodes = parse_document([line.text for line in prepared])
        index_by_id = {record.line_id: number for number, record in enumerate(records, start=1)}
        state = _PassState()

        with start_span(PASS_SPAN, {"linecalc.line_count": len(records)}) as span:
            for line, node in zip(prepared, nodes, strict=True):
                self._evaluate_line(line, node, index_by_id, settings, today, state)
                if isinstance(node, VariableAssignmentNode | CombinedAssignmentNode):
                    # Placeholder bindings mean nothing outside their own line.
                    if not line.references:
                        self.equations.record(node.name, expression_text(node), node.line_number)
            result = PassResult(
                results=MappingProxyType(state.results),
                line_states=MappingProxyType(state.line_states),
                statuses=MappingProxyType(state.statuses),
                suppressed=MappingProxyType(state.suppressed),
                variables=tuple(self.variables.list()),
                nodes=tuple(nodes),
            )
            set_span_attributes(
                span,
                {
                    "linecalc.result_count": len(result.results),
                    "linecalc.error_count": result.error_count,
                },
            )

        logger.info(
            "Pass complete: lines=%d results=%d errors=%d suppressed=%d",
            len(records),
            len(result.results),
            result.error_count,
            len(result.suppressed),
        )
        return result

    def _evaluate_line(
        self,
        line: _PreparedLine,
        node: ASTNode,
        index_by_id: Mapping[str, int],
        settings: CalcSettings,
        today: date,
        state: _PassState,
    ) -> None:
        number = node.line_number
        blank = isinstance(node, PlainTextNode) and not node.raw.strip()
        if isinstance(node, CommentNode) or blank:
            state.statuses[number] = LineStatus.NO_RESULT
            return

        ctx = self._context(settings, today, line.record, number, {}, state)
        if line.references:
            bindings = self._resolve_references(line, index_by_id, ctx, state)
            if bindings is None:
                self._record_broken(line, node, ctx, state)
                return
            ctx = self._context(settings, today, line.record, number, bindings, state)

        live_expression = False
        if isinstance(node, PlainTextNode):
            decision = assess_live_line(node.raw.strip(), ctx)
            if not decision.eligible:
                assert decision.reason is not None
                self._suppress(number, decision.reason, state)
                return
            node = ExpressionNode(number, node.raw, node.raw.strip(), has_trigger=False)
            live_expression = True
            self.metrics.record_attempt()

        outcome = self._pipeline.dispatch(node, ctx)
        if outcome.result is None:
            if isinstance(node, FunctionDefinitionNode):
                state.statuses[number] = LineStatus.DEFINITION
            else:
                state.statuses[number] = LineStatus.NO_RESULT
            return

        result = replace(
            outcome.result,
            expression=line.restore(outcome.result.expression),
            display_text=line.restore(outcome.result.display_text),
        )
        state.produced[number] = result
        state.line_states[line.record.line_id] = LineResultState.from_result(result)

        if live_expression:
            if result.has_error:
                self._suppress(number, SuppressionReason.ERROR, state)
                return
            if isinstance(result.value, SymbolicValue):
                self._suppress(number, SuppressionReason.UNRESOLVED, state)
                return
            self.metrics.record_shown()
        elif isinstance(node, VariableAssignmentNode) and not result.has_error:
            shown = settings.live_result_enabled and should_show_live_assignment(
                node.value_expr, ctx.known_names(), self.functions.names()
            )
            if not shown:
                state.statuses[number] = LineStatus.NO_RESULT
                return

        state.results[number] = result
        state.statuses[number] = LineStatus.ERROR if result.has_error else LineStatus.RESULT

    def _context(
        self,
        settings: CalcSettings,
        today: date,
        record: LineRecord,
        line_number: int,
        bindings: Mapping[str, SemanticValue],
        state: _PassState,
    ) -> EvaluationContext:
        quantities: dict[str, Quantity] = {}
        for variable in self.variables:
            quantity = _alias_quantity(variable.value)
            if quantity is not None:
                quantities[variable.name] = quantity
        aliases = build_dynamic_aliases(quantities)
        for cycle in sorted(set(aliases.blocked.values())):
            if cycle not in state.reported_cycles:
                state.reported_cycles.add(cycle)
                logger.warning("Circular unit alias detected (%s)", " -> ".join(cycle))

        reserved = [*self.variables.names(), *self.functions.names(), *bindings]
        return EvaluationContext(
            settings=settings,
            view=self._registry.view(aliases.aliases, aliases.blocked, reserved),
            variables=self.variables,
            functions=self.functions,
            bindings=MappingProxyType(dict(bindings)),
            line_number=line_number,
            line_id=record.line_id,
            today=today,
            equations=self.equations,
        )

    def _resolve_references(
        self,
        line: _PreparedLine,
        index_by_id: Mapping[str, int],
        ctx: EvaluationContext,
        state: _PassState,
    ) -> dict[str, SemanticValue] | None:
        """Bind each reference to its source value; None when any is broken."""
        bindings: dict[str, SemanticValue] = {}
        for binding, ref in line.references:
            value = self._resolve(ref, index_by_id, ctx, state)
            if value is None:
                logger.debug("Line %d: broken reference %s", ctx.line_number, ref.placeholder)
                return None
            bindings[binding] = value
        return bindings

    def _resolve(
        self,
        ref: CrossLineReference,
        index_by_id: Mapping[str, int],
        ctx: EvaluationContext,
        state: _PassState,
    ) -> SemanticValue | None:
        target: int | None = None
        if ref.target_line_id is not None and ref.target_line_id in index_by_id:
            target = index_by_id[ref.target_line_id]
        elif ref.target_line_number is not None and 1 <= ref.target_line_number <= len(index_by_id):
            target = ref.target_line_number

        if target is None:
            if not ref.fallback:
                return None
            try:
                value = evaluate_text(ref.fallback, ctx)
            except CalcError as e:
                logger.debug("Line %d: reference fallback failed: %s", ctx.line_number, e.message)
                return None
            return None if isinstance(value, ErrorValue) else value

        # Later lines (and the line itself) have no result yet in this pass.
        result = state.produced.get(target)
        if result is None or result.has_error or result.value is None:
            return None
        if isinstance(result.value, ErrorValue):
            return None
        return result.value

    def _record_broken(
        self, line: _PreparedLine, node: ASTNode, ctx: EvaluationContext, state: _PassState
    ) -> None:
        number = ctx.line_number
        expression = _display_expression(node)
        result = RenderResult.broken_reference(number, line.restore(expression))

        name = None
        if isinstance(node, VariableAssignmentNode | CombinedAssignmentNode):
            name = assigned_name(node)
        if name is not None:
            self.variables.set(
                name,
                ErrorValue(ErrorKind.BROKEN_REFERENCE, BROKEN_REFERENCE_MESSAGE),
                expression,
                line_id=ctx.line_id,
                line_number=number,
            )

        state.produced[number] = result
        state.results[number] = result
        state.line_states[line.record.line_id] = LineResultState.from_result(result)
        state.statuses[number] = LineStatus.BROKEN_REFERENCE

    def _suppress(self, line_number: int, reason: SuppressionReason, state: _PassState) -> None:
        logger.debug("Line %d: live evaluation suppressed (%s)", line_number, reason.value)
        self.metrics.record_suppressed(reason)
        state.suppressed[line_number] = reason
        state.statuses[line_number] = LineStatus.SUPPRESSED
