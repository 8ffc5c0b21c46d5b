"""Evaluator dispatch pipeline.

A parsed line is offered to each evaluator in a fixed order. The first
evaluator whose ``can_handle`` accepts it is invoked; a None result passes the
line on to the next candidate. A line no evaluator accepts yields no result.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from linecalc.errors import ErrorKind
from linecalc.eval.context import EvaluationContext
from linecalc.eval.evaluators import Evaluator, default_evaluators
from linecalc.eval.results import RenderResult
from linecalc.observability.tracing import LINE_SPAN, set_span_attributes, start_span
from linecalc.parsing.ast import (
    ASTNode,
    CombinedAssignmentNode,
    ExpressionNode,
    VariableAssignmentNode,
    expression_text,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DispatchOutcome:
    """Result of dispatching one line.

    Attributes:
        result: Render result, or None when no evaluator produced one.
        evaluator_name: Evaluator that produced the result, if any.
    """

    result: RenderResult | None
    evaluator_name: str | None = None


def _failure_expression(node: ASTNode) -> str:
    if isinstance(node, ExpressionNode | VariableAssignmentNode | CombinedAssignmentNode):
        return expression_text(node)
    return node.raw.strip()


class EvaluatorPipeline:
    """Fixed-order evaluator dispatch."""

    def __init__(self, evaluators: Sequence[Evaluator] | None = None) -> None:
        self._evaluators = tuple(evaluators) if evaluators is not None else default_evaluators()

    @property
    def evaluator_names(self) -> list[str]:
        return [evaluator.name for evaluator in self._evaluators]

    def dispatch(self, node: ASTNode, ctx: EvaluationContext) -> DispatchOutcome:
        """Offer the node to each evaluator in order.

        Unexpected (non-CalcError) exceptions from an evaluator become an error
        result for the line; they never propagate to the caller.
        """
        attributes = {
            "linecalc.line_number": ctx.line_number,
            "linecalc.node_kind": node.kind.value,
        }
        with start_span(LINE_SPAN, attributes) as span:
            outcome = self._dispatch(node, ctx)
            result = outcome.result
            error_kind = result.error_kind if result is not None else None
            set_span_attributes(
                span,
                {
                    "linecalc.evaluator": outcome.evaluator_name,
                    "linecalc.outcome": result.kind.value if result is not None else "none",
                    "linecalc.error_kind": error_kind.value if error_kind else None,
                },
            )
            return outcome

    def _dispatch(self, node: ASTNode, ctx: EvaluationContext) -> DispatchOutcome:
        for evaluator in self._evaluators:
            if not evaluator.can_handle(node):
                continue
            try:
                result = evaluator.evaluate(node, ctx)
            except Exception as e:
                logger.exception("Evaluator %s failed on line %d", evaluator.name, ctx.line_number)
                return DispatchOutcome(
                    RenderResult.error(
                        ctx.line_number,
                        _failure_expression(node),
                        ErrorKind.EVALUATION,
                        f"Evaluation error in {evaluator.name}: {e}",
                    ),
                    evaluator.name,
                )
            if result is None:
                logger.debug("Line %d: %s declined", ctx.line_number, evaluator.name)
                continue
            logger.debug("Line %d: evaluated by %s", ctx.line_number, evaluator.name)
            return DispatchOutcome(result, evaluator.name)

        logger.debug("Line %d: no evaluator produced a result", ctx.line_number)
        return DispatchOutcome(None)
