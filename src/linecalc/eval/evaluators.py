"""Line evaluators tried by the dispatch pipeline.

Each evaluator exposes a side-effect-free ``can_handle(node)`` predicate and an
``evaluate(node, ctx)`` method that returns a RenderResult, or None to decline
after inspection. Assignment-shaped nodes commit their value to the variable
store of the context; nothing else is mutated.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from typing import Final, Protocol, runtime_checkable

from linecalc.errors import CalcError, ExpressionSyntaxError, UndefinedVariableError
from linecalc.eval.context import EvaluationContext
from linecalc.eval.interpreter import Interpreter
from linecalc.eval.numeric import FloatEngine, NumericEngine, lower
from linecalc.eval.percentage import evaluate_phrase, looks_like_phrase, rewrite_percentage_chain
from linecalc.eval.ranges import contains_range_operator, is_range_candidate, normalize_range_error
from linecalc.eval.results import RenderResult
from linecalc.eval.solve import SOLVE_COMMAND, VARIABLE_REFERENCE, solve_text
from linecalc.parsing.ast import (
    ASTNode,
    CombinedAssignmentNode,
    ErrorNode,
    ExpressionNode,
    FunctionDefinitionNode,
    VariableAssignmentNode,
    assigned_name,
    expression_text,
)
from linecalc.parsing.expression import (
    LITERAL_NODES,
    Conversion,
    ExprNode,
    UnaryOp,
    VariableRef,
    parse_expression,
)
from linecalc.state.functions import UserFunction
from linecalc.units.quantity import best_display_quantity
from linecalc.values.base import SemanticValue
from linecalc.values.scalars import NumberValue, UnitValue
from linecalc.values.special import ErrorValue, SymbolicValue

logger = logging.getLogger(__name__)

_UNITS_HINT: Final = re.compile(
    r"\d\s*[A-Za-z°µμΩ%]"
    r"|[$€£¥₹₿]"
    r"|\s(?:to|in)\s"
    r"|\d{4}-\d{2}-\d{2}"
    r"|\b(?:today|tomorrow|yesterday)\b"
)

_EXPRESSION_NODES = (VariableAssignmentNode, ExpressionNode, CombinedAssignmentNode)

Compute = Callable[[str], SemanticValue | None]


@runtime_checkable
class Evaluator(Protocol):
    """A line evaluator in the dispatch pipeline."""

    @property
    def name(self) -> str:
        """Evaluator name used in logs, spans and error messages."""
        ...

    def can_handle(self, node: ASTNode) -> bool:
        """Pure predicate: whether this evaluator should be offered the node."""
        ...

    def evaluate(self, node: ASTNode, ctx: EvaluationContext) -> RenderResult | None:
        """Evaluate the node, or return None to let the next evaluator try."""
        ...


def parse_tree(text: str, ctx: EvaluationContext) -> ExprNode:
    """Parse an expression against the line's registry view.

    Raises:
        ExpressionSyntaxError: When the text does not parse.
    """
    parsed = parse_expression(text, ctx.view, ctx.known_names())
    if parsed.error is not None:
        raise ExpressionSyntaxError(parsed.error.message, parsed.error.kind)
    assert parsed.tree is not None
    return parsed.tree


def evaluate_text(text: str, ctx: EvaluationContext) -> SemanticValue:
    """Parse, rewrite percentage chains and interpret ``text``."""
    tree = rewrite_percentage_chain(parse_tree(text, ctx), ctx)
    return Interpreter(ctx).evaluate(tree)


def with_best_display(
    tree: ExprNode, value: SemanticValue, ctx: EvaluationContext
) -> SemanticValue:
    """Attach a display unit to computed quantities; literals and conversions keep theirs."""
    if not isinstance(value, UnitValue) or value.display is not None:
        return value
    if isinstance(tree, (*LITERAL_NODES, VariableRef, Conversion)):
        return value
    if isinstance(tree, UnaryOp) and isinstance(tree.operand, LITERAL_NODES):
        return value
    shown = best_display_quantity(value.quantity, ctx.view)
    return value if shown is value.quantity else UnitValue(value.quantity, shown)


def render_value(node: ASTNode, ctx: EvaluationContext, compute: Compute) -> RenderResult | None:
    """Run ``compute`` on the node's expression and build the render result.

    Undefined variables turn the line symbolic. Other CalcErrors become error
    results; a failed assignment stores an ErrorValue so dependents propagate it.
    """
    assert isinstance(node, _EXPRESSION_NODES)
    text = expression_text(node)
    name = assigned_name(node)
    live = isinstance(node, VariableAssignmentNode) or (
        isinstance(node, ExpressionNode) and not node.has_trigger
    )

    try:
        value = compute(text)
    except UndefinedVariableError:
        value = SymbolicValue(text)
    except CalcError as e:
        if name is not None:
            _commit(ctx, name, ErrorValue.from_exception(e), text)
        return RenderResult.from_exception(
            ctx.line_number, text, e, variable_name=name, live=live
        )
    if value is None:
        return None

    if name is not None:
        _commit(ctx, name, value, text)
    if isinstance(value, ErrorValue):
        return RenderResult.error(
            ctx.line_number, text, value.kind, value.message, variable_name=name, live=live
        )
    if name is not None:
        return RenderResult.combined(ctx.line_number, name, text, value, ctx.settings, live=live)
    return RenderResult.math_result(ctx.line_number, text, value, ctx.settings, live=live)


def _commit(ctx: EvaluationContext, name: str, value: SemanticValue, text: str) -> None:
    ctx.variables.set(name, value, text, line_id=ctx.line_id, line_number=ctx.line_number)


class ErrorNodeEvaluator:
    """Renders lines that failed line classification."""

    name = "ErrorNodeEvaluator"

    def can_handle(self, node: ASTNode) -> bool:
        return isinstance(node, ErrorNode)

    def evaluate(self, node: ASTNode, ctx: EvaluationContext) -> RenderResult | None:
        assert isinstance(node, ErrorNode)
        expression = node.raw.strip().partition("=>")[0].strip()
        return RenderResult.from_exception(
            ctx.line_number, expression, ExpressionSyntaxError(node.message)
        )


class FunctionDefinitionEvaluator:
    """Registers user-defined functions; produces no render result."""

    name = "FunctionDefinitionEvaluator"

    def can_handle(self, node: ASTNode) -> bool:
        return isinstance(node, FunctionDefinitionNode)

    def evaluate(self, node: ASTNode, ctx: EvaluationContext) -> RenderResult | None:
        assert isinstance(node, FunctionDefinitionNode)
        ctx.functions.define(UserFunction(node.name, node.params, node.body, ctx.line_number))
        logger.debug("Defined function %s on line %d", node.name, ctx.line_number)
        return None


class PercentageEvaluator:
    """Percentage phrases: ``X% of Y``, ``X% on/off Y``, ``what %``, ``as %``."""

    name = "PercentageEvaluator"

    def can_handle(self, node: ASTNode) -> bool:
        return isinstance(node, _EXPRESSION_NODES) and looks_like_phrase(expression_text(node))

    def evaluate(self, node: ASTNode, ctx: EvaluationContext) -> RenderResult | None:
        def compute(text: str) -> SemanticValue | None:
            return evaluate_phrase(text, lambda s: evaluate_text(s, ctx))

        return render_value(node, ctx, compute)


class RangeEvaluator:
    """Inclusive integer ranges ``a..b [step n]``, producing lists."""

    name = "RangeEvaluator"

    def can_handle(self, node: ASTNode) -> bool:
        return isinstance(node, _EXPRESSION_NODES) and contains_range_operator(
            expression_text(node)
        )

    def evaluate(self, node: ASTNode, ctx: EvaluationContext) -> RenderResult | None:
        def compute(text: str) -> SemanticValue:
            if not is_range_candidate(text):
                raise ExpressionSyntaxError(normalize_range_error(text, ""))
            try:
                tree = parse_tree(text, ctx)
            except ExpressionSyntaxError as e:
                raise ExpressionSyntaxError(normalize_range_error(text, e.message), e.kind) from e
            return Interpreter(ctx).evaluate(rewrite_percentage_chain(tree, ctx))

        return render_value(node, ctx, compute)


class SolveEvaluator:
    """``solve x in <equation>`` commands and bare unknowns such as ``v =>``.

    Solutions are shown, never committed as variables.
    """

    name = "SolveEvaluator"

    def can_handle(self, node: ASTNode) -> bool:
        if not isinstance(node, ExpressionNode) or not node.has_trigger:
            return False
        text = node.expression.strip()
        head = text.split(" to ")[0].split(" in ")[0]
        return SOLVE_COMMAND.match(text) is not None or VARIABLE_REFERENCE.match(head) is not None

    def evaluate(self, node: ASTNode, ctx: EvaluationContext) -> RenderResult | None:
        return render_value(node, ctx, lambda text: solve_text(text.strip(), ctx))


class UnitsEvaluator:
    """Quantities, currencies, percentages, dates and conversions.

    Declines purely numeric expressions so the generic evaluator can lower them.
    """

    name = "UnitsEvaluator"

    def can_handle(self, node: ASTNode) -> bool:
        if not isinstance(node, _EXPRESSION_NODES):
            return False
        return _UNITS_HINT.search(expression_text(node)) is not None

    def evaluate(self, node: ASTNode, ctx: EvaluationContext) -> RenderResult | None:
        def compute(text: str) -> SemanticValue | None:
            tree = rewrite_percentage_chain(parse_tree(text, ctx), ctx)
            if lower(tree, ctx) is not None:
                return None
            return with_best_display(tree, Interpreter(ctx).evaluate(tree), ctx)

        return render_value(node, ctx, compute)


class GenericEvaluator:
    """Fallback for any expression-bearing line; must run last."""

    name = "GenericEvaluator"

    def __init__(self, engine: NumericEngine | None = None) -> None:
        self._engine = engine or FloatEngine()

    def can_handle(self, node: ASTNode) -> bool:
        return isinstance(node, _EXPRESSION_NODES)

    def evaluate(self, node: ASTNode, ctx: EvaluationContext) -> RenderResult | None:
        def compute(text: str) -> SemanticValue:
            tree = rewrite_percentage_chain(parse_tree(text, ctx), ctx)
            variables = lower(tree, ctx)
            if variables is not None:
                return NumberValue(self._engine.evaluate(tree, variables))
            return with_best_display(tree, Interpreter(ctx).evaluate(tree), ctx)

        return render_value(node, ctx, compute)


def default_evaluators(engine: NumericEngine | None = None) -> tuple[Evaluator, ...]:
    """The fixed evaluator priority order."""
    return (
        ErrorNodeEvaluator(),
        FunctionDefinitionEvaluator(),
        PercentageEvaluator(),
        RangeEvaluator(),
        SolveEvaluator(),
        UnitsEvaluator(),
        GenericEvaluator(engine),
    )
