"""Percentage phrases and the percentage-chain rewrite.

Phrase forms::

    X% of Y            Y * X/100
    X% on Y            Y + Y * X/100
    X% off Y           Y - Y * X/100
    A is what % of B   A / B as a percentage
    what % is A of B   A / B as a percentage
    X as %             X as a percentage

Chain rewrite: ``BASE + p1 - p2`` where the trailing identifiers hold
percentages becomes ``BASE * (1 + p1/100) * (1 - p2/100)``. Terms are consumed
right to left and consumption stops at the first term that is not a
percentage-valued identifier.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Final

from linecalc.errors import CalcError, IncompatibleCurrencyError, InvalidOperationError
from linecalc.eval.context import EvaluationContext
from linecalc.parsing.expression import (
    BinaryOp,
    Conversion,
    ExprNode,
    ListLiteral,
    NumberLiteral,
    VariableRef,
)
from linecalc.values.arithmetic import binary_op, dimensionless_scalar
from linecalc.values.base import BinaryOperator, SemanticValue
from linecalc.values.scalars import CURRENCY_BY_SYMBOL, CurrencyValue, NumberValue, PercentageValue
from linecalc.values.special import ErrorValue, SymbolicValue

CURRENCY_MIX_MESSAGE: Final[str] = "Cannot mix different currency symbols with percent modifiers"

_PERCENT_OF: Final = re.compile(
    r"^(?P<left>.+?)(?:(?<=%)\s*|\s+)(?P<op>of|on|off)\s+(?P<right>.+)$", re.IGNORECASE
)
_IS_WHAT_PERCENT: Final = re.compile(
    r"^(?P<part>.+?)\s+is\s+what\s*%\s*of\s+(?P<base>.+)$", re.IGNORECASE
)
_WHAT_PERCENT_IS: Final = re.compile(
    r"^what\s*%\s*is\s+(?P<part>.+?)\s+of\s+(?P<base>.+)$", re.IGNORECASE
)
_AS_PERCENT: Final = re.compile(r"^(?P<value>.+?)\s+as\s*%$", re.IGNORECASE)
PHRASE_HINT: Final = re.compile(r"\b(?:of|on|off)\s|what\s*%|\bas\s*%", re.IGNORECASE)

Evaluate = Callable[[str], SemanticValue]


@dataclass(frozen=True, slots=True)
class ChainTerm:
    sign: str
    name: str
    percent: float


def _leading_currency(raw: str) -> str | None:
    stripped = raw.strip()
    return CURRENCY_BY_SYMBOL.get(stripped[:1]) if stripped else None


def _currency_of(node: ExprNode, ctx: EvaluationContext) -> str | None:
    if not isinstance(node, VariableRef):
        return None
    value = ctx.lookup(node.name)
    if isinstance(value, CurrencyValue):
        return value.code
    variable = ctx.lookup_variable(node.name)
    return _leading_currency(variable.raw_expression) if variable is not None else None


def _collect_chain(tree: ExprNode, ctx: EvaluationContext) -> tuple[ExprNode, list[ChainTerm]]:
    terms: list[ChainTerm] = []
    node = tree
    while (
        isinstance(node, BinaryOp)
        and node.operator in ("+", "-")
        and isinstance(node.right, VariableRef)
    ):
        value = ctx.lookup(node.right.name)
        if not isinstance(value, PercentageValue):
            break
        terms.append(ChainTerm(node.operator, node.right.name, value.percent))
        node = node.left
    return node, terms


def rewrite_percentage_chain(tree: ExprNode, ctx: EvaluationContext) -> ExprNode:
    """Rewrite trailing ``± percentage-variable`` terms into multiplicative factors.

    Raises:
        IncompatibleCurrencyError: When a currency base is modified by a percentage
            variable defined with a different currency symbol.
    """
    if isinstance(tree, Conversion):
        return Conversion(rewrite_percentage_chain(tree.operand, ctx), tree.target)
    if isinstance(tree, ListLiteral):
        return ListLiteral(tuple(rewrite_percentage_chain(item, ctx) for item in tree.items))

    base, terms = _collect_chain(tree, ctx)
    if not terms:
        return tree

    base_currency = _currency_of(base, ctx)
    if base_currency is not None:
        for term in terms:
            variable = ctx.lookup_variable(term.name)
            if variable is None:
                continue
            term_currency = _leading_currency(variable.raw_expression)
            if term_currency is not None and term_currency != base_currency:
                raise IncompatibleCurrencyError(CURRENCY_MIX_MESSAGE)

    rewritten = base
    # Terms were collected right to left; apply factors in source order.
    for term in reversed(terms):
        fraction = term.percent / 100.0
        factor = 1.0 + fraction if term.sign == "+" else 1.0 - fraction
        rewritten = BinaryOp("*", rewritten, NumberLiteral(factor))
    return rewritten


def looks_like_phrase(text: str) -> bool:
    return PHRASE_HINT.search(text) is not None


def _ratio_percent(part: SemanticValue, base: SemanticValue) -> SemanticValue:
    if isinstance(part, ErrorValue | SymbolicValue):
        return part
    if isinstance(base, ErrorValue | SymbolicValue):
        return base
    ratio = binary_op(BinaryOperator.DIVIDE, part, base)
    scalar = dimensionless_scalar(ratio)
    if scalar is None:
        raise InvalidOperationError(
            f"Cannot compare {part.describe()} and {base.describe()} as a percentage"
        )
    return PercentageValue(scalar * 100.0)


def evaluate_phrase(text: str, evaluate: Evaluate) -> SemanticValue | None:
    """Evaluate a percentage phrase.

    Args:
        text: Expression text.
        evaluate: Evaluates a sub-expression in the line's context.

    Returns:
        The phrase's value, or None when the text is not a percentage phrase.

    Raises:
        CalcError: When a recognized phrase fails to evaluate.
    """
    stripped = text.strip()

    match = _IS_WHAT_PERCENT.match(stripped) or _WHAT_PERCENT_IS.match(stripped)
    if match is not None:
        return _ratio_percent(evaluate(match.group("part")), evaluate(match.group("base")))

    match = _AS_PERCENT.match(stripped)
    if match is not None:
        value = evaluate(match.group("value"))
        if isinstance(value, PercentageValue | ErrorValue | SymbolicValue):
            return value
        scalar = dimensionless_scalar(value)
        if scalar is None:
            raise InvalidOperationError(f"Cannot express {value.describe()} as a percentage")
        return PercentageValue(scalar * 100.0)

    match = _PERCENT_OF.match(stripped)
    if match is None:
        return None
    try:
        left = evaluate(match.group("left"))
    except CalcError:
        return None
    if not isinstance(left, PercentageValue):
        return None

    right_text = match.group("right")
    right = evaluate_phrase(right_text, evaluate)
    if right is None:
        right = evaluate(right_text)
    op = match.group("op").lower()
    if op == "of":
        return binary_op(BinaryOperator.MULTIPLY, right, NumberValue(left.fraction))
    if op == "on":
        return binary_op(BinaryOperator.ADD, right, left)
    return binary_op(BinaryOperator.SUBTRACT, right, left)
