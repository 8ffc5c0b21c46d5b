"""Rearranging equations for a single unknown.

Two forms reach the solver:

- explicit: ``solve v in distance = v * time, time = 2 s`` where the first
  equation holds the unknown and the others bind local values
- implicit: a bare unknown name (``v =>``) answered from the nearest earlier
  assignment line that mentions it

Equations are inverted structurally, one operator at a time. Plain numeric
variables are substituted before inversion. The rearranged expression is then
evaluated; when some names are still unknown the result is shown as text with
every known value substituted.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Final

from linecalc.config import CalcSettings
from linecalc.errors import CalcError, SolveError, UndefinedVariableError
from linecalc.eval.context import EvaluationContext
from linecalc.eval.interpreter import Interpreter
from linecalc.eval.numeric import FloatEngine, lower
from linecalc.parsing.expression import (
    BinaryOp,
    ConstantRef,
    Conversion,
    CurrencyLiteral,
    DateLiteral,
    ExprNode,
    FunctionCall,
    ListLiteral,
    NumberLiteral,
    PercentLiteral,
    QuantityLiteral,
    RangeLiteral,
    UnaryOp,
    VariableRef,
    parse_expression,
    walk,
)
from linecalc.state.variables import variable_key
from linecalc.values.base import SemanticValue
from linecalc.values.scalars import CurrencyValue, NumberValue, PercentageValue, UnitValue
from linecalc.values.special import ErrorValue, SymbolicValue

logger = logging.getLogger(__name__)

SOLVE_COMMAND: Final = re.compile(r"^\s*solve\s+", re.IGNORECASE)
VARIABLE_REFERENCE: Final = re.compile(r"^[A-Za-z_][A-Za-z0-9_\s]*$")
_CONVERSION_SUFFIX: Final = re.compile(r"^(?P<base>.+?)\s+(?P<keyword>to|in)\s+(?P<target>\S.*)$")
_OPERATOR_CHARS: Final = re.compile(r"[-+*/^]")
_WORD_CHAR: Final = re.compile(r"[A-Za-z0-9_]")

NOT_VALID: Final[str] = "Cannot solve: equation is not valid"
BOTH_SIDES: Final[str] = "Cannot solve: variable appears on both sides"
NOT_FOUND: Final[str] = "Cannot solve: variable not found"
NO_REAL_SOLUTION: Final[str] = "Cannot solve: no real solution"

_PRECEDENCE: Final[dict[str, int]] = {"+": 1, "-": 1, "*": 2, "/": 2, "^": 3}
_INVERSE_FUNCTIONS: Final[dict[str, str]] = {
    "sin": "asin",
    "cos": "acos",
    "tan": "atan",
    "asin": "sin",
    "acos": "cos",
    "atan": "tan",
    "exp": "ln",
    "ln": "exp",
}
_SUM_FUNCTIONS: Final[frozenset[str]] = frozenset({"sum", "total"})


def no_equation_message(target: str) -> str:
    return f'Cannot solve: no equation found for "{target}"'


@dataclass(frozen=True, slots=True)
class Equation:
    left: ExprNode
    right: ExprNode


@dataclass(frozen=True, slots=True)
class SolveRequest:
    """A parsed solve command.

    Attributes:
        target: Normalized name of the unknown.
        equation: The one equation that mentions the unknown.
        assumptions: ``name = expression`` pairs evaluated into local values.
    """

    target: str
    equation: Equation
    assumptions: tuple[tuple[str, ExprNode], ...] = ()


def _top_level_flags(text: str) -> list[bool]:
    flags = []
    depth = 0
    for char in text:
        if char == "(":
            depth += 1
        flags.append(depth == 0)
        if char == ")":
            depth = max(0, depth - 1)
    return flags


def _find_keyword(text: str, keyword: str) -> int:
    """First top-level, whole-word, case-insensitive occurrence of ``keyword``."""
    flags = _top_level_flags(text)
    lowered = text.lower()
    start = lowered.find(keyword)
    while start >= 0:
        end = start + len(keyword)
        before = text[start - 1] if start > 0 else ""
        after = text[end] if end < len(text) else ""
        if flags[start] and not _WORD_CHAR.match(before) and not _WORD_CHAR.match(after):
            return start
        start = lowered.find(keyword, start + 1)
    return -1


def _split_top_level(text: str, separator: str) -> list[str]:
    parts: list[str] = []
    flags = _top_level_flags(text)
    last = 0
    for index, char in enumerate(text):
        if char == separator and flags[index]:
            parts.append(text[last:index])
            last = index + 1
    parts.append(text[last:])
    return parts


def _split_equation(text: str) -> tuple[str, str]:
    sides = _split_top_level(text, "=")
    if len(sides) != 2 or not sides[0].strip() or not sides[1].strip():
        raise SolveError(NOT_VALID)
    return sides[0].strip(), sides[1].strip()


def _parse_side(text: str, ctx: EvaluationContext, names: list[str]) -> ExprNode:
    parsed = parse_expression(text, ctx.view, names)
    if parsed.error is not None or parsed.tree is None:
        raise SolveError(NOT_VALID)
    return parsed.tree


def _is_target(node: ExprNode, target: str) -> bool:
    return isinstance(node, VariableRef) and variable_key(node.name) == target


def contains_target(node: ExprNode, target: str) -> bool:
    return any(_is_target(child, target) for child in walk(node))


def _numeric(node: ExprNode, ctx: EvaluationContext) -> float | None:
    variables = lower(node, ctx)
    if variables is None:
        return None
    try:
        return FloatEngine().evaluate(node, variables)
    except CalcError:
        return None


def _substitute_numbers(node: ExprNode, target: str, ctx: EvaluationContext) -> ExprNode:
    """Replace plain-number variables (other than the unknown) with literals."""
    if isinstance(node, VariableRef):
        if _is_target(node, target):
            return node
        value = ctx.lookup(node.name)
        return NumberLiteral(value.value) if isinstance(value, NumberValue) else node
    if isinstance(node, UnaryOp):
        return UnaryOp(node.operator, _substitute_numbers(node.operand, target, ctx))
    if isinstance(node, BinaryOp):
        return BinaryOp(
            node.operator,
            _substitute_numbers(node.left, target, ctx),
            _substitute_numbers(node.right, target, ctx),
        )
    if isinstance(node, FunctionCall):
        return FunctionCall(
            node.name, tuple(_substitute_numbers(arg, target, ctx) for arg in node.args)
        )
    if isinstance(node, Conversion):
        return Conversion(_substitute_numbers(node.operand, target, ctx), node.target)
    return node


def _fold_sum(args: tuple[ExprNode, ...]) -> ExprNode:
    folded = args[0]
    for arg in args[1:]:
        folded = BinaryOp("+", folded, arg)
    return folded


def invert(expr: ExprNode, target: str, other: ExprNode, ctx: EvaluationContext) -> ExprNode:
    """Solve ``expr = other`` for ``target``, where only ``expr`` mentions it.

    Raises:
        SolveError: When the structure cannot be inverted.
    """
    if _is_target(expr, target):
        return other
    if isinstance(expr, Conversion):
        return invert(expr.operand, target, other, ctx)
    if isinstance(expr, UnaryOp):
        return invert(expr.operand, target, UnaryOp("-", other), ctx)
    if isinstance(expr, FunctionCall):
        return _invert_call(expr, target, other, ctx)
    if isinstance(expr, BinaryOp):
        return _invert_binary(expr, target, other, ctx)
    raise SolveError(NOT_FOUND)


def _invert_call(
    call: FunctionCall, target: str, other: ExprNode, ctx: EvaluationContext
) -> ExprNode:
    if call.name in _SUM_FUNCTIONS and call.args:
        return invert(_fold_sum(call.args), target, other, ctx)
    if len(call.args) != 1:
        raise SolveError("Cannot solve: unsupported function")
    (arg,) = call.args
    if not contains_target(arg, target):
        raise SolveError(NOT_FOUND)
    if call.name == "sqrt":
        return invert(arg, target, BinaryOp("^", other, NumberLiteral(2.0)), ctx)
    if call.name == "log":
        return invert(arg, target, BinaryOp("^", NumberLiteral(10.0), other), ctx)
    inverse = _INVERSE_FUNCTIONS.get(call.name)
    if inverse is None:
        raise SolveError("Cannot solve: unsupported function")
    return invert(arg, target, FunctionCall(inverse, (other,)), ctx)


def _invert_binary(
    expr: BinaryOp, target: str, other: ExprNode, ctx: EvaluationContext
) -> ExprNode:
    op, left, right = expr.operator, expr.left, expr.right
    left_has = contains_target(left, target)
    right_has = contains_target(right, target)

    if left_has and right_has:
        special = _ratio_of_remainder(expr, target, other)
        if special is None:
            raise SolveError(BOTH_SIDES)
        return special

    if left_has:
        if op == "+":
            return invert(left, target, BinaryOp("-", other, right), ctx)
        if op == "-":
            return invert(left, target, BinaryOp("+", other, right), ctx)
        if op == "*":
            return invert(left, target, BinaryOp("/", other, right), ctx)
        if op == "/":
            return invert(left, target, BinaryOp("*", other, right), ctx)
        exponent = _numeric(right, ctx)
        if exponent is None:
            raise SolveError("Cannot solve: exponent must be numeric")
        if exponent == 0:
            raise SolveError(NO_REAL_SOLUTION)
        if exponent == 2:
            return invert(left, target, FunctionCall("sqrt", (other,)), ctx)
        root = BinaryOp("^", other, BinaryOp("/", NumberLiteral(1.0), right))
        return invert(left, target, root, ctx)

    if right_has:
        if op == "+":
            return invert(right, target, BinaryOp("-", other, left), ctx)
        if op == "-":
            return invert(right, target, BinaryOp("-", left, other), ctx)
        if op == "*":
            return invert(right, target, BinaryOp("/", other, left), ctx)
        if op == "/":
            return invert(right, target, BinaryOp("/", left, other), ctx)
        if _numeric(left, ctx) is None:
            raise SolveError("Cannot solve: exponent requires constant base")
        logarithm = BinaryOp(
            "/", FunctionCall("ln", (other,)), FunctionCall("ln", (left,))
        )
        return invert(right, target, logarithm, ctx)

    raise SolveError(NOT_FOUND)


def _ratio_of_remainder(expr: BinaryOp, target: str, other: ExprNode) -> ExprNode | None:
    """``x / (c - x) = o`` gives ``x = c * o / (1 + o)``."""
    if expr.operator != "/" or not _is_target(expr.left, target):
        return None
    denominator = expr.right
    if not (
        isinstance(denominator, BinaryOp)
        and denominator.operator == "-"
        and _is_target(denominator.right, target)
        and not contains_target(denominator.left, target)
    ):
        return None
    return BinaryOp(
        "/",
        BinaryOp("*", denominator.left, other),
        BinaryOp("+", NumberLiteral(1.0), other),
    )


def solve_equation(equation: Equation, target: str, ctx: EvaluationContext) -> ExprNode:
    """Rearrange ``equation`` into an expression for ``target``.

    Raises:
        SolveError: No unknown, unknown on both sides, or a non-invertible step.
    """
    left = _substitute_numbers(equation.left, target, ctx)
    right = _substitute_numbers(equation.right, target, ctx)
    left_has = contains_target(left, target)
    right_has = contains_target(right, target)
    if left_has and right_has:
        raise SolveError(BOTH_SIDES)
    if not left_has and not right_has:
        raise SolveError(no_equation_message(target))
    solved = invert(left, target, right, ctx) if left_has else invert(right, target, left, ctx)
    _check_real(solved, ctx)
    return solved


def _check_real(tree: ExprNode, ctx: EvaluationContext) -> None:
    for node in walk(tree):
        if isinstance(node, FunctionCall) and node.name == "sqrt" and len(node.args) == 1:
            radicand = _numeric(node.args[0], ctx)
            if radicand is not None and radicand < 0:
                raise SolveError(NO_REAL_SOLUTION)


def _names_with(ctx: EvaluationContext, *extra: str) -> list[str]:
    return [*ctx.known_names(), *extra]


def _conversion_suffix(text: str) -> tuple[str, str | None, str | None]:
    match = _CONVERSION_SUFFIX.match(text)
    if match is None:
        return text, None, None
    return match.group("base"), match.group("keyword"), match.group("target").strip()


def parse_solve_command(text: str, ctx: EvaluationContext) -> SolveRequest:
    """Parse ``solve <unknown> in <equation>[, <name> = <value>...] [where ...]``.

    The where-clause is accepted and ignored.

    Raises:
        SolveError: Malformed command, or not exactly one equation with the unknown.
    """
    match = SOLVE_COMMAND.match(text)
    if match is None:
        raise SolveError(NOT_VALID)
    body = text[match.end() :]
    split = _find_keyword(body, "in")
    if split < 0:
        raise SolveError(NOT_VALID)
    raw_target = body[:split].strip()
    if not raw_target or not VARIABLE_REFERENCE.match(raw_target):
        raise SolveError(NOT_VALID)
    target = variable_key(raw_target)

    rest = body[split + 2 :]
    where = _find_keyword(rest, "where")
    if where >= 0:
        rest = rest[:where]
    parts = _split_top_level(rest, ",")
    if any(not part.strip() for part in parts):
        raise SolveError(NOT_VALID)
    pairs = [_split_equation(part) for part in parts]

    assumption_names = [variable_key(left) for left, _ in pairs if VARIABLE_REFERENCE.match(left)]
    names = _names_with(ctx, target, *assumption_names)
    equations: list[Equation] = []
    assumptions: list[tuple[str, ExprNode]] = []
    for left_text, right_text in pairs:
        left = _parse_side(left_text, ctx, names)
        right = _parse_side(right_text, ctx, names)
        if contains_target(left, target) or contains_target(right, target):
            equations.append(Equation(left, right))
        elif isinstance(left, VariableRef):
            assumptions.append((variable_key(left.name), right))
        else:
            raise SolveError(NOT_VALID)

    if not equations:
        raise SolveError(no_equation_message(target))
    if len(equations) > 1:
        raise SolveError("Cannot solve: multiple equations for target")
    return SolveRequest(target, equations[0], tuple(assumptions))


def implicit_target(text: str, ctx: EvaluationContext) -> tuple[str, str | None, str | None]:
    """Name of an unknown referenced alone on the line, with any conversion suffix.

    Returns ("", None, None) when the line is not a bare unknown: constants,
    date keywords, unit names, functions and names with a concrete value all
    evaluate normally.
    """
    base, keyword, conversion = _conversion_suffix(text.strip())
    if not VARIABLE_REFERENCE.match(base):
        base, keyword, conversion = text.strip(), None, None
        if not VARIABLE_REFERENCE.match(base):
            return "", None, None
    target = variable_key(base)
    parsed = parse_expression(target, ctx.view, _names_with(ctx, target))
    if not isinstance(parsed.tree, VariableRef) or target in ctx.functions:
        return "", None, None
    value = ctx.lookup(target)
    if value is None and ctx.view.try_resolve(target, allow_count=False) is not None:
        return "", None, None
    if value is not None and not isinstance(value, SymbolicValue):
        return "", None, None
    return target, keyword, conversion


def find_equation(target: str, ctx: EvaluationContext) -> Equation:
    """Nearest earlier assignment whose name is ``target`` or whose value mentions it.

    Raises:
        SolveError: When no earlier line mentions the unknown.
    """
    names = _names_with(ctx, target)
    for recorded in ctx.equations.before(ctx.line_number):
        parsed = parse_expression(recorded.expression, ctx.view, names)
        if parsed.error is not None or parsed.tree is None:
            if recorded.name == target:
                raise SolveError(NOT_VALID)
            continue
        if recorded.name == target or contains_target(parsed.tree, target):
            logger.debug(
                "Line %d: solving %s from line %d", ctx.line_number, target, recorded.line_number
            )
            return Equation(VariableRef(recorded.name), parsed.tree)
    raise SolveError(no_equation_message(target))


def evaluate_assumptions(
    request: SolveRequest, ctx: EvaluationContext
) -> dict[str, SemanticValue]:
    values: dict[str, SemanticValue] = {}
    for name, tree in request.assumptions:
        values[name] = Interpreter(ctx.with_values(values)).evaluate(tree)
    return values


def render_solution(
    solution: ExprNode,
    ctx: EvaluationContext,
    *,
    keyword: str | None = None,
    conversion: str | None = None,
) -> SemanticValue:
    """Evaluate a rearranged expression, or show it as text when names are unknown."""
    interpreter = Interpreter(ctx)
    try:
        value: SemanticValue | None = interpreter.evaluate(solution)
    except UndefinedVariableError:
        value = None
    if value is None or isinstance(value, SymbolicValue):
        shown = format_expression(solution, ctx.settings, _known_value(ctx))
        if keyword and conversion:
            shown = f"{shown} {keyword} {conversion}"
        return SymbolicValue(shown)
    if conversion:
        return interpreter.convert(value, conversion)
    return value


def _known_value(ctx: EvaluationContext) -> Callable[[str], SemanticValue | None]:
    def known(name: str) -> SemanticValue | None:
        value = ctx.lookup(name)
        if value is None or isinstance(value, SymbolicValue | ErrorValue):
            return None
        return value

    return known


def _number_text(value: float, settings: CalcSettings) -> str:
    return NumberValue(value).format(settings)


def format_expression(
    tree: ExprNode,
    settings: CalcSettings,
    known: Callable[[str], SemanticValue | None] | None = None,
) -> str:
    """Render a tree as text with the fewest parentheses that keep its meaning.

    Args:
        tree: Expression to render.
        settings: Display settings for literal values.
        known: Optional lookup; names it resolves are shown as their values.
    """

    def leaf(node: ExprNode) -> str:
        if isinstance(node, NumberLiteral):
            return _number_text(node.value, settings)
        if isinstance(node, QuantityLiteral):
            return UnitValue(node.quantity).format(settings)
        if isinstance(node, PercentLiteral):
            return PercentageValue(node.percent).format(settings)
        if isinstance(node, CurrencyLiteral):
            return CurrencyValue(node.code, node.amount).format(settings)
        if isinstance(node, DateLiteral):
            return node.keyword or (node.value.isoformat() if node.value else "")
        if isinstance(node, ConstantRef):
            return node.name
        assert isinstance(node, VariableRef)
        value = known(node.name) if known is not None else None
        if value is None:
            return node.name
        shown = value.format(settings)
        return f"({shown})" if _OPERATOR_CHARS.search(shown) else shown

    def render(node: ExprNode, parent: str | None = None, is_right: bool = False) -> str:
        if isinstance(node, BinaryOp):
            prec = _PRECEDENCE[node.operator]
            left = render(node.left, node.operator)
            right = render(node.right, node.operator, True)
            text = f"{left} {node.operator} {right}"
            if parent is None:
                return text
            parent_prec = _PRECEDENCE[parent]
            if prec < parent_prec:
                return f"({text})"
            if prec == parent_prec and (
                (is_right and parent in ("-", "/", "^")) or (not is_right and parent == "^")
            ):
                return f"({text})"
            return text
        if isinstance(node, UnaryOp):
            inner = render(node.operand)
            return f"-({inner})" if isinstance(node.operand, BinaryOp) else f"-{inner}"
        if isinstance(node, FunctionCall):
            return f"{node.name}({', '.join(render(arg) for arg in node.args)})"
        if isinstance(node, Conversion):
            return f"{render(node.operand)} to {node.target}"
        if isinstance(node, ListLiteral):
            return ", ".join(render(item) for item in node.items)
        if isinstance(node, RangeLiteral):
            text = f"{render(node.start)}..{render(node.stop)}"
            return f"{text} step {render(node.step)}" if node.step is not None else text
        return leaf(node)

    return render(tree)


def solve_text(text: str, ctx: EvaluationContext) -> SemanticValue | None:
    """Answer a solve command or a bare unknown; None when the line is neither."""
    if SOLVE_COMMAND.match(text):
        request = parse_solve_command(text, ctx)
        values = evaluate_assumptions(request, ctx)
        scoped = ctx.with_values(values) if values else ctx
        solution = solve_equation(request.equation, request.target, scoped)
        return render_solution(solution, scoped)

    target, keyword, conversion = implicit_target(text, ctx)
    if not target:
        return None
    solution = solve_equation(find_equation(target, ctx), target, ctx)
    return render_solution(solution, ctx, keyword=keyword, conversion=conversion)

