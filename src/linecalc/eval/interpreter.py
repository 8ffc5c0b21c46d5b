"""Semantic interpreter over expression trees.

Every node kind has exactly one handler; the table is checked against the
ExprNode union at import time so a new node kind cannot be silently ignored.
"""

from __future__ import annotations

import math
import typing
from collections.abc import Callable
from datetime import timedelta
from typing import Final

from linecalc.errors import (
    ConversionError,
    FunctionCallError,
    UndefinedVariableError,
)
from linecalc.eval.context import EvaluationContext
from linecalc.eval.functions import BUILTIN_FUNCTIONS, call_builtin
from linecalc.eval.ranges import integer_range
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
)
from linecalc.units.composite import CompositeUnit, parse_unit_string
from linecalc.units.quantity import Quantity
from linecalc.values.arithmetic import binary_op, dimensionless_scalar, duration_to_quantity, negate
from linecalc.values.base import BinaryOperator, SemanticValue
from linecalc.values.scalars import (
    CURRENCIES,
    CURRENCY_BY_SYMBOL,
    CurrencyValue,
    NumberValue,
    PercentageValue,
    UnitValue,
)
from linecalc.values.special import ErrorValue, ListValue, SymbolicValue
from linecalc.values.temporal import DateValue, DurationValue

_CONSTANTS: Final[dict[str, float]] = {"PI": math.pi, "pi": math.pi, "E": math.e}
_DATE_OFFSETS: Final[dict[str, int]] = {"today": 0, "tomorrow": 1, "yesterday": -1}
_PERCENT_TARGETS: Final[frozenset[str]] = frozenset({"%", "percent", "percentage"})


class Interpreter:
    """Evaluates expression trees to semantic values within one line context."""

    def __init__(self, ctx: EvaluationContext) -> None:
        self.ctx = ctx

    def evaluate(self, node: ExprNode) -> SemanticValue:
        """Evaluate a tree.

        Raises:
            CalcError: Any typed evaluation failure, including
                UndefinedVariableError for unknown identifiers.
        """
        return _HANDLERS[type(node)](self, node)

    def _number(self, node: NumberLiteral) -> SemanticValue:
        return NumberValue(node.value)

    def _quantity(self, node: QuantityLiteral) -> SemanticValue:
        return UnitValue(node.quantity)

    def _percent(self, node: PercentLiteral) -> SemanticValue:
        return PercentageValue(node.percent)

    def _currency(self, node: CurrencyLiteral) -> SemanticValue:
        return CurrencyValue(node.code, node.amount)

    def _date(self, node: DateLiteral) -> SemanticValue:
        if node.value is not None:
            return DateValue(node.value)
        return DateValue(self.ctx.today + timedelta(days=_DATE_OFFSETS[node.keyword or "today"]))

    def _constant(self, node: ConstantRef) -> SemanticValue:
        return NumberValue(_CONSTANTS[node.name])

    def _variable(self, node: VariableRef) -> SemanticValue:
        value = self.ctx.lookup(node.name)
        if value is not None:
            return value
        # A bare unit name evaluates as one of that unit ("5 m / s").
        unit = self.ctx.view.try_resolve(node.name, allow_count=False)
        if unit is not None:
            return UnitValue(Quantity(1.0, CompositeUnit.of(unit)))
        raise UndefinedVariableError(node.name)

    def _unary(self, node: UnaryOp) -> SemanticValue:
        return negate(self.evaluate(node.operand))

    def _binary(self, node: BinaryOp) -> SemanticValue:
        left = self.evaluate(node.left)
        right = self.evaluate(node.right)
        return binary_op(BinaryOperator(node.operator), left, right)

    def _list(self, node: ListLiteral) -> SemanticValue:
        return ListValue(tuple(self.evaluate(item) for item in node.items))

    def _range(self, node: RangeLiteral) -> SemanticValue:
        bounds = [self.evaluate(node.start), self.evaluate(node.stop)]
        if node.step is not None:
            bounds.append(self.evaluate(node.step))
        for bound in bounds:
            if isinstance(bound, ErrorValue | SymbolicValue):
                return bound
        return ListValue(tuple(NumberValue(float(n)) for n in integer_range(*bounds)))

    def _call(self, node: FunctionCall) -> SemanticValue:
        args = [self.evaluate(arg) for arg in node.args]
        function = self.ctx.functions.get(node.name)
        if function is None:
            return call_builtin(node.name, args)

        ctx = self.ctx
        limit = ctx.settings.max_function_depth
        if ctx.depth >= limit:
            raise FunctionCallError(
                f"Maximum function call depth ({limit}) exceeded in {node.name}()"
            )
        if len(args) < function.required_count or len(args) > len(function.params):
            raise FunctionCallError(
                f"{function.signature()} takes {len(function.params)} arguments ({len(args)} given)"
            )

        scope: dict[str, SemanticValue] = {}
        for index, param in enumerate(function.params):
            if index < len(args):
                scope[param.name] = args[index]
                continue
            assert param.default is not None
            scope[param.name] = self._evaluate_text(param.default, ctx.child(scope))
        return self._evaluate_text(function.body, ctx.child(scope), function_name=node.name)

    def _evaluate_text(
        self, text: str, ctx: EvaluationContext, *, function_name: str | None = None
    ) -> SemanticValue:
        parsed = parse_expression(text, ctx.view, ctx.known_names())
        if parsed.error is not None or parsed.tree is None:
            message = parsed.error.message if parsed.error is not None else "Empty expression"
            where = f" in {function_name}()" if function_name else ""
            raise FunctionCallError(f"Invalid expression{where}: {message}")
        return Interpreter(ctx).evaluate(parsed.tree)

    def _conversion(self, node: Conversion) -> SemanticValue:
        return self.convert(self.evaluate(node.operand), node.target)

    def convert(self, value: SemanticValue, target: str) -> SemanticValue:
        """Convert a value to the unit, currency or percentage named by ``target``.

        Raises:
            ConversionError: Incompatible or unsupported conversion.
            UnknownUnitError: The target names no unit.
        """
        if isinstance(value, ErrorValue | SymbolicValue):
            return value
        if isinstance(value, ListValue):
            return ListValue(tuple(self.convert(item, target) for item in value.items))

        stripped = target.strip()
        if stripped.lower() in _PERCENT_TARGETS:
            return _to_percentage(value)

        code = _currency_code(stripped)
        if code is not None:
            return _to_currency(value, code)

        unit = parse_unit_string(stripped, self.ctx.view)
        if isinstance(value, UnitValue):
            return UnitValue(value.quantity.convert_to(unit))
        if isinstance(value, DurationValue):
            return UnitValue(duration_to_quantity(value).convert_to(unit))
        if isinstance(value, NumberValue):
            if unit.dimension.is_dimensionless:
                plain = Quantity(value.value, CompositeUnit.dimensionless())
                return UnitValue(plain.convert_to(unit))
            raise ConversionError(f"Cannot convert a plain number to {unit.format()}")
        raise ConversionError(f"Cannot convert {value.value_type.value} to {unit.format()}")


def _currency_code(target: str) -> str | None:
    if target in CURRENCIES:
        return target
    return CURRENCY_BY_SYMBOL.get(target)


def _to_percentage(value: SemanticValue) -> SemanticValue:
    if isinstance(value, PercentageValue):
        return value
    scalar = dimensionless_scalar(value)
    if scalar is None:
        raise ConversionError(f"Cannot express {value.describe()} as a percentage")
    return PercentageValue(scalar * 100.0)


def _to_currency(value: SemanticValue, code: str) -> SemanticValue:
    if isinstance(value, CurrencyValue):
        if value.code == code:
            return value
        raise ConversionError(f"Cannot convert {value.code} to {code}: no exchange rates available")
    if isinstance(value, NumberValue):
        return CurrencyValue(code, value.value)
    raise ConversionError(f"Cannot convert {value.value_type.value} to {code}")


_HANDLERS: Final[dict[type, Callable[[Interpreter, typing.Any], SemanticValue]]] = {
    NumberLiteral: Interpreter._number,
    QuantityLiteral: Interpreter._quantity,
    PercentLiteral: Interpreter._percent,
    CurrencyLiteral: Interpreter._currency,
    DateLiteral: Interpreter._date,
    ConstantRef: Interpreter._constant,
    VariableRef: Interpreter._variable,
    UnaryOp: Interpreter._unary,
    BinaryOp: Interpreter._binary,
    FunctionCall: Interpreter._call,
    Conversion: Interpreter._conversion,
    ListLiteral: Interpreter._list,
    RangeLiteral: Interpreter._range,
}

_MISSING_HANDLERS = set(typing.get_args(ExprNode)) - set(_HANDLERS)
if _MISSING_HANDLERS:
    missing = sorted(t.__name__ for t in _MISSING_HANDLERS)
    raise RuntimeError(f"No interpreter handler for: {missing}")


def is_builtin_function(name: str) -> bool:
    return name in BUILTIN_FUNCTIONS
