"""Built-in functions: math, rounding and list aggregators.

Trigonometric functions accept plain numbers (radians) or angle quantities
(``30 deg``), which are converted to radians first. Rounding functions keep the
value's type, so ``round(2.345 kg, 1)`` stays a mass.
"""

from __future__ import annotations

import math
import statistics
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Final

from linecalc.errors import FunctionCallError, InvalidOperationError
from linecalc.units.quantity import Quantity
from linecalc.values.arithmetic import binary_op, collapse_quantity, dimensionless_scalar
from linecalc.values.base import BinaryOperator, SemanticValue
from linecalc.values.scalars import CurrencyValue, NumberValue, PercentageValue, UnitValue
from linecalc.values.special import ErrorValue, ListValue, SymbolicValue
from linecalc.values.temporal import DurationValue

Implementation = Callable[[Sequence[SemanticValue]], SemanticValue]


@dataclass(frozen=True, slots=True)
class BuiltinFunction:
    name: str
    min_args: int
    max_args: int | None
    implementation: Implementation

    def check_arity(self, count: int) -> None:
        if count < self.min_args or (self.max_args is not None and count > self.max_args):
            if self.max_args is None:
                expected = f"at least {self.min_args}"
            elif self.min_args == self.max_args:
                expected = str(self.min_args)
            else:
                expected = f"{self.min_args} to {self.max_args}"
            noun = "argument" if expected == "1" else "arguments"
            raise FunctionCallError(f"{self.name}() takes {expected} {noun} ({count} given)")


def _number_arg(value: SemanticValue, name: str) -> float:
    scalar = dimensionless_scalar(value)
    if scalar is None:
        raise InvalidOperationError(
            f"{name}() requires a dimensionless number, got {value.describe()}"
        )
    return scalar


def _real(fn: Callable[[float], float], name: str, x: float) -> float:
    try:
        result = fn(x)
    except (ValueError, OverflowError) as e:
        raise InvalidOperationError(f"Math domain error in {name}()") from e
    if isinstance(result, complex) or not math.isfinite(result):
        raise InvalidOperationError(f"Math domain error in {name}()")
    return result


def _map_payload(value: SemanticValue, fn: Callable[[float], float], name: str) -> SemanticValue:
    """Apply ``fn`` to the numeric payload of a value, keeping its type."""
    if isinstance(value, NumberValue):
        return NumberValue(fn(value.value))
    if isinstance(value, UnitValue):
        q = value.quantity
        return UnitValue(Quantity(fn(q.value), q.unit))
    if isinstance(value, CurrencyValue):
        return value.with_amount(fn(value.amount))
    if isinstance(value, PercentageValue):
        return PercentageValue(fn(value.percent))
    if isinstance(value, DurationValue) and not value.months:
        return DurationValue(seconds=fn(value.seconds))
    raise InvalidOperationError(f"{name}() is not defined for {value.value_type.value}")


def _elementwise(
    fn: Callable[[SemanticValue], SemanticValue],
) -> Callable[[SemanticValue], SemanticValue]:
    def apply(value: SemanticValue) -> SemanticValue:
        if isinstance(value, ErrorValue | SymbolicValue):
            return value
        if isinstance(value, ListValue):
            return ListValue(tuple(apply(item) for item in value.items))
        return fn(value)

    return apply


def _unary(name: str, fn: Callable[[SemanticValue], SemanticValue]) -> BuiltinFunction:
    apply = _elementwise(fn)
    return BuiltinFunction(name, 1, 1, lambda args: apply(args[0]))


def _angle(value: SemanticValue, name: str) -> float:
    if isinstance(value, UnitValue) and value.quantity.is_dimensionless:
        return value.quantity.value * value.quantity.unit.base_factor
    return _number_arg(value, name)


def _trig(name: str, fn: Callable[[float], float]) -> BuiltinFunction:
    return _unary(name, lambda v: NumberValue(_real(fn, name, _angle(v, name))))


def _real_fn(name: str, fn: Callable[[float], float]) -> BuiltinFunction:
    return _unary(name, lambda v: NumberValue(_real(fn, name, _number_arg(v, name))))


def _sqrt(value: SemanticValue) -> SemanticValue:
    if isinstance(value, UnitValue) and not value.quantity.is_dimensionless:
        return collapse_quantity(value.quantity.power(0.5))
    return NumberValue(_real(math.sqrt, "sqrt", _number_arg(value, "sqrt")))


def _round(args: Sequence[SemanticValue]) -> SemanticValue:
    digits = 0
    if len(args) == 2:
        raw = _number_arg(args[1], "round")
        if raw != int(raw):
            raise FunctionCallError("round() digits must be a whole number")
        digits = int(raw)
    return _elementwise(lambda v: _map_payload(v, lambda x: round(x, digits), "round"))(args[0])


def _log(args: Sequence[SemanticValue]) -> SemanticValue:
    x = _number_arg(args[0], "log")
    base = _number_arg(args[1], "log") if len(args) == 2 else 10.0
    if base <= 0 or base == 1:
        raise InvalidOperationError("log() base must be positive and not 1")
    return NumberValue(_real(lambda v: math.log(v, base), "log", x))


def _flatten(args: Sequence[SemanticValue]) -> list[SemanticValue]:
    items: list[SemanticValue] = []
    for arg in args:
        if isinstance(arg, ListValue):
            items.extend(_flatten(arg.items))
        else:
            items.append(arg)
    return items


def _sort_key(value: SemanticValue, first: SemanticValue, name: str) -> float:
    if isinstance(value, NumberValue) and isinstance(first, NumberValue):
        return value.value
    if isinstance(value, PercentageValue) and isinstance(first, PercentageValue):
        return value.percent
    if isinstance(value, DurationValue) and isinstance(first, DurationValue):
        return value.total_seconds
    if isinstance(value, CurrencyValue) and isinstance(first, CurrencyValue):
        if value.code != first.code:
            raise InvalidOperationError(f"{name}() cannot compare {first.code} and {value.code}")
        return value.amount
    if isinstance(value, UnitValue) and isinstance(first, UnitValue):
        if not value.quantity.is_compatible_with(first.quantity):
            raise InvalidOperationError(
                f"{name}() cannot compare {first.describe()} and {value.describe()}"
            )
        return value.quantity.base_value()
    raise InvalidOperationError(
        f"{name}() cannot compare {first.value_type.value} and {value.value_type.value}"
    )


def _propagated(items: list[SemanticValue]) -> SemanticValue | None:
    for item in items:
        if isinstance(item, ErrorValue | SymbolicValue):
            return item
    return None


def _extreme(name: str, pick: Callable[..., SemanticValue]) -> BuiltinFunction:
    def implementation(args: Sequence[SemanticValue]) -> SemanticValue:
        items = _flatten(args)
        if not items:
            raise FunctionCallError(f"{name}() requires at least one value")
        stop = _propagated(items)
        if stop is not None:
            return stop
        return pick(items, key=lambda v: _sort_key(v, items[0], name))

    return BuiltinFunction(name, 1, None, implementation)


def _sum_items(items: list[SemanticValue], name: str) -> SemanticValue:
    if not items:
        raise FunctionCallError(f"{name}() requires at least one value")
    total = items[0]
    for item in items[1:]:
        total = binary_op(BinaryOperator.ADD, total, item)
    return total


def _sum(args: Sequence[SemanticValue]) -> SemanticValue:
    return _sum_items(_flatten(args), "sum")


def _average(name: str) -> BuiltinFunction:
    def implementation(args: Sequence[SemanticValue]) -> SemanticValue:
        items = _flatten(args)
        total = _sum_items(items, name)
        return binary_op(BinaryOperator.DIVIDE, total, NumberValue(float(len(items))))

    return BuiltinFunction(name, 1, None, implementation)


def _median(args: Sequence[SemanticValue]) -> SemanticValue:
    items = _flatten(args)
    if not items:
        raise FunctionCallError("median() requires at least one value")
    stop = _propagated(items)
    if stop is not None:
        return stop
    ordered = sorted(items, key=lambda v: _sort_key(v, items[0], "median"))
    middle = len(ordered) // 2
    if len(ordered) % 2:
        return ordered[middle]
    pair = binary_op(BinaryOperator.ADD, ordered[middle - 1], ordered[middle])
    return binary_op(BinaryOperator.DIVIDE, pair, NumberValue(2.0))


def _count(args: Sequence[SemanticValue]) -> SemanticValue:
    return NumberValue(float(len(_flatten(args))))


def _pow(args: Sequence[SemanticValue]) -> SemanticValue:
    return binary_op(BinaryOperator.POWER, args[0], args[1])


BUILTIN_FUNCTIONS: Final[dict[str, BuiltinFunction]] = {
    f.name: f
    for f in (
        _trig("sin", math.sin),
        _trig("cos", math.cos),
        _trig("tan", math.tan),
        _real_fn("asin", math.asin),
        _real_fn("acos", math.acos),
        _real_fn("atan", math.atan),
        _real_fn("exp", math.exp),
        _real_fn("ln", math.log),
        _unary("sqrt", _sqrt),
        _unary("abs", lambda v: _map_payload(v, abs, "abs")),
        _unary("floor", lambda v: _map_payload(v, math.floor, "floor")),
        _unary("ceil", lambda v: _map_payload(v, math.ceil, "ceil")),
        BuiltinFunction("round", 1, 2, _round),
        BuiltinFunction("log", 1, 2, _log),
        BuiltinFunction("pow", 2, 2, _pow),
        _extreme("max", max),
        _extreme("min", min),
        BuiltinFunction("sum", 1, None, _sum),
        _average("avg"),
        _average("mean"),
        BuiltinFunction("median", 1, None, _median),
        BuiltinFunction("count", 0, None, _count),
    )
}

# Functions whose dimensionless form the host numeric engine can compute.
NUMERIC_FUNCTIONS: Final[dict[str, Callable[..., float]]] = {
    "sin": math.sin,
    "cos": math.cos,
    "tan": math.tan,
    "asin": math.asin,
    "acos": math.acos,
    "atan": math.atan,
    "exp": math.exp,
    "ln": math.log,
    "log": lambda x, base=10.0: math.log(x, base),
    "sqrt": math.sqrt,
    "abs": abs,
    "floor": math.floor,
    "ceil": math.ceil,
    "round": lambda x, digits=0: round(x, int(digits)),
    "pow": math.pow,
    "max": max,
    "min": min,
    "sum": lambda *xs: math.fsum(xs),
    "avg": lambda *xs: statistics.fmean(xs),
    "mean": lambda *xs: statistics.fmean(xs),
    "median": lambda *xs: statistics.median(xs),
}


def call_builtin(name: str, args: Sequence[SemanticValue]) -> SemanticValue:
    """Invoke a built-in function.

    Raises:
        FunctionCallError: Unknown function or wrong number of arguments.
        InvalidOperationError: Argument outside the function's domain.
    """
    function = BUILTIN_FUNCTIONS.get(name)
    if function is None:
        raise FunctionCallError(f"Unknown function: {name}")
    function.check_arity(len(args))
    return function.implementation(args)
