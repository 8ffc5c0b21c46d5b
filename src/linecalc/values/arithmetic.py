"""Binary operator dispatch between semantic value variants.

Promotion rules:
    - Error operands propagate unchanged; Symbolic operands produce Symbolic.
    - Number op Number -> Number.
    - A dimensionless zero is the additive identity for unit-bearing values.
    - Unit op Unit delegates to Quantity arithmetic and fails on mismatched dimensions.
    - Number/Unit/Currency +/- Percentage applies the percentage to the left value.
    - Lists combine element-wise with scalars or with equal-length lists.

Every ValueType has exactly one left-hand handler; the table is checked for
completeness at import time.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from typing import Final

from linecalc.config import CalcSettings
from linecalc.errors import (
    DimensionMismatchError,
    DivisionByZeroError,
    IncompatibleCurrencyError,
    InvalidOperationError,
)
from linecalc.units.composite import CompositeUnit
from linecalc.units.dimension import TIME, format_dimension
from linecalc.units.quantity import Quantity
from linecalc.values.base import BinaryOperator, SemanticValue, ValueType
from linecalc.values.scalars import CurrencyValue, NumberValue, PercentageValue, UnitValue
from linecalc.values.special import ErrorValue, ListValue, SymbolicValue
from linecalc.values.temporal import DateValue, DurationValue

Handler = Callable[[BinaryOperator, SemanticValue, SemanticValue], SemanticValue]

_RAW_SETTINGS: Final = CalcSettings()


def _seconds_unit() -> CompositeUnit:
    from linecalc.units.registry import UnitRegistry

    return CompositeUnit.of(UnitRegistry.get_instance().get_or_raise("s"))


def _unsupported(
    op: BinaryOperator, left: SemanticValue, right: SemanticValue
) -> InvalidOperationError:
    return InvalidOperationError(
        f"Cannot {op.verb} {left.value_type.value} and {right.value_type.value}"
    )


def apply_float(op: BinaryOperator, a: float, b: float) -> float:
    """Apply an operator to two floats, raising typed errors instead of inf/NaN."""
    if op is BinaryOperator.ADD:
        result = a + b
    elif op is BinaryOperator.SUBTRACT:
        result = a - b
    elif op is BinaryOperator.MULTIPLY:
        result = a * b
    elif op is BinaryOperator.DIVIDE:
        if b == 0:
            raise DivisionByZeroError()
        result = a / b
    else:
        if a == 0 and b < 0:
            raise DivisionByZeroError()
        try:
            result = a**b
        except OverflowError as e:
            raise InvalidOperationError("Result is too large") from e
        if isinstance(result, complex):
            raise InvalidOperationError("Result is not a real number")
    if not math.isfinite(result):
        raise InvalidOperationError("Result is too large")
    return result


def collapse_quantity(quantity: Quantity) -> SemanticValue:
    """Turn a quantity whose units cancelled into a plain number."""
    if quantity.unit.is_empty:
        return NumberValue(quantity.value)
    if quantity.is_dimensionless and len(quantity.unit.terms) > 1:
        return NumberValue(quantity.value * quantity.unit.base_factor)
    return UnitValue(quantity)


def dimensionless_scalar(value: SemanticValue) -> float | None:
    """Numeric value of a Number or dimensionless quantity, else None."""
    if isinstance(value, NumberValue):
        return value.value
    if isinstance(value, UnitValue) and value.quantity.is_dimensionless:
        return value.quantity.value * value.quantity.unit.base_factor
    return None


def duration_to_quantity(duration: DurationValue) -> Quantity:
    return Quantity(duration.total_seconds, _seconds_unit())


def quantity_to_duration(quantity: Quantity) -> DurationValue:
    single = quantity.unit.single_unit
    if (
        single is not None
        and single.symbol in ("month", "year")
        and quantity.value == int(quantity.value)
    ):
        months = int(quantity.value) * (12 if single.symbol == "year" else 1)
        return DurationValue(months=months)
    return DurationValue(seconds=quantity.convert_to(_seconds_unit()).value)


def _is_time(value: SemanticValue) -> bool:
    return isinstance(value, UnitValue) and value.quantity.dimension == TIME


def _elementwise(op: BinaryOperator, left: SemanticValue, right: SemanticValue) -> ListValue:
    if isinstance(left, ListValue) and isinstance(right, ListValue):
        if len(left.items) != len(right.items):
            raise InvalidOperationError(
                f"Cannot {op.verb} lists of different lengths "
                f"({len(left.items)} and {len(right.items)})"
            )
        pairs = zip(left.items, right.items, strict=True)
        return ListValue(tuple(binary_op(op, a, b) for a, b in pairs))
    if isinstance(left, ListValue):
        return ListValue(tuple(binary_op(op, item, right) for item in left.items))
    assert isinstance(right, ListValue)
    return ListValue(tuple(binary_op(op, left, item) for item in right.items))


def _apply_percentage(op: BinaryOperator, base: float, pct: PercentageValue) -> float:
    if op is BinaryOperator.ADD:
        return base * (1 + pct.fraction)
    if op is BinaryOperator.SUBTRACT:
        return base * (1 - pct.fraction)
    if op is BinaryOperator.MULTIPLY:
        return base * pct.fraction
    if op is BinaryOperator.DIVIDE:
        if pct.fraction == 0:
            raise DivisionByZeroError()
        return base / pct.fraction
    raise InvalidOperationError("Cannot raise a value to a percentage")


def _number(op: BinaryOperator, left: SemanticValue, right: SemanticValue) -> SemanticValue:
    assert isinstance(left, NumberValue)
    if isinstance(right, NumberValue):
        return NumberValue(apply_float(op, left.value, right.value))
    if isinstance(right, PercentageValue):
        return NumberValue(_apply_percentage(op, left.value, right))
    if isinstance(right, UnitValue):
        q = right.quantity
        if op in (BinaryOperator.ADD, BinaryOperator.SUBTRACT):
            if left.value == 0:
                return right if op is BinaryOperator.ADD else UnitValue(q.negate())
            if q.is_dimensionless:
                return NumberValue(apply_float(op, left.value, dimensionless_scalar(right) or 0.0))
            raise DimensionMismatchError(op.verb, "1", format_dimension(q.dimension))
        if op is BinaryOperator.MULTIPLY:
            return UnitValue(q.scaled(left.value))
        if op is BinaryOperator.DIVIDE:
            return collapse_quantity(Quantity(left.value, CompositeUnit.dimensionless()).divide(q))
        exponent = dimensionless_scalar(right)
        if exponent is None:
            raise InvalidOperationError("Exponent must be dimensionless")
        return NumberValue(apply_float(op, left.value, exponent))
    if isinstance(right, CurrencyValue):
        if op is BinaryOperator.ADD:
            return right.with_amount(left.value + right.amount)
        if op is BinaryOperator.SUBTRACT:
            return right.with_amount(left.value - right.amount)
        if op is BinaryOperator.MULTIPLY:
            return right.with_amount(left.value * right.amount)
        raise _unsupported(op, left, right)
    if isinstance(right, DurationValue):
        if op is BinaryOperator.MULTIPLY:
            return right.scaled(left.value)
        if op is BinaryOperator.ADD and left.value == 0:
            return right
        raise _unsupported(op, left, right)
    if isinstance(right, ListValue):
        return _elementwise(op, left, right)
    raise _unsupported(op, left, right)


def _unit(op: BinaryOperator, left: SemanticValue, right: SemanticValue) -> SemanticValue:
    assert isinstance(left, UnitValue)
    q = left.quantity
    if isinstance(right, DurationValue) and q.dimension == TIME:
        right = UnitValue(duration_to_quantity(right))
    if isinstance(right, UnitValue):
        other = right.quantity
        if op is BinaryOperator.ADD:
            return UnitValue(q.add(other))
        if op is BinaryOperator.SUBTRACT:
            return UnitValue(q.subtract(other))
        if op is BinaryOperator.MULTIPLY:
            return collapse_quantity(q.multiply(other))
        if op is BinaryOperator.DIVIDE:
            return collapse_quantity(q.divide(other))
        exponent = dimensionless_scalar(right)
        if exponent is None:
            raise InvalidOperationError("Exponent must be dimensionless")
        return collapse_quantity(q.power(exponent))
    if isinstance(right, NumberValue):
        if op in (BinaryOperator.ADD, BinaryOperator.SUBTRACT):
            if right.value == 0:
                return left
            if q.is_dimensionless:
                return NumberValue(apply_float(op, dimensionless_scalar(left) or 0.0, right.value))
            raise DimensionMismatchError(op.verb, format_dimension(q.dimension), "1")
        if op is BinaryOperator.MULTIPLY:
            return UnitValue(q.scaled(right.value))
        if op is BinaryOperator.DIVIDE:
            return UnitValue(q.divide(right.value))
        return collapse_quantity(q.power(right.value))
    if isinstance(right, PercentageValue):
        return UnitValue(Quantity(_apply_percentage(op, q.value, right), q.unit))
    if isinstance(right, DateValue) and op is BinaryOperator.ADD and q.dimension == TIME:
        return right.shifted(quantity_to_duration(q))
    if isinstance(right, ListValue):
        return _elementwise(op, left, right)
    if isinstance(right, DurationValue):
        raise DimensionMismatchError(op.verb, format_dimension(q.dimension), format_dimension(TIME))
    raise _unsupported(op, left, right)


def _currency(op: BinaryOperator, left: SemanticValue, right: SemanticValue) -> SemanticValue:
    assert isinstance(left, CurrencyValue)
    if isinstance(right, CurrencyValue):
        if right.code != left.code:
            raise IncompatibleCurrencyError(
                f"Cannot {op.verb} {left.code} and {right.code}: different currencies"
            )
        if op in (BinaryOperator.ADD, BinaryOperator.SUBTRACT):
            return left.with_amount(apply_float(op, left.amount, right.amount))
        if op is BinaryOperator.DIVIDE:
            return NumberValue(apply_float(op, left.amount, right.amount))
        raise InvalidOperationError(f"Cannot {op.verb} two currency amounts")
    if isinstance(right, NumberValue):
        if op is BinaryOperator.POWER:
            if right.value == 1:
                return left
            raise InvalidOperationError("Cannot raise a currency amount to a power")
        return left.with_amount(apply_float(op, left.amount, right.value))
    if isinstance(right, PercentageValue):
        return left.with_amount(_apply_percentage(op, left.amount, right))
    if isinstance(right, ListValue):
        return _elementwise(op, left, right)
    raise _unsupported(op, left, right)


def _percentage(op: BinaryOperator, left: SemanticValue, right: SemanticValue) -> SemanticValue:
    assert isinstance(left, PercentageValue)
    if isinstance(right, PercentageValue):
        if op in (BinaryOperator.ADD, BinaryOperator.SUBTRACT):
            return PercentageValue(apply_float(op, left.percent, right.percent))
        if op is BinaryOperator.MULTIPLY:
            return PercentageValue(left.percent * right.fraction)
        if op is BinaryOperator.DIVIDE:
            return NumberValue(apply_float(op, left.percent, right.percent))
        raise _unsupported(op, left, right)
    if isinstance(right, NumberValue):
        if op in (BinaryOperator.MULTIPLY, BinaryOperator.DIVIDE):
            return PercentageValue(apply_float(op, left.percent, right.value))
        if op is BinaryOperator.POWER:
            # (20%)^2 is 0.2^2, not 20^2.
            return PercentageValue(apply_float(op, left.fraction, right.value) * 100.0)
        if op in (BinaryOperator.ADD, BinaryOperator.SUBTRACT) and right.value == 0:
            return left
        raise InvalidOperationError(
            f"Cannot {op.verb} a number and a percentage; use 'X% of Y' instead"
        )
    if isinstance(right, UnitValue) and op is BinaryOperator.MULTIPLY:
        return UnitValue(right.quantity.scaled(left.fraction))
    if isinstance(right, CurrencyValue) and op is BinaryOperator.MULTIPLY:
        return right.with_amount(right.amount * left.fraction)
    if isinstance(right, ListValue):
        return _elementwise(op, left, right)
    raise _unsupported(op, left, right)


def _date(op: BinaryOperator, left: SemanticValue, right: SemanticValue) -> SemanticValue:
    assert isinstance(left, DateValue)
    sign = {BinaryOperator.ADD: 1, BinaryOperator.SUBTRACT: -1}.get(op)
    if sign is None:
        raise _unsupported(op, left, right)
    if isinstance(right, DurationValue):
        return left.shifted(right, sign)
    if _is_time(right):
        assert isinstance(right, UnitValue)
        return left.shifted(quantity_to_duration(right.quantity), sign)
    if isinstance(right, DateValue) and op is BinaryOperator.SUBTRACT:
        return left.until(right)
    if isinstance(right, UnitValue):
        raise DimensionMismatchError(
            op.verb, format_dimension(TIME), format_dimension(right.quantity.dimension)
        )
    raise _unsupported(op, left, right)


def _duration(op: BinaryOperator, left: SemanticValue, right: SemanticValue) -> SemanticValue:
    assert isinstance(left, DurationValue)
    if _is_time(right):
        assert isinstance(right, UnitValue)
        right = quantity_to_duration(right.quantity)
    if isinstance(right, DurationValue):
        if op is BinaryOperator.ADD:
            return DurationValue(left.seconds + right.seconds, left.months + right.months)
        if op is BinaryOperator.SUBTRACT:
            return DurationValue(left.seconds - right.seconds, left.months - right.months)
        if op is BinaryOperator.DIVIDE:
            return NumberValue(apply_float(op, left.total_seconds, right.total_seconds))
        raise _unsupported(op, left, right)
    if isinstance(right, NumberValue):
        if op is BinaryOperator.MULTIPLY:
            return left.scaled(right.value)
        if op is BinaryOperator.DIVIDE:
            if right.value == 0:
                raise DivisionByZeroError()
            return left.scaled(1 / right.value)
        if op in (BinaryOperator.ADD, BinaryOperator.SUBTRACT) and right.value == 0:
            return left
        raise _unsupported(op, left, right)
    if isinstance(right, DateValue) and op is BinaryOperator.ADD:
        return right.shifted(left)
    if isinstance(right, ListValue):
        return _elementwise(op, left, right)
    if isinstance(right, UnitValue):
        raise DimensionMismatchError(
            op.verb, format_dimension(TIME), format_dimension(right.quantity.dimension)
        )
    raise _unsupported(op, left, right)


def _list(op: BinaryOperator, left: SemanticValue, right: SemanticValue) -> SemanticValue:
    return _elementwise(op, left, right)


def _propagate(op: BinaryOperator, left: SemanticValue, right: SemanticValue) -> SemanticValue:
    return _short_circuit(op, left, right) or left


_HANDLERS: Final[dict[ValueType, Handler]] = {
    ValueType.NUMBER: _number,
    ValueType.UNIT: _unit,
    ValueType.CURRENCY: _currency,
    ValueType.PERCENTAGE: _percentage,
    ValueType.DATE: _date,
    ValueType.DURATION: _duration,
    ValueType.LIST: _list,
    ValueType.SYMBOLIC: _propagate,
    ValueType.ERROR: _propagate,
}

_MISSING_HANDLERS = set(ValueType) - set(_HANDLERS)
if _MISSING_HANDLERS:
    raise RuntimeError(f"No arithmetic handler for: {sorted(t.value for t in _MISSING_HANDLERS)}")


def _raw_text(value: SemanticValue) -> str:
    if isinstance(value, SymbolicValue):
        return value.raw
    return value.format(_RAW_SETTINGS)


def _short_circuit(
    op: BinaryOperator, left: SemanticValue, right: SemanticValue
) -> SemanticValue | None:
    if isinstance(left, ErrorValue):
        return left
    if isinstance(right, ErrorValue):
        return right
    if isinstance(left, SymbolicValue) or isinstance(right, SymbolicValue):
        return SymbolicValue(f"{_raw_text(left)} {op.value} {_raw_text(right)}")
    return None


def binary_op(op: BinaryOperator, left: SemanticValue, right: SemanticValue) -> SemanticValue:
    """Apply ``op`` to two semantic values.

    Raises:
        DimensionMismatchError, DivisionByZeroError, IncompatibleCurrencyError,
        InvalidOperationError: When the operation is undefined for the operands.
    """
    propagated = _short_circuit(op, left, right)
    if propagated is not None:
        return propagated
    return _HANDLERS[left.value_type](op, left, right)


def negate(value: SemanticValue) -> SemanticValue:
    """Unary minus."""
    if isinstance(value, NumberValue):
        return NumberValue(-value.value)
    if isinstance(value, UnitValue):
        return UnitValue(value.quantity.negate())
    if isinstance(value, CurrencyValue):
        return value.with_amount(-value.amount)
    if isinstance(value, PercentageValue):
        return PercentageValue(-value.percent)
    if isinstance(value, DurationValue):
        return DurationValue(-value.seconds, -value.months)
    if isinstance(value, ListValue):
        return ListValue(tuple(negate(item) for item in value.items))
    if isinstance(value, SymbolicValue):
        return SymbolicValue(f"-{value.raw}")
    if isinstance(value, ErrorValue):
        return value
    raise InvalidOperationError(f"Cannot negate {value.value_type.value}")

