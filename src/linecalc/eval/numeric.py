"""Host numeric engine for purely dimensionless expressions.

Expressions made only of plain numbers, constants, number-valued variables and
numeric built-ins are lowered to floats and computed here instead of going
through the semantic interpreter.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Protocol

from linecalc.errors import InvalidOperationError
from linecalc.eval.context import EvaluationContext
from linecalc.eval.functions import BUILTIN_FUNCTIONS, NUMERIC_FUNCTIONS
from linecalc.parsing.expression import (
    BinaryOp,
    ConstantRef,
    ExprNode,
    FunctionCall,
    NumberLiteral,
    UnaryOp,
    VariableRef,
)
from linecalc.values.arithmetic import apply_float
from linecalc.values.base import BinaryOperator
from linecalc.values.scalars import NumberValue

CONSTANT_VALUES: dict[str, float] = {"PI": math.pi, "pi": math.pi, "E": math.e}


class NumericEngine(Protocol):
    """Evaluates a lowered expression tree over float variables."""

    def evaluate(self, tree: ExprNode, variables: Mapping[str, float]) -> float:
        """Compute the tree.

        Raises:
            CalcError: On division by zero or a non-real result.
        """
        ...


class FloatEngine:
    """Default NumericEngine using Python floats and the math module."""

    def evaluate(self, tree: ExprNode, variables: Mapping[str, float]) -> float:
        if isinstance(tree, NumberLiteral):
            return tree.value
        if isinstance(tree, ConstantRef):
            return CONSTANT_VALUES[tree.name]
        if isinstance(tree, VariableRef):
            return variables[tree.name]
        if isinstance(tree, UnaryOp):
            return -self.evaluate(tree.operand, variables)
        if isinstance(tree, BinaryOp):
            return apply_float(
                BinaryOperator(tree.operator),
                self.evaluate(tree.left, variables),
                self.evaluate(tree.right, variables),
            )
        if isinstance(tree, FunctionCall):
            BUILTIN_FUNCTIONS[tree.name].check_arity(len(tree.args))
            args = [self.evaluate(arg, variables) for arg in tree.args]
            try:
                result = NUMERIC_FUNCTIONS[tree.name](*args)
            except (ValueError, OverflowError) as e:
                raise InvalidOperationError(f"Math domain error in {tree.name}()") from e
            if not math.isfinite(result):
                raise InvalidOperationError(f"Math domain error in {tree.name}()")
            return float(result)
        raise TypeError(f"Node is not lowerable: {type(tree).__name__}")


def lower(tree: ExprNode, ctx: EvaluationContext) -> dict[str, float] | None:
    """Collect float bindings if the tree is purely numeric, else None."""
    variables: dict[str, float] = {}

    def visit(node: ExprNode) -> bool:
        if isinstance(node, NumberLiteral | ConstantRef):
            return True
        if isinstance(node, VariableRef):
            value = ctx.lookup(node.name)
            if not isinstance(value, NumberValue):
                return False
            variables[node.name] = value.value
            return True
        if isinstance(node, UnaryOp):
            return visit(node.operand)
        if isinstance(node, BinaryOp):
            return visit(node.left) and visit(node.right)
        if isinstance(node, FunctionCall):
            if node.name in ctx.functions or node.name not in NUMERIC_FUNCTIONS:
                return False
            return all(visit(arg) for arg in node.args)
        return False

    return variables if visit(tree) else None
