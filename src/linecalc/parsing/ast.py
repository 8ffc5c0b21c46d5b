"""Parsed line variants.

Nodes are created fresh for every line on every pass and never mutated.
Expression text is kept raw; it is tokenized later against the registry view
of the pass, since unit aliases depend on earlier lines.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar


class NodeKind(str, Enum):
    COMMENT = "comment"
    PLAIN_TEXT = "plainText"
    VARIABLE_ASSIGNMENT = "variableAssignment"
    EXPRESSION = "expression"
    COMBINED_ASSIGNMENT = "combinedAssignment"
    FUNCTION_DEFINITION = "functionDefinition"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class CommentNode:
    kind: ClassVar[NodeKind] = NodeKind.COMMENT

    line_number: int
    raw: str
    text: str


@dataclass(frozen=True, slots=True)
class PlainTextNode:
    kind: ClassVar[NodeKind] = NodeKind.PLAIN_TEXT

    line_number: int
    raw: str


@dataclass(frozen=True, slots=True)
class VariableAssignmentNode:
    """``name = value`` without an evaluation trigger."""

    kind: ClassVar[NodeKind] = NodeKind.VARIABLE_ASSIGNMENT

    line_number: int
    raw: str
    name: str
    value_expr: str


@dataclass(frozen=True, slots=True)
class ExpressionNode:
    """An expression line; ``has_trigger`` is False for live (implicit) lines."""

    kind: ClassVar[NodeKind] = NodeKind.EXPRESSION

    line_number: int
    raw: str
    expression: str
    has_trigger: bool = True


@dataclass(frozen=True, slots=True)
class CombinedAssignmentNode:
    """``name = expr =>``: assign and display."""

    kind: ClassVar[NodeKind] = NodeKind.COMBINED_ASSIGNMENT

    line_number: int
    raw: str
    name: str
    expression: str


@dataclass(frozen=True, slots=True)
class FunctionParameter:
    name: str
    default: str | None = None


@dataclass(frozen=True, slots=True)
class FunctionDefinitionNode:
    kind: ClassVar[NodeKind] = NodeKind.FUNCTION_DEFINITION

    line_number: int
    raw: str
    name: str
    params: tuple[FunctionParameter, ...]
    body: str


@dataclass(frozen=True, slots=True)
class ErrorNode:
    kind: ClassVar[NodeKind] = NodeKind.ERROR

    line_number: int
    raw: str
    message: str


ASTNode = (
    CommentNode
    | PlainTextNode
    | VariableAssignmentNode
    | ExpressionNode
    | CombinedAssignmentNode
    | FunctionDefinitionNode
    | ErrorNode
)

# Nodes whose evaluation produces a value from an expression.
ExpressionBearingNode = VariableAssignmentNode | ExpressionNode | CombinedAssignmentNode


def expression_text(node: ExpressionBearingNode) -> str:
    if isinstance(node, VariableAssignmentNode):
        return node.value_expr
    return node.expression


def assigned_name(node: ExpressionBearingNode) -> str | None:
    if isinstance(node, VariableAssignmentNode | CombinedAssignmentNode):
        return node.name
    return None
