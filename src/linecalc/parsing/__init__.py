"""Line and expression parsing.

This package provides:
- parse_line / parse_document: classify raw lines into ASTNode variants
- Tokenizer: unit-aware expression scanning with suffix backtracking
- parse_expression: recursive-descent parser returning a result, never raising
"""

from linecalc.parsing.ast import (
    ASTNode,
    CombinedAssignmentNode,
    CommentNode,
    ErrorNode,
    ExpressionNode,
    FunctionDefinitionNode,
    FunctionParameter,
    NodeKind,
    PlainTextNode,
    VariableAssignmentNode,
)
from linecalc.parsing.expression import (
    ExpressionParseResult,
    ParseError,
    ParseErrorCode,
    parse_expression,
)
from linecalc.parsing.lines import TRIGGER, parse_document, parse_line
from linecalc.parsing.tokenizer import Token, TokenType, Tokenizer

__all__ = [
    "ASTNode",
    "CombinedAssignmentNode",
    "CommentNode",
    "ErrorNode",
    "ExpressionNode",
    "ExpressionParseResult",
    "FunctionDefinitionNode",
    "FunctionParameter",
    "NodeKind",
    "ParseError",
    "ParseErrorCode",
    "PlainTextNode",
    "TRIGGER",
    "Token",
    "TokenType",
    "Tokenizer",
    "VariableAssignmentNode",
    "parse_document",
    "parse_expression",
    "parse_line",
]
