"""Recursive-descent expression parser.

Grammar (lowest to highest precedence)::

    list        := range ("," range)*
    range       := conversion (RANGE conversion (STEP conversion)?)?
    conversion  := additive (CONVERT TARGET)?
    additive    := term (("+" | "-") term)*
    term        := power (("*" | "/") power)*
    power       := unary ("^" power)?
    unary       := ("-" | "+") unary | primary
    primary     := literal | CONSTANT | IDENTIFIER ["(" args ")"] | "(" list ")"

Parsing never raises into the caller: failures are returned as a ParseError
inside the ExpressionParseResult.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any

from linecalc.errors import CircularUnitAliasError, ErrorKind
from linecalc.parsing.tokenizer import (
    GROUPED_NUMBER_MESSAGE,
    Token,
    TokenizeError,
    TokenType,
    Tokenizer,
)
from linecalc.units.quantity import Quantity
from linecalc.units.registry import RegistryView


@dataclass(frozen=True, slots=True)
class NumberLiteral:
    value: float


@dataclass(frozen=True, slots=True)
class QuantityLiteral:
    quantity: Quantity


@dataclass(frozen=True, slots=True)
class PercentLiteral:
    percent: float


@dataclass(frozen=True, slots=True)
class CurrencyLiteral:
    code: str
    amount: float


@dataclass(frozen=True, slots=True)
class DateLiteral:
    """An ISO date, or a relative keyword resolved against the pass clock."""

    value: date | None = None
    keyword: str | None = None


@dataclass(frozen=True, slots=True)
class ConstantRef:
    name: str


@dataclass(frozen=True, slots=True)
class VariableRef:
    name: str
    position: int = 0


@dataclass(frozen=True, slots=True)
class UnaryOp:
    operator: str
    operand: ExprNode


@dataclass(frozen=True, slots=True)
class BinaryOp:
    operator: str
    left: ExprNode
    right: ExprNode


@dataclass(frozen=True, slots=True)
class FunctionCall:
    name: str
    args: tuple[ExprNode, ...]


@dataclass(frozen=True, slots=True)
class Conversion:
    operand: ExprNode
    target: str


@dataclass(frozen=True, slots=True)
class ListLiteral:
    items: tuple[ExprNode, ...]


@dataclass(frozen=True, slots=True)
class RangeLiteral:
    """Inclusive integer range ``start..stop [step n]``."""

    start: ExprNode
    stop: ExprNode
    step: ExprNode | None = None


ExprNode = (
    NumberLiteral
    | QuantityLiteral
    | PercentLiteral
    | CurrencyLiteral
    | DateLiteral
    | ConstantRef
    | VariableRef
    | UnaryOp
    | BinaryOp
    | FunctionCall
    | Conversion
    | ListLiteral
    | RangeLiteral
)

LITERAL_NODES = (
    NumberLiteral,
    QuantityLiteral,
    PercentLiteral,
    CurrencyLiteral,
    DateLiteral,
    ConstantRef,
)


class ParseErrorCode(str, Enum):
    UNEXPECTED_CHARACTER = "UNEXPECTED_CHARACTER"
    UNEXPECTED_TOKEN = "UNEXPECTED_TOKEN"
    UNEXPECTED_END = "UNEXPECTED_END"
    MISSING_CONVERSION_TARGET = "MISSING_CONVERSION_TARGET"
    UNBALANCED_PARENTHESES = "UNBALANCED_PARENTHESES"
    EMPTY_EXPRESSION = "EMPTY_EXPRESSION"
    UNIT_ALIAS_CYCLE = "UNIT_ALIAS_CYCLE"
    GROUPED_NUMBER = "GROUPED_NUMBER"


@dataclass(frozen=True, slots=True)
class ParseError:
    """Structured parse failure.

    Attributes:
        code: Error code.
        message: Human-readable description.
        token: Offending token text, if any.
        position: 0-based offset in the expression.
        kind: ErrorKind reported on the render result.
    """

    code: ParseErrorCode
    message: str
    token: str | None = None
    position: int = 0
    kind: ErrorKind = ErrorKind.PARSE

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "token": self.token,
            "position": self.position,
            "kind": self.kind.value,
        }


@dataclass(frozen=True)
class ExpressionParseResult:
    tree: ExprNode | None = None
    error: ParseError | None = None
    tokens: tuple[Token, ...] = field(default_factory=tuple)

    @property
    def success(self) -> bool:
        return self.tree is not None and self.error is None


class _ParseFailure(Exception):
    def __init__(self, error: ParseError) -> None:
        super().__init__(error.message)
        self.error = error


class ExpressionParser:
    """Parses a token list into an expression tree."""

    def __init__(self, tokens: list[Token]) -> None:
        self._tokens = tokens
        self._pos = 0

    def parse(self) -> ExprNode:
        if self._current.type is TokenType.EOF:
            raise _ParseFailure(ParseError(ParseErrorCode.EMPTY_EXPRESSION, "Empty expression"))
        node = self._list()
        if self._current.type is not TokenType.EOF:
            raise self._unexpected(self._current)
        return node

    @property
    def _current(self) -> Token:
        return self._tokens[self._pos]

    def _advance(self) -> Token:
        token = self._tokens[self._pos]
        if token.type is not TokenType.EOF:
            self._pos += 1
        return token

    def _at_operator(self, *operators: str) -> bool:
        return self._current.type is TokenType.OPERATOR and self._current.text in operators

    def _unexpected(self, token: Token) -> _ParseFailure:
        if token.type is TokenType.EOF:
            return _ParseFailure(
                ParseError(
                    ParseErrorCode.UNEXPECTED_END,
                    "Unexpected end of expression",
                    None,
                    token.position,
                )
            )
        if token.type is TokenType.RPAREN:
            return _ParseFailure(
                ParseError(
                    ParseErrorCode.UNBALANCED_PARENTHESES,
                    "Unmatched ')'",
                    token.text,
                    token.position,
                )
            )
        return _ParseFailure(
            ParseError(
                ParseErrorCode.UNEXPECTED_TOKEN,
                f"Unexpected token: {token.text}",
                token.text,
                token.position,
            )
        )

    def _list(self) -> ExprNode:
        items = [self._range()]
        while self._current.type is TokenType.COMMA:
            self._advance()
            items.append(self._range())
        return items[0] if len(items) == 1 else ListLiteral(tuple(items))

    def _range(self) -> ExprNode:
        node = self._conversion()
        if self._current.type is not TokenType.RANGE:
            return node
        self._advance()
        stop = self._conversion()
        step = None
        if self._current.type is TokenType.STEP:
            self._advance()
            step = self._conversion()
        return RangeLiteral(node, stop, step)

    def _conversion(self) -> ExprNode:
        node = self._additive()
        if self._current.type is TokenType.CONVERT:
            keyword = self._advance()
            target = self._current
            if target.type is not TokenType.TARGET:
                raise _ParseFailure(
                    ParseError(
                        ParseErrorCode.MISSING_CONVERSION_TARGET,
                        f"Expected unit after '{keyword.text}'",
                        keyword.text,
                        keyword.position,
                    )
                )
            self._advance()
            node = Conversion(node, target.text)
        return node

    def _additive(self) -> ExprNode:
        node = self._term()
        while self._at_operator("+", "-"):
            op = self._advance().text
            node = BinaryOp(op, node, self._term())
        return node

    def _term(self) -> ExprNode:
        node = self._power()
        while self._at_operator("*", "/"):
            op = self._advance().text
            node = BinaryOp(op, node, self._power())
        return node

    def _power(self) -> ExprNode:
        node = self._unary()
        if self._at_operator("^"):
            self._advance()
            node = BinaryOp("^", node, self._power())
        return node

    def _unary(self) -> ExprNode:
        if self._at_operator("-", "+"):
            op = self._advance().text
            operand = self._unary()
            return operand if op == "+" else UnaryOp("-", operand)
        return self._primary()

    def _primary(self) -> ExprNode:
        token = self._advance()
        if token.type is TokenType.NUMBER:
            return NumberLiteral(token.value)
        if token.type is TokenType.QUANTITY:
            return QuantityLiteral(token.value)
        if token.type is TokenType.PERCENT:
            return PercentLiteral(token.value)
        if token.type is TokenType.CURRENCY:
            code, amount = token.value
            return CurrencyLiteral(code, amount)
        if token.type is TokenType.DATE:
            if isinstance(token.value, date):
                return DateLiteral(value=token.value)
            return DateLiteral(keyword=token.value)
        if token.type is TokenType.CONSTANT:
            return ConstantRef(token.value)
        if token.type is TokenType.IDENTIFIER:
            if self._current.type is TokenType.LPAREN:
                return FunctionCall(token.value, self._arguments())
            return VariableRef(token.value, token.position)
        if token.type is TokenType.LPAREN:
            inner = self._list()
            if self._current.type is not TokenType.RPAREN:
                raise _ParseFailure(
                    ParseError(
                        ParseErrorCode.UNBALANCED_PARENTHESES,
                        "Missing closing parenthesis",
                        self._current.text or None,
                        self._current.position,
                    )
                )
            self._advance()
            return inner
        raise self._unexpected(token)

    def _arguments(self) -> tuple[ExprNode, ...]:
        self._advance()
        args: list[ExprNode] = []
        if self._current.type is TokenType.RPAREN:
            self._advance()
            return ()
        args.append(self._range())
        while self._current.type is TokenType.COMMA:
            self._advance()
            args.append(self._range())
        if self._current.type is not TokenType.RPAREN:
            raise _ParseFailure(
                ParseError(
                    ParseErrorCode.UNBALANCED_PARENTHESES,
                    "Missing closing parenthesis in function call",
                    self._current.text or None,
                    self._current.position,
                )
            )
        self._advance()
        return tuple(args)


def parse_expression(
    text: str, view: RegistryView, names: Iterable[str] = ()
) -> ExpressionParseResult:
    """Tokenize and parse an expression.

    Args:
        text: Expression text.
        view: Registry view for unit resolution.
        names: Known variable names (multi-word names tokenize as one identifier).

    Returns:
        ExpressionParseResult with either a tree or a ParseError. Never raises.
    """
    try:
        tokens = Tokenizer(text, view, names).tokenize()
    except TokenizeError as e:
        if e.message.startswith("Expected unit"):
            code = ParseErrorCode.MISSING_CONVERSION_TARGET
        elif e.message == GROUPED_NUMBER_MESSAGE:
            code = ParseErrorCode.GROUPED_NUMBER
        else:
            code = ParseErrorCode.UNEXPECTED_CHARACTER
        return ExpressionParseResult(error=ParseError(code, e.message, e.text or None, e.position))
    except CircularUnitAliasError as e:
        return ExpressionParseResult(
            error=ParseError(
                ParseErrorCode.UNIT_ALIAS_CYCLE,
                e.message,
                None,
                0,
                kind=ErrorKind.CIRCULAR_UNIT_ALIAS,
            )
        )

    try:
        tree = ExpressionParser(tokens).parse()
    except _ParseFailure as e:
        return ExpressionParseResult(error=e.error, tokens=tuple(tokens))
    return ExpressionParseResult(tree=tree, tokens=tuple(tokens))


def walk(node: ExprNode) -> Iterable[ExprNode]:
    """Yield ``node`` and all of its descendants, depth first."""
    yield node
    if isinstance(node, UnaryOp):
        yield from walk(node.operand)
    elif isinstance(node, BinaryOp):
        yield from walk(node.left)
        yield from walk(node.right)
    elif isinstance(node, FunctionCall):
        for arg in node.args:
            yield from walk(arg)
    elif isinstance(node, Conversion):
        yield from walk(node.operand)
    elif isinstance(node, ListLiteral):
        for item in node.items:
            yield from walk(item)
    elif isinstance(node, RangeLiteral):
        yield from walk(node.start)
        yield from walk(node.stop)
        if node.step is not None:
            yield from walk(node.step)
