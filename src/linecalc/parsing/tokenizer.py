"""Expression tokenizer.

Numbers may absorb a following unit run (``5 kg``, ``9.81 m/s^2``) into a
single QUANTITY token. When the run does not resolve, the tokenizer first
retries shorter runs cut at "*" or "/" boundaries; if none resolves, it emits a
plain NUMBER and rescans the run as an identifier. A token is never partially
consumed.

".." is the range operator; after it the word "step" introduces the range step
unless a variable of that name exists.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Final

from linecalc.errors import ConversionError, InvalidOperationError, UnknownUnitError
from linecalc.units.composite import parse_unit_string
from linecalc.units.quantity import Quantity
from linecalc.units.registry import RegistryView
from linecalc.values.scalars import CURRENCIES, CURRENCY_BY_SYMBOL


class TokenType(str, Enum):
    NUMBER = "NUMBER"
    QUANTITY = "QUANTITY"
    PERCENT = "PERCENT"
    CURRENCY = "CURRENCY"
    DATE = "DATE"
    IDENTIFIER = "IDENTIFIER"
    CONSTANT = "CONSTANT"
    CONVERT = "CONVERT"
    TARGET = "TARGET"
    OPERATOR = "OPERATOR"
    LPAREN = "LPAREN"
    RPAREN = "RPAREN"
    COMMA = "COMMA"
    RANGE = "RANGE"
    STEP = "STEP"
    EOF = "EOF"


@dataclass(frozen=True, slots=True)
class Token:
    """A lexical token.

    Attributes:
        type: Token type.
        text: Source text of the token.
        position: 0-based offset of the token in the expression.
        value: Decoded payload (float, Quantity, (code, amount), date, ...).
    """

    type: TokenType
    text: str
    position: int
    value: Any = None


class TokenizeError(Exception):
    """Raised internally for unexpected characters; converted into a ParseError."""

    def __init__(self, message: str, position: int, text: str) -> None:
        super().__init__(message)
        self.message = message
        self.position = position
        self.text = text


CONSTANTS: Final[frozenset[str]] = frozenset({"PI", "pi", "E"})
DATE_KEYWORDS: Final[frozenset[str]] = frozenset({"today", "tomorrow", "yesterday"})
CONVERSION_KEYWORDS: Final[frozenset[str]] = frozenset({"to", "in"})
STEP_KEYWORD: Final[str] = "step"
GROUPED_NUMBER_MESSAGE: Final[str] = (
    "Thousands separators in input are not supported; use plain digits (e.g., 2000)."
)

# "1..5" is a range, so a "." directly followed by another "." ends the number.
_PLAIN_NUMBER: Final[str] = r"(?:\d+(?:\.(?!\.)\d*)?|\.\d+)"
_NUMBER: Final = re.compile(rf"{_PLAIN_NUMBER}(?:[eE][+-]?\d+)?")
_GROUPED_LITERAL: Final = re.compile(r"\d{1,3}(?:,\d{3})+(?:\.\d+)?(?![\d,])")
_GROUPED_NUMBER: Final = re.compile(rf"{_GROUPED_LITERAL.pattern}|{_PLAIN_NUMBER}")
_DATE: Final = re.compile(r"\d{4}-\d{2}-\d{2}(?![\d.])")
_IDENTIFIER: Final = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_UNIT_SYMBOL: Final = r"[A-Za-z°µμΩ][A-Za-z°µμΩ_]*(?:\^-?\d+(?:\.\d+)?|\d+)?"
UNIT_RUN: Final = re.compile(rf"{_UNIT_SYMBOL}(?:[*/·]{_UNIT_SYMBOL})*")
_UNIT_BOUNDARY: Final = re.compile(r"[*/·]")
_CURRENCY_CODE: Final = re.compile(r"(?P<code>[A-Z]{3})(?![A-Za-z0-9_])")
_STEP: Final = re.compile(r"step(?![A-Za-z0-9_])")
_OPERATORS: Final[dict[str, str]] = {
    "**": "^",
    "+": "+",
    "-": "-",
    "*": "*",
    "/": "/",
    "^": "^",
    "×": "*",
    "÷": "/",
}
_OPERAND_TYPES: Final[frozenset[TokenType]] = frozenset(
    {
        TokenType.NUMBER,
        TokenType.QUANTITY,
        TokenType.PERCENT,
        TokenType.CURRENCY,
        TokenType.DATE,
        TokenType.IDENTIFIER,
        TokenType.CONSTANT,
        TokenType.RPAREN,
    }
)


class Tokenizer:
    """Scans one expression into tokens against a registry view.

    Args:
        text: Expression text.
        view: Registry view used to resolve unit runs after numbers.
        names: Known variable names; multi-word names are matched as one identifier.
    """

    def __init__(self, text: str, view: RegistryView, names: Iterable[str] = ()) -> None:
        self._text = text
        self._view = view
        self._names = frozenset(names)
        self._phrases = sorted((n for n in self._names if " " in n), key=len, reverse=True)
        self._pos = 0
        self._depth = 0
        self._in_range = False
        self._tokens: list[Token] = []

    def tokenize(self) -> list[Token]:
        """Tokenize the whole expression.

        Raises:
            TokenizeError: On a character that starts no token.
            CircularUnitAliasError: When a unit run names a blocked alias.
        """
        text = self._text
        while True:
            self._skip_whitespace()
            if self._pos >= len(text):
                break
            char = text[self._pos]
            if self._scan_date() or self._scan_currency_symbol():
                continue
            if text.startswith("..", self._pos):
                self._emit(TokenType.RANGE, "..", self._pos)
                self._pos += 2
                self._in_range = True
                continue
            if char.isdigit() or (char == "." and text[self._pos + 1 : self._pos + 2].isdigit()):
                self._scan_number()
            elif char.isalpha() or char == "_":
                self._scan_word()
            elif char == "(":
                self._emit(TokenType.LPAREN, "(", self._pos)
                self._pos += 1
                self._depth += 1
            elif char == ")":
                self._emit(TokenType.RPAREN, ")", self._pos)
                self._pos += 1
                self._depth = max(0, self._depth - 1)
            elif char == ",":
                self._emit(TokenType.COMMA, ",", self._pos)
                self._pos += 1
            else:
                self._scan_operator(char)
        self._emit(TokenType.EOF, "", len(text))
        return self._tokens

    def _emit(self, token_type: TokenType, text: str, position: int, value: Any = None) -> None:
        self._tokens.append(Token(token_type, text, position, value))

    def _skip_whitespace(self) -> None:
        while self._pos < len(self._text) and self._text[self._pos].isspace():
            self._pos += 1

    def _previous_is_operand(self) -> bool:
        return bool(self._tokens) and self._tokens[-1].type in _OPERAND_TYPES

    def _scan_date(self) -> bool:
        match = _DATE.match(self._text, self._pos)
        if match is None or self._previous_is_operand():
            return False
        try:
            value = date.fromisoformat(match.group(0))
        except ValueError:
            return False
        self._emit(TokenType.DATE, match.group(0), self._pos, value)
        self._pos = match.end()
        return True

    def _scan_currency_symbol(self) -> bool:
        text = self._text
        code = CURRENCY_BY_SYMBOL.get(text[self._pos])
        if code is None:
            return False
        start = self._pos
        pos = start + 1
        while pos < len(text) and text[pos] == " ":
            pos += 1
        match = _GROUPED_NUMBER.match(text, pos)
        if match is None:
            raise TokenizeError(f"Expected amount after '{text[start]}'", start, text[start])
        amount = float(match.group(0).replace(",", ""))
        self._emit(TokenType.CURRENCY, text[start : match.end()], start, (code, amount))
        self._pos = match.end()
        return True

    def _scan_number(self) -> None:
        text = self._text
        start = self._pos
        # Outside parentheses "1,000" would silently read as the list "1, 0".
        if self._depth == 0 and _GROUPED_LITERAL.match(text, start):
            raise TokenizeError(GROUPED_NUMBER_MESSAGE, start, text[start])
        match = _NUMBER.match(text, start)
        assert match is not None
        value = float(match.group(0))
        self._pos = match.end()

        if self._pos < len(text) and text[self._pos] == "%":
            self._pos += 1
            self._emit(TokenType.PERCENT, text[start : self._pos], start, value)
            return

        unit_start = self._pos
        while unit_start < len(text) and text[unit_start] == " ":
            unit_start += 1

        code_match = _CURRENCY_CODE.match(text, unit_start)
        if code_match is not None and code_match.group("code") in CURRENCIES:
            self._pos = code_match.end()
            code = code_match.group("code")
            self._emit(TokenType.CURRENCY, text[start : self._pos], start, (code, value))
            return

        run = None if self._at_step(unit_start) else UNIT_RUN.match(text, unit_start)
        if run is not None:
            resolved = self._resolve_run(run.group(0), value)
            if resolved is not None:
                quantity, length = resolved
                self._pos = unit_start + length
                self._emit(TokenType.QUANTITY, text[start : self._pos], start, quantity)
                return
        # Backtrack: the number stands alone and the run is rescanned as a word.
        self._emit(TokenType.NUMBER, match.group(0), start, value)

    def _resolve_run(self, run: str, value: float) -> tuple[Quantity, int] | None:
        cuts = [m.start() for m in _UNIT_BOUNDARY.finditer(run)]
        for end in [len(run), *reversed(cuts)]:
            candidate = run[:end]
            try:
                unit = parse_unit_string(candidate, self._view)
            except (UnknownUnitError, ConversionError, InvalidOperationError):
                continue
            return Quantity(value, unit), end
        return None

    def _scan_word(self) -> None:
        text = self._text
        start = self._pos
        for phrase in self._phrases:
            end = start + len(phrase)
            if text.startswith(phrase, start) and not (
                end < len(text) and (text[end].isalnum() or text[end] == "_")
            ):
                self._pos = end
                self._emit(TokenType.IDENTIFIER, phrase, start, phrase)
                return

        match = _IDENTIFIER.match(text, start)
        if match is None:
            raise TokenizeError(f"Unexpected character '{text[start]}'", start, text[start])
        word = match.group(0)
        self._pos = match.end()

        if word in CONVERSION_KEYWORDS and self._previous_is_operand() and word not in self._names:
            self._emit(TokenType.CONVERT, word, start)
            self._scan_target()
        elif self._at_step(start):
            self._emit(TokenType.STEP, word, start)
        elif word in CONSTANTS and word not in self._names:
            self._emit(TokenType.CONSTANT, word, start, word)
        elif word in DATE_KEYWORDS and word not in self._names:
            self._emit(TokenType.DATE, word, start, word)
        else:
            self._emit(TokenType.IDENTIFIER, word, start, word)

    def _at_step(self, pos: int) -> bool:
        """Whether "step" at ``pos`` is the range keyword rather than a name."""
        return (
            self._in_range
            and STEP_KEYWORD not in self._names
            and _STEP.match(self._text, pos) is not None
        )

    def _scan_target(self) -> None:
        """Read the conversion target up to an unbalanced ")" or the end."""
        text = self._text
        self._skip_whitespace()
        start = self._pos
        depth = 0
        pos = start
        while pos < len(text):
            char = text[pos]
            if char == "(":
                depth += 1
            elif char == ")":
                if depth == 0:
                    break
                depth -= 1
            pos += 1
        target = text[start:pos].strip()
        if not target:
            raise TokenizeError("Expected unit after 'to'", start, "")
        self._emit(TokenType.TARGET, target, start, target)
        self._pos = pos

    def _scan_operator(self, char: str) -> None:
        two = self._text[self._pos : self._pos + 2]
        if two in _OPERATORS:
            self._emit(TokenType.OPERATOR, _OPERATORS[two], self._pos)
            self._pos += 2
            return
        if char in _OPERATORS:
            self._emit(TokenType.OPERATOR, _OPERATORS[char], self._pos)
            self._pos += 1
            return
        raise TokenizeError(f"Unexpected character '{char}'", self._pos, char)


def tokenize(text: str, view: RegistryView, names: Iterable[str] = ()) -> list[Token]:
    """Convenience wrapper around Tokenizer."""
    return Tokenizer(text, view, names).tokenize()
