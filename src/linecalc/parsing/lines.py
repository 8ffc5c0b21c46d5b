"""Line classification: turns raw line text into an ASTNode."""

from __future__ import annotations

import re
from collections.abc import Sequence
from typing import Final

from linecalc.parsing.ast import (
    ASTNode,
    CombinedAssignmentNode,
    CommentNode,
    ErrorNode,
    ExpressionNode,
    FunctionDefinitionNode,
    FunctionParameter,
    PlainTextNode,
    VariableAssignmentNode,
)

TRIGGER: Final[str] = "=>"

VARIABLE_NAME_PATTERN: Final = re.compile(r"^[A-Za-z][A-Za-z0-9 _]*$")
_IDENTIFIER: Final = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_FUNCTION_DEFINITION: Final = re.compile(
    r"^(?P<name>[A-Za-z_][A-Za-z0-9_]*)\s*\((?P<params>[^()]*)\)\s*=(?![=>])\s*(?P<body>.*)$"
)
# Single "=" that is not part of "==", "<=", ">=", "!=" or "=>".
_ASSIGNMENT_EQUALS: Final = re.compile(r"(?<![=<>!])=(?![=>])")

_MAX_NAME_WORDS: Final[int] = 3
_PROSE_LEADING_WORDS: Final[frozenset[str]] = frozenset(
    {
        "the",
        "a",
        "an",
        "if",
        "when",
        "so",
        "then",
        "and",
        "but",
        "because",
        "note",
        "i",
        "we",
        "solve",
    }
)


def normalize_name(name: str) -> str:
    """Collapse internal whitespace of a variable name."""
    return " ".join(name.split())


def is_valid_variable_name(name: str) -> bool:
    """Check that ``name`` is an identifier or a short phrase, not a sentence."""
    if not VARIABLE_NAME_PATTERN.match(name):
        return False
    words = name.split()
    if len(words) > _MAX_NAME_WORDS:
        return False
    return not (len(words) > 1 and words[0].lower() in _PROSE_LEADING_WORDS)


def _parse_params(text: str) -> tuple[FunctionParameter, ...] | str:
    if not text.strip():
        return ()
    params: list[FunctionParameter] = []
    seen: set[str] = set()
    for part in text.split(","):
        name, sep, default = part.partition("=")
        name = name.strip()
        if not _IDENTIFIER.match(name):
            return f"Invalid function parameter: {part.strip() or '(empty)'}"
        if name in seen:
            return f"Duplicate function parameter: {name}"
        seen.add(name)
        default_text = default.strip() if sep else None
        if sep and not default_text:
            return f"Missing default value for parameter: {name}"
        params.append(FunctionParameter(name, default_text))
    return tuple(params)


def parse_line(text: str, line_number: int) -> ASTNode:
    """Classify a single line.

    Args:
        text: Raw line text.
        line_number: 1-based line position.

    Returns:
        The ASTNode variant for the line. Never raises; malformed trigger and
        function lines become ErrorNode.
    """
    stripped = text.strip()
    if not stripped:
        return PlainTextNode(line_number, text)
    if stripped.startswith("#"):
        return CommentNode(line_number, text, stripped[1:].strip())
    if stripped.startswith("//"):
        return CommentNode(line_number, text, stripped[2:].strip())

    left, trigger, _ = stripped.partition(TRIGGER)
    has_trigger = bool(trigger)
    left = left.strip()

    function_match = _FUNCTION_DEFINITION.match(left)
    if function_match is not None:
        params = _parse_params(function_match.group("params"))
        if isinstance(params, str):
            return ErrorNode(line_number, text, params)
        name = function_match.group("name")
        body = function_match.group("body").strip()
        if not body:
            return ErrorNode(line_number, text, f"Missing body for function {name}")
        return FunctionDefinitionNode(line_number, text, name, params, body)

    equals = _ASSIGNMENT_EQUALS.search(left)
    if equals is not None:
        name = normalize_name(left[: equals.start()])
        value = left[equals.end() :].strip()
        if is_valid_variable_name(name):
            if not value:
                if has_trigger:
                    return ErrorNode(line_number, text, f"Missing value after '{name} ='")
                return PlainTextNode(line_number, text)
            if has_trigger:
                return CombinedAssignmentNode(line_number, text, name, value)
            return VariableAssignmentNode(line_number, text, name, value)

    if has_trigger:
        if not left:
            return ErrorNode(line_number, text, "Missing expression before =>")
        return ExpressionNode(line_number, text, left, has_trigger=True)
    return PlainTextNode(line_number, text)


def parse_document(lines: Sequence[str]) -> list[ASTNode]:
    """Parse every line independently; results are 1-based by position."""
    return [parse_line(text, number) for number, text in enumerate(lines, start=1)]
