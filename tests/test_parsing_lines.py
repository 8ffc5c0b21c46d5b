"""Tests for line classification."""

from __future__ import annotations

from linecalc.parsing import (
    CombinedAssignmentNode,
    CommentNode,
    ErrorNode,
    ExpressionNode,
    FunctionDefinitionNode,
    FunctionParameter,
    NodeKind,
    PlainTextNode,
    VariableAssignmentNode,
    parse_document,
    parse_line,
)


class TestParseLine:
    """Each line maps to exactly one node variant."""

    def test_empty_line_is_plain_text(self) -> None:
        assert isinstance(parse_line("   ", 1), PlainTextNode)

    def test_comments(self) -> None:
        hashed = parse_line("# groceries", 1)
        slashed = parse_line("// todo list", 2)
        assert isinstance(hashed, CommentNode)
        assert hashed.text == "groceries"
        assert isinstance(slashed, CommentNode)
        assert slashed.text == "todo list"

    def test_expression_with_trigger(self) -> None:
        node = parse_line("10 m + 5 ft =>", 3)
        assert isinstance(node, ExpressionNode)
        assert node.expression == "10 m + 5 ft"
        assert node.has_trigger is True
        assert node.line_number == 3

    def test_variable_assignment(self) -> None:
        node = parse_line("rent = $1200", 1)
        assert isinstance(node, VariableAssignmentNode)
        assert node.name == "rent"
        assert node.value_expr == "$1200"

    def test_multi_word_variable_name(self) -> None:
        node = parse_line("monthly  rent = 1200", 1)
        assert isinstance(node, VariableAssignmentNode)
        assert node.name == "monthly rent"

    def test_combined_assignment(self) -> None:
        node = parse_line("b = a * 2 =>", 1)
        assert isinstance(node, CombinedAssignmentNode)
        assert node.name == "b"
        assert node.expression == "a * 2"
        assert node.kind is NodeKind.COMBINED_ASSIGNMENT

    def test_prose_with_equals_is_plain_text(self) -> None:
        node = parse_line("the answer we found = 42 apparently", 1)
        assert isinstance(node, PlainTextNode)

    def test_comparison_operators_are_not_assignments(self) -> None:
        assert isinstance(parse_line("a >= b", 1), PlainTextNode)

    def test_plain_text(self) -> None:
        assert isinstance(parse_line("buy milk", 1), PlainTextNode)

    def test_missing_expression_before_trigger(self) -> None:
        node = parse_line("=>", 1)
        assert isinstance(node, ErrorNode)
        assert "Missing expression" in node.message

    def test_missing_value_with_trigger(self) -> None:
        node = parse_line("x = =>", 1)
        assert isinstance(node, ErrorNode)
        assert node.message == "Missing value after 'x ='"


class TestFunctionDefinitions:
    def test_definition_with_defaults(self) -> None:
        node = parse_line("area(w, h = 2) = w * h", 1)
        assert isinstance(node, FunctionDefinitionNode)
        assert node.name == "area"
        assert node.params == (FunctionParameter("w"), FunctionParameter("h", "2"))
        assert node.body == "w * h"

    def test_duplicate_parameter(self) -> None:
        node = parse_line("f(x, x) = x", 1)
        assert isinstance(node, ErrorNode)
        assert "Duplicate function parameter: x" in node.message

    def test_missing_body(self) -> None:
        node = parse_line("f(x) =", 1)
        assert isinstance(node, ErrorNode)
        assert "Missing body" in node.message


class TestParseDocument:
    def test_line_numbers_are_positional(self) -> None:
        nodes = parse_document(["# title", "x = 5", "x * 2 =>"])
        assert [n.line_number for n in nodes] == [1, 2, 3]
        assert [n.kind for n in nodes] == [
            NodeKind.COMMENT,
            NodeKind.VARIABLE_ASSIGNMENT,
            NodeKind.EXPRESSION,
        ]
