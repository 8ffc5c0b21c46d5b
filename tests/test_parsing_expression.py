"""Tests for the expression tokenizer and parser."""

from __future__ import annotations

from datetime import date

import pytest

from linecalc.errors import ErrorKind
from linecalc.parsing import ParseErrorCode, TokenType, Tokenizer, parse_expression
from linecalc.parsing.expression import (
    BinaryOp,
    Conversion,
    CurrencyLiteral,
    DateLiteral,
    FunctionCall,
    ListLiteral,
    NumberLiteral,
    PercentLiteral,
    QuantityLiteral,
    UnaryOp,
    VariableRef,
)
from linecalc.units.registry import RegistryView, UnitRegistry


def _types(text: str, view: RegistryView, names: tuple[str, ...] = ()) -> list[TokenType]:
    return [t.type for t in Tokenizer(text, view, names).tokenize()]


class TestTokenizer:
    """Number/unit absorption and backtracking."""

    def test_quantity_token(self, view: RegistryView) -> None:
        tokens = Tokenizer("9.81 m/s^2", view).tokenize()
        assert tokens[0].type is TokenType.QUANTITY
        assert tokens[0].value.value == pytest.approx(9.81)
        assert tokens[0].value.format_unit() == "m/s^2"

    def test_unit_run_cut_at_boundary(self, registry: UnitRegistry) -> None:
        """An unresolvable tail after "/" is left for the parser."""
        view = registry.view(reserved=["x"])
        assert _types("10 kg/x", view, ("x",)) == [
            TokenType.QUANTITY,
            TokenType.OPERATOR,
            TokenType.IDENTIFIER,
            TokenType.EOF,
        ]

    def test_number_backtracks_before_reserved_word(self, view: RegistryView) -> None:
        tokens = Tokenizer("5e", view).tokenize()
        assert tokens[0].type is TokenType.NUMBER
        assert tokens[0].value == 5.0
        assert tokens[1].type is TokenType.IDENTIFIER
        assert tokens[1].text == "e"

    def test_scientific_literal(self, view: RegistryView) -> None:
        tokens = Tokenizer("5e3", view).tokenize()
        assert tokens[0].type is TokenType.NUMBER
        assert tokens[0].value == 5000.0

    def test_percent_and_currency(self, view: RegistryView) -> None:
        assert _types("20% $5", view) == [TokenType.PERCENT, TokenType.CURRENCY, TokenType.EOF]

    def test_date_only_in_operand_position(self, view: RegistryView) -> None:
        assert _types("2024-03-15", view)[0] is TokenType.DATE
        assert _types("2 2024-03-15", view)[1] is TokenType.NUMBER

    def test_currency_code_suffix(self, view: RegistryView) -> None:
        token = Tokenizer("12 EUR", view).tokenize()[0]
        assert token.type is TokenType.CURRENCY
        assert token.value == ("EUR", 12.0)

    def test_conversion_keyword_reads_target(self, view: RegistryView) -> None:
        tokens = Tokenizer("3 mi to km", view).tokenize()
        assert [t.type for t in tokens] == [
            TokenType.QUANTITY,
            TokenType.CONVERT,
            TokenType.TARGET,
            TokenType.EOF,
        ]
        assert tokens[2].text == "km"

    def test_multi_word_variable(self, view: RegistryView) -> None:
        tokens = Tokenizer("monthly rent * 12", view, ("monthly rent",)).tokenize()
        assert tokens[0].type is TokenType.IDENTIFIER
        assert tokens[0].value == "monthly rent"


class TestParser:
    """Precedence and node shapes."""

    def test_precedence(self, view: RegistryView) -> None:
        tree = parse_expression("1 + 2 * 3", view).tree
        assert tree == BinaryOp(
            "+", NumberLiteral(1.0), BinaryOp("*", NumberLiteral(2.0), NumberLiteral(3.0))
        )

    def test_power_is_right_associative(self, view: RegistryView) -> None:
        tree = parse_expression("2 ^ 3 ^ 2", view).tree
        assert tree == BinaryOp(
            "^", NumberLiteral(2.0), BinaryOp("^", NumberLiteral(3.0), NumberLiteral(2.0))
        )

    def test_unary_minus(self, view: RegistryView) -> None:
        assert parse_expression("-x", view).tree == UnaryOp("-", VariableRef("x", 1))

    def test_double_star_is_power(self, view: RegistryView) -> None:
        tree = parse_expression("2 ** 3", view).tree
        assert isinstance(tree, BinaryOp)
        assert tree.operator == "^"

    def test_conversion(self, view: RegistryView) -> None:
        tree = parse_expression("10 m + 5 ft to cm", view).tree
        assert isinstance(tree, Conversion)
        assert tree.target == "cm"
        assert isinstance(tree.operand, BinaryOp)

    def test_function_call_and_list(self, view: RegistryView) -> None:
        tree = parse_expression("max(1, 2), 3", view).tree
        assert isinstance(tree, ListLiteral)
        assert tree.items[0] == FunctionCall("max", (NumberLiteral(1.0), NumberLiteral(2.0)))

    def test_literals(self, view: RegistryView) -> None:
        assert parse_expression("20%", view).tree == PercentLiteral(20.0)
        assert parse_expression("$5", view).tree == CurrencyLiteral("USD", 5.0)
        assert parse_expression("2024-03-15", view).tree == DateLiteral(value=date(2024, 3, 15))
        assert parse_expression("today", view).tree == DateLiteral(keyword="today")
        assert isinstance(parse_expression("5 kg", view).tree, QuantityLiteral)


class TestParseErrors:
    """Failures come back as ParseError values, never exceptions."""

    def test_empty_expression(self, view: RegistryView) -> None:
        result = parse_expression("", view)
        assert result.success is False
        assert result.error is not None
        assert result.error.code is ParseErrorCode.EMPTY_EXPRESSION

    def test_unexpected_end(self, view: RegistryView) -> None:
        result = parse_expression("5 +", view)
        assert result.error is not None
        assert result.error.code is ParseErrorCode.UNEXPECTED_END

    def test_dangling_identifier_after_number(self, view: RegistryView) -> None:
        result = parse_expression("5e", view)
        assert result.error is not None
        assert result.error.code is ParseErrorCode.UNEXPECTED_TOKEN
        assert result.error.token == "e"

    def test_missing_close_paren(self, view: RegistryView) -> None:
        result = parse_expression("(1 + 2", view)
        assert result.error is not None
        assert result.error.code is ParseErrorCode.UNBALANCED_PARENTHESES

    def test_unmatched_close_paren(self, view: RegistryView) -> None:
        result = parse_expression("1 + 2)", view)
        assert result.error is not None
        assert result.error.code is ParseErrorCode.UNBALANCED_PARENTHESES

    def test_unexpected_character(self, view: RegistryView) -> None:
        result = parse_expression("5 & 3", view)
        assert result.error is not None
        assert result.error.code is ParseErrorCode.UNEXPECTED_CHARACTER
        assert result.error.position == 2

    def test_missing_conversion_target(self, view: RegistryView) -> None:
        result = parse_expression("5 m to", view)
        assert result.error is not None
        assert result.error.code is ParseErrorCode.MISSING_CONVERSION_TARGET

    @pytest.mark.parametrize("text", ["1,000 + 1", "12,345.5", "2 * 1,000"])
    def test_thousands_separators_rejected(self, view: RegistryView, text: str) -> None:
        result = parse_expression(text, view)
        assert result.error is not None
        assert result.error.code is ParseErrorCode.GROUPED_NUMBER
        assert result.error.message.startswith("Thousands separators in input are not supported")

    def test_grouped_amount_after_currency_symbol(self, view: RegistryView) -> None:
        assert parse_expression("$1,000 + $1", view).success
        assert parse_expression("$1,000", view).tree == CurrencyLiteral("USD", 1000.0)

    def test_comma_lists_still_parse(self, view: RegistryView) -> None:
        assert parse_expression("1, 000", view).tree == ListLiteral(
            (NumberLiteral(1.0), NumberLiteral(0.0))
        )
        assert parse_expression("1,2,3", view).success
        assert parse_expression("max(100,200)", view).tree == FunctionCall(
            "max", (NumberLiteral(100.0), NumberLiteral(200.0))
        )

    def test_alias_cycle_is_reported(self, registry: UnitRegistry) -> None:
        view = registry.view(blocked={"x": ("x", "y", "x")})
        result = parse_expression("5 x", view)
        assert result.error is not None
        assert result.error.code is ParseErrorCode.UNIT_ALIAS_CYCLE
        assert result.error.kind is ErrorKind.CIRCULAR_UNIT_ALIAS

    def test_error_to_dict(self, view: RegistryView) -> None:
        result = parse_expression("5 +", view)
        assert result.error is not None
        payload = result.error.to_dict()
        assert payload["code"] == "UNEXPECTED_END"
        assert payload["kind"] == "ParseError"
