"""Tests for inclusive integer ranges (``a..b [step n]``)."""

from __future__ import annotations

import pytest

from linecalc.document import LineStatus
from linecalc.errors import ErrorKind
from linecalc.eval.ranges import (
    find_range_operator,
    integer_range,
    is_range_candidate,
    normalize_range_error,
)
from linecalc.parsing.expression import (
    FunctionCall,
    NumberLiteral,
    RangeLiteral,
    VariableRef,
    parse_expression,
)
from linecalc.units.registry import RegistryView
from linecalc.values import ListValue, NumberValue, UnitValue

from tests.fixtures.documents import RunDocument


class TestRangeScanning:
    """String-aware detection of the range operator."""

    def test_finds_operator(self) -> None:
        assert find_range_operator("1..5") == 1
        assert find_range_operator("2 + 2") == -1

    def test_skips_string_literals(self) -> None:
        assert find_range_operator("'a..b'") == -1
        assert find_range_operator('"a..b" + 1..2') == 10
        assert find_range_operator(r"'it\'s..' + 3") == -1

    @pytest.mark.parametrize("text", ["1..5", "0..10 step 2", "a..b", "2 + 2"])
    def test_valid_candidates(self, text: str) -> None:
        assert is_range_candidate(text)

    @pytest.mark.parametrize("text", ["1..", "..5", "1..5 step", "1..5..7", "1..2 step 3..4"])
    def test_invalid_candidates(self, text: str) -> None:
        assert not is_range_candidate(text)

    def test_error_normalization(self) -> None:
        assert normalize_range_error("1..(", "Unexpected end of expression") == (
            'Invalid range expression near "1..("'
        )
        kept = "range too large (20000 elements; max 10000)"
        assert normalize_range_error("1..20000", kept) == kept


class TestRangeParsing:
    def test_range_with_step(self, view: RegistryView) -> None:
        parsed = parse_expression("1..5 step 2", view)
        one, five, two = NumberLiteral(1.0), NumberLiteral(5.0), NumberLiteral(2.0)
        assert parsed.tree == RangeLiteral(one, five, two)

    def test_range_as_function_argument(self, view: RegistryView) -> None:
        parsed = parse_expression("max(1..3)", view)
        assert parsed.tree == FunctionCall(
            "max", (RangeLiteral(NumberLiteral(1.0), NumberLiteral(3.0)),)
        )

    def test_step_is_a_name_outside_ranges(self, view: RegistryView) -> None:
        parsed = parse_expression("step", view)
        assert parsed.tree == VariableRef("step", 0)

    def test_fractional_endpoint_is_not_split(self, view: RegistryView) -> None:
        parsed = parse_expression("0.5..3", view)
        assert parsed.tree == RangeLiteral(NumberLiteral(0.5), NumberLiteral(3.0))


class TestIntegerRange:
    def test_default_step_follows_direction(self) -> None:
        assert integer_range(NumberValue(2), NumberValue(6)) == [2, 3, 4, 5, 6]
        assert integer_range(NumberValue(6), NumberValue(2)) == [6, 5, 4, 3, 2]
        assert integer_range(NumberValue(5), NumberValue(5)) == [5]

    def test_step_alignment(self) -> None:
        assert integer_range(NumberValue(0), NumberValue(10), NumberValue(3)) == [0, 3, 6, 9]

    def test_largest_allowed_range(self) -> None:
        assert len(integer_range(NumberValue(1), NumberValue(10_000))) == 10_000


class TestRangeLines:
    """Ranges evaluated through a document pass."""

    def test_basic_range(self, run: RunDocument) -> None:
        result = run(["1..5 =>"])
        line = result.results[1]
        assert line.display_text == "1..5 => 1, 2, 3, 4, 5"
        assert isinstance(line.value, ListValue)

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("0..10 step 2 =>", "0, 2, 4, 6, 8, 10"),
            ("0..10 step 3 =>", "0, 3, 6, 9"),
            ("2..6 =>", "2, 3, 4, 5, 6"),
            ("6..2 =>", "6, 5, 4, 3, 2"),
            ("5..5 =>", "5"),
            ("10..0 step -5 =>", "10, 5, 0"),
        ],
    )
    def test_range_results(self, run: RunDocument, text: str, expected: str) -> None:
        assert run([text]).results[1].result == expected

    @pytest.mark.parametrize(
        ("text", "message"),
        [
            ("0..10 step 0 =>", "step cannot be 0"),
            ("0..10 step -2 =>", "step must be positive for an increasing range"),
            ("10..0 step 2 =>", "step must be negative for a decreasing range"),
            ("0.5..3 =>", "range endpoints must be integers (got 0.5)"),
            ("1..5 step 0.5 =>", "step must be an integer (got 0.5)"),
            ("1..100000 =>", "range too large (100000 elements; max 10000)"),
        ],
    )
    def test_range_errors(self, run: RunDocument, text: str, message: str) -> None:
        result = run([text])
        line = result.results[1]
        assert line.has_error
        assert line.error_kind is ErrorKind.INVALID_OPERATION
        assert message in line.display_text
        assert result.statuses[1] is LineStatus.ERROR

    def test_malformed_range_is_a_parse_error(self, run: RunDocument) -> None:
        line = run(["1..5 step =>"]).results[1]
        assert line.error_kind is ErrorKind.PARSE
        assert line.error_message == 'Invalid range expression near "1..5 step"'

    def test_variable_endpoints(self, run: RunDocument) -> None:
        result = run(["a = 1", "b = 5", "a..b =>", "a = 1 m", "b = 5 m", "a..b =>"])
        assert result.results[3].result == "1, 2, 3, 4, 5"
        assert "range endpoints must be unitless integers" in result.results[6].display_text

    def test_ranges_compose(self, run: RunDocument) -> None:
        result = run(["(1..5) * 2 =>", "sum(1..5) =>"])
        assert result.results[1].result == "2, 4, 6, 8, 10"
        assert result.results[2].result == "15"

    def test_range_assignment_feeds_later_lines(self, run: RunDocument) -> None:
        result = run(["xs = 1..3", "sum(xs) =>", "xs * 2 m =>"])
        assert result.results[2].result == "6"
        scaled = result.results[3].value
        assert isinstance(scaled, ListValue)
        assert all(isinstance(item, UnitValue) for item in scaled.items)

    def test_step_variable_still_works(self, run: RunDocument) -> None:
        assert run(["step = 3", "step * 2 =>"]).results[2].result == "6"
