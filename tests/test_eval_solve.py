"""Tests for the equation solver (``solve x in ...`` and bare unknowns)."""

from __future__ import annotations

import pytest

from linecalc.config import CalcSettings
from linecalc.document import LineStatus
from linecalc.errors import ErrorKind
from linecalc.eval import EvaluationContext, EvaluatorPipeline
from linecalc.eval.solve import format_expression
from linecalc.parsing import ExpressionNode
from linecalc.parsing.expression import BinaryOp, NumberLiteral, UnaryOp, VariableRef
from linecalc.state import EquationStore
from linecalc.values import NumberValue

from tests.fixtures.documents import RunDocument


def _ref(name: str) -> VariableRef:
    return VariableRef(name)


class TestExplicitSolve:
    """``solve <unknown> in <equation>[, assumptions]``."""

    def test_linear_equation(self, run: RunDocument) -> None:
        result = run(["solve x in 2*x = 10 =>"])
        line = result.results[1]
        assert line.display_text == "solve x in 2*x = 10 => 5"
        assert line.value == NumberValue(5.0)

    def test_solution_is_not_committed(self, run: RunDocument) -> None:
        result = run(["solve x in 2*x = 10 =>", "x * 3 =>"])
        assert [v.name for v in result.variables] == []
        assert result.results[2].result != "15"

    def test_inline_assumptions(self, run: RunDocument) -> None:
        result = run(["solve v in distance = v * time, time = 2 s, distance = 40 m =>"])
        assert result.results[1].result == "20 m/s"

    def test_where_clause_is_ignored(self, run: RunDocument) -> None:
        result = run(["solve r in area = PI * r^2 where r > 0 =>"])
        assert result.results[1].result == "sqrt(area / PI)"

    @pytest.mark.parametrize(
        "text",
        [
            "solve v distance = v * time =>",
            "solve v in distance = v * time, =>",
            "solve v in distance =>",
            "solve v in distance = =>",
        ],
    )
    def test_malformed_commands(self, run: RunDocument, text: str) -> None:
        line = run([text]).results[1]
        assert line.error_kind is ErrorKind.SOLVE
        assert line.error_message == "Cannot solve: equation is not valid"

    def test_multiple_equations_for_target(self, run: RunDocument) -> None:
        line = run(["solve x in y = x + 1, z = x * 2 =>"]).results[1]
        assert line.error_message == "Cannot solve: multiple equations for target"

    def test_no_real_solution(self, run: RunDocument) -> None:
        line = run(["solve r in -4 = r^2 =>"]).results[1]
        assert line.error_message == "Cannot solve: no real solution"


class TestImplicitSolve:
    """A bare unknown answered from earlier assignment lines."""

    def test_symbolic_rearrangement(self, run: RunDocument) -> None:
        result = run(["distance = v * time", "v =>"])
        assert result.results[2].display_text == "v => distance / time"

    def test_numeric_result_when_values_are_known(self, run: RunDocument) -> None:
        result = run(["distance = v * time", "distance = 40 m", "time = 2 s", "v =>"])
        assert result.results[4].result == "20 m/s"

    def test_conversion_suffix(self, run: RunDocument) -> None:
        result = run(["distance = v * time", "distance = 40 m", "time = 2 s", "v to km/h =>"])
        assert result.results[4].result == "72 km/h"

    def test_nearest_equation_wins(self, run: RunDocument) -> None:
        result = run(["speed = v * 2", "speed = v + 5", "v =>"])
        assert result.results[3].result == "speed - 5"

    @pytest.mark.parametrize(
        ("equation", "target", "expected"),
        [
            ("distance = (v + 2) * time", "v", "distance / time - 2"),
            ("distance = v * time - 10 m", "v", "(distance + 10 m) / time"),
            ("frequency = 1 / period", "period", "1 / frequency"),
            ("area = PI * r^2", "r", "sqrt(area / PI)"),
            ("total = a - b", "b", "a - total"),
            ("y = sqrt(x)", "x", "y ^ 2"),
            ("growth = exp(k)", "k", "ln(growth)"),
            ("share = x / (100 - x)", "x", "100 * share / (1 + share)"),
        ],
    )
    def test_rearrangements(
        self, run: RunDocument, equation: str, target: str, expected: str
    ) -> None:
        assert run([equation, f"{target} =>"]).results[2].result == expected

    def test_phrase_variable(self, run: RunDocument) -> None:
        lines = ["distance = average speed * time", "distance = 100 m", "time = 2 s"]
        result = run([*lines, "average speed =>"])
        assert result.results[4].result == "50 m/s"

    @pytest.mark.parametrize(
        ("lines", "message"),
        [
            (["v =>"], 'Cannot solve: no equation found for "v"'),
            (["v = v + 1", "v =>"], "Cannot solve: variable appears on both sides"),
            (["value = r^time", "r =>"], "Cannot solve: exponent must be numeric"),
            (["y = 2^x", "x =>"], None),
            (["y = floor(x)", "x =>"], "Cannot solve: unsupported function"),
        ],
    )
    def test_solve_failures(
        self, run: RunDocument, lines: list[str], message: str | None
    ) -> None:
        result = run(lines)
        line = result.results[len(lines)]
        if message is None:
            assert not line.has_error
            return
        assert line.error_kind is ErrorKind.SOLVE
        assert line.error_message == message
        assert result.statuses[len(lines)] is LineStatus.ERROR

    def test_later_equation_is_not_used(self, run: RunDocument) -> None:
        line = run(["v =>", "distance = v * time"]).results[1]
        assert line.error_message == 'Cannot solve: no equation found for "v"'

    def test_known_value_is_returned_unsolved(self, run: RunDocument) -> None:
        assert run(["speed = 10", "speed =>"]).results[2].result == "10"

    def test_plain_numbers_are_substituted(self, run: RunDocument) -> None:
        result = run(["distance = v * time", "time = 4", "v =>"])
        assert result.results[3].result == "distance / 4"

    @pytest.mark.parametrize("text", ["today =>", "PI =>", "kg =>"])
    def test_keywords_and_units_are_not_unknowns(self, run: RunDocument, text: str) -> None:
        assert not run([text]).results[1].has_error


class TestSolveDispatch:
    def test_solve_runs_before_units(self, ctx: EvaluationContext) -> None:
        node = ExpressionNode(1, "solve w in w / 2 = 3 m =>", "solve w in w / 2 = 3 m")
        outcome = EvaluatorPipeline().dispatch(node, ctx)
        assert outcome.evaluator_name == "SolveEvaluator"
        assert outcome.result is not None
        assert outcome.result.result == "6 m"

    def test_live_bare_names_are_not_solved(self, ctx: EvaluationContext) -> None:
        node = ExpressionNode(1, "v", "v", has_trigger=False)
        outcome = EvaluatorPipeline().dispatch(node, ctx)
        assert outcome.evaluator_name == "GenericEvaluator"


class TestEquationStore:
    def test_before_returns_nearest_first(self) -> None:
        store = EquationStore()
        store.record("a", "x + 1", 1)
        store.record("b  c", " x * 2 ", 2)
        store.record("d", "x", 5)
        earlier = store.before(5)
        assert [(e.name, e.expression, e.line_number) for e in earlier] == [
            ("b c", "x * 2", 2),
            ("a", "x + 1", 1),
        ]
        store.clear()
        assert len(store) == 0


class TestFormatExpression:
    """Rearranged trees print with the fewest parentheses that keep their meaning."""

    def test_right_operand_of_minus_is_grouped(self, settings: CalcSettings) -> None:
        tree = BinaryOp("-", _ref("a"), BinaryOp("-", _ref("b"), _ref("c")))
        assert format_expression(tree, settings) == "a - (b - c)"

    def test_lower_precedence_child_is_grouped(self, settings: CalcSettings) -> None:
        tree = BinaryOp("*", BinaryOp("+", _ref("a"), NumberLiteral(1.0)), _ref("b"))
        assert format_expression(tree, settings) == "(a + 1) * b"

    def test_negated_sum(self, settings: CalcSettings) -> None:
        tree = UnaryOp("-", BinaryOp("+", _ref("a"), _ref("b")))
        assert format_expression(tree, settings) == "-(a + b)"

    def test_known_values_are_substituted(self, settings: CalcSettings) -> None:
        tree = BinaryOp("/", _ref("a"), _ref("b"))
        known = {"a": NumberValue(-3.0)}
        assert format_expression(tree, settings, known.get) == "(-3) / b"
