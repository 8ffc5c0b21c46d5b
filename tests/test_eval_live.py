"""Tests for live (untriggered) evaluation heuristics and metrics."""

from __future__ import annotations

from dataclasses import replace

import pytest

from linecalc.config import CalcSettings
from linecalc.eval import EvaluationContext, LiveMetrics, SuppressionReason, assess_live_line
from linecalc.eval.live import (
    find_unresolved_identifiers,
    has_dangling_operator,
    is_likely_live_expression,
    should_show_live_assignment,
)
from linecalc.parsing import parse_expression
from linecalc.units.registry import UnitRegistry
from linecalc.values import NumberValue


class TestLikelyExpression:
    @pytest.mark.parametrize("text", ["5 + 3", "12 kg", "(x)", "3 m to ft", "PI"])
    def test_expression_like(self, text: str) -> None:
        assert is_likely_live_expression(text)

    @pytest.mark.parametrize(
        "text", ["", "buy milk", "# note", "// note", "@mention", "a = 5", "x =>"]
    )
    def test_prose_and_markers(self, text: str) -> None:
        assert not is_likely_live_expression(text)

    def test_known_variable_makes_line_likely(self) -> None:
        assert not is_likely_live_expression("rent")
        assert is_likely_live_expression("rent", variable_names=["rent"])

    def test_known_function_call(self) -> None:
        assert is_likely_live_expression("area(w)", function_names=["area"])


class TestDanglingOperator:
    @pytest.mark.parametrize("text", ["5 +", "2 *", "sqrt(", "3 m to", "10% of", "x = "])
    def test_dangling(self, text: str) -> None:
        assert has_dangling_operator(text)

    @pytest.mark.parametrize("text", ["5 + 3", "3 m to ft", "go into"])
    def test_complete(self, text: str) -> None:
        assert not has_dangling_operator(text)


class TestAssessLiveLine:
    """Suppression reasons for untriggered lines."""

    def test_disabled(self, ctx: EvaluationContext) -> None:
        disabled = replace(ctx, settings=CalcSettings(live_result_enabled=False))
        decision = assess_live_line("5 + 3", disabled)
        assert decision.eligible is False
        assert decision.reason is SuppressionReason.DISABLED

    @pytest.mark.parametrize(
        ("text", "reason"),
        [
            ("buy milk", SuppressionReason.PLAINTEXT),
            ("5 +", SuppressionReason.INCOMPLETE),
            ("(1 + 2", SuppressionReason.INCOMPLETE),
            ("5 & 3", SuppressionReason.PLAINTEXT),
            ("foo * 2", SuppressionReason.UNRESOLVED),
        ],
    )
    def test_suppressed(self, ctx: EvaluationContext, text: str, reason: SuppressionReason) -> None:
        decision = assess_live_line(text, ctx)
        assert decision.eligible is False
        assert decision.reason is reason

    @pytest.mark.parametrize("text", ["5 + 3", "10 m + 5 ft", "20% of 50", "3 mi to km"])
    def test_allowed(self, ctx: EvaluationContext, text: str) -> None:
        assert assess_live_line(text, ctx).eligible is True

    def test_known_variable_resolves(self, ctx: EvaluationContext) -> None:
        ctx.variables.set("rent", NumberValue(1200), "1200")
        assert assess_live_line("rent * 12", ctx).eligible is True

    def test_alias_cycle_is_an_error(self, ctx: EvaluationContext, registry: UnitRegistry) -> None:
        cyclic = replace(ctx, view=registry.view(blocked={"x": ("x", "y", "x")}))
        decision = assess_live_line("5 x", cyclic)
        assert decision.reason is SuppressionReason.ERROR


class TestUnresolvedIdentifiers:
    def test_reports_unknown_names_once(self, ctx: EvaluationContext) -> None:
        ctx.variables.set("alpha", NumberValue(1), "1")
        tree = parse_expression(
            "alpha + sqrt(beta) + nope(beta)", ctx.view, ctx.known_names()
        ).tree
        assert tree is not None
        assert find_unresolved_identifiers(tree, ctx) == ["beta", "nope"]


class TestLiveAssignment:
    @pytest.mark.parametrize("value", ["5", "$1200", "20%", "  ", "60 km/h", "9.81 m/s^2"])
    def test_literal_values_stay_hidden(self, value: str) -> None:
        assert not should_show_live_assignment(value)

    @pytest.mark.parametrize(
        "value", ["a * 2", "sqrt(4)", "20% of 50", "3 m to ft", "60 km/h * 2", "120 km / 2 h"]
    )
    def test_computed_values_are_shown(self, value: str) -> None:
        assert should_show_live_assignment(value)

    def test_reference_to_variable_is_shown(self) -> None:
        assert should_show_live_assignment("rent", variable_names=["rent"])


class TestLiveMetrics:
    def test_counters_and_reset(self) -> None:
        metrics = LiveMetrics()
        metrics.record_attempt()
        metrics.record_attempt()
        metrics.record_shown()
        metrics.record_suppressed(SuppressionReason.UNRESOLVED)

        assert metrics.to_dict() == {
            "attempted": 2,
            "shown": 1,
            "suppressed": {
                "disabled": 0,
                "plaintext": 0,
                "incomplete": 0,
                "unresolved": 1,
                "error": 0,
            },
        }

        metrics.reset()
        assert metrics.attempted == 0
        assert sum(metrics.suppressed.values()) == 0
