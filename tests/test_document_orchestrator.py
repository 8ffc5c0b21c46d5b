"""Tests for full-document passes."""

from __future__ import annotations

import logging
from datetime import date

import pytest

from linecalc.config import CalcSettings
from linecalc.document import CrossLineReference, DocumentOrchestrator, LineRecord, LineStatus
from linecalc.errors import ErrorKind
from linecalc.eval import EvaluationContext, EvaluatorPipeline, RenderResult, SuppressionReason
from linecalc.eval.results import RenderKind
from linecalc.parsing import ASTNode
from linecalc.values import SymbolicValue, UnitValue

from tests.fixtures.documents import PASS_DATE, RunDocument


class TestPassScenarios:
    """Documents evaluated top to bottom."""

    def test_mixed_length_units(self, run: RunDocument) -> None:
        result = run(["10 m + 5 ft =>"])
        assert result.results[1].display_text == "10 m + 5 ft => 11.524 m"
        assert result.statuses[1] is LineStatus.RESULT

    def test_percentage_variable(self, run: RunDocument) -> None:
        result = run(["x = 20%", "100 + x =>"])
        assert 1 not in result.results
        assert result.statuses[1] is LineStatus.NO_RESULT
        assert result.results[2].result == "120"

    def test_hidden_assignment_feeds_combined_line(self, run: RunDocument) -> None:
        result = run(["a = 5 kg", "b = a * 2 =>"])
        assert result.results[2].display_text == "b = a * 2 => 10 kg"
        assert [v.name for v in result.variables] == ["a", "b"]
        b = result.variables[1]
        assert isinstance(b.value, UnitValue)
        assert b.unit == "kg"

    def test_temperature_conversion(self, run: RunDocument) -> None:
        assert run(["0 °C to °F =>"]).results[1].result == "32 °F"

    def test_division_by_zero(self, run: RunDocument) -> None:
        result = run(["10 / 0 =>"])
        line = result.results[1]
        assert line.display_text == "10 / 0 => ⚠️ Division by zero"
        assert line.error_kind is ErrorKind.DIVISION_BY_ZERO
        assert result.statuses[1] is LineStatus.ERROR
        assert result.error_count == 1
        assert result.has_errors

    def test_error_propagates_through_variables(self, run: RunDocument) -> None:
        result = run(["bad = 1 / 0", "bad + 1 =>"])
        assert result.statuses[1] is LineStatus.ERROR
        assert result.results[2].error_kind is ErrorKind.DIVISION_BY_ZERO

    def test_later_assignment_is_not_visible_earlier(self, run: RunDocument) -> None:
        result = run(["y * 2 =>", "y = 3", "y * 2 =>"])
        assert result.results[1].result != "6"
        assert result.results[1].value == SymbolicValue("y * 2")
        assert result.results[3].result == "6"

    def test_comments_and_blank_lines(self, run: RunDocument) -> None:
        result = run(["# groceries", "", "// notes"])
        assert dict(result.results) == {}
        assert set(result.statuses.values()) == {LineStatus.NO_RESULT}

    def test_function_definition(self, run: RunDocument) -> None:
        result = run(["double(x) = x * 2", "double(4) =>"])
        assert result.statuses[1] is LineStatus.DEFINITION
        assert result.results[2].result == "8"

    def test_dynamic_unit_alias(self, run: RunDocument) -> None:
        result = run(["box = 3 kg", "2 box to kg =>"])
        assert result.results[2].result == "6 kg"

    def test_date_keywords_use_pass_clock(
        self, run: RunDocument, orchestrator: DocumentOrchestrator
    ) -> None:
        assert run(["today =>"]).results[1].result == PASS_DATE.isoformat()
        explicit = orchestrator.run_pass(["tomorrow =>"], today=date(2025, 1, 1))
        assert explicit.results[1].result == "2025-01-02"


class TestValueEdgeCases:
    def test_percentage_power(self, run: RunDocument) -> None:
        assert run(["(20%)^2 =>"]).results[1].result == "4%"

    def test_currency_power_is_an_error(self, run: RunDocument) -> None:
        result = run(["$5 ^ 2 =>", "$5 ^ 1 =>"])
        assert result.results[1].error_kind is ErrorKind.INVALID_OPERATION
        assert "currency amount to a power" in result.results[1].display_text
        assert result.results[2].result == "$5.00"

    def test_grouped_number_is_rejected(self, run: RunDocument) -> None:
        result = run(["1,000 + 1 =>", "$1,000 + $1 =>"])
        assert result.results[1].error_kind is ErrorKind.PARSE
        assert "Thousands separators in input are not supported" in result.results[1].display_text
        assert result.results[2].result == "$1,001.00"

    def test_literal_compound_unit_assignment_stays_hidden(self, run: RunDocument) -> None:
        result = run(["speed = 60 km/h", "speed * 2 h =>"])
        assert 1 not in result.results
        assert result.statuses[1] is LineStatus.NO_RESULT
        assert result.results[2].result == "120 km"


class TestAliasCycles:
    def test_cycle_is_reported_once(
        self, run: RunDocument, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.WARNING, logger="linecalc.document.orchestrator"):
            result = run(["x = 1 y", "y = 1 x", "5 x =>", "6 x =>", "1 + 1 =>"])

        assert result.results[3].error_kind is ErrorKind.CIRCULAR_UNIT_ALIAS
        assert result.results[5].display_text == "1 + 1 => 2"
        assert result.statuses[5] is LineStatus.RESULT
        warnings = [r.getMessage() for r in caplog.records if r.levelno == logging.WARNING]
        assert warnings == ["Circular unit alias detected (x -> y -> x)"]


class TestLiveEvaluation:
    def test_untriggered_expression_is_shown(
        self, run: RunDocument, orchestrator: DocumentOrchestrator
    ) -> None:
        result = run(["5 + 3"])
        assert result.results[1].result == "8"
        assert result.results[1].live is True
        assert orchestrator.metrics.attempted == 1
        assert orchestrator.metrics.shown == 1

    def test_prose_is_suppressed(self, run: RunDocument) -> None:
        result = run(["buy milk"])
        assert result.statuses[1] is LineStatus.SUPPRESSED
        assert result.suppressed[1] is SuppressionReason.PLAINTEXT

    def test_unresolved_live_line_is_suppressed(self, run: RunDocument) -> None:
        result = run(["foo * 2"])
        assert 1 not in result.results
        assert result.suppressed[1] is SuppressionReason.UNRESOLVED

    def test_live_error_is_suppressed(self, run: RunDocument) -> None:
        result = run(["1 / 0"])
        assert 1 not in result.results
        assert result.suppressed[1] is SuppressionReason.ERROR
        assert result.error_count == 0

    def test_disabled(self, run: RunDocument) -> None:
        result = run(["5 + 3"], live_result_enabled=False)
        assert result.suppressed[1] is SuppressionReason.DISABLED

    def test_computed_assignment_is_shown(self, run: RunDocument) -> None:
        result = run(["a = 2", "b = a * 3"])
        assert result.statuses[1] is LineStatus.NO_RESULT
        assert result.results[2].display_text == "b = a * 3 => 6"

    def test_computed_assignment_hidden_when_live_disabled(self, run: RunDocument) -> None:
        result = run(["a = 2", "b = a * 3"], live_result_enabled=False)
        assert dict(result.results) == {}
        assert result.variables[1].name == "b"


class TestCrossLineReferences:
    def test_reference_binds_source_value(self, run: RunDocument) -> None:
        result = run(
            [
                LineRecord("l1", "3 kg =>"),
                LineRecord("l2", "REF * 2 =>", (CrossLineReference("REF", target_line_id="l1"),)),
            ]
        )
        assert result.results[2].display_text == "REF * 2 => 6 kg"
        assert result.line_states["l2"].has_error is False

    def test_reference_by_line_number(self, run: RunDocument) -> None:
        ref = CrossLineReference("@1", target_line_number=1)
        result = run(["4 =>", LineRecord("x", "@1 + 1 =>", (ref,))])
        assert result.results[2].result == "5"

    def test_broken_reference(self, run: RunDocument) -> None:
        result = run(
            [
                LineRecord("l1", "1 / 0 =>"),
                LineRecord(
                    "l2",
                    "PLACEHOLDER * 2 =>",
                    (CrossLineReference("PLACEHOLDER", target_line_id="l1"),),
                ),
                LineRecord("l3", "2 * 3 =>"),
            ]
        )
        assert result.statuses[2] is LineStatus.BROKEN_REFERENCE
        assert result.results[2].display_text == "PLACEHOLDER * 2 => ⚠ source line has error"
        assert result.line_states["l2"].error_message == "source line has error"
        assert result.statuses[1] is LineStatus.ERROR
        assert result.results[3].display_text == "2 * 3 => 6"
        assert result.line_states["l3"].has_error is False

    def test_forward_reference_is_broken(self, run: RunDocument) -> None:
        result = run(
            [
                LineRecord("l1", "R + 1 =>", (CrossLineReference("R", target_line_id="l2"),)),
                LineRecord("l2", "2 =>"),
            ]
        )
        assert result.statuses[1] is LineStatus.BROKEN_REFERENCE

    def test_missing_target_uses_fallback(self, run: RunDocument) -> None:
        ref = CrossLineReference("R", target_line_id="gone", fallback="5")
        result = run([LineRecord("l1", "R + 1 =>", (ref,))])
        assert result.results[1].display_text == "R + 1 => 6"

    def test_broken_assignment_stores_error(self, run: RunDocument) -> None:
        ref = CrossLineReference("R", target_line_id="gone")
        result = run([LineRecord("l1", "total = R * 2 =>", (ref,)), "total + 1 =>"])
        assert result.statuses[1] is LineStatus.BROKEN_REFERENCE
        assert result.results[2].error_kind is ErrorKind.BROKEN_REFERENCE


class _Reentrant:
    name = "Reentrant"

    def __init__(self) -> None:
        self.orchestrator: DocumentOrchestrator | None = None

    def can_handle(self, node: ASTNode) -> bool:
        return True

    def evaluate(self, node: ASTNode, ctx: EvaluationContext) -> RenderResult | None:
        assert self.orchestrator is not None
        self.orchestrator.run_pass(["1 =>"])
        return None


class TestPassLifecycle:
    def test_passes_are_not_reentrant(self) -> None:
        evaluator = _Reentrant()
        orchestrator = DocumentOrchestrator(pipeline=EvaluatorPipeline([evaluator]))
        evaluator.orchestrator = orchestrator

        result = orchestrator.run_pass(["1 + 1 =>"])

        line = result.results[1]
        assert line.kind is RenderKind.ERROR
        assert line.error_message == (
            "Evaluation error in Reentrant: A document pass is already running"
        )
        assert orchestrator.state.value == "idle"

    def test_stores_are_cleared_between_passes(
        self, run: RunDocument, orchestrator: DocumentOrchestrator
    ) -> None:
        run(["foo = 1"])
        assert orchestrator.variables.get("foo") is not None
        result = run(["foo * 2 =>"])
        assert orchestrator.variables.get("foo") is None
        assert isinstance(result.results[1].value, SymbolicValue)

    def test_repeated_passes_are_identical(self, run: RunDocument, settings: CalcSettings) -> None:
        lines = ["rent = $1200", "rent * 12 =>", "x = 20%", "100 + x =>", "5 m to ft"]
        first = run(lines).to_dict(settings)
        second = run(lines).to_dict(settings)
        assert first == second

    def test_to_dict(self, run: RunDocument, settings: CalcSettings) -> None:
        payload = run(["a = 2", "a * 3 =>", "buy milk"]).to_dict(settings)
        assert set(payload) == {
            "results",
            "line_states",
            "statuses",
            "suppressed",
            "variables",
            "error_count",
        }
        assert payload["statuses"] == {"1": "no_result", "2": "result", "3": "suppressed"}
        assert payload["suppressed"] == {"3": "plaintext"}
        assert payload["results"][0]["display_text"] == "a * 3 => 6"
        assert payload["variables"][0]["name"] == "a"
