"""Pytest configuration and fixtures for linecalc tests.

This module provides common fixtures and configuration for all tests.
"""

from __future__ import annotations

from collections.abc import Sequence

import pytest

from linecalc.config import CalcSettings
from linecalc.document.models import LineRecord, PassResult
from linecalc.document.orchestrator import DocumentOrchestrator
from linecalc.eval.context import EvaluationContext
from linecalc.state.functions import FunctionStore
from linecalc.state.variables import VariableStore
from linecalc.units.registry import RegistryView, UnitRegistry

from tests.fixtures.documents import PASS_DATE, RunDocument


@pytest.fixture
def settings() -> CalcSettings:
    """Default evaluation settings."""
    return CalcSettings()


@pytest.fixture
def registry() -> UnitRegistry:
    """Shared registry with the built-in units."""
    return UnitRegistry.get_instance()


@pytest.fixture
def view(registry: UnitRegistry) -> RegistryView:
    """Registry view without dynamic aliases."""
    return registry.view()


@pytest.fixture
def ctx(settings: CalcSettings, view: RegistryView) -> EvaluationContext:
    """Evaluation context for line 1 with empty stores."""
    return EvaluationContext(
        settings=settings,
        view=view,
        variables=VariableStore(),
        functions=FunctionStore(),
        line_number=1,
        line_id="line-1",
        today=PASS_DATE,
    )


@pytest.fixture
def orchestrator() -> DocumentOrchestrator:
    return DocumentOrchestrator(clock=lambda: PASS_DATE)


@pytest.fixture
def run(orchestrator: DocumentOrchestrator, settings: CalcSettings) -> RunDocument:
    """Run one pass over plain text lines (or line records)."""

    def _run(lines: Sequence[str | LineRecord], **overrides: object) -> PassResult:
        pass_settings = settings.with_overrides(**overrides) if overrides else settings
        return orchestrator.run_pass(lines, pass_settings)

    return _run
