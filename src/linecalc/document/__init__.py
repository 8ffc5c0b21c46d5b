"""Document passes.

This package provides:
- DocumentOrchestrator: full-document, top-to-bottom evaluation passes
- LineRecord / CrossLineReference: line input with references to other lines
- PassResult / LineResultState / LineStatus: pass output
"""

from linecalc.document.models import (
    CrossLineReference,
    LineRecord,
    LineResultState,
    LineStatus,
    PassResult,
)
from linecalc.document.orchestrator import DocumentOrchestrator, OrchestratorState

__all__ = [
    "CrossLineReference",
    "DocumentOrchestrator",
    "LineRecord",
    "LineResultState",
    "LineStatus",
    "OrchestratorState",
    "PassResult",
]
