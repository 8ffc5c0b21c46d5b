"""Line evaluation.

This package provides:
- EvaluatorPipeline: fixed-order evaluator dispatch
- EvaluationContext: per-line view of variables, functions and units
- Interpreter: semantic evaluation of expression trees
- RenderResult: per-line output handed to the renderer
- Ranges (``1..5 step 2``) and the equation solver
- Live evaluation heuristics and metrics
"""

from linecalc.eval.context import EvaluationContext
from linecalc.eval.evaluators import (
    ErrorNodeEvaluator,
    Evaluator,
    FunctionDefinitionEvaluator,
    GenericEvaluator,
    PercentageEvaluator,
    RangeEvaluator,
    SolveEvaluator,
    UnitsEvaluator,
    default_evaluators,
)
from linecalc.eval.interpreter import Interpreter
from linecalc.eval.live import LiveDecision, LiveMetrics, SuppressionReason, assess_live_line
from linecalc.eval.numeric import FloatEngine, NumericEngine
from linecalc.eval.pipeline import DispatchOutcome, EvaluatorPipeline
from linecalc.eval.results import RenderKind, RenderResult

__all__ = [
    "DispatchOutcome",
    "ErrorNodeEvaluator",
    "EvaluationContext",
    "Evaluator",
    "EvaluatorPipeline",
    "FloatEngine",
    "FunctionDefinitionEvaluator",
    "GenericEvaluator",
    "Interpreter",
    "LiveDecision",
    "LiveMetrics",
    "NumericEngine",
    "PercentageEvaluator",
    "RangeEvaluator",
    "RenderKind",
    "RenderResult",
    "SolveEvaluator",
    "SuppressionReason",
    "UnitsEvaluator",
    "assess_live_line",
    "default_evaluators",
]
