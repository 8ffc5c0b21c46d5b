"""Variable, function and equation stores owned by the document orchestrator."""

from linecalc.state.equations import Equation, EquationStore
from linecalc.state.functions import FunctionStore, UserFunction
from linecalc.state.variables import Variable, VariableStore, variable_key

__all__ = [
    "Equation",
    "EquationStore",
    "FunctionStore",
    "UserFunction",
    "Variable",
    "VariableStore",
    "variable_key",
]
