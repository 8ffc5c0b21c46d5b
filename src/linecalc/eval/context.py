"""Per-line evaluation context."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import date
from types import MappingProxyType

from linecalc.config import CalcSettings
from linecalc.state.equations import EquationStore
from linecalc.state.functions import FunctionStore
from linecalc.state.variables import Variable, VariableStore, variable_key
from linecalc.units.registry import RegistryView
from linecalc.values.base import SemanticValue


@dataclass(frozen=True)
class EvaluationContext:
    """Everything an evaluator may read while evaluating one line.

    Attributes:
        settings: Display and evaluation settings for the pass.
        view: Registry view holding this line's dynamic unit aliases.
        variables: Store of variables committed by earlier lines.
        functions: User-defined functions committed by earlier lines.
        bindings: Resolved cross-line references for this line, by placeholder.
        line_number: 1-based line position.
        line_id: Stable line identity.
        today: Pass clock used by today/tomorrow/yesterday.
        depth: User-function call depth.
        scope: Function parameters bound for the current call.
        equations: Assignment equations recorded by earlier lines, for the solver.
    """

    settings: CalcSettings
    view: RegistryView
    variables: VariableStore
    functions: FunctionStore
    bindings: Mapping[str, SemanticValue] = field(default_factory=dict)
    line_number: int = 0
    line_id: str | None = None
    today: date = field(default_factory=date.today)
    depth: int = 0
    scope: Mapping[str, SemanticValue] = field(default_factory=dict)
    equations: EquationStore = field(default_factory=EquationStore)

    def lookup(self, name: str) -> SemanticValue | None:
        """Resolve a name: call scope, then line bindings, then the store."""
        key = variable_key(name)
        if key in self.scope:
            return self.scope[key]
        if key in self.bindings:
            return self.bindings[key]
        variable = self.variables.get(key)
        return variable.value if variable is not None else None

    def lookup_variable(self, name: str) -> Variable | None:
        key = variable_key(name)
        if key in self.scope or key in self.bindings:
            return None
        return self.variables.get(key)

    def known_names(self) -> list[str]:
        names = dict.fromkeys(self.variables.names())
        names.update(dict.fromkeys(self.bindings))
        names.update(dict.fromkeys(self.scope))
        return list(names)

    def child(self, scope: Mapping[str, SemanticValue]) -> EvaluationContext:
        """Context for a user-function body with ``scope`` bound."""
        return replace(
            self,
            scope=MappingProxyType(dict(scope)),
            depth=self.depth + 1,
            view=self.view.with_reserved(scope),
        )

    def with_values(self, values: Mapping[str, SemanticValue]) -> EvaluationContext:
        """Context with extra local values layered over the current scope."""
        scope = {**self.scope, **{variable_key(k): v for k, v in values.items()}}
        return replace(
            self,
            scope=MappingProxyType(scope),
            view=self.view.with_reserved(scope),
        )
