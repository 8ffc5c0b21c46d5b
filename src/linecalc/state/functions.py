"""User-defined function store."""

from __future__ import annotations

from dataclasses import dataclass

from linecalc.parsing.ast import FunctionParameter


@dataclass(frozen=True, slots=True)
class UserFunction:
    """``name(params) = body`` as defined on a document line.

    The body is kept as raw text and parsed at call time against the registry
    view of the calling line.
    """

    name: str
    params: tuple[FunctionParameter, ...]
    body: str
    line_number: int | None = None

    @property
    def required_count(self) -> int:
        return sum(1 for p in self.params if p.default is None)

    def signature(self) -> str:
        rendered = [p.name if p.default is None else f"{p.name}={p.default}" for p in self.params]
        return f"{self.name}({', '.join(rendered)})"


class FunctionStore:
    """Name to UserFunction mapping; later definitions replace earlier ones."""

    def __init__(self) -> None:
        self._functions: dict[str, UserFunction] = {}

    def get(self, name: str) -> UserFunction | None:
        return self._functions.get(name)

    def define(self, function: UserFunction) -> None:
        self._functions[function.name] = function

    def delete(self, name: str) -> bool:
        return self._functions.pop(name, None) is not None

    def names(self) -> list[str]:
        return list(self._functions)

    def list(self) -> list[UserFunction]:
        return list(self._functions.values())

    def clear(self) -> None:
        self._functions.clear()

    def __contains__(self, name: object) -> bool:
        return name in self._functions

    def __len__(self) -> int:
        return len(self._functions)
