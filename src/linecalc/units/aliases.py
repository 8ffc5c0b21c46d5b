"""Dynamic unit aliases derived from document variables.

A variable whose value is a quantity (``box = 3 kg``) can be used as a unit on
later lines (``2 box``). Aliases may reference each other; the dependency graph
is walked with an explicit visiting/visited/stack DFS over an arena of
candidates. Members of a cycle are blocked and reported with the cycle path.
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Final

from linecalc.units.definitions import UnitDefinition
from linecalc.units.quantity import Quantity
from linecalc.units.registry import normalize_alias_key

logger = logging.getLogger(__name__)

ALIAS_NAME_PATTERN: Final = re.compile(r"^[A-Za-z°µμΩ][A-Za-z°µμΩ0-9\s]*$")
ALIAS_CATEGORY: Final[str] = "alias"

_UNVISITED: Final[int] = 0
_VISITING: Final[int] = 1
_VISITED: Final[int] = 2


@dataclass(frozen=True, slots=True)
class AliasCandidate:
    """A variable eligible to become a unit alias."""

    name: str
    key: str
    quantity: Quantity


@dataclass(frozen=True)
class DynamicAliasSet:
    """Result of one alias rebuild.

    Attributes:
        aliases: Built alias definitions keyed by normalized name.
        blocked: Normalized names on a cycle, mapped to the cycle path.
        build_order: Normalized names in the order they were built.
    """

    aliases: Mapping[str, UnitDefinition] = field(default_factory=dict)
    blocked: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    build_order: tuple[str, ...] = ()

    @classmethod
    def empty(cls) -> DynamicAliasSet:
        return cls()


def alias_symbol(name: str) -> str:
    """Display symbol for an alias: lowercase names stay lowercase, others keep casing."""
    trimmed = " ".join(name.split())
    return trimmed.lower() if trimmed == trimmed.lower() else trimmed


def _collect_candidates(quantities: Mapping[str, Quantity]) -> list[AliasCandidate]:
    candidates: list[AliasCandidate] = []
    seen: set[str] = set()
    for name, quantity in quantities.items():
        trimmed = name.strip()
        if not trimmed or not ALIAS_NAME_PATTERN.match(trimmed):
            continue
        key = normalize_alias_key(trimmed)
        if key in seen:
            continue
        seen.add(key)
        candidates.append(AliasCandidate(name=trimmed, key=key, quantity=quantity))
    return candidates


def _dependency_sets(candidates: list[AliasCandidate]) -> list[tuple[int, ...]]:
    index = {c.key: i for i, c in enumerate(candidates)}
    deps: list[tuple[int, ...]] = []
    for candidate in candidates:
        found: list[int] = []
        for symbol in candidate.quantity.unit.symbols():
            target = index.get(normalize_alias_key(symbol))
            if target is not None and target not in found:
                found.append(target)
        deps.append(tuple(found))
    return deps


def _walk(
    candidates: list[AliasCandidate], deps: list[tuple[int, ...]]
) -> tuple[list[int], dict[int, tuple[str, ...]]]:
    """Iterative DFS returning post-order (dependencies first) and blocked nodes."""
    state = [_UNVISITED] * len(candidates)
    order: list[int] = []
    blocked: dict[int, tuple[str, ...]] = {}

    for root in range(len(candidates)):
        if state[root] != _UNVISITED:
            continue
        state[root] = _VISITING
        path = [root]
        stack = [(root, iter(deps[root]))]
        while stack:
            node, edges = stack[-1]
            nxt = next(edges, None)
            if nxt is None:
                stack.pop()
                path.pop()
                state[node] = _VISITED
                order.append(node)
            elif state[nxt] == _VISITING:
                members = path[path.index(nxt) :]
                cycle = tuple(candidates[i].name for i in members) + (candidates[nxt].name,)
                logger.debug("Circular unit alias detected (%s)", " -> ".join(cycle))
                for member in members:
                    blocked.setdefault(member, cycle)
            elif state[nxt] == _UNVISITED:
                state[nxt] = _VISITING
                path.append(nxt)
                stack.append((nxt, iter(deps[nxt])))
    return order, blocked


def build_dynamic_aliases(quantities: Mapping[str, Quantity]) -> DynamicAliasSet:
    """Rebuild alias definitions from the current variable snapshot.

    Args:
        quantities: Variable name to quantity value, in definition order.

    Returns:
        DynamicAliasSet with built aliases and blocked cycle members.
    """
    candidates = _collect_candidates(quantities)
    if not candidates:
        return DynamicAliasSet.empty()

    deps = _dependency_sets(candidates)
    order, blocked = _walk(candidates, deps)

    built: dict[str, UnitDefinition] = {}
    by_symbol: dict[str, UnitDefinition] = {}
    build_order: list[str] = []
    for idx in order:
        if idx in blocked:
            continue
        candidate = candidates[idx]
        replacements = {
            symbol: by_symbol[normalize_alias_key(symbol)]
            for symbol in candidate.quantity.unit.symbols()
            if normalize_alias_key(symbol) in by_symbol
        }
        unit = candidate.quantity.unit
        if replacements:
            unit = unit.substitute(replacements)
        if unit.has_offset or unit.dimension.is_dimensionless:
            continue
        factor = candidate.quantity.value * unit.base_factor
        if factor == 0 or not math.isfinite(factor):
            continue
        definition = UnitDefinition(
            symbol=alias_symbol(candidate.name),
            name=candidate.name,
            dimension=unit.dimension,
            factor=factor,
            category=ALIAS_CATEGORY,
        )
        built[candidate.key] = definition
        by_symbol[candidate.key] = definition
        build_order.append(candidate.key)

    return DynamicAliasSet(
        aliases=built,
        blocked={candidates[i].key: cycle for i, cycle in blocked.items()},
        build_order=tuple(build_order),
    )
