"""Unit registry and per-pass registry views.

UnitRegistry holds the static built-in units and is shared read-only. A
RegistryView pairs it with one pass's dynamic aliases and blocked (cyclic)
alias names, and is passed explicitly to the parser and evaluators.

Resolution order for a symbol:
    1. dynamic aliases (blocked aliases raise CircularUnitAliasError)
    2. static units and their aliases
    3. SI-prefix decomposition against a prefixable static unit
    4. ad-hoc pluralized count units for unknown bare words
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import ClassVar, Final

from linecalc.errors import CircularUnitAliasError, UnknownUnitError
from linecalc.units.definitions import (
    BUILTIN_UNITS,
    PREFIXES_BY_LENGTH,
    UnitDefinition,
    make_count_unit,
)

logger = logging.getLogger(__name__)

_COUNT_WORD_PATTERN: Final = re.compile(r"^[A-Za-z][A-Za-z_]*$")

# Words that never become ad-hoc count units.
RESERVED_WORDS: Final[frozenset[str]] = frozenset(
    {
        "to",
        "in",
        "of",
        "on",
        "off",
        "as",
        "is",
        "what",
        "per",
        "and",
        "or",
        "pi",
        "e",
        "today",
        "tomorrow",
        "yesterday",
    }
)


def normalize_alias_key(name: str) -> str:
    """Case- and whitespace-normalize a variable name for alias lookup."""
    return " ".join(name.split()).lower()


class UnitRegistry:
    """Static unit table with symbol and name lookup.

    The default instance is populated with the built-in units and should be
    treated as read-only once passes start.
    """

    _instance: ClassVar[UnitRegistry | None] = None

    def __init__(self, units: Iterable[UnitDefinition] = ()) -> None:
        self._units: dict[str, UnitDefinition] = {}
        self._symbols: dict[str, UnitDefinition] = {}
        self._names: dict[str, UnitDefinition] = {}
        for unit in units:
            self.register(unit)

    @classmethod
    def get_instance(cls) -> UnitRegistry:
        """Get the shared registry populated with built-in units."""
        if cls._instance is None:
            cls._instance = cls(BUILTIN_UNITS)
        return cls._instance

    def register(self, unit: UnitDefinition) -> None:
        """Register a unit and its aliases.

        Raises:
            ValueError: If the symbol or an alias is already registered.
        """
        spellings = (unit.symbol, *unit.aliases)
        for spelling in spellings:
            if spelling in self._symbols:
                raise ValueError(f"Unit spelling already registered: {spelling}")
        self._units[unit.symbol] = unit
        for spelling in spellings:
            self._symbols[spelling] = unit
            if len(spelling) >= 3:
                self._names.setdefault(spelling.lower(), unit)

    def get(self, symbol: str) -> UnitDefinition | None:
        """Look up a static unit by exact spelling, then by case-insensitive name."""
        unit = self._symbols.get(symbol)
        if unit is not None:
            return unit
        if len(symbol) >= 3:
            return self._names.get(symbol.lower())
        return None

    def get_or_raise(self, symbol: str) -> UnitDefinition:
        unit = self.get(symbol)
        if unit is None:
            raise UnknownUnitError(symbol)
        return unit

    def resolve_prefixed(self, symbol: str) -> UnitDefinition | None:
        """Decompose ``symbol`` into an SI prefix and a prefixable static unit.

        Raises:
            UnknownUnitError: If the remainder already carries a prefix ("kkm").
        """
        for prefix in PREFIXES_BY_LENGTH:
            if not symbol.startswith(prefix.symbol) or len(symbol) == len(prefix.symbol):
                continue
            remainder = symbol[len(prefix.symbol) :]
            base = self._symbols.get(remainder)
            if base is None:
                continue
            if base.prefixed:
                raise UnknownUnitError(symbol, "double SI prefix")
            if not base.prefixable:
                continue
            return replace(
                base,
                symbol=prefix.symbol + remainder,
                name=prefix.name + base.name,
                factor=prefix.factor * base.factor,
                aliases=(),
                prefixable=False,
                prefixed=True,
            )
        return None

    def list_units(self, category: str | None = None) -> list[UnitDefinition]:
        """List registered units sorted by category then symbol."""
        units = [u for u in self._units.values() if category is None or u.category == category]
        return sorted(units, key=lambda u: (u.category, u.symbol))

    def categories(self) -> list[str]:
        return sorted({u.category for u in self._units.values()})

    def view(
        self,
        aliases: Mapping[str, UnitDefinition] | None = None,
        blocked: Mapping[str, tuple[str, ...]] | None = None,
        reserved: Iterable[str] = (),
    ) -> RegistryView:
        """Create a per-pass view over this registry."""
        return RegistryView(
            registry=self,
            aliases=MappingProxyType(dict(aliases or {})),
            blocked=MappingProxyType(dict(blocked or {})),
            reserved=frozenset(normalize_alias_key(r) for r in reserved),
        )


@dataclass(frozen=True)
class RegistryView:
    """Static units plus one pass's dynamic aliases.

    Attributes:
        registry: Static unit registry.
        aliases: Alias definitions keyed by normalized variable name.
        blocked: Cycle members keyed by normalized name, mapped to the cycle path.
        reserved: Normalized names (variables, functions) excluded from count units.
    """

    registry: UnitRegistry
    aliases: Mapping[str, UnitDefinition] = field(default_factory=dict)
    blocked: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    reserved: frozenset[str] = frozenset()

    def resolve(self, symbol: str, *, allow_count: bool = True) -> UnitDefinition:
        """Resolve a unit symbol following the registry lookup order.

        Raises:
            CircularUnitAliasError: If the symbol names a blocked alias.
            UnknownUnitError: If no lookup step matches.
        """
        key = normalize_alias_key(symbol)
        cycle = self.blocked.get(key)
        if cycle is not None:
            raise CircularUnitAliasError(cycle)
        alias = self.aliases.get(key)
        if alias is not None:
            return alias

        unit = self.registry.get(symbol)
        if unit is not None:
            return unit

        unit = self.registry.resolve_prefixed(symbol)
        if unit is not None:
            return unit

        if allow_count and self._is_count_word(symbol):
            return make_count_unit(symbol)
        raise UnknownUnitError(symbol)

    def try_resolve(self, symbol: str, *, allow_count: bool = True) -> UnitDefinition | None:
        """Like resolve() but returns None for unknown units; cycles still raise."""
        try:
            return self.resolve(symbol, allow_count=allow_count)
        except UnknownUnitError:
            return None

    def is_registered_unit(self, symbol: str) -> bool:
        """True when the symbol resolves without falling back to a count unit."""
        return self.try_resolve(symbol, allow_count=False) is not None

    def with_reserved(self, names: Iterable[str]) -> RegistryView:
        extra = frozenset(normalize_alias_key(n) for n in names)
        return replace(self, reserved=self.reserved | extra)

    def _is_count_word(self, symbol: str) -> bool:
        if not _COUNT_WORD_PATTERN.match(symbol):
            return False
        key = symbol.lower()
        return key not in RESERVED_WORDS and key not in self.reserved
