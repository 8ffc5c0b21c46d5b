"""Dimension and unit machinery for linecalc.

This package provides:
- Dimension: rational exponent vectors over eight base quantities
- UnitRegistry / RegistryView: static units plus per-pass dynamic aliases
- CompositeUnit / Quantity: unit algebra and conversion
- build_dynamic_aliases: alias rebuild with cycle detection
"""

from linecalc.units.aliases import DynamicAliasSet, build_dynamic_aliases
from linecalc.units.composite import CompositeUnit, UnitTerm, parse_unit_string
from linecalc.units.definitions import BUILTIN_UNITS, UnitDefinition
from linecalc.units.dimension import Dimension, format_dimension
from linecalc.units.quantity import Quantity, best_display_quantity
from linecalc.units.registry import RegistryView, UnitRegistry, normalize_alias_key

__all__ = [
    "BUILTIN_UNITS",
    "CompositeUnit",
    "Dimension",
    "DynamicAliasSet",
    "Quantity",
    "RegistryView",
    "UnitDefinition",
    "UnitRegistry",
    "UnitTerm",
    "best_display_quantity",
    "build_dynamic_aliases",
    "format_dimension",
    "normalize_alias_key",
    "parse_unit_string",
]
