"""Tests for dynamic unit aliases and cycle detection."""

from __future__ import annotations

import pytest

from linecalc.errors import CircularUnitAliasError
from linecalc.units.aliases import alias_symbol, build_dynamic_aliases
from linecalc.units.composite import CompositeUnit, parse_unit_string
from linecalc.units.dimension import COUNT, MASS
from linecalc.units.quantity import Quantity
from linecalc.units.registry import RegistryView, UnitRegistry


def _q(value: float, unit: str, view: RegistryView) -> Quantity:
    return Quantity(value, parse_unit_string(unit, view))


class TestBuildAliases:
    """Alias rebuild from variable quantities."""

    def test_empty_snapshot(self) -> None:
        aliases = build_dynamic_aliases({})
        assert dict(aliases.aliases) == {}
        assert dict(aliases.blocked) == {}

    def test_quantity_variable_becomes_alias(self, view: RegistryView) -> None:
        aliases = build_dynamic_aliases({"box": _q(3, "kg", view)})
        box = aliases.aliases["box"]
        assert box.dimension == MASS
        assert box.factor == pytest.approx(3.0)
        assert box.category == "alias"

    def test_alias_of_alias_is_flattened(self, view: RegistryView) -> None:
        box = _q(3, "kg", view)
        box_unit = build_dynamic_aliases({"box": box}).aliases["box"]
        pallet = Quantity(10, CompositeUnit.of(box_unit))

        aliases = build_dynamic_aliases({"box": box, "pallet": pallet})

        assert aliases.aliases["pallet"].factor == pytest.approx(30.0)
        assert aliases.build_order.index("box") < aliases.build_order.index("pallet")

    def test_names_are_normalized(self, view: RegistryView) -> None:
        aliases = build_dynamic_aliases({"Big  Box": _q(2, "kg", view)})
        assert "big box" in aliases.aliases

    def test_invalid_names_skipped(self, view: RegistryView) -> None:
        aliases = build_dynamic_aliases({"2x": _q(2, "kg", view)})
        assert dict(aliases.aliases) == {}

    def test_zero_quantity_skipped(self, view: RegistryView) -> None:
        aliases = build_dynamic_aliases({"nothing": _q(0, "kg", view)})
        assert "nothing" not in aliases.aliases

    def test_offset_units_skipped(self, view: RegistryView) -> None:
        aliases = build_dynamic_aliases({"warm": _q(20, "°C", view)})
        assert "warm" not in aliases.aliases

    def test_count_quantity_becomes_alias(self, view: RegistryView) -> None:
        aliases = build_dynamic_aliases({"dozen": _q(12, "eggs", view)})
        assert aliases.aliases["dozen"].dimension == COUNT


class TestCycleDetection:
    """Mutually-referencing aliases are blocked, not built."""

    def test_two_node_cycle(self, view: RegistryView) -> None:
        x = _q(1, "y", view)
        y = _q(1, "x", view)

        aliases = build_dynamic_aliases({"x": x, "y": y})

        assert "x" not in aliases.aliases
        assert "y" not in aliases.aliases
        assert aliases.blocked["x"] == ("x", "y", "x")
        assert aliases.blocked["y"] == ("x", "y", "x")

    def test_self_cycle(self, view: RegistryView) -> None:
        aliases = build_dynamic_aliases({"loop": _q(2, "loop", view)})
        assert aliases.blocked["loop"] == ("loop", "loop")

    def test_unrelated_aliases_survive_a_cycle(self, view: RegistryView) -> None:
        aliases = build_dynamic_aliases(
            {"x": _q(1, "y", view), "y": _q(1, "x", view), "box": _q(3, "kg", view)}
        )
        assert "box" in aliases.aliases
        assert set(aliases.blocked) == {"x", "y"}

    def test_blocked_alias_fails_resolution(
        self, registry: UnitRegistry, view: RegistryView
    ) -> None:
        aliases = build_dynamic_aliases({"x": _q(1, "y", view), "y": _q(1, "x", view)})
        cyclic_view = registry.view(aliases.aliases, aliases.blocked)

        expected = r"Circular unit alias detected \(x -> y -> x\)"
        with pytest.raises(CircularUnitAliasError, match=expected):
            cyclic_view.resolve("x")


class TestAliasSymbol:
    def test_lowercase_names_stay_lowercase(self) -> None:
        assert alias_symbol("box") == "box"

    def test_mixed_case_is_kept(self) -> None:
        assert alias_symbol("Crate  A") == "Crate A"
