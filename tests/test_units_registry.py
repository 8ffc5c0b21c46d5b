"""Tests for the unit registry and per-pass registry views."""

from __future__ import annotations

import pytest

from linecalc.errors import CircularUnitAliasError, UnknownUnitError
from linecalc.units.dimension import COUNT, LENGTH, MASS
from linecalc.units.registry import RegistryView, UnitRegistry


class TestStaticLookup:
    """Lookup of built-in symbols, aliases and names."""

    def test_symbol_lookup(self, view: RegistryView) -> None:
        unit = view.resolve("km")
        assert unit.symbol == "km"
        assert unit.dimension == LENGTH
        assert unit.factor == 1000.0

    def test_alias_lookup(self, view: RegistryView) -> None:
        assert view.resolve("feet").symbol == "ft"
        assert view.resolve("kilograms").symbol == "kg"

    def test_name_lookup_is_case_insensitive(self, registry: UnitRegistry) -> None:
        unit = registry.get("Meters")
        assert unit is not None
        assert unit.symbol == "m"

    def test_short_symbols_are_case_sensitive(self, registry: UnitRegistry) -> None:
        """Two-letter symbols like Pa and pa must not collide."""
        assert registry.get("Pa") is not None
        assert registry.get("pa") is None

    def test_duplicate_registration_rejected(self, registry: UnitRegistry) -> None:
        fresh = UnitRegistry([registry.get_or_raise("m")])
        with pytest.raises(ValueError, match="already registered"):
            fresh.register(registry.get_or_raise("m"))

    def test_get_or_raise_unknown(self, registry: UnitRegistry) -> None:
        with pytest.raises(UnknownUnitError, match="Unknown unit: florp"):
            registry.get_or_raise("florp")


class TestPrefixResolution:
    """SI-prefix decomposition against prefixable units."""

    def test_prefixed_unit(self, view: RegistryView) -> None:
        unit = view.resolve("kW")
        assert unit.symbol == "kW"
        assert unit.factor == pytest.approx(1000.0)
        assert unit.prefixed is True

    def test_micro_prefix(self, view: RegistryView) -> None:
        unit = view.resolve("µs")
        assert unit.factor == pytest.approx(1e-6)

    def test_double_prefix_rejected(self, registry: UnitRegistry) -> None:
        with pytest.raises(UnknownUnitError, match="double SI prefix"):
            registry.resolve_prefixed("kkm")

    def test_non_prefixable_unit(self, registry: UnitRegistry) -> None:
        assert registry.resolve_prefixed("kft") is None


class TestCountUnits:
    """Unknown bare words become ad-hoc count units."""

    def test_plural_word_becomes_count_unit(self, view: RegistryView) -> None:
        unit = view.resolve("widgets")
        assert unit.dimension == COUNT
        assert unit.symbol == "widget"
        assert unit.plural == "widgets"

    def test_singular_and_plural_share_symbol(self, view: RegistryView) -> None:
        assert view.resolve("apple").symbol == view.resolve("apples").symbol

    def test_reserved_words_are_not_count_units(self, view: RegistryView) -> None:
        for word in ("of", "per", "today", "pi"):
            with pytest.raises(UnknownUnitError):
                view.resolve(word)

    def test_variable_names_are_reserved(self, registry: UnitRegistry) -> None:
        view = registry.view(reserved=["price"])
        with pytest.raises(UnknownUnitError):
            view.resolve("price")

    def test_count_units_can_be_disallowed(self, view: RegistryView) -> None:
        assert view.try_resolve("widgets", allow_count=False) is None
        assert view.is_registered_unit("widgets") is False
        assert view.is_registered_unit("kg") is True


class TestDynamicAliases:
    """Aliases and blocked names layered over the static table."""

    def test_alias_takes_precedence(self, registry: UnitRegistry) -> None:
        box = registry.get_or_raise("kg")
        view = registry.view(aliases={"box": box})
        assert view.resolve("Box").dimension == MASS

    def test_blocked_alias_raises_cycle(self, registry: UnitRegistry) -> None:
        view = registry.view(blocked={"x": ("x", "y", "x")})
        with pytest.raises(CircularUnitAliasError) as exc_info:
            view.resolve("x")
        assert exc_info.value.cycle == ("x", "y", "x")
        assert "x -> y -> x" in exc_info.value.message

    def test_try_resolve_still_raises_on_cycle(self, registry: UnitRegistry) -> None:
        view = registry.view(blocked={"x": ("x", "y", "x")})
        with pytest.raises(CircularUnitAliasError):
            view.try_resolve("x")


class TestListing:
    def test_categories(self, registry: UnitRegistry) -> None:
        categories = registry.categories()
        assert "length" in categories
        assert categories == sorted(categories)

    def test_list_units_by_category(self, registry: UnitRegistry) -> None:
        units = registry.list_units("mass")
        assert units
        assert all(u.category == "mass" for u in units)
        assert [u.symbol for u in units] == sorted(u.symbol for u in units)
