"""Tests for update units and their accumulator."""

from __future__ import annotations

from metaloc.model.units import UnitAccumulator, UnitKind, UpdateUnit


class TestUpdateUnit:
    """Test merging into a single unit."""

    def test_merge_extends_and_overwrites(self) -> None:
        unit = UpdateUnit(UnitKind.ENTITY, ("account",))
        unit.merge("DisplayName", {1033: "Account"})
        unit.merge("DisplayName", {1036: "Compte", 1033: "Customer"})

        assert unit.labels == {"DisplayName": {1033: "Customer", 1036: "Compte"}}

    def test_qualifier_lookup_is_case_insensitive(self) -> None:
        unit = UpdateUnit(UnitKind.FORM_LAYOUT, ("form", "tab", "t1"), {"Label": {1033: "General"}})

        assert unit.qualifier_labels("label") == {1033: "General"}
        assert unit.qualifier_labels("Description") == {}

    def test_is_empty(self) -> None:
        assert UpdateUnit(UnitKind.VIEW, ("v1",), {"Label": {}}).is_empty
        assert not UpdateUnit(UnitKind.VIEW, ("v1",), {"Label": {1033: "x"}}).is_empty

    def test_layout_kinds(self) -> None:
        assert UnitKind.FORM_LAYOUT.is_layout
        assert UnitKind.SITEMAP_LAYOUT.is_layout
        assert not UnitKind.FORM.is_layout


class TestUnitAccumulator:
    """Test grouping by (kind, key)."""

    def test_rows_for_same_key_merge(self) -> None:
        accumulator = UnitAccumulator()
        _ = accumulator.add(UnitKind.ENTITY, ("account",), "DisplayName", {1033: "Account"})
        _ = accumulator.add(UnitKind.ENTITY, ("account",), "Description", {1033: "A customer"})

        assert len(accumulator) == 1
        unit = accumulator.get(UnitKind.ENTITY, ("account",))
        assert unit is not None
        assert unit.labels == {"DisplayName": {1033: "Account"}, "Description": {1033: "A customer"}}

    def test_kind_is_part_of_the_key(self) -> None:
        accumulator = UnitAccumulator()
        _ = accumulator.add(UnitKind.LOCAL_OPTION, ("account", "code", 1), "Label", {1033: "One"})
        _ = accumulator.add(UnitKind.BOOLEAN_OPTION, ("account", "code", 1), "Label", {1033: "Yes"})

        assert [unit.kind for unit in accumulator] == [UnitKind.LOCAL_OPTION, UnitKind.BOOLEAN_OPTION]

    def test_empty_units_excluded(self) -> None:
        accumulator = UnitAccumulator()
        _ = accumulator.add(UnitKind.VIEW, ("v1",), "Label", {})

        assert accumulator.units() == []
