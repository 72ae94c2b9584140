"""Tests for the unit registry, its file format and table export."""

import json

import pandas as pd
import pytest

from unitgraph.units.unitmodels import ConversionEquation, Unit, UnitGroup
from unitgraph.units.unitregistry import (
    RegistryError,
    UnitRegistry,
    conversions_frame,
    export_conversions,
    group_id_for,
    load_registry,
    save_registry,
)


def _edge(from_id, to_id, multiplier, derived=False):
    return ConversionEquation(
        id=f"{from_id}-{to_id}",
        from_unit_id=from_id,
        to_unit_id=to_id,
        multiplier=multiplier,
        equation=f"x * {multiplier}",
        derived=derived,
    )


class TestAssignUnit:
    """Merge rule for classification results."""

    def test_creates_group_from_slug(self, flow_registry, unit_factory):
        gpm = unit_factory("GPM")
        group = flow_registry.assign_unit(gpm.id, "Flow Rate")
        assert group.id == "ug-flow-rate"
        assert group.name == "Flow Rate"
        assert flow_registry.get_unit(gpm.id).group_id == "ug-flow-rate"

    def test_same_slug_reuses_group(self, flow_registry, unit_factory):
        """'Flow Rate' and 'flow-rate!' land in one group."""
        a = flow_registry.assign_unit(unit_factory("GPM").id, "Flow Rate")
        b = flow_registry.assign_unit(unit_factory("L/s").id, "flow  rate!")
        assert a is b
        assert len(flow_registry.groups) == 1
        assert a.unit_ids == [unit_factory("GPM").id, unit_factory("L/s").id]

    def test_idempotent(self, flow_registry, unit_factory):
        gpm_id = unit_factory("GPM").id
        flow_registry.assign_unit(gpm_id, "Flow Rate")
        flow_registry.assign_unit(gpm_id, "Flow Rate")
        assert flow_registry.groups["ug-flow-rate"].unit_ids == [gpm_id]

    def test_grouped_unit_keeps_its_group(self, flow_registry, unit_factory):
        """Re-classifying an already grouped unit is a no-op."""
        gpm_id = unit_factory("GPM").id
        flow_registry.assign_unit(gpm_id, "Flow Rate")
        group = flow_registry.assign_unit(gpm_id, "Pressure")
        assert group.id == "ug-flow-rate"
        assert "ug-pressure" not in flow_registry.groups

    def test_blank_name_uses_fallback(self, flow_registry, unit_factory):
        group = flow_registry.assign_unit(unit_factory("GPM").id, "???")
        assert group.id == "ug-uncategorized"
        assert group.name == "Uncategorized"

    def test_unknown_unit(self, flow_registry):
        with pytest.raises(KeyError):
            flow_registry.assign_unit("missing", "Flow Rate")


def test_group_id_for():
    assert group_id_for("Flow Rate") == "ug-flow-rate"
    assert group_id_for("  Pressure / Head ") == "ug-pressure-head"
    assert group_id_for("") == "ug-uncategorized"


def test_add_conversion_skips_existing_pair():
    registry = UnitRegistry()
    group = UnitGroup(id="ug-x", name="X", unit_ids=["a", "b"])
    assert registry.add_conversion(group, _edge("a", "b", 2.0)) is True
    assert registry.add_conversion(group, _edge("a", "b", 3.0)) is False
    assert registry.add_conversion(group, _edge("a", "a", 1.0)) is False
    assert [c.multiplier for c in group.conversions] == [2.0]


class TestRegistryFile:
    """Persisted form and fatal errors."""

    def test_save_and_load(self, tmp_path, flow_registry, unit_factory):
        group = flow_registry.assign_unit(unit_factory("GPM").id, "Flow Rate")
        flow_registry.assign_unit(unit_factory("L/s").id, "Flow Rate")
        group.conversions.append(_edge(unit_factory("GPM").id, unit_factory("L/s").id, 0.0630902))
        path = tmp_path / "registry.json"

        save_registry(flow_registry, path)
        data = json.loads(path.read_text())
        loaded = load_registry(path)

        assert set(data) == {"units", "unitGroups", "metadata"}
        assert data["metadata"]["totalUnits"] == len(flow_registry.units)
        assert data["metadata"]["totalGroups"] == 1
        assert data["metadata"]["totalConversions"] == 1
        assert "generatedAt" in data["metadata"]
        assert data["unitGroups"][0]["conversions"][0]["fromUnitId"] == unit_factory("GPM").id
        assert "derived" not in data["unitGroups"][0]["conversions"][0]

        assert loaded.to_dict()["units"] == flow_registry.to_dict()["units"]
        assert loaded.groups["ug-flow-rate"].conversions == group.conversions

    def test_derived_flag_serialised_only_when_true(self):
        assert _edge("a", "b", 2.0, derived=True).to_dict()["derived"] is True
        assert ConversionEquation.from_dict(_edge("a", "b", 2.0, derived=True).to_dict()).derived

    def test_group_membership_sets_unit_group(self):
        data = {
            "units": [{"id": "u1", "symbol": "GPM"}],
            "unitGroups": [{"id": "ug-flow-rate", "name": "Flow Rate", "unitIds": ["u1", "u1"]}],
        }
        registry = UnitRegistry.from_dict(data)
        assert registry.get_unit("u1").group_id == "ug-flow-rate"
        assert registry.groups["ug-flow-rate"].unit_ids == ["u1"]

    def test_repeated_conversion_pair_keeps_first(self):
        group = UnitGroup.from_dict({
            "id": "ug-flow-rate",
            "name": "Flow Rate",
            "unitIds": ["u1", "u2"],
            "conversions": [
                _edge("u1", "u2", 2.0).to_dict(),
                _edge("u1", "u2", 3.0).to_dict(),
                _edge("u2", "u1", 0.5).to_dict(),
            ],
        })
        assert [(c.pair, c.multiplier) for c in group.conversions] == [
            (("u1", "u2"), 2.0),
            (("u2", "u1"), 0.5),
        ]
        assert group.is_complete()

    def test_missing_file_is_fatal(self, tmp_path):
        with pytest.raises(RegistryError):
            load_registry(tmp_path / "none.json")

    def test_missing_file_can_start_empty(self, tmp_path):
        assert len(load_registry(tmp_path / "none.json", create_missing=True)) == 0

    @pytest.mark.parametrize("content", [
        "{not json",
        "[]",
        '{"units": [{"symbol": "GPM"}]}',
        '{"units": [], "unitGroups": [{"id": "g", "name": "G", "conversions": '
        '[{"id": "c", "fromUnitId": "a", "toUnitId": "b", "multiplier": -2}]}]}',
        '{"units": [], "unitGroups": [{"id": "g", "name": "G", "conversions": '
        '[{"id": "c", "fromUnitId": "a", "toUnitId": "b", "multiplier": 1' + "0" * 400 + "}]}]}",
    ])
    def test_malformed_file_is_fatal(self, tmp_path, content):
        path = tmp_path / "registry.json"
        path.write_text(content)
        with pytest.raises(RegistryError):
            load_registry(path)

    def test_unwritable_path_is_fatal(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        with pytest.raises(RegistryError):
            save_registry(UnitRegistry(), blocker / "registry.json")


class TestExport:
    """Flattened conversion table."""

    @pytest.fixture
    def registry(self):
        registry = UnitRegistry(units=[Unit("a", "m"), Unit("b", "cm")])
        registry.assign_unit("a", "Length")
        group = registry.assign_unit("b", "Length")
        group.conversions = [_edge("a", "b", 100.0), _edge("b", "a", 0.01, derived=True)]
        return registry

    def test_frame(self, registry):
        df = conversions_frame(registry)
        assert list(df["from_symbol"]) == ["m", "cm"]
        assert list(df["to_symbol"]) == ["cm", "m"]
        assert list(df["derived"]) == [False, True]
        assert (df["group_id"] == "ug-length").all()

    def test_empty_frame_has_columns(self):
        df = conversions_frame(UnitRegistry())
        assert df.empty
        assert "multiplier" in df.columns

    def test_export_csv(self, tmp_path, registry):
        path = tmp_path / "out" / "conversions.csv"
        export_conversions(registry, path)
        df = pd.read_csv(path)
        assert df["multiplier"].tolist() == pytest.approx([100.0, 0.01])

    def test_export_parquet(self, tmp_path, registry):
        path = tmp_path / "conversions.parquet"
        export_conversions(registry, path)
        assert len(pd.read_parquet(path)) == 2

    def test_export_unknown_format(self, tmp_path, registry):
        with pytest.raises(ValueError):
            export_conversions(registry, tmp_path / "conversions.xlsx")
