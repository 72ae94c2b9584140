"""Tests for the checkpoint state and store."""

import json

import pytest

from unitgraph.utils.checkpoint import Checkpoint, CheckpointStore


class TestCheckpointState:
    """Phase A / phase B bookkeeping."""

    def test_fresh_state(self):
        cp = Checkpoint()
        assert cp.classification_complete is False
        assert cp.groups_classified == {}
        assert cp.current_conversion_group_id is None
        assert cp.units_completed == []

    def test_record_classification_once(self):
        """A unit is recorded under one group name only."""
        cp = Checkpoint()
        assert cp.record_classification("Flow Rate", "u1") is True
        assert cp.record_classification("Pressure", "u1") is False
        assert cp.record_classification("Flow Rate", "u1") is False
        assert cp.groups_classified == {"Flow Rate": ["u1"]}

    def test_units_completed_union(self):
        """Replaying a batch does not duplicate ids."""
        cp = Checkpoint()
        assert cp.mark_units_completed("ug-flow", ["u1", "u2"]) == 2
        assert cp.mark_units_completed("ug-flow", ["u2", "u3"]) == 1
        assert cp.units_completed == ["u1", "u2", "u3"]
        assert cp.current_conversion_group_id == "ug-flow"

    def test_units_completed_scoped_to_current_group(self):
        cp = Checkpoint()
        cp.mark_units_completed("ug-flow", ["u1"])
        assert cp.units_completed_for("ug-flow") == {"u1"}
        assert cp.units_completed_for("ug-pressure") == set()

        cp.mark_units_completed("ug-pressure", ["p1"])
        assert cp.units_completed == ["p1"]

    def test_mark_group_completed_clears_progress(self):
        cp = Checkpoint()
        cp.mark_units_completed("ug-flow", ["u1"])
        cp.mark_group_completed("ug-flow")
        cp.mark_group_completed("ug-flow")
        assert cp.conversions_groups_completed == ["ug-flow"]
        assert cp.current_conversion_group_id is None
        assert cp.units_completed == []
        assert cp.is_group_completed("ug-flow")

    def test_reopen_group(self):
        cp = Checkpoint(conversions_groups_completed=["ug-flow"])
        assert cp.reopen_group("ug-flow") is True
        assert cp.reopen_group("ug-flow") is False
        assert not cp.is_group_completed("ug-flow")


class TestCheckpointSerialisation:
    """camelCase round trip and validation."""

    def test_keys(self):
        data = Checkpoint().to_dict()
        assert set(data) == {
            "classificationComplete",
            "groupsClassified",
            "conversionsGroupsCompleted",
            "currentConversionGroupId",
            "unitsCompleted",
            "lastUpdated",
        }

    def test_from_dict_dedupes(self):
        cp = Checkpoint.from_dict({
            "classificationComplete": True,
            "groupsClassified": {"Flow Rate": ["u1", "u1", "u2"]},
            "conversionsGroupsCompleted": ["g1", "g1"],
            "currentConversionGroupId": "g2",
            "unitsCompleted": ["u3", "u3"],
            "lastUpdated": "2024-01-01T00:00:00+00:00",
        })
        assert cp.groups_classified == {"Flow Rate": ["u1", "u2"]}
        assert cp.conversions_groups_completed == ["g1"]
        assert cp.units_completed == ["u3"]

    @pytest.mark.parametrize("data", [
        [],
        {"groupsClassified": {}},
        {"classificationComplete": "yes"},
        {"classificationComplete": False, "groupsClassified": ["u1"]},
        {"classificationComplete": False, "unitsCompleted": "u1"},
        {"classificationComplete": False, "currentConversionGroupId": 7},
    ])
    def test_from_dict_rejects_bad_shapes(self, data):
        with pytest.raises(ValueError):
            Checkpoint.from_dict(data)


class TestCheckpointStore:
    """Persistence and corruption fallback."""

    def test_missing_file_gives_fresh_state(self, tmp_path):
        cp = CheckpointStore(tmp_path / "cp.json").load()
        assert cp == Checkpoint(last_updated=cp.last_updated)

    def test_save_and_load(self, tmp_path):
        store = CheckpointStore(tmp_path / "nested" / "cp.json")
        cp = Checkpoint()
        cp.record_classification("Flow Rate", "u1")
        cp.mark_units_completed("ug-flow-rate", ["u1"])
        store.save(cp)

        loaded = store.load()
        assert loaded.groups_classified == {"Flow Rate": ["u1"]}
        assert loaded.current_conversion_group_id == "ug-flow-rate"
        assert loaded.units_completed == ["u1"]

    def test_save_rewrites_whole_file(self, tmp_path):
        path = tmp_path / "cp.json"
        store = CheckpointStore(path)
        store.save(Checkpoint(units_completed=["u1"], current_conversion_group_id="g"))
        store.save(Checkpoint())
        assert json.loads(path.read_text())["unitsCompleted"] == []

    def test_corrupt_json_gives_fresh_state(self, tmp_path):
        path = tmp_path / "cp.json"
        path.write_text('{"classificationComplete": tr')
        cp = CheckpointStore(path).load()
        assert cp.classification_complete is False
        assert cp.groups_classified == {}

    def test_wrong_shape_gives_fresh_state(self, tmp_path):
        path = tmp_path / "cp.json"
        path.write_text(json.dumps({"classificationComplete": "nope"}))
        assert CheckpointStore(path).load().classification_complete is False

    def test_clear(self, tmp_path):
        store = CheckpointStore(tmp_path / "cp.json")
        store.save(Checkpoint())
        store.clear()
        store.clear()
        assert not store.path.exists()
