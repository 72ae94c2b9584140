"""Tests for the command-line entry points in scripts/."""

import importlib.util
import json
from pathlib import Path
from unittest.mock import patch

import pytest

from unitgraph.units.unitmodels import ConversionEquation
from unitgraph.units.unitregistry import UnitRegistry, load_registry, save_registry

SCRIPTS_DIR = Path(__file__).parent.parent / "scripts"


def load_script(relative_path):
    path = SCRIPTS_DIR / relative_path
    spec = importlib.util.spec_from_file_location(f"script_{path.stem}", path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def output_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("UNITGRAPH_OUTPUT_DIR", str(tmp_path))
    return tmp_path


def test_generate_conversions_end_to_end(output_dir, flow_registry, flow_oracle):
    save_registry(flow_registry, output_dir / "global-units-master.json")
    script = load_script("units/generate_conversions.py")

    with patch.object(script, "AnthropicOracle", return_value=flow_oracle):
        assert script.main(["--max-groups", "1"]) == 0
        assert script.main([]) == 0

    registry = load_registry(output_dir / "global-units-master.json")
    assert registry.total_conversions() == 18
    checkpoint = json.loads((output_dir / "conversions-checkpoint.json").read_text())
    assert checkpoint["classificationComplete"] is True


def test_generate_conversions_missing_registry(output_dir, flow_oracle, capsys):
    script = load_script("units/generate_conversions.py")

    with patch.object(script, "AnthropicOracle", return_value=flow_oracle):
        assert script.main([]) == 1

    assert "registry" in capsys.readouterr().err.lower()


def test_complete_conversions_with_export(output_dir, unit_factory):
    units = [unit_factory(s) for s in ("m", "cm", "mm")]
    registry = UnitRegistry(units=units)
    for unit in units:
        group = registry.assign_unit(unit.id, "Length")
    m, cm, mm = (u.id for u in units)
    group.conversions = [
        ConversionEquation("e1", m, cm, 100.0, "x * 100"),
        ConversionEquation("e2", cm, mm, 10.0, "x * 10"),
    ]
    registry_path = output_dir / "global-units-master.json"
    save_registry(registry, registry_path)
    script = load_script("units/complete_conversions.py")

    assert script.main(["--export", str(output_dir / "table.csv")]) == 0

    saved = load_registry(registry_path)
    pairs = {c.pair: c.multiplier for c in saved.groups["ug-length"].conversions}
    assert pairs[(m, mm)] == pytest.approx(1000.0)
    assert (output_dir / "table.csv").exists()


def test_link_units_writes_linked_file(output_dir, tmp_path, sample_spec_entries, unit_factory):
    save_registry(UnitRegistry(units=[unit_factory("GPM"), unit_factory("psi")]), output_dir / "global-units-master.json")
    specs = tmp_path / "specs.json"
    specs.write_text(json.dumps({"specTypes": sample_spec_entries}))
    script = load_script("units/link_units.py")

    assert script.main(["--specs", str(specs)]) == 0

    linked = json.loads((output_dir / "spec-types-with-unit-ids.json").read_text())
    assert linked["metadata"]["totalSpecTypes"] == 4
    assert linked["specTypes"][0]["primaryUnitId"] == unit_factory("GPM").id


def test_find_duplicates_writes_report(output_dir, tmp_path, sample_spec_entries, oracle_factory):
    specs = tmp_path / "specs.json"
    specs.write_text(json.dumps(sample_spec_entries))
    oracle = oracle_factory(verdicts=lambda chunk: [
        {"pairIndex": 0, "areDuplicates": True, "similarity": 92, "reason": "same metric"}
    ])
    script = load_script("specs/find_duplicates.py")

    with patch.object(script, "AnthropicOracle", return_value=oracle):
        assert script.main(["--specs", str(specs)]) == 0

    report = json.loads((output_dir / "duplicate-report.json").read_text())
    assert report["status"] == "complete"
    assert len(report["duplicateGroups"]) == 1
