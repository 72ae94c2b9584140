"""Shared test fixtures and utilities for unitgraph tests."""

from typing import Any, Callable, Dict, List, Optional, Sequence

import pytest

from unitgraph.config import PipelineSettings
from unitgraph.oracle import Oracle, OracleResult
from unitgraph.units.unitextract import unit_id_for
from unitgraph.units.unitmodels import Unit
from unitgraph.units.unitregistry import UnitRegistry


# Size of each unit relative to its group's base unit (1 unit = scale base units)
FLOW_SCALES = {
    "L/s": 1.0,
    "L/min": 1 / 60,
    "GPM": 0.0630902,
    "m³/h": 1 / 3.6,
}

PRESSURE_SCALES = {
    "Pa": 1.0,
    "kPa": 1000.0,
    "psi": 6894.76,
}


class FakeOracle(Oracle):
    """Scripted in-memory Oracle.

    Classification answers come from *groups* (symbol -> group name);
    unknown symbols fail. Conversion answers are exact ratios of *scales*;
    symbols in *failing* fail. Duplicate verdicts come from *verdicts*, a
    callable receiving the candidate chunk.

    Every call is appended to ``calls`` as ``(kind, detail)``.
    """

    def __init__(
        self,
        groups: Optional[Dict[str, str]] = None,
        scales: Optional[Dict[str, float]] = None,
        failing: Sequence[str] = (),
        verdicts: Optional[Callable[[Sequence[Any]], List[Dict[str, Any]]]] = None,
    ):
        self.groups = dict(groups or {})
        self.scales = dict(scales or {})
        self.failing = set(failing)
        self.verdicts = verdicts
        self.calls: List[tuple] = []

    async def classify(self, symbol, known_group_names):
        self.calls.append(("classify", symbol))
        if symbol in self.groups:
            return OracleResult.success(self.groups[symbol])
        return OracleResult.failure("no answer")

    async def generate_conversions(self, from_unit, candidate_units, group_name):
        self.calls.append(("conversions", from_unit.symbol))
        if from_unit.symbol in self.failing or from_unit.symbol not in self.scales:
            return OracleResult.failure("timeout")
        records = []
        for target in candidate_units:
            if target.symbol not in self.scales:
                continue
            multiplier = self.scales[from_unit.symbol] / self.scales[target.symbol]
            records.append({
                "from": from_unit.symbol,
                "to": target.symbol,
                "multiplier": multiplier,
                "equation": f"x * {multiplier}",
            })
        return OracleResult.success(records)

    async def confirm_duplicates(self, candidates):
        self.calls.append(("duplicates", len(candidates)))
        if self.verdicts is None:
            return OracleResult.failure("no verdicts scripted")
        return OracleResult.success(self.verdicts(candidates))

    def symbols_called(self, kind: str) -> List[str]:
        return [detail for call_kind, detail in self.calls if call_kind == kind]


def make_unit(symbol: str, abbreviations: Optional[List[str]] = None, group_id: str = "") -> Unit:
    return Unit(
        id=unit_id_for(symbol),
        symbol=symbol,
        name=symbol,
        abbreviations=list(abbreviations or []),
        group_id=group_id,
    )


def make_registry(symbols: Sequence[str]) -> UnitRegistry:
    """Registry of ungrouped units."""
    return UnitRegistry(units=[make_unit(s) for s in symbols])


@pytest.fixture
def settings(tmp_path):
    """Settings writing every artifact under a temporary directory."""
    return PipelineSettings(
        output_dir=tmp_path,
        classification_batch_size=2,
        conversion_batch_size=2,
        duplicate_pairs_per_call=2,
        duplicate_concurrency=1,
        retry_base_delay=0.0,
    )


@pytest.fixture
def flow_oracle():
    """Oracle that knows flow-rate and pressure units."""
    groups = {s: "Flow Rate" for s in FLOW_SCALES}
    groups.update({s: "Pressure" for s in PRESSURE_SCALES})
    scales = dict(FLOW_SCALES)
    scales.update(PRESSURE_SCALES)
    return FakeOracle(groups=groups, scales=scales)


@pytest.fixture
def flow_registry():
    """Ungrouped flow-rate and pressure units."""
    return make_registry(list(FLOW_SCALES) + list(PRESSURE_SCALES))


@pytest.fixture
def sample_spec_entries():
    """Spec entries referencing flow and pressure units."""
    return [
        {"id": "s1", "primaryName": "Cooling Capacity", "domain": "hvac",
         "primaryUnit": "GPM", "alternateUnits": ["L/s", "gal/min"], "description": "Chiller capacity"},
        {"id": "s2", "primaryName": "Total Cooling Capacity", "domain": "hvac",
         "primaryUnit": "gpm", "alternateUnits": ["L/min"], "description": "Total capacity"},
        {"id": "s3", "primaryName": "Supply Pressure", "domain": "plumbing",
         "primaryUnit": "psi", "alternateUnits": ["kPa"], "description": "Supply side pressure"},
        {"id": "s4", "primaryName": "Voltage", "domain": "electrical",
         "primaryUnit": "V", "alternateUnits": [], "description": "Nominal voltage"},
    ]


@pytest.fixture
def oracle_factory():
    """The FakeOracle class, for tests that script their own answers."""
    return FakeOracle


@pytest.fixture
def unit_factory():
    """Build a Unit with a deterministic id from its symbol."""
    return make_unit
