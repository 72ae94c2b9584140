"""Unit discovery from spec entries.

Collects every ``primaryUnit`` / ``alternateUnits`` reference, counts how
often each is used, and merges unseen symbols into the registry as
ungrouped units. Existing units are never removed or duplicated.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List

from unitgraph.units.unitlink import find_unit_by_symbol
from unitgraph.units.unitmodels import Unit
from unitgraph.units.unitregistry import UnitRegistry
from unitgraph.utils.normalize import generate_entity_id

logger = logging.getLogger(__name__)


def unit_id_for(symbol: str) -> str:
    """Deterministic unit id of a canonical symbol."""
    return generate_entity_id(symbol, namespace="unit")


@dataclass
class UnitUsage:
    symbol: str
    count: int = 0
    spec_names: List[str] = field(default_factory=list)


@dataclass
class ExtractionReport:
    """Result of merging discovered units into the registry."""

    usage: Dict[str, UnitUsage] = field(default_factory=dict)
    added: List[str] = field(default_factory=list)
    variants: List[str] = field(default_factory=list)

    @property
    def total_unique(self) -> int:
        return len(self.usage)

    def most_common(self, n: int = 10) -> List[UnitUsage]:
        return sorted(self.usage.values(), key=lambda u: u.count, reverse=True)[:n]


def collect_unit_usage(entries: Iterable[Dict[str, Any]]) -> Dict[str, UnitUsage]:
    """Count unit references across spec entries, keyed by the text as written."""
    usage: "OrderedDict[str, UnitUsage]" = OrderedDict()
    for entry in entries:
        refs = []
        if entry.get("primaryUnit"):
            refs.append(str(entry["primaryUnit"]).strip())
        for alt in entry.get("alternateUnits") or []:
            if alt:
                refs.append(str(alt).strip())

        name = str(entry.get("primaryName") or "")
        for ref in refs:
            if not ref:
                continue
            item = usage.setdefault(ref, UnitUsage(symbol=ref))
            item.count += 1
            if name and name not in item.spec_names:
                item.spec_names.append(name)
    return usage


def extract_units(entries: Iterable[Dict[str, Any]], registry: UnitRegistry) -> ExtractionReport:
    """Merge unit references found in *entries* into *registry*.

    A reference that already resolves to a unit is skipped, except that a
    case variant of an existing symbol (e.g. "gpm" for "GPM") is recorded
    as an abbreviation. Unresolved references become new ungrouped units,
    most used first.

    Args:
        entries: Spec entry dicts
        registry: Registry to extend (mutated)

    Returns:
        ExtractionReport
    """
    report = ExtractionReport(usage=collect_unit_usage(entries))
    ordered = sorted(report.usage.values(), key=lambda u: u.count, reverse=True)

    for item in ordered:
        existing = find_unit_by_symbol(item.symbol, registry.unit_list())
        if existing is not None:
            if existing.add_abbreviation(item.symbol):
                report.variants.append(item.symbol)
            continue

        unit = Unit(id=unit_id_for(item.symbol), symbol=item.symbol, name=item.symbol)
        if registry.add_unit(unit):
            report.added.append(unit.id)

    logger.info(
        f"Discovered {report.total_unique} distinct unit references: "
        f"{len(report.added)} new units, {len(report.variants)} new variants"
    )
    return report


__all__ = [
    "unit_id_for",
    "UnitUsage",
    "ExtractionReport",
    "collect_unit_usage",
    "extract_units",
]
