"""Deterministic resolution of textual unit references to registry units.

Lookup order (first hit wins, units scanned in registry order):
  1. Exact symbol
  2. Case-insensitive symbol
  3. Exact abbreviation
  4. Case-insensitive abbreviation

No Oracle call and no fuzzy matching is involved in linking. Fuzzy scores
(:func:`suggest_units`) are only offered as a review aid for references
that failed to link.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from rapidfuzz import fuzz, process

from unitgraph.units.unitmodels import Unit
from unitgraph.units.unitregistry import UnitRegistry

logger = logging.getLogger(__name__)


def find_unit_by_symbol(reference: Optional[str], units: Sequence[Unit]) -> Optional[Unit]:
    """Resolve a textual unit reference to a canonical unit.

    Args:
        reference: Unit text as written in a record (e.g. "gpm")
        units: Canonical unit list

    Returns:
        Matching Unit or None

    Examples:
        >>> gpm = Unit(id="u1", symbol="GPM", abbreviations=["gal/min"])
        >>> find_unit_by_symbol("gpm", [gpm]).symbol
        'GPM'
        >>> find_unit_by_symbol("L/min", [gpm]) is None
        True
    """
    if not reference:
        return None
    ref_lower = reference.lower()

    for unit in units:
        if unit.symbol == reference:
            return unit
    for unit in units:
        if unit.symbol.lower() == ref_lower:
            return unit
    for unit in units:
        if reference in unit.abbreviations:
            return unit
    for unit in units:
        if any(abbr.lower() == ref_lower for abbr in unit.abbreviations):
            return unit
    return None


@dataclass
class LinkReport:
    """Outcome of linking a batch of spec entries."""

    total_entries: int = 0
    linked: int = 0
    unmatched: int = 0
    unmatched_refs: List[str] = field(default_factory=list)

    def add_unmatched(self, reference: str) -> None:
        self.unmatched += 1
        if reference not in self.unmatched_refs:
            self.unmatched_refs.append(reference)


def link_spec_entries(entries: List[Dict[str, Any]], registry: UnitRegistry) -> LinkReport:
    """Attach registry unit ids to spec entries in place.

    Sets ``primaryUnitId`` / ``primaryUnitGroupId`` for a resolvable
    ``primaryUnit`` and ``alternateUnitIds`` for the resolvable subset of
    ``alternateUnits``. Every reference counts once as linked or unmatched.

    Args:
        entries: Spec entry dicts (mutated)
        registry: Unit registry

    Returns:
        LinkReport with counts and the distinct unmatched references
    """
    units = registry.unit_list()
    report = LinkReport(total_entries=len(entries))

    for entry in entries:
        primary = entry.get("primaryUnit")
        if primary:
            unit = find_unit_by_symbol(primary, units)
            if unit:
                entry["primaryUnitId"] = unit.id
                if unit.group_id:
                    entry["primaryUnitGroupId"] = unit.group_id
                report.linked += 1
            else:
                report.add_unmatched(primary)

        alternates = entry.get("alternateUnits") or []
        if alternates:
            alternate_ids = []
            for reference in alternates:
                unit = find_unit_by_symbol(reference, units)
                if unit:
                    if unit.id not in alternate_ids:
                        alternate_ids.append(unit.id)
                    report.linked += 1
                elif reference:
                    report.add_unmatched(reference)
            entry["alternateUnitIds"] = alternate_ids

    logger.info(
        f"Linked {report.linked} unit references across {report.total_entries} entries "
        f"({report.unmatched} unmatched, {len(report.unmatched_refs)} distinct)"
    )
    return report


def linked_specs_document(entries: List[Dict[str, Any]], report: LinkReport, updated_at: str) -> Dict[str, Any]:
    """Persisted form of linked spec entries."""
    return {
        "specTypes": entries,
        "metadata": {
            "totalSpecTypes": len(entries),
            "linkedUnits": report.linked,
            "unmatchedUnits": report.unmatched,
            "updatedAt": updated_at,
        },
    }


def suggest_units(
    reference: str,
    units: Sequence[Unit],
    k: int = 3,
    score_cutoff: float = 60.0,
) -> List[Tuple[Unit, float]]:
    """Top-k fuzzy candidates for an unmatched reference.

    Scores each unit by its best RapidFuzz ``WRatio`` over symbol and
    abbreviations. Intended for reports only; never used to link.

    Args:
        reference: Unmatched unit text
        units: Canonical unit list
        k: Maximum number of suggestions
        score_cutoff: Minimum score (0-100)

    Returns:
        List of (unit, score) sorted by score descending

    Examples:
        >>> suggest_units("gal / min", units, k=1)
        [(Unit(symbol='GPM', ...), 90.0)]
    """
    if not reference:
        return []

    corpus: List[str] = []
    owners: List[int] = []
    for idx, unit in enumerate(units):
        for text in [unit.symbol] + list(unit.abbreviations):
            corpus.append(text.lower())
            owners.append(idx)

    if not corpus:
        return []

    matches = process.extract(
        reference.lower(),
        corpus,
        scorer=fuzz.WRatio,
        limit=k * 3,
        score_cutoff=score_cutoff,
    )

    best: Dict[int, float] = {}
    for _, score, corpus_idx in matches:
        owner = owners[corpus_idx]
        best[owner] = max(best.get(owner, 0.0), float(score))

    ranked = sorted(best.items(), key=lambda x: x[1], reverse=True)[:k]
    return [(units[idx], score) for idx, score in ranked]


__all__ = [
    "find_unit_by_symbol",
    "LinkReport",
    "link_spec_entries",
    "linked_specs_document",
    "suggest_units",
]
