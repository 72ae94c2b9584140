"""Transitive closure of a group's conversion graph.

Direct edges form a directed graph with positive multiplicative weights.
The closure assigns a multiplier to every ordered pair reachable by
composition, using the all-pairs relaxation shape with two changes:
composition multiplies instead of adding, and the first value assigned to
a pair is kept (never replaced by a later path).

Iteration order is fixed: intermediate unit ``k`` in the outer loop, then
``i``, then ``j``, each over unit ids sorted ascending. With first-write-
wins, that order decides which composition path a derived multiplier comes
from when several exist, so it must not depend on insertion order.

Derived edges are marked ``derived=True`` and rebuilt from the direct
edges on every run. A derived edge whose multiplier did not change keeps
its id and text, so repeated runs leave the group unchanged.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from unitgraph.units.unitconsistency import (
    DEFAULT_TOLERANCE,
    ConsistencyReport,
    validate_group_consistency,
)
from unitgraph.units.unitconversions import conversion_id_for
from unitgraph.units.unitmodels import ConversionEquation, UnitGroup, format_equation
from unitgraph.units.unitregistry import UnitRegistry

logger = logging.getLogger(__name__)

Pair = Tuple[str, str]


def compute_closure(unit_ids: Sequence[str], edges: Sequence[ConversionEquation]) -> Dict[Pair, float]:
    """All-pairs multipliers reachable from *edges*.

    Args:
        unit_ids: Units of the group
        edges: Direct edges (edges touching units outside *unit_ids* are ignored)

    Returns:
        ``{(i, j): multiplier}`` for every reachable ordered pair with i != j

    Examples:
        >>> edges = [ConversionEquation("e1", "A", "B", 2.0, "x * 2"),
        ...          ConversionEquation("e2", "B", "C", 3.0, "x * 3")]
        >>> compute_closure(["A", "B", "C"], edges)[("A", "C")]
        6.0
    """
    nodes = sorted(set(unit_ids))
    members = set(nodes)

    m: Dict[Pair, float] = {(i, i): 1.0 for i in nodes}
    for edge in edges:
        if edge.from_unit_id in members and edge.to_unit_id in members:
            m.setdefault(edge.pair, edge.multiplier)

    for k in nodes:
        for i in nodes:
            ik = m.get((i, k))
            if ik is None:
                continue
            for j in nodes:
                if (i, j) in m:
                    continue
                kj = m.get((k, j))
                if kj is not None:
                    m[(i, j)] = ik * kj

    return {pair: value for pair, value in m.items() if pair[0] != pair[1]}


@dataclass
class ClosureReport:
    """Edge counts for one group before and after closure."""

    group_id: str
    group_name: str
    unit_count: int
    original: int
    direct: int
    derived: int
    total: int
    changed: bool
    consistency: Optional[ConsistencyReport] = None

    @property
    def expected(self) -> int:
        return self.unit_count * (self.unit_count - 1)

    @property
    def missing(self) -> int:
        return max(self.expected - self.total, 0)


def _describe(registry: UnitRegistry, from_id: str, to_id: str) -> str:
    from_unit = registry.get_unit(from_id)
    to_unit = registry.get_unit(to_id)
    return f"{from_unit.symbol if from_unit else from_id} to {to_unit.symbol if to_unit else to_id}"


def complete_group_conversions(registry: UnitRegistry, group: UnitGroup) -> ClosureReport:
    """Rebuild the derived edges of *group* from its direct edges.

    A group holding N x (N - 1) direct edges is left untouched. Otherwise
    every derived edge is recomputed from the current direct edges.

    Args:
        registry: Registry used to resolve unit symbols for descriptions
        group: Group to complete (mutated)

    Returns:
        ClosureReport
    """
    original = len(group.conversions)
    n = len(group.unit_ids)

    direct = [c for c in group.conversions if not c.derived]
    report = ClosureReport(
        group_id=group.id,
        group_name=group.name,
        unit_count=n,
        original=original,
        direct=len(direct),
        derived=original - len(direct),
        total=original,
        changed=False,
    )
    if len(direct) >= n * (n - 1):
        return report

    previous: Dict[Pair, ConversionEquation] = {c.pair: c for c in group.conversions if c.derived}
    direct_pairs = {c.pair for c in direct}
    closure = compute_closure(group.unit_ids, direct)

    derived: List[ConversionEquation] = []
    for pair in sorted(closure):
        if pair in direct_pairs:
            continue
        multiplier = closure[pair]
        old = previous.get(pair)
        if old is not None and old.multiplier == multiplier:
            derived.append(old)
            continue
        derived.append(ConversionEquation(
            id=conversion_id_for(*pair),
            from_unit_id=pair[0],
            to_unit_id=pair[1],
            multiplier=multiplier,
            equation=format_equation(multiplier),
            description=_describe(registry, *pair),
            derived=True,
        ))

    new_conversions = direct + derived
    report.changed = new_conversions != group.conversions
    group.conversions = new_conversions
    report.derived = len(derived)
    report.total = len(new_conversions)

    if report.changed:
        logger.debug(f"{group.id}: {report.direct} direct + {report.derived} derived = {report.total} conversions")
    return report


def complete_all_groups(
    registry: UnitRegistry,
    tolerance: float = DEFAULT_TOLERANCE,
) -> List[ClosureReport]:
    """Run closure and the consistency check on every group.

    Returns:
        One ClosureReport per group, each carrying its ConsistencyReport
    """
    reports = []
    for group in registry.group_list():
        report = complete_group_conversions(registry, group)
        report.consistency = validate_group_consistency(group, tolerance)
        reports.append(report)

    added = sum(r.total - r.original for r in reports)
    logger.info(f"Closure over {len(reports)} groups: {added:+d} conversions")
    return reports


__all__ = [
    "compute_closure",
    "ClosureReport",
    "complete_group_conversions",
    "complete_all_groups",
]
