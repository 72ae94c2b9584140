"""Bidirectional consistency checks for a group's conversion edges.

For each edge ``(i, j, m)``:

- if ``(j, i, m')`` exists, ``|m * m' - 1|`` must stay below the tolerance,
  otherwise a ``mismatch`` warning is recorded
- if no reverse edge exists, a ``missing_reverse`` warning is recorded

Warnings are advisory. They are logged and reported, never raised.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from unitgraph.units.unitmodels import UnitGroup

logger = logging.getLogger(__name__)

MISMATCH = "mismatch"
MISSING_REVERSE = "missing_reverse"

DEFAULT_TOLERANCE = 0.01


@dataclass(frozen=True)
class ConsistencyWarning:
    kind: str
    from_unit_id: str
    to_unit_id: str
    product: Optional[float] = None


@dataclass
class ConsistencyReport:
    group_id: str
    checked: int = 0
    warnings: List[ConsistencyWarning] = field(default_factory=list)

    @property
    def mismatches(self) -> List[ConsistencyWarning]:
        return [w for w in self.warnings if w.kind == MISMATCH]

    @property
    def missing_reverse(self) -> List[ConsistencyWarning]:
        return [w for w in self.warnings if w.kind == MISSING_REVERSE]

    @property
    def is_consistent(self) -> bool:
        return not self.warnings


def validate_group_consistency(group: UnitGroup, tolerance: float = DEFAULT_TOLERANCE) -> ConsistencyReport:
    """Check every edge of *group* against its reverse.

    Args:
        group: Unit group with conversions
        tolerance: Maximum allowed ``|m * m' - 1|``

    Returns:
        ConsistencyReport listing every mismatch and missing reverse

    Examples:
        >>> report = validate_group_consistency(group)
        >>> [(w.kind, w.from_unit_id, w.to_unit_id) for w in report.warnings]
        [('missing_reverse', 'u1', 'u3')]
    """
    multipliers: Dict[Tuple[str, str], float] = {}
    for edge in group.conversions:
        multipliers.setdefault(edge.pair, edge.multiplier)

    report = ConsistencyReport(group_id=group.id)
    for (i, j), m in multipliers.items():
        report.checked += 1
        reverse = multipliers.get((j, i))
        if reverse is None:
            report.warnings.append(ConsistencyWarning(MISSING_REVERSE, i, j))
            continue
        product = m * reverse
        if abs(product - 1) >= tolerance:
            report.warnings.append(ConsistencyWarning(MISMATCH, i, j, product))

    if report.mismatches:
        logger.warning(f"{group.id}: {len(report.mismatches)} conversions disagree with their reverse")
    if report.missing_reverse:
        logger.info(f"{group.id}: {len(report.missing_reverse)} conversions have no reverse")
    return report


__all__ = [
    "ConsistencyWarning",
    "ConsistencyReport",
    "validate_group_consistency",
    "MISMATCH",
    "MISSING_REVERSE",
    "DEFAULT_TOLERANCE",
]
