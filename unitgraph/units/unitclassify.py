"""Unit classification into groups of mutually convertible units."""

import logging
from typing import List, Sequence

from unitgraph.oracle import Oracle
from unitgraph.units.unitmodels import Unit
from unitgraph.units.unitregistry import DEFAULT_FALLBACK_GROUP, UnitRegistry, group_id_for
from unitgraph.utils.checkpoint import Checkpoint

logger = logging.getLogger(__name__)


async def classify_unit(
    oracle: Oracle,
    unit: Unit,
    known_group_names: Sequence[str],
    fallback: str = DEFAULT_FALLBACK_GROUP,
) -> str:
    """Ask the Oracle for a unit's group name.

    Never fails: an Oracle failure yields *fallback*.

    Args:
        oracle: Oracle backend
        unit: Unit to classify
        known_group_names: Group names seen so far (offered for reuse)
        fallback: Group name used when the Oracle gives no usable answer

    Returns:
        Proposed group name
    """
    result = await oracle.classify(unit.symbol, list(known_group_names))
    if not result.ok:
        logger.warning(f"Classification failed for '{unit.symbol}', using '{fallback}': {result.error}")
        return fallback
    return result.value


def known_group_names(registry: UnitRegistry, checkpoint: Checkpoint) -> List[str]:
    """Group names already in use, deduplicated by slug, in first-seen order."""
    names: List[str] = []
    seen = set()
    for name in list(registry.group_names()) + list(checkpoint.groups_classified):
        gid = group_id_for(name)
        if gid not in seen:
            seen.add(gid)
            names.append(name)
    return names


def apply_classification(
    registry: UnitRegistry,
    checkpoint: Checkpoint,
    fallback: str = DEFAULT_FALLBACK_GROUP,
) -> int:
    """Merge the checkpoint's recorded classifications into the registry.

    Idempotent: units already in a group keep it.

    Returns:
        Number of units newly placed in a group
    """
    placed = 0
    for group_name, unit_ids in checkpoint.groups_classified.items():
        for unit_id in unit_ids:
            unit = registry.get_unit(unit_id)
            if unit is None:
                logger.warning(f"Checkpoint classifies unknown unit {unit_id}, skipping")
                continue
            had_group = bool(unit.group_id)
            registry.assign_unit(unit_id, group_name, fallback)
            if not had_group:
                placed += 1
    return placed


__all__ = [
    "classify_unit",
    "known_group_names",
    "apply_classification",
    "group_id_for",
]
