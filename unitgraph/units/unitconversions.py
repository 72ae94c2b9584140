"""Direct conversion edges: request, validate, merge.

For a unit ``u`` and its group siblings ``S`` one Oracle request proposes up
to ``|S|`` edges ``{from, to, multiplier, equation}``. Each edge is checked
field by field before it can enter the registry:

- ``from`` equals ``u.symbol``
- ``to`` is the symbol of a sibling in ``S``
- ``multiplier`` is a positive, finite number
- ``equation`` is a non-empty string referencing the ``x`` placeholder

Invalid edges are dropped and counted. There is no per-edge retry; a unit
whose request failed simply yields zero edges.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from unitgraph.oracle import Oracle
from unitgraph.units.unitmodels import ConversionEquation, Unit, UnitGroup, is_valid_multiplier
from unitgraph.utils.normalize import generate_entity_id

logger = logging.getLogger(__name__)


def conversion_id_for(from_unit_id: str, to_unit_id: str) -> str:
    """Deterministic id of the edge for an ordered unit pair."""
    return generate_entity_id(from_unit_id, to_unit_id, namespace="conversion")


def validate_conversion(
    raw: Dict[str, Any],
    from_unit: Unit,
    candidates: Sequence[Unit],
) -> Optional[ConversionEquation]:
    """Validate one proposed edge.

    Args:
        raw: Edge dict as returned by the Oracle
        from_unit: Unit the request was issued for
        candidates: Sibling units the edge may point to

    Returns:
        ConversionEquation, or None if any field fails its check

    Examples:
        >>> gpm = Unit(id="u1", symbol="GPM")
        >>> lps = Unit(id="u2", symbol="L/s")
        >>> validate_conversion({"from": "GPM", "to": "L/s", "multiplier": 0.06309,
        ...                      "equation": "x * 0.06309"}, gpm, [lps]).to_unit_id
        'u2'
        >>> validate_conversion({"from": "GPM", "to": "L/s", "multiplier": -1,
        ...                      "equation": "x * -1"}, gpm, [lps]) is None
        True
    """
    if not isinstance(raw, dict):
        return None

    if raw.get("from") != from_unit.symbol:
        return None

    to_symbol = raw.get("to")
    to_unit = next(
        (u for u in candidates if u.symbol == to_symbol and u.id != from_unit.id),
        None,
    )
    if to_unit is None:
        return None

    multiplier = raw.get("multiplier")
    if not is_valid_multiplier(multiplier):
        return None

    equation = raw.get("equation")
    if not isinstance(equation, str) or "x" not in equation.lower():
        return None

    return ConversionEquation(
        id=conversion_id_for(from_unit.id, to_unit.id),
        from_unit_id=from_unit.id,
        to_unit_id=to_unit.id,
        multiplier=float(multiplier),
        equation=equation.strip(),
        description=f"{from_unit.symbol} to {to_unit.symbol}",
    )


@dataclass
class ConversionOutcome:
    """Validated edges proposed for one unit."""

    unit_id: str
    edges: List[ConversionEquation] = field(default_factory=list)
    rejected: int = 0
    error: Optional[str] = None


async def collect_for_unit(
    oracle: Oracle,
    from_unit: Unit,
    siblings: Sequence[Unit],
    group_name: str,
) -> ConversionOutcome:
    """Request and validate direct edges from *from_unit* to its siblings.

    An Oracle failure is recorded in ``error`` and yields no edges.
    """
    targets = [u for u in siblings if u.id != from_unit.id]
    outcome = ConversionOutcome(unit_id=from_unit.id)
    if not targets:
        return outcome

    result = await oracle.generate_conversions(from_unit, targets, group_name)
    if not result.ok:
        outcome.error = result.error
        logger.warning(f"No conversions for '{from_unit.symbol}' ({group_name}): {result.error}")
        return outcome

    for raw in result.value:
        edge = validate_conversion(raw, from_unit, targets)
        if edge is None:
            outcome.rejected += 1
            logger.debug(f"Rejected conversion for '{from_unit.symbol}': {raw!r}")
        else:
            outcome.edges.append(edge)
    return outcome


def merge_conversions(group: UnitGroup, edges: Sequence[ConversionEquation]) -> int:
    """Merge validated direct edges into *group*.

    An edge whose ordered pair already has a direct edge is skipped. A
    pair currently held by a derived edge is taken over by the direct one,
    in place.

    Returns:
        Number of edges added or promoted
    """
    index = {c.pair: i for i, c in enumerate(group.conversions)}
    merged = 0
    for edge in edges:
        if edge.from_unit_id == edge.to_unit_id:
            continue
        position = index.get(edge.pair)
        if position is None:
            index[edge.pair] = len(group.conversions)
            group.conversions.append(edge)
            merged += 1
        elif group.conversions[position].derived:
            group.conversions[position] = edge
            merged += 1
    return merged


__all__ = [
    "conversion_id_for",
    "validate_conversion",
    "ConversionOutcome",
    "collect_for_unit",
    "merge_conversions",
]
