"""Canonical store of units and unit groups.

The registry is the primary persisted artifact of the conversion pipeline:

    {
      "units": [Unit, ...],
      "unitGroups": [UnitGroup with nested conversions, ...],
      "metadata": {"totalUnits", "totalGroups", "totalConversions", "generatedAt"}
    }

All merge operations key on stable identity (unit id, group slug, ordered
unit-id pair) so replaying the same input never duplicates records.
An unreadable or unwritable registry file is the one fatal condition of the
pipeline and surfaces as :class:`RegistryError`.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import pandas as pd

from unitgraph.units.unitmodels import ConversionEquation, Unit, UnitGroup
from unitgraph.utils.dataloader import load_json, write_json_atomic
from unitgraph.utils.normalize import slugify_name

logger = logging.getLogger(__name__)

DEFAULT_FALLBACK_GROUP = "Uncategorized"


class RegistryError(RuntimeError):
    """The registry file could not be read, parsed or written."""


def group_id_for(name: str, fallback: str = DEFAULT_FALLBACK_GROUP) -> str:
    """Stable group identifier derived from a group name.

    Names that slugify to nothing (e.g. "???") map onto the fallback group.

    Examples:
        >>> group_id_for("Flow Rate")
        'ug-flow-rate'
        >>> group_id_for("flow  rate!")
        'ug-flow-rate'
        >>> group_id_for("???")
        'ug-uncategorized'
    """
    slug = slugify_name(name) or slugify_name(fallback)
    return f"ug-{slug}"


class UnitRegistry:
    """In-memory registry of units and unit groups.

    Units and groups keep their insertion order, which is also their order
    in the persisted file.
    """

    def __init__(
        self,
        units: Optional[Iterable[Unit]] = None,
        groups: Optional[Iterable[UnitGroup]] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        self.units: Dict[str, Unit] = {}
        self.groups: Dict[str, UnitGroup] = {}
        self.metadata: Dict[str, Any] = dict(metadata or {})
        for unit in units or []:
            self.add_unit(unit)
        for group in groups or []:
            self.groups[group.id] = group

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_unit(self, unit_id: str) -> Optional[Unit]:
        return self.units.get(unit_id)

    def get_group(self, group_id: str) -> Optional[UnitGroup]:
        return self.groups.get(group_id)

    def find_group(self, name: str) -> Optional[UnitGroup]:
        """Find a group by name, comparing slugs."""
        return self.groups.get(group_id_for(name))

    def unit_list(self) -> List[Unit]:
        return list(self.units.values())

    def group_list(self) -> List[UnitGroup]:
        return list(self.groups.values())

    def group_names(self) -> List[str]:
        return [g.name for g in self.groups.values()]

    def group_units(self, group: UnitGroup) -> List[Unit]:
        """Units of *group* in membership order (dangling ids are skipped)."""
        return [self.units[uid] for uid in group.unit_ids if uid in self.units]

    def ungrouped_units(self) -> List[Unit]:
        return [u for u in self.units.values() if not u.group_id]

    def total_conversions(self) -> int:
        return sum(len(g.conversions) for g in self.groups.values())

    # ------------------------------------------------------------------
    # Merge operations
    # ------------------------------------------------------------------

    def add_unit(self, unit: Unit) -> bool:
        """Add a unit unless its id is already registered."""
        if unit.id in self.units:
            return False
        self.units[unit.id] = unit
        return True

    def assign_unit(
        self,
        unit_id: str,
        group_name: str,
        fallback: str = DEFAULT_FALLBACK_GROUP,
    ) -> UnitGroup:
        """Place a unit in the group named *group_name*.

        The name is normalised to a slug; an existing group with that slug is
        reused (the unit is unioned into its ``unit_ids``), otherwise a new
        group is created. A unit that already belongs to a group stays there.

        Args:
            unit_id: Registered unit id
            group_name: Proposed group name
            fallback: Group used when *group_name* is blank or slugifies to nothing

        Returns:
            The group the unit belongs to

        Raises:
            KeyError: If *unit_id* is not registered
        """
        unit = self.units[unit_id]
        if unit.group_id and unit.group_id in self.groups:
            existing = self.groups[unit.group_id]
            existing.add_unit_id(unit_id)
            return existing

        name = group_name.strip() if group_name and slugify_name(group_name) else fallback
        group_id = group_id_for(name, fallback)
        group = self.groups.get(group_id)
        if group is None:
            group = UnitGroup(id=group_id, name=name)
            self.groups[group_id] = group
            logger.debug(f"Created unit group {group_id} ({name})")

        group.add_unit_id(unit_id)
        unit.group_id = group_id
        return group

    def add_conversion(self, group: UnitGroup, edge: ConversionEquation) -> bool:
        """Append *edge* to *group* unless its ordered pair already has one."""
        if edge.from_unit_id == edge.to_unit_id or group.has_conversion(*edge.pair):
            return False
        group.conversions.append(edge)
        return True

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------

    def refresh_metadata(self) -> Dict[str, Any]:
        self.metadata.update({
            "totalUnits": len(self.units),
            "totalGroups": len(self.groups),
            "totalConversions": self.total_conversions(),
            "generatedAt": datetime.now(timezone.utc).isoformat(),
        })
        return self.metadata

    def to_dict(self) -> Dict[str, Any]:
        return {
            "units": [u.to_dict() for u in self.units.values()],
            "unitGroups": [g.to_dict() for g in self.groups.values()],
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UnitRegistry":
        """Build a registry from its persisted form.

        Raises:
            ValueError: If the document or one of its records is malformed
        """
        if not isinstance(data, dict):
            raise ValueError("registry document must be a JSON object")
        units = data.get("units") or []
        groups = data.get("unitGroups") or []
        if not isinstance(units, list) or not isinstance(groups, list):
            raise ValueError("'units' and 'unitGroups' must be lists")

        registry = cls(
            units=[Unit.from_dict(u) for u in units],
            groups=[UnitGroup.from_dict(g) for g in groups],
            metadata=data.get("metadata") if isinstance(data.get("metadata"), dict) else {},
        )

        # Group membership is authoritative for the unit back-reference
        for group in registry.groups.values():
            for unit_id in group.unit_ids:
                unit = registry.units.get(unit_id)
                if unit is None:
                    logger.warning(f"Group {group.id} references unknown unit {unit_id}")
                elif unit.group_id != group.id:
                    unit.group_id = group.id
        return registry

    def __len__(self) -> int:
        return len(self.units)

    def __repr__(self) -> str:
        return (
            f"UnitRegistry(units={len(self.units)}, groups={len(self.groups)}, "
            f"conversions={self.total_conversions()})"
        )


def load_registry(path: Union[str, Path], create_missing: bool = False) -> UnitRegistry:
    """Load the registry file.

    Args:
        path: Registry JSON file
        create_missing: Return an empty registry instead of failing when the
            file does not exist

    Raises:
        RegistryError: If the file is missing (and *create_missing* is False),
            unreadable or malformed
    """
    path = Path(path)
    if not path.exists():
        if create_missing:
            logger.info(f"No registry at {path}, starting empty")
            return UnitRegistry()
        raise RegistryError(f"Registry file not found: {path}")

    try:
        registry = UnitRegistry.from_dict(load_json(path))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError, ValueError) as e:
        raise RegistryError(f"Cannot read registry {path}: {e}") from e

    logger.info(f"Loaded registry from {path}: {registry!r}")
    return registry


def save_registry(registry: UnitRegistry, path: Union[str, Path]) -> None:
    """Rewrite the registry file wholesale with refreshed metadata.

    Raises:
        RegistryError: If the file cannot be written
    """
    registry.refresh_metadata()
    try:
        write_json_atomic(path, registry.to_dict())
    except (OSError, TypeError) as e:
        raise RegistryError(f"Cannot write registry {path}: {e}") from e
    logger.debug(f"Saved registry to {path}")


# ============================================================================
# Tabular export
# ============================================================================

CONVERSION_COLUMNS = [
    "group_id",
    "group_name",
    "from_unit_id",
    "from_symbol",
    "to_unit_id",
    "to_symbol",
    "multiplier",
    "equation",
    "derived",
]


def conversions_frame(registry: UnitRegistry) -> pd.DataFrame:
    """Flatten every group's conversions into one DataFrame.

    Examples:
        >>> df = conversions_frame(registry)
        >>> df[df["from_symbol"] == "GPM"][["to_symbol", "multiplier"]]
    """
    rows = []
    for group in registry.groups.values():
        for edge in group.conversions:
            from_unit = registry.get_unit(edge.from_unit_id)
            to_unit = registry.get_unit(edge.to_unit_id)
            rows.append({
                "group_id": group.id,
                "group_name": group.name,
                "from_unit_id": edge.from_unit_id,
                "from_symbol": from_unit.symbol if from_unit else "",
                "to_unit_id": edge.to_unit_id,
                "to_symbol": to_unit.symbol if to_unit else "",
                "multiplier": edge.multiplier,
                "equation": edge.equation,
                "derived": edge.derived,
            })
    return pd.DataFrame(rows, columns=CONVERSION_COLUMNS)


def export_conversions(registry: UnitRegistry, output_path: Union[str, Path]) -> pd.DataFrame:
    """Write the conversion table to Parquet or CSV (chosen by extension).

    Raises:
        ValueError: If the extension is neither .parquet nor .csv
    """
    output_path = Path(output_path)
    df = conversions_frame(registry)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    if output_path.suffix == ".parquet":
        df.to_parquet(output_path, engine="pyarrow", compression="snappy", index=False)
    elif output_path.suffix == ".csv":
        df.to_csv(output_path, index=False)
    else:
        raise ValueError(f"Unsupported export format: {output_path.suffix}. Use .parquet or .csv")
    logger.info(f"Exported {len(df):,} conversions to {output_path}")
    return df


__all__ = [
    "RegistryError",
    "UnitRegistry",
    "group_id_for",
    "load_registry",
    "save_registry",
    "conversions_frame",
    "export_conversions",
    "DEFAULT_FALLBACK_GROUP",
]
