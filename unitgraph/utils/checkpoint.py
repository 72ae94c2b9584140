"""Durable pipeline progress for exact resume after interruption.

The checkpoint tracks two phases:

1. **Classification** - ``classification_complete`` flips to True once every
   ungrouped unit has a proposed group name. Until then ``groups_classified``
   accumulates ``group name -> [unit ids]``.
2. **Conversion generation** - scoped per group. A group is *pending* until it
   becomes ``current_conversion_group_id`` (in progress, with the per-unit
   ``units_completed`` set), and *completed* once its id is in
   ``conversions_groups_completed``.

Every id collection has union semantics: recording an id that is already
present is a no-op, so a replayed batch never duplicates work.

The file is rewritten wholesale on every save. A missing, unreadable or
malformed checkpoint loads as a fresh initial state.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set, Union

from unitgraph.utils.dataloader import load_json, write_json_atomic

logger = logging.getLogger(__name__)


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _union_into(target: List[str], ids: Iterable[str]) -> int:
    """Append ids not already in *target*, preserving order. Returns count added."""
    seen = set(target)
    added = 0
    for item in ids:
        if item not in seen:
            target.append(item)
            seen.add(item)
            added += 1
    return added


@dataclass
class Checkpoint:
    """Resumable pipeline state (serialised with camelCase keys)."""

    classification_complete: bool = False
    groups_classified: Dict[str, List[str]] = field(default_factory=dict)
    conversions_groups_completed: List[str] = field(default_factory=list)
    current_conversion_group_id: Optional[str] = None
    units_completed: List[str] = field(default_factory=list)
    last_updated: str = field(default_factory=_utc_now)

    # ---- Phase A: classification ----

    def classified_unit_ids(self) -> Set[str]:
        """Every unit id that already has a recorded group name."""
        return {uid for ids in self.groups_classified.values() for uid in ids}

    def record_classification(self, group_name: str, unit_id: str) -> bool:
        """Record *unit_id* under *group_name*.

        A unit is recorded at most once: if it already appears under any
        group name, the call is a no-op.

        Returns:
            True if the unit was newly recorded
        """
        if unit_id in self.classified_unit_ids():
            return False
        self.groups_classified.setdefault(group_name, []).append(unit_id)
        return True

    # ---- Phase B: conversion generation ----

    def is_group_completed(self, group_id: str) -> bool:
        return group_id in self.conversions_groups_completed

    def units_completed_for(self, group_id: str) -> Set[str]:
        """Completed unit ids for *group_id* (empty unless it is the in-progress group)."""
        if self.current_conversion_group_id != group_id:
            return set()
        return set(self.units_completed)

    def mark_units_completed(self, group_id: str, unit_ids: Iterable[str]) -> int:
        """Union *unit_ids* into the completed set of the in-progress group.

        Switching to a different group resets the per-unit set, since
        ``units_completed`` is scoped to ``current_conversion_group_id``.
        """
        if self.current_conversion_group_id != group_id:
            self.current_conversion_group_id = group_id
            self.units_completed = []
        return _union_into(self.units_completed, unit_ids)

    def mark_group_completed(self, group_id: str) -> None:
        _union_into(self.conversions_groups_completed, [group_id])
        if self.current_conversion_group_id == group_id:
            self.current_conversion_group_id = None
            self.units_completed = []

    def reopen_group(self, group_id: str) -> bool:
        """Remove *group_id* from the completed set so it is revisited."""
        if group_id not in self.conversions_groups_completed:
            return False
        self.conversions_groups_completed.remove(group_id)
        return True

    # ---- Serialisation ----

    def to_dict(self) -> Dict[str, Any]:
        return {
            "classificationComplete": self.classification_complete,
            "groupsClassified": {name: list(ids) for name, ids in self.groups_classified.items()},
            "conversionsGroupsCompleted": list(self.conversions_groups_completed),
            "currentConversionGroupId": self.current_conversion_group_id,
            "unitsCompleted": list(self.units_completed),
            "lastUpdated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "Checkpoint":
        """Build a checkpoint from its serialised form.

        Raises:
            ValueError: If any field is missing or has the wrong shape
        """
        if not isinstance(data, dict):
            raise ValueError("checkpoint must be a JSON object")

        complete = data.get("classificationComplete")
        if not isinstance(complete, bool):
            raise ValueError("classificationComplete must be a boolean")

        groups = data.get("groupsClassified", {})
        if not isinstance(groups, dict) or not all(
            isinstance(name, str) and isinstance(ids, list) and all(isinstance(i, str) for i in ids)
            for name, ids in groups.items()
        ):
            raise ValueError("groupsClassified must map group names to lists of unit ids")

        completed = data.get("conversionsGroupsCompleted", [])
        units_completed = data.get("unitsCompleted", [])
        for key, value in (("conversionsGroupsCompleted", completed), ("unitsCompleted", units_completed)):
            if not isinstance(value, list) or not all(isinstance(i, str) for i in value):
                raise ValueError(f"{key} must be a list of ids")

        current = data.get("currentConversionGroupId")
        if current is not None and not isinstance(current, str):
            raise ValueError("currentConversionGroupId must be a string or null")

        checkpoint = cls(
            classification_complete=complete,
            current_conversion_group_id=current,
            last_updated=str(data.get("lastUpdated") or _utc_now()),
        )
        # Reload through the union helpers so a hand-edited file with repeats is cleaned up
        for name, ids in groups.items():
            for unit_id in ids:
                checkpoint.record_classification(name, unit_id)
        _union_into(checkpoint.conversions_groups_completed, completed)
        _union_into(checkpoint.units_completed, units_completed)
        return checkpoint


class CheckpointStore:
    """Load and save a :class:`Checkpoint` at a fixed path."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> Checkpoint:
        """Load the checkpoint, falling back to a fresh state.

        Returns:
            The persisted checkpoint, or a fresh one if the file is missing,
            unreadable or malformed
        """
        if not self.path.is_file():
            logger.info(f"No checkpoint at {self.path}, starting fresh")
            return Checkpoint()
        try:
            return Checkpoint.from_dict(load_json(self.path))
        except (json.JSONDecodeError, OSError, UnicodeDecodeError, ValueError) as e:
            logger.warning(f"Corrupt checkpoint {self.path}, starting fresh: {e}")
            return Checkpoint()

    def save(self, checkpoint: Checkpoint) -> None:
        """Stamp ``last_updated`` and rewrite the checkpoint file in full."""
        checkpoint.last_updated = _utc_now()
        write_json_atomic(self.path, checkpoint.to_dict())

    def clear(self) -> None:
        """Delete the checkpoint file if present."""
        self.path.unlink(missing_ok=True)


__all__ = [
    "Checkpoint",
    "CheckpointStore",
]
