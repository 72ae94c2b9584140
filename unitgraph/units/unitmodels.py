"""Core data model of the unit conversion graph.

Serialised field names follow the registry file format
(``unitGroupId``, ``fromUnitId``, ``baseUnitId``...).
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Tuple


def format_equation(multiplier: float) -> str:
    """Display form of a conversion, rounded to 6 significant digits.

    Examples:
        >>> format_equation(2.0)
        'x * 2'
        >>> format_equation(1 / 3)
        'x * 0.333333'
    """
    return f"x * {multiplier:.6g}"


def is_valid_multiplier(value: Any) -> bool:
    """True for a positive, finite real number (booleans excluded)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        value = float(value)
    except OverflowError:
        return False
    return math.isfinite(value) and value > 0


def _require(data: Dict[str, Any], key: str, kind: str) -> Any:
    if key not in data:
        raise ValueError(f"{kind} record missing '{key}': {data!r:.120}")
    return data[key]


@dataclass
class Unit:
    """A canonical measurement unit.

    ``group_id`` is empty until the unit is classified, then set exactly once.
    """

    id: str
    symbol: str
    name: str = ""
    abbreviations: List[str] = field(default_factory=list)
    group_id: str = ""

    def add_abbreviation(self, text: str) -> bool:
        """Add an alternate textual form (no-op for duplicates or the symbol itself)."""
        if not text or text == self.symbol or text in self.abbreviations:
            return False
        self.abbreviations.append(text)
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "symbol": self.symbol,
            "name": self.name,
            "abbreviations": list(self.abbreviations),
            "unitGroupId": self.group_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Unit":
        return cls(
            id=str(_require(data, "id", "unit")),
            symbol=str(_require(data, "symbol", "unit")),
            name=str(data.get("name") or ""),
            abbreviations=[str(a) for a in data.get("abbreviations") or []],
            group_id=str(data.get("unitGroupId") or ""),
        )


@dataclass
class ConversionEquation:
    """Directed edge ``to_value = from_value * multiplier``.

    ``derived`` marks edges produced by transitive closure rather than
    supplied directly; derived edges are recomputed, never accumulated.
    """

    id: str
    from_unit_id: str
    to_unit_id: str
    multiplier: float
    equation: str
    description: str = ""
    derived: bool = False

    @property
    def pair(self) -> Tuple[str, str]:
        return (self.from_unit_id, self.to_unit_id)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "fromUnitId": self.from_unit_id,
            "toUnitId": self.to_unit_id,
            "multiplier": self.multiplier,
            "equation": self.equation,
            "description": self.description,
        }
        if self.derived:
            data["derived"] = True
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConversionEquation":
        multiplier = _require(data, "multiplier", "conversion")
        if not is_valid_multiplier(multiplier):
            raise ValueError(f"conversion {data.get('id')!r} has invalid multiplier {multiplier!r}")
        return cls(
            id=str(_require(data, "id", "conversion")),
            from_unit_id=str(_require(data, "fromUnitId", "conversion")),
            to_unit_id=str(_require(data, "toUnitId", "conversion")),
            multiplier=float(multiplier),
            equation=str(data.get("equation") or format_equation(float(multiplier))),
            description=str(data.get("description") or ""),
            derived=bool(data.get("derived", False)),
        )


@dataclass
class UnitGroup:
    """A set of mutually convertible units and the edges between them."""

    id: str
    name: str
    description: str = ""
    base_unit_id: Optional[str] = None
    unit_ids: List[str] = field(default_factory=list)
    conversions: List[ConversionEquation] = field(default_factory=list)

    def add_unit_id(self, unit_id: str) -> bool:
        if unit_id in self.unit_ids:
            return False
        self.unit_ids.append(unit_id)
        return True

    def conversion_pairs(self) -> Set[Tuple[str, str]]:
        return {c.pair for c in self.conversions}

    def has_conversion(self, from_unit_id: str, to_unit_id: str) -> bool:
        return (from_unit_id, to_unit_id) in self.conversion_pairs()

    def expected_conversions(self) -> int:
        """N x (N - 1): one edge per ordered pair of distinct units."""
        n = len(self.unit_ids)
        return n * (n - 1)

    def is_complete(self) -> bool:
        return len(self.conversions) >= self.expected_conversions()

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "unitIds": list(self.unit_ids),
            "conversions": [c.to_dict() for c in self.conversions],
        }
        if self.base_unit_id:
            data["baseUnitId"] = self.base_unit_id
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UnitGroup":
        unit_ids: List[str] = []
        for unit_id in data.get("unitIds") or []:
            if str(unit_id) not in unit_ids:
                unit_ids.append(str(unit_id))
        # One equation per ordered pair; the first one listed wins
        conversions: List[ConversionEquation] = []
        seen: Set[Tuple[str, str]] = set()
        for raw in data.get("conversions") or []:
            conversion = ConversionEquation.from_dict(raw)
            if conversion.pair not in seen:
                seen.add(conversion.pair)
                conversions.append(conversion)
        return cls(
            id=str(_require(data, "id", "unit group")),
            name=str(_require(data, "name", "unit group")),
            description=str(data.get("description") or ""),
            base_unit_id=data.get("baseUnitId") or None,
            unit_ids=unit_ids,
            conversions=conversions,
        )


__all__ = [
    "Unit",
    "UnitGroup",
    "ConversionEquation",
    "format_equation",
    "is_valid_multiplier",
]
