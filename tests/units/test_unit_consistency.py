"""Tests for the inverse-consistency validator."""

import pytest

from unitgraph.units.unitconsistency import (
    MISMATCH,
    MISSING_REVERSE,
    validate_group_consistency,
)
from unitgraph.units.unitmodels import ConversionEquation, UnitGroup


def _group(*edges):
    return UnitGroup(
        id="ug-length",
        name="Length",
        unit_ids=["m", "cm", "in"],
        conversions=[
            ConversionEquation(f"{a}-{b}", a, b, m, f"x * {m}") for a, b, m in edges
        ],
    )


def test_consistent_pair():
    report = validate_group_consistency(_group(("m", "cm", 100.0), ("cm", "m", 0.01)))
    assert report.is_consistent
    assert report.checked == 2


def test_rounded_reverse_within_tolerance():
    """Display-rounded multipliers still agree within 1%."""
    report = validate_group_consistency(_group(("in", "cm", 2.54), ("cm", "in", 0.3937)))
    assert report.is_consistent


def test_mismatch_reported_for_both_directions():
    report = validate_group_consistency(_group(("m", "cm", 100.0), ("cm", "m", 0.02)))
    assert [(w.kind, w.from_unit_id, w.to_unit_id) for w in report.warnings] == [
        (MISMATCH, "m", "cm"),
        (MISMATCH, "cm", "m"),
    ]
    assert report.warnings[0].product == pytest.approx(2.0)


def test_missing_reverse():
    report = validate_group_consistency(_group(("m", "cm", 100.0)))
    assert len(report.missing_reverse) == 1
    assert report.warnings[0].kind == MISSING_REVERSE
    assert report.warnings[0].product is None


def test_custom_tolerance():
    group = _group(("m", "cm", 100.0), ("cm", "m", 0.0105))
    assert not validate_group_consistency(group).is_consistent
    assert validate_group_consistency(group, tolerance=0.1).is_consistent


def test_every_edge_either_agrees_or_is_flagged():
    """For every edge with a reverse, |m*m' - 1| < tolerance or a warning names it."""
    group = _group(
        ("m", "cm", 100.0), ("cm", "m", 0.01),
        ("m", "in", 39.37), ("in", "m", 0.5),
        ("cm", "in", 0.3937),
    )
    report = validate_group_consistency(group)
    flagged = {(w.from_unit_id, w.to_unit_id) for w in report.warnings}
    multipliers = {c.pair: c.multiplier for c in group.conversions}
    for (i, j), m in multipliers.items():
        reverse = multipliers.get((j, i))
        if reverse is None or abs(m * reverse - 1) >= 0.01:
            assert (i, j) in flagged
        else:
            assert (i, j) not in flagged


def test_empty_group():
    report = validate_group_consistency(UnitGroup(id="ug-x", name="X"))
    assert report.is_consistent
    assert report.checked == 0
