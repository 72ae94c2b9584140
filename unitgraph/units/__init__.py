"""Units module: registry, classification and the unit conversion graph.

Public API:
    UnitRegistry, load_registry(path), save_registry(registry, path)
        Canonical store of units and unit groups (registry JSON file)

    ConversionPipeline(context).run(max_groups=None)
        Resumable classification + conversion generation against the Oracle

    compute_closure(unit_ids, edges) / complete_all_groups(registry)
        Transitive closure of conversion edges

    validate_group_consistency(group, tolerance=0.01)
        Advisory check of every edge against its reverse

    find_unit_by_symbol(reference, units)
        Deterministic lookup of a textual unit reference

Examples:
    >>> from unitgraph.units import load_registry, find_unit_by_symbol
    >>> registry = load_registry("output/global-units-master.json")
    >>> find_unit_by_symbol("gal/min", registry.unit_list()).symbol
    'GPM'
"""

from .unitmodels import (
    Unit,
    UnitGroup,
    ConversionEquation,
    format_equation,
)
from .unitregistry import (
    RegistryError,
    UnitRegistry,
    group_id_for,
    load_registry,
    save_registry,
    conversions_frame,
    export_conversions,
)
from .unitextract import (
    ExtractionReport,
    extract_units,
)
from .unitclassify import (
    classify_unit,
    apply_classification,
)
from .unitconversions import (
    validate_conversion,
    collect_for_unit,
    merge_conversions,
)
from .unitclosure import (
    ClosureReport,
    compute_closure,
    complete_group_conversions,
    complete_all_groups,
)
from .unitconsistency import (
    ConsistencyWarning,
    ConsistencyReport,
    validate_group_consistency,
)
from .unitlink import (
    LinkReport,
    find_unit_by_symbol,
    link_spec_entries,
    suggest_units,
)
from .unitpipeline import (
    PipelineContext,
    PipelineStats,
    ConversionPipeline,
    reopen_incomplete_groups,
)

__all__ = [
    # Model
    "Unit",
    "UnitGroup",
    "ConversionEquation",
    "format_equation",
    # Registry
    "RegistryError",
    "UnitRegistry",
    "group_id_for",
    "load_registry",
    "save_registry",
    "conversions_frame",
    "export_conversions",
    # Discovery
    "ExtractionReport",
    "extract_units",
    # Classification
    "classify_unit",
    "apply_classification",
    # Conversions
    "validate_conversion",
    "collect_for_unit",
    "merge_conversions",
    # Closure / consistency
    "ClosureReport",
    "compute_closure",
    "complete_group_conversions",
    "complete_all_groups",
    "ConsistencyWarning",
    "ConsistencyReport",
    "validate_group_consistency",
    # Linking
    "LinkReport",
    "find_unit_by_symbol",
    "link_spec_entries",
    "suggest_units",
    # Pipeline
    "PipelineContext",
    "PipelineStats",
    "ConversionPipeline",
    "reopen_incomplete_groups",
]
