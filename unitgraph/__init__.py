"""unitgraph - Unit conversion graph and spec-entry deduplication

Public API for building a complete, consistent graph of measurement-unit
conversions from sparse Oracle answers, and for finding duplicate spec entries.

Usage:
    from unitgraph import load_settings, AnthropicOracle
    from unitgraph import PipelineContext, ConversionPipeline

    settings = load_settings()
    context = PipelineContext.create(settings, AnthropicOracle(settings))

    # Classify units and generate conversions, resuming from the checkpoint
    stats = asyncio.run(ConversionPipeline(context).run(max_groups=5))

    # Resolve a textual unit reference
    unit = find_unit_by_symbol("gal/min", context.registry.unit_list())

    # Find duplicate spec entries
    detector = DuplicateDetector(AnthropicOracle(settings), settings)
    result = asyncio.run(detector.run(load_spec_entries("specs.json")))

See README.md for the command line scripts.
"""

__version__ = "0.1.0"

# ============================================================================
# Configuration
# ============================================================================

from .config import (
    PipelineSettings,   # Resolved pipeline settings
    load_settings,      # Packaged YAML + user YAML + environment
)

# ============================================================================
# Oracle boundary
# ============================================================================

from .oracle import (
    Oracle,             # Abstract async interface
    AnthropicOracle,    # Anthropic Messages API backend
    OracleResult,       # Success-or-error variant
)

# ============================================================================
# Units: registry, conversion graph, linking
# ============================================================================

from .units import (
    Unit,
    UnitGroup,
    ConversionEquation,
    UnitRegistry,
    RegistryError,
    load_registry,
    save_registry,
    export_conversions,
    extract_units,
    compute_closure,
    complete_all_groups,
    validate_group_consistency,
    find_unit_by_symbol,
    link_spec_entries,
    suggest_units,
    PipelineContext,
    ConversionPipeline,
    reopen_incomplete_groups,
)

# ============================================================================
# Specs: loading and duplicate detection
# ============================================================================

from .specs import (
    load_spec_entries,
    find_duplicate_candidates,
    DuplicateDetector,
    DuplicateReportStore,
)

# ============================================================================
# Persistence helpers
# ============================================================================

from .utils import (
    Checkpoint,
    CheckpointStore,
    ConcurrencyScheduler,
)

__all__ = [
    "__version__",
    # Configuration
    "PipelineSettings",
    "load_settings",
    # Oracle
    "Oracle",
    "AnthropicOracle",
    "OracleResult",
    # Units
    "Unit",
    "UnitGroup",
    "ConversionEquation",
    "UnitRegistry",
    "RegistryError",
    "load_registry",
    "save_registry",
    "export_conversions",
    "extract_units",
    "compute_closure",
    "complete_all_groups",
    "validate_group_consistency",
    "find_unit_by_symbol",
    "link_spec_entries",
    "suggest_units",
    "PipelineContext",
    "ConversionPipeline",
    "reopen_incomplete_groups",
    # Specs
    "load_spec_entries",
    "find_duplicate_candidates",
    "DuplicateDetector",
    "DuplicateReportStore",
    # Persistence
    "Checkpoint",
    "CheckpointStore",
    "ConcurrencyScheduler",
]
