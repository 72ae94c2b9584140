"""Specs module: spec entry loading and duplicate detection.

Public API:
    load_spec_entries(path) -> list[dict]
        Load spec entries from JSON ({"specTypes": [...]}), Parquet or CSV

    find_duplicate_candidates(entries, threshold=30) -> list[DuplicateCandidate]
        Same-domain pairs whose primary names share enough words

    DuplicateDetector(oracle, settings, store=None).run(entries)
        Lexical filter followed by Oracle confirmation, with progress snapshots
"""

from .specloader import (
    load_spec_entries,
)
from .specduplicates import (
    DuplicateCandidate,
    DuplicateGroup,
    DuplicateResult,
    DuplicateReportStore,
    DuplicateDetector,
    find_duplicate_candidates,
    validate_verdict,
    find_semantic_duplicates,
)

__all__ = [
    "load_spec_entries",
    "DuplicateCandidate",
    "DuplicateGroup",
    "DuplicateResult",
    "DuplicateReportStore",
    "DuplicateDetector",
    "find_duplicate_candidates",
    "validate_verdict",
    "find_semantic_duplicates",
]
