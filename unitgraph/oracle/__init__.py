"""Oracle boundary: external AI service for classification, conversions and duplicate checks.

Public API:
    Oracle
        Abstract interface implemented by every backend (and by test doubles)

    AnthropicOracle(settings, client=None)
        Anthropic Messages API backend with a bounded JSON-repair retry policy

    OracleResult
        Success-or-error variant returned by every Oracle call
"""

from .oracleclient import (
    Oracle,
    AnthropicOracle,
    OracleResult,
    RetryPolicy,
)
from .oracleparse import (
    extract_json,
    as_group_name,
    as_record_list,
)

__all__ = [
    "Oracle",
    "AnthropicOracle",
    "OracleResult",
    "RetryPolicy",
    "extract_json",
    "as_group_name",
    "as_record_list",
]
