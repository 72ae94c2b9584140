"""Shared text normalization utilities.

This module provides the slug, token and identifier helpers used across
the units and specs modules.
"""

import hashlib
import re
import unicodedata
from typing import Set


def slugify_name(s: str) -> str:
    """Create URL/key-safe slug.

    Transformations:
      - Strip whitespace
      - Lowercase
      - Normalize Unicode (NFKD -> ASCII)
      - Collapse every run of non-alphanumeric characters to a single hyphen
      - Strip leading/trailing hyphens

    Args:
        s: Text to slugify

    Returns:
        Slug suitable for keys and group identifiers

    Examples:
        >>> slugify_name("Flow Rate")
        'flow-rate'

        >>> slugify_name("Flow Rate (Volumetric)")
        'flow-rate-volumetric'

        >>> slugify_name("  Pressure / Head  ")
        'pressure-head'
    """
    if not s:
        return ""

    # Strip and lowercase
    s = s.strip().lower()

    # Unicode normalization and ASCII conversion
    s = unicodedata.normalize("NFKD", s)
    s = s.encode("ascii", "ignore").decode("ascii")

    # Collapse everything that is not a letter or digit
    s = re.sub(r"[^a-z0-9]+", "-", s)

    return s.strip("-")


def tokenize_words(s: str) -> Set[str]:
    """Lower-case, whitespace-tokenized word set.

    No punctuation stripping is applied: "Capacity," and "Capacity" are
    different tokens.

    Examples:
        >>> sorted(tokenize_words("Total Cooling Capacity"))
        ['capacity', 'cooling', 'total']

        >>> tokenize_words("   ")
        set()
    """
    if not s:
        return set()
    return set(s.lower().split())


def jaccard_similarity(a: str, b: str) -> float:
    """Jaccard index of two strings' word sets, scaled to 0-100.

    Args:
        a: First name
        b: Second name

    Returns:
        |A ∩ B| / |A ∪ B| * 100, or 0.0 when both word sets are empty

    Examples:
        >>> round(jaccard_similarity("Cooling Capacity", "Total Cooling Capacity"), 2)
        66.67

        >>> jaccard_similarity("Airflow", "Voltage")
        0.0
    """
    words_a = tokenize_words(a)
    words_b = tokenize_words(b)
    union = words_a | words_b
    if not union:
        return 0.0
    return len(words_a & words_b) / len(union) * 100


def generate_entity_id(*parts: str, namespace: str) -> str:
    """Generate deterministic 16-character hex entity ID.

    Uses SHA-1 of the '|'-joined parts with a namespace suffix, so the same
    inputs always produce the same identifier across runs.

    Args:
        *parts: Identifying strings (e.g. a unit symbol, or from/to unit ids)
        namespace: Namespace suffix (e.g. "unit", "conversion")

    Returns:
        16-character hex string (first 16 chars of SHA-1 hash)

    Examples:
        >>> len(generate_entity_id("GPM", namespace="unit"))
        16

        >>> generate_entity_id("a", "b", namespace="conversion") == generate_entity_id("a", "b", namespace="conversion")
        True
    """
    content = "|".join(list(parts) + [namespace])
    return hashlib.sha1(content.encode("utf-8")).hexdigest()[:16]


__all__ = [
    "slugify_name",
    "tokenize_words",
    "jaccard_similarity",
    "generate_entity_id",
]
