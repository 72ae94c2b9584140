"""Shared utilities for the unitgraph package."""

from unitgraph.utils.dataloader import (
    load_json,
    write_json_atomic,
    load_parquet_or_csv,
    format_not_found_error,
)
from unitgraph.utils.normalize import (
    slugify_name,
    tokenize_words,
    jaccard_similarity,
    generate_entity_id,
)
from unitgraph.utils.checkpoint import (
    Checkpoint,
    CheckpointStore,
)
from unitgraph.utils.scheduler import (
    chunked,
    ConcurrencyScheduler,
)

__all__ = [
    # Data loading
    "load_json",
    "write_json_atomic",
    "load_parquet_or_csv",
    "format_not_found_error",
    # Normalization
    "slugify_name",
    "tokenize_words",
    "jaccard_similarity",
    "generate_entity_id",
    # Checkpointing
    "Checkpoint",
    "CheckpointStore",
    # Scheduling
    "chunked",
    "ConcurrencyScheduler",
]
