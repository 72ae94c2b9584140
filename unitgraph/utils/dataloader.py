"""Shared file loading and persistence utilities.

Every persisted artifact of the pipeline (registry, checkpoint, duplicate
report, linked spec entries) is a JSON document rewritten wholesale on each
save. Writes go through a temporary file in the same directory followed by
os.replace(), so an interrupted save leaves either the old or the new file
on disk, never a truncated one.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, List, Tuple, Union

import pandas as pd


def load_json(path: Union[str, Path]) -> Any:
    """Read and parse a JSON file.

    Raises:
        FileNotFoundError: If the file does not exist
        json.JSONDecodeError: If the content is not valid JSON
    """
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def write_json_atomic(path: Union[str, Path], data: Any) -> None:
    """Write JSON data to *path* atomically via temp file + os.replace().

    The parent directory is created when missing.

    Args:
        path: Destination file
        data: JSON-serialisable object
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=str(path.parent), suffix=".tmp", prefix=path.stem)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp, str(path))
    except BaseException:
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise


def load_parquet_or_csv(file_path: Path) -> pd.DataFrame:
    """Load DataFrame from parquet, CSV or JSON-records file based on extension.

    Args:
        file_path: Path to .parquet, .csv or .json file

    Returns:
        Loaded DataFrame

    Raises:
        ValueError: If file extension is not supported
    """
    if file_path.suffix == ".parquet":
        return pd.read_parquet(file_path)
    elif file_path.suffix == ".csv":
        return pd.read_csv(file_path)
    elif file_path.suffix == ".json":
        return pd.DataFrame(load_json(file_path))
    else:
        raise ValueError(f"Unsupported file format: {file_path.suffix}. Use .parquet, .csv or .json")


def format_not_found_error(
    subject: str,
    searched_locations: List[Tuple[str, Path]],
    fix_instructions: List[str],
) -> str:
    """Format a helpful FileNotFoundError message.

    Args:
        subject: What was being loaded (e.g. 'registry', 'spec entries')
        searched_locations: List of (description, path) tuples for locations searched
        fix_instructions: List of commands/instructions to fix the issue

    Returns:
        Formatted error message string
    """
    lines = [f"No {subject} found.\n"]

    lines.append("Searched:")
    for i, (desc, path) in enumerate(searched_locations, 1):
        lines.append(f"  {i}. {desc}: {path}")

    lines.append("\nTo fix:")
    for instruction in fix_instructions:
        lines.append(f"  • {instruction}")

    return "\n".join(lines)


__all__ = [
    "load_json",
    "write_json_atomic",
    "load_parquet_or_csv",
    "format_not_found_error",
]
