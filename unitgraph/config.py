"""Pipeline configuration.

Settings come from three layers, later layers winning:

1. ``pipeline_config.yaml`` shipped with the package
2. An optional user YAML file (merged section by section)
3. Environment variables (``UNITGRAPH_OUTPUT_DIR``, ``UNITGRAPH_MODEL``)

A ``.env`` file in the working directory is loaded first, so the Anthropic
client also sees ``ANTHROPIC_API_KEY`` from it.
"""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from dotenv import load_dotenv

DEFAULT_CONFIG_PATH = Path(__file__).parent / "pipeline_config.yaml"

# YAML sections whose keys map one-to-one onto PipelineSettings fields
_FIELD_SECTIONS = ("paths", "batching", "thresholds", "classification")

# oracle section keys -> PipelineSettings fields
_ORACLE_KEYS = {
    "model": "model",
    "max_tokens": "max_tokens",
    "attempts": "oracle_attempts",
    "retry_base_delay": "retry_base_delay",
}


@dataclass
class PipelineSettings:
    """Resolved configuration for every pipeline stage."""

    # Paths
    output_dir: Path = Path("output")
    registry_file: str = "global-units-master.json"
    checkpoint_file: str = "conversions-checkpoint.json"
    duplicate_report_file: str = "duplicate-report.json"
    duplicate_progress_file: str = "duplicate-report-in-progress.json"
    linked_specs_file: str = "spec-types-with-unit-ids.json"

    # Batching
    classification_batch_size: int = 20
    conversion_batch_size: int = 20
    duplicate_pairs_per_call: int = 10
    duplicate_concurrency: int = 1

    # Thresholds
    lexical_threshold: float = 30.0
    confirm_threshold: float = 85.0
    consistency_tolerance: float = 0.01

    # Classification
    fallback_group: str = "Uncategorized"

    # Oracle
    model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 8000
    oracle_attempts: int = 2
    retry_base_delay: float = 1.0
    prompts: Dict[str, str] = field(default_factory=dict)

    @property
    def registry_path(self) -> Path:
        return self.output_dir / self.registry_file

    @property
    def checkpoint_path(self) -> Path:
        return self.output_dir / self.checkpoint_file

    @property
    def duplicate_report_path(self) -> Path:
        return self.output_dir / self.duplicate_report_file

    @property
    def duplicate_progress_path(self) -> Path:
        return self.output_dir / self.duplicate_progress_file

    @property
    def linked_specs_path(self) -> Path:
        return self.output_dir / self.linked_specs_file


def load_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """Load raw configuration from a YAML file.

    Args:
        config_path: YAML file (defaults to the packaged pipeline_config.yaml)

    Returns:
        Parsed YAML mapping, or an empty dict when the packaged file is absent

    Raises:
        FileNotFoundError: If an explicitly given file does not exist
        ValueError: If the file does not contain a YAML mapping
    """
    if config_path is None:
        if not DEFAULT_CONFIG_PATH.exists():
            return {}
        config_path = DEFAULT_CONFIG_PATH

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Config file {config_path} must contain a YAML mapping")
    return data


def _merge_sections(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = {key: dict(value) if isinstance(value, dict) else value for key, value in base.items()}
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key].update(value)
        else:
            merged[key] = value
    return merged


def settings_from_config(config: Dict[str, Any]) -> PipelineSettings:
    """Build :class:`PipelineSettings` from a raw config mapping.

    Raises:
        ValueError: On unknown keys or sections that are not mappings
    """
    known = {f.name for f in fields(PipelineSettings)}
    values: Dict[str, Any] = {}

    for section in _FIELD_SECTIONS:
        entries = config.get(section) or {}
        if not isinstance(entries, dict):
            raise ValueError(f"Config section '{section}' must be a mapping")
        for key, value in entries.items():
            if key not in known:
                raise ValueError(f"Unknown config key '{section}.{key}'")
            values[key] = value

    oracle = config.get("oracle") or {}
    if not isinstance(oracle, dict):
        raise ValueError("Config section 'oracle' must be a mapping")
    for key, value in oracle.items():
        if key not in _ORACLE_KEYS:
            raise ValueError(f"Unknown config key 'oracle.{key}'")
        values[_ORACLE_KEYS[key]] = value

    prompts = config.get("prompts") or {}
    if not isinstance(prompts, dict):
        raise ValueError("Config section 'prompts' must be a mapping")
    values["prompts"] = {str(k): str(v) for k, v in prompts.items()}

    if "output_dir" in values:
        values["output_dir"] = Path(values["output_dir"])

    return PipelineSettings(**values)


def load_settings(config_path: Optional[Union[str, Path]] = None) -> PipelineSettings:
    """Resolve settings from packaged defaults, a user file and the environment.

    Args:
        config_path: Optional user YAML merged over the packaged defaults

    Returns:
        PipelineSettings

    Examples:
        >>> settings = load_settings()
        >>> settings.conversion_batch_size
        20
        >>> settings.fallback_group
        'Uncategorized'
    """
    load_dotenv()

    config = load_config()
    if config_path is not None:
        config = _merge_sections(config, load_config(Path(config_path)))

    settings = settings_from_config(config)

    if os.environ.get("UNITGRAPH_OUTPUT_DIR"):
        settings.output_dir = Path(os.environ["UNITGRAPH_OUTPUT_DIR"])
    if os.environ.get("UNITGRAPH_MODEL"):
        settings.model = os.environ["UNITGRAPH_MODEL"]

    return settings


__all__ = [
    "PipelineSettings",
    "load_config",
    "settings_from_config",
    "load_settings",
]
