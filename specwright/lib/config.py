"""
Configuration loaders for specwright.

Loads specwright.yaml from the outputs directory. Every key is optional;
anything missing falls back to the defaults below.

    lock_timeout: 30
    watch:
      poll_interval: 0.3
      min_valid_length: 100
      min_change_length: 100
      stability_checks: 3
      grace_period: 0.5
      default_timeout: 300
    validation:
      min_document_lengths:
        prd: 500
        design_brief: 300
        technical_specification: 500
"""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path

import yaml

from specwright.lib.constants import CONFIG_FILENAME

logger = logging.getLogger(__name__)

OUTPUT_DIR_ENV = "SPECWRIGHT_OUTPUT_DIR"

# Minimum stripped character count per markdown document before it counts
# as real content rather than a stub.
DEFAULT_MIN_DOCUMENT_LENGTHS = {
    "prd": 500,
    "design_brief": 300,
    "technical_specification": 500,
}


@dataclass
class WatchConfig:
    """Completion detector tuning. Lengths are in bytes, times in seconds."""
    poll_interval: float = 0.3
    min_valid_length: int = 100  # content must exceed this to count as valid
    min_change_length: int = 100  # length delta must exceed this to count as substantial
    stability_checks: int = 3  # consecutive polls with the same hash before settling
    grace_period: float = 0.5  # re-check delay when the file is already valid at start
    default_timeout: float = 300.0


@dataclass
class ValidationConfig:
    min_document_lengths: dict[str, int] = field(
        default_factory=lambda: DEFAULT_MIN_DOCUMENT_LENGTHS.copy()
    )

    def min_length(self, document: str) -> int:
        return self.min_document_lengths.get(document, DEFAULT_MIN_DOCUMENT_LENGTHS.get(document, 500))


@dataclass
class WorkflowConfig:
    outputs_dir: Path
    lock_timeout: float = 30.0
    watch: WatchConfig = field(default_factory=WatchConfig)
    validation: ValidationConfig = field(default_factory=ValidationConfig)

    @property
    def projects_dir(self) -> Path:
        return self.outputs_dir / "projects"


def get_outputs_dir(cwd: Path | None = None) -> Path:
    """Resolve the outputs directory: $SPECWRIGHT_OUTPUT_DIR or ./specwright/outputs."""
    env_dir = os.environ.get(OUTPUT_DIR_ENV)
    if env_dir:
        return Path(env_dir)
    return (cwd or Path.cwd()) / "specwright" / "outputs"


def _build_watch_config(data: dict | None) -> WatchConfig:
    if not data:
        return WatchConfig()
    known = {f.name for f in fields(WatchConfig)}
    unknown = set(data) - known
    if unknown:
        logger.warning(f"Ignoring unknown watch settings: {sorted(unknown)}")
    return WatchConfig(**{k: v for k, v in data.items() if k in known})


def _build_validation_config(data: dict | None) -> ValidationConfig:
    lengths = DEFAULT_MIN_DOCUMENT_LENGTHS.copy()
    if data and data.get("min_document_lengths"):
        lengths.update({str(k): int(v) for k, v in data["min_document_lengths"].items()})
    return ValidationConfig(min_document_lengths=lengths)


def load_workflow_config(outputs_dir: Path | None = None) -> WorkflowConfig:
    """Load specwright.yaml and return WorkflowConfig.

    If the file doesn't exist or can't be parsed, returns defaults.
    """
    outputs_dir = Path(outputs_dir) if outputs_dir else get_outputs_dir()
    config_path = outputs_dir / CONFIG_FILENAME
    if not config_path.exists():
        return WorkflowConfig(outputs_dir=outputs_dir)

    try:
        data = yaml.safe_load(config_path.read_text()) or {}
        if not isinstance(data, dict):
            raise TypeError(f"expected a mapping, got {type(data).__name__}")
        return WorkflowConfig(
            outputs_dir=outputs_dir,
            lock_timeout=float(data.get("lock_timeout", 30.0)),
            watch=_build_watch_config(data.get("watch")),
            validation=_build_validation_config(data.get("validation")),
        )
    except (yaml.YAMLError, TypeError, ValueError, AttributeError) as e:
        logger.warning(f"Failed to parse {config_path}: {e}")
        return WorkflowConfig(outputs_dir=outputs_dir)
