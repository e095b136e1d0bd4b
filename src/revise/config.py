"""YAML configuration for workspace location, review policy and logging."""

from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .changes.controller import ReviewPolicy

DEFAULT_CONFIG_NAME = "revise.yaml"

DEFAULT_CONFIG_TEMPLATE: Dict[str, Any] = {
    "workspace": {
        "root": ".",
    },
    "review": {
        "confirm_file_threshold": 8,
        "confirm_on_delete": True,
        "confirm_on_rename": True,
        "confirm_on_new_file": True,
        "per_file_applied_state": True,
    },
    "logging": {
        "level": "INFO",
    },
}


class ConfigError(ValueError):
    """Raised when the configuration file is missing or invalid."""


class SectionModel(BaseModel):
    """Base model rejecting unknown keys."""

    model_config = ConfigDict(extra="forbid")


class WorkspaceSection(SectionModel):
    root: str = "."


class ReviewSection(SectionModel):
    confirm_file_threshold: int = Field(default=8, ge=0)
    confirm_on_delete: bool = True
    confirm_on_rename: bool = True
    confirm_on_new_file: bool = True
    per_file_applied_state: bool = True


class LoggingSection(SectionModel):
    level: str = "INFO"

    @field_validator("level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown logging level: {value}")
        return level


class ReviseConfig(SectionModel):
    """Validated configuration plus the file it came from."""

    workspace: WorkspaceSection = Field(default_factory=WorkspaceSection)
    review: ReviewSection = Field(default_factory=ReviewSection)
    logging: LoggingSection = Field(default_factory=LoggingSection)
    source: Optional[Path] = Field(default=None, exclude=True)

    def workspace_root(self) -> Path:
        """Resolve the workspace root relative to the config file."""
        root = Path(self.workspace.root).expanduser()
        if not root.is_absolute():
            base = self.source.parent if self.source else Path.cwd()
            root = (base / root).resolve()
        return root

    def review_policy(self) -> ReviewPolicy:
        return ReviewPolicy(**self.review.model_dump())


def copy_config_template() -> Dict[str, Any]:
    """Return a deep copy of the default configuration template."""
    return copy.deepcopy(DEFAULT_CONFIG_TEMPLATE)


def write_default_config(config_path: Path) -> None:
    """Persist the default configuration with stable formatting."""
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with config_path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(copy_config_template(), handle, sort_keys=False)


def load_config(config_path: Path | None = None, *, required: bool = False) -> ReviseConfig:
    """Load and validate the YAML configuration.

    A missing file yields the defaults unless ``required`` is set.
    """
    path = Path(config_path or DEFAULT_CONFIG_NAME)
    if not path.exists():
        if required:
            raise ConfigError(f"Config file not found: {path}")
        return ReviseConfig(source=path.resolve())

    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except yaml.YAMLError as error:
        raise ConfigError(f"Failed to parse config {path}: {error}") from error

    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a mapping at the top level.")

    try:
        return ReviseConfig.model_validate({**data, "source": path.resolve()})
    except ValidationError as error:
        raise ConfigError(f"Invalid configuration in {path}: {error}") from error
