"""
storygraph.config - YAML config loading and validation.

Handles loading storygraph.yaml from the project directory and validating
service endpoints, timeouts, retry policy and pipeline tuning parameters.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from storygraph.exceptions import ConfigError

CONFIG_FILENAME = "storygraph.yaml"
ACCESS_TOKEN_ENV = "STORYGRAPH_ACCESS_TOKEN"


class ServiceEndpoints(BaseModel):
    """Remote analysis service URLs."""

    metadata_url: str = "http://localhost:8081/"
    triage_url: str = "http://localhost:8082/"
    sync_url: str = "http://localhost:8083/"
    transcode_url: str = "http://localhost:8084/"
    analysis_url: str = "http://localhost:8085/v1"

    @field_validator("metadata_url", "triage_url", "sync_url", "transcode_url", "analysis_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("service URL must start with http:// or https://")
        return v


class StoryGraphConfig(BaseModel):
    """Resolved configuration for a StoryGraph project."""

    project_name: str = "untitled"

    sequence_name: str = "StoryGraph_Multicam_Sync"
    export_filename: str = "StoryGraph_Final_Sync.xml"
    media_root: str = ""

    bucket: str = "story-graph-proxies"
    services: ServiceEndpoints = Field(default_factory=ServiceEndpoints)

    request_timeout: float = Field(default=120.0, gt=0.0)
    max_retries: int = Field(default=3, ge=1)
    retry_delay: float = Field(default=2.0, ge=0.0)

    poll_interval_seconds: float = Field(default=10.0, gt=0.0)

    triage_confidence_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    triage_window_seconds: int = Field(default=15, gt=0)
    triage_retry_window_seconds: int = Field(default=30, gt=0)

    sync_window_seconds: int = Field(default=10, gt=0)
    sync_start_offset: float = Field(default=0.0, ge=0.0)
    sync_offset_fps: float | None = None

    transcription_language: str = "en-US"

    @field_validator("sync_offset_fps")
    @classmethod
    def validate_offset_fps(cls, v: float | None) -> float | None:
        if v is not None and v <= 0:
            raise ValueError("sync_offset_fps must be positive")
        return v

    @field_validator("sequence_name", "export_filename")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v


def get_access_token() -> str | None:
    """Read the remote-service credential from the environment."""
    token = os.environ.get(ACCESS_TOKEN_ENV, "").strip()
    return token or None


def load_config(project_dir: Path) -> StoryGraphConfig:
    """Load and validate configuration from a project directory.

    Raises:
        FileNotFoundError: If the project has no storygraph.yaml
        ConfigError: If the file is not valid YAML or fails validation
    """
    config_file = project_dir / CONFIG_FILENAME
    if not config_file.exists():
        raise FileNotFoundError(f"No {CONFIG_FILENAME} found in {project_dir}")

    try:
        with open(config_file) as f:
            raw_config = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse {config_file}: {e}") from e

    if not isinstance(raw_config, dict):
        raise ConfigError(f"{config_file} must contain a mapping")

    try:
        return StoryGraphConfig(**raw_config)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {config_file}: {e}") from e


def create_default_config(project_name: str) -> dict[str, Any]:
    """Create a default config for a new project."""
    defaults = StoryGraphConfig(project_name=project_name).model_dump()
    defaults.pop("sync_offset_fps")
    return defaults


def write_config(config: dict[str, Any], path: Path) -> None:
    """Write configuration to a YAML file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        yaml.dump(config, f, default_flow_style=False, sort_keys=False)
