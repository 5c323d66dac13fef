"""
storygraph.project - Project directory management.

Handles project creation and the directory structure: configuration,
the persisted asset registry, and export output.
"""

from __future__ import annotations

import hashlib
from pathlib import Path

from storygraph.config import CONFIG_FILENAME, create_default_config, write_config
from storygraph.exceptions import ProjectError
from storygraph.registry import AssetRegistry


class Project:
    """Represents a StoryGraph project directory."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self.config_path = path / CONFIG_FILENAME
        self.registry_dir = path / "registry"
        self.export_dir = path / "export"

    def exists(self) -> bool:
        return self.config_path.exists()

    def create(self) -> None:
        """Create the project directory structure and default config.

        Raises:
            ProjectError: If a project already exists at this path
        """
        if self.exists():
            raise ProjectError(f"A StoryGraph project already exists at {self.path}")
        self.path.mkdir(parents=True, exist_ok=True)
        self.registry_dir.mkdir(exist_ok=True)
        self.export_dir.mkdir(exist_ok=True)

        config = create_default_config(self.path.name)
        write_config(config, self.config_path)

    def open_registry(self) -> AssetRegistry:
        return AssetRegistry(self.registry_dir)


def find_project_dir(start: Path | None = None) -> Path | None:
    """Find the project directory by looking for storygraph.yaml upwards."""
    current = (start or Path.cwd()).resolve()
    while True:
        if (current / CONFIG_FILENAME).exists():
            return current
        if current == current.parent:
            return None
        current = current.parent


def compute_file_md5(path: Path) -> str:
    """Compute the MD5 checksum of a file (hex digest)."""
    md5 = hashlib.md5()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            md5.update(chunk)
    return md5.hexdigest()
