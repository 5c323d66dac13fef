"""
storygraph.registry - Durable keyed store of MediaAsset records.

Each asset lives in its own JSON document under the registry directory,
keyed by the discovery-source asset id. Writes are atomic per record;
there is no multi-record transaction. Upserts to different records take
different locks and never block each other. Overlapping upserts to the
same record are last-write-wins.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any
from urllib.parse import quote, unquote

from pydantic import ValidationError

from storygraph.exceptions import StorageError
from storygraph.io import read_json, write_json
from storygraph.models import MediaAsset

logger = logging.getLogger("storygraph")

RECORD_SUFFIX = ".json"


class AssetRegistry:
    """JSON-directory backed asset table."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        self._init_error: str | None = None
        self.reopen()

    def reopen(self) -> None:
        """(Re)initialize the backing directory.

        A failure is logged once and recorded; every registry operation then
        raises StorageError until reopen() succeeds.
        """
        try:
            self.path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            self._init_error = f"Failed to initialize registry at {self.path}: {e}"
            logger.error(self._init_error)
            return
        self._init_error = None

    @property
    def ready(self) -> bool:
        return self._init_error is None

    def _ensure_ready(self) -> None:
        if self._init_error is not None:
            raise StorageError(self._init_error)

    def _record_path(self, asset_id: str) -> Path:
        return self.path / f"{quote(asset_id, safe='')}{RECORD_SUFFIX}"

    def _lock_for(self, asset_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(asset_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[asset_id] = lock
            return lock

    def _read_record(self, path: Path) -> dict[str, Any] | None:
        try:
            return read_json(path)
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Failed to read {path.name}: {e}") from e

    def _merge(self, asset_id: str, fields: dict[str, Any], create: bool) -> MediaAsset:
        self._ensure_ready()
        path = self._record_path(asset_id)
        with self._lock_for(asset_id):
            existing = self._read_record(path)
            if existing is None and not create:
                raise StorageError(f"Unknown asset: {asset_id}")
            merged = {**(existing or {}), **fields, "id": asset_id}
            try:
                record = MediaAsset.model_validate(merged)
            except ValidationError as e:
                raise StorageError(f"Invalid record for {asset_id}: {e}") from e
            try:
                write_json(path, record.model_dump(mode="json"))
            except OSError as e:
                raise StorageError(f"Failed to write {path.name}: {e}") from e
        return record

    def upsert(self, asset: MediaAsset) -> MediaAsset:
        """Merge the fields set on an asset into its stored record.

        Creates the record if absent. Only fields explicitly set on the
        incoming model are merged, so a partial MediaAsset updates just
        those fields.

        Args:
            asset: Asset carrying the fields to merge

        Returns:
            The stored record after the merge

        Raises:
            StorageError: If the registry is unavailable or the write fails
        """
        fields = asset.model_dump(mode="json", exclude_unset=True)
        return self._merge(asset.id, fields, create=True)

    def patch(self, asset_id: str, **fields: Any) -> MediaAsset:
        """Merge fields into an existing record.

        Raises:
            StorageError: If the asset does not exist or the write fails
        """
        return self._merge(asset_id, _jsonable(fields), create=False)

    def get(self, asset_id: str) -> MediaAsset | None:
        self._ensure_ready()
        data = self._read_record(self._record_path(asset_id))
        return MediaAsset.model_validate(data) if data is not None else None

    def get_all(self) -> list[MediaAsset]:
        """Return every record, ordered by asset id."""
        self._ensure_ready()
        assets = []
        try:
            paths = sorted(self.path.glob(f"*{RECORD_SUFFIX}"))
        except OSError as e:
            raise StorageError(f"Failed to list registry: {e}") from e
        for path in paths:
            data = self._read_record(path)
            if data is None:
                continue
            try:
                assets.append(MediaAsset.model_validate(data))
            except ValidationError as e:
                raise StorageError(f"Corrupt record {unquote(path.stem)}: {e}") from e
        assets.sort(key=lambda a: a.id)
        return assets

    def clear(self) -> int:
        """Remove all records. Returns the number removed."""
        self._ensure_ready()
        removed = 0
        try:
            for path in self.path.glob(f"*{RECORD_SUFFIX}"):
                path.unlink(missing_ok=True)
                removed += 1
        except OSError as e:
            raise StorageError(f"Failed to clear registry: {e}") from e
        logger.info("Registry cleared (%d records)", removed)
        return removed

    def count(self) -> int:
        self._ensure_ready()
        return sum(1 for _ in self.path.glob(f"*{RECORD_SUFFIX}"))


def _jsonable(fields: dict[str, Any]) -> dict[str, Any]:
    out = {}
    for key, value in fields.items():
        if hasattr(value, "model_dump"):
            value = value.model_dump(mode="json")
        out[key] = value
    return out
