"""
storygraph.pipeline.lease - Exclusive execution lease for phase batches.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager

from storygraph.exceptions import PhaseActiveError


class PhaseLease:
    """Grants at most one active phase at a time; never waits."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._holder: str | None = None

    @property
    def holder(self) -> str | None:
        return self._holder

    @property
    def active(self) -> bool:
        return self._holder is not None

    def acquire(self, name: str) -> None:
        if not self._lock.acquire(blocking=False):
            raise PhaseActiveError(f"Cannot start {name}: {self._holder} is already running")
        self._holder = name

    def release(self) -> None:
        self._holder = None
        self._lock.release()

    @contextmanager
    def hold(self, name: str) -> Iterator[None]:
        """Hold the lease for the duration of the block, releasing on error."""
        self.acquire(name)
        try:
            yield
        finally:
            self.release()
