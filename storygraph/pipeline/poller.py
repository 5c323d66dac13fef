"""
storygraph.pipeline.poller - Status reconciliation for long-running jobs.

On every tick, each asset with an outstanding remote job gets one status
check. Checks within a tick run concurrently; an asset whose previous
check has not resolved yet is skipped, so there is never more than one
request in flight per asset. Assets in a terminal job state are never
polled again.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any

from storygraph.models import JobState, MediaAsset
from storygraph.pipeline.phases import is_pending_job

logger = logging.getLogger("storygraph")


class StatusPoller:
    """Advances assets stuck in an in-flight remote job state."""

    def __init__(
        self,
        registry: Any,
        dispatcher: Any,
        interval: float = 10.0,
        max_workers: int = 8,
    ) -> None:
        self.registry = registry
        self.dispatcher = dispatcher
        self.interval = interval
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="poll")
        self._in_flight: set[str] = set()
        self._guard = threading.Lock()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._closed = False

    @property
    def in_flight(self) -> frozenset[str]:
        with self._guard:
            return frozenset(self._in_flight)

    def _claim(self, asset_id: str) -> bool:
        with self._guard:
            if asset_id in self._in_flight:
                return False
            self._in_flight.add(asset_id)
            return True

    def _release(self, asset_id: str) -> None:
        with self._guard:
            self._in_flight.discard(asset_id)

    def _check(self, asset: MediaAsset) -> JobState | None:
        try:
            current = self.registry.get(asset.id)
            if current is None or not is_pending_job(current):
                return None
            status = self.dispatcher.check_job(current.job_id)
            if not status.done:
                return current.job_state
            if status.error:
                self.registry.patch(
                    asset.id,
                    job_state=JobState.ERROR,
                    analysis_content=f"Analysis Error: {status.error}",
                )
                logger.error("Job %s for %s failed: %s", current.job_id, asset.filename, status.error)
                return JobState.ERROR
            self.registry.patch(
                asset.id,
                job_state=JobState.COMPLETE,
                analysis_content=status.content,
            )
            logger.info("Job %s for %s complete", current.job_id, asset.filename)
            return JobState.COMPLETE
        except Exception as e:
            logger.warning("Status check for %s failed, will retry: %s", asset.filename, e)
            return None
        finally:
            self._release(asset.id)

    def tick(self) -> list[Future]:
        """Issue one status check per pending asset not already being checked.

        Returns:
            Futures for the checks submitted on this tick
        """
        futures = []
        for asset in self.registry.get_all():
            if not is_pending_job(asset):
                continue
            if not self._claim(asset.id):
                logger.debug("Skipping %s: previous status check outstanding", asset.filename)
                continue
            try:
                futures.append(self._executor.submit(self._check, asset))
            except RuntimeError:
                self._release(asset.id)
                raise
        return futures

    def poll_once(self, timeout: float | None = None) -> dict[str, int]:
        """Run a tick and wait for its checks to resolve.

        Returns:
            Counts of checks by outcome (completed, failed, pending)
        """
        futures = self.tick()
        done, _ = wait(futures, timeout=timeout)
        summary = {"checked": len(futures), "completed": 0, "failed": 0, "pending": 0}
        for future in done:
            state = future.result()
            if state == JobState.COMPLETE:
                summary["completed"] += 1
            elif state == JobState.ERROR:
                summary["failed"] += 1
            else:
                summary["pending"] += 1
        summary["pending"] += len(futures) - len(done)
        return summary

    def _loop(self) -> None:
        while not self._stop.is_set():
            try:
                self.tick()
            except Exception as e:
                logger.error("Poll tick failed: %s", e)
            self._stop.wait(self.interval)

    def start(self) -> None:
        """Start the fixed-interval background loop.

        Raises:
            RuntimeError: If the poller has already been stopped
        """
        if self._closed:
            raise RuntimeError("StatusPoller has been stopped and cannot be restarted")
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="status-poller", daemon=True)
        self._thread.start()

    def stop(self, wait_for_checks: bool = True) -> None:
        self._closed = True
        self._stop.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None
        self._executor.shutdown(wait=wait_for_checks)
