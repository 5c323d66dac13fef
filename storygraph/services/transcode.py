"""
storygraph.services.transcode - Best-effort proxy transcode trigger.

Interview video needs an editing proxy. The trigger is fire-and-forget
from the categorization phase's point of view: requests run on a
background executor and report through their own outcome channel.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger("storygraph")


@dataclass(frozen=True)
class TriggerOutcome:
    filename: str
    ok: bool
    error: str | None = None


class TranscodeTrigger:
    """Dispatches transcode requests without blocking the caller."""

    def __init__(self, client: Any, url: str, max_workers: int = 2) -> None:
        self.client = client
        self.url = url
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="transcode")
        self._lock = threading.Lock()
        self.outcomes: list[TriggerOutcome] = []

    def _send(self, filename: str) -> TriggerOutcome:
        try:
            self.client.post(self.url, "proxy-transcode", {"filename": filename})
        except Exception as e:
            outcome = TriggerOutcome(filename=filename, ok=False, error=str(e))
            logger.error("Transcode trigger failed for %s: %s", filename, e)
        else:
            outcome = TriggerOutcome(filename=filename, ok=True)
            logger.info("Proxy transcode queued: %s", filename)
        with self._lock:
            self.outcomes.append(outcome)
        return outcome

    def trigger(self, filename: str) -> Future[TriggerOutcome]:
        """Queue a transcode request; the returned future never raises."""
        return self._executor.submit(self._send, filename)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
