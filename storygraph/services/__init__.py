"""
storygraph.services - Remote analysis service clients.

HTTP transport with timeout/retry policy, the per-phase dispatcher and the
best-effort proxy transcode trigger.
"""

from __future__ import annotations
