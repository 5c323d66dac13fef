"""Tests for storygraph.services.transcode module."""

from __future__ import annotations

import threading

from conftest import FakeServiceClient

from storygraph.exceptions import RemoteServiceError
from storygraph.services.transcode import TranscodeTrigger, TriggerOutcome


class TestTranscodeTrigger:
    def test_successful_trigger(self) -> None:
        client = FakeServiceClient({"proxy-transcode": {"status": "queued"}})
        trigger = TranscodeTrigger(client, "http://transcode/")

        outcome = trigger.trigger("camA.mov").result(timeout=5)
        trigger.shutdown()

        assert outcome == TriggerOutcome(filename="camA.mov", ok=True)
        assert trigger.outcomes == [outcome]
        assert client.calls[0]["payload"] == {"filename": "camA.mov"}
        assert client.calls[0]["url"] == "http://transcode/"

    def test_failure_reported_not_raised(self) -> None:
        client = FakeServiceClient(
            {"proxy-transcode": RemoteServiceError("proxy-transcode", "busy", 503)}
        )
        trigger = TranscodeTrigger(client, "http://transcode/")

        outcome = trigger.trigger("camA.mov").result(timeout=5)
        trigger.shutdown()

        assert not outcome.ok
        assert "busy" in outcome.error

    def test_trigger_does_not_block_caller(self) -> None:
        release = threading.Event()

        def slow(payload):
            release.wait(timeout=5)
            return {}

        trigger = TranscodeTrigger(FakeServiceClient({"proxy-transcode": slow}), "http://t/")

        future = trigger.trigger("camA.mov")
        assert not future.done()

        release.set()
        future.result(timeout=5)
        trigger.shutdown()
        assert len(trigger.outcomes) == 1
