"""Tests for storygraph.exceptions module."""

from __future__ import annotations

import pytest

from storygraph.exceptions import (
    AuthError,
    ConfigError,
    ExportError,
    MissingMasterError,
    NormalizationError,
    PhaseActiveError,
    ProjectError,
    RemoteServiceError,
    StorageError,
    StoryGraphError,
)


@pytest.mark.parametrize(
    "exc_class",
    [
        AuthError,
        ConfigError,
        ExportError,
        MissingMasterError,
        NormalizationError,
        PhaseActiveError,
        ProjectError,
        StorageError,
    ],
)
def test_all_inherit_from_base(exc_class) -> None:
    assert issubclass(exc_class, StoryGraphError)


def test_remote_service_error_carries_context() -> None:
    error = RemoteServiceError("hybrid-sync", "HTTP 502", 502)
    assert isinstance(error, StoryGraphError)
    assert error.service == "hybrid-sync"
    assert error.status_code == 502
    assert str(error) == "hybrid-sync: HTTP 502"
