"""
storygraph.exceptions - Custom exception classes.

All StoryGraph-specific exceptions inherit from StoryGraphError.
"""


class StoryGraphError(Exception):
    """Base exception for all StoryGraph errors."""

    pass


class ConfigError(StoryGraphError):
    """Configuration loading or validation error."""

    pass


class ProjectError(StoryGraphError):
    """Project directory error."""

    pass


class AuthError(StoryGraphError):
    """Missing or expired access credential."""

    pass


class RemoteServiceError(StoryGraphError):
    """Remote analysis service returned a non-success response."""

    def __init__(self, service: str, message: str, status_code: int | None = None):
        self.service = service
        self.message = message
        self.status_code = status_code
        super().__init__(f"{service}: {message}")


class MissingMasterError(StoryGraphError):
    """Sync or export attempted without a resolvable master audio asset."""

    pass


class NormalizationError(StoryGraphError):
    """Malformed technical field.

    Normalization falls back to defaults instead of raising; the class exists
    so callers that want strict parsing can opt in.
    """

    pass


class StorageError(StoryGraphError):
    """Asset registry persistence failure."""

    pass


class PhaseActiveError(StoryGraphError):
    """A phase batch is already running."""

    pass


class ExportError(StoryGraphError):
    """Timeline export precondition or write error."""

    pass
