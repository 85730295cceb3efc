"""
Error taxonomy for provisioning runs.

Every fatal condition raised by the core derives from ``StackupError``.
The CLI catches that single base class, prints ``message`` and ``hint``,
and exits with ``EXIT_ERROR``.  Nothing here is retried automatically.

    StackupError
    ├── LaunchError          tool missing / not executable
    ├── ProcessFailure       non-zero exit from build / stop / purge
    ├── OperationTimeout     no exit within the operation budget
    ├── PreconditionError    sync container not up
    ├── SyncFailure          monitor ended without a full sync
    ├── MutationError        env line rewrite rejected
    ├── PrerequisiteError    mandatory tool or daemon unavailable
    ├── ManifestError        dependency manifest unreadable
    └── EnvironmentFileError env template / nginx conf / Dockerfile missing
"""

from __future__ import annotations

EXIT_SUCCESS = 0
EXIT_ERROR = 1


class StackupError(Exception):
    """Base class for every fatal provisioning error.

    Args:
        message: What went wrong (usually the tool's captured output).
        hint: Operation-specific guidance shown after the message.
    """

    default_hint = ""

    def __init__(self, message: str = "", *, hint: str | None = None):
        super().__init__(message)
        self.message = message
        self.hint = self.default_hint if hint is None else hint


class LaunchError(StackupError):
    """The external tool could not be started at all."""


class ProcessFailure(StackupError):
    """A supervised operation exited with a non-zero code."""

    def __init__(
        self,
        message: str = "",
        *,
        hint: str | None = None,
        exit_code: int | None = None,
    ):
        super().__init__(message, hint=hint)
        self.exit_code = exit_code


class OperationTimeout(StackupError):
    """A supervised operation ran past its budget."""


class PreconditionError(StackupError):
    """The synchronization container is not running."""

    default_hint = "Start the environment first with `stackup start`."


class SyncFailure(StackupError):
    """File synchronization never reached a fully-synced state."""

    default_hint = (
        "Containers are still running. "
        "Check the situation with `mutagen sync monitor`."
    )


class MutationError(StackupError):
    """A configuration line could not be rewritten."""


class PrerequisiteError(StackupError):
    """A mandatory host tool is missing or not running."""


class ManifestError(StackupError):
    """The dependency manifest (composer.json) cannot be read."""


class EnvironmentFileError(StackupError):
    """A file the environment depends on is missing or unreadable."""
