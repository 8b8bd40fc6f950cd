"""Exception hierarchy for build tracer setup.

Every error raised here is fatal to the current setup attempt. A compound
tracer configuration that silently lost one language would leave that
language's build steps untraced, so nothing is downgraded or retried.
"""

from __future__ import annotations

from pathlib import Path


class TracerSetupError(RuntimeError):
    """Base class for all build tracer setup failures."""


class ConfigError(TracerSetupError):
    """Raised when setup configuration is missing or invalid."""


class EngineError(TracerSetupError):
    """Raised when the analysis engine could not produce a tracer environment."""


class ConflictError(TracerSetupError):
    """Two languages disagree on the value of one tracer environment variable."""

    def __init__(self, name: str, first: str, second: str) -> None:
        super().__init__(
            f"Incompatible values in environment parameter {name}: {first} and {second}"
        )
        self.name = name
        self.first = first
        self.second = second


class MissingArtifactError(TracerSetupError):
    """A per-language spec file is absent or unreadable."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"unable to read tracer spec file {path}: {reason}")
        self.path = path


class SpecFormatError(TracerSetupError):
    """A tracer spec file does not follow the ``log, count, blocks`` layout."""


class EnvironmentFileError(TracerSetupError):
    """A compound environment file is truncated or malformed."""


class ProcessTreeExhaustedError(TracerSetupError):
    """The ancestor search ran out of processes before choosing a target."""


class InjectionFailure(TracerSetupError):
    """The native tracer could not be injected into the target process."""

    def __init__(self, message: str, returncode: int | None = None) -> None:
        super().__init__(message)
        self.returncode = returncode


__all__ = [
    "ConfigError",
    "ConflictError",
    "EngineError",
    "EnvironmentFileError",
    "InjectionFailure",
    "MissingArtifactError",
    "ProcessTreeExhaustedError",
    "SpecFormatError",
    "TracerSetupError",
]
