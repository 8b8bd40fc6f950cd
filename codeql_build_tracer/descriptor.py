"""Tracer descriptors exchanged between the engine, the merge and the exporters."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

# Variable through which the native tracer discovers its spec file.
TRACER_SPEC_VAR = "ODASA_TRACER_CONFIGURATION"


@dataclass(frozen=True)
class TracerDescriptor:
    """Tracer configuration for a single language.

    ``env`` holds the variables the tracer needs on top of the ambient
    environment and ``spec_path`` points at the language's spec file.
    """

    spec_path: Path
    env: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "spec_path", Path(self.spec_path))
        object.__setattr__(self, "env", MappingProxyType(dict(self.env)))


@dataclass
class CompoundTracerDescriptor:
    """Merged tracer configuration covering every traced language of a build.

    ``env`` is mutated in place by the platform augmenter before it is
    exported or handed to the injector.
    """

    env: dict[str, str]
    spec_path: Path

    @property
    def environment_path(self) -> Path:
        """Binary environment file written next to the spec."""
        return self.spec_path.with_name(self.spec_path.name + ".environment")


__all__ = [
    "CompoundTracerDescriptor",
    "TRACER_SPEC_VAR",
    "TracerDescriptor",
]
