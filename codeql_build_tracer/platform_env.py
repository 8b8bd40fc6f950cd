"""Platform specific additions to the compound tracer environment."""

from __future__ import annotations

import os
import sys
from pathlib import Path

from .descriptor import TRACER_SPEC_VAR, CompoundTracerDescriptor

# Expanded by the dynamic loader at process start, not by us.
LINUX_PRELOAD_TEMPLATE = "${LIB}trace.so"


def requires_injection(platform: str = sys.platform) -> bool:
    """Return ``True`` where the tracer has to be injected instead of preloaded."""
    return platform == "win32"


def tools_dir(codeql_path: str | os.PathLike[str]) -> Path:
    return Path(codeql_path).parent / "tools"


def preload_variable(
    codeql_path: str | os.PathLike[str],
    platform: str = sys.platform,
) -> tuple[str, str] | None:
    """Loader variable and library that start the tracer in every child process."""
    if platform == "darwin":
        return "DYLD_INSERT_LIBRARIES", str(tools_dir(codeql_path) / "osx64" / "libtrace.dylib")
    if requires_injection(platform):
        return None
    return "LD_PRELOAD", str(tools_dir(codeql_path) / "linux64" / LINUX_PRELOAD_TEMPLATE)


def augment_for_platform(
    compound: CompoundTracerDescriptor,
    codeql_path: str | os.PathLike[str],
    platform: str = sys.platform,
) -> CompoundTracerDescriptor:
    """Add the spec handoff and preload variables to ``compound.env`` in place."""
    compound.env[TRACER_SPEC_VAR] = str(compound.spec_path)
    preload = preload_variable(codeql_path, platform)
    if preload is not None:
        name, value = preload
        compound.env[name] = value
    return compound


__all__ = [
    "LINUX_PRELOAD_TEMPLATE",
    "augment_for_platform",
    "preload_variable",
    "requires_injection",
    "tools_dir",
]
