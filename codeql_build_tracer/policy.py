"""Selection of engine-provided tracer variables worth propagating.

The engine reports its whole tracing environment, most of which the calling
process already has. Re-exporting those ambient variables could mask fixes a
wrapping process made for its own run, so only new variables, critical
tracer variables and engine-owned ``CODEQL_`` settings are kept.
"""

from __future__ import annotations

from typing import Mapping, Optional

from .descriptor import TRACER_SPEC_VAR

CRITICAL_TRACER_VARS = frozenset(
    {
        "SEMMLE_PRELOAD_libtrace",
        "SEMMLE_RUNNER",
        "SEMMLE_COPY_EXECUTABLES_ROOT",
        "SEMMLE_DEPTRACE_SOCKET",
        "SEMMLE_JAVA_TOOL_OPTIONS",
    }
)

ENGINE_VAR_PREFIX = "CODEQL_"


def should_keep(name: str, ambient_env: Mapping[str, str]) -> bool:
    """Decide whether ``name`` must be carried in a tracer environment."""
    if name not in ambient_env:
        return True
    if name in CRITICAL_TRACER_VARS:
        return True
    return name.startswith(ENGINE_VAR_PREFIX)


def filter_tracer_env(
    engine_env: Mapping[str, Optional[str]],
    ambient_env: Mapping[str, str],
) -> dict[str, str]:
    """Return the part of ``engine_env`` that has to be propagated.

    ``ambient_env`` is a snapshot of the calling process environment. The
    spec path variable is skipped since the merged spec replaces it.
    """
    kept: dict[str, str] = {}
    for name, value in engine_env.items():
        if name == TRACER_SPEC_VAR or value is None:
            continue
        if should_keep(name, ambient_env):
            kept[name] = value
    return kept


__all__ = [
    "CRITICAL_TRACER_VARS",
    "ENGINE_VAR_PREFIX",
    "filter_tracer_env",
    "should_keep",
]
