"""Publishing the compound tracer environment to later build steps."""

from __future__ import annotations

import logging
import os
import uuid
from pathlib import Path
from typing import Mapping, MutableMapping, Optional

logger = logging.getLogger(__name__)


def format_env_file_entry(name: str, value: str) -> str:
    """Render one variable in the GitHub Actions ``$GITHUB_ENV`` syntax."""
    if "\n" not in value and "\r" not in value:
        return f"{name}={value}\n"
    delimiter = f"ghadelimiter_{uuid.uuid4()}"
    return f"{name}<<{delimiter}\n{value}\n{delimiter}\n"


def export_tracer_environment(
    env: Mapping[str, str],
    *,
    target: Optional[MutableMapping[str, str]] = None,
    env_file: str | os.PathLike[str] | None = None,
) -> None:
    """Apply ``env`` to ``target`` (the process environment by default).

    When ``env_file`` is set the variables are also appended to it so that
    subsequent CI steps inherit them.
    """
    if target is None:
        target = os.environ
    for name, value in env.items():
        target[name] = value

    if env_file is not None:
        path = Path(env_file)
        with open(path, "a", encoding="utf-8", newline="\n") as handle:
            for name, value in env.items():
                handle.write(format_env_file_entry(name, value))
        logger.debug("Appended %d variable(s) to %s", len(env), path)
    logger.info("Exported %d tracer variable(s)", len(env))


__all__ = ["export_tracer_environment", "format_env_file_entry"]
