"""Access to per-language tracer environments reported by the CodeQL CLI."""

from __future__ import annotations

import json
import logging
import os
import subprocess
import sys
from pathlib import Path
from typing import Mapping, Optional, Protocol, Sequence

from .descriptor import TRACER_SPEC_VAR, TracerDescriptor
from .errors import EngineError
from .languages import Language, database_path
from .policy import filter_tracer_env

logger = logging.getLogger(__name__)

# Run under the tracer by ``database trace-command``; dumps the environment
# the tracer set up into the file named by its first argument.
_DUMP_ENV_SCRIPT = """\
import json
import os
import sys

with open(sys.argv[1], "w", encoding="utf-8") as handle:
    json.dump(dict(os.environ), handle)
"""


class TracerEnvSource(Protocol):
    """Anything able to report the tracer environment for a database."""

    def get_path(self) -> Path:
        ...

    def get_tracer_env(self, database_path: Path) -> Mapping[str, Optional[str]]:
        ...


class CodeQL:
    """Thin wrapper around the ``codeql`` executable."""

    def __init__(
        self,
        path: str | os.PathLike[str],
        *,
        extra_trace_options: Sequence[str] = (),
    ) -> None:
        self.path = Path(path)
        self.extra_trace_options = list(extra_trace_options)

    def get_path(self) -> Path:
        return self.path

    def get_tracer_env(self, database_path: Path) -> dict[str, str]:
        """Run a probe under the tracer and return the environment it observed."""
        working_dir = Path(database_path) / "working"
        working_dir.mkdir(parents=True, exist_ok=True)
        probe = working_dir / "tracer-env.py"
        probe.write_text(_DUMP_ENV_SCRIPT, encoding="utf-8")
        env_file = working_dir / "env.tmp"

        cmd = [
            str(self.path),
            "database",
            "trace-command",
            str(database_path),
            *self.extra_trace_options,
            sys.executable,
            str(probe),
            str(env_file),
        ]
        logger.debug("Querying tracer environment: %s", cmd)
        try:
            subprocess.run(cmd, check=True)
        except subprocess.CalledProcessError as exc:
            raise EngineError(
                f"codeql database trace-command exited with status {exc.returncode}"
            ) from exc
        except OSError as exc:
            raise EngineError(f"unable to run {self.path}: {exc}") from exc

        try:
            data = json.loads(env_file.read_text(encoding="utf-8"))
        except OSError as exc:
            raise EngineError(f"tracer environment was not written to {env_file}") from exc
        except json.JSONDecodeError as exc:
            raise EngineError(f"invalid JSON in tracer environment file {env_file}: {exc}") from exc

        if not isinstance(data, dict) or not all(
            isinstance(key, str) and isinstance(value, str) for key, value in data.items()
        ):
            raise EngineError(f"tracer environment in {env_file} is not a string mapping")
        return data


def descriptor_for_language(
    engine: TracerEnvSource,
    language: Language,
    temp_dir: str | os.PathLike[str],
    ambient_env: Mapping[str, str],
) -> TracerDescriptor:
    """Fetch the tracer descriptor of ``language`` from ``engine``.

    The engine is queried once for the language's database. Its spec path is
    taken from the spec variable and the remaining variables are filtered
    against ``ambient_env``.
    """
    env = engine.get_tracer_env(database_path(temp_dir, language))
    spec = env.get(TRACER_SPEC_VAR)
    if not spec:
        raise EngineError(f"tracer environment for {language} does not define {TRACER_SPEC_VAR}")
    kept = filter_tracer_env(env, ambient_env)
    logger.debug("Tracer environment for %s keeps %d variable(s)", language, len(kept))
    return TracerDescriptor(spec_path=Path(spec), env=kept)


__all__ = [
    "CodeQL",
    "TracerEnvSource",
    "descriptor_for_language",
]
