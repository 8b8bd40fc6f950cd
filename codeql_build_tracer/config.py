"""Setup configuration sourced from environment variables and explicit overrides.

Environment variables are read first; explicit overrides (typically from the
command line) win over them. Recognised variables:

``CODEQL_PATH``
    Path to the ``codeql`` executable.
``CODEQL_TRACER_TEMP_DIR`` / ``RUNNER_TEMP``
    Shared per-build temporary directory.
``CODEQL_TRACER_LANGUAGES``
    Comma separated languages of the build.
``CODEQL_TRACER_PROCESS_NAME`` / ``CODEQL_TRACER_PROCESS_LEVEL``
    Injection target selection on Windows.
``CODEQL_TRACER_INJECTION_METHOD``
    ``script`` or ``native``.
``CODEQL_TRACER_CI_HOSTS``
    Comma separated CI host process names that stop a depth search.
``GITHUB_ENV``
    File receiving exported variables for later CI steps.
``CODEQL_TRACER_LOG_LEVEL`` / ``CODEQL_TRACER_LOG_FILE``
    Logging overrides.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Mapping, Optional

from .errors import ConfigError
from .injector import CI_HOST_PROCESS_NAMES, DEFAULT_INJECTION_METHOD, INJECTION_METHODS
from .languages import Language, parse_language

ENV_CODEQL_PATH = "CODEQL_PATH"
ENV_TEMP_DIR = "CODEQL_TRACER_TEMP_DIR"
ENV_RUNNER_TEMP = "RUNNER_TEMP"
ENV_LANGUAGES = "CODEQL_TRACER_LANGUAGES"
ENV_PROCESS_NAME = "CODEQL_TRACER_PROCESS_NAME"
ENV_PROCESS_LEVEL = "CODEQL_TRACER_PROCESS_LEVEL"
ENV_INJECTION_METHOD = "CODEQL_TRACER_INJECTION_METHOD"
ENV_CI_HOSTS = "CODEQL_TRACER_CI_HOSTS"
ENV_GITHUB_ENV = "GITHUB_ENV"
ENV_LOG_LEVEL = "CODEQL_TRACER_LOG_LEVEL"
ENV_LOG_FILE = "CODEQL_TRACER_LOG_FILE"


@dataclass
class TracerSetupConfig:
    codeql_path: Path
    temp_dir: Path
    languages: list[Language] = field(default_factory=list)
    process_name: Optional[str] = None
    process_level: Optional[int] = None
    injection_method: str = DEFAULT_INJECTION_METHOD
    ci_host_names: tuple[str, ...] = CI_HOST_PROCESS_NAMES
    github_env_file: Optional[Path] = None
    log_level: Optional[str] = None
    log_file: Optional[Path] = None


def parse_languages(value: str) -> list[Language]:
    languages: list[Language] = []
    for raw in value.split(","):
        if not raw.strip():
            continue
        language = parse_language(raw)
        if language is None:
            raise ConfigError(f"unknown language '{raw.strip()}'")
        if language not in languages:
            languages.append(language)
    return languages


def _parse_level(value: object) -> int:
    try:
        level = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"process level must be an integer, got {value!r}") from exc
    if level < 0:
        raise ConfigError(f"process level must not be negative, got {level}")
    return level


def _split_names(value: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in value.split(",") if part.strip())


def _values_from_env(environ: Mapping[str, str]) -> dict[str, object]:
    values: dict[str, object] = {}
    if environ.get(ENV_CODEQL_PATH):
        values["codeql_path"] = environ[ENV_CODEQL_PATH]
    temp_dir = environ.get(ENV_TEMP_DIR) or environ.get(ENV_RUNNER_TEMP)
    if temp_dir:
        values["temp_dir"] = temp_dir
    if environ.get(ENV_LANGUAGES):
        values["languages"] = environ[ENV_LANGUAGES]
    if environ.get(ENV_PROCESS_NAME):
        values["process_name"] = environ[ENV_PROCESS_NAME]
    if environ.get(ENV_PROCESS_LEVEL):
        values["process_level"] = environ[ENV_PROCESS_LEVEL]
    if environ.get(ENV_INJECTION_METHOD):
        values["injection_method"] = environ[ENV_INJECTION_METHOD]
    if environ.get(ENV_CI_HOSTS):
        values["ci_host_names"] = _split_names(environ[ENV_CI_HOSTS])
    if environ.get(ENV_GITHUB_ENV):
        values["github_env_file"] = environ[ENV_GITHUB_ENV]
    if environ.get(ENV_LOG_LEVEL):
        values["log_level"] = environ[ENV_LOG_LEVEL]
    if environ.get(ENV_LOG_FILE):
        values["log_file"] = environ[ENV_LOG_FILE]
    return values


def _coerce(values: Mapping[str, object]) -> dict[str, object]:
    normalized: dict[str, object] = {}
    for key, raw_value in values.items():
        if key in {"codeql_path", "temp_dir", "github_env_file", "log_file"}:
            normalized[key] = Path(os.fspath(raw_value)).expanduser()  # type: ignore[arg-type]
        elif key == "languages" and isinstance(raw_value, str):
            normalized[key] = parse_languages(raw_value)
        elif key == "languages":
            normalized[key] = list(raw_value)  # type: ignore[call-overload]
        elif key == "process_level":
            normalized[key] = _parse_level(raw_value)
        elif key == "injection_method":
            method = str(raw_value).lower()
            if method not in INJECTION_METHODS:
                raise ConfigError(
                    f"unsupported injection method '{raw_value}'. "
                    f"Expected one of: {', '.join(INJECTION_METHODS)}"
                )
            normalized[key] = method
        elif key == "ci_host_names" and isinstance(raw_value, str):
            normalized[key] = _split_names(raw_value)
        elif key == "ci_host_names":
            normalized[key] = tuple(raw_value)  # type: ignore[arg-type]
        else:
            normalized[key] = raw_value
    return normalized


def load_config(
    environ: Optional[Mapping[str, str]] = None,
    overrides: Optional[Mapping[str, object]] = None,
) -> TracerSetupConfig:
    """Build a :class:`TracerSetupConfig` from ``environ`` and ``overrides``.

    ``environ`` defaults to ``os.environ``. ``None`` values in ``overrides``
    are ignored so unset command line options keep the environment value.

    Raises
    ------
    ConfigError
        A required setting is missing or a value does not parse.
    """
    if environ is None:
        environ = os.environ
    known = {f.name for f in fields(TracerSetupConfig)}
    values = _values_from_env(environ)
    for key, value in (overrides or {}).items():
        if key not in known:
            raise ConfigError(f"unknown configuration key '{key}'")
        if value is not None:
            values[key] = value

    for required, hint in (("codeql_path", ENV_CODEQL_PATH), ("temp_dir", ENV_RUNNER_TEMP)):
        if required not in values:
            raise ConfigError(f"missing {required.replace('_', ' ')}; set {hint} or pass it explicitly")

    return TracerSetupConfig(**_coerce(values))  # type: ignore[arg-type]


__all__ = [
    "TracerSetupConfig",
    "load_config",
    "parse_languages",
]
