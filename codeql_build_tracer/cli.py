"""Command line interface for preparing build tracing.

Usage:
    python -m codeql_build_tracer [options]

Options override the matching ``CODEQL_*`` / ``RUNNER_TEMP`` environment
variables (see :mod:`codeql_build_tracer.config`).

Examples:
    python -m codeql_build_tracer --codeql /opt/codeql/codeql --temp-dir /tmp/build --languages cpp,java
    python -m codeql_build_tracer --languages csharp --process-name msbuild.exe --json-errors
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

from .api import setup_build_tracing
from .config import TracerSetupConfig, load_config
from .engine import CodeQL
from .errors import ConfigError, TracerSetupError
from .injector import INJECTION_METHODS
from .log import configure_logging

logger = logging.getLogger(__name__)

EXIT_FAILURE = 1
EXIT_USAGE = 2


@dataclass
class CliConfig:
    overrides: dict[str, object] = field(default_factory=dict)
    json_errors: bool = False
    print_env: bool = False


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="codeql-build-tracer",
        description="Merge per-language tracer configurations and enable build tracing.",
    )
    parser.add_argument("--codeql", dest="codeql_path", type=Path, help="Path to the codeql executable.")
    parser.add_argument(
        "--temp-dir",
        dest="temp_dir",
        type=Path,
        help="Shared temporary directory holding databases and the compound spec.",
    )
    parser.add_argument(
        "--languages",
        dest="languages",
        help="Comma separated languages of the build; only traced ones are merged.",
    )
    parser.add_argument(
        "--process-name",
        dest="process_name",
        help="Windows only: inject into the nearest ancestor process with this name.",
    )
    parser.add_argument(
        "--process-level",
        dest="process_level",
        type=int,
        help="Windows only: inject into the ancestor this many levels up (default: 3).",
    )
    parser.add_argument(
        "--injection-method",
        dest="injection_method",
        choices=INJECTION_METHODS,
        help="Windows only: walk the process tree in a PowerShell script or in-process.",
    )
    parser.add_argument(
        "--ci-host",
        dest="ci_host_names",
        action="append",
        metavar="NAME",
        help="CI host process name that ends a depth search early. May be repeated.",
    )
    parser.add_argument(
        "--github-env",
        dest="github_env_file",
        type=Path,
        help="Append exported variables to this file (defaults to $GITHUB_ENV).",
    )
    parser.add_argument("--log-level", dest="log_level", help="Logging level (e.g. info, debug).")
    parser.add_argument("--log-file", dest="log_file", type=Path, help="Also write logs to this file.")
    parser.add_argument(
        "--json-errors",
        dest="json_errors",
        action="store_true",
        help="Emit a JSON error trailer on stderr for machine parsing.",
    )
    parser.add_argument(
        "--print-env",
        dest="print_env",
        action="store_true",
        help="Print the compound tracer environment as KEY=VALUE lines.",
    )
    return parser


def _parse_args(argv: Sequence[str]) -> CliConfig:
    parser = _build_parser()
    ns = parser.parse_args(list(argv))

    overrides: dict[str, object] = {}
    for key in (
        "codeql_path",
        "temp_dir",
        "languages",
        "process_name",
        "process_level",
        "injection_method",
        "github_env_file",
        "log_level",
        "log_file",
    ):
        value = getattr(ns, key)
        if value is None:
            continue
        overrides[key] = value.resolve() if isinstance(value, Path) else value
    if ns.ci_host_names:
        overrides["ci_host_names"] = tuple(ns.ci_host_names)

    return CliConfig(overrides=overrides, json_errors=ns.json_errors, print_env=ns.print_env)


def _report_error(exc: BaseException, json_errors: bool) -> None:
    if json_errors:
        trailer = {"error": {"kind": type(exc).__name__, "message": str(exc)}}
        sys.stderr.write(json.dumps(trailer) + "\n")
    else:
        sys.stderr.write(f"error: {exc}\n")


def _load(cli: CliConfig) -> TracerSetupConfig:
    config = load_config(overrides=cli.overrides)
    try:
        configure_logging(config.log_level, config.log_file)
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc
    except OSError as exc:
        raise ConfigError(f"unable to open log file {config.log_file}: {exc}") from exc
    return config


def main(argv: Sequence[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    cli = _parse_args(argv)

    try:
        config = _load(cli)
    except ConfigError as exc:
        _report_error(exc, cli.json_errors)
        return EXIT_USAGE

    try:
        compound = setup_build_tracing(config, CodeQL(config.codeql_path))
    except TracerSetupError as exc:
        logger.debug("Build tracing setup failed", exc_info=True)
        _report_error(exc, cli.json_errors)
        return EXIT_FAILURE

    if compound is None:
        logger.info("Build tracing not required")
        return 0
    if cli.print_env:
        for name, value in compound.env.items():
            sys.stdout.write(f"{name}={value}\n")
    return 0


__all__ = ["CliConfig", "main"]
