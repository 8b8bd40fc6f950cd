"""CLI helper to dump and validate a compound tracer ``.environment`` file."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Sequence

from codeql_build_tracer.environment_file import load_environment_file
from codeql_build_tracer.errors import EnvironmentFileError


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Decode the binary environment file written next to a compound tracer spec.",
    )
    parser.add_argument(
        "environment",
        type=Path,
        help="Path to compound-spec.environment",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the decoded variables as a JSON object instead of KEY=VALUE lines.",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        env = load_environment_file(args.environment)
    except EnvironmentFileError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    if args.json:
        print(json.dumps(env, indent=2))
        return 0

    for name, value in env.items():
        print(f"{name}={value}")
    print(f"{len(env)} variable(s) decoded.", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
