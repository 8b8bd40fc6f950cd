"""Reading and writing tracer spec files.

A spec file is line oriented: the first line names the tracer log file, the
second holds the number of blocks and everything after that is block payload
owned by the native tracer. The payload is kept verbatim, including a
trailing empty line when the file ends with a newline.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from .errors import MissingArtifactError, SpecFormatError

_LINE_SPLIT = re.compile(r"\r?\n")


@dataclass(frozen=True)
class TracerSpec:
    log_path: str
    block_count: int
    block_lines: tuple[str, ...]


def parse_spec(text: str, source: str | os.PathLike[str] = "<spec>") -> TracerSpec:
    lines = _LINE_SPLIT.split(text)
    if len(lines) < 2:
        raise SpecFormatError(f"tracer spec {source} has no block count line")
    try:
        count = int(lines[1].strip())
    except ValueError as exc:
        raise SpecFormatError(
            f"tracer spec {source} has an invalid block count: {lines[1]!r}"
        ) from exc
    return TracerSpec(log_path=lines[0], block_count=count, block_lines=tuple(lines[2:]))


def read_spec(path: Path) -> TracerSpec:
    """Load the spec file at ``path``."""
    try:
        raw = Path(path).read_bytes()
    except OSError as exc:
        raise MissingArtifactError(path, exc.strerror or str(exc)) from exc
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise MissingArtifactError(path, f"not valid UTF-8 ({exc})") from exc
    return parse_spec(text, path)


def render_spec(log_path: str | os.PathLike[str], block_count: int, block_lines: Sequence[str]) -> str:
    return "\n".join([os.fspath(log_path), str(block_count), *block_lines])


def write_spec(
    path: Path,
    log_path: str | os.PathLike[str],
    block_count: int,
    block_lines: Sequence[str],
) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_spec(log_path, block_count, block_lines), encoding="utf-8", newline="\n")
    return path


__all__ = [
    "TracerSpec",
    "parse_spec",
    "read_spec",
    "render_spec",
    "write_spec",
]
