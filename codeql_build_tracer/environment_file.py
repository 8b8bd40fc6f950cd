"""Binary encoding of the compound tracer environment.

The native tracer reads the merged environment from ``<spec>.environment``
rather than from its own process environment. The layout is::

    uint32 count                       (little endian)
    count x (uint32 length, bytes)     bytes = UTF-8 "KEY=VALUE\\0"

where ``length`` includes the trailing NUL. Records are written straight to
the output sink, one at a time.
"""

from __future__ import annotations

import io
import struct
from pathlib import Path
from typing import BinaryIO, Mapping

from .errors import EnvironmentFileError

_U32 = struct.Struct("<I")


def encode_entry(name: str, value: str) -> bytes:
    return f"{name}={value}\0".encode("utf-8")


def write_environment(sink: BinaryIO, env: Mapping[str, str]) -> None:
    """Stream ``env`` into ``sink``, one length-prefixed record at a time."""
    sink.write(_U32.pack(len(env)))
    for name, value in env.items():
        record = encode_entry(name, value)
        sink.write(_U32.pack(len(record)))
        sink.write(record)


def encode_environment(env: Mapping[str, str]) -> bytes:
    buffer = io.BytesIO()
    write_environment(buffer, env)
    return buffer.getvalue()


def write_environment_file(path: Path, env: Mapping[str, str]) -> Path:
    with open(path, "wb") as handle:
        write_environment(handle, env)
    return Path(path)


def decode_environment(data: bytes) -> dict[str, str]:
    """Decode an environment blob back into a mapping, validating its framing."""
    view = memoryview(data)
    if len(view) < _U32.size:
        raise EnvironmentFileError("environment data is shorter than its entry count")
    (count,) = _U32.unpack_from(view, 0)
    offset = _U32.size
    env: dict[str, str] = {}
    for index in range(count):
        if offset + _U32.size > len(view):
            raise EnvironmentFileError(f"entry #{index} length is truncated")
        (length,) = _U32.unpack_from(view, offset)
        offset += _U32.size
        if offset + length > len(view):
            raise EnvironmentFileError(
                f"entry #{index} declares {length} bytes but only {len(view) - offset} remain"
            )
        record = bytes(view[offset : offset + length])
        offset += length
        if not record.endswith(b"\0"):
            raise EnvironmentFileError(f"entry #{index} is not NUL terminated")
        try:
            text = record[:-1].decode("utf-8")
        except UnicodeDecodeError as exc:
            raise EnvironmentFileError(f"entry #{index} is not valid UTF-8: {exc}") from exc
        name, sep, value = text.partition("=")
        if not sep:
            raise EnvironmentFileError(f"entry #{index} has no '=' separator")
        env[name] = value
    if offset != len(view):
        raise EnvironmentFileError(
            f"{len(view) - offset} trailing byte(s) after {count} entries"
        )
    return env


def load_environment_file(path: Path) -> dict[str, str]:
    try:
        data = Path(path).read_bytes()
    except FileNotFoundError as exc:
        raise EnvironmentFileError(f"environment file not found: {path}") from exc
    except OSError as exc:
        raise EnvironmentFileError(f"unable to read environment file: {path}") from exc
    return decode_environment(data)


__all__ = [
    "decode_environment",
    "encode_entry",
    "encode_environment",
    "load_environment_file",
    "write_environment",
    "write_environment_file",
]
