from __future__ import annotations

from pathlib import Path
from typing import Dict

from codeql_build_tracer.export import export_tracer_environment, format_env_file_entry


def test_export_updates_target_mapping() -> None:
    target: Dict[str, str] = {"KEEP": "yes", "A": "old"}

    export_tracer_environment({"A": "1", "B": "2"}, target=target)

    assert target == {"KEEP": "yes", "A": "1", "B": "2"}


def test_export_appends_to_env_file(tmp_path: Path) -> None:
    env_file = tmp_path / "github_env"
    env_file.write_text("EXISTING=1\n", encoding="utf-8")

    export_tracer_environment({"LD_PRELOAD": "/tools/${LIB}trace.so"}, target={}, env_file=env_file)

    assert env_file.read_text(encoding="utf-8") == "EXISTING=1\nLD_PRELOAD=/tools/${LIB}trace.so\n"


def test_multiline_values_use_delimiters() -> None:
    entry = format_env_file_entry("OPTS", "line one\nline two")

    header, first, second, footer, trailing = entry.split("\n")
    name, delimiter = header.split("<<")
    assert name == "OPTS"
    assert (first, second) == ("line one", "line two")
    assert footer == delimiter
    assert trailing == ""
