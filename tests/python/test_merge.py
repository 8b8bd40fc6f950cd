from __future__ import annotations

from pathlib import Path
from typing import List, Mapping

import pytest

from codeql_build_tracer.descriptor import TracerDescriptor
from codeql_build_tracer.environment_file import load_environment_file
from codeql_build_tracer.errors import ConflictError, MissingArtifactError, SpecFormatError
from codeql_build_tracer.languages import Language
from codeql_build_tracer.merge import (
    COPY_EXECUTABLES_VAR,
    concat_tracer_configs,
    order_languages,
)
from codeql_build_tracer.spec_file import read_spec


def _write_spec(tmp_path: Path, name: str, count: int, blocks: List[str]) -> Path:
    path = tmp_path / "specs" / f"{name}.spec"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join([f"/logs/{name}.log", str(count), *blocks]), encoding="utf-8")
    return path


def _descriptor(
    tmp_path: Path,
    name: str,
    env: Mapping[str, str],
    count: int = 1,
    blocks: List[str] | None = None,
) -> TracerDescriptor:
    if blocks is None:
        blocks = [f"{name}-block"]
    return TracerDescriptor(spec_path=_write_spec(tmp_path, name, count, blocks), env=env)


def test_empty_input_returns_none_and_writes_nothing(tmp_path: Path) -> None:
    out = tmp_path / "out"
    out.mkdir()

    assert concat_tracer_configs({}, out) is None
    assert list(out.iterdir()) == []


def test_python_and_cpp_merge_with_cpp_last(tmp_path: Path) -> None:
    descriptors = {
        Language.CPP: _descriptor(tmp_path, "cpp", {"B": "2"}, 2, ["c1", "c2"]),
        Language.JAVA: _descriptor(tmp_path, "java", {"A": "1"}, 1, ["j1"]),
    }
    out = tmp_path / "out"

    compound = concat_tracer_configs(descriptors, out)

    assert compound is not None
    assert compound.env == {"A": "1", "B": "2"}
    spec = read_spec(compound.spec_path)
    assert spec.log_path == str((out / "compound-build-tracer.log").resolve())
    assert spec.block_count == 3
    assert spec.block_lines == ("j1", "c1", "c2")


def test_cpp_blocks_are_final_segment_regardless_of_position(tmp_path: Path) -> None:
    cpp = _descriptor(tmp_path, "cpp", {}, 1, ["cpp-a", "cpp-b"])
    java = _descriptor(tmp_path, "java", {}, 1, ["java-a"])
    csharp = _descriptor(tmp_path, "csharp", {}, 1, ["cs-a"])

    for ordering in (
        {Language.CPP: cpp, Language.JAVA: java, Language.CSHARP: csharp},
        {Language.JAVA: java, Language.CPP: cpp, Language.CSHARP: csharp},
        {Language.JAVA: java, Language.CSHARP: csharp, Language.CPP: cpp},
    ):
        compound = concat_tracer_configs(ordering, tmp_path / "out")
        assert compound is not None
        lines = read_spec(compound.spec_path).block_lines
        assert lines[-2:] == ("cpp-a", "cpp-b")
        assert sorted(lines[:-2]) == ["cs-a", "java-a"]


def test_order_languages_keeps_relative_order_of_others() -> None:
    order = order_languages([Language.CPP, Language.JAVA, Language.CSHARP])

    assert order == [Language.JAVA, Language.CSHARP, Language.CPP]


def test_conflicting_values_raise_naming_both_values(tmp_path: Path) -> None:
    first = _descriptor(tmp_path, "java", {"X": "1"})
    second = _descriptor(tmp_path, "csharp", {"X": "2"})

    for descriptors in (
        {Language.JAVA: first, Language.CSHARP: second},
        {Language.CSHARP: second, Language.JAVA: first},
    ):
        with pytest.raises(ConflictError) as excinfo:
            concat_tracer_configs(descriptors, tmp_path / "out")
        message = str(excinfo.value)
        assert "X" in message
        assert "1" in message and "2" in message
        assert excinfo.value.name == "X"


def test_repeated_identical_values_are_accepted(tmp_path: Path) -> None:
    descriptors = {
        Language.JAVA: _descriptor(tmp_path, "java", {"SHARED": "same", "J": "j"}),
        Language.CSHARP: _descriptor(tmp_path, "csharp", {"SHARED": "same", "C": "c"}),
    }

    compound = concat_tracer_configs(descriptors, tmp_path / "out")

    assert compound is not None
    assert compound.env == {"SHARED": "same", "J": "j", "C": "c"}


def test_merged_env_is_union_independent_of_order(tmp_path: Path) -> None:
    java = _descriptor(tmp_path, "java", {"J1": "a", "J2": "b"})
    csharp = _descriptor(tmp_path, "csharp", {"C1": "c"})

    forward = concat_tracer_configs({Language.JAVA: java, Language.CSHARP: csharp}, tmp_path / "f")
    backward = concat_tracer_configs({Language.CSHARP: csharp, Language.JAVA: java}, tmp_path / "b")

    assert forward is not None and backward is not None
    assert forward.env == backward.env == {"J1": "a", "J2": "b", "C1": "c"}


def test_block_counts_and_lines_are_summed(tmp_path: Path) -> None:
    descriptors = {
        Language.JAVA: _descriptor(tmp_path, "java", {}, 2, ["j1", "j2", "j3"]),
        Language.CSHARP: _descriptor(tmp_path, "csharp", {}, 4, ["c1"]),
    }

    compound = concat_tracer_configs(descriptors, tmp_path / "out")

    assert compound is not None
    spec = read_spec(compound.spec_path)
    assert spec.block_count == 6
    # Lines past the declared count are carried along verbatim.
    assert spec.block_lines == ("j1", "j2", "j3", "c1")


def test_crlf_spec_files_are_accepted(tmp_path: Path) -> None:
    spec_path = tmp_path / "windows.spec"
    spec_path.write_bytes(b"C:\\log.txt\r\n2\r\nblock one\r\nblock two")
    descriptors = {Language.CSHARP: TracerDescriptor(spec_path=spec_path, env={})}

    compound = concat_tracer_configs(descriptors, tmp_path / "out")

    assert compound is not None
    assert read_spec(compound.spec_path).block_lines == ("block one", "block two")


def test_copy_executables_root_becomes_synthetic_entry(tmp_path: Path) -> None:
    descriptors = {
        Language.JAVA: _descriptor(tmp_path, "java", {COPY_EXECUTABLES_VAR: "/java/copy", "A": "1"}),
        Language.CPP: _descriptor(tmp_path, "cpp", {COPY_EXECUTABLES_VAR: "/cpp/copy"}),
    }
    out = tmp_path / "out"

    compound = concat_tracer_configs(descriptors, out)

    assert compound is not None
    assert compound.env == {
        "A": "1",
        COPY_EXECUTABLES_VAR: str((out / "compound-temp").resolve()),
    }
    decoded = load_environment_file(compound.environment_path)
    assert decoded == compound.env
    assert compound.environment_path.read_bytes()[:4] == (2).to_bytes(4, "little")


def test_environment_file_matches_merged_env(tmp_path: Path) -> None:
    descriptors = {
        Language.JAVA: _descriptor(tmp_path, "java", {"SEMMLE_JAVA_TOOL_OPTIONS": "-javaagent:x"}),
        Language.CSHARP: _descriptor(tmp_path, "csharp", {"CODEQL_EXTRACTOR_CSHARP_ROOT": "/cs"}),
    }

    compound = concat_tracer_configs(descriptors, tmp_path / "out")

    assert compound is not None
    assert compound.environment_path == compound.spec_path.with_name("compound-spec.environment")
    assert load_environment_file(compound.environment_path) == compound.env


def test_missing_spec_file_is_fatal(tmp_path: Path) -> None:
    descriptors = {
        Language.JAVA: TracerDescriptor(spec_path=tmp_path / "absent.spec", env={"A": "1"}),
    }

    with pytest.raises(MissingArtifactError):
        concat_tracer_configs(descriptors, tmp_path / "out")


def test_invalid_block_count_is_fatal(tmp_path: Path) -> None:
    spec_path = tmp_path / "broken.spec"
    spec_path.write_text("/log\nnot-a-number\nblock\n", encoding="utf-8")

    with pytest.raises(SpecFormatError):
        concat_tracer_configs(
            {Language.JAVA: TracerDescriptor(spec_path=spec_path, env={})}, tmp_path / "out"
        )
