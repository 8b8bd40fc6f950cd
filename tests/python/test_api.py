from __future__ import annotations

import functools
import os
from pathlib import Path
from typing import Dict, List, Mapping

import pytest

from codeql_build_tracer import api
from codeql_build_tracer.config import TracerSetupConfig
from codeql_build_tracer.environment_file import load_environment_file
from codeql_build_tracer.errors import ConflictError
from codeql_build_tracer.export import export_tracer_environment
from codeql_build_tracer.languages import Language
from codeql_build_tracer.spec_file import read_spec


class SpecWritingEngine:
    """Engine double that writes one spec per database it is asked about."""

    def __init__(self, root: Path, envs: Mapping[str, Dict[str, str]]) -> None:
        self.root = root
        self.envs = envs
        self.queried: List[str] = []

    def get_path(self) -> Path:
        return self.root / "codeql" / "codeql"

    def get_tracer_env(self, database_path: Path) -> Dict[str, str]:
        language = database_path.name
        self.queried.append(language)
        spec = self.root / "specs" / f"{language}.spec"
        spec.parent.mkdir(parents=True, exist_ok=True)
        spec.write_text(f"/log/{language}\n1\n{language}-block", encoding="utf-8")
        return {"ODASA_TRACER_CONFIGURATION": str(spec), **self.envs.get(language, {})}


def _config(tmp_path: Path, languages: List[Language]) -> TracerSetupConfig:
    return TracerSetupConfig(
        codeql_path=tmp_path / "codeql" / "codeql",
        temp_dir=tmp_path / "run",
        languages=languages,
    )


def test_untraced_languages_produce_no_config(tmp_path: Path) -> None:
    engine = SpecWritingEngine(tmp_path, {})

    result = api.get_combined_tracer_config(
        _config(tmp_path, [Language.PYTHON, Language.JAVASCRIPT]), engine
    )

    assert result is None
    assert engine.queried == []
    assert not (tmp_path / "run").exists()


def test_combined_config_merges_traced_languages_only(tmp_path: Path) -> None:
    engine = SpecWritingEngine(
        tmp_path,
        {"cpp": {"CPP_ONLY": "c"}, "java": {"JAVA_ONLY": "j", "PATH": "/engine"}},
    )

    compound = api.get_combined_tracer_config(
        _config(tmp_path, [Language.CPP, Language.PYTHON, Language.JAVA]),
        engine,
        ambient_env={"PATH": "/bin"},
        platform="linux",
    )

    assert compound is not None
    assert engine.queried == ["cpp", "java"]
    assert read_spec(compound.spec_path).block_lines == ("java-block", "cpp-block")
    assert compound.env["CPP_ONLY"] == "c"
    assert compound.env["JAVA_ONLY"] == "j"
    assert "PATH" not in compound.env
    assert compound.env["ODASA_TRACER_CONFIGURATION"] == str(compound.spec_path)
    assert compound.env["LD_PRELOAD"].endswith("${LIB}trace.so")
    # The binary file is written before platform variables are added.
    assert load_environment_file(compound.environment_path) == {"CPP_ONLY": "c", "JAVA_ONLY": "j"}


def test_conflicts_abort_setup(tmp_path: Path) -> None:
    engine = SpecWritingEngine(tmp_path, {"cpp": {"X": "1"}, "csharp": {"X": "2"}})

    with pytest.raises(ConflictError):
        api.get_combined_tracer_config(
            _config(tmp_path, [Language.CPP, Language.CSHARP]), engine, ambient_env={}
        )


def test_setup_exports_environment_on_posix(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("JAVA_ONLY", raising=False)
    engine = SpecWritingEngine(tmp_path, {"java": {"JAVA_ONLY": "j"}})
    config = _config(tmp_path, [Language.JAVA])
    config.github_env_file = tmp_path / "github_env"

    def no_injection(*args: object, **kwargs: object) -> None:
        raise AssertionError("injection must not run on linux")

    process_env: Dict[str, str] = {}
    monkeypatch.setattr(api, "inject_tracer", no_injection)
    monkeypatch.setattr(
        api,
        "export_tracer_environment",
        functools.partial(export_tracer_environment, target=process_env),
    )

    compound = api.setup_build_tracing(config, engine, platform="linux")

    assert compound is not None
    assert process_env == compound.env
    assert process_env["JAVA_ONLY"] == "j"
    assert "JAVA_ONLY" not in os.environ
    exported = (tmp_path / "github_env").read_text(encoding="utf-8")
    assert "JAVA_ONLY=j\n" in exported
    assert f"ODASA_TRACER_CONFIGURATION={compound.spec_path}\n" in exported


def test_setup_injects_on_windows(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    engine = SpecWritingEngine(tmp_path, {"csharp": {"CS_ONLY": "1"}})
    config = _config(tmp_path, [Language.CSHARP])
    config.process_name = "Runner.Worker.exe"
    calls: List[Dict[str, object]] = []

    def record_injection(compound, codeql_path, temp_dir, **kwargs):  # type: ignore[no-untyped-def]
        calls.append({"compound": compound, "codeql_path": codeql_path, "temp_dir": temp_dir, **kwargs})

    exported: Dict[str, str] = {}
    monkeypatch.setattr(api, "inject_tracer", record_injection)
    monkeypatch.setattr(
        api,
        "export_tracer_environment",
        lambda env, env_file=None: exported.update(env),
    )

    compound = api.setup_build_tracing(config, engine, platform="win32")

    assert compound is not None
    assert "LD_PRELOAD" not in compound.env
    assert exported == compound.env
    assert len(calls) == 1
    assert calls[0]["compound"] is compound
    assert calls[0]["process_name"] == "Runner.Worker.exe"
    assert calls[0]["method"] == "script"
    assert calls[0]["temp_dir"] == tmp_path / "run"
