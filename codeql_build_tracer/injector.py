"""Injecting the native tracer into a running ancestor process (Windows).

Windows has no loader variable that makes child processes start the tracer,
so the tracer is attached to a long-lived ancestor instead. Every process
that ancestor spawns afterwards, hopefully including the build, is traced.

Picking the ancestor is a best-effort walk up the process tree, either to
the nearest process with a given name or to a fixed number of levels up.
The walk is a small state machine::

    Searching(pid) -> Found(pid) | Exhausted

driven by a ``ProcessQuery`` (``pid -> ProcessInfo | None``). The tree can
change between the walk and the injection; nothing here guards against that.

The walk can run in-process through ``psutil`` (``native``) or inside a
generated PowerShell script (``script``) that calls the tracer itself.
"""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Mapping, Optional, Sequence, Union

import psutil

from .descriptor import TRACER_SPEC_VAR, CompoundTracerDescriptor
from .errors import ConfigError, InjectionFailure, ProcessTreeExhaustedError
from .platform_env import tools_dir

logger = logging.getLogger(__name__)

DEFAULT_PROCESS_LEVEL = 3
# CI hosts for which the fixed depth is known to be wrong; the walk stops there.
CI_HOST_PROCESS_NAMES: tuple[str, ...] = ("Runner.Worker.exe",)

INJECTION_METHODS = ("script", "native")
DEFAULT_INJECTION_METHOD = "script"
INJECT_SCRIPT_NAME = "inject-tracer.ps1"


@dataclass(frozen=True)
class ProcessInfo:
    pid: int
    parent_pid: int
    name: str


ProcessQuery = Callable[[int], Optional[ProcessInfo]]


def psutil_process_query(pid: int) -> Optional[ProcessInfo]:
    """Look ``pid`` up with psutil; vanished or inaccessible processes are absent."""
    try:
        proc = psutil.Process(pid)
        with proc.oneshot():
            return ProcessInfo(pid=pid, parent_pid=proc.ppid(), name=proc.name())
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        return None


# --------------------------------------------------------------------- states
@dataclass(frozen=True)
class Searching:
    pid: int
    step: int = 0


@dataclass(frozen=True)
class Found:
    pid: int
    reason: str


@dataclass(frozen=True)
class Exhausted:
    message: str


SearchState = Union[Searching, Found, Exhausted]


# ---------------------------------------------------------------------- modes
class ByName:
    """Walk upwards until a process called ``name`` is reached.

    Names compare case-insensitively, as Windows process names do.
    """

    limit: Optional[int] = None

    def __init__(self, name: str) -> None:
        self.name = name
        self._folded = name.casefold()

    def advance(self, state: Searching, record: Optional[ProcessInfo]) -> SearchState:
        if record is None:
            return Exhausted(f"Could not determine {self.name} process")
        if record.name.casefold() == self._folded:
            return Found(record.pid, f"matched process name {self.name}")
        return Searching(record.parent_pid, state.step + 1)

    def __repr__(self) -> str:
        return f"ByName({self.name!r})"


class ByDepth:
    """Walk ``depth + 1`` levels upwards, stopping early at a known CI host."""

    def __init__(
        self,
        depth: int = DEFAULT_PROCESS_LEVEL,
        host_names: Sequence[str] = CI_HOST_PROCESS_NAMES,
    ) -> None:
        if depth < 0:
            raise ConfigError(f"process level must not be negative, got {depth}")
        self.depth = depth
        self.host_names = tuple(host_names)
        self._folded_hosts = frozenset(name.casefold() for name in self.host_names)

    @property
    def limit(self) -> int:
        return self.depth + 1

    def advance(self, state: Searching, record: Optional[ProcessInfo]) -> SearchState:
        if record is None:
            return Exhausted("Process tree ended before reaching required level")
        if record.name.casefold() in self._folded_hosts:
            return Found(record.pid, f"reached CI host process {record.name}")
        return Searching(record.parent_pid, state.step + 1)

    def __repr__(self) -> str:
        return f"ByDepth({self.depth}, host_names={self.host_names!r})"


SearchMode = Union[ByName, ByDepth]


def search_mode(
    process_name: Optional[str] = None,
    process_level: Optional[int] = None,
    host_names: Sequence[str] = CI_HOST_PROCESS_NAMES,
) -> SearchMode:
    """Choose the walk: by name when one is given, otherwise by depth."""
    if process_name:
        return ByName(process_name)
    depth = DEFAULT_PROCESS_LEVEL if process_level is None else process_level
    return ByDepth(depth, host_names)


class AncestorSearch:
    """Drive a search mode over the live process tree."""

    def __init__(self, mode: SearchMode, query: ProcessQuery = psutil_process_query) -> None:
        self.mode = mode
        self.query = query

    def step(self, state: Searching) -> SearchState:
        limit = self.mode.limit
        if limit is not None and state.step >= limit:
            return Found(state.pid, f"reached ancestor level {state.step}")
        record = self.query(state.pid)
        logger.debug("Ancestor %d: %s", state.step, record)
        return self.mode.advance(state, record)

    def run(self, start_pid: int) -> int:
        """Return the pid to inject into, raising if the tree runs out."""
        state: SearchState = Searching(start_pid)
        seen: set[int] = set()
        while isinstance(state, Searching):
            if self.mode.limit is None:
                if state.pid in seen:
                    state = Exhausted(f"process tree loops back to pid {state.pid}")
                    break
                seen.add(state.pid)
            state = self.step(state)

        if isinstance(state, Exhausted):
            raise ProcessTreeExhaustedError(state.message)
        logger.info("Selected process %d for tracer injection (%s)", state.pid, state.reason)
        return state.pid


# --------------------------------------------------------------------- script
def _ps_string(value: str) -> str:
    escaped = value.replace("`", "``").replace('"', '`"').replace("$", "`$")
    return f'"{escaped}"'


_SCRIPT_HEADER = """
Param(
    [Parameter(Position=0)]
    [String]
    $tracer
)

$id = $PID
"""

_SCRIPT_FOOTER = """
Write-Host "Final process: $p"

Invoke-Expression "&$tracer --inject=$id"
"""


def render_injection_script(mode: SearchMode) -> str:
    """PowerShell equivalent of :class:`AncestorSearch` that also runs the tracer."""
    if isinstance(mode, ByName):
        name = _ps_string(mode.name)
        message = _ps_string(f"Could not determine {mode.name} process")
        body = f"""
while ($true) {{
  $p = Get-CimInstance -Class Win32_Process -Filter "ProcessId = $id"
  Write-Host "Found process: $p"
  if ($p -eq $null) {{
    throw {message}
  }}
  if ($p[0].Name -eq {name}) {{
    Break
  }} else {{
    $id = $p[0].ParentProcessId
  }}
}}"""
    else:
        hosts = ", ".join(_ps_string(host) for host in mode.host_names)
        body = f"""
$hosts = @({hosts})
for ($i = 0; $i -le {mode.depth}; $i++) {{
  $p = Get-CimInstance -Class Win32_Process -Filter "ProcessId = $id"
  Write-Host "Parent process ${{i}}: $p"
  if ($p -eq $null) {{
    throw "Process tree ended before reaching required level"
  }}
  if ($hosts -contains $p[0].Name) {{
    Write-Host "Found CI host process $($p[0].Name)"
    Write-Host "Aborting search early and using process: $p"
    Break
  }} else {{
    $id = $p[0].ParentProcessId
  }}
}}"""
    return _SCRIPT_HEADER + body + "\n" + _SCRIPT_FOOTER


# ------------------------------------------------------------------ injection
def tracer_executable(codeql_path: str | os.PathLike[str]) -> Path:
    return (tools_dir(codeql_path) / "win64" / "tracer.exe").resolve()


def _handoff_env(spec_path: Path, base_env: Optional[Mapping[str, str]]) -> dict[str, str]:
    env = dict(os.environ if base_env is None else base_env)
    env[TRACER_SPEC_VAR] = str(spec_path)
    return env


def _run_injection(cmd: Sequence[str], env: Mapping[str, str]) -> None:
    logger.debug("Running tracer injection: %s", cmd)
    try:
        result = subprocess.run(list(cmd), env=dict(env), check=False)
    except OSError as exc:
        raise InjectionFailure(f"unable to run {cmd[0]}: {exc}") from exc
    if result.returncode != 0:
        raise InjectionFailure(
            f"tracer injection exited with status {result.returncode}",
            returncode=result.returncode,
        )


def inject_into_process(
    tracer: Path,
    pid: int,
    spec_path: Path,
    base_env: Optional[Mapping[str, str]] = None,
) -> None:
    """Ask the native tracer to attach to ``pid``."""
    _run_injection([str(tracer), f"--inject={pid}"], _handoff_env(spec_path, base_env))


def write_injection_script(temp_dir: str | os.PathLike[str], mode: SearchMode) -> Path:
    path = Path(temp_dir) / INJECT_SCRIPT_NAME
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_injection_script(mode), encoding="utf-8")
    return path


def inject_tracer(
    compound: CompoundTracerDescriptor,
    codeql_path: str | os.PathLike[str],
    temp_dir: str | os.PathLike[str],
    *,
    process_name: Optional[str] = None,
    process_level: Optional[int] = None,
    method: str = DEFAULT_INJECTION_METHOD,
    host_names: Sequence[str] = CI_HOST_PROCESS_NAMES,
    query: ProcessQuery = psutil_process_query,
    start_pid: Optional[int] = None,
    base_env: Optional[Mapping[str, str]] = None,
) -> None:
    """Inject the tracer into an ancestor so later build steps are traced.

    If ``process_name`` is given the nearest ancestor with that name is
    used. Otherwise the ``process_level``-th ancestor (default 3) is used,
    unless a CI host process from ``host_names`` is met first.
    """
    mode = search_mode(process_name, process_level, host_names)
    tracer = tracer_executable(codeql_path)
    logger.info("Injecting tracer %s using %s search (%s)", tracer, mode, method)

    if method == "native":
        pid = AncestorSearch(mode, query).run(os.getpid() if start_pid is None else start_pid)
        inject_into_process(tracer, pid, compound.spec_path, base_env)
    elif method == "script":
        script = write_injection_script(temp_dir, mode)
        _run_injection(
            ["powershell", "-ExecutionPolicy", "Bypass", "-file", str(script), str(tracer)],
            _handoff_env(compound.spec_path, base_env),
        )
    else:
        raise ConfigError(
            f"unsupported injection method '{method}'. Expected one of: {', '.join(INJECTION_METHODS)}"
        )


__all__ = [
    "AncestorSearch",
    "ByDepth",
    "ByName",
    "CI_HOST_PROCESS_NAMES",
    "DEFAULT_INJECTION_METHOD",
    "DEFAULT_PROCESS_LEVEL",
    "Exhausted",
    "Found",
    "INJECTION_METHODS",
    "INJECT_SCRIPT_NAME",
    "ProcessInfo",
    "ProcessQuery",
    "Searching",
    "inject_into_process",
    "inject_tracer",
    "psutil_process_query",
    "render_injection_script",
    "search_mode",
    "tracer_executable",
    "write_injection_script",
]
