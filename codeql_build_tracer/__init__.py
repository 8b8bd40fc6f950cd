"""Multi-language build tracer setup for CodeQL.

`codeql_build_tracer` merges the tracer configuration of every traced
language into one compound spec and environment, then makes the build pick
it up: through loader preload variables on Linux and macOS, and by injecting
the native tracer into an ancestor process on Windows.
"""

from .api import get_combined_tracer_config, setup_build_tracing
from .config import TracerSetupConfig, load_config
from .descriptor import CompoundTracerDescriptor, TracerDescriptor
from .engine import CodeQL, descriptor_for_language
from .errors import *  # re-export the exception hierarchy
from .errors import __all__ as _errors_all
from .languages import Language
from .merge import concat_tracer_configs

__all__ = [
    "CodeQL",
    "CompoundTracerDescriptor",
    "Language",
    "TracerDescriptor",
    "TracerSetupConfig",
    "concat_tracer_configs",
    "descriptor_for_language",
    "get_combined_tracer_config",
    "load_config",
    "setup_build_tracing",
    *_errors_all,
]
