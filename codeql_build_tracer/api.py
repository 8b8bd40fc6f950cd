"""High-level build tracing setup.

``get_combined_tracer_config`` produces the compound tracer configuration for
a build and ``setup_build_tracing`` additionally publishes it: the variables
are exported so child processes start the tracer, and on Windows the tracer is
injected into an ancestor process as well.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Mapping, Optional

from .config import TracerSetupConfig
from .descriptor import CompoundTracerDescriptor, TracerDescriptor
from .engine import TracerEnvSource, descriptor_for_language
from .export import export_tracer_environment
from .injector import ProcessQuery, inject_tracer, psutil_process_query
from .languages import Language, traced_languages
from .merge import concat_tracer_configs
from .platform_env import augment_for_platform, requires_injection

logger = logging.getLogger(__name__)


def get_combined_tracer_config(
    config: TracerSetupConfig,
    engine: TracerEnvSource,
    *,
    ambient_env: Optional[Mapping[str, str]] = None,
    platform: str = sys.platform,
) -> Optional[CompoundTracerDescriptor]:
    """Return the platform-augmented compound tracer configuration.

    Only the traced languages of ``config.languages`` take part. ``None`` is
    returned when there are none, and nothing is written in that case.
    ``ambient_env`` is the environment snapshot used to decide which engine
    variables to keep; it defaults to a copy of ``os.environ``.
    """
    languages = traced_languages(config.languages)
    if not languages:
        logger.info("No traced languages among %s", ", ".join(map(str, config.languages)) or "<none>")
        return None

    if ambient_env is None:
        ambient_env = dict(os.environ)
    descriptors: dict[Language, TracerDescriptor] = {}
    for language in languages:
        descriptors[language] = descriptor_for_language(
            engine, language, config.temp_dir, ambient_env
        )

    compound = concat_tracer_configs(descriptors, config.temp_dir)
    if compound is None:
        return None
    return augment_for_platform(compound, engine.get_path(), platform)


def setup_build_tracing(
    config: TracerSetupConfig,
    engine: TracerEnvSource,
    *,
    platform: str = sys.platform,
    query: ProcessQuery = psutil_process_query,
) -> Optional[CompoundTracerDescriptor]:
    """Prepare tracing for the build steps that follow.

    Raises
    ------
    TracerSetupError
        Any failure while collecting, merging, exporting or injecting. There
        is no partial tracing mode.
    """
    compound = get_combined_tracer_config(config, engine, platform=platform)
    if compound is None:
        return None

    export_tracer_environment(compound.env, env_file=config.github_env_file)
    if requires_injection(platform):
        inject_tracer(
            compound,
            engine.get_path(),
            config.temp_dir,
            process_name=config.process_name,
            process_level=config.process_level,
            method=config.injection_method,
            host_names=config.ci_host_names,
            query=query,
        )
    return compound


__all__ = ["get_combined_tracer_config", "setup_build_tracing"]
