"""Merging per-language tracer descriptors into one compound descriptor.

The merge runs as a single sequential pass. Languages are ordered with C/C++
last because the native tracer reads spec blocks in order and the C/C++
fragment has to close the sequence. Environment values must agree across
languages, since the compound environment can only hold one value per
variable.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Mapping, Optional

from .descriptor import CompoundTracerDescriptor, TracerDescriptor
from .environment_file import write_environment_file
from .errors import ConflictError
from .languages import Language
from .spec_file import read_spec, write_spec

logger = logging.getLogger(__name__)

COPY_EXECUTABLES_VAR = "SEMMLE_COPY_EXECUTABLES_ROOT"

COMPOUND_SPEC_NAME = "compound-spec"
COMPOUND_LOG_NAME = "compound-build-tracer.log"
COMPOUND_TEMP_DIR_NAME = "compound-temp"


def order_languages(languages: list[Language]) -> list[Language]:
    """Return ``languages`` with C/C++ moved to the end, others in input order."""
    others = [language for language in languages if language is not Language.CPP]
    cpp = [language for language in languages if language is Language.CPP]
    return others + cpp


def merge_environments(
    descriptors: Mapping[Language, TracerDescriptor],
    order: list[Language],
) -> tuple[dict[str, str], bool]:
    """Merge descriptor environments in ``order``.

    Returns the merged mapping and whether any language asked for
    executables to be copied.
    """
    env: dict[str, str] = {}
    copy_executables = False
    for language in order:
        for name, value in descriptors[language].env.items():
            if name == COPY_EXECUTABLES_VAR:
                copy_executables = True
            elif name in env:
                if env[name] != value:
                    raise ConflictError(name, env[name], value)
            else:
                env[name] = value
    return env, copy_executables


def concat_tracer_configs(
    descriptors: Mapping[Language, TracerDescriptor],
    temp_dir: str | os.PathLike[str],
) -> Optional[CompoundTracerDescriptor]:
    """Combine ``descriptors`` into a compound descriptor under ``temp_dir``.

    Parameters
    ----------
    descriptors:
        Tracer descriptor per traced language. Languages that do not need
        build tracing must already be excluded.
    temp_dir:
        Shared per-build temporary directory. The merged spec, its log path,
        the binary environment file and the copy-executables root all live
        at fixed names inside it.

    Returns
    -------
    CompoundTracerDescriptor | None
        ``None`` when ``descriptors`` is empty, in which case nothing is
        written.

    Raises
    ------
    ConflictError
        Two languages set one variable to different values.
    MissingArtifactError
        A language's spec file cannot be read.
    SpecFormatError
        A language's spec file has no valid block count.
    """
    if not descriptors:
        logger.debug("No traced languages; skipping compound tracer configuration")
        return None

    temp_dir = Path(temp_dir)
    order = order_languages(list(descriptors))
    env, copy_executables = merge_environments(descriptors, order)

    total_count = 0
    block_lines: list[str] = []
    for language in order:
        spec = read_spec(descriptors[language].spec_path)
        total_count += spec.block_count
        block_lines.extend(spec.block_lines)
        logger.debug("Appended %d tracer block(s) for %s", spec.block_count, language)

    spec_path = write_spec(
        temp_dir / COMPOUND_SPEC_NAME,
        (temp_dir / COMPOUND_LOG_NAME).resolve(),
        total_count,
        block_lines,
    )

    if copy_executables:
        env[COPY_EXECUTABLES_VAR] = str((temp_dir / COMPOUND_TEMP_DIR_NAME).resolve())

    compound = CompoundTracerDescriptor(env=env, spec_path=spec_path.resolve())
    write_environment_file(compound.environment_path, env)
    logger.info(
        "Wrote compound tracer configuration for %s (%d block(s), %d variable(s))",
        ", ".join(str(language) for language in order),
        total_count,
        len(env),
    )
    return compound


__all__ = [
    "COMPOUND_LOG_NAME",
    "COMPOUND_SPEC_NAME",
    "COMPOUND_TEMP_DIR_NAME",
    "COPY_EXECUTABLES_VAR",
    "concat_tracer_configs",
    "merge_environments",
    "order_languages",
]
