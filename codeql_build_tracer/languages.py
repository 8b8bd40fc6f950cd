"""Languages understood by the analysis engine and their tracing needs."""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import Iterable


class Language(str, Enum):
    CSHARP = "csharp"
    CPP = "cpp"
    GO = "go"
    JAVA = "java"
    JAVASCRIPT = "javascript"
    PYTHON = "python"

    def __str__(self) -> str:
        return self.value


# Alternate spellings accepted on input.
LANGUAGE_ALIASES: dict[str, Language] = {
    "c": Language.CPP,
    "c++": Language.CPP,
    "c#": Language.CSHARP,
    "typescript": Language.JAVASCRIPT,
}

# Languages whose extraction needs build interception.
TRACED_LANGUAGES = frozenset({Language.CPP, Language.CSHARP, Language.JAVA})

DATABASES_DIR_NAME = "codeql_databases"


def parse_language(value: str) -> Language | None:
    """Return the language named by ``value`` or ``None`` if it is unknown."""
    normalized = value.strip().lower()
    try:
        return Language(normalized)
    except ValueError:
        return LANGUAGE_ALIASES.get(normalized)


def is_traced_language(language: Language) -> bool:
    return language in TRACED_LANGUAGES


def traced_languages(languages: Iterable[Language]) -> list[Language]:
    """Keep the traced languages of ``languages``, preserving order and dropping repeats."""
    selected: list[Language] = []
    for language in languages:
        if is_traced_language(language) and language not in selected:
            selected.append(language)
    return selected


def databases_dir(temp_dir: str | os.PathLike[str]) -> Path:
    return Path(temp_dir) / DATABASES_DIR_NAME


def database_path(temp_dir: str | os.PathLike[str], language: Language) -> Path:
    """Location of the database for ``language`` under the shared temp directory."""
    return databases_dir(temp_dir) / language.value


__all__ = [
    "DATABASES_DIR_NAME",
    "LANGUAGE_ALIASES",
    "Language",
    "TRACED_LANGUAGES",
    "database_path",
    "databases_dir",
    "is_traced_language",
    "parse_language",
    "traced_languages",
]
