from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterator, Mapping

from .errors import UnsupportedLanguageError
from .models import Language
from .policy import default_policy_path, read_config_toml

_IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@dataclass(frozen=True, slots=True)
class LanguageProfile:
    """How to build and run one language inside the sandbox.

    Example:
        ```python
        profile = LanguageProfile("python", "python:3.11-slim", "main.py", None, ("python", "main.py"))
        ```
    """

    language: str
    image: str
    source_file: str
    compile_command: tuple[str, ...] | None
    run_command: tuple[str, ...]
    entry_class: str | None = None

    @property
    def needs_compile(self) -> bool:
        """Return True when a compile step precedes the run step.

        Example:
            ```python
            if profile.needs_compile:
                ...
            ```
        """
        return bool(self.compile_command)


def _command(value: Any, field_name: str, language: str) -> tuple[str, ...]:
    """Validate a command given as a non-empty list of strings.

    Example:
        ```python
        argv = _command(["javac", "Main.java"], "compile", "java")
        ```
    """
    if not isinstance(value, list) or not value:
        raise ValueError(f"languages.{language}.{field_name} must be a non-empty list of strings")
    if not all(isinstance(item, str) and item for item in value):
        raise ValueError(f"languages.{language}.{field_name} must contain only non-empty strings")
    return tuple(value)


def profile_from_table(language: str, table: Mapping[str, Any]) -> LanguageProfile:
    """Build a profile from one `[languages.<id>]` TOML table.

    Example:
        ```python
        table = {"image": "node:18-slim", "source_file": "main.js", "run": ["node", "main.js"]}
        profile = profile_from_table("node", table)
        ```
    """
    image = table.get("image")
    source_file = table.get("source_file")
    if not isinstance(image, str) or not image.strip():
        raise ValueError(f"languages.{language}.image must be a non-empty string")
    if not isinstance(source_file, str) or not source_file.strip():
        raise ValueError(f"languages.{language}.source_file must be a non-empty string")
    if Path(source_file).name != source_file:
        raise ValueError(f"languages.{language}.source_file must be a bare file name")
    compile_raw = table.get("compile")
    entry_class = table.get("entry_class")
    if entry_class is not None and (not isinstance(entry_class, str) or not _IDENTIFIER_PATTERN.match(entry_class)):
        raise ValueError(f"languages.{language}.entry_class must be an identifier")
    return LanguageProfile(
        language=language,
        image=image,
        source_file=source_file,
        compile_command=_command(compile_raw, "compile", language) if compile_raw is not None else None,
        run_command=_command(table.get("run"), "run", language),
        entry_class=entry_class,
    )


class LanguageProfileRegistry:
    """Read-only lookup table from language identifier to profile.

    Example:
        ```python
        registry = LanguageProfileRegistry.default()
        profile = registry.resolve("python")
        ```
    """

    def __init__(self, profiles: Mapping[str, LanguageProfile]) -> None:
        """Freeze the given profiles into an immutable mapping.

        Example:
            ```python
            registry = LanguageProfileRegistry({"python": profile})
            ```
        """
        if not profiles:
            raise ValueError("At least one language profile is required")
        self._profiles: Mapping[str, LanguageProfile] = MappingProxyType(
            {key.lower(): value for key, value in profiles.items()}
        )

    @classmethod
    def from_mapping(cls, languages: Mapping[str, Any]) -> "LanguageProfileRegistry":
        """Build a registry from a parsed `languages` TOML table.

        Example:
            ```python
            registry = LanguageProfileRegistry.from_mapping({"python": {...}})
            ```
        """
        if not isinstance(languages, Mapping):
            raise ValueError("'languages' must be a TOML table")
        profiles: dict[str, LanguageProfile] = {}
        for name, table in languages.items():
            if not isinstance(table, Mapping):
                raise ValueError(f"languages.{name} must be a TOML table")
            key = str(name).lower()
            profiles[key] = profile_from_table(key, table)
        return cls(profiles)

    @classmethod
    def from_file(cls, config_path: str) -> "LanguageProfileRegistry":
        """Build a registry from the `[languages]` tables of a TOML file.

        Falls back to the bundled table when the file defines no languages.

        Example:
            ```python
            registry = LanguageProfileRegistry.from_file("/tmp/sandbox.toml")
            ```
        """
        path = Path(config_path)
        if not path.exists():
            raise ValueError(f"Language config file not found: {config_path}")
        languages = read_config_toml(path).get("languages")
        if languages is None:
            return cls.default()
        return cls.from_mapping(languages)

    @classmethod
    def default(cls) -> "LanguageProfileRegistry":
        """Return the registry described by the bundled policy file.

        Example:
            ```python
            registry = LanguageProfileRegistry.default()
            ```
        """
        return cls.from_mapping(read_config_toml(default_policy_path()).get("languages", {}))

    def resolve(self, language: str | Language) -> LanguageProfile:
        """Return the profile for a language identifier.

        Example:
            ```python
            profile = registry.resolve(Language.CPP)
            ```
        """
        key = language.value if isinstance(language, Language) else str(language).strip().lower()
        profile = self._profiles.get(key)
        if profile is None:
            raise UnsupportedLanguageError(key)
        return profile

    def languages(self) -> list[str]:
        """Return the registered identifiers in sorted order.

        Example:
            ```python
            names = registry.languages()
            ```
        """
        return sorted(self._profiles)

    def __contains__(self, language: object) -> bool:
        """Return True when a profile exists for the identifier.

        Example:
            ```python
            "python" in registry
            ```
        """
        if isinstance(language, Language):
            return language.value in self._profiles
        return isinstance(language, str) and language.strip().lower() in self._profiles

    def __iter__(self) -> Iterator[LanguageProfile]:
        """Iterate over profiles in identifier order.

        Example:
            ```python
            images = [profile.image for profile in registry]
            ```
        """
        return iter(self._profiles[name] for name in self.languages())
