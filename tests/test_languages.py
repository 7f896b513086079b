from pathlib import Path

import pytest

from safe_code_runner import Language, LanguageProfileRegistry, UnsupportedLanguageError
from safe_code_runner.languages import profile_from_table


def test_default_registry_has_bundled_languages() -> None:
    registry = LanguageProfileRegistry.default()
    assert registry.languages() == ["cpp", "java", "javascript", "python"]


def test_default_profiles_match_bundled_table() -> None:
    registry = LanguageProfileRegistry.default()

    java = registry.resolve("java")
    assert java.image == "openjdk:21-slim"
    assert java.source_file == "Main.java"
    assert java.compile_command == ("javac", "Main.java")
    assert java.run_command == ("java", "Main")
    assert java.entry_class == "Main"

    python = registry.resolve("python")
    assert python.image == "python:3.11-slim"
    assert python.compile_command is None
    assert python.needs_compile is False
    assert python.run_command == ("python", "main.py")

    js = registry.resolve(Language.JAVASCRIPT)
    assert js.image == "node:18-slim"
    assert js.run_command == ("node", "main.js")

    cpp = registry.resolve("cpp")
    assert cpp.image == "gcc:latest"
    assert cpp.compile_command == ("g++", "-o", "main", "main.cpp")
    assert cpp.run_command == ("./main",)
    assert cpp.needs_compile is True


def test_resolve_is_case_insensitive() -> None:
    registry = LanguageProfileRegistry.default()
    assert registry.resolve(" Python ").language == "python"
    assert "JAVA" in registry
    assert Language.CPP in registry


def test_unsupported_language() -> None:
    registry = LanguageProfileRegistry.default()
    with pytest.raises(UnsupportedLanguageError, match="Unsupported language: cobol") as excinfo:
        registry.resolve("cobol")
    assert excinfo.value.language == "cobol"
    assert "cobol" not in registry


def test_iteration_is_sorted() -> None:
    registry = LanguageProfileRegistry.default()
    assert [profile.language for profile in registry] == registry.languages()


def test_registry_is_read_only() -> None:
    registry = LanguageProfileRegistry.default()
    with pytest.raises(TypeError):
        registry._profiles["ruby"] = registry.resolve("python")  # type: ignore[index]


def test_registry_from_file(tmp_path: Path) -> None:
    path = tmp_path / "sandbox.toml"
    path.write_text(
        "\n".join(
            [
                "[languages.ruby]",
                'image = "ruby:3.3-slim"',
                'source_file = "main.rb"',
                'run = ["ruby", "main.rb"]',
                "",
                "[languages.Go]",
                'image = "golang:1.22"',
                'source_file = "main.go"',
                'compile = ["go", "build", "-o", "main", "main.go"]',
                'run = ["./main"]',
            ]
        ),
        encoding="utf-8",
    )
    registry = LanguageProfileRegistry.from_file(str(path))
    assert registry.languages() == ["go", "ruby"]
    assert registry.resolve("go").needs_compile is True
    assert registry.resolve("ruby").run_command == ("ruby", "main.rb")


def test_registry_from_file_without_languages_uses_defaults(tmp_path: Path) -> None:
    path = tmp_path / "sandbox.toml"
    path.write_text("[policy]\nmemory_limit_mb = 64\n", encoding="utf-8")
    registry = LanguageProfileRegistry.from_file(str(path))
    assert "java" in registry


def test_registry_from_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="Language config file not found"):
        LanguageProfileRegistry.from_file(str(tmp_path / "missing.toml"))


def test_empty_registry_rejected() -> None:
    with pytest.raises(ValueError, match="At least one language profile"):
        LanguageProfileRegistry({})


@pytest.mark.parametrize(
    ("table", "message"),
    [
        ({"source_file": "main.rb", "run": ["ruby"]}, "image"),
        ({"image": "ruby", "run": ["ruby"]}, "source_file"),
        ({"image": "ruby", "source_file": "../main.rb", "run": ["ruby"]}, "bare file name"),
        ({"image": "ruby", "source_file": "main.rb", "run": []}, "run"),
        ({"image": "ruby", "source_file": "main.rb", "run": ["ruby", ""]}, "run"),
        ({"image": "ruby", "source_file": "main.rb", "run": ["ruby"], "compile": "make"}, "compile"),
        ({"image": "ruby", "source_file": "main.rb", "run": ["ruby"], "entry_class": "9abc"}, "entry_class"),
    ],
)
def test_invalid_profile_tables(table: dict, message: str) -> None:
    with pytest.raises(ValueError, match=message):
        profile_from_table("ruby", table)
