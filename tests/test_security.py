import pytest

from safe_code_runner import SecurityValidator
from safe_code_runner.security import DENY_PATTERNS


@pytest.mark.parametrize(
    "code",
    [
        'Runtime.getRuntime().exec("ls");',
        "Process p = builder.start();",
        "System.exit(1);",
        "f = file('x')",
        "f = open('test.txt', 'w')",
        "m = __import__('sys')",
        "x = eval('1 + 1')",
        "exec('x = 1')",
        "import os; os.listdir('.')",
        "import subprocess",
        "import socket",
        "from http import client",
        "import urllib.request",
        "import requests",
    ],
)
def test_deny_patterns_reject(code: str) -> None:
    """Verify that every deny pattern rejects a representative snippet."""
    reason = SecurityValidator().validate(code)
    assert reason is not None
    assert reason.startswith("Potentially unsafe code detected: ")


def test_deny_patterns_are_case_insensitive() -> None:
    """Verify that upper-cased identifiers are still rejected."""
    assert SecurityValidator().validate("IMPORT SUBPROCESS") is not None
    assert SecurityValidator().validate("Eval('1')") is not None


def test_violation_names_first_matching_pattern() -> None:
    reason = SecurityValidator().validate("import subprocess\nx = eval('1')")
    assert reason == f"Potentially unsafe code detected: {DENY_PATTERNS[6].pattern}"


def test_clean_code_passes() -> None:
    """Verify that ordinary programs are accepted."""
    validator = SecurityValidator()
    assert validator.validate('print("Hello, World!")') is None
    assert validator.validate("#include <iostream>\nint main() { std::cout << 42; }") is None
    assert validator.validate("public class Hello { public static void main(String[] a) {} }") is None


def test_identifier_substrings_do_not_match() -> None:
    """Verify that deny words only match on word boundaries."""
    validator = SecurityValidator()
    assert validator.validate("evaluate = 1\nprint(evaluate)") is None
    assert validator.validate("executor_count = 2") is None
    assert validator.validate("chaos.count = 1") is None


def test_length_limit_exact_boundary() -> None:
    validator = SecurityValidator(max_source_chars=10)
    assert validator.validate("x" * 10) is None
    assert validator.validate("x" * 11) == "Code exceeds maximum length limit"


def test_default_length_limit() -> None:
    validator = SecurityValidator()
    assert validator.validate("x" * 10_000) is None
    assert validator.validate("x" * 10_001) == "Code exceeds maximum length limit"


def test_pattern_checked_before_length() -> None:
    validator = SecurityValidator(max_source_chars=5)
    reason = validator.validate("import socket")
    assert reason is not None
    assert reason.startswith("Potentially unsafe code detected")


@pytest.mark.parametrize("code", ["", "   ", "\n\t\n"])
def test_blank_code_rejected(code: str) -> None:
    assert SecurityValidator().validate(code) == "Code cannot be empty"


def test_stdin_limit() -> None:
    validator = SecurityValidator(max_stdin_chars=4)
    assert validator.validate_stdin(None) is None
    assert validator.validate_stdin("1234") is None
    assert validator.validate_stdin("12345") == "Input exceeds maximum length limit"


def test_stdin_is_not_pattern_screened() -> None:
    assert SecurityValidator().validate_stdin("import subprocess") is None
