"""Learner-facing hints derived from a classified execution result."""

from __future__ import annotations

from .models import ExecutionResult, ExecutionStatus, Language

SUCCESS_HINT = "Code executed successfully! No hints needed."
TIMEOUT_HINT = "Your code is taking too long to execute. Check for infinite loops or optimize your algorithm."
SECURITY_HINT = "Your code contains potentially unsafe operations. Stick to basic programming constructs for learning."
FALLBACK_HINT = "Something went wrong. Check your code syntax and logic."

_EXCERPT_CHARS = 100

# First matching needle wins; messages are compared lowercased.
_COMPILATION_RULES: tuple[tuple[tuple[str, ...], str], ...] = (
    (
        ("cannot find symbol", "was not declared in this scope"),
        "Variable or method not found. Check spelling and make sure you've declared all variables.",
    ),
    (
        ("expected",),
        "Syntax error detected. Check for missing semicolons, brackets, or parentheses.",
    ),
)
_JAVA_CLASS_HINT = (
    "Java class issues. Make sure your class name matches the filename and is properly structured."
)

_RUNTIME_RULES: tuple[tuple[tuple[str, ...], str], ...] = (
    (
        ("nullpointerexception", "cannot read properties of null", "cannot read properties of undefined"),
        "Null pointer error. Make sure you initialize your variables before using them.",
    ),
    (
        ("arrayindexoutofbounds", "indexerror", "index out of range"),
        "Array index error. Check that your array indices are within valid bounds.",
    ),
    (
        ("dividebyzero", "division by zero", "zerodivisionerror", "/ by zero"),
        "Division by zero error. Make sure you're not dividing by zero in your calculations.",
    ),
    (
        ("nameerror", "is not defined"),
        "Variable or method not found. Check spelling and make sure you've declared all variables.",
    ),
)


def _first_match(message: str, rules: tuple[tuple[tuple[str, ...], str], ...]) -> str | None:
    """Return the hint of the first rule with a needle found in `message`.

    Example:
        ```python
        hint = _first_match("error: ';' expected", _COMPILATION_RULES)
        ```
    """
    lowered = message.lower()
    for needles, hint in rules:
        if any(needle in lowered for needle in needles):
            return hint
    return None


def _is_java(language: str | Language) -> bool:
    """Return True when the identifier names the Java profile.

    Example:
        ```python
        assert _is_java(Language.JAVA)
        ```
    """
    name = language.value if isinstance(language, Language) else str(language)
    return name.strip().lower() == Language.JAVA.value


def compilation_hint(message: str | None, language: str | Language) -> str:
    """Suggest a fix for a compiler diagnostic.

    Example:
        ```python
        hint = compilation_hint("Main.java:3: error: cannot find symbol", "java")
        ```
    """
    if not message:
        return "Check your code syntax."
    hint = _first_match(message, _COMPILATION_RULES)
    if hint is not None:
        return hint
    if "class" in message.lower() and _is_java(language):
        return _JAVA_CLASS_HINT
    return f"Compilation error: {message[:_EXCERPT_CHARS]}..."


def runtime_hint(message: str | None) -> str:
    """Suggest a fix for a program that crashed at runtime.

    Example:
        ```python
        hint = runtime_hint("ZeroDivisionError: division by zero")
        ```
    """
    if not message:
        return "Runtime error occurred. Check your program logic."
    hint = _first_match(message, _RUNTIME_RULES)
    if hint is not None:
        return hint
    return f"Runtime error: {message[:_EXCERPT_CHARS]}..."


def hint_for(result: ExecutionResult, language: str | Language) -> str:
    """Return one short, actionable hint for an execution result.

    Example:
        ```python
        hint = hint_for(ExecutionResult.timeout(10), "python")
        ```
    """
    if result.success:
        return SUCCESS_HINT
    if result.status is ExecutionStatus.COMPILATION_ERROR:
        return compilation_hint(result.compilation_error, language)
    if result.status is ExecutionStatus.RUNTIME_ERROR:
        return runtime_hint(result.error)
    if result.status is ExecutionStatus.TIMEOUT:
        return TIMEOUT_HINT
    if result.status is ExecutionStatus.SECURITY_VIOLATION:
        return SECURITY_HINT
    return FALLBACK_HINT
