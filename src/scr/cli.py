from __future__ import annotations

import argparse
import json
import logging
from functools import partial
from pathlib import Path
from typing import Any, Never, Sequence

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.pretty import Pretty
from rich.table import Table
from rich_argparse import RawTextRichHelpFormatter
from safe_code_runner import (
    ExecutionRequest,
    ExecutionResult,
    ExecutionStatus,
    LanguageProfileRegistry,
    RuntimeUnavailableError,
    SandboxEngine,
    SandboxPolicy,
    UnsupportedLanguageError,
    hint_for,
)
from safe_code_runner.runner import READY_MESSAGE

_CONSOLE = Console(no_color=False)

_STATUS_STYLES = {
    ExecutionStatus.SUCCESS: "green",
    ExecutionStatus.COMPILATION_ERROR: "yellow",
    ExecutionStatus.RUNTIME_ERROR: "red",
    ExecutionStatus.TIMEOUT: "magenta",
    ExecutionStatus.SECURITY_VIOLATION: "bold red",
    ExecutionStatus.SYSTEM_ERROR: "bold red",
}


class _CLIHelpFormatter(RawTextRichHelpFormatter):
    """Rich formatter with explicit high-contrast CLI styles.

    Example:
        ```python
        parser = argparse.ArgumentParser(formatter_class=_CLIHelpFormatter)
        ```
    """

    styles = {
        "argparse.args": "bold cyan",
        "argparse.groups": "bold magenta",
        "argparse.help": "white",
        "argparse.metavar": "bold yellow",
        "argparse.prog": "bold bright_blue",
        "argparse.syntax": "bold bright_white",
        "argparse.text": "bright_white",
    }


_HELP_FORMATTER = partial(
    _CLIHelpFormatter,
    max_help_position=34,
    width=120,
)


class _RichArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that renders errors via Rich.

    Example:
        ```python
        parser = _RichArgumentParser(prog="python -m scr")
        ```
    """

    def error(self, message: str) -> Never:
        """Render parse errors with Rich and exit.

        Example:
            ```python
            # parser.error("invalid usage")
            ```
        """
        _CONSOLE.print(Panel.fit(f"[bold red]Error:[/bold red] {message}", border_style="red"))
        self.print_help()
        raise SystemExit(2)


def build_parser() -> argparse.ArgumentParser:
    """Build CLI parser for sandboxed code execution.

    Example:
        ```python
        parser = build_parser()
        ```
    """
    parser = _RichArgumentParser(
        prog="python -m scr",
        description=(
            "safe-code-runner CLI\n"
            "Screen and run untrusted source files in ephemeral, locked-down containers."
        ),
        epilog=(
            "Quick Examples:\n"
            "  python -m scr run hello.py --language python\n"
            "  python -m scr run Main.java --language java --stdin '3 4'\n"
            "  python -m scr run main.cpp --language cpp --hint\n"
            "  python -m scr validate main.py --language python\n"
            "  python -m scr languages\n"
            "  python -m scr status\n"
            "  python -m scr list containers\n"
            "  python -m scr cleanup"
        ),
        formatter_class=_HELP_FORMATTER,
    )
    parser.add_argument(
        "--config",
        help=(
            "Path to a sandbox TOML file with [policy] and [languages.*] tables.\n"
            "Defaults to the bundled policy."
        ),
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Show debug logging from the engine.",
    )

    sub = parser.add_subparsers(
        dest="command",
        required=True,
        parser_class=_RichArgumentParser,
    )

    run_cmd = sub.add_parser(
        "run",
        help="Execute one source file in the sandbox.",
        description=(
            "Screen the file, compile it if the language needs it, and run it\n"
            "in a container with no network and capped memory and CPU."
        ),
        epilog=(
            "Examples:\n"
            "  python -m scr run main.cpp --language cpp --timeout-seconds 5\n"
            "  python -m scr run main.py --language python --stdin-file input.txt --json"
        ),
        formatter_class=_HELP_FORMATTER,
    )
    run_cmd.add_argument("source_file", help="Path to the source file to execute.")
    run_cmd.add_argument("--language", required=True, help="Language identifier, e.g. python, java, cpp.")
    stdin_group = run_cmd.add_mutually_exclusive_group()
    stdin_group.add_argument("--stdin", help="Text written to the program's standard input.")
    stdin_group.add_argument("--stdin-file", help="File whose contents are written to standard input.")
    run_cmd.add_argument(
        "--timeout-seconds",
        type=int,
        help="Wall-clock limit per step (default: policy default_timeout_seconds).",
    )
    run_cmd.add_argument("--json", action="store_true", help="Print the raw result as JSON.")
    run_cmd.add_argument("--hint", action="store_true", help="Show a short hint on how to fix a failed run.")

    validate_cmd = sub.add_parser(
        "validate",
        help="Screen one source file without running it.",
        description=(
            "Apply the empty-source check and the security screen to a file.\n"
            "Nothing is compiled and no container is started."
        ),
        epilog=(
            "Example:\n"
            "  python -m scr validate Main.java --language java"
        ),
        formatter_class=_HELP_FORMATTER,
    )
    validate_cmd.add_argument("source_file", help="Path to the source file to screen.")
    validate_cmd.add_argument("--language", required=True, help="Language identifier, e.g. python, java, cpp.")
    validate_cmd.set_defaults(stdin=None, stdin_file=None, timeout_seconds=None)

    sub.add_parser(
        "languages",
        help="List configured language profiles.",
        description="Show the image, source file, compile and run commands of every language.",
        formatter_class=_HELP_FORMATTER,
    )
    sub.add_parser(
        "status",
        help="Report whether the execution service is ready.",
        description="Check the enabled flag and the container runtime health.",
        formatter_class=_HELP_FORMATTER,
    )

    list_cmd = sub.add_parser(
        "list",
        help="List managed sandbox containers.",
        description=(
            "List containers created and labeled by safe-code-runner.\n"
            "Sandboxes remove themselves on exit, so entries here are usually in flight or orphaned."
        ),
        formatter_class=_HELP_FORMATTER,
    )
    list_cmd_sub = list_cmd.add_subparsers(
        dest="resource",
        required=True,
        parser_class=_RichArgumentParser,
    )
    list_cmd_sub.add_parser(
        "containers",
        help="List managed containers.",
        description="Show managed containers with id, name, image, state, and status.",
        formatter_class=_HELP_FORMATTER,
    )

    sub.add_parser(
        "cleanup",
        help="Force-remove leftover managed containers.",
        description=(
            "Force-remove every managed sandbox container.\n"
            "Use after a host crash left sandboxes behind."
        ),
        epilog=(
            "Example:\n"
            "  python -m scr cleanup"
        ),
        formatter_class=_HELP_FORMATTER,
    )

    return parser


def configure_logging(verbose: bool) -> None:
    """Route engine logging through Rich.

    Example:
        ```python
        configure_logging(verbose=True)
        ```
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_path=False)],
        force=True,
    )


def build_engine(args: argparse.Namespace) -> SandboxEngine:
    """Create a SandboxEngine from the global CLI flags.

    Example:
        ```python
        engine = build_engine(args)
        ```
    """
    if args.config:
        return SandboxEngine(
            SandboxPolicy.from_file(args.config),
            registry=LanguageProfileRegistry.from_file(args.config),
        )
    return SandboxEngine()


def _read_stdin_arg(args: argparse.Namespace) -> str | None:
    """Return program input from --stdin or --stdin-file.

    Example:
        ```python
        data = _read_stdin_arg(args)
        ```
    """
    if args.stdin_file:
        return Path(args.stdin_file).read_text(encoding="utf-8")
    return args.stdin


def _print_result(result: ExecutionResult, language: str) -> None:
    """Render an execution result as Rich panels.

    Example:
        ```python
        _print_result(result, "python")
        ```
    """
    style = _STATUS_STYLES.get(result.status, "white")
    summary = Table.grid(padding=(0, 2))
    summary.add_row("Language", language)
    summary.add_row("Status", f"[{style}]{result.status.value}[/{style}]")
    summary.add_row("Exit code", "-" if result.exit_code is None else str(result.exit_code))
    summary.add_row("Time", f"{result.execution_time_ms} ms")
    _CONSOLE.print(Panel.fit(summary, title="Execution", border_style=style))
    if result.output:
        _CONSOLE.print(Panel(result.output.rstrip("\n"), title="Output", border_style="cyan"))
    if result.compilation_error:
        _CONSOLE.print(Panel(result.compilation_error.rstrip("\n"), title="Compilation Error", border_style="yellow"))
    if result.error:
        _CONSOLE.print(Panel(result.error.rstrip("\n"), title="Error", border_style="red"))


def _print_languages(registry: LanguageProfileRegistry) -> None:
    """Render configured language profiles in a rich table.

    Example:
        ```python
        _print_languages(LanguageProfileRegistry.default())
        ```
    """
    table = Table(title="Language Profiles")
    table.add_column("Language", style="cyan", no_wrap=True)
    table.add_column("Image", style="magenta")
    table.add_column("Source File")
    table.add_column("Compile")
    table.add_column("Run")
    for profile in registry:
        table.add_row(
            profile.language,
            profile.image,
            profile.source_file,
            " ".join(profile.compile_command) if profile.compile_command else "-",
            " ".join(profile.run_command),
        )
    _CONSOLE.print(table)


def _print_containers(rows: list[dict[str, Any]]) -> None:
    """Render managed containers in a rich table.

    Example:
        ```python
        row = {"id": "abc", "name": "exec_1_2_ab_run", "image": "gcc", "state": "running", "status": "Up"}
        _print_containers([row])
        ```
    """
    table = Table(title="Managed Containers")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name", style="magenta")
    table.add_column("Image")
    table.add_column("State")
    table.add_column("Status")
    for row in rows:
        table.add_row(row["id"], row["name"], row["image"], row["state"], row["status"])
    _CONSOLE.print(table)


def _read_request(args: argparse.Namespace) -> ExecutionRequest | None:
    """Build a request from the source file flags, printing an error panel on failure.

    Example:
        ```python
        request = _read_request(args)
        ```
    """
    source_path = Path(args.source_file)
    if not source_path.is_file():
        _CONSOLE.print(Panel.fit(f"Source file not found: {source_path}", style="bold red"))
        return None
    try:
        return ExecutionRequest(
            language=args.language,
            source_code=source_path.read_text(encoding="utf-8"),
            stdin=_read_stdin_arg(args),
            timeout_seconds=args.timeout_seconds,
        )
    except (OSError, ValueError) as exc:
        _CONSOLE.print(Panel.fit(f"[bold red]Error:[/bold red] {exc}", border_style="red"))
        return None


def _run(engine: SandboxEngine, args: argparse.Namespace) -> int:
    """Handle the `run` command.

    Example:
        ```python
        code = _run(engine, args)
        ```
    """
    request = _read_request(args)
    if request is None:
        return 2
    result = engine.execute(request)
    hint = hint_for(result, request.language) if args.hint else None
    if args.json:
        payload = {**result.to_dict(), "language": request.language}
        if hint is not None:
            payload["hint"] = hint
        _CONSOLE.print_json(json.dumps(payload))
    else:
        _print_result(result, request.language)
        if hint is not None:
            _CONSOLE.print(Panel(hint, title="Hint", border_style="blue"))
    return 0 if result.success else 1


def _validate(engine: SandboxEngine, args: argparse.Namespace) -> int:
    """Handle the `validate` command; never compiles or starts a container.

    Example:
        ```python
        code = _validate(engine, args)
        ```
    """
    request = _read_request(args)
    if request is None:
        return 2
    try:
        engine.registry.resolve(request.language)
    except UnsupportedLanguageError as exc:
        _CONSOLE.print(Panel.fit(f"[bold red]Error:[/bold red] {exc}", border_style="red"))
        return 2
    violation = engine.validate(request)
    if violation is None:
        _CONSOLE.print(Panel.fit("Code validation passed", title="Validation", border_style="green"))
        return 0
    _CONSOLE.print(
        Panel.fit(
            f"Code validation failed: Security violation detected\n{violation}",
            title="Validation",
            border_style="red",
        )
    )
    return 1


def main(argv: Sequence[str] | None = None) -> int:
    """Run the `scr` CLI command handler.

    Example:
        ```python
        code = main(["run", "hello.py", "--language", "python"])
        ```
    """
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    configure_logging(args.verbose)

    engine: SandboxEngine | None = None
    try:
        engine = build_engine(args)
        if args.command == "run":
            return _run(engine, args)
        if args.command == "validate":
            return _validate(engine, args)
        if args.command == "languages":
            _print_languages(engine.registry)
            return 0
        if args.command == "status":
            status = engine.service_status()
            ready = status == READY_MESSAGE
            _CONSOLE.print(Panel.fit(status, title="Service Status", style="bold green" if ready else "bold red"))
            return 0 if ready else 1
        if args.command == "list" and args.resource == "containers":
            rows = [
                {"id": c.id, "name": c.name, "image": c.image, "state": c.state, "status": c.status}
                for c in engine.runner.list_containers()
            ]
            _print_containers(rows)
            return 0
        if args.command == "cleanup":
            summary = engine.runner.remove_stale()
            _CONSOLE.print(
                Panel.fit(
                    Pretty({"removed_containers": summary.removed_containers}),
                    title="Cleanup Summary",
                    border_style="green",
                )
            )
            return 0
    except ValueError as exc:
        # Raised while loading a malformed --config file.
        _CONSOLE.print(Panel.fit(f"[bold red]Invalid configuration:[/bold red] {exc}", border_style="red"))
        return 2
    except (RuntimeUnavailableError, OSError) as exc:
        _CONSOLE.print(Panel.fit(f"[bold red]Error:[/bold red] {exc}", border_style="red"))
        return 1
    finally:
        if engine is not None:
            engine.close()

    parser.error("Unhandled command")
    return 2
