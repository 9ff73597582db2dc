"""Main CLI entry point - clean subcommand architecture."""

import logging
import shutil
import sys
from pathlib import Path
from typing import Optional

import typer

from safebash.core.configs import CONFIG_PATH, GateSettings, get_gate_settings, load_raw_config
from safebash.core.policy import check_command_safety
from safebash.tools.exec_shell import EXIT_BLOCKED, run_guarded
from safebash.ui.output import UIManager

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="Safebash - static safety gate for shell commands proposed by a coding agent.",
)

ui = UIManager()

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


# ============================================================================
# Shared Setup
# ============================================================================

def _load_settings(verbose: bool) -> GateSettings:
    """Load settings and configure logging. Exits on configuration errors."""
    try:
        settings = get_gate_settings(load_raw_config())
    except ValueError as e:
        typer.echo(f"Error loading configuration: {e}", err=True)
        typer.echo(f"Check {CONFIG_PATH}", err=True)
        raise typer.Exit(1)

    level = logging.DEBUG if verbose else getattr(logging, settings.log_level)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    return settings


def _read_command(command: str) -> str:
    """'-' reads the (possibly multi-line) command from stdin."""
    if command == "-":
        return sys.stdin.read()
    return command


# ============================================================================
# Commands
# ============================================================================

@app.command()
def check(
    command: str = typer.Argument(..., help="Command to check, or '-' to read it from stdin"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only set the exit code"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    """
    Check a command without running it. Exit code 0 = allowed, 1 = blocked.

    Example: safebash check "git push origin main"
    """
    _load_settings(verbose)
    reason = check_command_safety(_read_command(command))

    if reason is None:
        if not quiet:
            ui.allowed()
        return

    if not quiet:
        ui.blocked(reason)
    raise typer.Exit(EXIT_BLOCKED)


@app.command()
def run(
    command: str = typer.Argument(..., help="Command to run, or '-' to read it from stdin"),
    timeout: Optional[int] = typer.Option(None, "--timeout", "-t", min=1, help="Seconds before the command is killed"),
    silent: bool = typer.Option(False, "--silent", help="Suppress echoing the command"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    """
    Run a command only if the safety gate allows it.

    Example: safebash run "grep -rn TODO src/"

    Exits with the command's own exit code; a blocked command exits 1
    without being started.
    """
    settings = _load_settings(verbose)
    text = _read_command(command)

    reason = check_command_safety(text)
    if reason is not None:
        ui.blocked(reason)
        raise typer.Exit(EXIT_BLOCKED)

    if not silent:
        ui.command(text.strip())

    exit_code, output = run_guarded(
        text,
        cwd=Path.cwd(),
        timeout=timeout or settings.timeout,
        stream=settings.stream,
        shell_path=shutil.which(settings.shell),
    )
    if not settings.stream and output:
        typer.echo(output, nl=not output.endswith("\n"))

    # Preserve the command's exit code (shell semantics)
    raise typer.Exit(exit_code)


@app.command()
def rules() -> None:
    """
    List the rule taxonomy used by the gate.

    Lazy imports rich to keep check/run startup fast.
    """
    from rich.console import Console
    from rich.table import Table

    from safebash.core.rules import RULES, WRAPPERS

    console = Console()
    table = Table(title="Command Rules", show_header=True)
    table.add_column("Command", style="cyan", no_wrap=True)
    table.add_column("Mode", no_wrap=True)
    table.add_column("Looks at")

    for name in sorted(RULES):
        for rule in RULES[name]:
            table.add_row(name, rule.mode.value, rule.describe())

    console.print(table)
    console.print(f"\n[dim]Unwrapped before matching: {', '.join(sorted(WRAPPERS))}[/dim]")
    console.print("[dim]Output redirects and tee are blocked for every command; other commands are allowed.[/dim]")


@app.command()
def settings(
    action: str = typer.Argument(..., help="Action: init, show, path"),
) -> None:
    """
    Manage Safebash configuration.

    Actions:
        init - Interactive settings wizard
        show - Display effective settings
        path - Print the config file location
    """
    from safebash.ui.config_commands import handle_config
    handle_config(action)


def run_app() -> None:
    """Entry point for console script mapping."""
    app()


if __name__ == "__main__":
    run_app()
