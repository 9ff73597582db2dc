"""
Configuration Management Commands

This module is lazy-loaded only when settings commands are used.
Heavy dependencies (Rich) are isolated here to keep check/run fast.
"""

import configparser
import shutil
from pathlib import Path
from typing import Dict

from rich.console import Console
from rich.prompt import Confirm, IntPrompt, Prompt
from rich.table import Table

from safebash.core.configs import (
    CONFIG_PATH,
    LOG_LEVELS,
    GateSettings,
    get_gate_settings,
    load_raw_config,
)

console = Console()


def handle_config(action: str) -> None:
    """
    Route to appropriate settings action.

    Args:
        action: One of 'init', 'show' or 'path'
    """
    actions = {
        "init": init_config,
        "show": show_config,
        "path": show_path,
    }

    if action not in actions:
        console.print(f"[red]Unknown action: {action}[/red]")
        console.print("Available actions: init, show, path")
        raise SystemExit(1)

    actions[action]()


def init_config() -> None:
    """Interactive configuration wizard; works on new and existing files."""
    existing = load_raw_config(CONFIG_PATH) if CONFIG_PATH.exists() else {}
    try:
        current = get_gate_settings(existing)
    except ValueError as e:
        console.print(f"[yellow]Ignoring invalid configuration: {e}[/yellow]")
        current = GateSettings()

    console.print("\n[bold cyan]Safebash settings[/bold cyan]")

    shell = Prompt.ask("Shell used for complex commands", default=current.shell)
    if not shutil.which(shell):
        console.print(f"[yellow]Warning: Could not find {shell} in PATH[/yellow]")

    timeout = IntPrompt.ask("Execution timeout (seconds)", default=current.timeout)
    log_level = Prompt.ask(
        "Log level", choices=sorted(LOG_LEVELS), default=current.log_level
    )
    stream = Confirm.ask("Stream command output while it runs?", default=current.stream)

    save_config_file(
        {
            "shell": shell,
            "timeout": str(timeout),
            "log_level": log_level,
            "stream": "true" if stream else "false",
        },
        CONFIG_PATH,
    )
    console.print(f"[green]✓ Saved {CONFIG_PATH}[/green]")


def show_config() -> None:
    """Display effective settings in a formatted table."""
    raw = load_raw_config()
    try:
        settings = get_gate_settings(raw)
    except ValueError as e:
        console.print(f"[red]Invalid configuration: {e}[/red]")
        raise SystemExit(1)

    table = Table(title="Safebash Configuration", show_header=True)
    table.add_column("Setting", style="cyan", width=12)
    table.add_column("Value", style="green")
    table.add_column("Source")

    for key, value in vars(settings).items():
        table.add_row(key, str(value), "config" if key in raw else "[dim]default[/dim]")

    console.print(table)
    if CONFIG_PATH.exists():
        console.print(f"\n[dim]Config file: {CONFIG_PATH}[/dim]")
    else:
        console.print("[dim]No config file found. Run 'safebash settings init'[/dim]")


def show_path() -> None:
    """Print the config file location (unwrapped, for scripts)."""
    console.print(str(CONFIG_PATH), soft_wrap=True, highlight=False)


def save_config_file(config: Dict[str, str], path: Path = CONFIG_PATH) -> None:
    """
    Save configuration to file.

    Args:
        config: Configuration dictionary to save
        path: Destination (defaults to the user config file)
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    cfg = configparser.ConfigParser()
    cfg["DEFAULT"] = config

    with open(path, "w") as f:
        cfg.write(f)
