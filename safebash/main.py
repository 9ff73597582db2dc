#!/usr/bin/env python3
"""
Main entry point for the Typer-based Safebash CLI.

This delegates to the UI layer in safebash.ui.cli to keep the
console script mapping stable.
"""

from safebash.ui.cli import run_app as safebash


if __name__ == "__main__":
    safebash()
