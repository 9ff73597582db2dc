"""
Colour-coded terminal output for gate verdicts.
"""

import sys
from typing import Optional, TextIO


TEXT_COLOR_MAPPING = {
    "green": "32;1",
    "red": "31;1",
    "cyan": "96;1",
}


def get_colored_text(text: str, color: str) -> str:
    """
    Get colored text.

    Raises:
        ValueError: If the specified color is not supported
    """
    if color not in TEXT_COLOR_MAPPING:
        raise ValueError(
            f"Unsupported color: {color}. Available colors: {', '.join(TEXT_COLOR_MAPPING.keys())}"
        )
    return f"\u001b[{TEXT_COLOR_MAPPING[color]}m{text}\u001b[0m"


class UIManager:
    """Prints verdicts and status lines; colour is only used on a terminal."""

    def __init__(self, stream: Optional[TextIO] = None, err_stream: Optional[TextIO] = None):
        # Resolved at print time so redirected sys.stdout/sys.stderr are honoured
        self.stream = stream
        self.err_stream = err_stream

    def allowed(self) -> None:
        """Print an allowed verdict in green."""
        self._print("allowed", "green")

    def blocked(self, reason: str) -> None:
        """Print a blocked verdict in red on stderr."""
        self._print(f"blocked: {reason}", "red", err=True)

    def command(self, command: str) -> None:
        """Print the command about to run in cyan."""
        self._print(f"→ {command}", "cyan")

    def _print(self, text: str, color: str, err: bool = False) -> None:
        if err:
            target = self.err_stream or sys.stderr
        else:
            target = self.stream or sys.stdout

        if getattr(target, "isatty", lambda: False)():
            text = get_colored_text(text, color)
        print(text, file=target)
        target.flush()
