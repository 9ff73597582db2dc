"""Guarded shell command execution: the safety gate runs before any process is spawned."""

import fcntl
import logging
import os
import re
import shlex
import subprocess
import sys
import time
from pathlib import Path
from typing import List, Optional, Tuple, Union

from ..core.policy import check_command_safety

logger = logging.getLogger(__name__)

# Exit codes follow the coreutils `timeout` and shell conventions
EXIT_BLOCKED = 1
EXIT_TIMEOUT = 124
EXIT_NOT_FOUND = 127

# Shell metacharacters that require shell=True
_SHELL_PATTERN = re.compile(r"[|&;<>()$`*?\[\]~\n\\'\"]")


def is_simple_command(command: str) -> bool:
    """
    Detect if command can run with shell=False.

    Simple commands have no shell metacharacters (pipes, redirects, chaining,
    expansion, globbing, quoting). Running them without a shell skips the
    shell spawn entirely.

    Example:
        >>> is_simple_command("ls -la")
        True
        >>> is_simple_command("ls | grep foo")
        False
    """
    return not _SHELL_PATTERN.search(command)


def _read_chunk(fd: int, chunks: List[str], echo: bool) -> bool:
    """Read whatever is available on fd. Returns False once the stream is closed."""
    try:
        chunk = os.read(fd, 4096)
    except BlockingIOError:
        return True
    except OSError:
        return False
    if not chunk:
        return False
    text = chunk.decode("utf-8", errors="replace")
    if echo:
        print(text, end="")
        sys.stdout.flush()
    chunks.append(text)
    return True


def _execute_with_streaming(
    args: Union[str, List[str]],
    shell: bool,
    cwd: Optional[Path],
    timeout: Optional[float],
    echo: bool = True,
) -> Tuple[int, str]:
    """
    Execute command with real-time output streaming.

    stdout and stderr are merged into one pipe read in non-blocking chunks,
    so prompts without a trailing newline are shown immediately. stdin is
    inherited from the parent terminal.

    Args:
        args: Command arguments (list for shell=False, str for shell=True)
        shell: Whether to use shell processing
        cwd: Working directory (optional)
        timeout: Seconds before the process is killed (None = no limit)
        echo: Print output while capturing it

    Returns:
        Tuple of (exit_code, captured_output). A killed process returns
        EXIT_TIMEOUT.

    Platform:
        Unix only (fcntl non-blocking I/O).
    """
    process = subprocess.Popen(
        args,
        shell=shell,
        cwd=str(cwd) if cwd else None,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        stdin=None,
        bufsize=0,
    )

    fd = process.stdout.fileno()
    flags = fcntl.fcntl(fd, fcntl.F_GETFL)
    fcntl.fcntl(fd, fcntl.F_SETFL, flags | os.O_NONBLOCK)

    output_chunks: List[str] = []
    deadline = time.monotonic() + timeout if timeout else None
    open_stream = True

    while True:
        exit_code = process.poll()
        if open_stream:
            open_stream = _read_chunk(fd, output_chunks, echo)

        if exit_code is not None:
            # Catch any final output
            time.sleep(0.01)
            if open_stream:
                _read_chunk(fd, output_chunks, echo)
            break

        if deadline is not None and time.monotonic() > deadline:
            process.kill()
            process.wait()
            logger.error("Command timed out after %ss: %s", timeout, args)
            output_chunks.append(f"\nCommand timed out after {timeout}s")
            process.stdout.close()
            return EXIT_TIMEOUT, "".join(output_chunks)

        time.sleep(0.01)

    process.stdout.close()
    return exit_code, "".join(output_chunks)


def run_guarded(
    command: str,
    cwd: Optional[Path] = None,
    timeout: Optional[float] = None,
    stream: bool = True,
    shell_path: Optional[str] = None,
) -> Tuple[int, str]:
    """
    Check a command with the safety gate and execute it only if allowed.

    Optimized execution path:
    - Simple commands (no shell metacharacters): shell=False via shlex.split
    - Everything else: through the shell (shell_path if given)

    Args:
        command: Shell command string proposed by the agent
        cwd: Working directory (defaults to current directory)
        timeout: Seconds before the process is killed
        stream: Echo output to the terminal while capturing it
        shell_path: Executable used for complex commands (default /bin/sh)

    Returns:
        Tuple of (exit_code, output). A blocked command is never spawned and
        returns (EXIT_BLOCKED, "Blocked: <reason>").
    """
    reason = check_command_safety(command)
    if reason is not None:
        logger.warning("Refusing to run %r: %s", command, reason)
        return EXIT_BLOCKED, f"Blocked: {reason}"

    try:
        if is_simple_command(command):
            args = shlex.split(command)
            if args:
                return _execute_with_streaming(args, False, cwd, timeout, stream)
        if shell_path:
            return _execute_with_streaming([shell_path, "-c", command], False, cwd, timeout, stream)
        return _execute_with_streaming(command, True, cwd, timeout, stream)
    except FileNotFoundError as e:
        logger.error("Command not found: %s", e)
        return EXIT_NOT_FOUND, f"Command not found: {e.filename or command}"
