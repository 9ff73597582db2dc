"""
Command safety gate for Safebash.

DESIGN PHILOSOPHY:
    Every command the agent proposes goes through check_command_safety()
    before it reaches a shell. The gate answers one question: can this
    command line write to the filesystem, the repository, the installed
    packages, or download files to disk? It never executes anything.

    The analysis is static and deliberately conservative:
        - segmentation (core/tokenizer.py) cuts the text into invocations
        - rule matching (core/classifier.py) classifies each invocation
        - aggregation (this module) ORs the segment verdicts together

    A false negative (destructive command allowed) is a bug. A false
    positive (safe command blocked) is a usability cost we accept when
    the text is ambiguous.

USAGE:
    reason = check_command_safety(command)
    if reason is not None:
        refuse(command, reason)
"""

import logging
from typing import Optional

from .classifier import ALLOWED, MAX_DEPTH, TOO_DEEP, Verdict, classify, pipeline_writer
from .tokenizer import segment

logger = logging.getLogger(__name__)


def evaluate(command: str, depth: int = 0) -> Verdict:
    """
    Evaluate a full command line.

    Args:
        command: Raw command text, possibly multi-line
        depth: Nesting depth when called for a substitution or ``sh -c``
            script (0 for top-level input)

    Returns:
        The verdict of the first blocked segment, scanning lines left to
        right and then segments within a line, or ALLOWED.

    Raises:
        TypeError: If command is not a string
    """
    if depth > MAX_DEPTH:
        return TOO_DEEP

    segments = segment(command)

    writer = pipeline_writer(segments)
    if writer is not None:
        return Verdict.block(f"'{writer}' writes pipeline output to a file")

    for part in segments:
        verdict = classify(part, depth)
        if verdict.blocked:
            return verdict
    return ALLOWED


def check_command_safety(command: str) -> Optional[str]:
    """
    Check whether a shell command may run.

    This is the main entry point of the gate. It is a pure function: the
    same input always produces the same result, and it is safe to call
    from several threads at once.

    Args:
        command: Shell command exactly as it would be passed to the shell

    Returns:
        None if the command is allowed, otherwise a short reason naming the
        offending command or construct.

    Example:
        >>> check_command_safety("git log --oneline") is None
        True
        >>> check_command_safety("ls && rm file.txt")
        "'rm' deletes files"
        >>> check_command_safety("echo foo > file.txt")
        "output redirect '>' writes to a file"
    """
    verdict = evaluate(command)
    if verdict.blocked:
        logger.debug("Blocked %r: %s", command, verdict.reason)
    return verdict.reason
