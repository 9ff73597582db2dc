"""
Per-segment rule matching for the command safety gate.

A segment is classified in this order (first decisive match wins):

    1. Any unquoted output redirect blocks, whatever the command.
    2. The effective command is found by skipping shell keywords, variable
       assignments and transparent wrappers (sudo, env, xargs, ...).
    3. The rules registered for that command name are applied in order.
    4. Command substitutions recorded on the segment are classified
       recursively.

Unknown commands are allowed.
"""

import os
from dataclasses import dataclass
from itertools import takewhile
from typing import FrozenSet, List, Optional, Sequence, Tuple

from .rules import (
    PIPELINE_WRITERS,
    SHELL_KEYWORDS,
    WRAPPER_POSITIONALS,
    WRAPPER_QUERIES,
    Mode,
    Rule,
    lookup,
    wrapper_options,
)
from .tokenizer import Segment

# Substitutions, inline shells and find -exec may nest; deeper input is refused
MAX_DEPTH = 8

# Tokens closing a find -exec command
EXEC_TERMINATORS = frozenset({";", "+"})


@dataclass(frozen=True)
class Verdict:
    """Allowed (no reason) or blocked with a human-readable reason."""

    reason: Optional[str] = None

    @property
    def allowed(self) -> bool:
        return self.reason is None

    @property
    def blocked(self) -> bool:
        return self.reason is not None

    @classmethod
    def block(cls, reason: str) -> "Verdict":
        return cls(reason=reason)


ALLOWED = Verdict()

TOO_DEEP = Verdict.block("command nesting too deep to analyse")


# ============================================================================
# Effective command
# ============================================================================

def command_name(word: str) -> str:
    """Normalise a command word for rule lookup: '/usr/bin/RM' -> 'rm'."""
    return os.path.basename(word).lower()


def _is_assignment(token: str) -> bool:
    name, sep, _ = token.partition("=")
    return bool(sep) and name.isidentifier()


def _skip_wrapper(tokens: Sequence[str], start: int, options: FrozenSet[str], positionals: int) -> int:
    """Return the index of the command a wrapper runs."""
    i = start
    while i < len(tokens):
        token = tokens[i]
        if token == "--":
            i += 1
            break
        if token in options:
            i += 2
        elif (token.startswith("-") and len(token) > 1) or _is_assignment(token):
            i += 1
        else:
            break
    return i + positionals


def _is_query(name: str, options: Sequence[str]) -> bool:
    """True when a wrapper's options ask it to look the command up (``command -v``)."""
    queries = WRAPPER_QUERIES.get(name)
    if not queries:
        return False
    letters = {query[1] for query in queries}
    for token in options:
        if token in queries:
            return True
        if token.startswith("-") and not token.startswith("--") and letters & set(token[1:]):
            return True
    return False


def effective_command(tokens: Sequence[str]) -> Optional[Tuple[str, List[str]]]:
    """
    Find the command a segment actually runs.

    Args:
        tokens: Segment tokens

    Returns:
        (command word, arguments), or None when the segment runs nothing
        (only keywords, assignments, or a wrapper without a command).

    Example:
        >>> effective_command(["sudo", "-u", "root", "rm", "-rf", "x"])
        ('rm', ['-rf', 'x'])
        >>> effective_command(["FOO=1", "env"])
        ('env', [])
    """
    i = 0
    while i < len(tokens):
        token = tokens[i]
        if token in SHELL_KEYWORDS or _is_assignment(token):
            i += 1
            continue
        name = command_name(token)
        options = wrapper_options(name)
        if options is None or i + 1 >= len(tokens):
            return token, list(tokens[i + 1:])
        start = i + 1
        i = _skip_wrapper(tokens, start, options, WRAPPER_POSITIONALS.get(name, 0))
        if _is_query(name, tokens[start:i]):
            return token, list(tokens[start:])
    return None


# ============================================================================
# Flag and subcommand helpers
# ============================================================================

def _flag_index(args: Sequence[str], flags: FrozenSet[str], clusters: bool = True) -> Optional[int]:
    letters = {flag[1] for flag in flags if len(flag) == 2 and flag[0] == "-"} if clusters else set()
    for index, token in enumerate(args):
        if token in flags:
            return index
        if token.startswith("--"):
            if any(flag.startswith("--") and token.startswith(flag) for flag in flags):
                return index
        elif letters and token.startswith("-") and len(token) > 2:
            cluster = "".join(takewhile(str.isalpha, token[1:]))
            if any(letter in letters for letter in cluster):
                return index
    return None


def find_flag(args: Sequence[str], rule: Rule) -> Optional[str]:
    """Return the first argument matching one of the rule's flags."""
    index = _flag_index(args, rule.flags, rule.clusters)
    return None if index is None else args[index]


def _subcommand_index(args: Sequence[str], value_options: FrozenSet[str]) -> Optional[int]:
    skip = False
    for index, token in enumerate(args):
        if skip:
            skip = False
        elif token in value_options:
            skip = True
        elif not token.startswith(("-", "+")):
            return index
    return None


def _split_interpreter(rule: Rule, args: Sequence[str]) -> Tuple[List[str], List[Tuple[str, List[str]]]]:
    """
    Expand interpreter options up to the script operand.

    ``-Im pip install x`` becomes options ['-I'] plus the nested command
    ['pip', 'install', 'x']; ``-Wignore script.py -c cfg`` becomes ['-W'],
    since everything after the script belongs to the script.
    """
    options: List[str] = []
    i = 0
    while i < len(args):
        token = args[i]
        if token == "--" or token == "-" or not token.startswith("-"):
            break
        i += 1
        if token.startswith("--"):
            options.append(token)
            continue

        letters = token[1:]
        for pos, letter in enumerate(letters):
            flag = f"-{letter}"
            attached = letters[pos + 1:]
            if flag in rule.exec_flags:
                nested = ([attached] if attached else []) + list(args[i:])
                return options, [(flag, nested)]
            options.append(flag)
            if flag in rule.value_options:
                if not attached:
                    i += 1
                break
    return options, []


def _split_exec(rule: Rule, args: Sequence[str]) -> Tuple[List[str], List[Tuple[str, List[str]]]]:
    """Separate a command's own options from the commands it executes."""
    if rule.interpreter:
        return _split_interpreter(rule, args)
    if not rule.exec_flags:
        return list(args), []

    options: List[str] = []
    nested: List[Tuple[str, List[str]]] = []
    i = 0
    while i < len(args):
        token = args[i]
        if token not in rule.exec_flags:
            options.append(token)
            i += 1
            continue
        if rule.exec_to_end:
            nested.append((token, list(args[i + 1:])))
            break
        end = i + 1
        while end < len(args) and args[end] not in EXEC_TERMINATORS:
            end += 1
        nested.append((token, list(args[i + 1:end])))
        i = end + 1
    return options, nested


# ============================================================================
# Rule application
# ============================================================================

def _block(rule: Rule, invocation: str, inner: str = "") -> Verdict:
    return Verdict.block(rule.reason.format(invocation=invocation, inner=inner))


def _evaluate_script(script: str, depth: int) -> Verdict:
    from .policy import evaluate

    return evaluate(script, depth)


def _apply_subcommand(rule: Rule, label: str, args: Sequence[str], depth: int) -> Verdict:
    index = _subcommand_index(args, rule.value_options)
    if index is None:
        if rule.block_bare and not any(arg in rule.info_flags for arg in args):
            return _block(rule, label)
        return ALLOWED

    subcommand = args[index].lower()
    invocation = f"{label} {subcommand}"
    nested = rule.nested.get(subcommand)
    if nested is not None:
        return apply_rule(nested, invocation, args[index + 1:], depth)

    listed = subcommand in rule.subcommands
    if listed == (rule.mode is Mode.WRITE_SUBCOMMAND):
        return _block(rule, invocation)
    return ALLOWED


def _apply_inline_shell(rule: Rule, label: str, args: Sequence[str], depth: int) -> Verdict:
    if rule.flags:
        index = _flag_index(args, rule.flags, rule.clusters)
        if index is None or index + 1 >= len(args):
            return ALLOWED
        invocation, script = f"{label} {args[index]}", args[index + 1]
    else:
        invocation, script = label, " ".join(args)

    verdict = _evaluate_script(script, depth + 1)
    if verdict.blocked:
        return _block(rule, invocation, inner=verdict.reason)
    return ALLOWED


def apply_rule(rule: Rule, label: str, args: Sequence[str], depth: int = 0) -> Verdict:
    """
    Apply one rule to a command's arguments.

    Args:
        rule: Rule to apply
        label: Command as shown in reasons (e.g. 'git' or 'git branch')
        args: Arguments following the command word
        depth: Current nesting depth

    Returns:
        Verdict of this rule alone
    """
    if rule.mode is Mode.ALWAYS:
        return _block(rule, label)
    if rule.mode in (Mode.WRITE_SUBCOMMAND, Mode.SAFE_SUBCOMMAND):
        return _apply_subcommand(rule, label, args, depth)
    if rule.mode is Mode.INLINE_SHELL:
        return _apply_inline_shell(rule, label, args, depth)

    options, nested = _split_exec(rule, args)
    index = _flag_index(options, rule.flags, rule.clusters)

    if rule.mode is Mode.FLAG_ALLOWS:
        return ALLOWED if index is not None else _block(rule, label)

    if index is not None:
        return _block(rule, f"{label} {options[index]}")

    for flag, tokens in nested:
        verdict = classify_tokens(tokens, depth + 1)
        if verdict.blocked:
            return Verdict.block(f"{label} {flag}: {verdict.reason}")
    return ALLOWED


def classify_tokens(tokens: Sequence[str], depth: int = 0) -> Verdict:
    """Classify a bare token list (no redirect or substitution information)."""
    if depth > MAX_DEPTH:
        return TOO_DEEP

    command = effective_command(tokens)
    if command is None:
        return ALLOWED

    word, args = command
    if "$(" in word or "`" in word:
        return Verdict.block(f"command substitution in command position: {word}")

    name = command_name(word)
    for rule in lookup(name):
        verdict = apply_rule(rule, name, args, depth)
        if verdict.blocked:
            return verdict
    return ALLOWED


def classify(segment: Segment, depth: int = 0) -> Verdict:
    """
    Classify one segment.

    Args:
        segment: Segment produced by the tokenizer
        depth: Nesting depth (0 for top-level input)

    Returns:
        Verdict for this segment, independent of its siblings

    Example:
        >>> classify(Segment(tokens=("rm", "file.txt")))
        Verdict(reason="'rm' deletes files")
        >>> classify(Segment(tokens=("echo", "hi"), redirects=(">",))).blocked
        True
    """
    if segment.has_output_redirect:
        return Verdict.block(f"output redirect '{segment.redirects[0]}' writes to a file")

    verdict = classify_tokens(segment.tokens, depth)
    if verdict.blocked:
        return verdict

    for body in segment.substitutions:
        inner = _evaluate_script(body, depth + 1)
        if inner.blocked:
            return Verdict.block(f"command substitution: {inner.reason}")
    return ALLOWED


def pipeline_writer(segments: Sequence[Segment]) -> Optional[str]:
    """Return the name of a pipeline stage that writes to a file (tee), if any."""
    for segment in segments:
        command = effective_command(segment.tokens)
        if command is not None and command_name(command[0]) in PIPELINE_WRITERS:
            return command_name(command[0])
    return None
