"""
Static rule taxonomy for the command safety gate.

Every rule is a frozen record keyed by command name. The table is built once
at import time and exposed as a read-only mapping; nothing mutates it at
runtime, so concurrent lookups need no locking.

Commands missing from the table are allowed. That permissive default is a
policy choice: read, search and listing tools (cat, grep, ls, du, ...) fall
through, and so does any third-party CLI with a write mode we do not know
about.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, Mapping, Optional, Tuple


class Mode(Enum):
    """How a rule decides."""
    ALWAYS = "always-blocked"
    WRITE_SUBCOMMAND = "blocked-if-subcommand-in"
    SAFE_SUBCOMMAND = "blocked-unless-subcommand-in"
    FLAG_BLOCKS = "blocked-if-flag-present"
    FLAG_ALLOWS = "blocked-unless-flag-present"
    INLINE_SHELL = "inline-shell"


@dataclass(frozen=True)
class Rule:
    """
    One entry of the taxonomy.

    Attributes:
        mode: Classification mode
        reason: Template for the block reason. ``{invocation}`` expands to the
            offending command (and subcommand or flag), ``{inner}`` to the
            reason of a nested block.
        subcommands: Write-set or safe-set, depending on mode
        flags: Flags that block (FLAG_BLOCKS), make safe (FLAG_ALLOWS) or
            carry an inline script (INLINE_SHELL). Single-letter flags also
            match inside short-option clusters (``-pi``, ``-sSLo``) unless
            ``clusters`` is off. Long flags match as prefixes.
        value_options: Options that consume a value: the next token when
            looking for a subcommand, or the attached remainder of a short
            option for interpreters
        nested: Per-subcommand rules applied to the remaining arguments
        block_bare: Block when no subcommand is given at all
        info_flags: Options that only print information, exempting a bare
            invocation from ``block_bare`` (``yarn --version``)
        exec_flags: Flags introducing a nested command (``find -exec``)
        exec_to_end: The nested command runs to the end of the arguments
            (``python -m``) instead of up to ``;`` or ``+``
        clusters: Whether single-letter flags match inside clusters
        interpreter: Parse options the way an interpreter does: short
            options are expanded letter by letter, and the first operand
            (the script) ends option parsing
    """

    mode: Mode
    reason: str
    subcommands: FrozenSet[str] = frozenset()
    flags: FrozenSet[str] = frozenset()
    value_options: FrozenSet[str] = frozenset()
    nested: Mapping[str, "Rule"] = field(default_factory=lambda: MappingProxyType({}))
    block_bare: bool = False
    info_flags: FrozenSet[str] = frozenset()
    exec_flags: FrozenSet[str] = frozenset()
    exec_to_end: bool = False
    clusters: bool = True
    interpreter: bool = False

    def describe(self) -> str:
        """Short human-readable summary of what the rule looks at."""
        if self.mode is Mode.ALWAYS:
            return "every invocation"
        if self.mode in (Mode.WRITE_SUBCOMMAND, Mode.SAFE_SUBCOMMAND):
            parts = [", ".join(sorted(self.subcommands))]
            for name, rule in sorted(self.nested.items()):
                parts.append(f"{name} with {', '.join(sorted(rule.flags))}")
            return "; ".join(parts)
        detail = ", ".join(sorted(self.flags)) or "all arguments"
        if self.exec_flags:
            detail += f"; nested commands after {', '.join(sorted(self.exec_flags))}"
        return detail


# ============================================================================
# Shell structure
# ============================================================================

# Reserved words that can precede the command of a segment
SHELL_KEYWORDS = frozenset({
    "{", "}", "!", "if", "then", "else", "elif", "do", "while", "until",
})

# Commands that run another command given as their arguments.
# Value: options that consume the next token.
WRAPPERS: Mapping[str, FrozenSet[str]] = MappingProxyType({
    "sudo": frozenset({"-u", "-g", "-h", "-p", "-C", "-D", "-r", "-t", "-U", "-T"}),
    "doas": frozenset({"-u", "-C"}),
    "env": frozenset({"-u", "-C", "-S", "--unset", "--chdir"}),
    "nice": frozenset({"-n", "--adjustment"}),
    "nohup": frozenset(),
    "timeout": frozenset({"-s", "-k", "--signal", "--kill-after"}),
    "xargs": frozenset({"-I", "-n", "-P", "-L", "-d", "-E", "-s", "-a"}),
    "exec": frozenset({"-a"}),
    "stdbuf": frozenset({"-i", "-o", "-e"}),
    "ionice": frozenset({"-c", "-n", "-p"}),
    "time": frozenset({"-f", "-o", "--format", "--output"}),
    "command": frozenset(),
    "builtin": frozenset(),
})

# Wrappers whose first operand is a parameter rather than the command
WRAPPER_POSITIONALS: Mapping[str, int] = MappingProxyType({"timeout": 1})

# Wrapper options that only look a command up instead of running it
WRAPPER_QUERIES: Mapping[str, FrozenSet[str]] = MappingProxyType({
    "command": frozenset({"-v", "-V"}),
})


# ============================================================================
# Taxonomy
# ============================================================================

def _always(reason: str, *names: str) -> Dict[str, Tuple[Rule, ...]]:
    rule = Rule(Mode.ALWAYS, reason)
    return {name: (rule,) for name in names}


def _same(rule: Rule, *names: str) -> Dict[str, Tuple[Rule, ...]]:
    return {name: (rule,) for name in names}


GIT_WRITE_SUBCOMMANDS = frozenset({
    "commit", "push", "merge", "rebase", "reset", "stash", "cherry-pick",
    "revert", "clean", "rm", "mv",
    "add", "am", "apply", "checkout", "restore", "switch", "pull", "fetch",
    "clone", "init", "gc", "prune", "filter-branch", "update-ref", "worktree",
    "submodule",
})

JS_WRITE_SUBCOMMANDS = frozenset({
    "install", "i", "ci", "uninstall", "remove", "rm", "un", "update", "up",
    "upgrade", "link", "ln", "rebuild", "add", "publish", "prune", "dedupe",
    "init",
})

PIP_WRITE_SUBCOMMANDS = frozenset({"install", "uninstall", "download", "wheel"})

CARGO_WRITE_SUBCOMMANDS = frozenset({
    "install", "uninstall", "build", "b", "add", "remove", "rm", "update",
    "new", "init", "clean", "publish", "fix", "vendor", "package", "yank",
})

_INLINE_SCRIPT = "inline script execution via '{invocation}'"

_git = Rule(
    Mode.WRITE_SUBCOMMAND,
    "'{invocation}' modifies repository state",
    subcommands=GIT_WRITE_SUBCOMMANDS,
    value_options=frozenset({"-C", "-c", "--git-dir", "--work-tree", "--namespace"}),
    nested=MappingProxyType({
        "branch": Rule(
            Mode.FLAG_BLOCKS,
            "'{invocation}' deletes or renames a branch",
            flags=frozenset({"-d", "-D", "--delete", "-m", "-M", "--move"}),
        ),
    }),
)


def _js_manager(value_options: Iterable[str], block_bare: bool = False) -> Rule:
    return Rule(
        Mode.WRITE_SUBCOMMAND,
        "'{invocation}' modifies installed packages",
        subcommands=JS_WRITE_SUBCOMMANDS,
        value_options=frozenset(value_options),
        block_bare=block_bare,
        info_flags=frozenset({"--version", "-v", "--help", "-h"}),
    )


_pip = Rule(
    Mode.WRITE_SUBCOMMAND,
    "'{invocation}' modifies installed packages",
    subcommands=PIP_WRITE_SUBCOMMANDS,
)

_cargo = Rule(
    Mode.WRITE_SUBCOMMAND,
    "'{invocation}' builds or modifies packages",
    subcommands=CARGO_WRITE_SUBCOMMANDS,
    value_options=frozenset({"--manifest-path", "--config", "-Z"}),
)

_build = Rule(
    Mode.FLAG_ALLOWS,
    "'{invocation}' runs a build (preview with -n or --dry-run)",
    flags=frozenset({"-n", "--dry-run", "--just-print", "--recon"}),
    # "-Cn" means directory "n", not a dry run
    clusters=False,
)

_in_place = Rule(
    Mode.FLAG_BLOCKS,
    "in-place edit via '{invocation}'",
    flags=frozenset({"-i", "--in-place"}),
)

_python = Rule(
    Mode.FLAG_BLOCKS,
    _INLINE_SCRIPT,
    flags=frozenset({"-c", "-e"}),
    value_options=frozenset({"-c", "-W", "-X"}),
    exec_flags=frozenset({"-m"}),
    exec_to_end=True,
    clusters=False,
    interpreter=True,
)

_shell = Rule(
    Mode.INLINE_SHELL,
    "{invocation}: {inner}",
    flags=frozenset({"-c"}),
)

_RULES: Dict[str, Tuple[Rule, ...]] = {}
_RULES.update(_always("'{invocation}' deletes files", "rm", "rmdir", "unlink", "shred"))
_RULES.update(_always("'{invocation}' moves or copies files", "mv", "cp", "install", "rsync", "scp"))
_RULES.update(_always("'{invocation}' creates links", "ln"))
_RULES.update(_always("'{invocation}' creates files or directories", "touch", "mkdir", "mkfifo", "mknod"))
_RULES.update(_always("'{invocation}' changes permissions or ownership", "chmod", "chown", "chgrp"))
_RULES.update(_always("'{invocation}' resizes files", "truncate"))
_RULES.update(_always("'{invocation}' writes raw data to files or devices", "dd", "mkfs"))
_RULES.update(_always("'{invocation}' applies changes to files", "patch"))
_RULES.update(_always("'{invocation}' downloads files to disk", "wget"))
_RULES["git"] = (_git,)
_RULES["npm"] = (_js_manager({"--prefix", "-w", "--workspace"}),)
_RULES["pnpm"] = (_js_manager({"-C", "--dir", "--filter", "-F"}),)
_RULES["yarn"] = (_js_manager({"--cwd"}, block_bare=True),)
_RULES.update(_same(_pip, "pip", "pip3"))
_RULES["cargo"] = (_cargo,)
_RULES.update(_same(_build, "make", "cmake"))
_RULES["sed"] = (_in_place,)
_RULES["perl"] = (
    _in_place,
    Rule(Mode.FLAG_BLOCKS, _INLINE_SCRIPT, flags=frozenset({"-e", "-E"})),
)
_RULES.update(_same(_python, "python", "python2", "python3"))
_RULES.update(_same(
    Rule(Mode.FLAG_BLOCKS, _INLINE_SCRIPT, flags=frozenset({"-c", "-e", "-p", "--eval", "--print"})),
    "node", "nodejs",
))
_RULES["ruby"] = (Rule(Mode.FLAG_BLOCKS, _INLINE_SCRIPT, flags=frozenset({"-c", "-e"})),)
_RULES["curl"] = (
    Rule(
        Mode.FLAG_BLOCKS,
        "'{invocation}' writes the download to a file",
        flags=frozenset({"-o", "--output", "-O", "--remote-name"}),
    ),
)
_RULES.update(_same(_shell, "sh", "bash", "zsh", "dash", "ksh", "fish"))
_RULES["eval"] = (Rule(Mode.INLINE_SHELL, "{invocation}: {inner}"),)
_RULES["find"] = (
    Rule(
        Mode.FLAG_BLOCKS,
        "'{invocation}' modifies files",
        flags=frozenset({"-delete", "-fprint", "-fprint0", "-fprintf", "-fls"}),
        exec_flags=frozenset({"-exec", "-execdir", "-ok", "-okdir"}),
        clusters=False,
    ),
)

RULES: Mapping[str, Tuple[Rule, ...]] = MappingProxyType(_RULES)

# Pipeline stages that always write their input to a file
PIPELINE_WRITERS = frozenset({"tee"})


def lookup(command: str) -> Tuple[Rule, ...]:
    """Return the rules for a command name (empty when unknown)."""
    return RULES.get(command, ())


def wrapper_options(command: str) -> Optional[FrozenSet[str]]:
    """Return the value-taking options of a wrapper, or None if not a wrapper."""
    return WRAPPERS.get(command)
