"""
Quote-aware segmentation of shell command lines.

A command line is cut into Segments, one per command invocation, by splitting
on line breaks and on the unquoted control operators ``;``, ``&&``, ``||``,
``|``, ``|&``, ``&``, ``(`` and ``)``. Output redirections are recorded on the
segment instead of being kept as tokens, and the bodies of command and
process substitutions are collected so they can be classified on their own.

DESIGN:
    The scanner is a small explicit state machine with three states
    (unquoted, single-quoted, double-quoted). It makes a single left-to-right
    pass over the text, so its cost is linear in the input length, and it
    never raises: an unterminated quote or substitution swallows the rest of
    the text it is scanning.

    Multi-line input is scanned line by line and then once more as a whole,
    because a quoted span may legitimately cross a line break. The caller
    ORs the verdicts, so the extra pass can only add segments.
"""

from dataclasses import dataclass
from typing import List, Tuple

UNQUOTED = "unquoted"
SINGLE = "single"
DOUBLE = "double"

WHITESPACE = frozenset(" \t\r\f\v")

# Characters a backslash escapes inside double quotes
DOUBLE_QUOTE_ESCAPES = frozenset('"\\$`\n')


@dataclass(frozen=True)
class Segment:
    """One command invocation extracted from a command line."""

    tokens: Tuple[str, ...]
    redirects: Tuple[str, ...] = ()
    substitutions: Tuple[str, ...] = ()

    @property
    def has_output_redirect(self) -> bool:
        """True when an unquoted ``>`` operator appears anywhere in the segment."""
        return bool(self.redirects)


class _Scanner:
    """Single-pass tokenizer for one chunk of shell text."""

    def __init__(self, text: str):
        self.text = text
        self.pos = 0
        self.segments: List[Segment] = []
        self._tokens: List[str] = []
        self._redirects: List[str] = []
        self._substitutions: List[str] = []
        self._word: List[str] = []
        self._in_word = False

    def scan(self) -> List[Segment]:
        state = UNQUOTED
        while self.pos < len(self.text):
            ch = self.text[self.pos]
            if state == SINGLE:
                if ch == "'":
                    state = UNQUOTED
                else:
                    self._word.append(ch)
                self.pos += 1
            elif state == DOUBLE:
                state = self._step_double(ch)
            else:
                state = self._step_unquoted(ch)
        self._end_segment()
        return self.segments

    # ------------------------------------------------------------------
    # State transitions
    # ------------------------------------------------------------------

    def _step_double(self, ch: str) -> str:
        nxt = self._peek(1)
        if ch == '"':
            self.pos += 1
            return UNQUOTED
        if ch == "\\" and nxt in DOUBLE_QUOTE_ESCAPES:
            if nxt != "\n":
                self._word.append(nxt)
            self.pos += 2
        elif ch == "$" and nxt == "(":
            body, end = self._read_parenthesized(self.pos + 2)
            self._add_substitution("$(", body, ")", end)
        elif ch == "`":
            body, end = self._read_backticks(self.pos + 1)
            self._add_substitution("`", body, "`", end)
        else:
            self._word.append(ch)
            self.pos += 1
        return DOUBLE

    def _step_unquoted(self, ch: str) -> str:
        nxt = self._peek(1)

        if ch in WHITESPACE:
            self._flush_word()
            self.pos += 1
        elif ch == "\n":
            self._end_segment()
            self.pos += 1
        elif ch == "\\":
            # backslash-newline is a line continuation and disappears
            if nxt and nxt != "\n":
                self._word.append(nxt)
            self.pos += 2
        elif ch == "'":
            self._in_word = True
            self.pos += 1
            return SINGLE
        elif ch == '"':
            self._in_word = True
            self.pos += 1
            return DOUBLE
        elif ch == "#" and not self._word and not self._in_word:
            self._skip_comment()
        elif ch == "$" and nxt == "(":
            body, end = self._read_parenthesized(self.pos + 2)
            self._add_substitution("$(", body, ")", end)
        elif ch == "`":
            body, end = self._read_backticks(self.pos + 1)
            self._add_substitution("`", body, "`", end)
        elif ch == ";":
            self._end_segment()
            self.pos += 1
        elif ch == "|":
            self._end_segment()
            self.pos += 2 if nxt in ("|", "&") else 1
        elif ch == "&":
            if nxt == ">":
                self._flush_word()
                self.pos += 1
                self._read_output_redirect(prefix="&")
            else:
                self._end_segment()
                self.pos += 2 if nxt == "&" else 1
        elif ch in ("(", ")"):
            self._end_segment()
            self.pos += 1
        elif ch == ">":
            self._read_output_redirect()
        elif ch == "<":
            self._read_input_redirect()
        else:
            self._word.append(ch)
            self.pos += 1
        return UNQUOTED

    # ------------------------------------------------------------------
    # Operators
    # ------------------------------------------------------------------

    def _read_output_redirect(self, prefix: str = "") -> None:
        """Record ``>``, ``>>``, ``>&``, ``>|`` (optionally fd-prefixed) or ``>(...)``."""
        word = "".join(self._word)
        if not prefix and word.isdigit() and not self._in_word:
            # "2>" - the fd number belongs to the operator
            prefix = word
            self._word = []
        self._flush_word()

        start = self.pos
        self.pos += 1
        if self._peek(0) == "(":
            body, end = self._read_parenthesized(self.pos + 1)
            self._redirects.append(prefix + ">(")
            self._add_process_substitution(">(", body, end)
            return
        if self._peek(0) in (">", "&", "|"):
            self.pos += 1
        self._redirects.append(prefix + self.text[start:self.pos])

    def _read_input_redirect(self) -> None:
        """Input redirects only break words, except ``<>`` and ``<(...)``."""
        self._flush_word()
        nxt = self._peek(1)
        if nxt == "(":
            body, end = self._read_parenthesized(self.pos + 2)
            self._add_process_substitution("<(", body, end)
        elif nxt == ">":
            # <> opens the target read-write and creates it if missing
            self._redirects.append("<>")
            self.pos += 2
        else:
            self.pos += 1
            while self._peek(0) in ("<", "&"):
                self.pos += 1

    def _add_substitution(self, opener: str, body: str, closer: str, end: int) -> None:
        self._substitutions.append(body)
        self._word.append(f"{opener}{body}{closer}")
        self._in_word = True
        self.pos = end

    def _add_process_substitution(self, opener: str, body: str, end: int) -> None:
        self._flush_word()
        self._substitutions.append(body)
        self._tokens.append(f"{opener}{body})")
        self.pos = end

    # ------------------------------------------------------------------
    # Spans
    # ------------------------------------------------------------------

    def _read_parenthesized(self, start: int) -> Tuple[str, int]:
        """Return the body of a ``(`` opened just before ``start`` and the index past its ``)``."""
        text = self.text
        depth = 1
        state = UNQUOTED
        i = start
        while i < len(text):
            ch = text[i]
            if state == SINGLE:
                if ch == "'":
                    state = UNQUOTED
            elif ch == "\\":
                i += 1
            elif state == DOUBLE:
                if ch == '"':
                    state = UNQUOTED
            elif ch == "'":
                state = SINGLE
            elif ch == '"':
                state = DOUBLE
            elif ch == "(":
                depth += 1
            elif ch == ")":
                depth -= 1
                if depth == 0:
                    return text[start:i], i + 1
            i += 1
        return text[start:], len(text)

    def _read_backticks(self, start: int) -> Tuple[str, int]:
        text = self.text
        i = start
        while i < len(text):
            if text[i] == "\\":
                i += 2
                continue
            if text[i] == "`":
                return text[start:i], i + 1
            i += 1
        return text[start:], len(text)

    def _skip_comment(self) -> None:
        newline = self.text.find("\n", self.pos)
        self.pos = len(self.text) if newline == -1 else newline

    # ------------------------------------------------------------------
    # Boundaries
    # ------------------------------------------------------------------

    def _peek(self, offset: int) -> str:
        index = self.pos + offset
        return self.text[index] if index < len(self.text) else ""

    def _flush_word(self) -> None:
        if self._word or self._in_word:
            self._tokens.append("".join(self._word))
        self._word = []
        self._in_word = False

    def _end_segment(self) -> None:
        self._flush_word()
        if self._tokens or self._redirects or self._substitutions:
            self.segments.append(
                Segment(
                    tokens=tuple(self._tokens),
                    redirects=tuple(self._redirects),
                    substitutions=tuple(self._substitutions),
                )
            )
        self._tokens = []
        self._redirects = []
        self._substitutions = []


def segment(raw: str) -> List[Segment]:
    """
    Split a raw command line into evaluable segments.

    Args:
        raw: Command text exactly as it would be handed to a shell

    Returns:
        Segments in left-to-right order (lines first, then compound/pipe
        parts within a line). Empty, whitespace-only and comment-only input
        yields an empty list.

    Raises:
        TypeError: If raw is not a string

    Example:
        >>> [s.tokens for s in segment("ls && rm file.txt")]
        [('ls',), ('rm', 'file.txt')]
        >>> segment("echo hi > out.txt")[0].redirects
        ('>',)
    """
    if not isinstance(raw, str):
        raise TypeError(f"command must be a string, not {type(raw).__name__}")

    segments: List[Segment] = []
    lines = raw.split("\n")
    for line in lines:
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        segments.extend(_Scanner(line).scan())

    if len(lines) > 1 and raw.strip():
        segments.extend(_Scanner(raw).scan())

    return segments
