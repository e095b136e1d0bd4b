"""Parser for unified diff hunks emitted by assistants."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Literal, Mapping, Tuple

HunkLineKind = Literal["context", "add", "delete"]

_HUNK_HEADER = re.compile(
    r"^@@ -(?P<old_start>\d+)(?:,(?P<old_count>\d+))? "
    r"\+(?P<new_start>\d+)(?:,(?P<new_count>\d+))? @@"
)
_NO_NEWLINE_MARKER = "\\ No newline at end of file"


class PatchError(RuntimeError):
    """Raised when a diff cannot be parsed or applied."""

    def __init__(self, message: str, *, details: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details: dict[str, Any] = dict(details or {})


@dataclass(slots=True)
class UnifiedDiffHunk:
    """One ``@@`` region of a unified diff."""

    old_start: int
    old_count: int
    new_start: int
    new_count: int
    lines: list[Tuple[HunkLineKind, str]] = field(default_factory=list)
    anchored: bool = True
    old_missing_newline: bool = False
    new_missing_newline: bool = False

    @property
    def old_lines(self) -> list[str]:
        """Lines the hunk expects to find in the base text."""
        return [text for kind, text in self.lines if kind != "add"]

    @property
    def new_lines(self) -> list[str]:
        """Lines the hunk leaves behind."""
        return [text for kind, text in self.lines if kind != "delete"]

    @property
    def preferred_index(self) -> int:
        """Zero-based base line where the hunk claims to start."""
        if self.old_count == 0:
            # Pure insertions name the line they follow.
            return self.old_start
        return max(self.old_start - 1, 0)


def _is_file_header(lines: list[str], index: int) -> bool:
    line = lines[index]
    if line.startswith("diff "):
        return True
    following = lines[index + 1] if index + 1 < len(lines) else ""
    if line.startswith("index ") and following.startswith("--- "):
        return True
    return line.startswith("--- ") and following.startswith("+++ ")


def _open_hunk(line: str) -> UnifiedDiffHunk:
    match = _HUNK_HEADER.match(line)
    if match is None:
        # Bare ``@@`` separators carry no position; the applier searches for them.
        return UnifiedDiffHunk(old_start=0, old_count=-1, new_start=0, new_count=-1, anchored=False)
    return UnifiedDiffHunk(
        old_start=int(match.group("old_start")),
        old_count=int(match.group("old_count")) if match.group("old_count") is not None else 1,
        new_start=int(match.group("new_start")),
        new_count=int(match.group("new_count")) if match.group("new_count") is not None else 1,
    )


def _mark_missing_newline(hunk: UnifiedDiffHunk) -> None:
    # The marker qualifies the line right before it.
    if not hunk.lines:
        return
    kind = hunk.lines[-1][0]
    if kind != "add":
        hunk.old_missing_newline = True
    if kind != "delete":
        hunk.new_missing_newline = True


def parse_unified_diff(diff_text: str) -> list[UnifiedDiffHunk]:
    """Parse ``diff_text`` into ordered hunks.

    File headers (``diff``, ``index``, ``---``/``+++``) are skipped. Lines
    inside a hunk are classified by their first character; the
    ``\\ No newline at end of file`` marker flags the side of the line it
    follows instead of becoming a line itself; any other unrecognised line
    is kept as context. Raises :class:`PatchError` when
    non-empty input contains no hunks at all.
    """
    lines = diff_text.replace("\r\n", "\n").split("\n")
    if lines and lines[-1] == "":
        lines.pop()

    hunks: list[UnifiedDiffHunk] = []
    current: UnifiedDiffHunk | None = None

    for index, line in enumerate(lines):
        if line.startswith("@@"):
            current = _open_hunk(line)
            hunks.append(current)
            continue
        if current is None:
            continue
        if _is_file_header(lines, index):
            current = None
            continue
        if line.startswith(_NO_NEWLINE_MARKER):
            _mark_missing_newline(current)
            continue

        prefix = line[:1]
        if prefix == "+":
            current.lines.append(("add", line[1:]))
        elif prefix == "-":
            current.lines.append(("delete", line[1:]))
        elif prefix == " ":
            current.lines.append(("context", line[1:]))
        else:
            current.lines.append(("context", line))

    if not hunks and diff_text.strip():
        raise PatchError("No hunks found in diff.", details={"reason": "no_hunks"})
    return hunks
