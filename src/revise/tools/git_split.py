"""Split combined git-style diffs into per-file edit operations."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from ..structured import DeleteOp, EditOperation, PatchOp, RenameOp, WriteOp

LOGGER = logging.getLogger(__name__)

_DIFF_GIT_HEADER = re.compile(r"^diff --git (?P<left>\S+) (?P<right>\S+)\s*$")
_GIT_MARKER = "diff --git "
DEV_NULL = "/dev/null"


@dataclass(slots=True)
class _BlockInfo:
    """Metadata gathered from one ``diff --git`` block."""

    header_old: str | None = None
    header_new: str | None = None
    old_path: str | None = None
    new_path: str | None = None
    rename_from: str | None = None
    rename_to: str | None = None
    new_file: bool = False
    deleted_file: bool = False
    has_hunks: bool = False


def normalise_diff_path(entry: str | None) -> str | None:
    """Translate a diff header operand into a workspace-relative path."""
    if entry is None:
        return None
    candidate = entry.strip()
    # ``--- a/x.py\t2024-01-01 ...`` carries a timestamp after a tab.
    candidate = candidate.split("\t", 1)[0].strip()
    if len(candidate) >= 2 and candidate[0] == candidate[-1] == '"':
        candidate = candidate[1:-1]
    if not candidate or candidate == DEV_NULL:
        return None
    if candidate.startswith("a/") or candidate.startswith("b/"):
        candidate = candidate[2:]
    return candidate or None


def count_git_blocks(text: str) -> int:
    """Return how many ``diff --git`` blocks ``text`` contains."""
    return sum(1 for line in text.splitlines() if line.startswith(_GIT_MARKER))


def _header_starts(lines: list[str]) -> list[int]:
    """Return the indexes of ``---`` lines directly followed by ``+++``."""
    return [
        index
        for index, line in enumerate(lines[:-1])
        if line.startswith("--- ") and lines[index + 1].startswith("+++ ")
    ]


def _split_blocks(text: str) -> list[str]:
    lines = text.replace("\r\n", "\n").split("\n")
    starts = [index for index, line in enumerate(lines) if line.startswith(_GIT_MARKER)]
    if not starts:
        starts = _header_starts(lines)
        if len(starts) < 2:
            return [text] if text.strip() else []
        # Leading prose stays with the first file.
        starts[0] = 0
    blocks = []
    for position, start in enumerate(starts):
        end = starts[position + 1] if position + 1 < len(starts) else len(lines)
        block = "\n".join(lines[start:end]).rstrip("\n")
        blocks.append(block + "\n")
    return blocks


def _inspect_block(block: str) -> _BlockInfo:
    info = _BlockInfo()
    in_hunk = False
    for line in block.split("\n"):
        if line.startswith("@@"):
            info.has_hunks = True
            in_hunk = True
            continue
        if line.startswith(_GIT_MARKER):
            match = _DIFF_GIT_HEADER.match(line)
            if match:
                info.header_old = normalise_diff_path(match.group("left"))
                info.header_new = normalise_diff_path(match.group("right"))
            continue
        if in_hunk:
            continue
        if line.startswith("rename from "):
            info.rename_from = normalise_diff_path(line[len("rename from ") :])
        elif line.startswith("rename to "):
            info.rename_to = normalise_diff_path(line[len("rename to ") :])
        elif line.startswith("new file mode"):
            info.new_file = True
        elif line.startswith("deleted file mode"):
            info.deleted_file = True
        elif line.startswith("--- "):
            operand = line[4:]
            if operand.strip().split("\t", 1)[0] == DEV_NULL:
                info.new_file = True
            info.old_path = normalise_diff_path(operand)
        elif line.startswith("+++ "):
            operand = line[4:]
            if operand.strip().split("\t", 1)[0] == DEV_NULL:
                info.deleted_file = True
            info.new_path = normalise_diff_path(operand)
    return info


def _block_operations(block: str) -> list[EditOperation]:
    info = _inspect_block(block)
    old_path = info.rename_from or info.old_path or info.header_old
    new_path = info.rename_to or info.new_path or info.header_new

    if info.rename_from and info.rename_to and info.rename_from != info.rename_to:
        operations: list[EditOperation] = [RenameOp(source=info.rename_from, target=info.rename_to)]
        if info.has_hunks:
            operations.append(PatchOp(path=info.rename_to, diff_text=block))
        return operations

    if info.deleted_file:
        target = old_path or new_path
        return [DeleteOp(path=target)] if target else []

    path = new_path or old_path
    if not path:
        return []
    if info.has_hunks:
        return [PatchOp(path=path, diff_text=block)]
    if info.new_file:
        return [WriteOp(path=path, content="")]
    return []


def split_git_diff(text: str) -> list[EditOperation]:
    """Split a combined diff into per-file operations.

    Each ``diff --git`` block becomes a rename, delete, patch or empty-file
    write. Input without any ``diff --git`` marker is split at each
    ``---``/``+++`` header pair, every block taking its path from its own
    headers. Blocks that resolve to no path are dropped.
    """
    operations: list[EditOperation] = []
    for block in _split_blocks(text):
        produced = _block_operations(block)
        if not produced:
            LOGGER.debug("Dropping diff block without an identifiable file: %r", block[:120])
        operations.extend(produced)
    return operations
