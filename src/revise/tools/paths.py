"""Sanitisation of untrusted edit paths and normalisation of edit lists."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, replace
from typing import Iterable, Sequence

from ..structured import DeleteOp, EditOperation, PatchOp, RenameOp, RunOp, WriteOp
from .git_split import count_git_blocks, split_git_diff

LOGGER = logging.getLogger(__name__)

_DRIVE_LETTER = re.compile(r"^[A-Za-z]:(?:/|$)")
_FILE_HEADER = re.compile(r"^(?:---|\+\+\+) \S", re.MULTILINE)


@dataclass(slots=True)
class NormalizedEdits:
    """Edits with safe workspace-relative paths."""

    edits: list[EditOperation] = field(default_factory=list)
    did_sanitize: bool = False
    changed_paths: list[tuple[str, str]] = field(default_factory=list)


def _normalise_root(workspace_root: str | None) -> str:
    if not workspace_root:
        return ""
    root = workspace_root.strip().replace("\\", "/")
    return root.rstrip("/")


def _strip_dot_slash(path: str) -> str:
    while path.startswith("./"):
        path = path[2:]
    return path


def _basename(path: str) -> str:
    segments = [segment for segment in path.split("/") if segment not in {"", ".", ".."}]
    return segments[-1] if segments else ""


def sanitize_path(path: str, workspace_root: str | None = None) -> str:
    """Rewrite ``path`` into a workspace-relative, traversal-free form.

    Absolute paths outside ``workspace_root`` and paths containing ``..`` are
    flattened to their last segment so they can never escape the workspace.
    """
    candidate = _strip_dot_slash(path.strip().replace("\\", "/"))

    root = _normalise_root(workspace_root)
    if root and (candidate == root or candidate.startswith(root + "/")):
        candidate = _strip_dot_slash(candidate[len(root) :].lstrip("/"))

    is_absolute = candidate.startswith("/") or bool(_DRIVE_LETTER.match(candidate))
    if is_absolute or ".." in candidate.split("/"):
        candidate = _basename(candidate)

    return candidate.lstrip("/")


def _looks_like_file_diff(text: str) -> bool:
    return count_git_blocks(text) > 0 or _FILE_HEADER.search(text) is not None


def _expand(edits: Iterable[EditOperation]) -> list[EditOperation]:
    expanded: list[EditOperation] = []
    for edit in edits:
        if isinstance(edit, PatchOp):
            if edit.path is None and _looks_like_file_diff(edit.diff_text):
                expanded.extend(split_git_diff(edit.diff_text))
                continue
            if edit.path is not None and count_git_blocks(edit.diff_text) > 1:
                # The embedded multi-file diff wins over the single path hint.
                expanded.extend(split_git_diff(edit.diff_text))
                continue
            if edit.path is None:
                LOGGER.debug("Dropping patch without a path or file headers")
                continue
        expanded.append(edit)
    return expanded


def normalize_edits(
    edits: Sequence[EditOperation],
    workspace_root: str | None = None,
) -> NormalizedEdits:
    """Expand embedded multi-file diffs and sanitise every path."""
    result = NormalizedEdits()

    def clean(raw: str) -> str:
        safe = sanitize_path(raw, workspace_root)
        if safe != raw:
            result.did_sanitize = True
            result.changed_paths.append((raw, safe))
        return safe

    for edit in _expand(edits):
        if isinstance(edit, RunOp):
            result.edits.append(edit)
            continue
        if isinstance(edit, RenameOp):
            source, target = clean(edit.source), clean(edit.target)
            if not source or not target:
                continue
            result.edits.append(replace(edit, source=source, target=target))
            continue
        if isinstance(edit, (WriteOp, PatchOp, DeleteOp)):
            path = clean(edit.path or "")
            if not path:
                continue
            result.edits.append(replace(edit, path=path))

    if result.did_sanitize:
        LOGGER.warning("Sanitised %d edit path(s)", len(result.changed_paths))
    return result
