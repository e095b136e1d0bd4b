"""Typed payloads describing the edit operations proposed by an assistant."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, ClassVar, Mapping, Union

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class WriteOp:
    """Replace or create a file with complete content."""

    op: ClassVar[str] = "write"

    path: str
    content: str


@dataclass(frozen=True, slots=True)
class PatchOp:
    """Unified diff text to apply against the current content at ``path``.

    ``path`` may be ``None`` when the diff itself names its files; the edit
    normaliser expands such payloads into per-file operations.
    """

    op: ClassVar[str] = "patch"

    path: str | None
    diff_text: str


@dataclass(frozen=True, slots=True)
class DeleteOp:
    """Remove a file from the workspace."""

    op: ClassVar[str] = "delete"

    path: str


@dataclass(frozen=True, slots=True)
class RenameOp:
    """Move a file to a new location without changing its bytes."""

    op: ClassVar[str] = "rename"

    source: str
    target: str


@dataclass(frozen=True, slots=True)
class RunOp:
    """Shell command queued for the external command runner."""

    op: ClassVar[str] = "run"

    command: str


EditOperation = Union[WriteOp, PatchOp, DeleteOp, RenameOp, RunOp]
FILE_OPERATIONS = (WriteOp, PatchOp, DeleteOp, RenameOp)


def _text_field(payload: Mapping[str, Any], *keys: str) -> str | None:
    for key in keys:
        value = payload.get(key)
        if isinstance(value, str):
            return value
    return None


def _path_field(payload: Mapping[str, Any], *keys: str) -> str | None:
    value = _text_field(payload, *keys)
    if value is None:
        return None
    candidate = value.strip()
    return candidate or None


def edit_from_mapping(payload: Any) -> EditOperation | None:
    """Convert a loosely structured ``{"op": ...}`` mapping into an edit.

    Entries with an unknown ``op`` or missing required fields yield ``None``.
    """
    if not isinstance(payload, Mapping):
        return None
    op = payload.get("op") or payload.get("type") or payload.get("action")
    if not isinstance(op, str):
        return None
    op = op.strip().lower()

    if op in {"write", "create", "replace"}:
        path = _path_field(payload, "path", "file")
        if path is None:
            return None
        content = _text_field(payload, "content", "contents")
        return WriteOp(path=path, content=content if content is not None else "")
    if op in {"patch", "diff", "edit"}:
        diff_text = _text_field(payload, "content", "diff", "patch")
        if not diff_text or not diff_text.strip():
            return None
        return PatchOp(path=_path_field(payload, "path", "file"), diff_text=diff_text)
    if op in {"delete", "remove"}:
        path = _path_field(payload, "path", "file")
        return DeleteOp(path=path) if path else None
    if op in {"rename", "move"}:
        source = _path_field(payload, "from", "source", "old_path")
        target = _path_field(payload, "to", "target", "new_path", "path")
        if not source or not target:
            return None
        return RenameOp(source=source, target=target)
    if op in {"run", "command", "shell"}:
        command = _text_field(payload, "command", "content", "cmd")
        if not command or not command.strip():
            return None
        return RunOp(command=command.strip())

    LOGGER.debug("Dropping edit with unsupported op %r", op)
    return None


def edit_to_dict(edit: EditOperation) -> dict[str, Any]:
    """Return the wire representation of ``edit``."""
    if isinstance(edit, WriteOp):
        return {"op": edit.op, "path": edit.path, "content": edit.content}
    if isinstance(edit, PatchOp):
        return {"op": edit.op, "path": edit.path, "content": edit.diff_text}
    if isinstance(edit, DeleteOp):
        return {"op": edit.op, "path": edit.path}
    if isinstance(edit, RenameOp):
        return {"op": edit.op, "from": edit.source, "to": edit.target}
    return {"op": edit.op, "command": edit.command}

