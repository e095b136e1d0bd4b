"""Turn normalised edit operations into a reviewable change set."""

from __future__ import annotations

import logging
from typing import Mapping, Sequence

from ..structured import DeleteOp, EditOperation, PatchOp, RenameOp, RunOp, WriteOp
from ..telemetry import emit_event
from ..tools.patch import PatchError, apply_unified_diff
from ..workspace import Workspace, WorkspaceFileNotFound
from .schema import ChangeFile, ChangeKind, ChangeSet

LOGGER = logging.getLogger(__name__)

_MISSING = object()


class _ContentResolver:
    """Resolve file content as it would look part-way through the edit list.

    Earlier operations in the same change set are staged in memory so a
    rename followed by a patch on the new path sees the moved content.
    Open editor buffers win over the workspace so unsaved edits are not
    clobbered.
    """

    def __init__(self, workspace: Workspace, open_buffers: Mapping[str, str] | None) -> None:
        self._workspace = workspace
        self._buffers = dict(open_buffers or {})
        self._staged: dict[str, str | None] = {}

    def current(self, path: str) -> str | None:
        staged = self._staged.get(path, _MISSING)
        if staged is not _MISSING:
            return staged  # type: ignore[return-value]
        if path in self._buffers:
            return self._buffers[path]
        try:
            return self._workspace.read_file(path)
        except WorkspaceFileNotFound:
            return None

    def stage(self, path: str, content: str | None) -> None:
        self._staged[path] = content


def _change_for(edit: EditOperation, resolver: _ContentResolver) -> ChangeFile:
    if isinstance(edit, WriteOp):
        before = resolver.current(edit.path)
        resolver.stage(edit.path, edit.content)
        return ChangeFile(kind=ChangeKind.WRITE, target=edit.path, before=before, after=edit.content)

    if isinstance(edit, PatchOp):
        assert edit.path is not None
        before = resolver.current(edit.path)
        try:
            after = apply_unified_diff(before, edit.diff_text)
        except PatchError as error:
            details = {**error.details, "path": edit.path}
            raise PatchError(f"{edit.path}: {error}", details=details) from error
        resolver.stage(edit.path, after)
        return ChangeFile(kind=ChangeKind.WRITE, target=edit.path, before=before, after=after)

    if isinstance(edit, DeleteOp):
        before = resolver.current(edit.path)
        resolver.stage(edit.path, None)
        return ChangeFile(kind=ChangeKind.DELETE, target=edit.path, before=before, after=None)

    assert isinstance(edit, RenameOp)
    content = resolver.current(edit.source)
    if content is None:
        raise WorkspaceFileNotFound(f"rename {edit.source} -> {edit.target}: source does not exist")
    resolver.stage(edit.source, None)
    resolver.stage(edit.target, content)
    return ChangeFile(
        kind=ChangeKind.RENAME,
        target=edit.target,
        source=edit.source,
        before=content,
        after=content,
    )


def _touched(change: ChangeFile) -> set[str]:
    return {path for path in (change.target, change.source) if path}


def build_change_set(
    edits: Sequence[EditOperation],
    workspace: Workspace,
    *,
    open_buffers: Mapping[str, str] | None = None,
    sanitized: bool = False,
) -> ChangeSet:
    """Resolve before/after content for every file touched by ``edits``.

    Repeated operations of the same kind on the same file collapse into the
    first entry, which keeps its position and ``before`` and takes the latest
    ``after``. Operations separated by another entry touching the same path,
    such as a rename away from it, stay separate entries applied in order.
    Any patch that fails to apply aborts the whole build with
    :class:`PatchError`, and a rename of a missing file with
    :class:`WorkspaceFileNotFound`; a partially built change set is never
    returned.
    """
    resolver = _ContentResolver(workspace, open_buffers)
    files: list[ChangeFile] = []
    latest: dict[tuple[ChangeKind, str], int] = {}

    for edit in edits:
        if isinstance(edit, RunOp):
            continue
        change = _change_for(edit, resolver)
        key = (change.kind, change.path)
        index = latest.get(key)
        touched = _touched(change)
        if index is not None and not any(_touched(later) & touched for later in files[index + 1 :]):
            files[index] = change.model_copy(update={"before": files[index].before})
            continue
        latest[key] = len(files)
        files.append(change)

    change_set = ChangeSet(edits=tuple(edits), files=tuple(files), sanitized=sanitized)
    stats = change_set.stats
    LOGGER.info(
        "Built change set %s: %d file(s), +%d -%d",
        change_set.id,
        stats.files_changed,
        stats.lines_added,
        stats.lines_removed,
    )
    emit_event(
        "changeset.built",
        change_set=change_set.id,
        files=[change.path for change in change_set.files],
        stats=stats.model_dump(),
        sanitized=sanitized,
    )
    return change_set
