"""Apply, revert, and per-file review of change sets.

The controller performs workspace mutations one at a time, in a fixed
order, behind a busy gate that rejects any overlapping review action.
Change sets are never mutated in place: every transition returns a new
record (or ``None`` once the change set is retired).

Applied state is tracked per file. A change set is ``APPLIED`` once all of
its files were written by an accept-all pass; a failure part-way through
leaves it ``FAILED`` with the written prefix flagged so a later reject can
undo exactly what reached the workspace.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator, Mapping, Sequence, Tuple, Union

from ..structured import DeleteOp, EditOperation, PatchOp, RenameOp, RunOp, WriteOp
from ..telemetry import emit_event
from ..workspace import Workspace, WorkspaceError
from .schema import ChangeFile, ChangeKind, ChangeSet, ChangeSetStatus

LOGGER = logging.getLogger(__name__)


class ControllerBusyError(RuntimeError):
    """Raised when a review action starts while another one is in flight."""


class ChangeSetApplyError(RuntimeError):
    """Raised when a workspace operation fails during apply or revert.

    ``change_set`` holds the partially applied record (status ``FAILED``)
    that callers must keep in place of the original.
    """

    def __init__(
        self,
        message: str,
        *,
        change_set: ChangeSet | None,
        completed: Sequence[str] = (),
        details: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.change_set = change_set
        self.completed: Tuple[str, ...] = tuple(completed)
        self.details: dict[str, Any] = dict(details or {})


@dataclass(slots=True)
class ReviewPolicy:
    """When accept-all must be confirmed by the reviewer."""

    confirm_file_threshold: int = 8
    confirm_on_delete: bool = True
    confirm_on_rename: bool = True
    confirm_on_new_file: bool = True
    per_file_applied_state: bool = True


@dataclass(slots=True)
class DestructivenessReport:
    """Counts and reasons produced by :func:`assess_destructiveness`."""

    total_files: int = 0
    new_files: int = 0
    deletes: int = 0
    renames: int = 0
    reasons: list[str] = field(default_factory=list)

    @property
    def requires_confirmation(self) -> bool:
        return bool(self.reasons)


@dataclass(slots=True)
class ConfirmationRequired:
    """Accept-all was not performed; the reviewer must confirm ``reasons``."""

    change_set: ChangeSet
    reasons: Tuple[str, ...]


@dataclass(slots=True)
class AcceptOutcome:
    """Result of a completed accept-all."""

    change_set: ChangeSet | None
    commands: Tuple[RunOp, ...] = ()


AcceptAllResult = Union[AcceptOutcome, ConfirmationRequired]


def assess_destructiveness(change_set: ChangeSet, policy: ReviewPolicy | None = None) -> DestructivenessReport:
    """Count risky file operations and explain why confirmation is needed."""
    policy = policy or ReviewPolicy()
    report = DestructivenessReport(total_files=len(change_set.files))
    for change in change_set.files:
        if change.kind == ChangeKind.DELETE:
            report.deletes += 1
        elif change.kind == ChangeKind.RENAME:
            report.renames += 1
        elif change.is_new_file:
            report.new_files += 1

    if report.total_files > policy.confirm_file_threshold:
        report.reasons.append(f"{report.total_files} files will be changed")
    if policy.confirm_on_delete and report.deletes:
        report.reasons.append(f"{report.deletes} file(s) will be deleted")
    if policy.confirm_on_rename and report.renames:
        report.reasons.append(f"{report.renames} file(s) will be renamed")
    if policy.confirm_on_new_file and report.new_files:
        report.reasons.append(f"{report.new_files} new file(s) will be created")
    return report


def forward_operation(change: ChangeFile) -> EditOperation:
    """Return the workspace operation that realises ``change``."""
    if change.kind == ChangeKind.DELETE:
        return DeleteOp(path=change.target)
    if change.kind == ChangeKind.RENAME:
        return RenameOp(source=change.source or change.target, target=change.target)
    return WriteOp(path=change.target, content=change.after or "")


def inverse_operation(change: ChangeFile) -> EditOperation | None:
    """Return the operation that undoes ``change``, or ``None`` when nothing is needed."""
    if change.kind == ChangeKind.RENAME:
        return RenameOp(source=change.target, target=change.source or change.target)
    if change.kind == ChangeKind.DELETE:
        if change.before is None:
            return None
        return WriteOp(path=change.target, content=change.before)
    if change.before is None:
        return DeleteOp(path=change.target)
    return WriteOp(path=change.target, content=change.before)


def _revert_plan(change_set: ChangeSet) -> Iterator[tuple[int, ChangeFile, EditOperation | None]]:
    """Yield ``(index, change, undo)`` for every applied file, newest first."""
    for index in range(len(change_set.files) - 1, -1, -1):
        change = change_set.files[index]
        if change.applied:
            yield index, change, inverse_operation(change)


def invert_change_set(change_set: ChangeSet) -> list[EditOperation]:
    """Return the undo operations for every applied file, newest first."""
    return [operation for _, _, operation in _revert_plan(change_set) if operation is not None]


def _edit_belongs_to(edit: EditOperation, change: ChangeFile) -> bool:
    if change.kind == ChangeKind.RENAME:
        return isinstance(edit, RenameOp) and edit.source == change.source and edit.target == change.target
    if change.kind == ChangeKind.DELETE:
        return isinstance(edit, DeleteOp) and edit.path == change.target
    return isinstance(edit, (WriteOp, PatchOp)) and edit.path == change.target


def _describe(operation: EditOperation) -> str:
    if isinstance(operation, RenameOp):
        return f"rename {operation.source} -> {operation.target}"
    if isinstance(operation, DeleteOp):
        return f"delete {operation.path}"
    if isinstance(operation, WriteOp):
        return f"write {operation.path}"
    return operation.op


class ChangeSetController:
    """Sequence change-set operations against a :class:`Workspace`."""

    def __init__(self, workspace: Workspace, policy: ReviewPolicy | None = None) -> None:
        self.workspace = workspace
        self.policy = policy or ReviewPolicy()
        self._busy = False

    @property
    def busy(self) -> bool:
        return self._busy

    @contextmanager
    def gate(self) -> Iterator[None]:
        """Hold the busy gate for the duration of one review action."""
        if self._busy:
            raise ControllerBusyError("Another change-set operation is already in progress.")
        self._busy = True
        try:
            yield
        finally:
            self._busy = False

    # ------------------------------------------------------------ primitives
    def _execute(self, operation: EditOperation) -> None:
        if isinstance(operation, WriteOp):
            self.workspace.write_file(operation.path, operation.content)
        elif isinstance(operation, DeleteOp):
            self.workspace.delete_file(operation.path)
        elif isinstance(operation, RenameOp):
            self.workspace.rename_path(operation.source, operation.target)
        else:
            raise ValueError(f"Operation cannot be executed directly: {operation!r}")
        LOGGER.debug("Executed %s", _describe(operation))

    def _fail(
        self,
        action: str,
        error: WorkspaceError,
        change_set: ChangeSet,
        files: Sequence[ChangeFile],
        completed: Sequence[str],
        operation: EditOperation,
    ) -> ChangeSetApplyError:
        failed = change_set.model_copy(update={"files": tuple(files), "status": ChangeSetStatus.FAILED})
        LOGGER.error("%s of change set %s failed at %s: %s", action, change_set.id, _describe(operation), error)
        emit_event(
            "changeset.apply_failed",
            change_set=change_set.id,
            action=action,
            operation=_describe(operation),
            completed=list(completed),
            error=str(error),
        )
        return ChangeSetApplyError(
            f"{action} failed at {_describe(operation)}: {error}",
            change_set=failed,
            completed=completed,
            details={"action": action, "operation": _describe(operation)},
        )

    # ------------------------------------------------------------- whole set
    def accept_all(self, change_set: ChangeSet, *, confirmed: bool = False) -> AcceptAllResult:
        """Write every pending file, or retire an already applied change set."""
        with self.gate():
            if change_set.applied:
                emit_event("changeset.retired", change_set=change_set.id)
                return AcceptOutcome(change_set=None)

            report = assess_destructiveness(change_set, self.policy)
            if report.requires_confirmation and not confirmed:
                LOGGER.info("Change set %s needs confirmation: %s", change_set.id, "; ".join(report.reasons))
                return ConfirmationRequired(change_set=change_set, reasons=tuple(report.reasons))

            files = list(change_set.files)
            completed: list[str] = []
            for index, change in enumerate(files):
                if change.applied:
                    continue
                operation = forward_operation(change)
                try:
                    self._execute(operation)
                except WorkspaceError as error:
                    raise self._fail("apply", error, change_set, files, completed, operation) from error
                files[index] = change.model_copy(update={"applied": True})
                completed.append(change.path)

            commands = tuple(edit for edit in change_set.edits if isinstance(edit, RunOp))
            applied = change_set.model_copy(update={"files": tuple(files), "status": ChangeSetStatus.APPLIED})
            emit_event(
                "changeset.applied",
                change_set=change_set.id,
                files=completed,
                commands=[command.command for command in commands],
            )
            return AcceptOutcome(change_set=applied, commands=commands)

    def reject_all(self, change_set: ChangeSet) -> None:
        """Discard a proposal, or undo whatever of it reached the workspace."""
        with self.gate():
            if not any(change.applied for change in change_set.files):
                emit_event("changeset.discarded", change_set=change_set.id)
                return None

            files = list(change_set.files)
            completed: list[str] = []
            for index, change, operation in _revert_plan(change_set):
                if operation is not None:
                    try:
                        self._execute(operation)
                    except WorkspaceError as error:
                        raise self._fail("revert", error, change_set, files, completed, operation) from error
                files[index] = change.model_copy(update={"applied": False})
                completed.append(change.path)

            emit_event("changeset.reverted", change_set=change_set.id, files=completed)
            return None

    # -------------------------------------------------------------- per file
    def _without(self, change_set: ChangeSet, change: ChangeFile, **updates: Any) -> ChangeSet | None:
        files = tuple(item for item in change_set.files if item is not change)
        if not files:
            return None
        edits = tuple(edit for edit in change_set.edits if not _edit_belongs_to(edit, change))
        return change_set.model_copy(update={"files": files, "edits": edits, **updates})

    def _lookup(self, change_set: ChangeSet, path: str) -> ChangeFile:
        change = change_set.find(path)
        if change is None:
            raise KeyError(f"{path} is not part of change set {change_set.id}")
        return change

    def accept_file(self, change_set: ChangeSet, path: str) -> ChangeSet | None:
        """Keep one file's change and drop it from the review list."""
        with self.gate():
            change = self._lookup(change_set, path)
            if not change.applied:
                operation = forward_operation(change)
                try:
                    self._execute(operation)
                except WorkspaceError as error:
                    raise self._fail("accept", error, change_set, change_set.files, [], operation) from error

            updates: dict[str, Any] = {}
            if not self.policy.per_file_applied_state and not change_set.applied:
                # Legacy behaviour: one accepted file flags the whole set as applied.
                remaining = tuple(
                    item.model_copy(update={"applied": True}) if item is not change else item
                    for item in change_set.files
                )
                change_set = change_set.model_copy(update={"files": remaining})
                updates["status"] = ChangeSetStatus.APPLIED
                LOGGER.warning(
                    "Change set %s marked applied after accepting %s; other files were not written",
                    change_set.id,
                    path,
                )

            emit_event("changeset.file_accepted", change_set=change_set.id, path=change.path)
            return self._without(change_set, change, **updates)

    def reject_file(self, change_set: ChangeSet, path: str) -> ChangeSet | None:
        """Drop one file's change, restoring its previous content if it was written."""
        with self.gate():
            change = self._lookup(change_set, path)
            if change.applied:
                operation = inverse_operation(change)
                if operation is not None:
                    try:
                        self._execute(operation)
                    except WorkspaceError as error:
                        raise self._fail("reject", error, change_set, change_set.files, [], operation) from error

            emit_event("changeset.file_rejected", change_set=change_set.id, path=change.path)
            return self._without(change_set, change)
