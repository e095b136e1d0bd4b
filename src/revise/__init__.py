"""Change-proposal engine: diff, patch, review, apply and revert assistant edits."""

from .changes import (
    AcceptOutcome,
    ChangeFile,
    ChangeKind,
    ChangeSet,
    ChangeSetApplyError,
    ChangeSetController,
    ChangeSetStatus,
    ConfirmationRequired,
    ControllerBusyError,
    ReviewPolicy,
    build_change_set,
)
from .recovery import RecoveredProposal, recover_edits
from .session import ProposalResult, ReviewSession
from .structured import DeleteOp, EditOperation, PatchOp, RenameOp, RunOp, WriteOp
from .tools.patch import PatchError, apply_unified_diff
from .tools.paths import normalize_edits, sanitize_path
from .workspace import LocalWorkspace, Workspace, WorkspaceError

__all__ = [
    "AcceptOutcome",
    "ChangeFile",
    "ChangeKind",
    "ChangeSet",
    "ChangeSetApplyError",
    "ChangeSetController",
    "ChangeSetStatus",
    "ConfirmationRequired",
    "ControllerBusyError",
    "DeleteOp",
    "EditOperation",
    "LocalWorkspace",
    "PatchError",
    "PatchOp",
    "ProposalResult",
    "RecoveredProposal",
    "RenameOp",
    "ReviewPolicy",
    "ReviewSession",
    "RunOp",
    "WriteOp",
    "Workspace",
    "WorkspaceError",
    "apply_unified_diff",
    "build_change_set",
    "normalize_edits",
    "recover_edits",
    "sanitize_path",
]
