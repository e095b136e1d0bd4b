"""Change-set records, builder and apply/revert controller."""

from .builder import build_change_set
from .controller import (
    AcceptOutcome,
    ChangeSetApplyError,
    ChangeSetController,
    ConfirmationRequired,
    ControllerBusyError,
    DestructivenessReport,
    ReviewPolicy,
    assess_destructiveness,
    invert_change_set,
)
from .schema import ChangeFile, ChangeKind, ChangeSet, ChangeSetStatus, ChangeStats

__all__ = [
    "AcceptOutcome",
    "ChangeFile",
    "ChangeKind",
    "ChangeSet",
    "ChangeSetApplyError",
    "ChangeSetController",
    "ChangeSetStatus",
    "ChangeStats",
    "ConfirmationRequired",
    "ControllerBusyError",
    "DestructivenessReport",
    "ReviewPolicy",
    "assess_destructiveness",
    "build_change_set",
    "invert_change_set",
]
