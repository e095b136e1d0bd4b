"""Records describing a reviewable change set."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from ..structured import EditOperation, edit_to_dict
from ..tools.line_diff import LineCounts, count_changes

RENAME_ARROW = " → "


def utc_now() -> datetime:
    """Return a timezone-aware UTC timestamp."""
    return datetime.now(timezone.utc)


def new_change_set_id() -> str:
    return f"cs-{uuid4().hex[:12]}"


class RecordModel(BaseModel):
    """Immutable base record; updates go through ``model_copy``."""

    model_config = ConfigDict(extra="forbid", frozen=True)


class ChangeKind(str, Enum):
    """File-level change categories shown to the reviewer."""

    WRITE = "write"
    DELETE = "delete"
    RENAME = "rename"


class ChangeSetStatus(str, Enum):
    """Lifecycle of a change set."""

    PROPOSED = "proposed"
    APPLIED = "applied"
    FAILED = "failed"


class ChangeStats(RecordModel):
    """Aggregate statistics over the files of a change set."""

    files_changed: int = 0
    lines_added: int = 0
    lines_removed: int = 0


class ChangeFile(RecordModel):
    """Before/after view of a single file in a change set.

    ``before`` is ``None`` when the file is created and ``after`` is ``None``
    when it is deleted. Renames keep identical ``before``/``after`` content,
    carry the original location in ``source`` and display as ``"from → to"``.
    """

    kind: ChangeKind
    target: str
    source: Optional[str] = None
    before: Optional[str] = None
    after: Optional[str] = None
    applied: bool = False

    @property
    def path(self) -> str:
        if self.kind == ChangeKind.RENAME and self.source:
            return f"{self.source}{RENAME_ARROW}{self.target}"
        return self.target

    @property
    def is_new_file(self) -> bool:
        return self.kind == ChangeKind.WRITE and self.before is None

    @property
    def counts(self) -> LineCounts:
        return count_changes(self.before or "", self.after or "")

    def matches(self, path: str) -> bool:
        """Return True when ``path`` names this entry (display form or target)."""
        return path in {self.path, self.target}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "path": self.path,
            "before": self.before,
            "after": self.after,
            "applied": self.applied,
            "lines_added": self.counts.added,
            "lines_removed": self.counts.removed,
        }


class ChangeSet(RecordModel):
    """All file mutations proposed by one assistant turn."""

    id: str = Field(default_factory=new_change_set_id)
    edits: Tuple[EditOperation, ...] = ()
    files: Tuple[ChangeFile, ...] = ()
    status: ChangeSetStatus = ChangeSetStatus.PROPOSED
    sanitized: bool = False
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def applied(self) -> bool:
        return self.status == ChangeSetStatus.APPLIED

    @property
    def stats(self) -> ChangeStats:
        """Totals recomputed from ``files`` on every access."""
        added = removed = 0
        for change in self.files:
            added += change.counts.added
            removed += change.counts.removed
        return ChangeStats(files_changed=len(self.files), lines_added=added, lines_removed=removed)

    def find(self, path: str) -> ChangeFile | None:
        for change in self.files:
            if change.matches(path):
                return change
        return None

    def to_dict(self) -> Dict[str, Any]:
        stats = self.stats
        return {
            "id": self.id,
            "status": self.status.value,
            "applied": self.applied,
            "sanitized": self.sanitized,
            "edits": [edit_to_dict(edit) for edit in self.edits],
            "files": [change.to_dict() for change in self.files],
            "stats": stats.model_dump(),
        }
