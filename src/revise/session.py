"""Review session owning the single live change set of a conversation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Mapping

from .changes.builder import build_change_set
from .changes.controller import (
    AcceptAllResult,
    AcceptOutcome,
    ChangeSetApplyError,
    ChangeSetController,
    ReviewPolicy,
)
from .changes.schema import ChangeSet
from .recovery import RecoveredProposal, recover_edits
from .structured import RunOp
from .telemetry import emit_event
from .tools.paths import normalize_edits
from .workspace import Workspace

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class ProposalResult:
    """Outcome of turning one assistant response into a change set."""

    proposal: RecoveredProposal
    change_set: ChangeSet | None
    sanitized_paths: list[tuple[str, str]] = field(default_factory=list)

    @property
    def did_sanitize(self) -> bool:
        return bool(self.sanitized_paths)


class ReviewSession:
    """Hold at most one change set under review and route reviewer actions.

    Every action replaces :attr:`change_set` wholesale. A failed apply or
    revert stores the partially applied record before re-raising.
    """

    def __init__(
        self,
        workspace: Workspace,
        *,
        policy: ReviewPolicy | None = None,
        workspace_root: str | None = None,
    ) -> None:
        self.workspace = workspace
        self.workspace_root = workspace_root
        self.controller = ChangeSetController(workspace, policy)
        self.change_set: ChangeSet | None = None
        self.open_buffers: dict[str, str] = {}
        self.pending_commands: list[RunOp] = []

    @property
    def busy(self) -> bool:
        return self.controller.busy

    def set_buffer(self, path: str, content: str | None) -> None:
        """Register (or clear, with ``None``) unsaved editor content for ``path``."""
        if content is None:
            self.open_buffers.pop(path, None)
        else:
            self.open_buffers[path] = content

    def propose(self, raw_text: str, *, open_buffers: Mapping[str, str] | None = None) -> ProposalResult | None:
        """Recover, normalise and build a change set from assistant output.

        Returns ``None`` when the response holds nothing recoverable; the
        current change set is then left untouched.
        """
        proposal = recover_edits(raw_text)
        if proposal is None:
            return None

        normalized = normalize_edits(proposal.edits, self.workspace_root)
        if normalized.did_sanitize:
            emit_event("edits.sanitized", paths=[{"from": raw, "to": safe} for raw, safe in normalized.changed_paths])

        change_set: ChangeSet | None = None
        if normalized.edits:
            buffers = {**self.open_buffers, **(open_buffers or {})}
            change_set = build_change_set(
                normalized.edits,
                self.workspace,
                open_buffers=buffers,
                sanitized=normalized.did_sanitize,
            )
            if self.change_set is not None:
                LOGGER.info("Change set %s superseded by %s", self.change_set.id, change_set.id)
            self.change_set = change_set

        return ProposalResult(
            proposal=proposal,
            change_set=change_set,
            sanitized_paths=list(normalized.changed_paths),
        )

    def _require(self) -> ChangeSet:
        if self.change_set is None:
            raise LookupError("No change set is under review.")
        return self.change_set

    def accept_all(self, *, confirmed: bool = False) -> AcceptAllResult:
        """Apply the pending change set, or close it when already applied."""
        current = self._require()
        try:
            result = self.controller.accept_all(current, confirmed=confirmed)
        except ChangeSetApplyError as error:
            self.change_set = error.change_set
            raise
        if isinstance(result, AcceptOutcome):
            self.change_set = result.change_set
            self.pending_commands.extend(result.commands)
        return result

    def reject_all(self) -> None:
        """Discard the pending change set, reverting it first when applied."""
        current = self._require()
        try:
            self.controller.reject_all(current)
        except ChangeSetApplyError as error:
            self.change_set = error.change_set
            raise
        self.change_set = None

    def accept_file(self, path: str) -> ChangeSet | None:
        current = self._require()
        try:
            self.change_set = self.controller.accept_file(current, path)
        except ChangeSetApplyError as error:
            self.change_set = error.change_set
            raise
        return self.change_set

    def reject_file(self, path: str) -> ChangeSet | None:
        current = self._require()
        try:
            self.change_set = self.controller.reject_file(current, path)
        except ChangeSetApplyError as error:
            self.change_set = error.change_set
            raise
        return self.change_set

    def drain_commands(self) -> list[RunOp]:
        """Hand queued ``run`` operations to the external command runner."""
        commands, self.pending_commands = self.pending_commands, []
        return commands
