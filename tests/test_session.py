from __future__ import annotations

import json

import pytest

from revise.changes import ChangeSetApplyError, ChangeSetStatus, ConfirmationRequired, ReviewPolicy
from revise.session import ReviewSession
from revise.structured import RunOp

QUIET = ReviewPolicy(confirm_on_delete=False, confirm_on_rename=False, confirm_on_new_file=False)


def _response(*edits: dict, message: str = "Done.") -> str:
    return json.dumps({"assistant_message": message, "edits": list(edits)})


def test_propose_builds_the_live_change_set(memory_workspace) -> None:
    session = ReviewSession(memory_workspace, policy=QUIET)

    result = session.propose(
        _response(
            {"op": "write", "path": "README.md", "content": "# Changed\n"},
            {"op": "run", "command": "make lint"},
        )
    )

    assert result.proposal.message == "Done."
    assert result.change_set is session.change_set
    assert not result.did_sanitize
    assert [change.path for change in session.change_set.files] == ["README.md"]


def test_propose_sanitizes_absolute_paths(memory_workspace) -> None:
    session = ReviewSession(memory_workspace, policy=QUIET, workspace_root="/home/dev/project")

    result = session.propose(_response({"op": "write", "path": "/home/dev/project/src/new.py", "content": "x = 1\n"}))

    assert result.did_sanitize
    assert result.sanitized_paths == [("/home/dev/project/src/new.py", "src/new.py")]
    assert result.change_set.sanitized
    assert result.change_set.files[0].target == "src/new.py"


def test_unrecoverable_response_keeps_current_change_set(memory_workspace) -> None:
    session = ReviewSession(memory_workspace, policy=QUIET)
    session.propose(_response({"op": "write", "path": "README.md", "content": "# Changed\n"}))
    current = session.change_set

    assert session.propose("Sorry, I cannot do that.") is None
    assert session.change_set is current


def test_message_only_response_has_no_change_set(memory_workspace) -> None:
    session = ReviewSession(memory_workspace, policy=QUIET)

    result = session.propose(_response(message="Nothing to change."))

    assert result.proposal.message == "Nothing to change."
    assert result.change_set is None
    assert session.change_set is None


def test_open_buffers_feed_patch_resolution(memory_workspace) -> None:
    session = ReviewSession(memory_workspace, policy=QUIET)
    session.set_buffer("README.md", "# Unsaved\n")
    diff = "@@ -1 +1 @@\n-# Unsaved\n+# Saved\n"

    result = session.propose(_response({"op": "patch", "path": "README.md", "content": diff}))

    assert result.change_set.files[0].before == "# Unsaved\n"
    assert result.change_set.files[0].after == "# Saved\n"


def test_accept_then_reject_round_trip(memory_workspace) -> None:
    session = ReviewSession(memory_workspace, policy=QUIET)
    session.propose(
        _response(
            {"op": "write", "path": "README.md", "content": "# Changed\n"},
            {"op": "run", "command": "make lint"},
        )
    )

    session.accept_all()

    assert session.change_set.status == ChangeSetStatus.APPLIED
    assert memory_workspace.files["README.md"] == "# Changed\n"
    assert session.drain_commands() == [RunOp(command="make lint")]
    assert session.drain_commands() == []

    session.reject_all()

    assert session.change_set is None
    assert memory_workspace.files["README.md"] == "# Demo\n"


def test_confirmation_leaves_change_set_pending(memory_workspace) -> None:
    session = ReviewSession(memory_workspace)
    session.propose(_response({"op": "delete", "path": "README.md"}))

    result = session.accept_all()

    assert isinstance(result, ConfirmationRequired)
    assert session.change_set.status == ChangeSetStatus.PROPOSED
    assert "README.md" in memory_workspace.files


def test_failed_apply_stores_partial_change_set(memory_workspace) -> None:
    memory_workspace.fail_on.add(("write", "src/app.py"))
    session = ReviewSession(memory_workspace, policy=QUIET)
    session.propose(
        _response(
            {"op": "write", "path": "README.md", "content": "# Changed\n"},
            {"op": "write", "path": "src/app.py", "content": "pass\n"},
        )
    )

    with pytest.raises(ChangeSetApplyError):
        session.accept_all()

    assert session.change_set.status == ChangeSetStatus.FAILED
    assert [change.applied for change in session.change_set.files] == [True, False]


def test_per_file_review_empties_the_session(memory_workspace) -> None:
    session = ReviewSession(memory_workspace, policy=QUIET)
    session.propose(
        _response(
            {"op": "write", "path": "README.md", "content": "# Changed\n"},
            {"op": "delete", "path": "src/app.py"},
        )
    )

    session.reject_file("src/app.py")
    assert session.accept_file("README.md") is None

    assert session.change_set is None
    assert "src/app.py" in memory_workspace.files
    assert memory_workspace.files["README.md"] == "# Changed\n"


def test_actions_without_change_set_raise(memory_workspace) -> None:
    session = ReviewSession(memory_workspace)

    with pytest.raises(LookupError):
        session.accept_all()
