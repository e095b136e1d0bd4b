from __future__ import annotations

import pytest

from revise.changes.builder import build_change_set
from revise.changes.schema import ChangeKind, ChangeSetStatus
from revise.structured import DeleteOp, PatchOp, RenameOp, RunOp, WriteOp
from revise.tools.patch import PatchError
from revise.tools.paths import normalize_edits
from revise.workspace import WorkspaceFileNotFound

APP_PATCH = "@@ -1,2 +1,2 @@\n def main():\n-    return 1\n+    return 2\n"


def test_patch_resolves_before_and_after(memory_workspace) -> None:
    change_set = build_change_set([PatchOp(path="src/app.py", diff_text=APP_PATCH)], memory_workspace)

    (change,) = change_set.files
    assert change.kind == ChangeKind.WRITE
    assert change.before == "def main():\n    return 1\n"
    assert change.after == "def main():\n    return 2\n"
    assert change_set.status == ChangeSetStatus.PROPOSED
    assert change_set.applied is False
    stats = change_set.stats
    assert (stats.files_changed, stats.lines_added, stats.lines_removed) == (1, 1, 1)
    assert memory_workspace.log == []


def test_new_file_has_no_before(memory_workspace) -> None:
    change_set = build_change_set([WriteOp(path="docs/new.md", content="# New\nText\n")], memory_workspace)

    (change,) = change_set.files
    assert change.before is None
    assert change.is_new_file
    assert change_set.stats.lines_added == 2


def test_failed_patch_aborts_the_build(memory_workspace) -> None:
    edits = [
        WriteOp(path="docs/new.md", content="x\n"),
        PatchOp(path="src/app.py", diff_text="@@ -1 +1 @@\n-missing\n+present\n"),
    ]

    with pytest.raises(PatchError) as excinfo:
        build_change_set(edits, memory_workspace)

    assert excinfo.value.details["path"] == "src/app.py"
    assert "src/app.py" in str(excinfo.value)


def test_open_buffers_take_precedence_over_disk(memory_workspace) -> None:
    buffers = {"src/app.py": "def main():\n    return 5\n"}
    diff = "@@ -1,2 +1,2 @@\n def main():\n-    return 5\n+    return 6\n"

    change_set = build_change_set([PatchOp(path="src/app.py", diff_text=diff)], memory_workspace, open_buffers=buffers)

    assert change_set.files[0].before == "def main():\n    return 5\n"
    assert change_set.files[0].after == "def main():\n    return 6\n"


def test_repeated_operations_collapse_to_the_last_one(memory_workspace) -> None:
    edits = [
        WriteOp(path="README.md", content="# First\n"),
        WriteOp(path="README.md", content="# Second\n"),
    ]

    change_set = build_change_set(edits, memory_workspace)

    (change,) = change_set.files
    assert change.before == "# Demo\n"
    assert change.after == "# Second\n"
    assert len(change_set.edits) == 2


def test_patch_after_write_sees_staged_content(memory_workspace) -> None:
    edits = [
        WriteOp(path="notes.txt", content="a\nb\n"),
        PatchOp(path="notes.txt", diff_text="@@ -1,2 +1,2 @@\n a\n-b\n+c\n"),
    ]

    (change,) = build_change_set(edits, memory_workspace).files

    assert change.before is None
    assert change.after == "a\nc\n"


def test_rename_followed_by_patch(memory_workspace) -> None:
    edits = [
        RenameOp(source="old/name.txt", target="new/name.txt"),
        PatchOp(path="new/name.txt", diff_text="@@ -1 +1 @@\n-keep me\n+kept\n"),
    ]

    rename, write = build_change_set(edits, memory_workspace).files

    assert rename.kind == ChangeKind.RENAME
    assert rename.path == "old/name.txt → new/name.txt"
    assert rename.before == rename.after == "keep me\n"
    assert write.target == "new/name.txt"
    assert write.before == "keep me\n"
    assert write.after == "kept\n"


def test_delete_and_run_operations(memory_workspace) -> None:
    edits = [DeleteOp(path="README.md"), RunOp(command="make test")]

    change_set = build_change_set(edits, memory_workspace)

    (change,) = change_set.files
    assert change.kind == ChangeKind.DELETE
    assert change.before == "# Demo\n"
    assert change.after is None
    assert change_set.edits == (DeleteOp(path="README.md"), RunOp(command="make test"))
    assert (change_set.stats.lines_added, change_set.stats.lines_removed) == (0, 1)


def test_to_dict_exposes_review_view(memory_workspace) -> None:
    change_set = build_change_set([DeleteOp(path="README.md")], memory_workspace, sanitized=True)

    payload = change_set.to_dict()

    assert payload["sanitized"] is True
    assert payload["edits"] == [{"op": "delete", "path": "README.md"}]
    assert payload["files"][0]["path"] == "README.md"
    assert payload["stats"] == {"files_changed": 1, "lines_added": 0, "lines_removed": 1}


def test_collapsed_operation_keeps_its_first_position(memory_workspace) -> None:
    edits = [
        WriteOp(path="README.md", content="# First\n"),
        WriteOp(path="docs/guide.md", content="guide\n"),
        WriteOp(path="README.md", content="# Second\n"),
    ]

    files = build_change_set(edits, memory_workspace).files

    assert [change.path for change in files] == ["README.md", "docs/guide.md"]
    assert files[0].after == "# Second\n"


def test_writes_around_a_rename_of_the_same_path_stay_separate(memory_workspace) -> None:
    edits = [
        WriteOp(path="README.md", content="patched\n"),
        RenameOp(source="README.md", target="moved.md"),
        WriteOp(path="README.md", content="fresh\n"),
    ]

    first, rename, second = build_change_set(edits, memory_workspace).files

    assert (first.before, first.after) == ("# Demo\n", "patched\n")
    assert rename.after == "patched\n"
    assert (second.before, second.after) == (None, "fresh\n")
    assert second.is_new_file


def test_rename_of_missing_file_fails_the_build(memory_workspace) -> None:
    with pytest.raises(WorkspaceFileNotFound, match="ghost.txt"):
        build_change_set([RenameOp(source="ghost.txt", target="real.txt")], memory_workspace)


def test_pathless_header_only_diff_builds_one_entry_per_file(memory_workspace) -> None:
    diff = (
        "--- a/README.md\n+++ b/README.md\n@@ -1 +1 @@\n-# Demo\n+# Demo app\n"
        "--- a/src/app.py\n+++ b/src/app.py\n@@ -1,2 +1,2 @@\n def main():\n-    return 1\n+    return 2\n"
    )
    normalized = normalize_edits([PatchOp(path=None, diff_text=diff)])

    readme, app = build_change_set(normalized.edits, memory_workspace).files

    assert (readme.path, readme.after) == ("README.md", "# Demo app\n")
    assert (app.path, app.after) == ("src/app.py", "def main():\n    return 2\n")
