from __future__ import annotations

import textwrap

import pytest

from revise.structured import DeleteOp, PatchOp, RenameOp, RunOp, WriteOp
from revise.tools.paths import normalize_edits, sanitize_path

TWO_FILE_DIFF = textwrap.dedent(
    """\
    diff --git a/a.txt b/a.txt
    --- a/a.txt
    +++ b/a.txt
    @@ -1 +1 @@
    -a
    +A
    diff --git a/b.txt b/b.txt
    --- a/b.txt
    +++ b/b.txt
    @@ -1 +1 @@
    -b
    +B
    """
)


@pytest.mark.parametrize(
    ("raw", "root", "expected"),
    [
        ("../../etc/passwd", None, "passwd"),
        ("/abs/root/src/a.ts", "/abs/root", "src/a.ts"),
        ("./a/b.ts", None, "a/b.ts"),
        ("././a.ts", None, "a.ts"),
        ("src\\pkg\\mod.py", None, "src/pkg/mod.py"),
        ("C:\\work\\proj\\src\\m.py", "C:\\work\\proj", "src/m.py"),
        ("C:\\Users\\me\\x.py", None, "x.py"),
        ("/etc/hosts", None, "hosts"),
        ("src/../secret.txt", None, "secret.txt"),
        ("/abs/rootfile.txt", "/abs/root/", "rootfile.txt"),
        ("src/app.py", "/abs/root", "src/app.py"),
    ],
)
def test_sanitize_path(raw: str, root: str | None, expected: str) -> None:
    assert sanitize_path(raw, root) == expected


def test_clean_paths_do_not_flag_sanitisation() -> None:
    result = normalize_edits([WriteOp(path="src/a.py", content="x"), RunOp(command="make test")])

    assert result.did_sanitize is False
    assert result.edits == [WriteOp(path="src/a.py", content="x"), RunOp(command="make test")]


def test_rewritten_paths_flag_sanitisation() -> None:
    result = normalize_edits(
        [
            WriteOp(path="/work/repo/src/a.py", content="x"),
            RenameOp(source="./old.txt", target="../new.txt"),
            DeleteOp(path="docs/readme.md"),
        ],
        workspace_root="/work/repo",
    )

    assert result.did_sanitize is True
    assert result.edits == [
        WriteOp(path="src/a.py", content="x"),
        RenameOp(source="old.txt", target="new.txt"),
        DeleteOp(path="docs/readme.md"),
    ]
    assert ("/work/repo/src/a.py", "src/a.py") in result.changed_paths


def test_pathless_patch_is_expanded_into_file_operations() -> None:
    result = normalize_edits([PatchOp(path=None, diff_text=TWO_FILE_DIFF)])

    assert [edit.path for edit in result.edits] == ["a.txt", "b.txt"]
    assert all(isinstance(edit, PatchOp) for edit in result.edits)


def test_embedded_multi_file_diff_overrides_path_hint() -> None:
    result = normalize_edits([PatchOp(path="a.txt", diff_text=TWO_FILE_DIFF)])

    assert [edit.path for edit in result.edits] == ["a.txt", "b.txt"]


def test_single_file_patch_keeps_its_path() -> None:
    diff = "@@ -1 +1 @@\n-a\n+b\n"
    result = normalize_edits([PatchOp(path="./notes.txt", diff_text=diff)])

    assert result.edits == [PatchOp(path="notes.txt", diff_text=diff)]
    assert result.did_sanitize is True


def test_unusable_operations_are_dropped() -> None:
    result = normalize_edits(
        [
            PatchOp(path=None, diff_text="@@ -1 +1 @@\n-a\n+b\n"),
            DeleteOp(path="/"),
        ]
    )

    assert result.edits == []
