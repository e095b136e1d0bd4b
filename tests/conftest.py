from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from revise.workspace import WorkspaceError, WorkspaceFileNotFound  # noqa: E402


@dataclass(slots=True)
class MemoryWorkspace:
    """In-memory workspace double recording every mutation."""

    files: dict[str, str] = field(default_factory=dict)
    log: list[tuple[str, ...]] = field(default_factory=list)
    fail_on: set[tuple[str, str]] = field(default_factory=set)

    def _maybe_fail(self, action: str, path: str) -> None:
        if (action, path) in self.fail_on:
            raise WorkspaceError(f"simulated {action} failure for {path}")

    def read_file(self, path: str) -> str:
        if path not in self.files:
            raise WorkspaceFileNotFound(f"file not found: {path}")
        return self.files[path]

    def write_file(self, path: str, content: str) -> None:
        self._maybe_fail("write", path)
        self.files[path] = content
        self.log.append(("write", path))

    def delete_file(self, path: str) -> None:
        self._maybe_fail("delete", path)
        self.files.pop(path, None)
        self.log.append(("delete", path))

    def rename_path(self, source: str, target: str) -> None:
        self._maybe_fail("rename", source)
        if source not in self.files:
            raise WorkspaceError(f"rename {source} -> {target}: no such file")
        self.files[target] = self.files.pop(source)
        self.log.append(("rename", source, target))


@pytest.fixture()
def memory_workspace() -> MemoryWorkspace:
    return MemoryWorkspace(
        files={
            "src/app.py": "def main():\n    return 1\n",
            "README.md": "# Demo\n",
            "old/name.txt": "keep me\n",
        }
    )
