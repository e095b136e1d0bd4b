"""Workspace file I/O capability used by the change-set controller."""

from __future__ import annotations

import os
import re
import shutil
from pathlib import Path, PurePosixPath
from typing import Protocol

_DRIVE_LETTER = re.compile(r"^[A-Za-z]:")
_SKIPPED_DIRECTORIES = frozenset({"node_modules", ".git", "dist", "target"})


class WorkspaceError(RuntimeError):
    """Raised when a workspace operation fails or the workspace is unusable."""


class WorkspaceFileNotFound(WorkspaceError):
    """Raised when reading a file that does not exist."""


class Workspace(Protocol):
    """Minimal file operations the engine needs from its host."""

    def read_file(self, path: str) -> str:
        ...

    def write_file(self, path: str, content: str) -> None:
        ...

    def delete_file(self, path: str) -> None:
        ...

    def rename_path(self, source: str, target: str) -> None:
        ...


def validate_relative(path: str) -> PurePosixPath:
    """Return ``path`` as a relative POSIX path or raise :class:`WorkspaceError`."""
    trimmed = (path or "").strip().replace("\\", "/")
    if not trimmed:
        raise WorkspaceError("path is required")
    if trimmed.startswith("/") or _DRIVE_LETTER.match(trimmed):
        raise WorkspaceError(f"absolute paths are not allowed: {path}")
    relative = PurePosixPath(trimmed)
    if any(part == ".." for part in relative.parts):
        raise WorkspaceError(f"parent directory segments are not allowed: {path}")
    if relative.parts and relative.parts[0] == ".git":
        raise WorkspaceError(f"refusing to touch the .git directory: {path}")
    return relative


class LocalWorkspace:
    """Workspace rooted at a directory on the local filesystem."""

    def __init__(self, root: Path | str | None) -> None:
        if root is None or not str(root).strip():
            raise WorkspaceError("no workspace is open")
        path = Path(root).expanduser()
        if not path.exists():
            raise WorkspaceError(f"workspace path does not exist: {path}")
        if not path.is_dir():
            raise WorkspaceError(f"workspace path is not a directory: {path}")
        self.root = path.resolve()

    def _resolve(self, path: str) -> Path:
        relative = validate_relative(path)
        if relative == PurePosixPath("."):
            raise WorkspaceError("refusing to operate on the workspace root")
        return self.root.joinpath(*relative.parts)

    def exists(self, path: str) -> bool:
        return self._resolve(path).exists()

    def read_file(self, path: str) -> str:
        target = self._resolve(path)
        try:
            with target.open("r", encoding="utf-8", newline="") as handle:
                return handle.read()
        except FileNotFoundError as error:
            raise WorkspaceFileNotFound(f"file not found: {path}") from error
        except (OSError, UnicodeDecodeError) as error:
            raise WorkspaceError(f"read file {path}: {error}") from error

    def write_file(self, path: str, content: str) -> None:
        target = self._resolve(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with target.open("w", encoding="utf-8", newline="") as handle:
                handle.write(content)
        except OSError as error:
            raise WorkspaceError(f"write file {path}: {error}") from error

    def delete_file(self, path: str) -> None:
        """Delete a file or directory tree; a missing path is not an error."""
        target = self._resolve(path)
        try:
            if target.is_dir() and not target.is_symlink():
                shutil.rmtree(target)
            elif target.exists() or target.is_symlink():
                target.unlink()
        except OSError as error:
            raise WorkspaceError(f"delete {path}: {error}") from error

    def rename_path(self, source: str, target: str) -> None:
        origin = self._resolve(source)
        destination = self._resolve(target)
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            os.replace(origin, destination)
        except OSError as error:
            raise WorkspaceError(f"rename {source} -> {target}: {error}") from error

    def list_files(self, max_files: int = 2000) -> list[str]:
        """Return workspace-relative file paths, skipping build and VCS folders."""
        found: list[str] = []
        for current, directories, files in os.walk(self.root):
            directories[:] = [name for name in directories if name.lower() not in _SKIPPED_DIRECTORIES]
            for name in files:
                if len(found) >= max_files:
                    break
                relative = (Path(current) / name).relative_to(self.root).as_posix()
                found.append(relative)
            if len(found) >= max_files:
                break
        return sorted(set(found), key=str.lower)
