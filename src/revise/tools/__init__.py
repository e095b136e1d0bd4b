"""Diff, patch and path tooling for the change-proposal engine."""

from .git_split import count_git_blocks, split_git_diff
from .line_diff import DiffLine, LineCounts, count_changes, diff_lines, split_text_lines
from .patch import apply_hunks, apply_unified_diff
from .paths import NormalizedEdits, normalize_edits, sanitize_path
from .unified import PatchError, UnifiedDiffHunk, parse_unified_diff

__all__ = [
    "DiffLine",
    "LineCounts",
    "NormalizedEdits",
    "PatchError",
    "UnifiedDiffHunk",
    "apply_hunks",
    "apply_unified_diff",
    "count_changes",
    "count_git_blocks",
    "diff_lines",
    "normalize_edits",
    "parse_unified_diff",
    "sanitize_path",
    "split_git_diff",
    "split_text_lines",
]
