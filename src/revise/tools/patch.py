"""Context-anchored application of unified diffs against in-memory text."""

from __future__ import annotations

import logging
from typing import Sequence

from .unified import PatchError, UnifiedDiffHunk, parse_unified_diff

LOGGER = logging.getLogger(__name__)


def _split_base(text: str | None) -> list[str]:
    if text is None:
        return [""]
    return text.replace("\r\n", "\n").split("\n")


def _runs_equal(lines: Sequence[str], start: int, expected: Sequence[str]) -> bool:
    if start + len(expected) > len(lines):
        return False
    return all(lines[start + offset] == value for offset, value in enumerate(expected))


def _find_matches(lines: Sequence[str], expected: Sequence[str]) -> list[int]:
    last_start = len(lines) - len(expected)
    return [index for index in range(last_start + 1) if _runs_equal(lines, index, expected)]


def _closest(candidates: Sequence[int], preferred: int) -> int:
    best = candidates[0]
    for candidate in candidates[1:]:
        if abs(candidate - preferred) < abs(best - preferred):
            best = candidate
    return best


def _first_mismatch(lines: Sequence[str], start: int, expected: Sequence[str]) -> tuple[int, str, str | None]:
    """Return the first (line index, expected, actual) disagreement at ``start``."""
    for offset, value in enumerate(expected):
        index = start + offset
        actual = lines[index] if index < len(lines) else None
        if actual != value:
            return index, value, actual
    return start, expected[0] if expected else "", None


def _context_not_found(
    lines: Sequence[str],
    hunk: UnifiedDiffHunk,
    position: int,
    number: int,
) -> PatchError:
    expected = hunk.old_lines
    index, wanted, actual = _first_mismatch(lines, position, expected)
    found = "end of file" if actual is None else repr(actual)
    return PatchError(
        f"Hunk #{number}: context not found near line {position + 1} "
        f"(expected {wanted!r} at line {index + 1}, found {found}).",
        details={
            "reason": "context_not_found",
            "hunk": number,
            "line": position + 1,
            "expected": wanted,
            "actual": actual,
        },
    )


def _locate_hunk(lines: Sequence[str], hunk: UnifiedDiffHunk, cursor: int, number: int) -> int:
    """Resolve the base index where ``hunk`` applies."""
    expected = hunk.old_lines
    preferred = hunk.preferred_index if hunk.anchored else cursor

    if not expected:
        # Pure insertion: nothing to anchor on, honour the declared position.
        return min(max(preferred, cursor), len(lines))

    matches = _find_matches(lines, expected)
    if not matches:
        raise _context_not_found(lines, hunk, min(max(preferred, cursor), len(lines)), number)

    forward = [index for index in matches if index >= cursor]
    if not forward:
        raise PatchError(
            f"Hunk #{number}: hunk overlaps previous hunk (context only found before line {cursor + 1}).",
            details={"reason": "overlap", "hunk": number, "line": matches[-1] + 1, "cursor": cursor + 1},
        )

    position = _closest(forward, preferred)
    if position != preferred:
        LOGGER.debug("Hunk #%d declared line %d but matched line %d", number, preferred + 1, position + 1)
    return position


def apply_hunks(base_text: str | None, hunks: Sequence[UnifiedDiffHunk]) -> str:
    """Apply parsed ``hunks`` to ``base_text`` and return the new text."""
    lines = _split_base(base_text)
    output: list[str] = []
    cursor = 0

    for number, hunk in enumerate(hunks, start=1):
        position = _locate_hunk(lines, hunk, cursor, number)
        output.extend(lines[cursor:position])
        cursor = position

        for kind, text in hunk.lines:
            if kind == "add":
                output.append(text)
                continue
            actual = lines[cursor] if cursor < len(lines) else None
            if actual != text:
                found = "end of file" if actual is None else repr(actual)
                raise PatchError(
                    f"Hunk #{number}: mismatch at line {cursor + 1}: expected {text!r}, found {found}.",
                    details={
                        "reason": "mismatch",
                        "hunk": number,
                        "line": cursor + 1,
                        "expected": text,
                        "actual": actual,
                    },
                )
            if kind == "context":
                output.append(text)
            cursor += 1

    tail = lines[cursor:]
    if hunks and hunks[-1].new_missing_newline:
        if tail == [""]:
            tail = []
    elif hunks and hunks[-1].old_missing_newline:
        if not tail or tail[-1] != "":
            tail.append("")
    output.extend(tail)
    return "\n".join(output)


def apply_unified_diff(base_text: str | None, diff_text: str) -> str:
    """Apply ``diff_text`` to ``base_text``.

    ``None`` stands for a file that does not exist yet. Each hunk is
    located by searching for its context and deleted lines, preferring the
    match closest to the line number it declares, so hunks survive drift in
    their headers. Application fails closed: any hunk that cannot be placed
    exactly raises :class:`PatchError` and no partial result is returned.
    """
    hunks = parse_unified_diff(diff_text)
    return apply_hunks(base_text, hunks)


__all__ = ["PatchError", "apply_hunks", "apply_unified_diff"]
