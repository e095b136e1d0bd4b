"""Myers shortest-edit-script line differ used for change statistics."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Literal, Sequence

DiffLineType = Literal["context", "add", "delete"]


@dataclass(frozen=True, slots=True)
class DiffLine:
    """Single entry of an edit script."""

    type: DiffLineType
    line: str


@dataclass(frozen=True, slots=True)
class LineCounts:
    """Added/removed line totals for a pair of texts."""

    added: int = 0
    removed: int = 0


def split_text_lines(text: str | None) -> list[str]:
    """Split text into LF-normalised lines.

    A terminating newline does not produce an extra empty line, so ``"a\\n"``
    and ``"a"`` compare equal while a genuine trailing blank line survives.
    """
    if not text:
        return []
    normalised = text.replace("\r\n", "\n")
    lines = normalised.split("\n")
    if normalised.endswith("\n"):
        lines.pop()
    return lines


def _moves_down(v: Sequence[int], base: int, k: int, d: int) -> bool:
    # Prefer an insertion unless the left diagonal reaches strictly further.
    return k == -d or (k != d and v[base + k - 1] < v[base + k + 1])


def _common_affixes(a: Sequence[str], b: Sequence[str]) -> tuple[int, int]:
    """Return the lengths of the shared leading and trailing runs."""
    limit = min(len(a), len(b))
    prefix = 0
    while prefix < limit and a[prefix] == b[prefix]:
        prefix += 1
    suffix = 0
    while suffix < limit - prefix and a[len(a) - 1 - suffix] == b[len(b) - 1 - suffix]:
        suffix += 1
    return prefix, suffix


def _forward_search(a: Sequence[str], b: Sequence[str], trace: list[list[int]] | None = None) -> int:
    """Run the Myers forward pass and return the edit distance.

    When ``trace`` is given, the furthest-reaching x of every diagonal in
    ``[-d, d]`` is recorded before step ``d`` for backtracking.
    """
    n, m = len(a), len(b)
    max_d = n + m
    offset = max_d + 1
    v = [0] * (2 * max_d + 3)

    for d in range(max_d + 1):
        if trace is not None:
            trace.append(v[offset - d : offset + d + 1])
        for k in range(-d, d + 1, 2):
            if _moves_down(v, offset, k, d):
                x = v[offset + k + 1]
            else:
                x = v[offset + k - 1] + 1
            y = x - k
            while x < n and y < m and a[x] == b[y]:
                x += 1
                y += 1
            v[offset + k] = x
            if x >= n and y >= m:
                return d
    return max_d


def _as_lines(value: str | Sequence[str] | None) -> list[str]:
    return split_text_lines(value) if isinstance(value, str) or value is None else list(value)


def diff_lines(old: str | Sequence[str] | None, new: str | Sequence[str] | None) -> list[DiffLine]:
    """Return a minimal edit script turning ``old`` into ``new``.

    Either argument may be raw text (split with :func:`split_text_lines`) or
    an already split sequence of lines.
    """
    a, b = _as_lines(old), _as_lines(new)
    prefix, suffix = _common_affixes(a, b)
    head = [DiffLine("context", line) for line in a[:prefix]]
    tail = [DiffLine("context", line) for line in a[len(a) - suffix :]]
    a = a[prefix : len(a) - suffix]
    b = b[prefix : len(b) - suffix]

    trace: list[list[int]] = []
    _forward_search(a, b, trace)
    script: list[DiffLine] = []
    x, y = len(a), len(b)

    for d in range(len(trace) - 1, 0, -1):
        snapshot = trace[d]
        k = x - y
        prev_k = k + 1 if _moves_down(snapshot, d, k, d) else k - 1
        prev_x = snapshot[d + prev_k]
        prev_y = prev_x - prev_k

        while x > prev_x and y > prev_y:
            script.append(DiffLine("context", a[x - 1]))
            x -= 1
            y -= 1
        if x == prev_x:
            script.append(DiffLine("add", b[y - 1]))
        else:
            script.append(DiffLine("delete", a[x - 1]))
        x, y = prev_x, prev_y

    while x > 0 and y > 0:
        script.append(DiffLine("context", a[x - 1]))
        x -= 1
        y -= 1

    script.reverse()
    return head + script + tail


@lru_cache(maxsize=256)
def count_changes(old: str | None, new: str | None) -> LineCounts:
    """Count added and removed lines between two texts.

    Only the edit distance is needed, so no trace is kept. Lines that occur
    on one side only can never be matched and are set aside before the
    search, which keeps full rewrites linear.
    """
    if old == new:
        return LineCounts()
    a, b = split_text_lines(old), split_text_lines(new)
    prefix, suffix = _common_affixes(a, b)
    a = a[prefix : len(a) - suffix]
    b = b[prefix : len(b) - suffix]

    seen_a, seen_b = set(a), set(b)
    shared_a = [line for line in a if line in seen_b]
    shared_b = [line for line in b if line in seen_a]
    distance = _forward_search(shared_a, shared_b)
    common = (len(shared_a) + len(shared_b) - distance) // 2
    return LineCounts(added=len(b) - common, removed=len(a) - common)
