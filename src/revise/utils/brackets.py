"""String-aware balanced bracket extraction for noisy model output."""

from __future__ import annotations

_PAIRS = {"{": "}", "[": "]"}


def extract_balanced(
    text: str,
    open_char: str = "{",
    *,
    start: int = 0,
    allow_truncated: bool = False,
) -> str | None:
    """Return the first balanced ``open_char`` region of ``text`` at or after ``start``.

    Braces and brackets inside JSON string literals are ignored, including
    escaped quotes. Nested pairs of either kind are tracked so that a closing
    character only counts when it matches the innermost open one.

    With ``allow_truncated`` the scan salvages input that ends before the
    outer region closes: everything up to the last complete top-level element
    is kept and the missing closing character is appended. ``None`` is
    returned when nothing usable is found.
    """
    if open_char not in _PAIRS:
        raise ValueError(f"Unsupported bracket character: {open_char!r}")

    begin = text.find(open_char, start)
    if begin == -1:
        return None

    expected: list[str] = []
    in_string = False
    escaped = False
    last_complete: int | None = None

    for index in range(begin, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
                if len(expected) == 1:
                    last_complete = index
            continue

        if char == '"':
            in_string = True
            continue
        if char in _PAIRS:
            expected.append(_PAIRS[char])
            continue
        if expected and char == expected[-1]:
            expected.pop()
            if not expected:
                return text[begin : index + 1]
            if len(expected) == 1:
                last_complete = index
            continue
        if len(expected) == 1 and char not in ", \t\r\n:" and not char.isspace():
            # Scalar tokens (numbers, literals) at the top level.
            last_complete = index

    if not allow_truncated or last_complete is None:
        return None

    salvaged = text[begin : last_complete + 1].rstrip().rstrip(",")
    return salvaged + _PAIRS[open_char]
