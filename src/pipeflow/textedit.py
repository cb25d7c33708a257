"""
Span-level text edits.

Both the canonicalizer and the patcher describe their work as a list of
replacements against the original offsets and apply them in one go, so the
offsets of one edit never shift another.
"""

from dataclasses import dataclass
from typing import Iterable, Tuple


@dataclass(frozen=True)
class TextEdit:
    """Replace ``text[start:end]`` with ``replacement``."""

    start: int
    end: int
    replacement: str = ""


def apply_edits(text: str, edits: Iterable[TextEdit]) -> str:
    """
    Apply non-overlapping edits expressed against the original text.

    Insertions at the same offset keep the order in which they were given.
    """
    ordered = sorted(enumerate(edits), key=lambda item: (item[1].start, item[0]), reverse=True)
    limit = len(text)
    for _, edit in ordered:
        if edit.end > limit or edit.start > edit.end:
            raise ValueError(f"overlapping or inverted edit: {edit}")
        text = text[: edit.start] + edit.replacement + text[edit.end :]
        limit = edit.start
    return text


def line_start(text: str, offset: int) -> int:
    return text.rfind("\n", 0, offset) + 1


def indentation_at(text: str, offset: int) -> str:
    """Leading whitespace of the line containing ``offset``, if nothing else precedes it."""
    start = line_start(text, offset)
    prefix = text[start:offset]
    return prefix if prefix.strip() == "" else ""


def owns_line(text: str, start: int, end: int) -> bool:
    """True if ``text[start:end]`` is the only non-blank content on its line(s)."""
    before = text[line_start(text, start) : start]
    newline = text.find("\n", end)
    after = text[end : len(text) if newline == -1 else newline]
    return before.strip() == "" and after.strip() == ""


def removal_span(text: str, start: int, end: int) -> Tuple[int, int]:
    """
    Span to delete when removing ``text[start:end]``.

    When the element sits alone on its lines the whole lines go, including
    the trailing newline, so no blank line is left behind.
    """
    if not owns_line(text, start, end):
        return start, end
    newline = text.find("\n", end)
    if newline == -1:
        # Last line: take the preceding newline instead.
        first = line_start(text, start)
        return max(first - 1, 0), len(text)
    return line_start(text, start), newline + 1
