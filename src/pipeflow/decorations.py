"""
Line decorations from an external schema validator.

The engine does not validate anything itself. A host runs its validator,
passes the offending line numbers (or the raw messages) in, and reads the
set of lines to highlight back out.
"""

import re
from typing import Iterable, List

_LINE_NUMBER = re.compile(r":(\d+):")


def lines_from_messages(messages: Iterable[str]) -> List[int]:
    """
    Extract line numbers from validator messages.

    Messages look like ``file.xml:12:5: element Foo not allowed``; the first
    ``:<number>:`` group is taken as the line. Messages without one are
    skipped.
    """
    lines = []
    for message in messages:
        match = _LINE_NUMBER.search(message)
        if match is not None:
            lines.append(int(match.group(1)))
    return lines


class LineDecorations:
    """Set of 1-based line numbers currently marked as erroneous."""

    def __init__(self):
        self._lines: List[int] = []

    @property
    def lines(self) -> List[int]:
        return list(self._lines)

    def decorate(self, lines: Iterable[int]) -> None:
        """Replace the decorated lines; duplicates and non-positive numbers are dropped."""
        self._lines = sorted({int(line) for line in lines if int(line) > 0})

    def decorate_messages(self, messages: Iterable[str]) -> None:
        self.decorate(lines_from_messages(messages))

    def clear(self) -> None:
        self._lines = []

    def __bool__(self) -> bool:
        return bool(self._lines)
