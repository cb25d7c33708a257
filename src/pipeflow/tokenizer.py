"""
Tokenizer and shallow tree builder for configuration text.

The scanner only understands tags and their attributes. Text content,
comments, CDATA sections, processing instructions and doctype declarations
are skipped, and anything it cannot make sense of (a half-typed tag, a
stray ``<``) is passed over rather than rejected. Every token carries exact
character offsets into the source so that callers can rewrite a single
attribute value or tag name without touching the rest of the document.
"""

import re
from dataclasses import dataclass, field
from typing import Callable, Iterator, List, Optional

TAG_NAME_PATTERN = re.compile(r"[A-Za-z_][\w.:-]*")
ATTRIBUTE_PATTERN = re.compile(
    r"([A-Za-z_:][\w.:-]*)\s*=\s*(?:\"([^\"]*)\"|'([^']*)')"
)


class ParseError(Exception):
    """Raised when the engine is handed something that is not text."""

    pass


# Markup sections skipped by the scanner: (opening, terminator)
SKIPPED_SECTIONS = (
    ("<!--", "-->"),
    ("<![CDATA[", "]]>"),
    ("<?", "?>"),
    ("<!", ">"),
)


@dataclass
class Attribute:
    """
    A single ``name="value"`` pair inside a tag.

    Attributes:
        name: Attribute name as written.
        value: Attribute value without quotes.
        start: Offset of the first character of the name.
        end: Offset just past the closing quote.
        value_start: Offset of the first character inside the quotes.
        value_end: Offset of the closing quote.
    """

    name: str
    value: str
    start: int
    end: int
    value_start: int
    value_end: int


@dataclass
class Tag:
    """
    One opening, closing or self-closing tag.

    Attributes:
        kind: ``"open"``, ``"close"`` or ``"empty"``.
        name: Tag name as written.
        start: Offset of ``<``.
        end: Offset just past ``>``.
        name_start: Offset of the first character of the name.
        attributes: Attributes in source order.
        insertion_point: Offset where a new attribute can be inserted, right
            after the last non-blank character before ``>`` or ``/>``.
    """

    kind: str
    name: str
    start: int
    end: int
    name_start: int
    attributes: List[Attribute] = field(default_factory=list)
    insertion_point: int = 0

    @property
    def name_end(self) -> int:
        return self.name_start + len(self.name)

    def attribute(self, name: str) -> Optional[Attribute]:
        """Return the first attribute called ``name``, if any."""
        for attr in self.attributes:
            if attr.name == name:
                return attr
        return None

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        attr = self.attribute(name)
        return attr.value if attr is not None else default


@dataclass
class Element:
    """
    A node of the shallow element tree.

    The root element has no tag and spans the whole document. An element
    whose closing tag is missing ends where its parent closes, or at the end
    of the input, and has ``close`` set to ``None``.
    """

    tag: Optional[Tag] = None
    close: Optional[Tag] = None
    children: List["Element"] = field(default_factory=list)
    parent: Optional["Element"] = field(default=None, repr=False)
    end_offset: int = 0

    @property
    def name(self) -> str:
        return self.tag.name if self.tag is not None else ""

    @property
    def is_empty(self) -> bool:
        return self.tag is not None and self.tag.kind == "empty"

    @property
    def start(self) -> int:
        return self.tag.start if self.tag is not None else 0

    @property
    def end(self) -> int:
        return self.end_offset

    @property
    def inner_start(self) -> int:
        return self.tag.end if self.tag is not None else 0

    @property
    def inner_end(self) -> int:
        if self.is_empty:
            return self.inner_start
        if self.close is not None:
            return self.close.start
        return self.end_offset

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        if self.tag is None:
            return default
        return self.tag.get(name, default)

    def inner_text(self, source: str) -> str:
        return source[self.inner_start : self.inner_end]

    def iter(self, predicate: Optional[Callable[["Element"], bool]] = None) -> Iterator["Element"]:
        """Yield this element and all descendants in document order."""
        if self.tag is not None and (predicate is None or predicate(self)):
            yield self
        for child in self.children:
            yield from child.iter(predicate)

    def find(self, name: str) -> Optional["Element"]:
        """Return the first direct child called ``name``."""
        for child in self.children:
            if child.name == name:
                return child
        return None

    def find_all(self, predicate: Callable[["Element"], bool]) -> List["Element"]:
        """Return the direct children matching ``predicate``."""
        return [child for child in self.children if predicate(child)]


def _find_tag_end(text: str, pos: int) -> int:
    """
    Find the ``>`` that terminates the tag whose body starts at ``pos``.

    Quoted attribute values may contain ``>``. Returns -1 if the tag is
    unterminated, or ``-(offset + 2)`` if an unquoted ``<`` shows up first
    (the user is in the middle of typing and the tag should be skipped).
    """
    quote = None
    for index in range(pos, len(text)):
        char = text[index]
        if quote is not None:
            if char == quote:
                quote = None
        elif char in "\"'":
            quote = char
        elif char == ">":
            return index
        elif char == "<":
            return -(index + 2)
    return -1


def _scan_attributes(text: str, body_start: int, body_end: int) -> List[Attribute]:
    attributes = []
    for match in ATTRIBUTE_PATTERN.finditer(text, body_start, body_end):
        group = 2 if match.group(2) is not None else 3
        attributes.append(
            Attribute(
                name=match.group(1),
                value=match.group(group),
                start=match.start(),
                end=match.end(),
                value_start=match.start(group),
                value_end=match.end(group),
            )
        )
    return attributes


def tokenize(text: str) -> List[Tag]:
    """
    Scan ``text`` and return its tags in document order.

    Args:
        text: Configuration text, possibly incomplete.

    Returns:
        List of Tag tokens with exact offsets.
    """
    if not isinstance(text, str):
        raise ParseError(f"expected configuration text, got {type(text).__name__}")

    tags: List[Tag] = []
    pos = 0
    length = len(text)

    while pos < length:
        start = text.find("<", pos)
        if start == -1:
            break

        skipped = False
        for opening, terminator in SKIPPED_SECTIONS:
            if text.startswith(opening, start):
                close = text.find(terminator, start + len(opening))
                pos = length if close == -1 else close + len(terminator)
                skipped = True
                break
        if skipped:
            continue

        is_close = text.startswith("</", start)
        name_start = start + 2 if is_close else start + 1
        name_match = TAG_NAME_PATTERN.match(text, name_start)
        if name_match is None:
            pos = start + 1
            continue

        end = _find_tag_end(text, name_match.end())
        if end == -1:
            break
        if end < -1:
            pos = -end - 2
            continue

        body_end = end
        kind = "close" if is_close else "open"
        if not is_close and text[end - 1] == "/":
            kind = "empty"
            body_end = end - 1

        insertion_point = body_end
        while insertion_point > name_match.end() and text[insertion_point - 1].isspace():
            insertion_point -= 1

        tags.append(
            Tag(
                kind=kind,
                name=name_match.group(0),
                start=start,
                end=end + 1,
                name_start=name_start,
                attributes=[] if is_close else _scan_attributes(text, name_match.end(), body_end),
                insertion_point=insertion_point,
            )
        )
        pos = end + 1

    return tags


def build_tree(text: str) -> Element:
    """
    Build a shallow element tree from ``text``.

    Closing tags pop back to the nearest open element with the same name,
    implicitly closing anything opened in between. Closing tags with no
    matching open element are ignored.
    """
    tags = tokenize(text)
    root = Element(end_offset=len(text))
    stack = [root]

    for tag in tags:
        if tag.kind == "close":
            index = len(stack) - 1
            while index > 0 and stack[index].name != tag.name:
                index -= 1
            if index == 0:
                continue
            for unclosed in stack[index + 1 :]:
                unclosed.end_offset = tag.start
            element = stack[index]
            element.close = tag
            element.end_offset = tag.end
            del stack[index:]
            continue

        element = Element(tag=tag, parent=stack[-1], end_offset=tag.end)
        stack[-1].children.append(element)
        if tag.kind == "open":
            stack.append(element)

    for unclosed in stack[1:]:
        unclosed.end_offset = len(text)

    return root
