"""
Canonicalizer for legacy configuration syntax.

Older configurations spell every pipe as ``<pipe className="a.b.FooPipe">``
and every listener as ``<listener className="a.b.FooListener"/>``, use
lowercase tag names and wrap exits in an ``<exits>`` block. This module
rewrites such documents into the canonical vocabulary (``<FooPipe>``,
``<FooListener/>``, capitalized tags, exits directly under the pipeline)
so that the parser and patcher only ever match one spelling.
"""

import logging
from typing import List, Optional

from .textedit import TextEdit, apply_edits, line_start, owns_line, removal_span
from .tokenizer import Element, build_tree, tokenize

logger = logging.getLogger(__name__)

# Legacy generic tags and the suffix their derived type name must carry
LEGACY_TAGS = {"pipe": "Pipe", "listener": ""}

ROOT_ALIASES = {"Ibis": "Configuration", "IOS-Adaptering": "Configuration"}


def canonical_name(name: str) -> str:
    """Canonical spelling of a tag name: first letter upper-cased, aliases resolved."""
    if not name:
        return name
    name = name[0].upper() + name[1:]
    return ROOT_ALIASES.get(name, name)


def derive_type(class_name: str, suffix: str) -> str:
    """
    Type name for a ``className`` value.

    Takes the segment after the last ``.`` and appends ``suffix`` unless it
    is already there: ``nl.x.XsltPipe`` -> ``XsltPipe``, ``nl.x.Echo`` ->
    ``EchoPipe``.
    """
    short = class_name.rsplit(".", 1)[-1].strip()
    if suffix and not short.endswith(suffix):
        short += suffix
    return short


def is_legacy(text: str) -> bool:
    """True if ``text`` still contains generic lowercase ``<pipe>`` elements."""
    return any(tag.name == "pipe" for tag in tokenize(text) if tag.kind != "close")


def _renamed(element: Element) -> str:
    suffix = LEGACY_TAGS.get(element.name)
    if suffix is not None:
        class_name = element.get("className")
        if class_name:
            return derive_type(class_name, suffix)
    return canonical_name(element.name)


def _rename_and_strip(text: str) -> str:
    """First pass: derive type names, capitalize tags, drop className."""
    tree = build_tree(text)
    edits: List[TextEdit] = []
    handled_closes = set()

    for element in tree.iter():
        tag = element.tag
        new_name = _renamed(element)
        if new_name != tag.name:
            edits.append(TextEdit(tag.name_start, tag.name_end, new_name))
            if element.close is not None:
                close = element.close
                edits.append(TextEdit(close.name_start, close.name_end, new_name))
        if element.close is not None:
            handled_closes.add(element.close.start)

        for attr in tag.attributes:
            if attr.name == "className":
                start = attr.start
                while start > tag.name_end and text[start - 1] in " \t":
                    start -= 1
                edits.append(TextEdit(start, attr.end))

    # Stray closing tags are not part of the tree but still get capitalized
    for tag in tokenize(text):
        if tag.kind == "close" and tag.start not in handled_closes:
            new_name = canonical_name(tag.name)
            if new_name != tag.name:
                edits.append(TextEdit(tag.name_start, tag.name_end, new_name))

    return apply_edits(text, edits)


def _target_pipeline(exits: Element) -> Optional[Element]:
    """The pipeline an exits block belongs to: its ancestor, else a sibling."""
    node = exits.parent
    while node is not None:
        if node.name == "Pipeline":
            return node
        node = node.parent
    if exits.parent is not None:
        return exits.parent.find("Pipeline")
    return None


def _hoist_exits(text: str) -> str:
    """Second pass: move the children of every Exits block into its pipeline."""
    tree = build_tree(text)
    edits: List[TextEdit] = []

    for exits in list(tree.iter(lambda el: el.name == "Exits")):
        if exits.close is None and not exits.is_empty:
            continue
        pipeline = _target_pipeline(exits)
        if pipeline is None or pipeline.close is None:
            logger.debug("Exits block at offset %d has no enclosing pipeline", exits.start)
            continue

        inner = exits.inner_text(text)
        start, end = removal_span(text, exits.start, exits.end)
        edits.append(TextEdit(start, end))
        if not inner.strip():
            continue

        close = pipeline.close
        if owns_line(text, close.start, close.end):
            body = inner.strip("\r\n").rstrip()
            at = line_start(text, close.start)
            edits.append(TextEdit(at, at, body + "\n"))
        else:
            edits.append(TextEdit(close.start, close.start, inner.strip()))

    return apply_edits(text, edits) if edits else text


def canonicalize(text: str) -> str:
    """
    Rewrite ``text`` into the canonical tag vocabulary.

    Args:
        text: Configuration text in legacy or canonical syntax.

    Returns:
        Canonical text. A legacy document without an ``<Exits>`` block is
        returned unchanged; the caller will then find no renderable adapter.
    """
    tree = build_tree(text)
    legacy = any(el.name == "pipe" for el in tree.iter())
    has_exits = any(canonical_name(el.name) == "Exits" for el in tree.iter())

    if legacy and not has_exits:
        logger.warning("Legacy configuration without an <Exits> block left unchanged")
        return text

    converted = _hoist_exits(_rename_and_strip(text))
    if converted != text:
        logger.info("Converted configuration to canonical syntax")
    return converted

