"""
Parser module for pipeline configurations.

Turns configuration text into an Adapter model. Parsing is tolerant: the
text is usually being edited while it is parsed, so attributes may come in
any order, tags may span lines and parts of the document may be broken.
Whatever cannot be understood is skipped. A document without an adapter or
pipeline yields a ParseResult with a status instead of an exception; the
only error raised is ParseError, for input that is not text at all.
"""

import logging
import math
from typing import Dict, List, Optional, Union

from .canonicalizer import canonical_name
from .config import DEFAULT_SETTINGS, SyncSettings
from .models import (
    Adapter,
    Exit,
    Forward,
    ParseResult,
    Pipe,
    Pipeline,
    Position,
    Receiver,
    RenderStatus,
)
from .tokenizer import Element, ParseError, build_tree, tokenize

logger = logging.getLogger(__name__)

IMPLICIT_FORWARD = "success"

_INVALID = object()


def is_named(element: Element, name: str) -> bool:
    return canonical_name(element.name) == name


def is_pipe(element: Element) -> bool:
    return canonical_name(element.name).endswith("Pipe")


def _coordinate(raw: Optional[str]) -> Union[int, None, object]:
    """Convert a coordinate attribute; ``_INVALID`` if present but not a number."""
    if raw is None:
        return None
    value = raw.strip()
    if value.endswith("px"):
        value = value[:-2]
    try:
        number = float(value)
    except ValueError:
        return _INVALID
    if not math.isfinite(number):
        return _INVALID
    return int(round(number))


def parse_position(x_raw: Optional[str], y_raw: Optional[str]) -> Optional[Position]:
    """
    Build a position from raw ``x``/``y`` attribute values.

    When only one coordinate is given it is used for both. A coordinate
    that is present but not numeric makes the whole position absent.
    """
    x = _coordinate(x_raw)
    y = _coordinate(y_raw)
    if x is _INVALID or y is _INVALID:
        return None
    if x is None:
        x = y
    if y is None:
        y = x
    if x is None:
        return None
    return Position(x, y)


class ModelParser:
    """Parses configuration text into an Adapter model."""

    def __init__(self, settings: Optional[SyncSettings] = None):
        self.settings = settings or DEFAULT_SETTINGS

    def parse(self, text: str, adapter_name: Optional[str] = None) -> ParseResult:
        """
        Parse ``text`` and return the selected adapter.

        Args:
            text: Configuration text in canonical syntax.
            adapter_name: Adapter to select; the first named adapter is
                used when None or when no adapter carries that name.

        Returns:
            ParseResult with status OK and the adapter, or a status telling
            why nothing can be rendered.

        Raises:
            ParseError: If ``text`` is not a string.
        """
        tree = build_tree(text)

        element = self._select_adapter(tree, adapter_name)
        if element is None:
            logger.warning("No adapter found in configuration")
            return ParseResult(RenderStatus.NO_ADAPTER, message="No adapter found")

        name = element.get("name", "")
        pipeline_element = next(
            (child for child in element.children if is_named(child, "Pipeline")), None
        )
        if pipeline_element is None:
            logger.warning("Adapter %r has no pipeline", name)
            return ParseResult(
                RenderStatus.NO_PIPELINE, message=f"Adapter '{name}' has no pipeline"
            )

        pipeline = self._parse_pipeline(text, pipeline_element)

        duplicates = self._duplicate_names(pipeline)
        if duplicates:
            logger.warning("Duplicate pipe names in adapter %r: %s", name, duplicates)
            return ParseResult(
                RenderStatus.DUPLICATE_PIPE,
                message="Duplicate pipe names: " + ", ".join(duplicates),
            )

        adapter = Adapter(
            name=name,
            description=element.get("description", ""),
            receiver=self._parse_receiver(element),
            pipeline=pipeline,
        )
        return ParseResult(RenderStatus.OK, adapter=adapter)

    def _select_adapter(self, tree: Element, adapter_name: Optional[str]) -> Optional[Element]:
        adapters = [el for el in tree.iter(lambda el: is_named(el, "Adapter")) if el.get("name")]
        if not adapters:
            return None
        if adapter_name is not None:
            for adapter in adapters:
                if adapter.get("name") == adapter_name:
                    return adapter
            logger.debug("Adapter %r not found, using %r", adapter_name, adapters[0].get("name"))
        return adapters[0]

    def _parse_pipeline(self, text: str, element: Element) -> Pipeline:
        pipeline = Pipeline(first_pipe=element.get("firstPipe"))

        for child in element.children:
            if is_pipe(child):
                pipeline.pipes.append(self._parse_pipe(text, child))
            elif is_named(child, "Exit"):
                self._add_exit(pipeline, child)
            elif is_named(child, "Exits"):
                for nested in child.children:
                    if is_named(nested, "Exit"):
                        self._add_exit(pipeline, nested)

        # A pipe without forwards continues with the next pipe
        for index, pipe in enumerate(pipeline.pipes[:-1]):
            if not pipe.forwards:
                next_pipe = pipeline.pipes[index + 1]
                pipe.forwards.append(
                    Forward(IMPLICIT_FORWARD, pipe.name, next_pipe.name, implicit=True)
                )

        return pipeline

    def _parse_pipe(self, text: str, element: Element) -> Pipe:
        name = element.get("name", "")
        pipe = Pipe(
            name=name,
            type=canonical_name(element.name),
            position=parse_position(element.get("x"), element.get("y")),
            summary=self._summary(element),
        )

        for child in element.children:
            child_name = canonical_name(child.name)
            if child_name == "Forward":
                forward_name = child.get("name", "")
                target = child.get("path") or forward_name
                pipe.forwards.append(Forward(forward_name, name, target))
            elif child_name == "Documentation":
                pipe.documentation = child.inner_text(text).strip() or None
            elif child_name.endswith("Sender") and pipe.sender is None:
                pipe.sender = child_name

        return pipe

    def _summary(self, element: Element) -> str:
        value = element.get("xpathExpression")
        if value is None:
            sender = next(
                (child for child in element.children if is_named(child, "FixedQuerySender")),
                None,
            )
            if sender is not None:
                value = sender.get("query")
        if value is None:
            return ""
        return value[: self.settings.summary_length] + "..."

    def _add_exit(self, pipeline: Pipeline, element: Element) -> None:
        path = element.get("path")
        if not path:
            logger.debug("Skipping exit without path at offset %d", element.start)
            return
        pipeline.exits.append(
            Exit(
                path=path,
                state=element.get("state", ""),
                code=element.get("code", ""),
                position=parse_position(element.get("x"), element.get("y")),
            )
        )

    def _parse_receiver(self, adapter: Element) -> Optional[Receiver]:
        element = next((child for child in adapter.children if is_named(child, "Receiver")), None)
        if element is None:
            return None
        listener = next(
            (
                canonical_name(child.name)
                for child in element.children
                if canonical_name(child.name).endswith("Listener")
            ),
            None,
        )
        return Receiver(
            name=element.get("name", ""),
            position=parse_position(element.get("x"), element.get("y")),
            listener=listener,
        )

    @staticmethod
    def _duplicate_names(pipeline: Pipeline) -> List[str]:
        seen = set()
        duplicates = []
        for pipe in pipeline.pipes:
            if pipe.name in seen and pipe.name not in duplicates:
                duplicates.append(pipe.name)
            seen.add(pipe.name)
        return duplicates


def parse_configuration(
    text: str,
    adapter_name: Optional[str] = None,
    settings: Optional[SyncSettings] = None,
) -> ParseResult:
    """
    Convenience function to parse configuration text.

    Args:
        text: Configuration text
        adapter_name: Optional adapter to select

    Returns:
        ParseResult
    """
    return ModelParser(settings).parse(text, adapter_name)


def list_adapters(text: str) -> List[str]:
    """Names of all adapters in ``text``, in document order."""
    return [
        tag.get("name")
        for tag in tokenize(text)
        if tag.kind != "close" and canonical_name(tag.name) == "Adapter" and tag.get("name")
    ]


def adapter_at(text: str, offset: int) -> Optional[str]:
    """Name of the last adapter opened before ``offset``, e.g. under the cursor."""
    name = None
    for tag in tokenize(text):
        if tag.start >= offset:
            break
        if tag.kind == "open" and canonical_name(tag.name) == "Adapter" and tag.get("name"):
            name = tag.get("name")
    return name


def pipe_types(text: str) -> Dict[str, str]:
    """
    Map every pipe name in ``text`` to its type badge.

    The receiver is listed as ``"receiver <name>"`` with type ``Receiver``.
    Pipes wrapping a sender report the sender type.
    """
    tree = build_tree(text)
    types: Dict[str, str] = {}

    for receiver in tree.iter(lambda el: is_named(el, "Receiver")):
        types["receiver " + receiver.get("name", "")] = "Receiver"
        break

    for element in tree.iter(is_pipe):
        name = element.get("name")
        if not name:
            continue
        sender = next(
            (
                canonical_name(child.name)
                for child in element.children
                if canonical_name(child.name).endswith("Sender")
            ),
            None,
        )
        types[name] = sender or canonical_name(element.name)

    return types
