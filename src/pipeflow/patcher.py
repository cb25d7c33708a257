"""
Text patcher.

Applies edit intents to configuration text by rewriting only the span that
the intent is about: an attribute value, a tag name, one inserted or
removed line. Everything else in the document stays byte-identical. Every
operation returns a PatchResult; an intent whose anchor is not in the text
(a pipe that was renamed by typing in the meantime, say) leaves the text
alone and reports ``changed=False``.
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple, Type

from .canonicalizer import derive_type
from .config import DEFAULT_SETTINGS, SyncSettings
from .intents import (
    AddAttribute,
    AddForward,
    AddParameter,
    AddParameterAttribute,
    AddPipe,
    ChangeAttribute,
    ChangeType,
    DeleteAttribute,
    DeleteForward,
    DeleteParameter,
    Move,
    MoveExit,
    PatchIntent,
    Rename,
)
from .models import RECEIVER_PREFIX
from .parser import is_named, is_pipe
from .textedit import TextEdit, apply_edits, indentation_at, line_start, owns_line, removal_span
from .tokenizer import Element, Tag, build_tree

logger = logging.getLogger(__name__)

# Tag and attribute names the patcher is willing to write
MARKUP_NAME = re.compile(r"[A-Za-z_][\w.:-]*\Z")


@dataclass
class PatchResult:
    """Text after a patch, and whether anything changed."""

    text: str
    changed: bool


def format_coordinate(value) -> Optional[str]:
    """Render a coordinate as an integer string; None if it is not a number."""
    if isinstance(value, str):
        value = value.strip()
        if value.endswith("px"):
            value = value[:-2]
    try:
        return str(int(round(float(value))))
    except (TypeError, ValueError, OverflowError):
        return None


def _indent_unit(indent: str) -> str:
    """One level of indentation in the style of ``indent``."""
    return "    " if indent and "\t" not in indent else "\t"


def is_markup_name(value: Optional[str]) -> bool:
    """True if ``value`` can be written as a tag or attribute name."""
    return bool(value) and MARKUP_NAME.match(value) is not None


def is_attribute_value(value: Optional[str]) -> bool:
    """True if ``value`` can be written between double quotes."""
    return value is not None and '"' not in value


class TextPatcher:
    """
    Rewrites configuration text in place for each edit intent.

    Args:
        settings: Engine settings (new pipe type, default forward name).
        adapter_name: Confine edits to this adapter. When None, or when no
            adapter has this name, the whole document is searched.
    """

    def __init__(self, settings: Optional[SyncSettings] = None, adapter_name: Optional[str] = None):
        self.settings = settings or DEFAULT_SETTINGS
        self.adapter_name = adapter_name

    # ----------------------------------------------------------------- lookup

    def _scope(self, tree: Element) -> Element:
        if self.adapter_name is not None:
            for adapter in tree.iter(lambda el: is_named(el, "Adapter")):
                if adapter.get("name") == self.adapter_name:
                    return adapter
        return tree

    @staticmethod
    def _find_pipe(scope: Element, name: str) -> Optional[Element]:
        for element in scope.iter(is_pipe):
            if element.get("name") == name:
                return element
        return None

    @staticmethod
    def _unchanged(text: str, reason: str, *args) -> PatchResult:
        logger.debug("Patch not applied: " + reason, *args)
        return PatchResult(text, False)

    @staticmethod
    def _result(text: str, edits: List[TextEdit]) -> PatchResult:
        patched = apply_edits(text, edits)
        return PatchResult(patched, patched != text)

    def find_pipe_span(self, text: str, name: str) -> Optional[Tuple[int, int]]:
        """Offsets of the whole element for pipe ``name``, e.g. to highlight it."""
        element = self._find_pipe(self._scope(build_tree(text)), name)
        if element is None:
            return None
        return element.start, element.end

    # ------------------------------------------------------------- operations

    def rename(self, text: str, old_name: str, new_name: str) -> PatchResult:
        """
        Rename pipe ``old_name`` to ``new_name``.

        Every attribute of the pipe's opening tag whose value is ``old_name``
        is rewritten. If that happened, forwards pointing at the pipe and the
        pipeline's ``firstPipe`` follow.
        """
        if not new_name or new_name == old_name or not is_attribute_value(new_name):
            return self._unchanged(text, "invalid or identical name %r", new_name)

        scope = self._scope(build_tree(text))
        if self._find_pipe(scope, new_name) is not None:
            return self._unchanged(text, "pipe %r already exists", new_name)

        edits: List[TextEdit] = []
        for element in scope.iter(is_pipe):
            if element.get("name") == old_name:
                edits.extend(self._value_edits(element.tag, old_name, new_name))
        if not edits:
            return self._unchanged(text, "no pipe named %r", old_name)

        for forward in scope.iter(lambda el: is_named(el, "Forward")):
            tag = forward.tag
            target = tag.attribute("path") or tag.attribute("name")
            if target is not None and target.value == old_name:
                edits.append(TextEdit(target.value_start, target.value_end, new_name))

        for pipeline in scope.iter(lambda el: is_named(el, "Pipeline")):
            first = pipeline.tag.attribute("firstPipe")
            if first is not None and first.value == old_name:
                edits.append(TextEdit(first.value_start, first.value_end, new_name))

        return self._result(text, edits)

    def move(self, text: str, name: str, x, y) -> PatchResult:
        """Set the coordinates of pipe ``name``, or of the receiver."""
        scope = self._scope(build_tree(text))
        element = None
        if name.startswith(RECEIVER_PREFIX):
            name = name[len(RECEIVER_PREFIX) :]
        else:
            element = self._find_pipe(scope, name)
        if element is None:
            element = next(
                (
                    receiver
                    for receiver in scope.iter(lambda el: is_named(el, "Receiver"))
                    if receiver.get("name") == name
                ),
                None,
            )
        if element is None:
            return self._unchanged(text, "no pipe or receiver named %r", name)
        return self._move_tag(text, element.tag, x, y)

    def move_exit(self, text: str, path: str, x, y) -> PatchResult:
        """Set the coordinates of exit ``path``."""
        scope = self._scope(build_tree(text))
        for element in scope.iter(lambda el: is_named(el, "Exit")):
            if element.get("path") == path:
                return self._move_tag(text, element.tag, x, y)
        return self._unchanged(text, "no exit with path %r", path)

    def add_forward(
        self, text: str, pipe_name: str, target: str, name: Optional[str] = None
    ) -> PatchResult:
        """Append a Forward to ``target`` as the last child of pipe ``pipe_name``."""
        name = name or self.settings.default_forward
        if not target or not is_attribute_value(target) or not is_attribute_value(name):
            return self._unchanged(text, "invalid forward %r to %r", name, target)
        element = self._find_pipe(self._scope(build_tree(text)), pipe_name)
        if element is None:
            return self._unchanged(text, "no pipe named %r", pipe_name)

        for child in element.children:
            if is_named(child, "Forward") and child.get("path") == target:
                return self._unchanged(text, "%r already forwards to %r", pipe_name, target)

        return self._append_child(text, element, f'<Forward name="{name}" path="{target}"/>')

    def delete_forward(self, text: str, pipe_name: str, target: str) -> PatchResult:
        """Remove the forwards of pipe ``pipe_name`` whose path is ``target``, ignoring case."""
        element = self._find_pipe(self._scope(build_tree(text)), pipe_name)
        if element is None:
            return self._unchanged(text, "no pipe named %r", pipe_name)

        wanted = target.lower()
        edits = []
        for child in element.children:
            if not is_named(child, "Forward"):
                continue
            path = child.get("path") or child.get("name") or ""
            if path.lower() == wanted:
                start, end = removal_span(text, child.start, child.end)
                edits.append(TextEdit(start, end))

        if not edits:
            return self._unchanged(text, "pipe %r has no forward to %r", pipe_name, target)
        return self._result(text, edits)

    def add_pipe(self, text: str, name: str, x, y, pipe_type: Optional[str] = None) -> PatchResult:
        """Insert an empty pipe block right before ``</Pipeline>``."""
        pipe_type = pipe_type or self.settings.new_pipe_type
        fx, fy = format_coordinate(x), format_coordinate(y)
        if not name or not is_attribute_value(name) or not is_markup_name(pipe_type):
            return self._unchanged(text, "invalid pipe %r of type %r", name, pipe_type)
        if fx is None or fy is None:
            return self._unchanged(text, "invalid position (%r, %r) for %r", x, y, name)

        scope = self._scope(build_tree(text))
        if self._find_pipe(scope, name) is not None:
            return self._unchanged(text, "pipe %r already exists", name)

        pipeline = next(
            (el for el in scope.iter(lambda el: is_named(el, "Pipeline")) if el.close is not None),
            None,
        )
        if pipeline is None:
            return self._unchanged(text, "no closed pipeline to add %r to", name)

        block = f'<{pipe_type} name="{name}" x="{fx}" y="{fy}"></{pipe_type}>'
        close = pipeline.close
        if owns_line(text, close.start, close.end):
            at = line_start(text, close.start)
            line = self._child_indent(text, pipeline) + block + "\n"
            return self._result(text, [TextEdit(at, at, line)])
        return self._result(text, [TextEdit(close.start, close.start, block)])

    def change_type(self, text: str, name: str, new_type: str) -> PatchResult:
        """Change the tag name of pipe ``name`` to ``new_type``."""
        new_type = derive_type(new_type, "Pipe") if new_type else ""
        element = self._find_pipe(self._scope(build_tree(text)), name)
        if element is None or not is_markup_name(new_type):
            return self._unchanged(text, "cannot change type of %r", name)
        edits = [TextEdit(element.tag.name_start, element.tag.name_end, new_type)]
        if element.close is not None:
            edits.append(TextEdit(element.close.name_start, element.close.name_end, new_type))
        return self._result(text, edits)

    # ------------------------------------------------- attributes and params

    def get_attributes(self, text: str, name: str) -> Dict[str, str]:
        """Attributes of pipe ``name``'s opening tag, in source order."""
        element = self._find_pipe(self._scope(build_tree(text)), name)
        if element is None:
            return {}
        return {attr.name: attr.value for attr in element.tag.attributes}

    def change_attribute(self, text: str, name: str, attribute: str, value: str) -> PatchResult:
        """Replace the value of an existing attribute of pipe ``name``."""
        if not is_attribute_value(value):
            return self._unchanged(text, "invalid value %r for %r", value, attribute)
        element = self._find_pipe(self._scope(build_tree(text)), name)
        attr = element.tag.attribute(attribute) if element is not None else None
        if attr is None:
            return self._unchanged(text, "pipe %r has no attribute %r", name, attribute)
        return self._result(text, [TextEdit(attr.value_start, attr.value_end, value)])

    def add_attribute(self, text: str, name: str, attribute: str, value: str = "") -> PatchResult:
        """Add ``attribute`` to the opening tag of pipe ``name``."""
        if not is_markup_name(attribute) or not is_attribute_value(value):
            return self._unchanged(text, "invalid attribute %r=%r", attribute, value)
        element = self._find_pipe(self._scope(build_tree(text)), name)
        if element is None:
            return self._unchanged(text, "no pipe named %r", name)
        return self._add_attribute(text, element.tag, attribute, value)

    def delete_attribute(self, text: str, name: str, attribute: str) -> PatchResult:
        """
        Remove ``attribute`` from the opening tag of pipe ``name``.

        The ``name`` attribute itself is kept: without it the pipe could no
        longer be addressed.
        """
        if attribute == "name":
            return self._unchanged(text, "refusing to delete the name of %r", name)
        element = self._find_pipe(self._scope(build_tree(text)), name)
        if element is None:
            return self._unchanged(text, "no pipe named %r", name)
        return self._delete_attribute(text, element.tag, attribute)

    def get_parameters(self, text: str, name: str) -> List[Dict[str, str]]:
        """Attributes of every ``Param`` child of pipe ``name``."""
        element = self._find_pipe(self._scope(build_tree(text)), name)
        if element is None:
            return []
        return [
            {attr.name: attr.value for attr in param.tag.attributes}
            for param in element.find_all(lambda el: is_named(el, "Param"))
        ]

    def add_parameter(
        self, text: str, name: str, param_name: str, value: Optional[str] = None
    ) -> PatchResult:
        """Add ``<Param name="param_name"/>`` after the last parameter of pipe ``name``."""
        if not param_name or not is_attribute_value(param_name):
            return self._unchanged(text, "invalid parameter name %r", param_name)
        if value is not None and not is_attribute_value(value):
            return self._unchanged(text, "invalid value %r for %r", value, param_name)
        element = self._find_pipe(self._scope(build_tree(text)), name)
        if element is None:
            return self._unchanged(text, "no pipe named %r", name)

        params = element.find_all(lambda el: is_named(el, "Param"))
        if any(param.get("name") == param_name for param in params):
            return self._unchanged(text, "pipe %r already has parameter %r", name, param_name)

        markup = f'<Param name="{param_name}"'
        if value is not None:
            markup += f' value="{value}"'
        markup += "/>"
        if params:
            return self._insert_after(text, params[-1], markup)
        return self._append_child(text, element, markup)

    def add_parameter_attribute(
        self, text: str, name: str, param_name: str, attribute: str, value: str = ""
    ) -> PatchResult:
        """Add ``attribute`` to parameter ``param_name`` of pipe ``name``."""
        if not is_markup_name(attribute) or not is_attribute_value(value):
            return self._unchanged(text, "invalid attribute %r=%r", attribute, value)
        param = self._find_parameter(text, name, param_name)
        if param is None:
            return self._unchanged(text, "pipe %r has no parameter %r", name, param_name)
        return self._add_attribute(text, param.tag, attribute, value)

    def delete_parameter(self, text: str, name: str, param_name: str) -> PatchResult:
        """Remove parameter ``param_name`` of pipe ``name``."""
        param = self._find_parameter(text, name, param_name)
        if param is None:
            return self._unchanged(text, "pipe %r has no parameter %r", name, param_name)
        start, end = removal_span(text, param.start, param.end)
        return self._result(text, [TextEdit(start, end)])

    def apply(self, text: str, intent: PatchIntent) -> PatchResult:
        """Apply any intent by dispatching on its type."""
        handler = self._handlers().get(type(intent))
        if handler is None:
            raise TypeError(f"unsupported intent: {intent!r}")
        return handler(text, intent)

    def _handlers(self) -> Dict[Type, Callable[[str, PatchIntent], PatchResult]]:
        return {
            Rename: lambda text, i: self.rename(text, i.old_name, i.new_name),
            Move: lambda text, i: self.move(text, i.name, i.x, i.y),
            MoveExit: lambda text, i: self.move_exit(text, i.path, i.x, i.y),
            AddForward: lambda text, i: self.add_forward(text, i.pipe_name, i.target, i.name),
            DeleteForward: lambda text, i: self.delete_forward(text, i.pipe_name, i.target),
            AddPipe: lambda text, i: self.add_pipe(text, i.name, i.x, i.y, i.pipe_type),
            ChangeType: lambda text, i: self.change_type(text, i.name, i.new_type),
            ChangeAttribute: lambda text, i: self.change_attribute(
                text, i.pipe_name, i.attribute, i.value
            ),
            AddAttribute: lambda text, i: self.add_attribute(
                text, i.pipe_name, i.attribute, i.value
            ),
            DeleteAttribute: lambda text, i: self.delete_attribute(text, i.pipe_name, i.attribute),
            AddParameter: lambda text, i: self.add_parameter(
                text, i.pipe_name, i.param_name, i.value
            ),
            AddParameterAttribute: lambda text, i: self.add_parameter_attribute(
                text, i.pipe_name, i.param_name, i.attribute, i.value
            ),
            DeleteParameter: lambda text, i: self.delete_parameter(
                text, i.pipe_name, i.param_name
            ),
        }

    # ---------------------------------------------------------------- helpers

    @staticmethod
    def _value_edits(tag: Tag, old: str, new: str) -> List[TextEdit]:
        return [
            TextEdit(attr.value_start, attr.value_end, new)
            for attr in tag.attributes
            if attr.value == old
        ]

    def _move_tag(self, text: str, tag: Tag, x, y) -> PatchResult:
        fx, fy = format_coordinate(x), format_coordinate(y)
        if fx is None or fy is None:
            return self._unchanged(text, "invalid coordinates (%r, %r)", x, y)

        edits = []
        missing = ""
        for attr_name, value in (("x", fx), ("y", fy)):
            attr = tag.attribute(attr_name)
            if attr is not None:
                edits.append(TextEdit(attr.value_start, attr.value_end, value))
            else:
                missing += f' {attr_name}="{value}"'
        if missing:
            edits.append(TextEdit(tag.insertion_point, tag.insertion_point, missing))
        return self._result(text, edits)

    def _find_parameter(self, text: str, name: str, param_name: str) -> Optional[Element]:
        element = self._find_pipe(self._scope(build_tree(text)), name)
        if element is None:
            return None
        for param in element.find_all(lambda el: is_named(el, "Param")):
            if param.get("name") == param_name:
                return param
        return None

    def _add_attribute(self, text: str, tag: Tag, attribute: str, value: str) -> PatchResult:
        if tag.attribute(attribute) is not None:
            return self._unchanged(text, "<%s> already has %r", tag.name, attribute)
        fragment = f' {attribute}="{value}"'
        return self._result(text, [TextEdit(tag.insertion_point, tag.insertion_point, fragment)])

    def _delete_attribute(self, text: str, tag: Tag, attribute: str) -> PatchResult:
        attr = tag.attribute(attribute)
        if attr is None:
            return self._unchanged(text, "<%s> has no attribute %r", tag.name, attribute)
        start = attr.start
        while start > tag.name_end and text[start - 1].isspace():
            start -= 1
        return self._result(text, [TextEdit(start, attr.end)])

    def _append_child(self, text: str, element: Element, markup: str) -> PatchResult:
        """Insert ``markup`` as the last child of ``element``, expanding a self-closing tag."""
        tag = element.tag
        if element.is_empty:
            closing = f"</{tag.name}>"
            if owns_line(text, tag.start, tag.end):
                indent = indentation_at(text, tag.start)
                inner = indent + _indent_unit(indent)
                body = f">\n{inner}{markup}\n{indent}{closing}"
            else:
                body = f">{markup}{closing}"
            return self._result(text, [TextEdit(tag.insertion_point, tag.end, body)])

        close = element.close
        if close is None:
            return self._unchanged(text, "<%s> is not closed", tag.name)

        if owns_line(text, close.start, close.end):
            at = line_start(text, close.start)
            line = self._child_indent(text, element) + markup + "\n"
            return self._result(text, [TextEdit(at, at, line)])
        return self._result(text, [TextEdit(close.start, close.start, markup)])

    def _insert_after(self, text: str, sibling: Element, markup: str) -> PatchResult:
        """Insert ``markup`` right after ``sibling``, on its own line if the sibling has one."""
        if not owns_line(text, sibling.start, sibling.end):
            return self._result(text, [TextEdit(sibling.end, sibling.end, markup)])
        indent = indentation_at(text, sibling.start)
        newline = text.find("\n", sibling.end)
        if newline == -1:
            return self._result(text, [TextEdit(sibling.end, sibling.end, "\n" + indent + markup)])
        at = newline + 1
        return self._result(text, [TextEdit(at, at, indent + markup + "\n")])

    @staticmethod
    def _child_indent(text: str, element: Element) -> str:
        """Indentation for a new last child of ``element``."""
        for child in reversed(element.children):
            if owns_line(text, child.start, child.end):
                return indentation_at(text, child.start)
        indent = indentation_at(text, element.close.start)
        return indent + _indent_unit(indent)
