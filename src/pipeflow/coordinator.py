"""
Sync coordinator.

Interleaves the two event streams of an editor: text changes from the code
editor and gestures from the diagram. It owns the single text buffer and
the single rendered graph of one document.

States:
    IDLE: Nothing in flight.
    PARSING: Rebuilding the model and graph from the buffer.
    APPLYING_PATCH: Rewriting the buffer for an edit intent.

While a node is dragged or a connection is drawn, reparses are deferred so
the node under the pointer does not jump. At most one deferred reparse is
kept and it runs when the gesture ends.

Text changes are debounced. The coordinator never sleeps or schedules
anything itself: the host calls ``poll()`` from its event loop (or
``flush()`` to force the pending reparse) and passes a clock if it wants
control over time.
"""

import logging
import time
from enum import Enum
from typing import Callable, List, Optional, Tuple

from .canonicalizer import canonicalize
from .decorations import LineDecorations
from .graph import FlowGraph
from .intents import AddPipe, Move, MoveExit, PatchIntent, Rename
from .layout import Placement
from .models import Adapter, ParseResult
from .parser import ParseError, adapter_at
from .png_renderer import render_to_png
from .session import EditorSession
from .tracer import SyncTrace

logger = logging.getLogger(__name__)


class SyncState(Enum):
    IDLE = "idle"
    PARSING = "parsing"
    APPLYING_PATCH = "applying_patch"


class Gesture(Enum):
    NONE = "none"
    MOVING = "moving"
    ADDING = "adding"


def _ensure_text(text) -> str:
    if not isinstance(text, str):
        raise ParseError(f"Expected configuration text, got {type(text).__name__}")
    return text


class SyncCoordinator:
    """
    Keeps a configuration buffer and its diagram in sync.

    Args:
        text: Initial buffer; loaded right away when not empty.
        session: Editor session to use; a fresh one when None.
        clock: Monotonic clock used for the debounce window.
        debug: Record a SyncTrace of every reparse and patch.
    """

    def __init__(
        self,
        text: str = "",
        session: Optional[EditorSession] = None,
        clock: Callable[[], float] = time.monotonic,
        debug: bool = False,
    ):
        self.session = session or EditorSession()
        self.state = SyncState.IDLE
        self.gesture = Gesture.NONE
        self.text = ""
        self.adapter: Optional[Adapter] = None
        self.graph: Optional[FlowGraph] = None
        self.last_result: Optional[ParseResult] = None

        self._clock = clock
        self._due: Optional[float] = None
        self._deferred = False
        self._drag: Optional[Tuple[str, Optional[Tuple[float, float]]]] = None

        self._text_listeners: List[Callable[[str], None]] = []
        self._graph_listeners: List[Callable[[FlowGraph], None]] = []
        self._error_listeners: List[Callable[[ParseResult], None]] = []

        self._trace: Optional[SyncTrace] = (
            SyncTrace(adapter_name=self.session.adapter_name) if debug else None
        )

        if _ensure_text(text):
            self.load(text)

    # -------------------------------------------------------------- listeners

    def subscribe_text(self, callback: Callable[[str], None]) -> Callable[[], None]:
        """Call ``callback`` with the new buffer after every patch. Returns an unsubscriber."""
        return self._subscribe(self._text_listeners, callback)

    def subscribe_graph(self, callback: Callable[[FlowGraph], None]) -> Callable[[], None]:
        """Call ``callback`` with every newly rendered graph."""
        return self._subscribe(self._graph_listeners, callback)

    def subscribe_error(self, callback: Callable[[ParseResult], None]) -> Callable[[], None]:
        """Call ``callback`` with the result of every parse that cannot be rendered."""
        return self._subscribe(self._error_listeners, callback)

    @staticmethod
    def _subscribe(listeners: list, callback) -> Callable[[], None]:
        listeners.append(callback)

        def unsubscribe():
            if callback in listeners:
                listeners.remove(callback)

        return unsubscribe

    def _notify(self, listeners: list, value) -> None:
        for callback in list(listeners):
            callback(value)

    # ------------------------------------------------------------ text stream

    @property
    def pending(self) -> bool:
        """True while a debounced reparse is waiting."""
        return self._due is not None

    def load(self, text: str) -> None:
        """Replace the buffer with ``text`` in canonical syntax and render it."""
        self.session.ensure_open()
        canonical = canonicalize(_ensure_text(text))
        self._record("canonicalize", {"converted": canonical != text}, canonical)
        self.text = canonical
        self._due = None
        if canonical != text:
            self._notify(self._text_listeners, self.text)
        self._request_reparse()

    def text_changed(self, text: str) -> None:
        """Store the latest buffer and restart the debounce window."""
        self.session.ensure_open()
        self.text = _ensure_text(text)
        self._due = self._clock() + self.session.settings.debounce_seconds

    def poll(self) -> bool:
        """
        Run the pending reparse if its debounce window has elapsed.

        Returns:
            True if a reparse was requested.
        """
        if self._due is None or self._clock() < self._due:
            return False
        self._due = None
        self._request_reparse()
        return True

    def flush(self) -> bool:
        """Run the pending reparse now, without waiting for the window."""
        if self._due is None:
            return False
        self._due = None
        self._request_reparse()
        return True

    # --------------------------------------------------------------- reparse

    def _request_reparse(self) -> None:
        if self.gesture is not Gesture.NONE:
            if self._deferred:
                logger.debug("Reparse already deferred during %s", self.gesture.value)
            else:
                logger.debug("Deferring reparse until %s ends", self.gesture.value)
            self._deferred = True
            self._record("deferred", {"gesture": self.gesture.value})
            return
        self._reparse()

    def _reparse(self) -> None:
        self.session.ensure_open()
        self.state = SyncState.PARSING
        try:
            result = self._parse()
            if not result.ok:
                return

            layout = self.session.layout(result.adapter)
            self._record(
                "layout",
                {
                    "assigned": [p.node_id for p in layout.assigned],
                    "canvas": (layout.canvas_width, layout.canvas_height),
                },
            )
            if layout.assigned:
                text = self._write_back(layout.assigned)
                if text != self.text:
                    self.text = text
                    self._notify(self._text_listeners, self.text)
                    result = self._parse()
                    if not result.ok:
                        return
                    layout = self.session.layout(result.adapter)

            graph = self.session.build_graph(result.adapter, layout)
            self._record(
                "graph",
                {
                    "nodes": [node.id for node in graph.nodes],
                    "edges": graph.edge_pairs(),
                    "unresolved": len(graph.unresolved),
                },
            )
            self.adapter = result.adapter
            self.graph = graph
            self._notify(self._graph_listeners, graph)
        finally:
            self.state = SyncState.IDLE

    def _parse(self) -> ParseResult:
        result = self.session.parse(self.text)
        self.last_result = result
        self._record("parse", {"status": result.status.value, "message": result.message})
        if not result.ok:
            # the last good graph stays on screen
            self._notify(self._error_listeners, result)
        return result

    def _write_back(self, assigned: List[Placement]) -> str:
        """Patch default positions into the buffer so they become explicit."""
        text = self.text
        for placement in assigned:
            x, y = placement.position.x, placement.position.y
            if placement.is_exit:
                intent = MoveExit(placement.node_id, x, y)
            else:
                intent = Move(placement.node_id, x, y)
            text = self.session.patch(text, intent).text
        self._record("write_back", {"nodes": [p.node_id for p in assigned]}, text)
        return text

    # --------------------------------------------------------------- patching

    def apply(self, intent: PatchIntent) -> bool:
        """
        Patch ``intent`` into the buffer.

        A change notifies text listeners and triggers a reparse, deferred
        while a gesture is in progress.

        Returns:
            True if the buffer changed.
        """
        self.session.ensure_open()
        self.state = SyncState.APPLYING_PATCH
        before = self.text
        try:
            result = self.session.patch(before, intent)
        finally:
            self.state = SyncState.IDLE

        if self._trace is not None:
            self._trace.add_patch(intent, result.changed, before, result.text)
        if not result.changed:
            return False

        self.text = result.text
        self._record("patch", {"intent": intent}, self.text)
        self._notify(self._text_listeners, self.text)
        # a pending debounce is covered by this reparse
        self._due = None
        self._request_reparse()
        return True

    def rename(self, old_name: str, new_name: str) -> bool:
        return self.apply(Rename(old_name, new_name))

    def add_pipe(self, name: str, x, y, pipe_type: Optional[str] = None) -> bool:
        return self.apply(AddPipe(name, x, y, pipe_type))

    # --------------------------------------------------------------- gestures

    def _begin(self, gesture: Gesture) -> None:
        self.session.ensure_open()
        if self.gesture is not Gesture.NONE:
            raise RuntimeError(f"Cannot start {gesture.value} while {self.gesture.value}")
        self.gesture = gesture

    def _release(self) -> None:
        self.gesture = Gesture.NONE
        if self._deferred:
            self._deferred = False
            self._reparse()

    def begin_drag(self, node_id: str) -> None:
        """Start moving ``node_id``; reparses wait until ``end_drag``."""
        self._begin(Gesture.MOVING)
        self._drag = (node_id, None)

    def drag(self, x, y) -> None:
        """Track the pointer; the buffer is only patched when the drag ends."""
        if self.gesture is not Gesture.MOVING or self._drag is None:
            return
        node_id = self._drag[0]
        self._drag = (node_id, (x, y))
        node = self.graph.node(node_id) if self.graph is not None else None
        if node is not None:
            node.x, node.y = int(round(x)), int(round(y))

    def end_drag(self) -> bool:
        """
        Finish the drag: patch the final position and run the one reparse.

        Returns:
            True if the buffer changed.
        """
        if self.gesture is not Gesture.MOVING:
            return False
        node_id, position = self._drag
        self._drag = None
        changed = False
        try:
            if position is not None:
                node = self.graph.node(node_id) if self.graph is not None else None
                if node is not None and node.is_exit:
                    changed = self.apply(MoveExit(node_id, *position))
                else:
                    changed = self.apply(Move(node_id, *position))
        finally:
            self._release()
        return changed

    def begin_connection(self) -> None:
        """Start drawing connectors; reparses wait until ``end_connection``."""
        self._begin(Gesture.ADDING)

    def connection_added(self, source: str, target: str) -> bool:
        """A connector was drawn from ``source`` to ``target``."""
        self.session.ensure_open()
        intent = self.session.reconciler.connection_added(source, target)
        if intent is None:
            return False
        return self.apply(intent)

    def connection_removed(self, source: str, target: str) -> bool:
        """
        A connector from ``source`` to ``target`` was removed.

        A connector with no Forward behind it (an implicit ``success`` edge,
        say) cannot be removed from the text; it is put back on the diagram.

        Returns:
            True if the buffer changed.
        """
        self.session.ensure_open()
        if self.apply(self.session.reconciler.connection_removed(source, target)):
            return True
        if self.graph is not None:
            logger.debug("No forward behind %s -> %s, restoring connector", source, target)
            self.graph.edges = self.session.reconciler.load(self.graph)
            self._notify(self._graph_listeners, self.graph)
        return False

    def end_connection(self) -> None:
        if self.gesture is Gesture.ADDING:
            self._release()

    # -------------------------------------------------------------- adapters

    def select_adapter(self, name: Optional[str]) -> bool:
        """Show adapter ``name``. Returns True if the selection changed."""
        if not self.session.select_adapter(name):
            return False
        if self._trace is not None:
            self._trace.adapter_name = name
        self._request_reparse()
        return True

    def select_adapter_at(self, offset: int) -> Optional[str]:
        """Show the adapter enclosing ``offset`` in the buffer, e.g. under the cursor."""
        name = adapter_at(self.text, offset)
        if name is not None:
            self.select_adapter(name)
        return name

    # ----------------------------------------------------------------- misc

    @property
    def decorations(self) -> LineDecorations:
        return self.session.decorations

    def export_png(self, output_path: str = "diagram.png", **kwargs) -> str:
        """Save the current graph as a PNG image."""
        if self.graph is None:
            raise RuntimeError("Nothing has been rendered yet")
        return render_to_png(self.graph, output_path, **kwargs)

    def get_trace(self) -> Optional[SyncTrace]:
        """The trace recorded so far, or None when not in debug mode."""
        return self._trace

    def _record(self, name: str, data: dict, text: Optional[str] = None) -> None:
        if self._trace is not None:
            self._trace.add_stage(name, data, text)

    def close(self) -> None:
        """Dispose of the session and drop listeners and pending work."""
        self._due = None
        self._deferred = False
        self._drag = None
        self.gesture = Gesture.NONE
        self._text_listeners.clear()
        self._graph_listeners.clear()
        self._error_listeners.clear()
        self.session.dispose()
