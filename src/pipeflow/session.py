"""
Editor session.

One session per open document. It carries the settings, the selected
adapter and the stateful pieces of the engine (layout cache, rendered
connectors, line decorations), and hands them to the parser, layout
engine, graph builder and patcher. Disposing a session releases all of
it; a disposed session refuses further use.
"""

import logging
from typing import Optional

from .config import DEFAULT_SETTINGS, SyncSettings
from .decorations import LineDecorations
from .graph import FlowGraph, GraphBuilder
from .intents import PatchIntent
from .layout import LayoutEngine, LayoutResult
from .models import Adapter, ParseResult
from .parser import ModelParser
from .patcher import PatchResult, TextPatcher
from .reconciler import EdgeReconciler

logger = logging.getLogger(__name__)


class EditorSession:
    """
    Per-document context for the sync engine.

    Args:
        settings: Engine settings shared by every component.
        adapter_name: Adapter to show; the first named adapter when None.
    """

    def __init__(self, settings: Optional[SyncSettings] = None, adapter_name: Optional[str] = None):
        self.settings = settings or DEFAULT_SETTINGS
        self._adapter_name = adapter_name
        self._closed = False

        self.parser = ModelParser(self.settings)
        self.layout_engine = LayoutEngine(self.settings)
        self.graph_builder = GraphBuilder(self.settings)
        self.reconciler = EdgeReconciler(self.settings)
        self.patcher = TextPatcher(self.settings, adapter_name)
        self.decorations = LineDecorations()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def adapter_name(self) -> Optional[str]:
        return self._adapter_name

    def ensure_open(self) -> None:
        if self._closed:
            raise RuntimeError("Editor session is closed")

    def select_adapter(self, name: Optional[str]) -> bool:
        """
        Switch to adapter ``name``.

        Cached layout positions belong to the previous adapter and are
        dropped.

        Returns:
            True if the selection changed.
        """
        self.ensure_open()
        if name == self._adapter_name:
            return False
        logger.info("Selected adapter %r (was %r)", name, self._adapter_name)
        self._adapter_name = name
        self.patcher.adapter_name = name
        self.layout_engine.forget()
        return True

    def parse(self, text: str) -> ParseResult:
        self.ensure_open()
        return self.parser.parse(text, self._adapter_name)

    def layout(self, adapter: Adapter) -> LayoutResult:
        self.ensure_open()
        return self.layout_engine.layout(adapter)

    def build_graph(self, adapter: Adapter, layout: LayoutResult) -> FlowGraph:
        """Build the graph and load it into the reconciler; edges are the rendered ones."""
        self.ensure_open()
        graph = self.graph_builder.build(adapter, layout)
        graph.edges = self.reconciler.load(graph)
        return graph

    def patch(self, text: str, intent: PatchIntent) -> PatchResult:
        self.ensure_open()
        return self.patcher.apply(text, intent)

    def dispose(self) -> None:
        """Release cached state. Safe to call more than once."""
        if self._closed:
            return
        self.layout_engine.forget()
        self.reconciler = EdgeReconciler(self.settings)
        self.decorations.clear()
        self._closed = True

    def __enter__(self) -> "EditorSession":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.dispose()
