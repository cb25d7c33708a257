"""
Graph module for pipeline diagrams.

Converts a parsed adapter plus its layout into the plain node and edge
lists handed to a diagram renderer. Node ids are the domain names (pipe
name, exit path, prefixed receiver name) so that anything the renderer
reports back can be mapped straight onto the text.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .config import DEFAULT_SETTINGS, SyncSettings
from .layout import LayoutResult
from .models import Adapter, Forward, classify_forward

logger = logging.getLogger(__name__)

RECEIVER_FORWARD = "request"


@dataclass
class GraphNode:
    """A renderable node."""

    id: str
    label: str
    type_label: str
    x: int = 0
    y: int = 0
    is_exit: bool = False
    summary: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "typeLabel": self.type_label,
            "x": self.x,
            "y": self.y,
            "isExit": self.is_exit,
            "summary": self.summary,
        }


@dataclass
class GraphEdge:
    """A renderable connector between two node ids."""

    source_id: str
    target_id: str
    label: str
    style_class: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sourceId": self.source_id,
            "targetId": self.target_id,
            "label": self.label,
            "styleClass": self.style_class,
        }


@dataclass
class FlowGraph:
    """
    Renderable snapshot of one adapter.

    Attributes:
        adapter_name: Name of the adapter shown.
        nodes: Nodes in document order, receiver last.
        edges: Resolved connectors.
        unresolved: Forwards whose target names no pipe or exit. They are
            left alone in the text and only missing from the diagram.
        canvas_width: Canvas width from the layout pass.
        canvas_height: Canvas height from the layout pass.
    """

    adapter_name: str = ""
    nodes: List[GraphNode] = field(default_factory=list)
    edges: List[GraphEdge] = field(default_factory=list)
    unresolved: List[Forward] = field(default_factory=list)
    canvas_width: int = 0
    canvas_height: int = 0

    def node(self, node_id: str) -> Optional[GraphNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def edge_pairs(self) -> List[Tuple[str, str]]:
        return [(edge.source_id, edge.target_id) for edge in self.edges]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "adapter": self.adapter_name,
            "nodes": [node.to_dict() for node in self.nodes],
            "edges": [edge.to_dict() for edge in self.edges],
            "canvas": {"width": self.canvas_width, "height": self.canvas_height},
        }


class GraphBuilder:
    """Builds a FlowGraph from an adapter and its layout."""

    def __init__(self, settings: Optional[SyncSettings] = None):
        self.settings = settings or DEFAULT_SETTINGS

    def build(self, adapter: Adapter, layout: LayoutResult) -> FlowGraph:
        """
        Build the renderable graph.

        Args:
            adapter: Parsed adapter
            layout: Layout computed for the same adapter

        Returns:
            FlowGraph with nodes, resolved edges and unresolved forwards
        """
        graph = FlowGraph(
            adapter_name=adapter.name,
            canvas_width=layout.canvas_width,
            canvas_height=layout.canvas_height,
        )
        pipeline = adapter.pipeline

        for pipe in pipeline.pipes:
            graph.nodes.append(
                self._node(pipe.name, pipe.name, pipe.type_label, layout, summary=pipe.summary)
            )
        for exit_ in pipeline.exits:
            graph.nodes.append(self._node(exit_.path, exit_.path, "Exit", layout, is_exit=True))

        pipe_names = {pipe.name for pipe in pipeline.pipes}
        exit_paths = {exit_.path for exit_ in pipeline.exits}

        for forward in pipeline.forwards:
            if forward.target in pipe_names or forward.target in exit_paths:
                graph.edges.append(self._edge(forward.source, forward.target, forward.name))
            else:
                logger.debug(
                    "Dropping forward %r of %r: unknown target %r",
                    forward.name,
                    forward.source,
                    forward.target,
                )
                graph.unresolved.append(forward)

        receiver = adapter.receiver
        if receiver is not None:
            graph.nodes.append(
                self._node(receiver.display_name, receiver.display_name, "Receiver", layout)
            )
            entry = pipeline.entry_pipe
            if entry is not None:
                graph.edges.append(self._edge(receiver.display_name, entry.name, RECEIVER_FORWARD))

        return graph

    @staticmethod
    def _node(
        node_id: str,
        label: str,
        type_label: str,
        layout: LayoutResult,
        is_exit: bool = False,
        summary: str = "",
    ) -> GraphNode:
        position = layout.positions.get(node_id)
        x, y = (position.x, position.y) if position is not None else (0, 0)
        return GraphNode(node_id, label, type_label, x, y, is_exit, summary)

    @staticmethod
    def _edge(source: str, target: str, name: str) -> GraphEdge:
        return GraphEdge(source, target, name, classify_forward(name).value)


def build_graph(
    adapter: Adapter, layout: LayoutResult, settings: Optional[SyncSettings] = None
) -> FlowGraph:
    """Convenience function to build a graph with default settings."""
    return GraphBuilder(settings).build(adapter, layout)
