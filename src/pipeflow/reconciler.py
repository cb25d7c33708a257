"""
Edge reconciliation between the model and the rendered diagram.

Uses networkx for:
- The set of connectors currently on the render surface
- Node kinds (pipe, exit, receiver) as node attributes
- One connector per ordered (source, target) pair

Connectors coming from a parse are loaded without producing any intent.
Connectors the user draws or removes are turned into AddForward and
DeleteForward intents for the patcher.
"""

import logging
from typing import List, Optional

import networkx as nx

from .config import DEFAULT_SETTINGS, SyncSettings
from .graph import FlowGraph, GraphEdge
from .intents import AddForward, DeleteForward, normalize_target
from .models import classify_forward

logger = logging.getLogger(__name__)


class EdgeReconciler:
    """Keeps the rendered connector set consistent with the model."""

    def __init__(self, settings: Optional[SyncSettings] = None):
        self.settings = settings or DEFAULT_SETTINGS
        self.connections: nx.DiGraph = nx.DiGraph()

    def load(self, graph: FlowGraph) -> List[GraphEdge]:
        """
        Replace the rendered connectors with the edges of ``graph``.

        When the model holds several forwards between the same ordered pair
        only the first one is rendered.

        Returns:
            The edges actually rendered, in model order.
        """
        self.connections = nx.DiGraph()
        for node in graph.nodes:
            if node.is_exit:
                kind = "exit"
            elif node.type_label == "Receiver":
                kind = "receiver"
            else:
                kind = "pipe"
            self.connections.add_node(node.id, kind=kind)

        rendered = []
        for edge in graph.edges:
            if self.connections.has_edge(edge.source_id, edge.target_id):
                logger.debug(
                    "Skipping duplicate connector %s -> %s (%s)",
                    edge.source_id,
                    edge.target_id,
                    edge.label,
                )
                continue
            self.connections.add_edge(
                edge.source_id, edge.target_id, label=edge.label, style_class=edge.style_class
            )
            rendered.append(edge)
        return rendered

    def has_connection(self, source: str, target: str) -> bool:
        return self.connections.has_edge(source, target)

    def rendered_edges(self) -> List[GraphEdge]:
        return [
            GraphEdge(source, target, data["label"], data["style_class"])
            for source, target, data in self.connections.edges(data=True)
        ]

    def connection_added(self, source: str, target: str) -> Optional[AddForward]:
        """
        Handle a connector drawn by the user.

        Returns:
            An AddForward intent, or None when the connector duplicates an
            existing one (it is dropped again) or starts at an exit.
        """
        if self.connections.has_edge(source, target):
            logger.debug("Removing duplicate connector %s -> %s", source, target)
            return None
        if self.connections.nodes.get(source, {}).get("kind") != "pipe":
            logger.debug("Ignoring connector from non-pipe node %r", source)
            return None

        name = self.settings.default_forward
        self.connections.add_edge(
            source, target, label=name, style_class=classify_forward(name).value
        )
        return AddForward(source, target, name)

    def connection_removed(self, source: str, target: str) -> DeleteForward:
        """Handle a connector removed by the user."""
        if self.connections.has_edge(source, target):
            self.connections.remove_edge(source, target)
        return DeleteForward(source, normalize_target(target))
