"""
Layout module for pipeline diagrams.

Nodes with explicit coordinates keep them. Every other pipe and exit is
placed on a fixed stride by its document-order index, down the canvas or,
with horizontal build switched on, across it. The receiver sits at a fixed
anchor. Positions handed out here are meant to be written back into the
text, after which they are explicit like any other.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .config import DEFAULT_SETTINGS, SyncSettings
from .models import Adapter, Position


@dataclass
class Placement:
    """A position the layout engine chose for a node without one."""

    node_id: str
    position: Position
    is_exit: bool = False


@dataclass
class LayoutResult:
    """Result of the layout pass."""

    positions: Dict[str, Position] = field(default_factory=dict)
    assigned: List[Placement] = field(default_factory=list)
    canvas_width: int = 0
    canvas_height: int = 0


class LayoutEngine:
    """
    Assigns default positions and sizes the canvas.

    Positions handed out for a node are cached until the node shows up with
    explicit coordinates, so a node does not jump around between the layout
    pass and the reparse that follows the write-back.
    """

    def __init__(self, settings: Optional[SyncSettings] = None):
        self.settings = settings or DEFAULT_SETTINGS
        self._cache: Dict[str, Position] = {}

    def forget(self) -> None:
        """Drop all cached positions."""
        self._cache.clear()

    def layout(self, adapter: Adapter) -> LayoutResult:
        """
        Compute positions for every node of ``adapter``.

        Args:
            adapter: Parsed adapter

        Returns:
            LayoutResult with a position per node id and the canvas size
        """
        settings = self.settings
        result = LayoutResult(
            canvas_width=settings.canvas_width, canvas_height=settings.canvas_height
        )
        pipeline = adapter.pipeline

        nodes: List[Tuple[str, Optional[Position], bool]] = [
            (pipe.name, pipe.position, False) for pipe in pipeline.pipes
        ]
        nodes.extend((exit_.path, exit_.position, True) for exit_ in pipeline.exits)

        occupied = [position for _, position, _ in nodes if position is not None]

        for index, (node_id, position, is_exit) in enumerate(nodes, 1):
            if position is not None:
                self._cache.pop(node_id, None)
                result.positions[node_id] = Position(position.x, position.y)
                self._cover(result, position)
            else:
                placed = self._cache.get(node_id)
                if placed is None:
                    placed = self._free_position(index, occupied)
                    self._cache[node_id] = placed
                occupied.append(placed)
                result.positions[node_id] = Position(placed.x, placed.y)
                result.assigned.append(Placement(node_id, Position(placed.x, placed.y), is_exit))
                self._cover(result, placed)

            self._grow(result, index)

        if adapter.receiver is not None:
            anchor = adapter.receiver.position
            if anchor is None:
                anchor = Position(*settings.receiver_anchor)
            result.positions[adapter.receiver.display_name] = Position(anchor.x, anchor.y)
            self._cover(result, anchor)

        return result

    def _stride_position(self, index: int) -> Position:
        offset = self.settings.stride * index
        if self.settings.horizontal_build:
            return Position(offset, self.settings.base_offset)
        return Position(self.settings.base_offset, offset)

    def _free_position(self, index: int, occupied: List[Position]) -> Position:
        """Stride position for ``index``, pushed further along while it overlaps a node."""
        extent = self.settings.node_extent
        candidate = self._stride_position(index)
        while any(
            abs(candidate.x - other.x) < extent and abs(candidate.y - other.y) < extent
            for other in occupied
        ):
            index += 1
            candidate = self._stride_position(index)
        return candidate

    def _grow(self, result: LayoutResult, index: int) -> None:
        """Grow the canvas along the build axis to fit ``index`` nodes."""
        settings = self.settings
        running = (settings.stride + settings.node_extent) * index
        if settings.horizontal_build:
            extent = running - settings.horizontal_slack
            result.canvas_width = max(result.canvas_width, extent)
        else:
            extent = running - settings.vertical_slack
            result.canvas_height = max(result.canvas_height, extent)

    def _cover(self, result: LayoutResult, position: Position) -> None:
        extent = self.settings.node_extent
        result.canvas_width = max(result.canvas_width, position.x + extent)
        result.canvas_height = max(result.canvas_height, position.y + extent)


def compute_layout(adapter: Adapter, settings: Optional[SyncSettings] = None) -> LayoutResult:
    """Convenience function to lay out an adapter with a fresh engine."""
    return LayoutEngine(settings).layout(adapter)
