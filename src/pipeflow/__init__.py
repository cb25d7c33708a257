"""
PipeFlow - Text and diagram sync for pipeline configurations

A Python library that keeps an XML pipeline configuration and its diagram in
step: edits to the text rebuild the diagram, and gestures on the diagram
patch the text in place.

Example:
    >>> from pipeflow import SyncCoordinator
    >>> coordinator = SyncCoordinator('''
    ...     <Adapter name="A"><Pipeline firstPipe="P1">
    ...       <FixedResultPipe name="P1" x="10" y="10">
    ...         <Forward name="success" path="Exit"/>
    ...       </FixedResultPipe>
    ...       <Exit path="Exit" state="success" code="200"/>
    ...     </Pipeline></Adapter>
    ... ''')
    >>> coordinator.graph.edge_pairs()
    [('P1', 'Exit')]
    >>> coordinator.rename("P1", "Step1")
    True

Debug Mode Example:
    >>> coordinator = SyncCoordinator(text, debug=True)
    >>> print(coordinator.get_trace().summary())
"""

from .canonicalizer import canonicalize
from .config import DEFAULT_SETTINGS, SyncSettings
from .coordinator import Gesture, SyncCoordinator, SyncState
from .decorations import LineDecorations, lines_from_messages
from .graph import FlowGraph, GraphBuilder, GraphEdge, GraphNode, build_graph
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
from .layout import LayoutEngine, LayoutResult, Placement, compute_layout
from .models import (
    Adapter,
    EdgeStyle,
    Exit,
    Forward,
    ParseResult,
    Pipe,
    Pipeline,
    Position,
    Receiver,
    RenderStatus,
)
from .parser import (
    ModelParser,
    ParseError,
    adapter_at,
    list_adapters,
    parse_configuration,
    pipe_types,
)
from .patcher import PatchResult, TextPatcher
from .png_renderer import PNGRenderer, render_to_png
from .reconciler import EdgeReconciler
from .session import EditorSession
from .tracer import PatchRecord, SyncTrace, TraceStage

__version__ = "0.1.0"

__all__ = [
    # Main API
    "SyncCoordinator",
    "SyncState",
    "Gesture",
    "EditorSession",
    # Configuration
    "SyncSettings",
    "DEFAULT_SETTINGS",
    # Canonicalizer and parser
    "canonicalize",
    "ModelParser",
    "ParseError",
    "parse_configuration",
    "list_adapters",
    "adapter_at",
    "pipe_types",
    # Models
    "Adapter",
    "Pipeline",
    "Pipe",
    "Forward",
    "Exit",
    "Receiver",
    "Position",
    "ParseResult",
    "RenderStatus",
    "EdgeStyle",
    # Layout and graph
    "LayoutEngine",
    "LayoutResult",
    "Placement",
    "compute_layout",
    "GraphBuilder",
    "FlowGraph",
    "GraphNode",
    "GraphEdge",
    "build_graph",
    "EdgeReconciler",
    # Patching
    "TextPatcher",
    "PatchResult",
    "PatchIntent",
    "Rename",
    "Move",
    "MoveExit",
    "AddForward",
    "DeleteForward",
    "AddPipe",
    "ChangeType",
    "ChangeAttribute",
    "AddAttribute",
    "DeleteAttribute",
    "AddParameter",
    "AddParameterAttribute",
    "DeleteParameter",
    # Validator boundary
    "LineDecorations",
    "lines_from_messages",
    # Export
    "PNGRenderer",
    "render_to_png",
    # Debug/Tracing (for development and debugging)
    "SyncTrace",
    "TraceStage",
    "PatchRecord",
]
