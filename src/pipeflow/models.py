"""
Data models for pipeline configurations.

This module contains the dataclasses that make up one parsed snapshot of an
adapter. A snapshot is rebuilt from the text on every parse; nothing here
outlives one parse/patch cycle.

Classes:
    Position: Canvas coordinates of a node.
    Forward: Named directed edge from a pipe to a pipe or exit.
    Pipe: A single processing step.
    Exit: Terminal node of a pipeline.
    Receiver: Entry point that triggers the pipeline.
    Pipeline: Ordered pipes plus exits.
    Adapter: Named unit holding a receiver and a pipeline.
    ParseResult: Outcome of parsing, either an adapter or a status.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

RECEIVER_PREFIX = "(receiver): "
EXIT_PATH = "Exit"


class RenderStatus(Enum):
    """Whether a parsed document can be rendered, and if not, why."""

    OK = "ok"
    NO_ADAPTER = "no_adapter"
    NO_PIPELINE = "no_pipeline"
    DUPLICATE_PIPE = "duplicate_pipe"


class EdgeStyle(Enum):
    """Visual class of a rendered connector."""

    ERROR = "error"
    OK = "ok"
    ASYNC = "dashed"
    DEFAULT = "default"


def classify_forward(name: str) -> EdgeStyle:
    """Map a forward name onto its connector style."""
    if name in ("failure", "exception"):
        return EdgeStyle.ERROR
    if name == "success":
        return EdgeStyle.OK
    if name in ("request", "response"):
        return EdgeStyle.ASYNC
    return EdgeStyle.DEFAULT


@dataclass
class Position:
    """Canvas coordinates of a node."""

    x: int
    y: int


@dataclass
class Forward:
    """
    A named edge from one pipe to a pipe name or exit path.

    Attributes:
        name: Semantic tag, e.g. ``success`` or ``failure``.
        source: Name of the pipe the forward belongs to.
        target: Pipe name or exit path it points at.
        implicit: True for the ``success`` forward synthesized for a pipe
            that declares none.
    """

    name: str
    source: str
    target: str
    implicit: bool = False


@dataclass
class Pipe:
    """
    A single processing step of a pipeline.

    Attributes:
        name: Name, unique within the pipeline.
        type: Tag name, always ending in ``Pipe``.
        position: Explicit coordinates, or None until laid out.
        summary: Short display text taken from the pipe's attributes.
        documentation: Text of a nested Documentation element.
        sender: Type of a nested sender element, if the pipe has one.
        forwards: Explicit and implicit forwards in document order.
    """

    name: str
    type: str
    position: Optional[Position] = None
    summary: str = ""
    documentation: Optional[str] = None
    sender: Optional[str] = None
    forwards: List[Forward] = field(default_factory=list)

    @property
    def type_label(self) -> str:
        return self.sender or self.type


@dataclass
class Exit:
    """Terminal node of a pipeline, identified by its path."""

    path: str
    state: str = ""
    code: str = ""
    position: Optional[Position] = None


@dataclass
class Receiver:
    """Entry point of an adapter."""

    name: str
    position: Optional[Position] = None
    listener: Optional[str] = None

    @property
    def display_name(self) -> str:
        return RECEIVER_PREFIX + self.name


@dataclass
class Pipeline:
    """Ordered pipes and the exits they can lead to."""

    first_pipe: Optional[str] = None
    pipes: List[Pipe] = field(default_factory=list)
    exits: List[Exit] = field(default_factory=list)

    def get_pipe(self, name: str) -> Optional[Pipe]:
        for pipe in self.pipes:
            if pipe.name == name:
                return pipe
        return None

    def get_exit(self, path: str) -> Optional[Exit]:
        for exit_ in self.exits:
            if exit_.path == path:
                return exit_
        return None

    @property
    def forwards(self) -> List[Forward]:
        return [forward for pipe in self.pipes for forward in pipe.forwards]

    @property
    def entry_pipe(self) -> Optional[Pipe]:
        """The pipe named by ``firstPipe``, else the first in document order."""
        if self.first_pipe:
            pipe = self.get_pipe(self.first_pipe)
            if pipe is not None:
                return pipe
        return self.pipes[0] if self.pipes else None


@dataclass
class Adapter:
    """Named unit holding one receiver and one pipeline."""

    name: str
    description: str = ""
    receiver: Optional[Receiver] = None
    pipeline: Pipeline = field(default_factory=Pipeline)


@dataclass
class ParseResult:
    """
    Result of parsing configuration text.

    A document that cannot be rendered is not an error: the status says why
    and the adapter is None.
    """

    status: RenderStatus
    adapter: Optional[Adapter] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status is RenderStatus.OK
