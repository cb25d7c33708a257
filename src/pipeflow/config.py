"""
Settings for the synchronization engine.

All tunable constants of the engine live on a single dataclass so that a
host can create one per editor and hand it to every component.
"""

from dataclasses import dataclass, field, replace
from typing import Tuple


@dataclass(frozen=True)
class SyncSettings:
    """
    Tunable constants for layout, parsing and patching.

    Attributes:
        debounce_seconds: Quiet period before a text change is parsed.
        stride: Distance between consecutive laid-out nodes.
        base_offset: Cross-axis coordinate given to laid-out nodes.
        horizontal_build: Lay nodes out along x instead of y.
        receiver_anchor: Default receiver position.
        node_extent: Per-node pixel constant used when growing the canvas.
        vertical_slack: Subtracted from the running extent in vertical mode.
        horizontal_slack: Subtracted from the running extent in horizontal mode.
        canvas_width: Initial canvas width.
        canvas_height: Initial canvas height.
        summary_length: Characters kept from a pipe's descriptive attribute.
        new_pipe_type: Tag name used for pipes added from the diagram.
        default_forward: Forward name used for user-drawn connections.
    """

    debounce_seconds: float = 0.25
    stride: int = 250
    base_offset: int = 100
    horizontal_build: bool = False
    receiver_anchor: Tuple[int, int] = field(default=(600, 400))
    node_extent: int = 64
    vertical_slack: int = 1450
    horizontal_slack: int = 1000
    canvas_width: int = 2000
    canvas_height: int = 2000
    summary_length: int = 15
    new_pipe_type: str = "newPipe"
    default_forward: str = "success"

    def __post_init__(self):
        if self.debounce_seconds < 0:
            raise ValueError("debounce_seconds must not be negative")
        if self.stride <= 0:
            raise ValueError("stride must be positive")
        if self.canvas_width <= 0 or self.canvas_height <= 0:
            raise ValueError("canvas dimensions must be positive")
        if self.summary_length < 0:
            raise ValueError("summary_length must not be negative")
        if len(self.receiver_anchor) != 2:
            raise ValueError("receiver_anchor must be an (x, y) pair")
        if not self.new_pipe_type.endswith("Pipe"):
            raise ValueError("new_pipe_type must end in 'Pipe'")
        if not self.default_forward:
            raise ValueError("default_forward must not be empty")

    def with_overrides(self, **kwargs) -> "SyncSettings":
        """Return a validated copy with the given fields replaced."""
        return replace(self, **kwargs)


DEFAULT_SETTINGS = SyncSettings()
