"""
Edit intents.

An intent is a structured description of something the user did on the
diagram. The patcher turns each one into a text edit; nothing else about
the gesture (which DOM element, which mouse button) reaches the engine.
"""

from dataclasses import dataclass
from typing import Optional, Union

from .models import EXIT_PATH


def normalize_target(path: str) -> str:
    """Canonical spelling of a forward target: any casing of ``exit`` becomes ``Exit``."""
    return EXIT_PATH if path.lower() == EXIT_PATH.lower() else path


@dataclass(frozen=True)
class Rename:
    old_name: str
    new_name: str


@dataclass(frozen=True)
class Move:
    name: str
    x: float
    y: float


@dataclass(frozen=True)
class MoveExit:
    path: str
    x: float
    y: float


@dataclass(frozen=True)
class AddForward:
    pipe_name: str
    target: str
    name: str = "success"


@dataclass(frozen=True)
class DeleteForward:
    pipe_name: str
    target: str


@dataclass(frozen=True)
class AddPipe:
    name: str
    x: float
    y: float
    pipe_type: Optional[str] = None


@dataclass(frozen=True)
class ChangeType:
    name: str
    new_type: str


@dataclass(frozen=True)
class ChangeAttribute:
    pipe_name: str
    attribute: str
    value: str


@dataclass(frozen=True)
class AddAttribute:
    pipe_name: str
    attribute: str
    value: str = ""


@dataclass(frozen=True)
class DeleteAttribute:
    pipe_name: str
    attribute: str


@dataclass(frozen=True)
class AddParameter:
    pipe_name: str
    param_name: str
    value: Optional[str] = None


@dataclass(frozen=True)
class AddParameterAttribute:
    pipe_name: str
    param_name: str
    attribute: str
    value: str = ""


@dataclass(frozen=True)
class DeleteParameter:
    pipe_name: str
    param_name: str


PatchIntent = Union[
    Rename,
    Move,
    MoveExit,
    AddForward,
    DeleteForward,
    AddPipe,
    ChangeType,
    ChangeAttribute,
    AddAttribute,
    DeleteAttribute,
    AddParameter,
    AddParameterAttribute,
    DeleteParameter,
]
