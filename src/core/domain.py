"""
Events flowing through the engine: decoded stream deltas and the
notifications the engine publishes to its renderer.
"""

from dataclasses import dataclass
from typing import Literal, TypedDict, Union


@dataclass(frozen=True)
class DeltaEvent:
    """One decoded stream frame. At least one of the fragments is non-empty."""
    content: str = ""
    reasoning: str = ""


class TurnAddedEvent(TypedDict):
    type: Literal['turn_added']
    turn_id: str
    role: str


class DeltaAppliedEvent(TypedDict):
    type: Literal['delta']
    turn_id: str


class DoneEvent(TypedDict):
    type: Literal['done']
    turn_id: str


class ErrorEvent(TypedDict):
    type: Literal['error']
    turn_id: str
    message: str


class InteractiveEvent(TypedDict):
    type: Literal['interactive']
    turn_id: str
    prompt: str
    options: list[str]


class HistoryLoadedEvent(TypedDict):
    type: Literal['history_loaded']
    count: int


EngineEvent = Union[
    TurnAddedEvent, DeltaAppliedEvent, DoneEvent, ErrorEvent, InteractiveEvent, HistoryLoadedEvent,
]
