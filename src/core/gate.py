"""
Whether the conversation accepts free text or is waiting for a choice.
The state is always read off the transcript, never stored.
"""

import enum
from typing import Optional

from core.errors import GateClosedError, PreconditionError
from core.transcript import TranscriptModel
from models import InteractiveItem, Turn


class GateState(enum.Enum):
    IDLE = 'idle'
    AWAITING_CHOICE = 'awaiting_choice'


def pending_choice(model: TranscriptModel) -> Optional[tuple[Turn, InteractiveItem]]:
    turn = model.last_turn()
    if turn is None or turn.role != 'assistant':
        return None
    last = turn.last_item
    if isinstance(last, InteractiveItem) and not last.resolved:
        return turn, last
    return None


def state(model: TranscriptModel) -> GateState:
    return GateState.AWAITING_CHOICE if pending_choice(model) else GateState.IDLE


def check_free_text(model: TranscriptModel) -> None:
    pending = pending_choice(model)
    if pending is not None:
        _, item = pending
        raise GateClosedError(f"waiting for a choice: {item.prompt!r}")


def check_choice(model: TranscriptModel, value: str) -> tuple[Turn, InteractiveItem]:
    pending = pending_choice(model)
    if pending is None:
        raise PreconditionError("no choice prompt is waiting for an answer")

    turn, item = pending
    if value not in item.option_values():
        raise PreconditionError(f"{value!r} is not one of {item.option_values()}")
    return turn, item
