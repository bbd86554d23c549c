"""
The conversation state: ordered turns and the rules that mutate them.
"""

import itertools
import logging
from typing import Iterable, Optional, Sequence

from core.citations import CitationIndex
from core.domain import DeltaEvent
from core.errors import NotFoundError, PreconditionError
from models import InteractiveItem, Item, ReasoningItem, Source, TextItem, Turn

logger = logging.getLogger(__name__)


def _check_item_order(items: Sequence[Item]) -> None:
    interactive = [i for i, item in enumerate(items) if isinstance(item, InteractiveItem)]
    if len(interactive) > 1:
        raise PreconditionError("a turn holds at most one interactive item")
    if interactive and interactive[0] != len(items) - 1:
        raise PreconditionError("an interactive item must be the last item of its turn")


class TranscriptModel:
    """
    Owns every Turn and its items. All mutation goes through these methods,
    which run on the event loop's thread only.
    """

    def __init__(self, id_prefix: str = "t") -> None:
        self._turns: list[Turn] = []
        self._by_id: dict[str, Turn] = {}
        self._citations: dict[str, CitationIndex] = {}
        self._id_prefix = id_prefix
        self._ids = itertools.count(1)

    @property
    def turns(self) -> tuple[Turn, ...]:
        return tuple(self._turns)

    def __len__(self) -> int:
        return len(self._turns)

    def _new_id(self) -> str:
        return f"{self._id_prefix}{next(self._ids)}"

    def _append(self, turn: Turn) -> Turn:
        self._turns.append(turn)
        self._by_id[turn.turn_id] = turn
        self._citations[turn.turn_id] = CitationIndex(turn.sources)
        return turn

    def get(self, turn_id: str) -> Turn:
        try:
            return self._by_id[turn_id]
        except KeyError:
            raise NotFoundError(turn_id) from None

    def last_turn(self) -> Optional[Turn]:
        return self._turns[-1] if self._turns else None

    def clear(self) -> None:
        self._turns.clear()
        self._by_id.clear()
        self._citations.clear()

    def append_user_turn(self, text: str) -> Turn:
        return self._append(Turn(turn_id=self._new_id(), role='user', items=[TextItem(text)], status='final'))

    def append_empty_assistant_turn(self) -> Turn:
        return self._append(Turn(turn_id=self._new_id(), role='assistant', items=[TextItem()], status='thinking'))

    def append_turn(
        self,
        role: str,
        items: Iterable[Item],
        sources: Iterable[Source] = (),
        duration_seconds: Optional[float] = None,
    ) -> Turn:
        """Append an already finished turn, e.g. one loaded from storage."""
        items = list(items)
        _check_item_order(items)
        turn = Turn(
            turn_id=self._new_id(),
            role='user' if role == 'user' else 'assistant',
            items=items,
            sources=tuple(sources),
            duration_seconds=duration_seconds,
            status='final',
        )
        return self._append(turn)

    def apply_delta(self, turn_id: str, event: DeltaEvent) -> None:
        """
        Fold one delta into the turn's trailing items.

        Reasoning precedes content: the empty placeholder Text item turns into
        the Reasoning item, and the first content fragment after reasoning
        opens a new Text item. A reasoning fragment that arrives once content
        has started is dropped.
        """
        turn = self.get(turn_id)
        if isinstance(turn.last_item, InteractiveItem):
            raise PreconditionError(f"turn {turn_id} ends with a choice prompt, cannot stream into it")

        if event.reasoning:
            last = turn.last_item
            if isinstance(last, ReasoningItem):
                last.content += event.reasoning
            elif last is None:
                turn.items.append(ReasoningItem(event.reasoning))
            elif not last.content and not any(isinstance(item, ReasoningItem) for item in turn.items):
                turn.items[-1] = ReasoningItem(event.reasoning)
            else:
                logger.debug("turn %s: reasoning after content dropped", turn_id)

        if event.content:
            last = turn.last_item
            if isinstance(last, TextItem):
                last.content += event.content
            else:
                turn.items.append(TextItem(event.content))

    def replace_turn_items(
        self,
        turn_id: str,
        items: Iterable[Item],
        sources: Iterable[Source],
        duration_seconds: Optional[float] = None,
    ) -> Turn:
        turn = self.get(turn_id)
        items = list(items)
        _check_item_order(items)

        turn.items = items
        turn.sources = tuple(sources)
        if duration_seconds is not None:
            turn.duration_seconds = duration_seconds
        self._citations[turn_id] = CitationIndex(turn.sources)
        return turn

    def resolve_interactive(self, turn_id: str, chosen_value: str) -> InteractiveItem:
        turn = self.get(turn_id)
        last = turn.last_item
        if not isinstance(last, InteractiveItem):
            raise PreconditionError(f"turn {turn_id} does not end with a choice prompt")
        if last.resolved:
            raise PreconditionError(f"turn {turn_id} choice already resolved as {last.resolved_value!r}")

        last.resolved_value = chosen_value
        return last

    def citations(self, turn_id: str) -> CitationIndex:
        self.get(turn_id)
        return self._citations[turn_id]
