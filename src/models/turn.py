"""
Data models for the transcript: turns, their items and cited sources.
"""
from dataclasses import dataclass, field
from typing import Literal, Optional, Union


@dataclass
class TextItem:
    content: str = ""
    kind: Literal['text'] = field(default='text', init=False)


@dataclass
class ReasoningItem:
    content: str = ""
    duration_seconds: Optional[float] = None
    kind: Literal['reasoning'] = field(default='reasoning', init=False)


@dataclass(frozen=True)
class ChoiceOption:
    key: str
    value: str


@dataclass
class InteractiveItem:
    """
    A choice prompt. Terminal once resolved_value is set.
    """
    prompt: str
    options: list[ChoiceOption] = field(default_factory=list)
    resolved_value: Optional[str] = None
    kind: Literal['interactive'] = field(default='interactive', init=False)

    @property
    def resolved(self) -> bool:
        return self.resolved_value is not None

    def option_values(self) -> list[str]:
        return [opt.value for opt in self.options]


Item = Union[TextItem, ReasoningItem, InteractiveItem]


@dataclass(frozen=True)
class Source:
    """
    A citable document attached to an assistant turn.
    """
    id: str
    secondary_id: str = ""
    source_name: str = ""
    title: str = ""
    body: str = ""
    score: str = ""


@dataclass
class Turn:
    """
    Represents a single conversation turn, either the user's or the assistant's.
    """
    turn_id: str
    role: Literal['user', 'assistant']
    items: list[Item] = field(default_factory=list)
    sources: tuple[Source, ...] = ()
    duration_seconds: Optional[float] = None
    status: str = 'idle'

    @property
    def last_item(self) -> Optional[Item]:
        return self.items[-1] if self.items else None

    def plain_text(self) -> str:
        """Text items joined by newlines, the form sent back as context."""
        return "\n".join(item.content for item in self.items if isinstance(item, TextItem))
