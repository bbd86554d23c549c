"""
Read-only snapshots of the transcript handed to the renderer.
"""

from dataclasses import dataclass, field
from typing import Optional

from models import ChoiceOption, Source


@dataclass(frozen=True)
class ItemView:
    kind: str
    content: str = ""
    displayed: str = ""
    cursor_visible: bool = False
    typing: bool = False
    prompt: str = ""
    options: tuple[ChoiceOption, ...] = ()
    resolved_value: Optional[str] = None
    duration_seconds: Optional[float] = None


@dataclass(frozen=True)
class TurnView:
    turn_id: str
    role: str
    status: str
    items: tuple[ItemView, ...] = ()
    sources: tuple[Source, ...] = field(default_factory=tuple)
    duration_seconds: Optional[float] = None
    loading: bool = False
