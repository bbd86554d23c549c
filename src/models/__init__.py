"""
Transcript data models.
"""
from .turn import ChoiceOption, InteractiveItem, Item, ReasoningItem, Source, TextItem, Turn

__all__ = ["ChoiceOption", "InteractiveItem", "Item", "ReasoningItem", "Source", "TextItem", "Turn"]
