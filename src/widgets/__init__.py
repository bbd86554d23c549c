"""
Custom UI widgets for the chat application.
"""
from .input_area import InputArea
from .select_option import SelectOption, SelectionMade
from .transcript_view import TranscriptView

__all__ = ["InputArea", "SelectOption", "SelectionMade", "TranscriptView"]
