"""
Modal screens for the chat application.
"""
from .reference_screen import ReferenceScreen

__all__ = ["ReferenceScreen"]
