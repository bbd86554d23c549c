"""
Exception types raised by the chat engine.
"""


class ChatEngineError(Exception):
    """Base class for every error the engine raises."""


class DecodeError(ChatEngineError):
    """A stream line or stored record could not be decoded."""


class RecordFormatError(DecodeError):
    """A stored record carries an item tag or shape the engine does not know."""


class NotFoundError(ChatEngineError):
    def __init__(self, turn_id: str) -> None:
        super().__init__(f"unknown turn: {turn_id}")
        self.turn_id = turn_id


class PreconditionError(ChatEngineError):
    """The transcript is not in a state that allows the requested operation."""


class GateClosedError(PreconditionError):
    """Free-text submission while a choice prompt is still unresolved."""


class TransportError(ChatEngineError):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ConfigError(ChatEngineError):
    pass
