"""
Chat engine: stream decoding, transcript state, citations, the choice gate
and the typing reveal.
"""
from .errors import (
    ChatEngineError, ConfigError, DecodeError, GateClosedError, NotFoundError,
    PreconditionError, RecordFormatError, TransportError,
)

__all__ = [
    "ChatEngineError", "ConfigError", "DecodeError", "GateClosedError", "NotFoundError",
    "PreconditionError", "RecordFormatError", "TransportError",
]
