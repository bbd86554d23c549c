"""
Incremental decoder for the `data: ` framed completion stream.
"""

import codecs
import json
import logging
from typing import Any, AsyncIterator, Mapping, Optional

from core.domain import DeltaEvent
from core.errors import DecodeError

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"
WRAPPER_FIELD = "data"


def _fragment(delta: Mapping[str, Any], name: str) -> str:
    value = delta.get(name)
    return value if isinstance(value, str) else ""


def _extract_delta(data: Any) -> Optional[DeltaEvent]:
    if not isinstance(data, dict):
        return None

    choices = data.get('choices')
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None

    delta = choices[0].get('delta')
    if not isinstance(delta, dict):
        return None

    content = _fragment(delta, 'content')
    reasoning = _fragment(delta, 'reasoning_content')
    if not content and not reasoning:
        return None
    return DeltaEvent(content=content, reasoning=reasoning)


def _unwrap(data: Any) -> Any:
    """
    Some gateways wrap the completion chunk as a JSON string in a `data` field.
    One level is unwrapped; an unparsable inner string keeps the outer object.
    """
    if not isinstance(data, dict):
        return data

    inner = data.get(WRAPPER_FIELD)
    if not isinstance(inner, str):
        return data
    if inner.strip() == DONE_SENTINEL:
        return None

    try:
        return json.loads(inner)
    except ValueError:
        logger.debug("inner payload is not JSON, keeping outer object")
        return data


def parse_line(line: str) -> Optional[DeltaEvent]:
    """
    Parse one stream line.

    Returns None for lines that carry no delta, raises DecodeError for
    malformed JSON.
    """
    stripped = line.strip()
    if not stripped.startswith(DATA_PREFIX):
        return None

    body = stripped[len(DATA_PREFIX):].strip()
    if body == DONE_SENTINEL:
        return None

    try:
        data = json.loads(body)
    except ValueError as e:
        raise DecodeError(f"malformed frame: {body[:80]!r}") from e

    return _extract_delta(_unwrap(data))


class DeltaFrameDecoder:
    def __init__(self) -> None:
        self._bytes = codecs.getincrementaldecoder('utf-8')(errors='replace')
        self._buffer = ""

    def _process(self, line: str) -> Optional[DeltaEvent]:
        try:
            return parse_line(line)
        except DecodeError as e:
            logger.debug("dropping line: %s", e)
            return None

    def feed(self, chunk: bytes) -> list[DeltaEvent]:
        self._buffer += self._bytes.decode(chunk)
        *lines, self._buffer = self._buffer.split("\n")

        events = []
        for line in lines:
            ev = self._process(line)
            if ev is not None:
                events.append(ev)
        return events

    def finish(self) -> list[DeltaEvent]:
        rest = self._buffer + self._bytes.decode(b"", final=True)
        self._buffer = ""
        self._bytes.reset()

        events = []
        for line in rest.split("\n"):
            ev = self._process(line)
            if ev is not None:
                events.append(ev)
        return events


async def adapt_stream(chunks: AsyncIterator[bytes]) -> AsyncIterator[DeltaEvent]:
    """
    Turn the transport's byte chunks into DeltaEvents, flushing the decoder
    once the body is exhausted.
    """
    decoder = DeltaFrameDecoder()
    async for chunk in chunks:
        for ev in decoder.feed(chunk):
            yield ev

    for ev in decoder.finish():
        yield ev
