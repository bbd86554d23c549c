"""Tests for the data-frame stream decoder."""

import json

import pytest

from core.domain import DeltaEvent
from core.errors import DecodeError
from core.stream_decoder import DeltaFrameDecoder, adapt_stream, parse_line


def frame(content=None, reasoning=None) -> str:
    delta = {}
    if content is not None:
        delta["content"] = content
    if reasoning is not None:
        delta["reasoning_content"] = reasoning
    return "data: " + json.dumps({"choices": [{"delta": delta}]}, ensure_ascii=False) + "\n"


class TestParseLine:
    def test_content_and_reasoning(self):
        ev = parse_line(frame("Hi", "hmm").strip())
        assert ev == DeltaEvent(content="Hi", reasoning="hmm")

    def test_non_data_lines_ignored(self):
        assert parse_line("event: message") is None
        assert parse_line(": keep-alive") is None
        assert parse_line("") is None

    def test_done_sentinel(self):
        assert parse_line("data: [DONE]") is None
        assert parse_line("   data: [DONE]   ") is None

    def test_malformed_json_raises_decode_error(self):
        with pytest.raises(DecodeError):
            parse_line("data: {not json")

    def test_empty_fragments_yield_nothing(self):
        assert parse_line(frame("", "").strip()) is None
        assert parse_line('data: {"choices": []}') is None
        assert parse_line('data: {"choices": [{"delta": {"content": 5}}]}') is None

    def test_double_encoded_wrapper(self):
        inner = json.dumps({"choices": [{"delta": {"content": "wrapped"}}]})
        line = "data: " + json.dumps({"data": inner})
        assert parse_line(line) == DeltaEvent(content="wrapped")

    def test_wrapper_done_is_ignored(self):
        assert parse_line('data: {"data": "[DONE]"}') is None

    def test_unparsable_wrapper_keeps_outer_object(self):
        line = "data: " + json.dumps({"data": "not json", "choices": [{"delta": {"content": "outer"}}]})
        assert parse_line(line) == DeltaEvent(content="outer")


class TestDeltaFrameDecoder:
    def test_chunk_boundary_independence(self):
        first = '{"choices":[{"delta":{"content":"a"}}]}'
        second = '{"choices":[{"delta":{"content":"b"}}]}'

        split = DeltaFrameDecoder()
        events = split.feed(f"data: {first}\nda".encode())
        events += split.feed(f"ta: {second}\n".encode())
        events += split.finish()

        whole = DeltaFrameDecoder()
        expected = whole.feed(f"data: {first}\ndata: {second}\n".encode()) + whole.finish()

        assert events == expected == [DeltaEvent(content="a"), DeltaEvent(content="b")]

    def test_partial_line_is_kept_until_finish(self):
        decoder = DeltaFrameDecoder()
        assert decoder.feed(frame("tail").rstrip("\n").encode()) == []
        assert decoder.finish() == [DeltaEvent(content="tail")]
        assert decoder.finish() == []

    def test_multibyte_character_split_across_chunks(self):
        data = frame("héllo").encode()
        cut = data.index("é".encode()) + 1
        decoder = DeltaFrameDecoder()
        events = decoder.feed(data[:cut]) + decoder.feed(data[cut:])
        assert events == [DeltaEvent(content="héllo")]

    def test_malformed_line_does_not_stop_decoding(self):
        decoder = DeltaFrameDecoder()
        events = decoder.feed(("data: {broken\n" + frame("ok") + "data: [DONE]\n").encode())
        assert events == [DeltaEvent(content="ok")]

    def test_malformed_tail_on_finish(self):
        decoder = DeltaFrameDecoder()
        decoder.feed(b"data: {\"choices\"")
        assert decoder.finish() == []

    def test_crlf_lines(self):
        decoder = DeltaFrameDecoder()
        events = decoder.feed(frame("x").replace("\n", "\r\n").encode())
        assert events == [DeltaEvent(content="x")]


@pytest.mark.asyncio
async def test_adapt_stream_flushes_tail():
    async def chunks():
        yield frame(reasoning="think").encode()
        yield frame("answer").rstrip("\n").encode()

    events = [ev async for ev in adapt_stream(chunks())]
    assert events == [DeltaEvent(reasoning="think"), DeltaEvent(content="answer")]
