import httpx
import pytest

from conftest import byte_chunks, parse_frames
from keyproxy.core.relay import DONE_FRAME, RelayState, StreamRelay, relay_stream
from keyproxy.providers import anthropic, openai

OPENAI_LINE = b'data: {"choices":[{"delta":{"content":"Hi"}}]}\n\n'


def split_every(data: bytes, size: int):
    return [data[i:i + size] for i in range(0, len(data), size)]


def feed_all(relay: StreamRelay, chunks) -> str:
    return "".join(frame for chunk in chunks for frame in relay.feed(chunk))


class TestStreamRelay:
    @pytest.mark.parametrize("size", range(1, len(OPENAI_LINE) + 1))
    def test_split_line_yields_one_event(self, size):
        relay = StreamRelay(openai.extract_delta)
        body = feed_all(relay, split_every(OPENAI_LINE, size))
        assert parse_frames(body) == [{"content": "Hi", "finished": False}]

    def test_each_complete_line_is_emitted_immediately(self):
        relay = StreamRelay(openai.extract_delta)
        first = relay.feed(b'data: {"choices":[{"delta":{"content":"a"}}]}\n\ndata: {"choi')
        assert parse_frames("".join(first)) == [{"content": "a", "finished": False}]
        second = relay.feed(b'ces":[{"delta":{"content":"b"}}]}\n\n')
        assert parse_frames("".join(second)) == [{"content": "b", "finished": False}]

    def test_multibyte_character_split_across_chunks(self):
        relay = StreamRelay(openai.extract_delta)
        line = 'data: {"choices":[{"delta":{"content":"café"}}]}\n'.encode("utf-8")
        cut = line.index("é".encode("utf-8")) + 1
        body = feed_all(relay, [line[:cut], line[cut:]])
        assert parse_frames(body) == [{"content": "café", "finished": False}]

    def test_invalid_json_is_dropped(self):
        relay = StreamRelay(openai.extract_delta)
        body = feed_all(relay, [
            b"data: not valid json\n\n",
            b'data: {"choices":[{"delta":{"content":"ok"}}]}\n\n',
        ])
        assert parse_frames(body) == [{"content": "ok", "finished": False}]
        assert relay.state is RelayState.STREAMING

    def test_non_data_lines_are_ignored(self):
        relay = StreamRelay(anthropic.extract_delta)
        body = feed_all(relay, [
            b"event: content_block_delta\r\n",
            b'data: {"type":"content_block_delta","delta":{"type":"text_delta","text":"X"}}\r\n\r\n',
            b": keep-alive\n\n",
        ])
        assert parse_frames(body) == [{"content": "X", "finished": False}]

    def test_done_payload_ends_stream_once(self):
        relay = StreamRelay(openai.extract_delta)
        frames = relay.feed(b'data: [DONE]\n\ndata: {"choices":[{"delta":{"content":"late"}}]}\n\n')
        assert frames == [DONE_FRAME]
        assert relay.state is RelayState.DONE
        assert relay.feed(b'data: {"choices":[{"delta":{"content":"later"}}]}\n') == []
        assert relay.finish() == []

    def test_finish_emits_marker_when_no_done_seen(self):
        relay = StreamRelay(openai.extract_delta)
        relay.feed(b'data: {"choices":[{"delta":{"content":"partial"')
        assert relay.finish() == [DONE_FRAME]
        assert relay.finish() == []

    def test_fail_after_done_is_silent(self):
        relay = StreamRelay(openai.extract_delta)
        relay.feed(b"data: [DONE]\n")
        assert relay.fail("boom") == []

    def test_cancel_stops_all_output(self):
        relay = StreamRelay(openai.extract_delta)
        relay.cancel()
        assert relay.feed(OPENAI_LINE) == []
        assert relay.finish() == []


class TestRelayStream:
    async def collect(self, chunks, extract_delta=openai.extract_delta):
        return [frame async for frame in relay_stream(chunks, extract_delta)]

    @pytest.mark.asyncio
    async def test_upstream_closure_emits_single_marker(self):
        frames = await self.collect(byte_chunks([OPENAI_LINE]))
        assert parse_frames("".join(frames)) == [{"content": "Hi", "finished": False}, "[DONE]"]

    @pytest.mark.asyncio
    async def test_explicit_done_is_not_doubled(self):
        frames = await self.collect(byte_chunks([OPENAI_LINE, b"data: [DONE]\n\n"]))
        assert frames.count(DONE_FRAME) == 1
        assert frames[-1] == DONE_FRAME

    @pytest.mark.asyncio
    async def test_stops_reading_after_done(self):
        pulled = []

        async def chunks():
            for chunk in [b"data: [DONE]\n\n", OPENAI_LINE, OPENAI_LINE]:
                pulled.append(chunk)
                yield chunk

        frames = await self.collect(chunks())
        assert frames == [DONE_FRAME]
        assert len(pulled) == 1

    @pytest.mark.asyncio
    async def test_transport_error_becomes_error_event(self):
        error = httpx.ReadError("connection reset")
        frames = await self.collect(byte_chunks([OPENAI_LINE], error=error))
        assert parse_frames("".join(frames)) == [
            {"content": "Hi", "finished": False},
            {"error": "connection reset"},
        ]

    @pytest.mark.asyncio
    async def test_anthropic_stream(self):
        body = (
            b'event: message_start\ndata: {"type":"message_start","message":{"id":"msg_1"}}\n\n'
            b'event: content_block_delta\ndata: {"type":"content_block_delta","index":0,'
            b'"delta":{"type":"text_delta","text":"Hel"}}\n\n'
            b'event: content_block_delta\ndata: {"type":"content_block_delta","index":0,'
            b'"delta":{"type":"text_delta","text":"lo"}}\n\n'
            b'event: message_stop\ndata: {"type":"message_stop"}\n\n'
        )
        frames = await self.collect(byte_chunks(split_every(body, 7)), anthropic.extract_delta)
        assert parse_frames("".join(frames)) == [
            {"content": "Hel", "finished": False},
            {"content": "lo", "finished": False},
            "[DONE]",
        ]
