"""Re-streams a provider's SSE body as normalized ``data: {...}`` frames.

Upstream chunks may split a line anywhere, including inside the ``data: ``
prefix or a multi-byte character. Complete lines are handled the moment they
arrive; the trailing partial line waits in the buffer for the next chunk.
"""
from __future__ import annotations
import asyncio
import codecs
import enum
import json
import logging
from typing import Any, AsyncIterator, Callable, List, Optional, Union

import httpx

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_PAYLOAD = "[DONE]"
DONE_FRAME = "data: [DONE]\n\n"

# Maps one parsed upstream event to the text it adds, if any
DeltaExtractor = Callable[[Any], Optional[str]]


def sse_frame(payload: Any) -> str:
    return DATA_PREFIX + json.dumps(payload, separators=(",", ":"), ensure_ascii=False) + "\n\n"


class RelayState(str, enum.Enum):
    STREAMING = "streaming"
    DONE = "done"
    ERRORED = "errored"


class StreamRelay:
    """Push-driven parser for one upstream stream.

    ``feed``, ``finish`` and ``fail`` return the frames to send to the caller.
    Once the relay leaves ``STREAMING`` every call returns nothing.
    """

    def __init__(self, extract_delta: DeltaExtractor) -> None:
        self.extract_delta = extract_delta
        self.state = RelayState.STREAMING
        self._buffer = ""
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    @property
    def active(self) -> bool:
        return self.state is RelayState.STREAMING

    def feed(self, chunk: Union[bytes, str]) -> List[str]:
        if not self.active:
            return []
        text = self._decoder.decode(chunk) if isinstance(chunk, bytes) else chunk
        self._buffer += text
        lines = self._buffer.split("\n")
        self._buffer = lines.pop()

        frames: List[str] = []
        for line in lines:
            frame = self._handle_line(line.rstrip("\r"))
            if frame is not None:
                frames.append(frame)
            if not self.active:
                break
        return frames

    def finish(self) -> List[str]:
        """Upstream closed without an explicit ``[DONE]``."""
        if not self.active:
            return []
        self._close(RelayState.DONE)
        return [DONE_FRAME]

    def fail(self, message: str) -> List[str]:
        if not self.active:
            return []
        self._close(RelayState.ERRORED)
        return [sse_frame({"error": message})]

    def cancel(self) -> None:
        if self.active:
            self._close(RelayState.DONE)

    def _close(self, state: RelayState) -> None:
        self.state = state
        self._buffer = ""

    def _handle_line(self, line: str) -> Optional[str]:
        # Blank separators, "event:" and other SSE fields are not forwarded
        if not line.startswith(DATA_PREFIX):
            return None
        data = line[len(DATA_PREFIX):]
        if data == DONE_PAYLOAD:
            self._close(RelayState.DONE)
            return DONE_FRAME
        try:
            obj = json.loads(data)
        except ValueError:
            return None
        content = self.extract_delta(obj)
        if not content:
            return None
        return sse_frame({"content": content, "finished": False})


async def relay_stream(
    chunks: AsyncIterator[bytes],
    extract_delta: DeltaExtractor,
) -> AsyncIterator[str]:
    """Pull ``chunks`` until ``[DONE]``, upstream closure or a transport error."""
    relay = StreamRelay(extract_delta)
    try:
        async for chunk in chunks:
            for frame in relay.feed(chunk):
                yield frame
            if not relay.active:
                break
        for frame in relay.finish():
            yield frame
    except httpx.HTTPError as e:
        logger.error("Stream error: %s", e)
        for frame in relay.fail(str(e) or e.__class__.__name__):
            yield frame
    except (asyncio.CancelledError, GeneratorExit):
        # Caller went away; nothing more is sent
        relay.cancel()
        raise
