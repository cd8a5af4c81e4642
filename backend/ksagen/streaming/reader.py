import codecs
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from .events import DONE_SENTINEL, StreamEvent, decode_event

DATA_PREFIX = "data: "


class EventStreamReader:
    """
    Incremental decoder for `data:` framed streams.

    Bytes are buffered and split on newlines; the trailing partial line is
    kept until more input arrives. Lines without the `data: ` prefix are
    ignored and the `[DONE]` sentinel marks the end of the stream.
    """

    def __init__(self) -> None:
        self._buffer = ""
        self._decoder = codecs.getincrementaldecoder("utf-8")()
        self.done = False

    def feed(self, chunk: bytes) -> List[StreamEvent]:
        if self.done:
            return []
        self._buffer += self._decoder.decode(chunk) if isinstance(chunk, bytes) else chunk
        lines = self._buffer.split("\n")
        self._buffer = lines.pop()

        events = []
        for line in lines:
            line = line.rstrip("\r")
            if not line.startswith(DATA_PREFIX):
                continue
            data = line[len(DATA_PREFIX):].strip()
            if data == DONE_SENTINEL:
                self.done = True
                break
            if data:
                events.append(decode_event(data))
        return events


async def read_event_stream(chunks: AsyncIterator[bytes]) -> AsyncIterator[StreamEvent]:
    reader = EventStreamReader()
    async for chunk in chunks:
        for event in reader.feed(chunk):
            yield event
        if reader.done:
            return


async def stream_events(
    url: str,
    body: Dict[str, Any],
    client: Optional[httpx.AsyncClient] = None,
    timeout: float = 90.0,
) -> AsyncIterator[StreamEvent]:
    """POST a request body and yield the decoded events of the response stream."""
    owned = client is None
    client = client or httpx.AsyncClient(timeout=timeout)
    try:
        async with client.stream("POST", url, json=body) as response:
            response.raise_for_status()
            async for event in read_event_stream(response.aiter_bytes()):
                yield event
    finally:
        if owned:
            await client.aclose()
