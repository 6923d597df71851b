#!/usr/bin/env python

"""
Streaming support: server-sent-event assembly and incremental rendering.

Vendors stream responses as SSE, and a single network read may hold several
``data:`` frames, half of one, or a UTF-8 sequence cut in two. ``SSEDecoder``
keeps whatever is left over between reads and only hands complete frames to
the backend-specific text extractor.
"""

import codecs
import json
import re
from typing import Any, AsyncIterable, AsyncIterator, Awaitable, Callable, List, Optional, Union

from .constants import SSE_DONE_SENTINEL
from .errors import StreamError

TextExtractor = Callable[[Any], Optional[str]]

_LINE_END = re.compile(r"\r\n|\r|\n")


class SSEDecoder:
    """Incremental SSE parser that yields text increments from complete frames."""

    def __init__(self, extract_text: TextExtractor):
        self._extract_text = extract_text
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._data_lines: List[str] = []
        self.done = False

    def feed(self, chunk: Union[bytes, str]) -> List[str]:
        """Consume one physical chunk and return the text of every frame it completed."""
        if isinstance(chunk, bytes):
            chunk = self._utf8.decode(chunk)
        self._buffer += chunk

        increments = []
        while True:
            match = _LINE_END.search(self._buffer)
            if match is None:
                break
            # A lone trailing CR may be the first half of a CRLF
            if match.group() == "\r" and match.end() == len(self._buffer):
                break
            line = self._buffer[:match.start()]
            self._buffer = self._buffer[match.end():]
            text = self._process_line(line)
            if text:
                increments.append(text)
        return increments

    def close(self) -> List[str]:
        """Flush a trailing frame that was not terminated by a blank line."""
        increments = []
        tail = self._utf8.decode(b"", final=True)
        self._buffer += tail
        if self._buffer:
            line, self._buffer = self._buffer.rstrip("\r\n"), ""
            text = self._process_line(line)
            if text:
                increments.append(text)
        text = self._dispatch()
        if text:
            increments.append(text)
        return increments

    def _process_line(self, line: str) -> Optional[str]:
        if not line:
            return self._dispatch()
        if line.startswith(":"):
            return None

        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if field == "data":
            self._data_lines.append(value)
        return None

    def _dispatch(self) -> Optional[str]:
        if not self._data_lines:
            return None
        data = "\n".join(self._data_lines)
        self._data_lines = []

        if self.done:
            return None
        if data.strip() == SSE_DONE_SENTINEL:
            self.done = True
            return None

        try:
            payload = json.loads(data)
        except ValueError as exc:
            raise StreamError(f"Malformed stream frame: {data[:200]}") from exc

        if isinstance(payload, dict) and payload.get("error"):
            error = payload["error"]
            message = error.get("message") if isinstance(error, dict) else error
            raise StreamError(str(message or error))

        return self._extract_text(payload) or None


async def iter_sse_text(chunks: AsyncIterable[Union[bytes, str]], extract_text: TextExtractor) -> AsyncIterator[str]:
    """Turn a transport's raw byte chunks into plain text increments."""
    decoder = SSEDecoder(extract_text)
    async for chunk in chunks:
        for text in decoder.feed(chunk):
            yield text
    for text in decoder.close():
        yield text


class RenderSink:
    """Receives progress and incremental text. The base class shows nothing."""

    rendered = False

    def begin(self, message: str) -> None:
        pass

    def write(self, text: str) -> None:
        pass

    def end(self, success: bool) -> None:
        pass


class StreamRenderer:
    """Accumulates increments into the final response while feeding a sink."""

    def __init__(self, sink: Optional[RenderSink] = None):
        self.sink = sink or RenderSink()

    async def collect(self, increments: AsyncIterator[str]) -> str:
        """Concatenate increments in arrival order.

        Any error ends the sequence; the partial text is discarded and the
        error propagates.
        """
        parts = []
        success = False
        self.sink.begin("Generating...")
        try:
            async for piece in increments:
                if not piece:
                    continue
                parts.append(piece)
                self.sink.write(piece)
            success = True
        finally:
            aclose = getattr(increments, "aclose", None)
            if aclose is not None:
                await aclose()
            self.sink.end(success)
        return "".join(parts)

    async def wait(self, pending: Awaitable[str]) -> str:
        """Show progress while a non-streaming call completes."""
        success = False
        self.sink.begin("Generating...")
        try:
            response = await pending
            success = True
        finally:
            self.sink.end(success)
        return response
