"""
Server-Sent Event parsing for Streamable HTTP replies.

A Streamable HTTP server may upgrade the reply to a request into an
event stream. Only the subset of the format the protocol uses is
understood here: ``event:`` and ``data:`` lines grouped into records by
blank lines. Reconnection fields (``id:``, ``retry:``) are ignored.
"""

import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Union

import httpx


# Configure logging
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServerSentEvent:
    """A single decoded event."""
    event: str
    data: str


EventCallback = Callable[[ServerSentEvent], Union[None, Awaitable[Any]]]


class ServerSentEventParser:
    """
    Incremental parser for an event stream.

    Bytes are fed as they arrive; complete lines are processed immediately
    and a partial trailing line is buffered until more data arrives or the
    stream ends.
    """

    def __init__(self, encoding: str = "utf-8"):
        """
        Initialize the event stream parser.

        Args:
            encoding: Text encoding of the stream
        """
        self.encoding = encoding
        self._buffer = b""
        self._event = ""
        self._data = ""

    def feed(self, data: bytes) -> List[ServerSentEvent]:
        """
        Feed data to the parser and return completed events.

        Args:
            data: Raw byte data from the stream

        Returns:
            Events completed by this chunk, in stream order
        """
        events = []
        self._buffer += data

        while b"\n" in self._buffer:
            line, self._buffer = self._buffer.split(b"\n", 1)
            event = self._process_line(line)
            if event is not None:
                events.append(event)

        return events

    def flush(self) -> Optional[ServerSentEvent]:
        """
        Finish parsing at end of stream.

        An unterminated last line is processed first; then a pending event
        with both a name and data is returned once.

        Returns:
            The pending event, or None
        """
        if self._buffer:
            line, self._buffer = self._buffer, b""
            event = self._process_line(line)
            if event is not None:
                return event

        if self._event and self._data:
            event = ServerSentEvent(self._event, self._data)
            self._event = ""
            self._data = ""
            return event
        return None

    def _process_line(self, raw_line: bytes) -> Optional[ServerSentEvent]:
        line = raw_line.decode(self.encoding, errors="replace").rstrip("\r\n")

        if not line:
            # blank line ends the record
            if self._event and self._data:
                event = ServerSentEvent(self._event, self._data)
                self._event = ""
                self._data = ""
                return event
            return None

        if line.startswith("event:"):
            self._event = line[len("event:"):].strip()
        elif line.startswith("data:"):
            self._data = line[len("data:"):].strip()
        return None

    def reset(self) -> None:
        """Discard buffered bytes and any partially built event."""
        self._buffer = b""
        self._event = ""
        self._data = ""

    def has_pending_event(self) -> bool:
        """Check whether an event is being accumulated or bytes are buffered."""
        return bool(self._buffer or self._event or self._data)


async def _invoke(callback: EventCallback, event: ServerSentEvent) -> None:
    result = callback(event)
    if inspect.isawaitable(result):
        await result


async def read_event_stream(
    response: httpx.Response,
    on_event: EventCallback,
    encoding: str = "utf-8",
) -> None:
    """
    Read an event stream until it ends, invoking ``on_event`` per event.

    The function owns ``response``: it is closed exactly once whichever way
    the loop ends (end of stream, read error or task cancellation). A read
    error is logged and ends the loop without delivering the pending event;
    cancellation propagates to the caller.

    Args:
        response: Reply opened with ``stream=True``
        on_event: Callback invoked with each event; may be a coroutine function
        encoding: Text encoding of the stream
    """
    parser = ServerSentEventParser(encoding)
    try:
        try:
            async for chunk in response.aiter_bytes():
                for event in parser.feed(chunk):
                    await _invoke(on_event, event)
        except httpx.HTTPError as e:
            logger.warning(f"Event stream error: {e}")
            return

        pending = parser.flush()
        if pending is not None:
            await _invoke(on_event, pending)
    finally:
        await response.aclose()


# Export symbols
__all__ = [
    "ServerSentEvent",
    "ServerSentEventParser",
    "read_event_stream",
]
