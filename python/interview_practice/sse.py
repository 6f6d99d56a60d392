"""
Server-sent event parsing over httpx streaming responses.

Used by both the progress reader and the optimized follow-up streamer.
Events are dispatched on a blank line; ``data`` lines are joined with
newlines and comment lines (leading ``:``) are ignored.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Optional

import httpx


@dataclass
class ServerSentEvent:
    """A single dispatched SSE event."""

    data: str
    event: str = "message"
    id: Optional[str] = None
    retry: Optional[int] = None

    def json(self) -> Any:
        """Decode ``data`` as JSON. Raises json.JSONDecodeError when invalid."""
        return json.loads(self.data)


@dataclass
class SSEDecoder:
    """Incremental line decoder following the EventSource field rules."""

    _data: list[str] = field(default_factory=list)
    _event: str = ""
    _id: Optional[str] = None
    _retry: Optional[int] = None

    def decode(self, line: str) -> Optional[ServerSentEvent]:
        if not line:
            return self.flush()

        if line.startswith(":"):
            return None

        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]

        if name == "data":
            self._data.append(value)
        elif name == "event":
            self._event = value
        elif name == "id":
            if "\0" not in value:
                self._id = value
        elif name == "retry":
            if value.isdigit():
                self._retry = int(value)
        return None

    def flush(self) -> Optional[ServerSentEvent]:
        if not self._data and not self._event:
            return None
        event = ServerSentEvent(
            data="\n".join(self._data),
            event=self._event or "message",
            id=self._id,
            retry=self._retry,
        )
        self._data = []
        self._event = ""
        self._retry = None
        return event


async def aiter_sse(response: httpx.Response) -> AsyncIterator[ServerSentEvent]:
    """
    Yield events from an open streaming response.

    A trailing event without its terminating blank line is still yielded at
    end of stream. Transport errors propagate to the caller.
    """
    decoder = SSEDecoder()
    async for line in response.aiter_lines():
        event = decoder.decode(line.rstrip("\r"))
        if event is not None:
            yield event
    tail = decoder.flush()
    if tail is not None:
        yield tail
