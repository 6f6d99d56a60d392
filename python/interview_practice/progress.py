"""
Preparation progress stream reader.

Follows ``GET /api/interview-progress?dreamJob=...`` while the backend
prepares a practice plan, keeping a bounded history of ProgressEvents and
reporting exactly one terminal outcome per stream:

    complete  -> on_complete(event.data)
    error     -> on_error(event.detail)
    drop/EOF  -> on_error("Connection lost")

close() (or leaving the ``async with`` block) releases the connection on
every path and suppresses all callbacks.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections import deque
from typing import Any, Awaitable, Callable, Optional, Union

from pydantic import ValidationError

from .api import PracticeApiClient
from .callbacks import invoke_callback
from .errors import PracticeClientError
from .models import ProgressEvent
from .sse import ServerSentEvent, aiter_sse

logger = logging.getLogger(__name__)

CONNECTION_LOST = "Connection lost"
DEFAULT_MAX_HISTORY = 200

CompleteCallback = Callable[[dict[str, Any]], Union[None, Awaitable[None]]]
ErrorCallback = Callable[[str], Union[None, Awaitable[None]]]
EventCallback = Callable[[ProgressEvent], Union[None, Awaitable[None]]]


class ProgressStreamReader:
    """
    One live progress connection per distinct dream job.

    Example:
        async with ProgressStreamReader(api, "Backend Engineer",
                                        on_complete=build_plan,
                                        on_error=show_error) as reader:
            await reader.wait()
    """

    def __init__(
        self,
        api: PracticeApiClient,
        dream_job: Optional[str] = None,
        *,
        on_complete: Optional[CompleteCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        on_event: Optional[EventCallback] = None,
        max_history: int = DEFAULT_MAX_HISTORY,
    ) -> None:
        if max_history < 1:
            raise ValueError(f"max_history must be >= 1. Got: {max_history}")
        self._api = api
        self.dream_job = (dream_job or "").strip() or None
        self.on_complete = on_complete
        self.on_error = on_error
        self.on_event = on_event
        self.max_history = max_history

        self._task: Optional[asyncio.Task[None]] = None
        self._reset_state()

    def _reset_state(self) -> None:
        self._history: deque[ProgressEvent] = deque(maxlen=self.max_history)
        self._latest: Optional[ProgressEvent] = None
        self._display_progress = 0
        self._complete = False
        self._error: Optional[str] = None
        self._connected = False
        self._terminal_fired = False

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def history(self) -> list[ProgressEvent]:
        return list(self._history)

    @property
    def latest(self) -> Optional[ProgressEvent]:
        return self._latest

    @property
    def display_progress(self) -> int:
        """Highest progress value seen so far, so the bar never moves back."""
        return self._display_progress

    @property
    def is_complete(self) -> bool:
        return self._complete

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def __aenter__(self) -> "ProgressStreamReader":
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def start(self) -> None:
        """Open the stream in a background task. No-op without a dream job."""
        if self.dream_job is None or self.is_running:
            return
        self._task = asyncio.create_task(self.run(), name=f"progress:{self.dream_job}")

    async def wait(self) -> None:
        """
        Wait for the reader task to finish.

        Returns quietly when close() cancelled the reader; an exception
        raised by an owner callback is re-raised here.
        """
        task = self._task
        if task is None:
            return
        await asyncio.wait({task})
        if not task.cancelled():
            task.result()

    async def close(self) -> None:
        """Release the connection without firing any callback."""
        task, self._task = self._task, None
        if task is None:
            return
        if not task.done():
            task.cancel()
        await asyncio.wait({task})
        if not task.cancelled() and task.exception() is not None:
            exc = task.exception()
            logger.error("Progress reader failed: %s", exc, exc_info=exc)
        self._connected = False
        logger.debug("Progress reader closed: dream_job=%s", self.dream_job)

    async def set_dream_job(self, dream_job: Optional[str]) -> None:
        """Switch to a new dream job, reopening the stream when it changed."""
        normalized = (dream_job or "").strip() or None
        if normalized == self.dream_job and (self.is_running or self._terminal_fired):
            return
        await self.close()
        self.dream_job = normalized
        self._reset_state()
        self.start()

    # -------------------------------------------------------------------------
    # Stream handling
    # -------------------------------------------------------------------------

    async def run(self) -> None:
        """Read the stream to its terminal outcome in the current task."""
        if self.dream_job is None:
            raise ValueError("dream_job is required to open the progress stream")

        terminal: Optional[ProgressEvent] = None
        logger.info("Progress stream opening: dream_job=%s", self.dream_job)
        try:
            async with self._api.progress_stream(self.dream_job) as response:
                self._connected = True
                async for sse in aiter_sse(response):
                    event = self._parse(sse)
                    if event is None:
                        continue
                    self._record(event)
                    await invoke_callback(self.on_event, event)
                    if event.is_complete or event.is_error:
                        terminal = event
                        break
        except PracticeClientError as exc:
            logger.warning("Progress stream dropped: %s", exc)
        finally:
            self._connected = False

        # Callbacks fire only after the connection has been released.
        if terminal is None:
            await self._fire_error(CONNECTION_LOST)
        elif terminal.is_complete:
            self._complete = True
            self._terminal_fired = True
            logger.info("Progress stream complete: dream_job=%s", self.dream_job)
            await invoke_callback(self.on_complete, dict(terminal.data or {}))
        else:
            await self._fire_error(terminal.detail or terminal.message or CONNECTION_LOST)

    async def _fire_error(self, reason: str) -> None:
        if self._terminal_fired:
            return
        self._terminal_fired = True
        self._error = reason
        logger.warning("Progress stream error: %s", reason)
        await invoke_callback(self.on_error, reason)

    def _parse(self, sse: ServerSentEvent) -> Optional[ProgressEvent]:
        if not sse.data.strip():
            return None
        try:
            return ProgressEvent.model_validate(sse.json())
        except (json.JSONDecodeError, ValidationError) as exc:
            logger.warning("Skipping malformed progress event: %s", exc)
            return None

    def _record(self, event: ProgressEvent) -> None:
        self._history.append(event)
        self._latest = event
        if event.progress < self._display_progress:
            logger.debug(
                "Progress went backwards (%d < %d); keeping displayed value",
                event.progress,
                self._display_progress,
            )
        self._display_progress = max(self._display_progress, event.progress)
