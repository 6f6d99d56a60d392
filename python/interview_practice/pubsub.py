"""
In-memory pub/sub for practice session events.

The session controller publishes what a UI needs to render (view changes,
committed messages, streaming text, thinking steps, toasts); any number of
UIs subscribe with an asyncio queue. Publishing never touches session
state, and subscribers never write back into the controller.

Example usage:
    publisher = SessionEventPublisher()
    queue = await publisher.subscribe()
    await publisher.publish_notification("Failed to start session",
                                         level=NotificationLevel.ERROR)
    event = await queue.get()
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from .models import Message, StreamingStep, ViewState, utc_timestamp

logger = logging.getLogger(__name__)


class SessionEventType(str, Enum):
    """
    Types of events published by the session controller.

    Attributes:
        VIEW_CHANGED: The visible view moved (start/resume/chat/feedback).
        MESSAGE_APPENDED: A message was committed to the history.
        STREAMING: The transient reply buffer changed.
        THINKING_STEP: A simulated thinking step started or finished.
        NOTIFICATION: A toast to show the user.
        TOPIC_CHANGED: Current topic or difficulty changed.
        HINT_REQUESTED: The user asked for a hint.
        SESSION_ENDED: The session reached its terminal state.
    """

    VIEW_CHANGED = "view_changed"
    MESSAGE_APPENDED = "message_appended"
    STREAMING = "streaming"
    THINKING_STEP = "thinking_step"
    NOTIFICATION = "notification"
    TOPIC_CHANGED = "topic_changed"
    HINT_REQUESTED = "hint_requested"
    SESSION_ENDED = "session_ended"


class NotificationLevel(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass
class SessionEvent:
    """
    A single event from the session controller.

    Attributes:
        event_type: Category of the event.
        content: Main text (message body, toast text, view name...).
        payload: Structured details specific to the event type.
        timestamp: UTC timestamp when the event was created.
    """

    event_type: SessionEventType
    content: str = ""
    payload: dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=utc_timestamp)

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_type": self.event_type.value,
            "content": self.content,
            "payload": self.payload,
            "timestamp": self.timestamp,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)


class SessionEventPublisher:
    """
    Broadcasts session events to subscriber queues.

    Keeps a bounded history which is replayed to new subscribers.
    STREAMING events are broadcast but not kept in history: they are
    superseded by the committed message.

    Attributes:
        max_history: Maximum number of events to retain in history.
    """

    def __init__(self, max_history: int = 200) -> None:
        self._subscribers: list[asyncio.Queue[SessionEvent]] = []
        self._history: list[SessionEvent] = []
        self._max_history = max_history
        self._lock = asyncio.Lock()
        logger.debug("SessionEventPublisher initialized with max_history=%d", max_history)

    async def subscribe(self) -> asyncio.Queue[SessionEvent]:
        """
        Subscribe to session events.

        Caller is responsible for calling unsubscribe when done.

        Returns:
            Queue that receives the history followed by every new event.
        """
        queue: asyncio.Queue[SessionEvent] = asyncio.Queue()
        async with self._lock:
            self._subscribers.append(queue)
            for event in self._history:
                queue.put_nowait(event)
        logger.debug("New subscriber added. Total: %d", len(self._subscribers))
        return queue

    async def unsubscribe(self, queue: asyncio.Queue[SessionEvent]) -> None:
        async with self._lock:
            if queue in self._subscribers:
                self._subscribers.remove(queue)
        logger.debug("Subscriber removed. Total: %d", len(self._subscribers))

    async def publish(self, event: SessionEvent) -> None:
        async with self._lock:
            if event.event_type != SessionEventType.STREAMING:
                self._history.append(event)
                if len(self._history) > self._max_history:
                    self._history = self._history[-self._max_history :]
            for queue in self._subscribers:
                queue.put_nowait(event)
        logger.debug("Published event: %s", event.event_type.value)

    # -------------------------------------------------------------------------
    # Convenience publishers
    # -------------------------------------------------------------------------

    async def publish_view_changed(self, view: ViewState, previous: ViewState) -> None:
        await self.publish(
            SessionEvent(
                event_type=SessionEventType.VIEW_CHANGED,
                content=view.value,
                payload={"previous": previous.value},
            )
        )

    async def publish_message(self, message: Message, index: int) -> None:
        await self.publish(
            SessionEvent(
                event_type=SessionEventType.MESSAGE_APPENDED,
                content=message.content,
                payload={
                    "role": message.role.value,
                    "timestamp": message.timestamp,
                    "index": index,
                },
            )
        )

    async def publish_streaming(self, content: str) -> None:
        await self.publish(SessionEvent(event_type=SessionEventType.STREAMING, content=content))

    async def publish_thinking_step(self, step: StreamingStep) -> None:
        await self.publish(
            SessionEvent(
                event_type=SessionEventType.THINKING_STEP,
                content=step.tool_display_name,
                payload={
                    "id": step.id,
                    "step": step.step,
                    "status": step.status.value,
                    "tool": step.tool,
                    "phase": step.phase.value,
                    "duration_ms": step.duration_ms,
                },
            )
        )

    async def publish_notification(
        self,
        content: str,
        *,
        level: NotificationLevel = NotificationLevel.INFO,
    ) -> None:
        await self.publish(
            SessionEvent(
                event_type=SessionEventType.NOTIFICATION,
                content=content,
                payload={"level": level.value},
            )
        )

    async def publish_topic_changed(self, topic: str, difficulty: str) -> None:
        await self.publish(
            SessionEvent(
                event_type=SessionEventType.TOPIC_CHANGED,
                content=topic,
                payload={"difficulty": difficulty},
            )
        )

    async def publish_hint_requested(self, question: Optional[str]) -> None:
        await self.publish(
            SessionEvent(
                event_type=SessionEventType.HINT_REQUESTED,
                content=question or "",
            )
        )

    async def publish_session_ended(self, duration_seconds: Optional[int]) -> None:
        await self.publish(
            SessionEvent(
                event_type=SessionEventType.SESSION_ENDED,
                payload={"duration_seconds": duration_seconds},
            )
        )

    async def get_history(self) -> list[SessionEvent]:
        """Copy of the event history."""
        async with self._lock:
            return list(self._history)

    async def clear_history(self) -> None:
        async with self._lock:
            self._history.clear()
        logger.debug("History cleared")

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)
