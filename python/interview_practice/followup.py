"""
Optimized follow-up streamer.

Drives ``POST /api/topic-practice/optimized-followup``. The response is an
SSE stream of JSON frames distinguished by ``type``:

    status   fast evaluation: specialIntent, or status/newInfoPoints/...
    content  one chunk of reply text
    done     end of reply, may repeat the full text in ``content``
    error    failure, message in ``error``

The streamer only reports what it saw. Reacting to the detected intent
(ending the session, switching topic, showing a hint) is left to the caller.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Awaitable, Callable, Optional, Union

from pydantic import ValidationError

from .api import PracticeApiClient
from .callbacks import invoke_callback
from .errors import PracticeClientError, StreamError
from .models import FollowupResult, FollowupStatus, TopicContext, UserIntent
from .sse import aiter_sse

logger = logging.getLogger(__name__)

ChunkCallback = Callable[[str], Union[None, Awaitable[None]]]
StatusCallback = Callable[[FollowupStatus], Union[None, Awaitable[None]]]


class OptimizedFollowupStreamer:
    """
    Two-phase follow-up client: evaluate first, then stream the reply.

    ``is_evaluating`` is true until the status frame arrives, after which
    ``is_streaming`` is true until ``done``. ``streaming_content`` holds the
    text received so far and is emptied when the turn finishes, whether it
    succeeded or failed, so partial text is never left behind.
    """

    def __init__(
        self,
        api: PracticeApiClient,
        *,
        on_chunk: Optional[ChunkCallback] = None,
        on_status: Optional[StatusCallback] = None,
    ) -> None:
        self._api = api
        self.on_chunk = on_chunk
        self.on_status = on_status
        self.reset()

    def reset(self) -> None:
        self._is_evaluating = False
        self._is_streaming = False
        self._streaming_content = ""
        self._status_result: Optional[FollowupStatus] = None
        self._detected_intent: Optional[UserIntent] = None
        self._error: Optional[str] = None

    @property
    def is_evaluating(self) -> bool:
        return self._is_evaluating

    @property
    def is_streaming(self) -> bool:
        return self._is_streaming

    @property
    def streaming_content(self) -> str:
        return self._streaming_content

    @property
    def status_result(self) -> Optional[FollowupStatus]:
        return self._status_result

    @property
    def detected_intent(self) -> Optional[UserIntent]:
        return self._detected_intent

    @property
    def error(self) -> Optional[str]:
        return self._error

    async def run(
        self,
        *,
        user_message: str,
        topic_context: TopicContext,
        target_position: str,
        resume_text: Optional[str] = None,
    ) -> FollowupResult:
        """
        Run one follow-up turn to completion.

        Returns:
            FollowupResult with the full reply text and detected intent
            (UserIntent.NONE when the evaluation found none).

        Raises:
            StreamError: The stream sent an error frame or ended before done.
            TransportError: The endpoint could not be reached.
        """
        self.reset()
        self._is_evaluating = True
        body: dict[str, Any] = {
            "userMessage": user_message,
            "topicContext": topic_context.model_dump(by_alias=True, mode="json"),
            "targetPosition": target_position,
        }
        if resume_text:
            body["resumeText"] = resume_text

        chunks: list[str] = []
        done_content = ""
        finished = False
        try:
            async with self._api.followup_stream(body) as response:
                async for sse in aiter_sse(response):
                    frame = self._decode(sse.data)
                    if frame is None:
                        continue
                    kind = frame.get("type")

                    if kind == "status":
                        await self._handle_status(frame)
                    elif kind == "content":
                        piece = frame.get("content")
                        if not isinstance(piece, str) or not piece:
                            continue
                        self._is_evaluating = False
                        self._is_streaming = True
                        chunks.append(piece)
                        self._streaming_content = "".join(chunks)
                        await invoke_callback(self.on_chunk, self._streaming_content)
                    elif kind == "done":
                        if isinstance(frame.get("content"), str):
                            done_content = frame["content"]
                        finished = True
                        break
                    elif kind == "error":
                        raise StreamError(str(frame.get("error") or "Follow-up stream failed"))
                    else:
                        logger.debug("Ignoring follow-up frame of type %r", kind)

            if not finished:
                raise StreamError("Follow-up stream ended before completion")
        except PracticeClientError as exc:
            self._error = exc.message
            logger.warning("Optimized follow-up failed: %s", exc.message)
            raise
        finally:
            self._is_evaluating = False
            self._is_streaming = False
            self._streaming_content = ""

        intent = self._detected_intent or UserIntent.NONE
        content = "".join(chunks) or done_content
        logger.debug(
            "Optimized follow-up finished: intent=%s chars=%d", intent.value, len(content)
        )
        return FollowupResult(content=content, intent=intent, status=self._status_result)

    async def _handle_status(self, frame: dict[str, Any]) -> None:
        try:
            status = FollowupStatus.model_validate(frame)
        except ValidationError as exc:
            logger.warning("Skipping malformed status frame: %s", exc)
            return
        self._is_evaluating = False
        self._is_streaming = True
        self._status_result = status
        if status.special_intent is not None and status.special_intent != UserIntent.NONE:
            self._detected_intent = status.special_intent
            logger.info("Special intent detected: %s", status.special_intent.value)
        await invoke_callback(self.on_status, status)

    @staticmethod
    def _decode(data: str) -> Optional[dict[str, Any]]:
        if not data.strip():
            return None
        try:
            frame = json.loads(data)
        except json.JSONDecodeError:
            logger.warning("Skipping non-JSON follow-up frame: %.80s", data)
            return None
        if not isinstance(frame, dict):
            logger.warning("Skipping non-object follow-up frame")
            return None
        return frame
