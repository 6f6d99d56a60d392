"""
Practice session controller.

Owns the view state machine (start -> resume -> chat -> feedback), the
session identity and the canonical message history, and coordinates the
asynchronous pieces of a practice turn:

    - session RPCs (start / send / end / get) through PracticeApiClient
    - the optimized follow-up stream that produces the visible reply
    - cosmetic thinking steps masking latency
    - events for the UI through SessionEventPublisher

Reconciliation rules for one user turn:
    - The follow-up stream owns the displayed reply and every view
      transition triggered by its intent.
    - The sendMessage persistence call owns persisted data: it replaces the
      collected info when it returns some and appends its topic feedback.
    - Every async result is tagged with the generation it started under;
      start, end and reset bump the generation, so results that arrive
      after a newer action are discarded.

Last Grunted: 10/19/2026
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Coroutine, Iterator, Mapping, Optional, Sequence, TypeVar

from .api import PracticeApiClient
from .errors import PracticeClientError
from .followup import OptimizedFollowupStreamer
from .i18n import Language, translate
from .indicators import (
    DEFAULT_MAX_INFO_COUNT,
    DifficultyBadge,
    depth_label,
    depth_level,
    difficulty_badge,
    format_duration,
    normalize_difficulty,
)
from .models import (
    CollectedInfoPoint,
    FollowupResult,
    Message,
    PracticeSession,
    Role,
    SendMessageResult,
    StreamingStep,
    ThinkingContext,
    TopicContext,
    UserIntent,
    ViewState,
)
from .pubsub import NotificationLevel, SessionEventPublisher
from .thinking import ThinkingStepSimulator, ThinkingStepSpec

logger = logging.getLogger(__name__)

T = TypeVar("T")

_ACK_KEYS: dict[UserIntent, str] = {
    UserIntent.SWITCH_TOPIC: "ack_switch_topic",
    UserIntent.END_INTERVIEW: "ack_end_interview",
    UserIntent.NEED_HINT: "ack_need_hint",
}


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PracticeSessionController:
    """
    Client-side controller for one practice session at a time.

    Language and the authenticated user are injected rather than read from
    ambient state, and ``clock`` can be replaced to control elapsed time.

    Example:
        >>> controller = PracticeSessionController(api, user_id="u1")
        >>> await controller.start_session("Backend Engineer")
        >>> await controller.send_message("I designed our payment service...")
        >>> await controller.end_session()
        >>> controller.duration_display
        '12m 30s'
    """

    def __init__(
        self,
        api: PracticeApiClient,
        *,
        language: Language = Language.EN,
        user_id: Optional[str] = None,
        publisher: Optional[SessionEventPublisher] = None,
        thinking_plan: Optional[Mapping[ThinkingContext, Sequence[ThinkingStepSpec]]] = None,
        thinking_time_scale: float = 1.0,
        max_info_points: int = DEFAULT_MAX_INFO_COUNT,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._api = api
        self.language = language
        self.user_id = user_id
        self.publisher = publisher or SessionEventPublisher()
        self.max_info_points = max_info_points
        self._clock = clock or _utc_now

        self._thinking_plan = thinking_plan
        self._thinking_time_scale = thinking_time_scale
        self._followup = OptimizedFollowupStreamer(
            api,
            on_chunk=self.publisher.publish_streaming,
        )

        self._session = PracticeSession()
        self._view = ViewState.START
        self._generation = 0
        self._epoch = 0
        self._in_flight = 0
        self._sending = False
        self._turn = 0
        self._authoritative_info_turn = 0
        self._thinking: Optional[tuple[ThinkingStepSimulator, asyncio.Task[Any]]] = None
        self._reply: Optional[asyncio.Task[FollowupResult]] = None
        self._background: set[asyncio.Task[Any]] = set()

    # -------------------------------------------------------------------------
    # Read-only state
    # -------------------------------------------------------------------------

    @property
    def view_state(self) -> ViewState:
        return self._view

    @property
    def session(self) -> PracticeSession:
        """Deep copy of the session; mutate it only through the controller."""
        return self._session.model_copy(deep=True)

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._session.messages)

    @property
    def session_id(self) -> Optional[str]:
        return self._session.session_id

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def is_loading(self) -> bool:
        return self._in_flight > 0

    @property
    def is_ended(self) -> bool:
        return self._session.is_ended

    @property
    def can_send(self) -> bool:
        return (
            self._view == ViewState.CHAT
            and self._session.is_active
            and not self._sending
            and not self.is_loading
        )

    @property
    def is_evaluating(self) -> bool:
        return self._followup.is_evaluating

    @property
    def is_streaming(self) -> bool:
        return self._followup.is_streaming

    @property
    def streaming_content(self) -> str:
        return self._followup.streaming_content

    @property
    def current_thinking_step(self) -> Optional[StreamingStep]:
        if self._thinking is None:
            return None
        return self._thinking[0].current_step

    @property
    def depth_level(self) -> int:
        return depth_level(len(self._session.collected_info), self.max_info_points)

    @property
    def depth_label(self) -> str:
        return depth_label(self.depth_level, self.language)

    @property
    def difficulty_badge(self) -> DifficultyBadge:
        return difficulty_badge(self._session.current_difficulty, self.language)

    @property
    def duration_display(self) -> Optional[str]:
        if self._session.duration_seconds is None:
            return None
        return format_duration(self._session.duration_seconds, self.language)

    # -------------------------------------------------------------------------
    # Start / resume views
    # -------------------------------------------------------------------------

    def set_target_position(self, target_position: str) -> None:
        if self._session.session_id is not None:
            logger.warning("Target position is fixed once a session has started")
            return
        self._session.target_position = target_position.strip()

    def attach_resume(self, resume_text: Optional[str]) -> None:
        if self._session.session_id is not None:
            logger.warning("Resume text can only be attached before the session starts")
            return
        self._session.resume_text = (resume_text or "").strip() or None

    def clear_resume(self) -> None:
        self.attach_resume(None)

    async def proceed_to_resume(self) -> bool:
        if self._view != ViewState.START:
            return False
        if not self._session.target_position:
            await self._notify("empty_target_position", NotificationLevel.WARNING)
            return False
        await self._set_view(ViewState.RESUME)
        return True

    async def back_to_start(self) -> bool:
        if self._view != ViewState.RESUME:
            return False
        await self._set_view(ViewState.START)
        return True

    # -------------------------------------------------------------------------
    # Session lifecycle
    # -------------------------------------------------------------------------

    async def start_session(
        self,
        target_position: Optional[str] = None,
        resume_text: Optional[str] = None,
    ) -> bool:
        """
        Start a new session and enter the chat view.

        Nothing is committed unless the start call succeeds.

        Returns:
            True when the session started.
        """
        if self._view not in (ViewState.START, ViewState.RESUME):
            logger.warning("start_session ignored in view %s", self._view.value)
            return False
        if target_position is not None:
            self.set_target_position(target_position)
        if resume_text is not None:
            self.attach_resume(resume_text)

        position = self._session.target_position
        resume = self._session.resume_text
        if not position:
            await self._notify("empty_target_position", NotificationLevel.WARNING)
            return False
        if self.user_id is None:
            await self._notify("sign_in_required", NotificationLevel.WARNING)
            return False
        if self.is_loading:
            return False

        generation = self._generation
        logger.info("Starting practice session: position=%s resume=%s", position, bool(resume))
        with self._hold_loading():
            try:
                result = await self._with_thinking(
                    ThinkingContext.START,
                    self._api.start_session(position, resume),
                )
            except PracticeClientError as exc:
                logger.error("Failed to start session: %s", exc, exc_info=True)
                await self._notify("start_failed", NotificationLevel.ERROR)
                return False

            if generation != self._generation:
                logger.warning("Discarding stale start result for %s", result.session_id)
                return False

            self._generation += 1
            difficulty = normalize_difficulty(result.topic.difficulty)
            opening = Message(role=Role.ASSISTANT, content=result.opening_message)
            self._session = PracticeSession(
                session_id=result.session_id,
                target_position=position,
                resume_text=resume,
                current_topic=result.topic.name,
                current_difficulty=difficulty,
                started_at=self._clock(),
            )
            self._turn = 0
            self._authoritative_info_turn = 0
            await self._append(opening)
            await self.publisher.publish_topic_changed(result.topic.name, difficulty.value)
            await self._set_view(ViewState.CHAT)

        logger.info(
            "Session started: id=%s topic=%s difficulty=%s",
            result.session_id,
            result.topic.name,
            difficulty.value,
        )
        return True

    async def send_message(self, text: str) -> bool:
        """
        Run one user turn.

        The user message is appended immediately. Exactly one assistant
        message follows: the streamed reply, an intent acknowledgement when
        the stream produced no text, or the fallback error message.

        Returns:
            True when a reply was committed from the follow-up stream.
        """
        text = text.strip()
        if not text:
            await self._notify("empty_message", NotificationLevel.WARNING)
            return False
        if self._session.session_id is None:
            await self._notify("session_not_started", NotificationLevel.WARNING)
            return False
        if self._session.is_ended:
            await self._notify("session_ended", NotificationLevel.WARNING)
            return False
        if self._view != ViewState.CHAT:
            logger.warning("send_message ignored in view %s", self._view.value)
            return False
        if self._sending or self.is_loading:
            logger.debug("send_message rejected: a turn is already in flight")
            return False

        generation = self._generation
        epoch = self._epoch
        self._turn += 1
        turn = self._turn
        session_id = self._session.session_id
        question = self._session.last_assistant_message
        context = TopicContext(
            id=session_id,
            name=self._session.current_topic,
            messages=list(self._session.messages),
            collected_info=[
                point.model_copy(update={"needs_follow_up": True})
                for point in self._session.collected_info
            ],
        )

        self._sending = True
        thinking = None
        with self._hold_loading():
            try:
                await self._append(Message(role=Role.USER, content=text))
                if generation != self._generation:
                    return False
                # Cosmetic only: the reply never waits for these steps.
                thinking = self._start_thinking(ThinkingContext.MESSAGE)
                persist = self._spawn(self._persist_turn(generation, turn, session_id, text))

                reply = asyncio.create_task(
                    self._followup.run(
                        user_message=text,
                        topic_context=context,
                        target_position=self._session.target_position,
                        resume_text=self._session.resume_text,
                    ),
                    name=f"reply:{turn}",
                )
                self._reply = reply
                try:
                    await asyncio.wait({reply})
                except asyncio.CancelledError:
                    reply.cancel()
                    await asyncio.wait({reply})
                    raise
                finally:
                    if self._reply is reply:
                        self._reply = None

                if reply.cancelled():
                    logger.warning("Discarding cancelled reply for turn %d", turn)
                    return False
                try:
                    result = reply.result()
                except PracticeClientError as exc:
                    logger.error("Failed to send message: %s", exc, exc_info=True)
                    if generation == self._generation:
                        await self._append(
                            Message(
                                role=Role.ASSISTANT,
                                content=translate("send_failed", self.language),
                            )
                        )
                    return False

                if generation != self._generation:
                    logger.warning("Discarding stale reply for turn %d", turn)
                    return False

                await self._commit_reply(result, turn)
            finally:
                if thinking is not None:
                    await self._cancel_thinking(thinking)
                await self.publisher.publish_streaming("")
                if epoch == self._epoch:
                    self._sending = False

        await self._apply_intent(result.intent, generation, persist, question)
        return True

    async def end_session(self) -> bool:
        """
        End the session and show the final feedback.

        Terminal: an ended session cannot be resumed, only replaced with
        try_again(). Any turn still in flight is discarded.
        """
        session_id = self._session.session_id
        if session_id is None:
            await self._notify("session_not_started", NotificationLevel.WARNING)
            return False
        if self._session.is_ended:
            return False

        self._generation += 1
        generation = self._generation
        await self._cancel_current_thinking()
        await self._cancel_reply()
        logger.info("Ending session %s", session_id)

        with self._hold_loading():
            try:
                result = await self._with_thinking(
                    ThinkingContext.END,
                    self._api.end_session(session_id),
                )
            except PracticeClientError as exc:
                logger.error("Failed to end session: %s", exc, exc_info=True)
                await self._notify("end_failed", NotificationLevel.ERROR)
                return False

            if generation != self._generation:
                logger.warning("Discarding stale end result for %s", session_id)
                return False

            session = self._session
            session.feedbacks = list(result.feedbacks)
            session.company_matches = list(result.company_matches)
            session.overall_summary = result.overall_summary
            session.is_ended = True
            if session.started_at is not None:
                elapsed = self._clock() - session.started_at
                session.duration_seconds = max(0, int(elapsed.total_seconds()))

            await self._set_view(ViewState.FEEDBACK)
            await self.publisher.publish_session_ended(session.duration_seconds)

        logger.info(
            "Session %s ended: feedbacks=%d matches=%d duration=%ss",
            session_id,
            len(result.feedbacks),
            len(result.company_matches),
            self._session.duration_seconds,
        )
        return True

    async def refresh_topic(self) -> bool:
        """Reload the current topic from the backend after a topic switch."""
        session_id = self._session.session_id
        if session_id is None or self._session.is_ended:
            return False

        generation = self._generation
        try:
            snapshot = await self._api.get_session(session_id)
        except PracticeClientError as exc:
            logger.error("Failed to refresh topic: %s", exc, exc_info=True)
            await self._notify("topic_refresh_failed", NotificationLevel.ERROR)
            return False

        if generation != self._generation:
            logger.warning("Discarding stale topic refresh for %s", session_id)
            return False
        topic = snapshot.current_topic
        if topic is None:
            logger.warning("Session %s has no current topic", session_id)
            return False

        session = self._session
        if topic.name != session.current_topic:
            session.collected_info = list(topic.collected_info)
        session.current_topic = topic.name
        session.current_difficulty = normalize_difficulty(topic.difficulty)
        logger.info(
            "Topic refreshed: %s (%s)", topic.name, session.current_difficulty.value
        )
        await self.publisher.publish_topic_changed(
            topic.name, session.current_difficulty.value
        )
        return True

    async def continue_practice(self) -> bool:
        """Return from topic feedback to the chat. Not allowed once ended."""
        if self._view != ViewState.FEEDBACK:
            return False
        if self._session.is_ended:
            await self._notify("session_ended", NotificationLevel.INFO)
            return False
        await self._set_view(ViewState.CHAT)
        return True

    async def reset(self) -> None:
        """Discard all session state and return to the start view."""
        self._generation += 1
        await self._cancel_current_thinking()
        await self._cancel_reply()
        background = list(self._background)
        for task in background:
            task.cancel()
        if background:
            await asyncio.wait(background)
        self._followup.reset()
        self._session = PracticeSession()
        # Holds taken before the reset are released here, not by their owners.
        self._epoch += 1
        self._in_flight = 0
        self._sending = False
        self._turn = 0
        self._authoritative_info_turn = 0
        logger.info("Session state reset")
        await self._set_view(ViewState.START)

    async def try_again(self) -> bool:
        """Start a brand-new session for the same position and resume."""
        position = self._session.target_position
        resume = self._session.resume_text
        await self.reset()
        return await self.start_session(position, resume)

    # -------------------------------------------------------------------------
    # Turn reconciliation
    # -------------------------------------------------------------------------

    async def _commit_reply(self, result: FollowupResult, turn: int) -> None:
        content = result.content
        if not content:
            content = translate(_ACK_KEYS.get(result.intent, "ack_default"), self.language)
        await self._append(Message(role=Role.ASSISTANT, content=content))

        status = result.status
        if (
            not result.intent.needs_caller_action
            and status is not None
            and status.new_info_points
            and self._authoritative_info_turn != turn
        ):
            self._merge_info(status.new_info_points)

    def _merge_info(self, points: Sequence[CollectedInfoPoint]) -> None:
        self._session.collected_info = [*self._session.collected_info, *points]
        logger.debug("Collected info now %d point(s)", len(self._session.collected_info))

    async def _persist_turn(
        self,
        generation: int,
        turn: int,
        session_id: str,
        text: str,
    ) -> Optional[SendMessageResult]:
        try:
            result = await self._api.send_message(session_id, text)
        except PracticeClientError as exc:
            logger.warning("Persisting turn %d failed: %s", turn, exc)
            return None

        if generation != self._generation:
            logger.warning("Discarding stale persistence result for turn %d", turn)
            return None

        if result.collected_info is not None:
            self._session.collected_info = list(result.collected_info)
            self._authoritative_info_turn = turn
        if result.feedback is not None:
            self._session.feedbacks.append(result.feedback)
        return result

    async def _apply_intent(
        self,
        intent: UserIntent,
        generation: int,
        persist: asyncio.Task[Optional[SendMessageResult]],
        question: Optional[Message],
    ) -> None:
        if intent == UserIntent.END_INTERVIEW:
            await self.end_session()
        elif intent == UserIntent.SWITCH_TOPIC:
            await self._switch_topic(generation, persist)
        elif intent == UserIntent.NEED_HINT:
            await self.publisher.publish_hint_requested(
                question.content if question is not None else None
            )

    async def _switch_topic(
        self,
        generation: int,
        persist: asyncio.Task[Optional[SendMessageResult]],
    ) -> None:
        # The backend moves to the next topic while persisting the turn.
        await asyncio.wait({persist})
        if generation != self._generation or persist.cancelled():
            return
        persisted = persist.result()
        if persisted is not None and persisted.feedback is not None:
            await self._set_view(ViewState.FEEDBACK)
        await self.refresh_topic()

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @contextmanager
    def _hold_loading(self) -> Iterator[None]:
        epoch = self._epoch
        self._in_flight += 1
        try:
            yield
        finally:
            if epoch == self._epoch:
                self._in_flight -= 1

    async def _with_thinking(
        self,
        context: ThinkingContext,
        call: Coroutine[Any, Any, T],
    ) -> T:
        """Await ``call`` and the thinking steps together, like gather()."""
        thinking = self._start_thinking(context)
        try:
            result = await call
            # wait() rather than await: a cancelled simulation must not fail the call.
            await asyncio.wait({thinking[1]})
        except BaseException:
            await self._cancel_thinking(thinking)
            raise
        if self._thinking is thinking:
            self._thinking = None
        return result

    def _start_thinking(
        self, context: ThinkingContext
    ) -> tuple[ThinkingStepSimulator, asyncio.Task[Any]]:
        simulator = ThinkingStepSimulator(
            language=self.language,
            plan=self._thinking_plan,
            time_scale=self._thinking_time_scale,
            on_step=self.publisher.publish_thinking_step,
        )
        thinking = (simulator, asyncio.create_task(simulator.run(context)))
        self._thinking = thinking
        return thinking

    async def _cancel_thinking(
        self, thinking: tuple[ThinkingStepSimulator, asyncio.Task[Any]]
    ) -> None:
        simulator, task = thinking
        simulator.cancel()
        if not task.done():
            task.cancel()
        await asyncio.wait({task})
        if self._thinking is thinking:
            self._thinking = None

    async def _cancel_current_thinking(self) -> None:
        if self._thinking is not None:
            await self._cancel_thinking(self._thinking)

    async def _cancel_reply(self) -> None:
        reply = self._reply
        if reply is not None and not reply.done():
            reply.cancel()
            await asyncio.wait({reply})

    def _spawn(self, coro: Coroutine[Any, Any, T]) -> asyncio.Task[T]:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._on_background_done)
        return task

    def _on_background_done(self, task: asyncio.Task[Any]) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background task failed: %s", exc, exc_info=exc)

    async def _append(self, message: Message) -> None:
        self._session.messages.append(message)
        await self.publisher.publish_message(message, len(self._session.messages) - 1)

    async def _set_view(self, view: ViewState) -> None:
        previous = self._view
        if previous == view:
            return
        self._view = view
        logger.info("View: %s -> %s", previous.value, view.value)
        await self.publisher.publish_view_changed(view, previous)

    async def _notify(self, key: str, level: NotificationLevel) -> None:
        await self.publisher.publish_notification(
            translate(key, self.language), level=level
        )
