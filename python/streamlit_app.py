#!/usr/bin/env python3
"""
Streamlit UI for Topic Interview Practice.

Renders the four practice views on top of PracticeSessionController:
- Start: enter the target position
- Resume: optionally attach resume text, watch preparation progress
- Chat: conversation with depth and difficulty indicators
- Feedback: per-topic feedback, company matches and session duration

The controller is async; each browser session gets its own event loop on a
daemon thread and UI actions block on it with run_coroutine_threadsafe.

Usage:
    uv run python practice_sandbox.py                       # Terminal 1
    uv run streamlit run streamlit_app.py --server.port 8501  # Terminal 2
"""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Coroutine, Final, TypeVar

import streamlit as st

from interview_practice import (
    Language,
    PracticeApiClient,
    PracticeConfig,
    PracticeSessionController,
    ProgressStreamReader,
    SessionEvent,
    SessionEventType,
    ViewState,
    load_practice_config,
)
from interview_practice.i18n import progress_step_label

# =============================================================================
# Logging Configuration
# =============================================================================

logger: logging.Logger = logging.getLogger(__name__)

# =============================================================================
# Configuration
# =============================================================================

CONFIG: Final[PracticeConfig] = load_practice_config()
ACTION_TIMEOUT_SECONDS: Final[float] = 300.0

_VARIANT_COLORS: Final[dict[str, str]] = {
    "secondary": "#64748B",
    "default": "#2563EB",
    "destructive": "#DC2626",
}

T = TypeVar("T")


# =============================================================================
# Page Configuration
# =============================================================================

st.set_page_config(
    page_title="Interview Practice",
    page_icon="🎯",
    layout="wide",
    initial_sidebar_state="collapsed",
)


# =============================================================================
# Custom CSS
# =============================================================================

st.markdown("""
<style>
#MainMenu {visibility: hidden;}
footer {visibility: hidden;}
.stDeployButton {display: none;}

.main .block-container {
    padding: 1rem 2rem;
    max-width: 100%;
}

.badge {
    display: inline-block;
    color: white;
    font-size: 0.75rem;
    font-weight: 600;
    padding: 0.1rem 0.6rem;
    border-radius: 999px;
}

.depth-bar span {
    display: inline-block;
    width: 1.5rem;
    height: 0.4rem;
    margin-right: 0.2rem;
    border-radius: 2px;
    background: #E2E8F0;
}

.depth-bar span.filled {
    background: #10B981;
}

.thinking-step {
    font-size: 0.8rem;
    color: #64748B;
}
</style>
""", unsafe_allow_html=True)


# =============================================================================
# Async Runtime
# =============================================================================


@dataclass
class PracticeRuntime:
    """Event loop thread plus the client objects that live on it."""

    loop: asyncio.AbstractEventLoop
    api: PracticeApiClient
    controller: PracticeSessionController
    events: asyncio.Queue[SessionEvent]
    recent_events: list[SessionEvent] = field(default_factory=list)

    def run(self, coro: Coroutine[Any, Any, T]) -> T:
        future = asyncio.run_coroutine_threadsafe(coro, self.loop)
        return future.result(timeout=ACTION_TIMEOUT_SECONDS)

    def drain_events(self) -> list[SessionEvent]:
        async def _drain() -> list[SessionEvent]:
            drained: list[SessionEvent] = []
            while not self.events.empty():
                drained.append(self.events.get_nowait())
            return drained

        self.recent_events = self.run(_drain())
        return self.recent_events


def create_runtime(config: PracticeConfig) -> PracticeRuntime:
    loop = asyncio.new_event_loop()
    thread = threading.Thread(target=loop.run_forever, name="practice-loop", daemon=True)
    thread.start()

    async def _build() -> PracticeRuntime:
        api = PracticeApiClient(
            config.api_base_url,
            timeout=config.http_timeout_seconds,
            auth_token=config.auth_token,
        )
        controller = PracticeSessionController(
            api,
            language=config.language,
            user_id=config.user_id or "streamlit-local",
            thinking_time_scale=config.thinking_time_scale,
            max_info_points=config.max_info_points,
        )
        events = await controller.publisher.subscribe()
        return PracticeRuntime(loop=loop, api=api, controller=controller, events=events)

    runtime = asyncio.run_coroutine_threadsafe(_build(), loop).result()
    logger.info("Practice runtime started: api=%s", config.api_base_url)
    return runtime


# =============================================================================
# State Management
# =============================================================================


def init_state() -> None:
    """Initialize per-browser session state."""
    if "init" not in st.session_state:
        st.session_state.init = True
        st.session_state.runtime = create_runtime(CONFIG)
        st.session_state.progress_events = []
        st.session_state.progress_error = None
        st.session_state.plan = None


def runtime() -> PracticeRuntime:
    return st.session_state.runtime


def act(coro: Coroutine[Any, Any, T]) -> T:
    """Run a controller action, then surface its notifications as toasts."""
    rt = runtime()
    result = rt.run(coro)
    for event in rt.drain_events():
        if event.event_type == SessionEventType.NOTIFICATION:
            level = event.payload.get("level", "info")
            icon = {"error": "❌", "warning": "⚠️"}.get(level, "ℹ️")
            st.toast(event.content, icon=icon)
    return result


def prepare_plan(dream_job: str) -> None:
    """Follow the preparation progress stream to its terminal event."""
    outcome: dict[str, Any] = {}

    async def _follow() -> ProgressStreamReader:
        reader = ProgressStreamReader(
            runtime().api,
            dream_job,
            on_complete=lambda data: outcome.update(plan=data),
            on_error=lambda reason: outcome.update(error=reason),
            max_history=CONFIG.progress_history_limit,
        )
        await reader.run()
        return reader

    reader = runtime().run(_follow())
    st.session_state.progress_events = reader.history
    st.session_state.progress_error = outcome.get("error")
    st.session_state.plan = outcome.get("plan")


# =============================================================================
# Rendering Helpers
# =============================================================================


def render_badge(label: str, variant: str) -> str:
    color = _VARIANT_COLORS.get(variant, _VARIANT_COLORS["default"])
    return f'<span class="badge" style="background:{color}">{label}</span>'


def render_depth(level: int, label: str) -> str:
    cells = "".join(
        f'<span class="{"filled" if i <= level else ""}"></span>' for i in range(4)
    )
    return f'<div class="depth-bar">{cells} <small>{label}</small></div>'


def render_thinking_steps(events: list[SessionEvent]) -> None:
    steps = [
        e for e in events
        if e.event_type == SessionEventType.THINKING_STEP
        and e.payload.get("status") == "completed"
    ]
    for event in steps:
        st.markdown(
            f'<div class="thinking-step">✓ {event.content} '
            f'({event.payload.get("duration_ms") or 0} ms)</div>',
            unsafe_allow_html=True,
        )


# =============================================================================
# Views
# =============================================================================


def view_start(controller: PracticeSessionController) -> None:
    st.markdown("### 🎯 What role are you practicing for?")
    position = st.text_input(
        "Target position",
        value=controller.session.target_position,
        placeholder="e.g. Senior Backend Engineer",
    )
    if st.button("Continue", type="primary"):
        controller.set_target_position(position)
        if act(controller.proceed_to_resume()):
            st.rerun()


def view_resume(controller: PracticeSessionController) -> None:
    session = controller.session
    st.markdown(f"### 📄 Resume for **{session.target_position}**")
    resume = st.text_area(
        "Paste your resume (optional)",
        value=session.resume_text or "",
        height=200,
    )

    col_prep, col_back, col_start = st.columns([2, 1, 1])
    with col_prep:
        if st.button("🔍 Prepare practice plan"):
            with st.spinner("Preparing..."):
                prepare_plan(session.target_position)
    with col_back:
        if st.button("⬅️ Back"):
            act(controller.back_to_start())
            st.rerun()
    with col_start:
        if st.button("▶️ Start practice", type="primary"):
            controller.attach_resume(resume)
            with st.spinner("Starting session..."):
                started = act(controller.start_session())
            if started:
                st.rerun()
            render_thinking_steps(runtime().recent_events)

    events = st.session_state.progress_events
    if events:
        with st.container(border=True):
            st.markdown("**📈 Preparation progress**")
            latest = events[-1]
            st.progress(
                max(e.progress for e in events) / 100,
                text=progress_step_label(latest.step, controller.language),
            )
            for event in events:
                st.markdown(f"- {event.message or event.step}")
            if st.session_state.progress_error:
                st.error(st.session_state.progress_error)
            elif st.session_state.plan:
                st.json(st.session_state.plan, expanded=False)


def view_chat(controller: PracticeSessionController) -> None:
    session = controller.session
    badge = controller.difficulty_badge

    col_topic, col_depth, col_end = st.columns([3, 2, 1])
    with col_topic:
        st.markdown(
            f"### {session.current_topic} {render_badge(badge.label, badge.variant)}",
            unsafe_allow_html=True,
        )
    with col_depth:
        st.markdown(
            render_depth(controller.depth_level, controller.depth_label),
            unsafe_allow_html=True,
        )
    with col_end:
        if st.button("⏹️ End", disabled=controller.is_loading):
            with st.spinner("Generating feedback..."):
                act(controller.end_session())
            st.rerun()

    with st.container(border=True, height=500):
        for message in controller.messages:
            with st.chat_message(message.role.value):
                st.markdown(message.content)
        render_thinking_steps(runtime().recent_events)

    prompt = st.chat_input("Your answer", disabled=not controller.can_send)
    if prompt:
        with st.spinner("Thinking..."):
            act(controller.send_message(prompt))
        st.rerun()


def view_feedback(controller: PracticeSessionController) -> None:
    session = controller.session
    if session.is_ended:
        title = "### 🏁 Session complete"
        if controller.duration_display:
            title += f" · {controller.duration_display}"
        st.markdown(title)
        if session.overall_summary:
            st.info(session.overall_summary)
    else:
        st.markdown("### 📝 Topic feedback")

    for feedback in session.feedbacks:
        with st.expander(f"{feedback.topic_id} · score {feedback.score:.0f}", expanded=True):
            analysis = feedback.performance_analysis
            c1, c2 = st.columns(2)
            with c1:
                st.markdown("**Strengths**")
                for item in analysis.strengths:
                    st.markdown(f"- {item}")
            with c2:
                st.markdown("**Gaps**")
                for item in analysis.gaps:
                    st.markdown(f"- {item}")
            suggestions = feedback.improvement_suggestions
            for item in [*suggestions.immediate, *suggestions.long_term]:
                st.markdown(f"💡 {item}")

    if session.company_matches:
        st.markdown("#### 🏢 Recommended companies")
        for match in session.company_matches:
            st.markdown(
                f"**{match.company}** {match.job_title or ''} · match {match.match_score:.0f}%"
            )

    col_a, col_b = st.columns(2)
    with col_a:
        if not session.is_ended and st.button("▶️ Continue practice", type="primary"):
            act(controller.continue_practice())
            st.rerun()
    with col_b:
        if st.button("🔄 Try again"):
            with st.spinner("Starting a new session..."):
                act(controller.try_again())
            st.rerun()


# =============================================================================
# Main UI
# =============================================================================


def main() -> None:
    """Main Streamlit application entry point."""
    init_state()
    controller = runtime().controller

    col_h1, col_h2 = st.columns([4, 1])
    with col_h1:
        st.markdown("## Interview Practice")
    with col_h2:
        if controller.view_state != ViewState.START and st.button("↩️ Reset"):
            act(controller.reset())
            st.session_state.progress_events = []
            st.session_state.plan = None
            st.rerun()

    if CONFIG.language == Language.ZH:
        st.caption("语言: 中文")

    views = {
        ViewState.START: view_start,
        ViewState.RESUME: view_resume,
        ViewState.CHAT: view_chat,
        ViewState.FEEDBACK: view_feedback,
    }
    views[controller.view_state](controller)


main()
