"""
Thinking-step simulator.

Plays a fixed list of labelled "thinking" steps on one timeline to mask
backend latency. Presentation only: nothing here reads or writes session
state, and its output never feeds back into business logic.

Usage:
    simulator = ThinkingStepSimulator(language=Language.EN, on_step=render)
    steps = await simulator.run(ThinkingContext.START)
    simulator.cancel()  # from elsewhere, to stop early
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, replace
from typing import Awaitable, Callable, Mapping, Optional, Sequence, Union

from .callbacks import invoke_callback
from .i18n import Language, thinking_step_label
from .models import StepStatus, StreamingStep, ThinkingContext, ThinkingPhase

logger = logging.getLogger(__name__)

StepCallback = Callable[[StreamingStep], Union[None, Awaitable[None]]]


@dataclass(frozen=True)
class ThinkingStepSpec:
    """One entry of a thinking plan."""

    tool: str
    phase: ThinkingPhase
    duration_ms: int


DEFAULT_THINKING_PLAN: dict[ThinkingContext, tuple[ThinkingStepSpec, ...]] = {
    ThinkingContext.START: (
        ThinkingStepSpec("analyze_position", ThinkingPhase.UNDERSTANDING, 800),
        ThinkingStepSpec("select_topic", ThinkingPhase.ANALYZING, 600),
        ThinkingStepSpec("generate_question", ThinkingPhase.GENERATING, 700),
    ),
    ThinkingContext.MESSAGE: (
        ThinkingStepSpec("detect_intent", ThinkingPhase.UNDERSTANDING, 500),
        ThinkingStepSpec("evaluate_response", ThinkingPhase.ANALYZING, 600),
        ThinkingStepSpec("generate_followup", ThinkingPhase.GENERATING, 700),
    ),
    # Longer on purpose: bridges the feedback and company-matching work.
    ThinkingContext.END: (
        ThinkingStepSpec("collect_responses", ThinkingPhase.UNDERSTANDING, 2000),
        ThinkingStepSpec("analyze_performance", ThinkingPhase.ANALYZING, 3000),
        ThinkingStepSpec("evaluate_skills", ThinkingPhase.ANALYZING, 3000),
        ThinkingStepSpec("generate_feedback", ThinkingPhase.GENERATING, 4000),
        ThinkingStepSpec("search_jobs", ThinkingPhase.GENERATING, 4000),
        ThinkingStepSpec("match_companies", ThinkingPhase.GENERATING, 3000),
        ThinkingStepSpec("compile_report", ThinkingPhase.GENERATING, 2000),
    ),
}


def plan_total_ms(plan: Sequence[ThinkingStepSpec]) -> int:
    return sum(spec.duration_ms for spec in plan)


class ThinkingStepSimulator:
    """
    Sequential, cancellable thinking-step timeline.

    Each step is reported as RUNNING, held for its (scaled) duration, then
    reported as COMPLETED before the next one starts, so at most one step is
    running at any time. cancel() wakes the pending wait immediately and no
    further callbacks fire after it.

    Attributes:
        time_scale: Multiplier for every duration; 0 runs instantly.
    """

    def __init__(
        self,
        *,
        language: Language = Language.EN,
        plan: Optional[Mapping[ThinkingContext, Sequence[ThinkingStepSpec]]] = None,
        time_scale: float = 1.0,
        on_step: Optional[StepCallback] = None,
    ) -> None:
        if time_scale < 0:
            raise ValueError(f"time_scale must be >= 0. Got: {time_scale}")
        self.language = language
        self.plan = dict(plan) if plan is not None else dict(DEFAULT_THINKING_PLAN)
        self.time_scale = time_scale
        self.on_step = on_step

        self._stop_event = asyncio.Event()
        self._steps: list[StreamingStep] = []
        self._current: Optional[StreamingStep] = None

    @property
    def steps(self) -> list[StreamingStep]:
        """Snapshot of the steps emitted by the current or last run."""
        return list(self._steps)

    @property
    def current_step(self) -> Optional[StreamingStep]:
        return self._current

    @property
    def is_cancelled(self) -> bool:
        return self._stop_event.is_set()

    def cancel(self) -> None:
        if not self._stop_event.is_set():
            logger.debug("Thinking simulation cancelled")
        self._stop_event.set()

    async def run(self, context: ThinkingContext) -> list[StreamingStep]:
        """
        Play the plan for ``context``.

        Returns:
            The completed steps (fewer than planned when cancelled).
        """
        self._stop_event.clear()
        self._steps = []
        self._current = None
        plan = self.plan.get(context, ())
        logger.debug(
            "Thinking simulation started: context=%s steps=%d total=%dms",
            context.value,
            len(plan),
            plan_total_ms(plan),
        )

        completed: list[StreamingStep] = []
        for index, spec in enumerate(plan, start=1):
            if self._stop_event.is_set():
                break

            started = time.monotonic()
            running = StreamingStep(
                id=f"{context.value}-{index}-{uuid.uuid4().hex[:8]}",
                step=index,
                status=StepStatus.RUNNING,
                thought=thinking_step_label(spec.tool, self.language),
                tool=spec.tool,
                tool_display_name=thinking_step_label(spec.tool, self.language),
                phase=spec.phase,
                start_time=started,
            )
            self._current = running
            self._steps.append(running)
            await invoke_callback(self.on_step, running)

            if await self._wait(spec.duration_ms * self.time_scale / 1000.0):
                break

            finished = time.monotonic()
            done = replace(
                running,
                status=StepStatus.COMPLETED,
                end_time=finished,
                duration_ms=int((finished - started) * 1000),
            )
            self._steps[-1] = done
            completed.append(done)
            await invoke_callback(self.on_step, done)

        self._current = None
        return completed

    async def _wait(self, seconds: float) -> bool:
        """Sleep for ``seconds`` unless cancelled. Returns True when cancelled."""
        if seconds <= 0:
            # Still yield so concurrent work can interleave.
            await asyncio.sleep(0)
            return self._stop_event.is_set()
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
            return True
        except asyncio.TimeoutError:
            return False
