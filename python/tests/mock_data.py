"""
Mock data and a scripted backend for practice client testing.

ScriptedBackend answers the tRPC procedures and both SSE endpoints through
httpx.MockTransport, so the client stack runs unmodified against canned
payloads. Gates let a test hold a response open to interleave actions.

Last Grunted: 10/19/2026
"""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator, Optional, Union

import httpx

from interview_practice import PracticeApiClient


# =============================================================================
# Canned Payloads
# =============================================================================

SESSION_ID = "tp_test_0001"
TARGET_POSITION = "Backend Engineer"
OPENING_MESSAGE = "Tell me about a system you designed that had to scale."

START_RESULT: dict[str, Any] = {
    "sessionId": SESSION_ID,
    "topic": {"name": "System Design", "difficulty": "hard"},
    "openingMessage": OPENING_MESSAGE,
}


def info_point(summary: str, info_type: str = "experience", depth: int = 1) -> dict[str, Any]:
    return {"type": info_type, "summary": summary, "depth": depth, "needsFollowUp": False}


def topic_feedback(topic_id: str = "system_design", score: float = 72) -> dict[str, Any]:
    return {
        "topicId": topic_id,
        "questionSource": {"description": "Onsite round", "frequency": "high"},
        "targetAbility": {"primary": "Architecture", "secondary": ["Scalability"], "rationale": ""},
        "performanceAnalysis": {
            "strengths": ["Clear constraints"],
            "gaps": ["No metrics"],
            "details": "Solid structure.",
        },
        "improvementSuggestions": {
            "immediate": ["Quantify results"],
            "longTerm": ["Study consistency models"],
            "resources": [],
        },
        "score": score,
    }


END_RESULT: dict[str, Any] = {
    "feedbacks": [topic_feedback()],
    "companyMatches": [
        {
            "company": "Northwind Logistics",
            "jobTitle": "Backend Engineer",
            "matchScore": 86,
            "reasons": ["Event-driven architecture"],
            "keySkills": ["Kafka"],
            "preparationTips": [],
        }
    ],
    "overallSummary": "Good structure, add numbers.",
}


def session_snapshot(
    topic: str = "Production Debugging",
    difficulty: str = "easy",
    collected_info: Optional[list[dict[str, Any]]] = None,
) -> dict[str, Any]:
    return {
        "sessionId": SESSION_ID,
        "targetPosition": TARGET_POSITION,
        "status": "active",
        "currentTopic": {
            "name": topic,
            "difficulty": difficulty,
            "collectedInfo": collected_info or [],
        },
        "completedTopics": ["System Design"],
    }


# =============================================================================
# Wire Helpers
# =============================================================================


def trpc_ok(data: Any) -> httpx.Response:
    return httpx.Response(200, json={"result": {"data": data}})


def trpc_error(
    code: str = "INTERNAL_SERVER_ERROR",
    message: str = "Something broke",
    status_code: int = 500,
) -> httpx.Response:
    return httpx.Response(
        status_code,
        json={
            "error": {
                "message": message,
                "code": -32603,
                "data": {"code": code, "httpStatus": status_code},
            }
        },
    )


def sse_body(*frames: Union[dict[str, Any], str]) -> bytes:
    """Encode frames as SSE ``data:`` events. Strings are sent verbatim."""
    parts = []
    for frame in frames:
        data = frame if isinstance(frame, str) else json.dumps(frame, ensure_ascii=False)
        parts.append(f"data: {data}\n\n")
    return "".join(parts).encode("utf-8")


def sse_response(*frames: Union[dict[str, Any], str]) -> httpx.Response:
    return httpx.Response(
        200,
        headers={"content-type": "text/event-stream"},
        content=sse_body(*frames),
    )


def followup_frames(
    *chunks: str,
    intent: Optional[str] = None,
    new_info: Optional[list[dict[str, Any]]] = None,
    done: bool = True,
) -> list[dict[str, Any]]:
    """Status frame, content chunks, then done (unless ``done`` is False)."""
    if intent is not None:
        status: dict[str, Any] = {"type": "status", "specialIntent": intent}
    else:
        status = {
            "type": "status",
            "status": "collecting",
            "newInfoPoints": new_info or [],
            "topicComplete": False,
            "userEngagement": "high",
            "evaluationTime": 12,
        }
    frames = [status, *({"type": "content", "content": chunk} for chunk in chunks)]
    if done:
        frames.append({"type": "done", "totalTime": 40})
    return frames


def progress_frame(step: str, progress: Any, **extra: Any) -> dict[str, Any]:
    return {"step": step, "message": step.replace("_", " "), "progress": progress, **extra}


class DroppingStream(httpx.AsyncByteStream):
    """Sends ``payload`` and then fails as if the connection dropped."""

    def __init__(self, payload: bytes) -> None:
        self.payload = payload
        self.closed = False

    async def __aiter__(self) -> AsyncIterator[bytes]:
        yield self.payload
        raise httpx.ReadError("connection reset by peer")

    async def aclose(self) -> None:
        self.closed = True


class HangingStream(httpx.AsyncByteStream):
    """Sends ``payload`` and then never finishes."""

    def __init__(self, payload: bytes) -> None:
        self.payload = payload
        self.closed = False

    async def __aiter__(self) -> AsyncIterator[bytes]:
        yield self.payload
        await asyncio.Event().wait()

    async def aclose(self) -> None:
        self.closed = True


# =============================================================================
# Scripted Backend
# =============================================================================


ResponseSpec = Union[dict[str, Any], httpx.Response]


class ScriptedBackend:
    """
    Route-by-path fake of the practice backend.

    Each ``*_result`` attribute is either the tRPC ``data`` payload or a
    full httpx.Response (for error envelopes and bad statuses). Set a gate
    to an asyncio.Event to hold the matching response until it is set.
    """

    def __init__(self) -> None:
        self.start_result: ResponseSpec = dict(START_RESULT)
        self.send_result: ResponseSpec = {"userIntent": "continue"}
        self.end_result: ResponseSpec = dict(END_RESULT)
        self.session_result: ResponseSpec = session_snapshot()
        self.followup: Union[list[dict[str, Any]], httpx.Response] = followup_frames(
            "Thanks. ", "How did you measure success?"
        )
        self.progress: Union[list[dict[str, Any]], httpx.Response] = [
            progress_frame("parsing", 10),
            progress_frame("complete", 100, data={"topics": ["System Design"]}),
        ]
        self.start_gate: Optional[asyncio.Event] = None
        self.followup_gate: Optional[asyncio.Event] = None
        self.send_gate: Optional[asyncio.Event] = None
        self.end_gate: Optional[asyncio.Event] = None
        self.requests: list[tuple[str, Any]] = []

    @property
    def paths(self) -> list[str]:
        return [path for path, _ in self.requests]

    def calls_to(self, suffix: str) -> list[Any]:
        return [body for path, body in self.requests if path.endswith(suffix)]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def client(self) -> PracticeApiClient:
        return PracticeApiClient("http://practice.test", transport=self.transport())

    async def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if request.method == "GET":
            raw = request.url.params.get("input")
            body: Any = json.loads(raw) if raw else dict(request.url.params)
        else:
            body = json.loads(request.content or b"null")
        self.requests.append((path, body))

        if path.endswith("topicPractice.startSession"):
            await self._hold(self.start_gate)
            return self._trpc(self.start_result)
        if path.endswith("topicPractice.sendMessage"):
            await self._hold(self.send_gate)
            return self._trpc(self.send_result)
        if path.endswith("topicPractice.endSession"):
            await self._hold(self.end_gate)
            return self._trpc(self.end_result)
        if path.endswith("topicPractice.getSession"):
            return self._trpc(self.session_result)
        if path.endswith("optimized-followup"):
            await self._hold(self.followup_gate)
            return self._sse(self.followup)
        if path.endswith("interview-progress"):
            return self._sse(self.progress)
        return httpx.Response(404, text="not found")

    @staticmethod
    async def _hold(gate: Optional[asyncio.Event]) -> None:
        if gate is not None:
            await gate.wait()

    @staticmethod
    def _trpc(planned: ResponseSpec) -> httpx.Response:
        if isinstance(planned, httpx.Response):
            return planned
        return trpc_ok(planned)

    @staticmethod
    def _sse(planned: Union[list[dict[str, Any]], httpx.Response]) -> httpx.Response:
        if isinstance(planned, httpx.Response):
            return planned
        return sse_response(*planned)


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime(2026, 1, 15, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


async def wait_until(predicate, timeout: float = 2.0) -> None:
    """Yield to the loop until ``predicate()`` is true."""
    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0)

    await asyncio.wait_for(_poll(), timeout)
