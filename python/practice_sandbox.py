"""
Practice Sandbox Backend

Scripted stand-in for the topic practice backend. Speaks the same wire
protocol as production (tRPC over HTTP plus two server-sent event streams)
so the client library, the Streamlit UI and the test-suite can run without
any AI service. Replies come from sandbox_content.py and simple keyword
rules instead of a model.

Endpoints:
    POST /api/trpc/topicPractice.startSession   - Start a practice session
    POST /api/trpc/topicPractice.sendMessage    - Persist a user turn
    POST /api/trpc/topicPractice.endSession     - End session, build feedback
    GET  /api/trpc/topicPractice.getSession     - Session snapshot (?input=)
    POST /api/topic-practice/optimized-followup - Evaluate + stream reply (SSE)
    GET  /api/interview-progress                - Preparation progress (SSE)
    GET  /health                                - Health check

Internal binding: configured by SANDBOX_HOST/SANDBOX_PORT (default 0.0.0.0:8766)
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import re
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Annotated, Any, AsyncIterator, Optional, TypedDict

import uvicorn
from fastapi import Depends, FastAPI, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from sandbox_content import (
    INFO_SIGNALS,
    INTENT_KEYWORDS,
    MIN_SUBSTANTIVE_WORDS,
    PREPARATION_PHASES,
    SANDBOX_COMPANIES,
    SANDBOX_TOPICS,
    TRANSITIONS,
    ScriptedTopic,
)

# =============================================================================
# Logging Configuration
# =============================================================================

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# =============================================================================
# Configuration
# =============================================================================


@dataclass(frozen=True)
class SandboxConfig:
    """Runtime config for the sandbox backend."""

    host: str
    port: int
    chunk_delay_seconds: float
    progress_delay_seconds: float


def load_sandbox_config() -> SandboxConfig:
    """Load sandbox config from environment with strict validation."""
    host = (os.environ.get("SANDBOX_HOST", "0.0.0.0") or "").strip()
    if not host:
        raise RuntimeError("SANDBOX_HOST resolved to empty value.")

    port_raw = (os.environ.get("SANDBOX_PORT", "8766") or "").strip()
    try:
        port = int(port_raw)
    except ValueError as exc:
        raise RuntimeError(f"SANDBOX_PORT must be an integer. Got: {port_raw}") from exc
    if port < 1 or port > 65535:
        raise RuntimeError(f"SANDBOX_PORT must be in range 1-65535. Got: {port}.")

    delays: dict[str, float] = {}
    for name, default in (("SANDBOX_CHUNK_DELAY", "0.01"), ("SANDBOX_PROGRESS_DELAY", "0.5")):
        raw = (os.environ.get(name, default) or "").strip()
        try:
            value = float(raw)
        except ValueError as exc:
            raise RuntimeError(f"{name} must be a number. Got: {raw}") from exc
        if value < 0:
            raise RuntimeError(f"{name} must be >= 0. Got: {value}.")
        delays[name] = value

    return SandboxConfig(
        host=host,
        port=port,
        chunk_delay_seconds=delays["SANDBOX_CHUNK_DELAY"],
        progress_delay_seconds=delays["SANDBOX_PROGRESS_DELAY"],
    )


SANDBOX_CONFIG = load_sandbox_config()
SERVICE_NAME = "Practice Sandbox"
SERVICE_VERSION = "1.0.0"
CHUNK_SIZE = 8

CORS_ORIGINS: list[str] = [
    "http://localhost:8501",  # Streamlit default
    "http://localhost:3000",
]

_CJK = re.compile(r"[一-鿿]")


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


# =============================================================================
# Request Models
# =============================================================================


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class StartSessionInput(CamelModel):
    target_position: str = Field(..., min_length=1)
    resume_text: Optional[str] = None


class SessionInput(CamelModel):
    session_id: str = Field(..., min_length=1)


class SendMessageInput(SessionInput):
    message: str = Field(..., min_length=1)


class FollowupRequest(CamelModel):
    user_message: str = Field(..., min_length=1)
    topic_context: dict[str, Any] = Field(default_factory=dict)
    target_position: str = ""
    resume_text: Optional[str] = None


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
    timestamp: str
    active_sessions: int


# =============================================================================
# Session State
# =============================================================================


@dataclass
class SandboxSession:
    """Server-side state of one scripted practice session."""

    session_id: str
    target_position: str
    resume_text: Optional[str]
    language: str
    topic_index: int = 0
    collected_info: list[dict[str, Any]] = field(default_factory=list)
    topic_answers: list[str] = field(default_factory=list)
    feedbacks: list[dict[str, Any]] = field(default_factory=list)
    completed_topics: list[str] = field(default_factory=list)
    ended: bool = False
    end_result: Optional[dict[str, Any]] = None

    @property
    def topic(self) -> ScriptedTopic:
        return SANDBOX_TOPICS[self.topic_index % len(SANDBOX_TOPICS)]


class AppStats(TypedDict):
    sessions_started: int
    messages_received: int
    followups_streamed: int
    progress_streams: int
    started_at: str


class AppState(TypedDict):
    sessions: dict[str, SandboxSession]
    stats: AppStats
    config: SandboxConfig


def get_initial_stats() -> AppStats:
    return AppStats(
        sessions_started=0,
        messages_received=0,
        followups_streamed=0,
        progress_streams=0,
        started_at=_utc_now(),
    )


# =============================================================================
# Custom Exceptions
# =============================================================================

# JSON-RPC style numeric codes used by tRPC error envelopes
_TRPC_NUMERIC_CODES = {
    "BAD_REQUEST": -32600,
    "NOT_FOUND": -32004,
    "INTERNAL_SERVER_ERROR": -32603,
}


class SandboxError(Exception):
    """Base exception for sandbox errors, rendered as a tRPC error envelope."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: str = "INTERNAL_SERVER_ERROR",
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        super().__init__(message)


class SessionNotFoundError(SandboxError):
    def __init__(self, session_id: str) -> None:
        super().__init__(
            message=f"Session not found: {session_id}",
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="NOT_FOUND",
        )


class InvalidInputError(SandboxError):
    def __init__(self, message: str) -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="BAD_REQUEST",
        )


def trpc_error(message: str, error_code: str, status_code: int) -> dict[str, Any]:
    return {
        "error": {
            "message": message,
            "code": _TRPC_NUMERIC_CODES.get(error_code, -32603),
            "data": {"code": error_code, "httpStatus": status_code},
        }
    }


def trpc_result(data: Any) -> dict[str, Any]:
    return {"result": {"data": data}}


# =============================================================================
# Dependencies
# =============================================================================


def get_app_state(request: Request) -> AppState:
    """
    Dependency to retrieve application state from request.

    Raises:
        RuntimeError: If state is not properly initialized.
    """
    state = getattr(request, "state", None)
    if state is None:
        raise RuntimeError("Application state not initialized")
    return AppState(sessions=state.sessions, stats=state.stats, config=state.config)


AppStateDep = Annotated[AppState, Depends(get_app_state)]


def require_session(state: AppState, session_id: str) -> SandboxSession:
    session = state["sessions"].get(session_id)
    if session is None:
        raise SessionNotFoundError(session_id)
    return session


# =============================================================================
# Scripted Behaviour
# =============================================================================


def detect_language(*texts: Optional[str]) -> str:
    return "zh" if any(text and _CJK.search(text) for text in texts) else "en"


def quick_intent_match(message: str) -> str:
    """Rule-based intent detection; returns "continue" when nothing matches."""
    lowered = message.lower()
    for intent, keywords in INTENT_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return intent
    return "continue"


def extract_info_points(message: str) -> list[dict[str, Any]]:
    """Turn a substantive answer into collected info points."""
    words = message.split()
    if len(words) < MIN_SUBSTANTIVE_WORDS and not _CJK.search(message):
        return []
    lowered = message.lower()
    points = [
        {
            "type": info_type,
            "summary": f"Mentioned {info_type}: {' '.join(words[:8])}",
            "depth": 2 if len(words) > 40 else 1,
            "needsFollowUp": False,
        }
        for info_type, signals in INFO_SIGNALS
        if any(signal in lowered for signal in signals)
    ]
    if not points:
        points.append(
            {
                "type": "experience",
                "summary": " ".join(words[:12]),
                "depth": 1,
                "needsFollowUp": True,
            }
        )
    return points


def build_feedback(session: SandboxSession) -> dict[str, Any]:
    topic = session.topic
    info_count = len(session.collected_info)
    strengths = sorted({point["type"] for point in session.collected_info})
    gaps = [
        info_type
        for info_type, _ in INFO_SIGNALS
        if info_type not in strengths
    ]
    return {
        "topicId": topic.topic_id,
        "questionSource": {"description": topic.source, "frequency": "high"},
        "targetAbility": {
            "primary": topic.primary_ability,
            "secondary": list(topic.secondary_abilities),
            "rationale": f"{topic.name} questions probe {topic.primary_ability.lower()}.",
        },
        "performanceAnalysis": {
            "strengths": [f"Covered {item}" for item in strengths],
            "gaps": [f"Add more {item}" for item in gaps],
            "details": f"{len(session.topic_answers)} answer(s), {info_count} info point(s) collected.",
        },
        "improvementSuggestions": {
            "immediate": ["Lead with the outcome, then explain how you got there."],
            "longTerm": [f"Collect two more stories that show {topic.primary_ability.lower()}."],
            "resources": [],
        },
        "score": min(100, 40 + 10 * info_count),
    }


def close_topic(session: SandboxSession) -> dict[str, Any]:
    """Record feedback for the current topic and advance to the next one."""
    feedback = build_feedback(session)
    session.feedbacks.append(feedback)
    session.completed_topics.append(session.topic.name)
    session.topic_index += 1
    session.collected_info = []
    session.topic_answers = []
    logger.info(
        "Session %s moved to topic %s", session.session_id, session.topic.name
    )
    return feedback


def compose_reply(
    intent: str,
    topic: ScriptedTopic,
    user_turns: int,
    substantive: bool,
    language: str,
) -> str:
    if intent == "want_easier":
        return TRANSITIONS[intent][language] + topic.easier
    if intent == "want_harder":
        return TRANSITIONS[intent][language] + topic.harder
    if intent == "want_specific":
        return TRANSITIONS[intent][language] + topic.specific
    if intent in TRANSITIONS:
        return TRANSITIONS[intent][language]

    question = topic.follow_ups[(max(user_turns, 1) - 1) % len(topic.follow_ups)]
    if substantive:
        lead = "谢谢，这很具体。" if language == "zh" else "Thanks, that's helpful. "
    else:
        lead = "能再具体一点吗？" if language == "zh" else "Could you be a bit more specific? "
    return lead + question


def topic_for_name(name: str) -> ScriptedTopic:
    for topic in SANDBOX_TOPICS:
        if topic.name == name:
            return topic
    return SANDBOX_TOPICS[0]


def sse_frame(payload: dict[str, Any]) -> str:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


async def followup_frames(request: FollowupRequest, delay: float) -> AsyncIterator[str]:
    """Fast evaluation frame, then the reply in chunks, then done."""
    started = asyncio.get_running_loop().time()
    context = request.topic_context or {}
    topic = topic_for_name(str(context.get("name") or ""))
    language = detect_language(request.user_message, request.target_position)
    messages = context.get("messages") or []
    user_turns = 1 + sum(1 for m in messages if isinstance(m, dict) and m.get("role") == "user")

    intent = quick_intent_match(request.user_message)
    new_points = extract_info_points(request.user_message) if intent == "continue" else []
    elapsed_ms = int((asyncio.get_running_loop().time() - started) * 1000)

    if intent == "continue":
        known = len(context.get("collectedInfo") or []) + len(new_points)
        yield sse_frame(
            {
                "type": "status",
                "status": "collected" if new_points else "collecting",
                "newInfoPoints": new_points,
                "topicComplete": known >= 8,
                "userEngagement": "high" if new_points else "medium",
                "evaluationTime": elapsed_ms,
            }
        )
    else:
        yield sse_frame(
            {"type": "status", "specialIntent": intent, "evaluationTime": elapsed_ms}
        )

    reply = compose_reply(intent, topic, user_turns, bool(new_points), language)
    for start in range(0, len(reply), CHUNK_SIZE):
        if delay > 0:
            await asyncio.sleep(delay)
        yield sse_frame({"type": "content", "content": reply[start : start + CHUNK_SIZE]})

    total_ms = int((asyncio.get_running_loop().time() - started) * 1000)
    yield sse_frame({"type": "done", "totalTime": total_ms})


async def progress_frames(dream_job: str, delay: float) -> AsyncIterator[str]:
    if not dream_job.strip():
        yield sse_frame(
            {
                "step": "error",
                "message": "Preparation failed",
                "detail": "dreamJob is required",
                "progress": 0,
            }
        )
        return

    for step, message, progress in PREPARATION_PHASES:
        yield sse_frame(
            {"step": step, "message": message, "detail": dream_job, "progress": progress}
        )
        if delay > 0:
            await asyncio.sleep(delay)

    yield sse_frame(
        {
            "step": "complete",
            "message": "Preparation complete",
            "detail": dream_job,
            "progress": 100,
            "data": {
                "dreamJob": dream_job,
                "topics": [topic.name for topic in SANDBOX_TOPICS],
                "questionCount": sum(len(topic.follow_ups) + 1 for topic in SANDBOX_TOPICS),
            },
        }
    )


# =============================================================================
# Exception Handlers
# =============================================================================


async def sandbox_error_handler(request: Request, exc: SandboxError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=trpc_error(exc.message, exc.error_code, exc.status_code),
    )


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"Invalid input: {location} {first.get('msg', '')}".strip()
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=trpc_error(message, "BAD_REQUEST", status.HTTP_400_BAD_REQUEST),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled exception: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=trpc_error(
            "Internal server error",
            "INTERNAL_SERVER_ERROR",
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        ),
    )


# =============================================================================
# FastAPI App Lifespan
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[dict[str, Any]]:
    """
    Manage application lifespan with type-safe state.

    Yields:
        Dictionary of application state to be attached to requests.
    """
    logger.info("Starting %s v%s", SERVICE_NAME, SERVICE_VERSION)
    logger.info(
        "Delays: chunk=%.3fs progress=%.3fs",
        SANDBOX_CONFIG.chunk_delay_seconds,
        SANDBOX_CONFIG.progress_delay_seconds,
    )
    sessions: dict[str, SandboxSession] = {}
    yield {"sessions": sessions, "stats": get_initial_stats(), "config": SANDBOX_CONFIG}
    logger.info("Shutting down... (%d session(s) discarded)", len(sessions))


# =============================================================================
# FastAPI Application
# =============================================================================


app = FastAPI(
    title=SERVICE_NAME,
    version=SERVICE_VERSION,
    description="Scripted topic practice backend for local development and tests",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
    max_age=3600,
)

app.add_exception_handler(SandboxError, sandbox_error_handler)
app.add_exception_handler(RequestValidationError, validation_error_handler)
app.add_exception_handler(Exception, generic_exception_handler)


# =============================================================================
# Endpoints
# =============================================================================


@app.post("/api/trpc/topicPractice.startSession")
async def start_session(payload: StartSessionInput, state: AppStateDep) -> dict[str, Any]:
    """Create a session on the first scripted topic."""
    session = SandboxSession(
        session_id=f"tp_{uuid.uuid4().hex[:12]}",
        target_position=payload.target_position.strip(),
        resume_text=payload.resume_text,
        language=detect_language(payload.target_position),
    )
    state["sessions"][session.session_id] = session
    state["stats"]["sessions_started"] += 1
    topic = session.topic
    logger.info(
        "Session started: id=%s position=%s topic=%s",
        session.session_id,
        session.target_position,
        topic.name,
    )
    return trpc_result(
        {
            "sessionId": session.session_id,
            "topic": {"name": topic.name, "difficulty": topic.difficulty},
            "openingMessage": topic.opening,
        }
    )


@app.post("/api/trpc/topicPractice.sendMessage")
async def send_message(payload: SendMessageInput, state: AppStateDep) -> dict[str, Any]:
    """Persist a user turn: update collected info and handle topic switches."""
    session = require_session(state, payload.session_id)
    if session.ended:
        raise InvalidInputError("Session has already ended")
    state["stats"]["messages_received"] += 1

    intent = quick_intent_match(payload.message)
    data: dict[str, Any] = {"userIntent": intent}
    if intent == "continue":
        session.topic_answers.append(payload.message)
        session.collected_info.extend(extract_info_points(payload.message))
        data["collectedInfo"] = list(session.collected_info)
    elif intent == "switch_topic":
        data["feedback"] = close_topic(session)
        data["collectedInfo"] = []
    logger.info("Turn persisted: session=%s intent=%s", session.session_id, intent)
    return trpc_result(data)


@app.post("/api/trpc/topicPractice.endSession")
async def end_session(payload: SessionInput, state: AppStateDep) -> dict[str, Any]:
    """End the session. Repeated calls return the same result."""
    session = require_session(state, payload.session_id)
    if session.end_result is None:
        feedbacks = list(session.feedbacks)
        if session.topic_answers:
            feedbacks.append(build_feedback(session))
        average = sum(item["score"] for item in feedbacks) / len(feedbacks) if feedbacks else 0
        session.ended = True
        session.end_result = {
            "feedbacks": feedbacks,
            "companyMatches": list(SANDBOX_COMPANIES),
            "overallSummary": (
                f"Practiced {len(feedbacks)} topic(s) for {session.target_position} "
                f"with an average score of {average:.0f}."
            ),
        }
        logger.info("Session ended: id=%s feedbacks=%d", session.session_id, len(feedbacks))
    return trpc_result(session.end_result)


@app.get("/api/trpc/topicPractice.getSession")
async def get_session(
    state: AppStateDep,
    input: str = Query(..., description="JSON-encoded procedure input"),
) -> dict[str, Any]:
    """Snapshot of the session and its current topic."""
    try:
        payload = SessionInput.model_validate(json.loads(input))
    except (json.JSONDecodeError, ValidationError) as exc:
        raise InvalidInputError(f"Invalid input: {exc}") from exc

    session = require_session(state, payload.session_id)
    topic = session.topic
    return trpc_result(
        {
            "sessionId": session.session_id,
            "targetPosition": session.target_position,
            "status": "ended" if session.ended else "active",
            "currentTopic": {
                "name": topic.name,
                "difficulty": topic.difficulty,
                "collectedInfo": list(session.collected_info),
            },
            "completedTopics": list(session.completed_topics),
        }
    )


@app.post("/api/topic-practice/optimized-followup")
async def optimized_followup(payload: FollowupRequest, state: AppStateDep) -> StreamingResponse:
    """Two-phase follow-up: status frame first, then the streamed reply."""
    state["stats"]["followups_streamed"] += 1
    return StreamingResponse(
        followup_frames(payload, state["config"].chunk_delay_seconds),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache"},
    )


@app.get("/api/interview-progress")
async def interview_progress(
    state: AppStateDep,
    dream_job: str = Query("", alias="dreamJob"),
) -> StreamingResponse:
    """Scripted preparation progress ending in a complete event."""
    state["stats"]["progress_streams"] += 1
    return StreamingResponse(
        progress_frames(dream_job, state["config"].progress_delay_seconds),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache"},
    )


@app.get("/health", response_model=HealthResponse)
async def health(state: AppStateDep) -> HealthResponse:
    return HealthResponse(
        status="healthy",
        service=SERVICE_NAME,
        version=SERVICE_VERSION,
        timestamp=_utc_now(),
        active_sessions=sum(1 for s in state["sessions"].values() if not s.ended),
    )


# =============================================================================
# Main Entry Point
# =============================================================================

if __name__ == "__main__":
    logger.info("=" * 60)
    logger.info("%s v%s", SERVICE_NAME, SERVICE_VERSION)
    logger.info("=" * 60)
    logger.info("Binding to: http://%s:%d", SANDBOX_CONFIG.host, SANDBOX_CONFIG.port)
    logger.info("")
    logger.info("Endpoints:")
    logger.info("  POST /api/trpc/topicPractice.startSession")
    logger.info("  POST /api/trpc/topicPractice.sendMessage")
    logger.info("  POST /api/trpc/topicPractice.endSession")
    logger.info("  GET  /api/trpc/topicPractice.getSession")
    logger.info("  POST /api/topic-practice/optimized-followup")
    logger.info("  GET  /api/interview-progress")
    logger.info("  GET  /health")
    logger.info("=" * 60)

    uvicorn.run(
        app,
        host=SANDBOX_CONFIG.host,
        port=SANDBOX_CONFIG.port,
        log_level="info",
    )
