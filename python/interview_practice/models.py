"""
Pydantic models for the interview practice client.

Defines the wire payloads exchanged with the practice backend (tRPC results,
progress events, follow-up stream frames) and the in-memory records owned by
the session controller. Wire models accept camelCase JSON and expose
snake_case attributes; dump them with ``by_alias=True`` to send them back.

Last Grunted: 10/19/2026
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def utc_timestamp() -> str:
    """Current UTC time as an ISO 8601 string with 'Z' suffix."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


# =============================================================================
# Enums
# =============================================================================


class Role(str, Enum):
    """Author of a conversation message."""

    USER = "user"
    ASSISTANT = "assistant"


class Difficulty(str, Enum):
    """Normalized topic difficulty."""

    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"


class ViewState(str, Enum):
    """Visible screen of the practice flow."""

    START = "start"
    RESUME = "resume"
    CHAT = "chat"
    FEEDBACK = "feedback"


class UserIntent(str, Enum):
    """
    Control intent detected in a user message.

    NONE covers ordinary answers. The backend sends "continue" for those,
    and anything it sends that is not listed here is treated the same way.
    """

    NONE = "none"
    SWITCH_TOPIC = "switch_topic"
    END_INTERVIEW = "end_interview"
    NEED_HINT = "need_hint"
    WANT_EASIER = "want_easier"
    WANT_HARDER = "want_harder"
    WANT_SPECIFIC = "want_specific"

    @classmethod
    def parse(cls, value: Any) -> "UserIntent":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                return cls.NONE
        return cls.NONE

    @property
    def needs_caller_action(self) -> bool:
        """Whether the owner of the turn must trigger a follow-up action."""
        return self in (
            UserIntent.SWITCH_TOPIC,
            UserIntent.END_INTERVIEW,
            UserIntent.NEED_HINT,
        )


class ProgressStep(str, Enum):
    """Known phases of the preparation progress stream."""

    PARSING = "parsing"
    SEARCHING_GLASSDOOR = "searching_glassdoor"
    SEARCHING_LEETCODE = "searching_leetcode"
    SEARCHING_TAVILY = "searching_tavily"
    EXTRACTING_KNOWLEDGE = "extracting_knowledge"
    GENERATING_PLAN = "generating_plan"
    COMPLETE = "complete"
    ERROR = "error"


class StepStatus(str, Enum):
    """Status of a simulated thinking step."""

    RUNNING = "running"
    COMPLETED = "completed"


class ThinkingPhase(str, Enum):
    """Coarse phase shown next to a simulated thinking step."""

    UNDERSTANDING = "understanding"
    ANALYZING = "analyzing"
    GENERATING = "generating"


class ThinkingContext(str, Enum):
    """Operation a thinking-step sequence is masking."""

    START = "start"
    MESSAGE = "message"
    END = "end"


# =============================================================================
# Wire Models
# =============================================================================


class WireModel(BaseModel):
    """Base for camelCase JSON payloads."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class Message(WireModel):
    """
    One committed turn of the conversation.

    Frozen: once appended to the history a message never changes.
    """

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str
    timestamp: str = Field(default_factory=utc_timestamp)


class CollectedInfoPoint(WireModel):
    """A piece of information the candidate has revealed about a topic."""

    type: str = ""
    summary: str = ""
    depth: int = Field(default=1, ge=0)
    needs_follow_up: bool = False


class TopicInfo(WireModel):
    """Topic as returned by the start-session call."""

    name: str
    difficulty: str = "medium"


class StartSessionResult(WireModel):
    """Result of topicPractice.startSession."""

    session_id: str
    topic: TopicInfo
    opening_message: str

    @field_validator("session_id", mode="before")
    @classmethod
    def _coerce_session_id(cls, value: Any) -> Any:
        # Backends may issue numeric ids.
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


class QuestionSource(WireModel):
    company: Optional[str] = None
    description: str = ""
    frequency: Optional[str] = None


class TargetAbility(WireModel):
    primary: str = ""
    secondary: list[str] = Field(default_factory=list)
    rationale: str = ""


class PerformanceAnalysis(WireModel):
    strengths: list[str] = Field(default_factory=list)
    gaps: list[str] = Field(default_factory=list)
    details: str = ""


class ImprovementSuggestions(WireModel):
    immediate: list[str] = Field(default_factory=list)
    long_term: list[str] = Field(default_factory=list)
    resources: list[str] = Field(default_factory=list)


class TopicFeedback(WireModel):
    """Per-topic feedback produced when a topic is closed or the session ends."""

    topic_id: str
    question_source: QuestionSource = Field(default_factory=QuestionSource)
    target_ability: TargetAbility = Field(default_factory=TargetAbility)
    performance_analysis: PerformanceAnalysis = Field(default_factory=PerformanceAnalysis)
    improvement_suggestions: ImprovementSuggestions = Field(
        default_factory=ImprovementSuggestions
    )
    score: float = Field(..., ge=0)


class CompanyMatch(WireModel):
    """A company/role recommended at the end of a session."""

    company: str
    job_title: Optional[str] = None
    linkedin_url: Optional[str] = None
    match_score: float = Field(..., ge=0)
    reasons: list[str] = Field(default_factory=list)
    key_skills: list[str] = Field(default_factory=list)
    preparation_tips: list[str] = Field(default_factory=list)


class SendMessageResult(WireModel):
    """Result of topicPractice.sendMessage (persistence path)."""

    collected_info: Optional[list[CollectedInfoPoint]] = None
    user_intent: Optional[UserIntent] = None
    feedback: Optional[TopicFeedback] = None

    @field_validator("user_intent", mode="before")
    @classmethod
    def _parse_intent(cls, value: Any) -> Any:
        if value is None:
            return None
        return UserIntent.parse(value)


class EndSessionResult(WireModel):
    """Result of topicPractice.endSession."""

    feedbacks: list[TopicFeedback] = Field(default_factory=list)
    company_matches: list[CompanyMatch] = Field(default_factory=list)
    overall_summary: str = ""


class TopicSnapshot(WireModel):
    name: str
    difficulty: str = "medium"
    collected_info: list[CollectedInfoPoint] = Field(default_factory=list)


class SessionSnapshot(WireModel):
    """Result of topicPractice.getSession."""

    session_id: str
    target_position: str = ""
    status: str = "active"
    current_topic: Optional[TopicSnapshot] = None
    completed_topics: list[str] = Field(default_factory=list)

    @field_validator("session_id", mode="before")
    @classmethod
    def _coerce_session_id(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


class ProgressEvent(WireModel):
    """
    One update from the preparation progress stream.

    ``step`` stays a plain string so that new ``searching_*`` sources do not
    break parsing; ``known_step`` maps it onto ProgressStep when possible.
    ``progress`` is clamped into 0-100 on receipt.
    """

    step: str
    message: str = ""
    detail: str = ""
    progress: int = 0
    data: Optional[dict[str, Any]] = None

    @field_validator("progress", mode="before")
    @classmethod
    def _clamp_progress(cls, value: Any) -> Any:
        if value is None:
            return 0
        if isinstance(value, bool):
            raise ValueError("progress must be a number")
        if isinstance(value, (int, float)):
            return max(0, min(100, int(value)))
        return value

    @property
    def known_step(self) -> Optional[ProgressStep]:
        try:
            return ProgressStep(self.step)
        except ValueError:
            return None

    @property
    def is_complete(self) -> bool:
        return self.step == ProgressStep.COMPLETE.value

    @property
    def is_error(self) -> bool:
        return self.step == ProgressStep.ERROR.value


class TopicContext(WireModel):
    """Conversation context sent to the optimized follow-up endpoint."""

    id: str
    name: str
    status: str = "collecting"
    started_at: str = Field(default_factory=utc_timestamp)
    messages: list[Message] = Field(default_factory=list)
    collected_info: list[CollectedInfoPoint] = Field(default_factory=list)
    target_skills: list[str] = Field(default_factory=list)


class FollowupStatus(WireModel):
    """Fast evaluation frame of the optimized follow-up stream."""

    status: Optional[str] = None
    special_intent: Optional[UserIntent] = None
    new_info_points: list[CollectedInfoPoint] = Field(default_factory=list)
    topic_complete: bool = False
    user_engagement: Optional[str] = None
    evaluation_time: Optional[float] = None

    @field_validator("special_intent", mode="before")
    @classmethod
    def _parse_intent(cls, value: Any) -> Any:
        if value is None:
            return None
        return UserIntent.parse(value)

    @field_validator("new_info_points", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return [] if value is None else value


# =============================================================================
# Client-side Records
# =============================================================================


@dataclass
class FollowupResult:
    """Outcome of one optimized follow-up turn."""

    content: str
    intent: UserIntent = UserIntent.NONE
    status: Optional[FollowupStatus] = None


@dataclass
class StreamingStep:
    """
    One simulated thinking step.

    Purely cosmetic: generated on the client and never sent anywhere.
    """

    id: str
    step: int
    status: StepStatus
    thought: str
    tool: str
    tool_display_name: str
    phase: ThinkingPhase
    start_time: float
    end_time: Optional[float] = None
    duration_ms: Optional[int] = None


class PracticeSession(BaseModel):
    """
    State of one practice conversation, owned by the session controller.

    ``messages`` is append-only while the session is active.

    Example:
        >>> session = PracticeSession(target_position="Backend Engineer")
        >>> session.session_id is None
        True
    """

    session_id: Optional[str] = None
    target_position: str = ""
    resume_text: Optional[str] = None
    current_topic: str = ""
    current_difficulty: Difficulty = Difficulty.MEDIUM
    collected_info: list[CollectedInfoPoint] = Field(default_factory=list)
    messages: list[Message] = Field(default_factory=list)
    feedbacks: list[TopicFeedback] = Field(default_factory=list)
    company_matches: list[CompanyMatch] = Field(default_factory=list)
    overall_summary: str = ""
    started_at: Optional[datetime] = None
    duration_seconds: Optional[int] = None
    is_ended: bool = False

    @property
    def is_active(self) -> bool:
        return self.session_id is not None and not self.is_ended

    @property
    def last_assistant_message(self) -> Optional[Message]:
        for message in reversed(self.messages):
            if message.role == Role.ASSISTANT:
                return message
        return None
