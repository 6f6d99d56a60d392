"""
Interview Practice Client Package.

Async client for topic-based mock interview practice: drives a practice
session against the practice backend, streams follow-up questions and
preparation progress, and publishes UI events.

Components:
    - PracticeSessionController: View state machine and message history owner
    - PracticeApiClient: tRPC/SSE client for the practice backend
    - OptimizedFollowupStreamer: Two-phase (evaluate, then stream) reply client
    - ProgressStreamReader: Preparation progress SSE reader
    - ThinkingStepSimulator: Cosmetic thinking steps masking latency
    - SessionEventPublisher: In-memory pub/sub of session events for UIs
    - Indicators: Depth level, difficulty badge and duration formatting

Example:
    >>> from interview_practice import PracticeApiClient, PracticeSessionController
    >>>
    >>> async with PracticeApiClient("http://127.0.0.1:8766") as api:
    ...     controller = PracticeSessionController(api, user_id="u1")
    ...     await controller.start_session("Backend Engineer")
    ...     await controller.send_message("I led the migration to Kafka...")
    ...     await controller.end_session()
"""

from .api import PracticeApiClient
from .config import PracticeConfig, load_practice_config
from .controller import PracticeSessionController
from .errors import (
    BackendError,
    PracticeClientError,
    ProtocolError,
    StreamError,
    TransportError,
)
from .followup import OptimizedFollowupStreamer
from .i18n import Language
from .indicators import (
    DifficultyBadge,
    depth_label,
    depth_level,
    difficulty_badge,
    format_duration,
    normalize_difficulty,
)
from .models import (
    CollectedInfoPoint,
    CompanyMatch,
    Difficulty,
    EndSessionResult,
    FollowupResult,
    FollowupStatus,
    Message,
    PracticeSession,
    ProgressEvent,
    ProgressStep,
    Role,
    SendMessageResult,
    SessionSnapshot,
    StartSessionResult,
    StepStatus,
    StreamingStep,
    ThinkingContext,
    ThinkingPhase,
    TopicContext,
    TopicFeedback,
    UserIntent,
    ViewState,
)
from .progress import CONNECTION_LOST, ProgressStreamReader
from .pubsub import (
    NotificationLevel,
    SessionEvent,
    SessionEventPublisher,
    SessionEventType,
)
from .thinking import DEFAULT_THINKING_PLAN, ThinkingStepSimulator, ThinkingStepSpec

__version__ = "1.0.0"

__all__ = [
    # Controller and clients
    "PracticeSessionController",
    "PracticeApiClient",
    "OptimizedFollowupStreamer",
    "ProgressStreamReader",
    "ThinkingStepSimulator",
    "ThinkingStepSpec",
    "DEFAULT_THINKING_PLAN",
    "CONNECTION_LOST",
    # Events
    "SessionEventPublisher",
    "SessionEvent",
    "SessionEventType",
    "NotificationLevel",
    # Config
    "PracticeConfig",
    "load_practice_config",
    "Language",
    # Errors
    "PracticeClientError",
    "TransportError",
    "BackendError",
    "ProtocolError",
    "StreamError",
    # Indicators
    "DifficultyBadge",
    "depth_level",
    "depth_label",
    "difficulty_badge",
    "normalize_difficulty",
    "format_duration",
    # Models
    "CollectedInfoPoint",
    "CompanyMatch",
    "Difficulty",
    "EndSessionResult",
    "FollowupResult",
    "FollowupStatus",
    "Message",
    "PracticeSession",
    "ProgressEvent",
    "ProgressStep",
    "Role",
    "SendMessageResult",
    "SessionSnapshot",
    "StartSessionResult",
    "StepStatus",
    "StreamingStep",
    "ThinkingContext",
    "ThinkingPhase",
    "TopicContext",
    "TopicFeedback",
    "UserIntent",
    "ViewState",
]
