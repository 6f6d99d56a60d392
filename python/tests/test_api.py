"""
Tests for PracticeApiClient: tRPC envelopes, error mapping and streaming.

Last Grunted: 10/19/2026
"""

from __future__ import annotations

import json

import httpx
import pytest

from interview_practice import (
    BackendError,
    PracticeApiClient,
    ProtocolError,
    TransportError,
    UserIntent,
)
from interview_practice.api import OPTIMIZED_FOLLOWUP_PATH, PROGRESS_PATH, TRPC_PREFIX
from tests.mock_data import (
    END_RESULT,
    SESSION_ID,
    START_RESULT,
    ScriptedBackend,
    info_point,
    session_snapshot,
    trpc_error,
    trpc_ok,
)


def api_for(handler) -> PracticeApiClient:
    return PracticeApiClient("http://practice.test", transport=httpx.MockTransport(handler))


# =============================================================================
# tRPC Procedures
# =============================================================================


class TestProcedures:
    """Tests for the four session procedures."""

    @pytest.mark.asyncio
    async def test_start_session(self) -> None:
        backend = ScriptedBackend()
        async with backend.client() as api:
            result = await api.start_session("Backend Engineer")

        assert result.session_id == SESSION_ID
        assert result.topic.name == "System Design"
        assert result.opening_message == START_RESULT["openingMessage"]
        assert backend.requests == [
            (f"{TRPC_PREFIX}.startSession", {"targetPosition": "Backend Engineer"})
        ]

    @pytest.mark.asyncio
    async def test_numeric_session_id_coerced(self) -> None:
        backend = ScriptedBackend()
        backend.start_result = {**START_RESULT, "sessionId": 42}
        async with backend.client() as api:
            result = await api.start_session("Backend Engineer")
        assert result.session_id == "42"

    @pytest.mark.asyncio
    async def test_send_message_parses_intent_and_info(self) -> None:
        backend = ScriptedBackend()
        backend.send_result = {
            "userIntent": "continue",
            "collectedInfo": [info_point("Led Kafka migration", "ownership", 2)],
        }
        async with backend.client() as api:
            result = await api.send_message(SESSION_ID, "answer")

        assert result.user_intent == UserIntent.NONE
        assert result.collected_info is not None
        assert result.collected_info[0].type == "ownership"
        assert result.collected_info[0].depth == 2
        assert result.feedback is None

    @pytest.mark.asyncio
    async def test_unknown_intent_treated_as_none(self) -> None:
        backend = ScriptedBackend()
        backend.send_result = {"userIntent": "dance"}
        async with backend.client() as api:
            result = await api.send_message(SESSION_ID, "answer")
        assert result.user_intent == UserIntent.NONE
        assert result.collected_info is None

    @pytest.mark.asyncio
    async def test_end_session(self) -> None:
        backend = ScriptedBackend()
        async with backend.client() as api:
            result = await api.end_session(SESSION_ID)

        assert len(result.feedbacks) == 1
        assert result.feedbacks[0].improvement_suggestions.long_term == [
            "Study consistency models"
        ]
        assert result.company_matches[0].match_score == 86
        assert result.overall_summary == END_RESULT["overallSummary"]

    @pytest.mark.asyncio
    async def test_get_session_sends_json_input(self) -> None:
        """Queries carry their input as a JSON query parameter."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return trpc_ok(session_snapshot())

        async with api_for(handler) as api:
            snapshot = await api.get_session(SESSION_ID)

        assert seen[0].method == "GET"
        assert json.loads(seen[0].url.params["input"]) == {"sessionId": SESSION_ID}
        assert snapshot.current_topic is not None
        assert snapshot.current_topic.name == "Production Debugging"

    @pytest.mark.asyncio
    async def test_superjson_payload_unwrapped(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"result": {"data": {"json": START_RESULT}}})

        async with api_for(handler) as api:
            result = await api.start_session("Backend Engineer")
        assert result.session_id == SESSION_ID

    @pytest.mark.asyncio
    async def test_auth_token_sent_as_bearer(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return trpc_ok(START_RESULT)

        api = PracticeApiClient(
            "http://practice.test/",
            auth_token="secret",
            transport=httpx.MockTransport(handler),
        )
        async with api:
            await api.start_session("Backend Engineer", "My resume")

        assert seen[0].headers["Authorization"] == "Bearer secret"
        assert json.loads(seen[0].content)["resumeText"] == "My resume"


# =============================================================================
# Error Mapping
# =============================================================================


class TestErrors:
    """Tests for mapping failures onto the client error taxonomy."""

    @pytest.mark.asyncio
    async def test_error_envelope_raises_backend_error(self) -> None:
        async with api_for(lambda r: trpc_error("NOT_FOUND", "Session missing", 404)) as api:
            with pytest.raises(BackendError) as exc_info:
                await api.end_session(SESSION_ID)

        assert exc_info.value.code == "NOT_FOUND"
        assert exc_info.value.backend_message == "Session missing"
        assert exc_info.value.operation == "topicPractice.endSession"

    @pytest.mark.asyncio
    async def test_non_json_error_status_is_transport_error(self) -> None:
        async with api_for(lambda r: httpx.Response(502, text="Bad Gateway")) as api:
            with pytest.raises(TransportError) as exc_info:
                await api.start_session("Backend Engineer")
        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_connection_failure_is_transport_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        async with api_for(handler) as api:
            with pytest.raises(TransportError) as exc_info:
                await api.send_message(SESSION_ID, "hi")
        assert exc_info.value.status_code is None
        assert "refused" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_missing_envelope_is_protocol_error(self) -> None:
        async with api_for(lambda r: httpx.Response(200, json={"sessionId": "x"})) as api:
            with pytest.raises(ProtocolError):
                await api.start_session("Backend Engineer")

    @pytest.mark.asyncio
    async def test_invalid_payload_is_protocol_error(self) -> None:
        """A result missing required fields fails validation at the boundary."""
        async with api_for(lambda r: trpc_ok({"sessionId": "x"})) as api:
            with pytest.raises(ProtocolError) as exc_info:
                await api.start_session("Backend Engineer")
        assert "malformed payload" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_negative_score_rejected(self) -> None:
        bad = {"feedbacks": [{"topicId": "t", "score": -5}]}
        async with api_for(lambda r: trpc_ok(bad)) as api:
            with pytest.raises(ProtocolError):
                await api.end_session(SESSION_ID)

    @pytest.mark.asyncio
    async def test_non_json_success_is_protocol_error(self) -> None:
        async with api_for(lambda r: httpx.Response(200, text="<html>")) as api:
            with pytest.raises(ProtocolError):
                await api.get_session(SESSION_ID)


# =============================================================================
# Streaming
# =============================================================================


class TestStreaming:
    """Tests for the raw streaming helpers."""

    @pytest.mark.asyncio
    async def test_stream_error_status(self) -> None:
        async with api_for(lambda r: httpx.Response(503, text="busy")) as api:
            with pytest.raises(TransportError) as exc_info:
                async with api.followup_stream({"userMessage": "hi"}):
                    pass
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_progress_stream_request(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, content=b"data: {}\n\n")

        async with api_for(handler) as api:
            async with api.progress_stream("Data Engineer") as response:
                body = await response.aread()

        assert seen[0].url.path == PROGRESS_PATH
        assert seen[0].url.params["dreamJob"] == "Data Engineer"
        assert seen[0].headers["Accept"] == "text/event-stream"
        assert body == b"data: {}\n\n"
        assert seen[0].extensions["timeout"]["read"] is None

    @pytest.mark.asyncio
    async def test_followup_stream_posts_json(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, content=b"")

        async with api_for(handler) as api:
            async with api.followup_stream({"userMessage": "hi"}):
                pass

        assert seen[0].method == "POST"
        assert seen[0].url.path == OPTIMIZED_FOLLOWUP_PATH
        assert json.loads(seen[0].content) == {"userMessage": "hi"}

    @pytest.mark.asyncio
    async def test_followup_stream_keeps_read_timeout(self) -> None:
        """A stalled reply must fail instead of holding the turn forever."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, content=b"")

        api = PracticeApiClient(
            "http://practice.test", timeout=5.0, transport=httpx.MockTransport(handler)
        )
        async with api:
            async with api.followup_stream({"userMessage": "hi"}):
                pass

        assert seen[0].extensions["timeout"]["read"] == 5.0

    @pytest.mark.asyncio
    async def test_borrowed_client_not_closed(self) -> None:
        client = httpx.AsyncClient(
            base_url="http://practice.test",
            transport=httpx.MockTransport(lambda r: trpc_ok(START_RESULT)),
        )
        async with PracticeApiClient("ignored", client=client) as api:
            await api.start_session("Backend Engineer")
        assert client.is_closed is False
        await client.aclose()
