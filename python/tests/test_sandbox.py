"""
FastAPI endpoint tests for the Practice Sandbox backend.

Tests the tRPC procedures and both SSE endpoints using httpx AsyncClient
with lifespan management via asgi-lifespan, then runs the real client
stack end to end against the sandbox.

Last Grunted: 10/19/2026
"""

from __future__ import annotations

import json
import os
from typing import Any, AsyncIterator

import pytest
import pytest_asyncio
from asgi_lifespan import LifespanManager
from httpx import ASGITransport, AsyncClient

from interview_practice import (
    PracticeApiClient,
    PracticeSessionController,
    ProgressStreamReader,
    Role,
    UserIntent,
    ViewState,
)

os.environ.setdefault("SANDBOX_CHUNK_DELAY", "0")
os.environ.setdefault("SANDBOX_PROGRESS_DELAY", "0")

SUBSTANTIVE_ANSWER = (
    "I led the migration of our billing service to Kafka and reduced p99 "
    "latency by 40% for two million users"
)


# =============================================================================
# Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def manager() -> AsyncIterator[LifespanManager]:
    """Run the sandbox app with its lifespan so request state is initialized."""
    from practice_sandbox import app

    async with LifespanManager(app) as manager:
        yield manager


@pytest_asyncio.fixture
async def client(manager: LifespanManager) -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=manager.app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def trpc(client: AsyncClient, procedure: str, payload: dict[str, Any]) -> dict[str, Any]:
    response = await client.post(f"/api/trpc/topicPractice.{procedure}", json=payload)
    assert response.status_code == 200, response.text
    return response.json()["result"]["data"]


async def start(client: AsyncClient) -> str:
    data = await trpc(client, "startSession", {"targetPosition": "Backend Engineer"})
    return data["sessionId"]


def parse_sse(body: str) -> list[dict[str, Any]]:
    return [
        json.loads(line[len("data: "):])
        for line in body.splitlines()
        if line.startswith("data: ")
    ]


# =============================================================================
# Health Check Tests
# =============================================================================


class TestHealthEndpoint:
    """Tests for /health endpoint."""

    @pytest.mark.asyncio
    async def test_health_returns_healthy(self, client: AsyncClient) -> None:
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "Practice Sandbox"
        assert data["active_sessions"] == 0
        assert "timestamp" in data


# =============================================================================
# tRPC Procedure Tests
# =============================================================================


class TestStartSession:
    """Tests for topicPractice.startSession."""

    @pytest.mark.asyncio
    async def test_start_session_success(self, client: AsyncClient) -> None:
        data = await trpc(client, "startSession", {"targetPosition": "Backend Engineer"})

        assert data["sessionId"].startswith("tp_")
        assert data["topic"] == {"name": "System Design", "difficulty": "medium"}
        assert data["openingMessage"].startswith("Tell me about a time")

        health = (await client.get("/health")).json()
        assert health["active_sessions"] == 1

    @pytest.mark.asyncio
    async def test_start_session_requires_position(self, client: AsyncClient) -> None:
        """Validation failures use the tRPC error envelope."""
        response = await client.post(
            "/api/trpc/topicPractice.startSession", json={"targetPosition": ""}
        )

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["data"] == {"code": "BAD_REQUEST", "httpStatus": 400}
        assert "targetPosition" in error["message"]


class TestSendMessage:
    """Tests for topicPractice.sendMessage."""

    @pytest.mark.asyncio
    async def test_unknown_session(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/trpc/topicPractice.sendMessage",
            json={"sessionId": "tp_missing", "message": "hi"},
        )

        assert response.status_code == 404
        assert response.json()["error"]["data"]["code"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_substantive_answer_collects_info(self, client: AsyncClient) -> None:
        session_id = await start(client)

        data = await trpc(
            client, "sendMessage", {"sessionId": session_id, "message": SUBSTANTIVE_ANSWER}
        )

        assert data["userIntent"] == "continue"
        types = {point["type"] for point in data["collectedInfo"]}
        assert types == {"metric", "ownership", "technology", "outcome"}

    @pytest.mark.asyncio
    async def test_short_answer_collects_nothing(self, client: AsyncClient) -> None:
        session_id = await start(client)

        data = await trpc(client, "sendMessage", {"sessionId": session_id, "message": "Yes."})
        assert data["collectedInfo"] == []

    @pytest.mark.asyncio
    async def test_switch_topic_returns_feedback(self, client: AsyncClient) -> None:
        session_id = await start(client)
        await trpc(client, "sendMessage", {"sessionId": session_id, "message": SUBSTANTIVE_ANSWER})

        data = await trpc(
            client, "sendMessage", {"sessionId": session_id, "message": "Can we switch?"}
        )

        assert data["userIntent"] == "switch_topic"
        assert data["feedback"]["topicId"] == "system_design"
        assert data["feedback"]["score"] == 80
        assert data["collectedInfo"] == []

        response = await client.get(
            "/api/trpc/topicPractice.getSession",
            params={"input": json.dumps({"sessionId": session_id})},
        )
        snapshot = response.json()["result"]["data"]
        assert snapshot["currentTopic"]["name"] == "Production Debugging"
        assert snapshot["completedTopics"] == ["System Design"]

    @pytest.mark.asyncio
    async def test_chinese_intent_keywords(self, client: AsyncClient) -> None:
        session_id = await start(client)
        data = await trpc(
            client, "sendMessage", {"sessionId": session_id, "message": "我们换个话题吧"}
        )
        assert data["userIntent"] == "switch_topic"


class TestEndAndGetSession:
    """Tests for topicPractice.endSession and topicPractice.getSession."""

    @pytest.mark.asyncio
    async def test_end_session(self, client: AsyncClient) -> None:
        session_id = await start(client)
        await trpc(client, "sendMessage", {"sessionId": session_id, "message": SUBSTANTIVE_ANSWER})

        data = await trpc(client, "endSession", {"sessionId": session_id})

        assert [f["topicId"] for f in data["feedbacks"]] == ["system_design"]
        assert len(data["companyMatches"]) == 2
        assert "Backend Engineer" in data["overallSummary"]

    @pytest.mark.asyncio
    async def test_end_session_idempotent_and_terminal(self, client: AsyncClient) -> None:
        session_id = await start(client)
        first = await trpc(client, "endSession", {"sessionId": session_id})
        second = await trpc(client, "endSession", {"sessionId": session_id})
        assert first == second

        response = await client.post(
            "/api/trpc/topicPractice.sendMessage",
            json={"sessionId": session_id, "message": "more"},
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_get_session_invalid_input(self, client: AsyncClient) -> None:
        response = await client.get(
            "/api/trpc/topicPractice.getSession", params={"input": "{not json"}
        )
        assert response.status_code == 400
        assert response.json()["error"]["data"]["code"] == "BAD_REQUEST"


# =============================================================================
# SSE Endpoint Tests
# =============================================================================


class TestOptimizedFollowup:
    """Tests for POST /api/topic-practice/optimized-followup."""

    async def followup(self, client: AsyncClient, message: str) -> list[dict[str, Any]]:
        response = await client.post(
            "/api/topic-practice/optimized-followup",
            json={
                "userMessage": message,
                "topicContext": {"name": "System Design", "messages": []},
                "targetPosition": "Backend Engineer",
            },
        )
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        return parse_sse(response.text)

    @pytest.mark.asyncio
    async def test_normal_answer_frames(self, client: AsyncClient) -> None:
        """Status first, then content chunks, then done."""
        frames = await self.followup(client, SUBSTANTIVE_ANSWER)

        assert frames[0]["type"] == "status"
        assert len(frames[0]["newInfoPoints"]) == 4
        assert frames[-1]["type"] == "done"
        assert {f["type"] for f in frames[1:-1]} == {"content"}
        text = "".join(f["content"] for f in frames[1:-1])
        assert text == (
            "Thanks, that's helpful. "
            "How did you decide where to draw the service boundaries?"
        )

    @pytest.mark.asyncio
    async def test_want_easier(self, client: AsyncClient) -> None:
        frames = await self.followup(client, "That's too hard for me")

        assert frames[0]["type"] == "status"
        assert frames[0]["specialIntent"] == "want_easier"
        text = "".join(f["content"] for f in frames if f["type"] == "content")
        assert text.startswith("Sure, let me ask something more basic: ")

    @pytest.mark.asyncio
    async def test_end_interview(self, client: AsyncClient) -> None:
        frames = await self.followup(client, "I'd like to stop here")

        assert frames[0]["specialIntent"] == "end_interview"
        text = "".join(f["content"] for f in frames if f["type"] == "content")
        assert text == "Thanks, let's wrap up."


class TestInterviewProgress:
    """Tests for GET /api/interview-progress."""

    @pytest.mark.asyncio
    async def test_progress_phases_then_complete(self, client: AsyncClient) -> None:
        response = await client.get(
            "/api/interview-progress", params={"dreamJob": "Backend Engineer"}
        )

        events = parse_sse(response.text)
        progress = [e["progress"] for e in events]
        assert progress == sorted(progress)
        assert events[0]["step"] == "parsing"
        assert events[-1]["step"] == "complete"
        assert events[-1]["data"]["dreamJob"] == "Backend Engineer"

    @pytest.mark.asyncio
    async def test_missing_dream_job(self, client: AsyncClient) -> None:
        response = await client.get("/api/interview-progress")

        [event] = parse_sse(response.text)
        assert event["step"] == "error"
        assert event["detail"] == "dreamJob is required"


# =============================================================================
# End-to-End Tests
# =============================================================================


class TestClientAgainstSandbox:
    """Runs the client library against the sandbox app in-process."""

    @pytest.mark.asyncio
    async def test_full_practice_flow(self, manager: LifespanManager) -> None:
        """start -> answer -> switch topic -> continue -> end."""
        api = PracticeApiClient("http://test", transport=ASGITransport(app=manager.app))
        async with api:
            controller = PracticeSessionController(api, user_id="u1", thinking_time_scale=0)

            assert await controller.start_session("Backend Engineer")
            assert controller.session.current_topic == "System Design"

            assert await controller.send_message(SUBSTANTIVE_ANSWER)
            assert controller.messages[-1].content.startswith("Thanks, that's helpful.")

            assert await controller.send_message("Can we move on to another topic?")
            assert controller.view_state == ViewState.FEEDBACK
            session = controller.session
            assert session.current_topic == "Production Debugging"
            assert [f.topic_id for f in session.feedbacks] == ["system_design"]

            assert await controller.continue_practice()
            assert await controller.send_message("I want to stop now")

            assert controller.view_state == ViewState.FEEDBACK
            assert controller.is_ended is True
            assert controller.session.company_matches
            assert controller.duration_display is not None
            roles = [m.role for m in controller.messages]
            assert roles.count(Role.USER) == 3
            assert roles.count(Role.ASSISTANT) == 4

    @pytest.mark.asyncio
    async def test_progress_reader_against_sandbox(self, manager: LifespanManager) -> None:
        completed: list[dict[str, Any]] = []
        api = PracticeApiClient("http://test", transport=ASGITransport(app=manager.app))
        async with api:
            reader = ProgressStreamReader(api, "Data Engineer", on_complete=completed.append)
            await reader.run()

        assert reader.display_progress == 100
        assert completed[0]["topics"] == [
            "System Design",
            "Production Debugging",
            "Team Collaboration",
        ]

    @pytest.mark.asyncio
    async def test_sendmessage_intent_parsed_by_client(self, manager: LifespanManager) -> None:
        api = PracticeApiClient("http://test", transport=ASGITransport(app=manager.app))
        async with api:
            started = await api.start_session("Backend Engineer")
            result = await api.send_message(started.session_id, "I need a hint")
        assert result.user_intent == UserIntent.NEED_HINT
