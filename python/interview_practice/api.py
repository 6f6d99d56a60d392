"""
HTTP client for the topic practice backend.

Speaks tRPC over HTTP for the session procedures and opens raw streaming
responses for the two server-sent event endpoints:

    POST /api/trpc/topicPractice.startSession    - mutation
    POST /api/trpc/topicPractice.sendMessage     - mutation
    POST /api/trpc/topicPractice.endSession      - mutation
    GET  /api/trpc/topicPractice.getSession      - query (?input=<json>)
    POST /api/topic-practice/optimized-followup  - SSE
    GET  /api/interview-progress?dreamJob=...    - SSE

Every response is validated into a typed result model at this boundary.
Failures surface as TransportError, BackendError or ProtocolError.

Last Grunted: 10/19/2026
"""

from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from .errors import BackendError, ProtocolError, TransportError
from .models import (
    EndSessionResult,
    SendMessageResult,
    SessionSnapshot,
    StartSessionResult,
)

logger = logging.getLogger(__name__)

TRPC_PREFIX = "/api/trpc/topicPractice"
OPTIMIZED_FOLLOWUP_PATH = "/api/topic-practice/optimized-followup"
PROGRESS_PATH = "/api/interview-progress"

ResultT = TypeVar("ResultT", bound=BaseModel)


class PracticeApiClient:
    """
    Async client for the practice backend.

    Wraps a single httpx.AsyncClient. Pass ``transport`` (for example an
    ``httpx.ASGITransport``) to talk to an in-process app, or ``client`` to
    reuse an existing AsyncClient, which is then not closed by aclose().

    Example:
        async with PracticeApiClient("http://127.0.0.1:8766") as api:
            result = await api.start_session("Backend Engineer")
            print(result.session_id, result.topic.name)
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        auth_token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        if auth_token:
            headers["Authorization"] = f"Bearer {auth_token}"

        if client is not None:
            self._client = client
            self._owns_client = False
            client.headers.update(headers)
        else:
            self._client = httpx.AsyncClient(
                base_url=base_url.rstrip("/"),
                timeout=httpx.Timeout(timeout),
                headers=headers,
                transport=transport,
            )
            self._owns_client = True
        self._timeout = timeout
        logger.debug("PracticeApiClient initialized: base_url=%s", self._client.base_url)

    async def __aenter__(self) -> "PracticeApiClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # -------------------------------------------------------------------------
    # Session procedures
    # -------------------------------------------------------------------------

    async def start_session(
        self,
        target_position: str,
        resume_text: Optional[str] = None,
    ) -> StartSessionResult:
        payload: dict[str, Any] = {"targetPosition": target_position}
        if resume_text:
            payload["resumeText"] = resume_text
        return await self._mutation("startSession", payload, StartSessionResult)

    async def send_message(self, session_id: str, message: str) -> SendMessageResult:
        payload = {"sessionId": session_id, "message": message}
        return await self._mutation("sendMessage", payload, SendMessageResult)

    async def end_session(self, session_id: str) -> EndSessionResult:
        return await self._mutation("endSession", {"sessionId": session_id}, EndSessionResult)

    async def get_session(self, session_id: str) -> SessionSnapshot:
        return await self._query("getSession", {"sessionId": session_id}, SessionSnapshot)

    # -------------------------------------------------------------------------
    # Streaming
    # -------------------------------------------------------------------------

    @asynccontextmanager
    async def stream(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        **kwargs: Any,
    ) -> AsyncIterator[httpx.Response]:
        """
        Open a streaming response and release it on every exit path.

        Uses the client timeout unless ``timeout`` is passed in ``kwargs``.

        Raises:
            TransportError: On connection failure or a non-2xx status.
        """
        headers = kwargs.pop("headers", {})
        headers.setdefault("Accept", "text/event-stream")
        timeout = kwargs.pop("timeout", httpx.Timeout(self._timeout))
        try:
            async with self._client.stream(
                method, path, headers=headers, timeout=timeout, **kwargs
            ) as response:
                if not response.is_success:
                    await response.aread()
                    raise TransportError(
                        operation,
                        response.text[:200] or response.reason_phrase,
                        status_code=response.status_code,
                    )
                logger.debug("Stream opened: %s %s", method, path)
                yield response
        except httpx.HTTPError as exc:
            raise TransportError(operation, str(exc) or type(exc).__name__) from exc
        finally:
            logger.debug("Stream released: %s %s", method, path)

    def followup_stream(self, body: dict[str, Any]):
        return self.stream(
            "POST",
            OPTIMIZED_FOLLOWUP_PATH,
            operation="optimizedFollowup",
            json=body,
        )

    def progress_stream(self, dream_job: str):
        return self.stream(
            "GET",
            PROGRESS_PATH,
            operation="interviewProgress",
            params={"dreamJob": dream_job},
            # Preparation runs for minutes with quiet gaps between phases.
            timeout=httpx.Timeout(self._timeout, read=None),
        )

    # -------------------------------------------------------------------------
    # tRPC plumbing
    # -------------------------------------------------------------------------

    async def _mutation(
        self,
        procedure: str,
        payload: dict[str, Any],
        result_model: type[ResultT],
    ) -> ResultT:
        operation = f"topicPractice.{procedure}"
        try:
            response = await self._client.post(f"{TRPC_PREFIX}.{procedure}", json=payload)
        except httpx.HTTPError as exc:
            raise TransportError(operation, str(exc) or type(exc).__name__) from exc
        return self._unwrap(operation, response, result_model)

    async def _query(
        self,
        procedure: str,
        payload: dict[str, Any],
        result_model: type[ResultT],
    ) -> ResultT:
        operation = f"topicPractice.{procedure}"
        try:
            response = await self._client.get(
                f"{TRPC_PREFIX}.{procedure}",
                params={"input": json.dumps(payload)},
            )
        except httpx.HTTPError as exc:
            raise TransportError(operation, str(exc) or type(exc).__name__) from exc
        return self._unwrap(operation, response, result_model)

    @staticmethod
    def _unwrap(
        operation: str,
        response: httpx.Response,
        result_model: type[ResultT],
    ) -> ResultT:
        try:
            body = response.json()
        except ValueError as exc:
            if not response.is_success:
                raise TransportError(
                    operation, response.reason_phrase, status_code=response.status_code
                ) from exc
            raise ProtocolError(operation, "response body is not JSON") from exc

        if isinstance(body, dict) and isinstance(body.get("error"), dict):
            error = body["error"]
            data = error.get("data") if isinstance(error.get("data"), dict) else {}
            code = str(data.get("code") or error.get("code") or "UNKNOWN")
            message = str(error.get("message") or "Backend error")
            logger.warning("%s failed: [%s] %s", operation, code, message)
            raise BackendError(operation, code, message)

        if not response.is_success:
            raise TransportError(
                operation, response.reason_phrase, status_code=response.status_code
            )

        if not isinstance(body, dict) or not isinstance(body.get("result"), dict):
            raise ProtocolError(operation, "missing 'result' envelope")
        if "data" not in body["result"]:
            raise ProtocolError(operation, "missing 'result.data'")

        data = body["result"]["data"]
        # superjson transformer wraps the payload one level deeper
        if isinstance(data, dict) and set(data) == {"json"}:
            data = data["json"]

        try:
            return result_model.model_validate(data)
        except ValidationError as exc:
            raise ProtocolError(operation, f"{exc.error_count()} validation error(s)") from exc
