"""
Shared fixtures for the Streamable HTTP tests.

Servers are simulated in-process through ``httpx.MockTransport`` so the
tests never open a socket.
"""

import asyncio
import itertools
import json
from typing import Any, Dict, List, Optional

import httpx
import pytest

from mcp_http_client.streamable_http import (
    ClientConfig,
    SESSION_ID_HEADER,
    StreamableHttpClient,
)


BASE_URL = "http://testserver/mcp"


class ControlledStream(httpx.AsyncByteStream):
    """
    Response body that yields ``chunks`` and can then hang until released.

    Counts ``aclose`` calls so tests can check the stream was released.
    """

    def __init__(self, chunks: List[bytes], hold: bool = False):
        self.chunks = chunks
        self.hold = hold
        self.close_count = 0
        self.drained = asyncio.Event()
        self._release = asyncio.Event()

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk
        self.drained.set()
        if self.hold:
            await self._release.wait()

    def release(self) -> None:
        self._release.set()

    async def aclose(self) -> None:
        self.close_count += 1


def sse_event(payload: Dict[str, Any], event: str = "message") -> bytes:
    """Encode one event-stream record."""
    return f"event: {event}\ndata: {json.dumps(payload)}\n\n".encode("utf-8")


def sse_response(chunks: List[bytes], hold: bool = False) -> httpx.Response:
    return httpx.Response(
        200,
        headers={"content-type": "text/event-stream"},
        stream=ControlledStream(chunks, hold=hold),
    )


class MockStreamableServer:
    """
    Minimal Streamable HTTP server.

    - ``initialize`` opens a new session (unless ``issue_sessions`` is False)
    - requests with a wrong session id get 404
    - ``ping`` and unknown methods echo the request back as the result
    - ``ping_error`` answers with a JSON-RPC error
    - notifications are answered with ``notification_status`` (202)
    - DELETE ends the session
    - ``routes`` overrides the reply for a method
    """

    def __init__(self, issue_sessions: bool = True):
        self.issue_sessions = issue_sessions
        self.session_id: Optional[str] = None
        self.requests: List[httpx.Request] = []
        self.deletes: List[httpx.Request] = []
        self.notifications: List[Dict[str, Any]] = []
        self.routes: Dict[str, Any] = {}
        self.notification_status = 202
        self._counter = itertools.count(1)

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if request.method == "DELETE":
            self.deletes.append(request)
            if request.headers.get(SESSION_ID_HEADER) == self.session_id:
                self.session_id = None
            return httpx.Response(204)

        body = json.loads(request.content)
        method = body.get("method")

        if "id" not in body:
            self.notifications.append(body)
            return httpx.Response(self.notification_status)

        if method in self.routes:
            reply = self.routes[method]
            result = reply(request, body) if callable(reply) else reply
            if asyncio.iscoroutine(result):
                result = await result
            return result

        if method == "initialize":
            headers = {}
            if self.issue_sessions:
                self.session_id = f"test-session-{next(self._counter)}"
                headers[SESSION_ID_HEADER] = self.session_id
            return httpx.Response(
                202,
                headers=headers,
                json={"jsonrpc": "2.0", "id": body["id"], "result": "initialized"},
            )

        if self.session_id and request.headers.get(SESSION_ID_HEADER) != self.session_id:
            return httpx.Response(404, text="Invalid session ID")

        if method == "ping_error":
            return httpx.Response(
                200,
                json={
                    "jsonrpc": "2.0",
                    "id": body["id"],
                    "error": {"code": -1, "message": json.dumps(body)},
                },
            )

        return httpx.Response(
            200,
            json={"jsonrpc": "2.0", "id": body["id"], "result": body},
        )

    def requests_for(self, method: str) -> List[Dict[str, Any]]:
        return [
            json.loads(r.content) for r in self.requests
            if r.method == "POST" and json.loads(r.content).get("method") == method
        ]


@pytest.fixture
def server():
    """Create a mock server."""
    return MockStreamableServer()


@pytest.fixture
def make_client(server):
    """Factory building a client wired to the mock server."""

    def _make(**config_overrides) -> StreamableHttpClient:
        config = ClientConfig(base_url=BASE_URL, **config_overrides)
        return StreamableHttpClient(config, transport=httpx.MockTransport(server.handle))

    return _make
