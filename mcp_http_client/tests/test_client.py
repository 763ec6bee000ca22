"""
Tests for the high-level McpHttpClient.
"""

import asyncio

import httpx
import pytest

from mcp_http_client import ClientConfig, McpHttpClient
from mcp_http_client.streamable_http import (
    SESSION_ID_HEADER,
    StreamableHttpError,
    StreamableHttpInvalidParamsError,
    StreamableHttpStatusError,
)
from mcp_http_client.streamable_http.tests.conftest import (
    BASE_URL,
    MockStreamableServer,
    sse_event,
    sse_response,
)


@pytest.fixture
def server():
    return MockStreamableServer()


@pytest.fixture
def make_client(server):
    def _make() -> McpHttpClient:
        return McpHttpClient(ClientConfig(base_url=BASE_URL), transport=httpx.MockTransport(server.handle))

    return _make


def streamed_call(request, body):
    return sse_response([
        sse_event({"jsonrpc": "2.0", "method": "notifications/message", "params": {"level": "info"}}),
        sse_event({"jsonrpc": "2.0", "id": body["id"], "result": {"content": []}}),
    ])


class TestMcpHttpClient:
    """Tests for McpHttpClient."""

    @pytest.mark.asyncio
    async def test_connect(self, server, make_client):
        client = make_client()

        result = await client.connect()

        assert result == "initialized"
        assert client.get_session_id() == "test-session-1"
        await client.close()

    @pytest.mark.asyncio
    async def test_context_manager_connects_and_closes(self, server, make_client):
        async with make_client() as client:
            assert client.get_session_id() == "test-session-1"

        assert len(server.deletes) == 1
        assert server.deletes[0].headers[SESSION_ID_HEADER] == "test-session-1"
        assert client.transport.is_closed is True

    @pytest.mark.asyncio
    async def test_request_returns_result(self, server, make_client):
        async with make_client() as client:
            result = await client.request("tools/list", {"cursor": "next"})

        assert result["method"] == "tools/list"
        assert result["params"] == {"cursor": "next"}

    @pytest.mark.asyncio
    async def test_request_raises_on_error(self, server, make_client):
        async with make_client() as client:
            with pytest.raises(StreamableHttpError) as exc_info:
                await client.request("ping_error")

        assert exc_info.value.code == -1

    @pytest.mark.asyncio
    async def test_standard_error_codes(self, server, make_client):
        server.routes["tools/call"] = lambda request, body: httpx.Response(
            200,
            json={"jsonrpc": "2.0", "id": body["id"], "error": {"code": -32602, "message": "missing name"}},
        )

        async with make_client() as client:
            with pytest.raises(StreamableHttpInvalidParamsError, match="missing name"):
                await client.request("tools/call", {})

    @pytest.mark.asyncio
    async def test_raw_request(self, server, make_client):
        async with make_client() as client:
            envelope = await client.raw_request("ping_error")

        assert envelope["jsonrpc"] == "2.0"
        assert envelope["error"]["code"] == -1

    @pytest.mark.asyncio
    async def test_initialize_with_explicit_params(self, server, make_client):
        """Test that explicit initialize params are sent unchanged."""
        params = {"protocolVersion": "2024-11-05", "clientInfo": {"name": "custom"}, "capabilities": {}}

        async with make_client() as client:
            await client.request("initialize", params)

        assert server.requests_for("initialize")[-1]["params"] == params

    @pytest.mark.asyncio
    async def test_notification_handler(self, server, make_client):
        server.routes["tools/call"] = streamed_call
        received = []

        async with make_client() as client:
            client.set_notification_handler(lambda method, params: received.append((method, params)))
            await client.request("tools/call", {"name": "echo"})

        assert received == [("notifications/message", {"level": "info"})]

    @pytest.mark.asyncio
    async def test_async_notification_handler(self, server, make_client):
        server.routes["tools/call"] = streamed_call
        received = []

        async def handler(method, params):
            await asyncio.sleep(0)
            received.append(method)

        async with make_client() as client:
            client.set_notification_handler(handler)
            await client.request("tools/call", {"name": "echo"})

        assert received == ["notifications/message"]

    @pytest.mark.asyncio
    async def test_ping(self, server, make_client):
        async with make_client() as client:
            latency = await client.ping()

        assert latency >= 0

    @pytest.mark.asyncio
    async def test_failed_connect_closes_transport(self, server, make_client):
        server.routes["initialize"] = httpx.Response(500, text="internal error")
        client = make_client()

        with pytest.raises(StreamableHttpStatusError):
            async with client:
                pass

        assert client.transport.is_closed is True
        assert client.transport._http_client.is_closed is True

    @pytest.mark.asyncio
    async def test_close_after_http_client_closed(self, server):
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(server.handle))
        client = McpHttpClient(ClientConfig(base_url=BASE_URL), http_client=http_client)
        await client.connect()
        await http_client.aclose()

        await client.close()

        assert client.transport.is_closed is True
        assert server.deletes == []
