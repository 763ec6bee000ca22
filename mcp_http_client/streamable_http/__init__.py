"""
Streamable HTTP Transport Package

This package provides the client side of the Streamable HTTP transport for
MCP (Model Context Protocol) servers: JSON-RPC envelopes and their wire
encoding, event-stream parsing, session tracking and the client transport
that ties them together.

Usage:
    from mcp_http_client.streamable_http import (
        ClientConfig,
        StreamableHttpClient,
    )

    client = StreamableHttpClient(ClientConfig(base_url="http://localhost:8000/mcp"))
    await client.initialize()
    response = await client.request("tools/list")
    await client.close()
"""

from .streamable_http_base import (
    JSONRPC_VERSION,
    INITIALIZE_METHOD,
    PING_METHOD,
    SESSION_ID_HEADER,
    DEFAULT_PROTOCOL_VERSION,
    JSONRPCRequest,
    JSONRPCNotification,
    JSONRPCErrorObject,
    JSONRPCResponse,
    encode_message,
    decode_response,
    decode_error_response,
    decode_notification,
    StreamableHttpError,
    StreamableHttpParseError,
    StreamableHttpInvalidRequestError,
    StreamableHttpMethodNotFoundError,
    StreamableHttpInvalidParamsError,
    StreamableHttpInternalError,
    StreamableHttpDecodeError,
    StreamableHttpProtocolError,
    StreamableHttpTransportError,
    StreamableHttpStatusError,
    StreamableHttpSessionExpiredError,
    StreamableHttpClosedError,
)

from .sse_parser import (
    ServerSentEvent,
    ServerSentEventParser,
    read_event_stream,
)

from .session import SessionState

from .streamable_http_client import (
    DEFAULT_BASE_URL,
    ClientConfig,
    StreamableHttpClient,
)


__version__ = "1.0.0"
__all__ = [
    # Wire codec
    "JSONRPC_VERSION",
    "INITIALIZE_METHOD",
    "PING_METHOD",
    "SESSION_ID_HEADER",
    "DEFAULT_PROTOCOL_VERSION",
    "JSONRPCRequest",
    "JSONRPCNotification",
    "JSONRPCErrorObject",
    "JSONRPCResponse",
    "encode_message",
    "decode_response",
    "decode_error_response",
    "decode_notification",
    # Errors
    "StreamableHttpError",
    "StreamableHttpParseError",
    "StreamableHttpInvalidRequestError",
    "StreamableHttpMethodNotFoundError",
    "StreamableHttpInvalidParamsError",
    "StreamableHttpInternalError",
    "StreamableHttpDecodeError",
    "StreamableHttpProtocolError",
    "StreamableHttpTransportError",
    "StreamableHttpStatusError",
    "StreamableHttpSessionExpiredError",
    "StreamableHttpClosedError",
    # Event streams
    "ServerSentEvent",
    "ServerSentEventParser",
    "read_event_stream",
    # Client
    "SessionState",
    "DEFAULT_BASE_URL",
    "ClientConfig",
    "StreamableHttpClient",
]
