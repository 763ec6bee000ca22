"""
Streamable HTTP Wire Codec

This module provides the JSON-RPC envelopes exchanged with a Streamable HTTP
MCP (Model Context Protocol) server, together with the functions that turn
them into request bodies and turn server replies back into envelopes.

Replies are validated strictly: a response without an identifier is only
accepted for the liveness check (``ping``), and every decoding failure keeps
the raw payload on the raised error so it can be diagnosed.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Type, Union


JSONRPC_VERSION = "2.0"
INITIALIZE_METHOD = "initialize"
PING_METHOD = "ping"
SESSION_ID_HEADER = "Mcp-Session-Id"
DEFAULT_PROTOCOL_VERSION = "2025-03-26"

RequestId = Union[str, int]


@dataclass(frozen=True)
class JSONRPCRequest:
    """A JSON-RPC request. Immutable once built."""

    id: RequestId
    method: str
    params: Any = None
    jsonrpc: str = JSONRPC_VERSION

    def to_dict(self) -> Dict[str, Any]:
        message: Dict[str, Any] = {
            "jsonrpc": self.jsonrpc,
            "id": self.id,
            "method": self.method,
        }
        if self.params is not None:
            message["params"] = self.params
        return message


@dataclass
class JSONRPCNotification:
    """A JSON-RPC notification: no identifier, no reply expected."""

    method: str
    params: Dict[str, Any] = field(default_factory=dict)
    jsonrpc: str = JSONRPC_VERSION

    def to_dict(self) -> Dict[str, Any]:
        message: Dict[str, Any] = {
            "jsonrpc": self.jsonrpc,
            "method": self.method,
        }
        if self.params:
            message["params"] = self.params
        return message


@dataclass
class JSONRPCErrorObject:
    """The ``error`` member of a JSON-RPC response."""

    code: int
    message: str
    data: Any = None

    def to_exception(self) -> "StreamableHttpError":
        """
        Convert the error object into the matching exception.

        Standard JSON-RPC codes map to their dedicated subclasses; any
        other code produces a plain StreamableHttpError.

        Returns:
            Exception instance carrying code, message and data
        """
        error_class = _ERROR_CLASSES_BY_CODE.get(self.code)
        if error_class is None:
            return StreamableHttpError(self.code, self.message, self.data)
        return error_class(self.message, self.data)


@dataclass
class JSONRPCResponse:
    """A JSON-RPC response carrying either a result or an error."""

    id: Optional[RequestId] = None
    result: Any = None
    error: Optional[JSONRPCErrorObject] = None
    jsonrpc: str = JSONRPC_VERSION

    @property
    def is_error(self) -> bool:
        return self.error is not None

    def to_dict(self) -> Dict[str, Any]:
        message: Dict[str, Any] = {"jsonrpc": self.jsonrpc, "id": self.id}
        if self.error is not None:
            message["error"] = {
                "code": self.error.code,
                "message": self.error.message,
            }
            if self.error.data is not None:
                message["error"]["data"] = self.error.data
        else:
            message["result"] = self.result
        return message


Envelope = Union[JSONRPCRequest, JSONRPCNotification]


def encode_message(message: Envelope) -> bytes:
    """
    Encode a request or notification as a request body.

    Args:
        message: The envelope to encode

    Returns:
        UTF-8 encoded JSON document

    Raises:
        TypeError: If the parameters contain values that are not JSON serializable
    """
    return json.dumps(message.to_dict(), ensure_ascii=False).encode("utf-8")


def _load_object(data: Union[bytes, str]) -> Dict[str, Any]:
    """Parse ``data`` as a JSON object, raising StreamableHttpDecodeError otherwise."""
    try:
        payload = json.loads(data)
    except (ValueError, UnicodeDecodeError) as e:
        raise StreamableHttpDecodeError(f"Failed to decode message: {e}", data)

    if not isinstance(payload, dict):
        raise StreamableHttpDecodeError(
            f"Expected a JSON object, got {type(payload).__name__}", data
        )
    return payload


def response_from_dict(payload: Dict[str, Any], raw: Union[bytes, str, None] = None) -> JSONRPCResponse:
    """
    Build a response envelope from an already parsed JSON object.

    Args:
        payload: Parsed JSON object
        raw: Original payload, attached to errors for diagnostics

    Returns:
        The response envelope (the identifier is not checked here)

    Raises:
        StreamableHttpDecodeError: If the error member is malformed
    """
    error = None
    error_data = payload.get("error")
    if error_data is not None:
        if not isinstance(error_data, dict) or not isinstance(error_data.get("code"), int):
            raise StreamableHttpDecodeError("Malformed error object in response", raw)
        error = JSONRPCErrorObject(
            code=error_data["code"],
            message=str(error_data.get("message", "")),
            data=error_data.get("data"),
        )

    return JSONRPCResponse(
        id=payload.get("id"),
        result=payload.get("result"),
        error=error,
        jsonrpc=payload.get("jsonrpc", JSONRPC_VERSION),
    )


def decode_response(data: Union[bytes, str], method: Optional[str] = None) -> JSONRPCResponse:
    """
    Decode a single JSON reply into a response envelope.

    Args:
        data: Raw reply body
        method: Method of the originating request

    Returns:
        The decoded response

    Raises:
        StreamableHttpDecodeError: If the body is not a well-formed response
        StreamableHttpProtocolError: If the identifier is missing for a
            method other than ``ping``
    """
    response = response_from_dict(_load_object(data), data)
    if response.id is None and method != PING_METHOD:
        raise StreamableHttpProtocolError("Response should contain an RPC id", data)
    return response


def decode_error_response(data: Union[bytes, str]) -> JSONRPCResponse:
    """
    Decode the body of a non-success HTTP reply.

    Only bodies carrying a JSON-RPC ``error`` object are accepted.

    Raises:
        StreamableHttpDecodeError: If the body is not an error-shaped response
    """
    payload = _load_object(data)
    if "error" not in payload:
        raise StreamableHttpDecodeError("Response does not carry an error object", data)
    return response_from_dict(payload, data)


def decode_notification(data: Union[bytes, str, Dict[str, Any]]) -> JSONRPCNotification:
    """
    Decode a server notification.

    Args:
        data: Raw JSON or an already parsed JSON object

    Returns:
        The notification with its open parameter bag

    Raises:
        StreamableHttpDecodeError: If the method is missing or params is not an object
    """
    payload = data if isinstance(data, dict) else _load_object(data)
    raw = data if not isinstance(data, dict) else json.dumps(data)

    method = payload.get("method")
    if not isinstance(method, str):
        raise StreamableHttpDecodeError("Notification should contain a method", raw)

    params = payload.get("params") or {}
    if not isinstance(params, dict):
        raise StreamableHttpDecodeError("Notification params should be an object", raw)

    return JSONRPCNotification(
        method=method,
        params=params,
        jsonrpc=payload.get("jsonrpc", JSONRPC_VERSION),
    )


class StreamableHttpError(Exception):
    """Base exception for Streamable HTTP errors."""

    def __init__(self, code: int, message: str, data: Any = None):
        self.code = code
        self.message = message
        self.data = data
        super().__init__(message)


class StreamableHttpParseError(StreamableHttpError):
    """Error during message parsing."""

    def __init__(self, message: str, data: Any = None):
        super().__init__(-32700, message or "Parse error", data)


class StreamableHttpInvalidRequestError(StreamableHttpError):
    """Invalid request error."""

    def __init__(self, message: str, data: Any = None):
        super().__init__(-32600, message or "Invalid Request", data)


class StreamableHttpMethodNotFoundError(StreamableHttpError):
    """Method not found error."""

    def __init__(self, message: str, data: Any = None):
        super().__init__(-32601, message or "Method not found", data)


class StreamableHttpInvalidParamsError(StreamableHttpError):
    """Invalid params error."""

    def __init__(self, message: str, data: Any = None):
        super().__init__(-32602, message or "Invalid params", data)


class StreamableHttpInternalError(StreamableHttpError):
    """Internal error."""

    def __init__(self, message: str, data: Any = None):
        super().__init__(-32603, message or "Internal error", data)


class StreamableHttpDecodeError(StreamableHttpParseError):
    """A reply could not be decoded. ``raw`` holds the offending payload."""

    def __init__(self, message: str, raw: Union[bytes, str, None] = None):
        self.raw = raw
        super().__init__(message, raw)

    def __str__(self) -> str:
        raw = self.raw.decode("utf-8", "replace") if isinstance(self.raw, bytes) else self.raw
        return f"{self.message}. Raw payload: {raw}"


class StreamableHttpProtocolError(StreamableHttpDecodeError):
    """A reply was well formed JSON but violated the protocol."""


class StreamableHttpTransportError(StreamableHttpError):
    """Local or network failure while exchanging a message."""

    def __init__(self, message: str, data: Any = None):
        super().__init__(-32603, message, data)


class StreamableHttpStatusError(StreamableHttpTransportError):
    """The server answered with an unexpected HTTP status."""

    def __init__(self, status_code: int, body: Union[bytes, str] = b"", what: str = "request"):
        self.status_code = status_code
        self.body = body
        text = body.decode("utf-8", "replace") if isinstance(body, bytes) else body
        super().__init__(f"{what} failed with status {status_code}: {text}", text)


class StreamableHttpSessionExpiredError(StreamableHttpTransportError):
    """The server no longer knows the session; the client must re-initialize."""

    def __init__(self, message: str = "session terminated (404). need to re-initialize"):
        super().__init__(message)


class StreamableHttpClosedError(StreamableHttpTransportError):
    """The client was closed before the exchange completed."""

    def __init__(self, message: str = "client is closed"):
        super().__init__(message)


_ERROR_CLASSES_BY_CODE: Dict[int, Type[StreamableHttpError]] = {
    -32700: StreamableHttpParseError,
    -32600: StreamableHttpInvalidRequestError,
    -32601: StreamableHttpMethodNotFoundError,
    -32602: StreamableHttpInvalidParamsError,
    -32603: StreamableHttpInternalError,
}


# Export symbols
__all__ = [
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
    "response_from_dict",
    "decode_response",
    "decode_error_response",
    "decode_notification",
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
]
