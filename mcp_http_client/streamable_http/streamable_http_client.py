"""
Streamable HTTP Client Transport

This module implements the client side of the MCP Streamable HTTP transport.
Every JSON-RPC message is sent as its own HTTP POST to a single endpoint. The
reply is either one JSON document or an event stream that may carry server
notifications before it delivers the response to the request.

Supported:
    - session tracking through the ``Mcp-Session-Id`` header
    - single JSON and event-stream replies
    - server notifications delivered on a reply stream
    - cancellation of in-flight requests when the client is closed

Not supported:
    - batching
    - listening for server notifications while no request is in flight
    - resuming a stream
    - requests sent from the server to the client
"""

import asyncio
import inspect
import itertools
import json
import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional, Union

import httpx

from ..errors import ConfigError
from .session import SessionState
from .sse_parser import ServerSentEvent, read_event_stream
from .streamable_http_base import (
    DEFAULT_PROTOCOL_VERSION,
    INITIALIZE_METHOD,
    PING_METHOD,
    SESSION_ID_HEADER,
    JSONRPCNotification,
    JSONRPCRequest,
    JSONRPCResponse,
    StreamableHttpClosedError,
    StreamableHttpDecodeError,
    StreamableHttpProtocolError,
    StreamableHttpSessionExpiredError,
    StreamableHttpStatusError,
    StreamableHttpTransportError,
    decode_error_response,
    decode_notification,
    decode_response,
    encode_message,
    response_from_dict,
)


# Configure logging
logger = logging.getLogger(__name__)


DEFAULT_BASE_URL = "http://localhost:62770"

JSON_MEDIA_TYPE = "application/json"
EVENT_STREAM_MEDIA_TYPE = "text/event-stream"
SUCCESS_STATUSES = (200, 202)

NotificationHandler = Callable[[JSONRPCNotification], Union[None, Awaitable[Any]]]


@dataclass
class ClientConfig:
    """Configuration for the Streamable HTTP client."""

    # Server endpoint; every message is posted here
    base_url: str = DEFAULT_BASE_URL

    # Extra headers sent with every exchange; they win over the defaults
    headers: Dict[str, str] = field(default_factory=dict)

    # Default deadline for a whole exchange, event stream included (None disables it)
    request_timeout: Optional[float] = 30.0
    termination_timeout: float = 5.0

    # Protocol handshake
    protocol_version: str = DEFAULT_PROTOCOL_VERSION
    client_name: str = "mcp-http-client"
    client_version: str = "1.0.0"

    encoding: str = "utf-8"


def _parse_base_url(base_url: str) -> httpx.URL:
    try:
        url = httpx.URL(base_url)
    except (httpx.InvalidURL, TypeError) as e:
        raise ConfigError(f"Invalid URL: {e}", config_key="base_url")

    if url.scheme not in ("http", "https") or not url.host:
        raise ConfigError(f"Invalid URL: {base_url!r}", config_key="base_url")
    return url


def _media_type(response: httpx.Response) -> str:
    content_type = response.headers.get("content-type", "")
    return content_type.split(";", 1)[0].strip().lower()


def _retrieve_exception(future: "asyncio.Future") -> None:
    if not future.cancelled():
        future.exception()


def _succeeded(future: "asyncio.Future") -> bool:
    return not future.cancelled() and future.exception() is None


class StreamableHttpClient:
    """
    Client transport for Streamable HTTP MCP servers.

    Each call to :meth:`send_request` owns its HTTP exchange, so any number
    of requests may be in flight at once. The only state they share is the
    session token, which is read once per exchange and only ever cleared
    with a compare-and-swap against the value that exchange sent.
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the Streamable HTTP client.

        Args:
            config: Optional client configuration
            http_client: Optional pre-configured httpx client. When given, the
                caller keeps ownership and must close it.
            transport: Optional httpx transport for the client's own httpx
                client, e.g. an httpx.MockTransport or httpx.ASGITransport

        Raises:
            ConfigError: If the base URL is not an absolute http(s) URL
        """
        self.config = config or ClientConfig()
        self._url = _parse_base_url(self.config.base_url)

        self._owns_http_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(self.config.request_timeout),
            transport=transport,
        )

        self._session = SessionState()
        self._initialized = False

        self._notification_handler: Optional[NotificationHandler] = None
        self._handler_lock = threading.Lock()

        self._closed = asyncio.Event()
        self._stream_tasks: Dict[asyncio.Task, httpx.Response] = {}
        self._shutdown_task: Optional[asyncio.Task] = None

        self._id_prefix = uuid.uuid4().hex[:8]
        self._id_counter = itertools.count(1)

        logger.info(f"StreamableHttpClient initialized for {self._url}")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def next_request_id(self) -> str:
        """Return an identifier no other request from this client has used."""
        return f"{self._id_prefix}-{next(self._id_counter)}"

    async def initialize(
        self,
        client_info: Optional[Dict[str, Any]] = None,
        capabilities: Optional[Dict[str, Any]] = None,
        protocol_version: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> JSONRPCResponse:
        """
        Send the ``initialize`` request.

        The session token returned by the server, if any, is stored by
        :meth:`send_request` and attached to every later exchange.

        Args:
            client_info: Client name/version advertised to the server
            capabilities: Client capabilities advertised to the server
            protocol_version: Protocol version (defaults to the configured one)
            timeout: Deadline in seconds for the whole exchange, including
                any event stream; defaults to ``config.request_timeout``

        Returns:
            The server's response; check ``is_error`` before using it
        """
        request = JSONRPCRequest(
            id=self.next_request_id(),
            method=INITIALIZE_METHOD,
            params={
                "protocolVersion": protocol_version or self.config.protocol_version,
                "clientInfo": client_info or {
                    "name": self.config.client_name,
                    "version": self.config.client_version,
                },
                "capabilities": capabilities or {},
            },
        )

        response = await self.send_request(request, timeout=timeout)
        if not response.is_error:
            self._initialized = True
        return response

    async def request(
        self,
        method: str,
        params: Any = None,
        timeout: Optional[float] = None,
    ) -> JSONRPCResponse:
        """Send ``method`` with a freshly generated identifier."""
        request = JSONRPCRequest(id=self.next_request_id(), method=method, params=params)
        return await self.send_request(request, timeout=timeout)

    async def ping(self, timeout: Optional[float] = None) -> float:
        """
        Check that the server is reachable.

        Args:
            timeout: Optional deadline in seconds

        Returns:
            Round-trip time in seconds

        Raises:
            StreamableHttpError: If the exchange fails or the server answers
                with an error
        """
        request = JSONRPCRequest(
            id=f"ping-{self.next_request_id()}",
            method=PING_METHOD,
            params={"timestamp": time.time_ns()},
        )

        started = time.monotonic()
        response = await self.send_request(request, timeout=timeout)
        latency = time.monotonic() - started

        if response.is_error:
            raise response.error.to_exception()

        logger.debug(f"Ping answered in {latency * 1000:.1f} ms")
        return latency

    async def send_request(
        self,
        request: JSONRPCRequest,
        timeout: Optional[float] = None,
    ) -> JSONRPCResponse:
        """
        Send a JSON-RPC request and wait for its response.

        A response carrying a JSON-RPC error object is returned, not raised;
        callers must check ``response.is_error``.

        Args:
            request: The request to send
            timeout: Deadline in seconds for the whole exchange, including
                any event stream; defaults to ``config.request_timeout``

        Returns:
            The response matching ``request.id``

        Raises:
            StreamableHttpSessionExpiredError: If the server no longer knows
                the session (HTTP 404); the client must re-initialize
            StreamableHttpStatusError: On any other unexpected status whose
                body is not a JSON-RPC error
            StreamableHttpDecodeError: If the reply cannot be decoded
            StreamableHttpTransportError: On network failure or an
                unexpected content type
            StreamableHttpClosedError: If the client is closed
            asyncio.TimeoutError: If ``timeout`` expires first
        """
        if self._closed.is_set():
            raise StreamableHttpClosedError()
        if timeout is None:
            timeout = self.config.request_timeout
        return await self._run_until_closed(self._exchange(request), timeout)

    async def send_notification(
        self,
        notification: JSONRPCNotification,
        timeout: Optional[float] = None,
    ) -> None:
        """
        Send a JSON-RPC notification. The reply body is discarded.

        Raises:
            StreamableHttpStatusError: If the server does not accept it
            StreamableHttpTransportError: On network failure
            StreamableHttpClosedError: If the client is closed
            asyncio.TimeoutError: If ``timeout`` (default
                ``config.request_timeout``) expires first
        """
        if self._closed.is_set():
            raise StreamableHttpClosedError()
        if timeout is None:
            timeout = self.config.request_timeout
        await self._run_until_closed(self._post_notification(notification), timeout)

    def set_notification_handler(self, handler: Optional[NotificationHandler]) -> None:
        """
        Set the handler for notifications arriving on reply streams.

        Notifications received while no handler is set are dropped.
        The handler may be a plain function or a coroutine function.
        """
        with self._handler_lock:
            self._notification_handler = handler

    def get_session_id(self) -> str:
        """Return the current session token ("" when there is none)."""
        return self._session.load()

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def is_closed(self) -> bool:
        return self._closed.is_set()

    async def close(self) -> None:
        """
        Close the client.

        In-flight requests are unblocked with StreamableHttpClosedError. If a
        session was established, a termination notice is sent to the server
        in the background; its outcome is only logged. Calling close again
        does nothing.
        """
        if self._closed.is_set():
            return
        self._closed.set()

        for task in list(self._stream_tasks):
            task.cancel()

        session_id = self._session.clear()
        self._initialized = False
        self._shutdown_task = asyncio.create_task(self._shutdown(session_id))
        logger.info("Client closed")

    async def wait_closed(self) -> None:
        """Wait for the background shutdown started by :meth:`close`."""
        if self._shutdown_task is not None:
            await self._shutdown_task

    async def __aenter__(self) -> "StreamableHttpClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
        await self.wait_closed()

    # ------------------------------------------------------------------
    # Exchanges
    # ------------------------------------------------------------------

    async def _run_until_closed(self, coro: Awaitable[Any], timeout: Optional[float]) -> Any:
        """Run ``coro`` until it finishes, the client closes or ``timeout`` expires."""
        exchange = asyncio.ensure_future(coro)
        closed = asyncio.ensure_future(self._closed.wait())
        try:
            done, _ = await asyncio.wait(
                {exchange, closed},
                timeout=timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            closed.cancel()
            if not exchange.done():
                exchange.cancel()
                exchange.add_done_callback(_retrieve_exception)

        # closing fails the exchange's stream reader too; report the close
        if self._closed.is_set() and not (exchange in done and _succeeded(exchange)):
            raise StreamableHttpClosedError("client closed while the request was in flight")
        if exchange in done:
            return exchange.result()
        raise asyncio.TimeoutError(f"no response within {timeout} seconds")

    def _build_headers(self, session_id: str) -> httpx.Headers:
        headers = httpx.Headers({
            "Content-Type": JSON_MEDIA_TYPE,
            "Accept": f"{JSON_MEDIA_TYPE}, {EVENT_STREAM_MEDIA_TYPE}",
        })
        if session_id:
            headers[SESSION_ID_HEADER] = session_id
        for name, value in self.config.headers.items():
            headers[name] = value
        return headers

    async def _exchange(self, request: JSONRPCRequest) -> JSONRPCResponse:
        session_id = self._session.load()
        http_request = self._http_client.build_request(
            "POST",
            self._url,
            content=encode_message(request),
            headers=self._build_headers(session_id),
        )

        logger.debug(f"Sending {request.method} request (id={request.id})")
        try:
            response = await self._http_client.send(http_request, stream=True)
        except httpx.HTTPError as e:
            raise StreamableHttpTransportError(f"Failed to send request: {e}")

        streaming = False
        try:
            if response.status_code not in SUCCESS_STATUSES:
                if response.status_code == 404:
                    self._session.compare_and_swap(session_id, "")
                    raise StreamableHttpSessionExpiredError()

                body = await response.aread()
                try:
                    return decode_error_response(body)
                except StreamableHttpDecodeError:
                    raise StreamableHttpStatusError(response.status_code, body)

            if request.method == INITIALIZE_METHOD:
                # an empty value is stored too: the server chose not to use sessions
                self._session.store(response.headers.get(SESSION_ID_HEADER, ""))

            media_type = _media_type(response)
            if media_type == JSON_MEDIA_TYPE:
                body = await response.aread()
                return decode_response(body, request.method)

            if media_type == EVENT_STREAM_MEDIA_TYPE:
                streaming = True
                return await self._handle_event_stream(request, response)

            raise StreamableHttpTransportError(
                f"Unexpected content type: {response.headers.get('content-type', '')}"
            )
        except httpx.HTTPError as e:
            raise StreamableHttpTransportError(f"Failed to read response: {e}")
        finally:
            if not streaming:
                await response.aclose()

    async def _post_notification(self, notification: JSONRPCNotification) -> None:
        session_id = self._session.load()
        logger.debug(f"Sending {notification.method} notification")
        try:
            response = await self._http_client.post(
                self._url,
                content=encode_message(notification),
                headers=self._build_headers(session_id),
            )
        except httpx.HTTPError as e:
            raise StreamableHttpTransportError(f"Failed to send notification: {e}")

        if response.status_code not in SUCCESS_STATUSES:
            raise StreamableHttpStatusError(response.status_code, response.content, what="notification")

    # ------------------------------------------------------------------
    # Event streams
    # ------------------------------------------------------------------

    async def _handle_event_stream(
        self,
        request: JSONRPCRequest,
        response: httpx.Response,
    ) -> JSONRPCResponse:
        """
        Wait for the response to ``request`` on an event stream.

        The stream is read by a background task that outlives this call
        until the server ends the stream. If the wait is cancelled, that
        task is cancelled and the stream is closed, even when the task
        never got to run.
        """
        terminal = asyncio.get_running_loop().create_future()
        terminal.add_done_callback(_retrieve_exception)

        task = asyncio.create_task(self._drain_event_stream(request, response, terminal))
        self._stream_tasks[task] = response
        task.add_done_callback(self._forget_stream)

        try:
            return await terminal
        except asyncio.CancelledError:
            await self._release_stream(task, response)
            raise

    def _forget_stream(self, task: asyncio.Task) -> None:
        # A reader cancelled before its first step never closed its stream;
        # it stays tracked until _release_stream closes it.
        response = self._stream_tasks.get(task)
        if response is not None and response.is_closed:
            del self._stream_tasks[task]

    async def _release_stream(self, task: asyncio.Task, response: httpx.Response) -> None:
        """Stop reading ``response`` and close it."""
        task.cancel()
        await asyncio.wait({task})
        try:
            await response.aclose()
        except httpx.HTTPError as e:
            logger.warning(f"Failed to close event stream: {e!r}")
        finally:
            self._stream_tasks.pop(task, None)

    async def _drain_event_stream(
        self,
        request: JSONRPCRequest,
        response: httpx.Response,
        terminal: "asyncio.Future[JSONRPCResponse]",
    ) -> None:
        async def on_event(event: ServerSentEvent) -> None:
            await self._route_event(request, event, terminal)

        try:
            await read_event_stream(response, on_event, self.config.encoding)
        finally:
            if not terminal.done():
                terminal.set_exception(StreamableHttpTransportError(
                    f"Event stream ended before a response to request {request.id} was received"
                ))
            logger.debug(f"Event stream for request {request.id} released")

    async def _route_event(
        self,
        request: JSONRPCRequest,
        event: ServerSentEvent,
        terminal: "asyncio.Future[JSONRPCResponse]",
    ) -> None:
        """Deliver one stream event as a notification or as the terminal response."""
        try:
            payload = json.loads(event.data)
        except ValueError as e:
            logger.warning(f"Failed to decode event data: {e}")
            return
        if not isinstance(payload, dict):
            logger.warning(f"Ignoring event that is not a JSON object: {event.data[:100]}")
            return

        message_id = payload.get("id")

        if message_id is None:
            if "method" in payload:
                try:
                    notification = decode_notification(payload)
                except StreamableHttpDecodeError as e:
                    logger.warning(f"Failed to decode notification: {e}")
                    return
                await self._dispatch_notification(notification)
                return

            if request.method != PING_METHOD:
                if not terminal.done():
                    terminal.set_exception(StreamableHttpProtocolError(
                        "Response should contain an RPC id", event.data
                    ))
                return

        elif "method" in payload:
            logger.warning(f"Ignoring server request {payload['method']!r}: not supported")
            return

        elif message_id != request.id:
            logger.warning(f"Ignoring response for unknown request {message_id!r}")
            return

        if terminal.done():
            logger.debug(f"Ignoring extra response for request {request.id}")
            return

        try:
            terminal.set_result(response_from_dict(payload, event.data))
        except StreamableHttpDecodeError as e:
            logger.warning(f"Failed to decode response event: {e}")

    async def _dispatch_notification(self, notification: JSONRPCNotification) -> None:
        with self._handler_lock:
            handler = self._notification_handler

        if handler is None:
            logger.debug(f"Dropping notification {notification.method}: no handler set")
            return

        try:
            result = handler(notification)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(f"Error in notification handler for '{notification.method}': {e}")

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def _shutdown(self, session_id: str) -> None:
        try:
            streams = list(self._stream_tasks.items())
            if streams:
                await asyncio.gather(*(self._release_stream(task, response) for task, response in streams))
            if session_id:
                await self._terminate_session(session_id)
        finally:
            if self._owns_http_client:
                await self._http_client.aclose()

    async def _terminate_session(self, session_id: str) -> None:
        """Tell the server the session is over. Failures are only logged."""
        try:
            response = await asyncio.wait_for(
                self._http_client.delete(self._url, headers=self._build_headers(session_id)),
                timeout=self.config.termination_timeout,
            )
        except Exception as e:
            logger.warning(f"Failed to send session termination notice: {e!r}")
            return

        if response.is_success:
            logger.info(f"Session {session_id} terminated")
        else:
            logger.warning(f"Session termination answered with status {response.status_code}")


# Export symbols
__all__ = [
    "DEFAULT_BASE_URL",
    "ClientConfig",
    "NotificationHandler",
    "StreamableHttpClient",
]
