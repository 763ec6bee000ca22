"""
High-level MCP client over Streamable HTTP.

Wraps :class:`StreamableHttpClient` with default handshake parameters and
turns JSON-RPC error responses into exceptions, so callers deal with
results only.
"""

import logging
from typing import Any, Callable, Dict, Optional

from .streamable_http import (
    INITIALIZE_METHOD,
    ClientConfig,
    JSONRPCNotification,
    JSONRPCResponse,
    StreamableHttpClient,
)


logger = logging.getLogger(__name__)


class McpHttpClient:
    """
    MCP client for a single Streamable HTTP server.

    Example:
        async with McpHttpClient(ClientConfig(base_url=url)) as client:
            tools = await client.request("tools/list")
    """

    def __init__(self, config: Optional[ClientConfig] = None, http_client=None, transport=None):
        """
        Create the client. No request is sent until :meth:`connect`.

        Args:
            config: Optional client configuration
            http_client: Optional httpx.AsyncClient owned by the caller
            transport: Optional httpx transport for the default httpx client
        """
        self.config = config or ClientConfig()
        self.transport = StreamableHttpClient(self.config, http_client=http_client, transport=transport)
        self._notification_handler: Optional[Callable[[str, Dict[str, Any]], Any]] = None
        self.transport.set_notification_handler(self._on_notification)

    async def connect(self, timeout: Optional[float] = 10.0) -> Any:
        """
        Initialize the session with the server.

        Returns:
            The server's initialize result (capabilities, server info)
        """
        result = await self.request(INITIALIZE_METHOD, timeout=timeout)
        logger.info(f"Connected to {self.config.base_url} (session: {self.get_session_id() or 'none'})")
        return result

    async def request(self, method: str, params: Any = None, timeout: Optional[float] = None) -> Any:
        """
        Send a request and return its result.

        ``initialize`` without params is sent with the configured protocol
        version, client info and empty capabilities.

        Raises:
            StreamableHttpError: If the server answers with a JSON-RPC error,
                or any transport error raised by the underlying client
        """
        if method == INITIALIZE_METHOD and params is None:
            response = await self.transport.initialize(timeout=timeout)
        else:
            response = await self.transport.request(method, params, timeout=timeout)

        if response.is_error:
            raise response.error.to_exception()
        return response.result

    async def raw_request(self, method: str, params: Any = None, timeout: Optional[float] = None) -> Dict[str, Any]:
        """Send a request and return the whole response envelope as a dict."""
        response: JSONRPCResponse = await self.transport.request(method, params, timeout=timeout)
        return response.to_dict()

    async def ping(self, timeout: Optional[float] = None) -> float:
        """Return the server round-trip time in seconds."""
        return await self.transport.ping(timeout=timeout)

    def get_session_id(self) -> str:
        return self.transport.get_session_id()

    def set_notification_handler(self, handler: Optional[Callable[[str, Dict[str, Any]], Any]]) -> None:
        """
        Set a handler called with ``(method, params)`` for server notifications.

        The handler may be a coroutine function.
        """
        self._notification_handler = handler

    def _on_notification(self, notification: JSONRPCNotification) -> Any:
        handler = self._notification_handler
        if handler is not None:
            return handler(notification.method, notification.params)
        return None

    async def close(self) -> None:
        """Close the transport and wait for the session to be torn down."""
        await self.transport.close()
        await self.transport.wait_closed()

    async def __aenter__(self) -> "McpHttpClient":
        try:
            await self.connect()
        except BaseException:
            await self.close()
            raise
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
