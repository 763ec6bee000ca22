"""
MCP HTTP Client Package

A client for MCP (Model Context Protocol) servers speaking the
Streamable HTTP transport.
"""

from .client import McpHttpClient
from .config import Config
from .errors import ConfigError, McpClientError
from .streamable_http import (
    ClientConfig,
    JSONRPCNotification,
    JSONRPCRequest,
    JSONRPCResponse,
    StreamableHttpClient,
    StreamableHttpClosedError,
    StreamableHttpError,
    StreamableHttpSessionExpiredError,
    StreamableHttpTransportError,
)

__version__ = "1.0.0"
__all__ = [
    "ClientConfig",
    "Config",
    "ConfigError",
    "JSONRPCNotification",
    "JSONRPCRequest",
    "JSONRPCResponse",
    "McpClientError",
    "McpHttpClient",
    "StreamableHttpClient",
    "StreamableHttpClosedError",
    "StreamableHttpError",
    "StreamableHttpSessionExpiredError",
    "StreamableHttpTransportError",
]
