"""
Error definitions for the MCP HTTP client.

This module defines the exception classes raised outside the transport
core, such as configuration problems detected before any request is sent.
"""


class McpClientError(Exception):
    """Base exception for all client errors."""

    def __init__(self, message: str, url: str = None):
        """
        Initialize the client error.

        Args:
            message: Error message
            url: Server URL the error relates to (optional)
        """
        self.message = message
        self.url = url
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the error message with the server URL if available."""
        if self.url:
            return f"[{self.url}] {self.message}"
        return self.message


class ConfigError(McpClientError):
    """Error in configuration."""

    def __init__(self, message: str, config_key: str = None):
        """
        Initialize the configuration error.

        Args:
            message: Error message
            config_key: Configuration key that caused the error (optional)
        """
        self.config_key = config_key
        super().__init__(message)

    def _format_message(self) -> str:
        """Format the error message with config key if available."""
        base_message = super()._format_message()
        if self.config_key:
            return f"{base_message} (config: {self.config_key})"
        return base_message

