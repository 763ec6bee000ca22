"""
Configuration handling for the MCP HTTP client.

This module provides functionality to load, validate, and manage
client configuration from JSON files and environment variables.
"""

import copy
import json
import os
from pathlib import Path
from typing import Any, Dict, Optional
import logging

import httpx

from .errors import ConfigError
from .streamable_http import ClientConfig, DEFAULT_BASE_URL, DEFAULT_PROTOCOL_VERSION


logger = logging.getLogger(__name__)


class Config:
    """Configuration manager for the MCP HTTP client."""

    # Default configuration values
    DEFAULT_CONFIG = {
        "server": {
            "baseUrl": DEFAULT_BASE_URL,
            "headers": {},
        },
        "timeouts": {
            "request": 30.0,
            "termination": 5.0,
        },
        "protocol": {
            "version": DEFAULT_PROTOCOL_VERSION,
            "clientName": "mcp-http-client",
            "clientVersion": "1.0.0",
        },
        "logging": {
            "level": "INFO",
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            "file": None,
        },
    }

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize the configuration manager.

        Args:
            config_path: Path to configuration file (optional)
        """
        self.config: Dict[str, Any] = {}
        self.config_path = config_path
        self._load_config()

    def _load_config(self) -> None:
        """Load configuration from file and environment variables."""
        # Start with defaults
        self.config = copy.deepcopy(self.DEFAULT_CONFIG)

        # Load from file if provided
        if self.config_path:
            self._load_from_file(self.config_path)

        # Override with environment variables
        self._load_from_env()

        # Validate configuration
        self._validate_config()

        logger.info(f"Configuration loaded from {self.config_path or 'defaults'}")

    def _load_from_file(self, config_path: str) -> None:
        """
        Load configuration from JSON file.

        Args:
            config_path: Path to configuration file

        Raises:
            ConfigError: If file cannot be read or parsed
        """
        path = Path(config_path)
        if not path.exists():
            logger.warning(f"Config file not found: {config_path}, using defaults")
            return

        try:
            with open(path, 'r') as f:
                file_config = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in config file: {e}")
        except OSError as e:
            raise ConfigError(f"Failed to load config file: {e}")

        if not isinstance(file_config, dict):
            raise ConfigError("Config file must contain a JSON object")

        # Merge file config with defaults
        self._merge_config(self.config, file_config)
        logger.info(f"Loaded configuration from {config_path}")

    def _load_from_env(self) -> None:
        """Load configuration overrides from environment variables."""
        env_mappings = {
            "MCP_CLIENT_BASE_URL": ("server.baseUrl", "string"),
            "MCP_CLIENT_HEADERS": ("server.headers", "mapping"),
            "MCP_CLIENT_TIMEOUT": ("timeouts.request", "float"),
            "MCP_CLIENT_TERMINATION_TIMEOUT": ("timeouts.termination", "float"),
            "MCP_CLIENT_PROTOCOL_VERSION": ("protocol.version", "string"),
            "MCP_CLIENT_LOG_LEVEL": ("logging.level", "string"),
            "MCP_CLIENT_LOG_FORMAT": ("logging.format", "string"),
            "MCP_CLIENT_LOG_FILE": ("logging.file", "string"),
        }

        for env_var, (config_path, value_type) in env_mappings.items():
            value = os.getenv(env_var)
            if value is not None:
                try:
                    parsed_value = self._parse_env_value(value, value_type)
                    self._set_nested_value(self.config, config_path, parsed_value)
                    logger.debug(f"Loaded {env_var} from environment")
                except (ValueError, KeyError) as e:
                    logger.warning(f"Failed to parse {env_var}: {e}")

    def _parse_env_value(self, value: str, value_type: str) -> Any:
        """
        Parse environment variable value based on type.

        Args:
            value: String value from environment
            value_type: Type to parse to (string, float, mapping)

        Returns:
            Parsed value

        Raises:
            ValueError: If value cannot be parsed
        """
        if value_type == "string":
            return value
        elif value_type == "float":
            return float(value)
        elif value_type == "mapping":
            # Name=Value pairs separated by commas
            headers = {}
            for item in value.split(","):
                if not item.strip():
                    continue
                name, sep, header_value = item.partition("=")
                if not sep or not name.strip():
                    raise ValueError(f"Expected Name=Value, got: {item!r}")
                headers[name.strip()] = header_value.strip()
            return headers
        else:
            raise ValueError(f"Unknown value type: {value_type}")

    def _merge_config(self, base: Dict, override: Dict) -> None:
        """
        Recursively merge override config into base config.

        Args:
            base: Base configuration dictionary (modified in place)
            override: Override configuration dictionary
        """
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._merge_config(base[key], value)
            else:
                base[key] = value

    def _set_nested_value(self, config: Dict, path: str, value: Any) -> None:
        """
        Set a nested configuration value using dot notation.

        Args:
            config: Configuration dictionary
            path: Dot-separated path to the value
            value: Value to set
        """
        keys = path.split(".")
        current = config

        for key in keys[:-1]:
            if key not in current:
                current[key] = {}
            current = current[key]

        current[keys[-1]] = value

    def _validate_config(self) -> None:
        """
        Validate configuration values.

        Raises:
            ConfigError: If configuration is invalid
        """
        # Validate base URL
        base_url = self.get_base_url()
        try:
            url = httpx.URL(base_url)
        except (httpx.InvalidURL, TypeError) as e:
            raise ConfigError(f"Invalid base URL: {e}", config_key="server.baseUrl")
        if url.scheme not in ("http", "https") or not url.host:
            raise ConfigError(f"Base URL must be an absolute http(s) URL, got: {base_url}",
                              config_key="server.baseUrl")

        # Validate headers
        headers = self.get_headers()
        if not isinstance(headers, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in headers.items()
        ):
            raise ConfigError(f"Headers must map strings to strings, got: {headers}",
                              config_key="server.headers")

        # Validate timeouts
        request_timeout = self.get_request_timeout()
        if request_timeout is not None and (
            not isinstance(request_timeout, (int, float)) or request_timeout <= 0
        ):
            raise ConfigError(f"Request timeout must be positive, got: {request_timeout}",
                              config_key="timeouts.request")

        termination_timeout = self.get_termination_timeout()
        if not isinstance(termination_timeout, (int, float)) or termination_timeout <= 0:
            raise ConfigError(f"Termination timeout must be positive, got: {termination_timeout}",
                              config_key="timeouts.termination")

        # Validate protocol version
        protocol_version = self.get_protocol_version()
        if not isinstance(protocol_version, str) or not protocol_version:
            raise ConfigError(f"Invalid protocol version: {protocol_version}",
                              config_key="protocol.version")

        # Validate log level
        log_level = self.get_log_level()
        valid_levels = ("debug", "info", "warning", "error", "critical")
        if not isinstance(log_level, str) or log_level.lower() not in valid_levels:
            raise ConfigError(f"Invalid log level: {log_level}", config_key="logging.level")

    def get_base_url(self) -> str:
        """Get the server endpoint URL."""
        return self.config.get("server", {}).get("baseUrl", DEFAULT_BASE_URL)

    def get_headers(self) -> Dict[str, str]:
        """Get static headers sent with every exchange."""
        return self.config.get("server", {}).get("headers", {})

    def get_request_timeout(self) -> Optional[float]:
        """Get the per-exchange timeout in seconds (None disables it)."""
        return self.config.get("timeouts", {}).get("request", 30.0)

    def get_termination_timeout(self) -> float:
        """Get the timeout for the session termination notice."""
        return self.config.get("timeouts", {}).get("termination", 5.0)

    def get_protocol_version(self) -> str:
        """Get the protocol version sent during initialization."""
        return self.config.get("protocol", {}).get("version", DEFAULT_PROTOCOL_VERSION)

    def get_log_level(self) -> str:
        """Get client log level."""
        return self.config.get("logging", {}).get("level", "INFO")

    def get_log_format(self) -> str:
        """Get log format string."""
        return self.config.get("logging", {}).get(
            "format",
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    def get_log_file(self) -> Optional[str]:
        """Get log file path (None for console only)."""
        return self.config.get("logging", {}).get("file")

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value by key.

        Args:
            key: Configuration key (supports dot notation)
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key.split(".")
        current = self.config

        for k in keys:
            if isinstance(current, dict) and k in current:
                current = current[k]
            else:
                return default

        return current

    def set(self, key: str, value: Any) -> None:
        """
        Set a configuration value by key and validate the result.

        Args:
            key: Configuration key (supports dot notation)
            value: New value

        Raises:
            ConfigError: If the new value is invalid
        """
        self._set_nested_value(self.config, key, value)
        self._validate_config()

    def to_dict(self) -> Dict[str, Any]:
        """Return configuration as dictionary."""
        return copy.deepcopy(self.config)

    def to_client_config(self) -> ClientConfig:
        """Build the transport configuration from the loaded values."""
        protocol = self.config.get("protocol", {})
        return ClientConfig(
            base_url=self.get_base_url(),
            headers=dict(self.get_headers()),
            request_timeout=self.get_request_timeout(),
            termination_timeout=self.get_termination_timeout(),
            protocol_version=self.get_protocol_version(),
            client_name=protocol.get("clientName", "mcp-http-client"),
            client_version=protocol.get("clientVersion", "1.0.0"),
        )
