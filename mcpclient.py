#!/usr/bin/env python3
"""
MCP HTTP Client - Command Line Entry Point

Connect to a Streamable HTTP MCP server, run one request and print the result.
"""

import argparse
import asyncio
import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from mcp_http_client import (
    Config,
    ConfigError,
    McpClientError,
    McpHttpClient,
    StreamableHttpError,
)


class JsonFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def setup_logging(config: Config, verbose: bool = False) -> None:
    """
    Set up logging configuration.

    Logs go to stderr so stdout carries only the request result.

    Args:
        config: Configuration object
        verbose: Whether to enable verbose logging
    """
    log_level = logging.DEBUG if verbose else getattr(logging, config.get_log_level().upper(), logging.INFO)
    log_format = config.get_log_format()
    log_file = config.get_log_file()

    # Create formatter
    if log_format.lower() == "json":
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(log_format)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # File handler with rotation
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5
        )
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # httpx logs every request at INFO
    if not verbose:
        logging.getLogger("httpx").setLevel(logging.WARNING)


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        description="Send a request to a Streamable HTTP MCP server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python mcpclient.py --url http://localhost:8000/mcp
  python mcpclient.py --url http://localhost:8000/mcp tools/list
  python mcpclient.py tools/call --params '{"name": "echo", "arguments": {"text": "hi"}}'
  python mcpclient.py --header "Authorization=Bearer xyz" --verbose ping
        """
    )

    parser.add_argument(
        "method",
        nargs="?",
        default="ping",
        help="JSON-RPC method to call after initializing (default: ping)"
    )

    parser.add_argument(
        "--params",
        type=str,
        default=None,
        help="Request parameters as a JSON document (replaces the initialize params; not accepted for ping)"
    )

    parser.add_argument(
        "--url",
        type=str,
        default=None,
        help="Override server endpoint URL"
    )

    parser.add_argument(
        "--header",
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="Extra header sent with every request (repeatable)"
    )

    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Override per-request timeout in seconds"
    )

    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to configuration file"
    )

    parser.add_argument(
        "--env-file",
        type=str,
        default=None,
        help="Path to a .env file (default: .env in the current directory)"
    )

    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging"
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["debug", "info", "warning", "error", "critical"],
        default=None,
        help="Override log level"
    )

    return parser.parse_args(argv)


def parse_headers(values: List[str]) -> Dict[str, str]:
    """
    Parse ``NAME=VALUE`` header arguments.

    Raises:
        ConfigError: If an argument has no ``=``
    """
    headers = {}
    for value in values:
        name, sep, header_value = value.partition("=")
        if not sep or not name.strip():
            raise ConfigError(f"Invalid header {value!r}, expected NAME=VALUE", config_key="header")
        headers[name.strip()] = header_value.strip()
    return headers


def print_notification(method: str, params: Dict[str, Any]) -> None:
    """Print a server notification as it arrives."""
    print(f"<- {method} {json.dumps(params)}", flush=True)


async def run(config: Config, method: str, params: Any) -> int:
    """
    Connect, run one request and close.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    client = McpHttpClient(config.to_client_config())
    client.set_notification_handler(print_notification)

    try:
        logging.info(f"Initializing connection to {config.get_base_url()}...")
        if method == "initialize" and params is not None:
            server_info = await client.request(method, params)
        else:
            server_info = await client.connect()
        logging.info(f"Connection initialized with protocol version {config.get_protocol_version()}. "
                     f"Session ID: {client.get_session_id() or '(none)'}")

        if method == "initialize":
            result = server_info
        elif method == "ping":
            latency = await client.ping()
            result = {"latency_ms": round(latency * 1000, 3)}
        else:
            result = await client.request(method, params)

        print(json.dumps(result, indent=2, ensure_ascii=False))
        return 0

    except StreamableHttpError as e:
        logging.error(f"{method} failed: {e}")
        return 1
    except asyncio.TimeoutError:
        logging.error(f"{method} timed out")
        return 1
    finally:
        await client.close()


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    args = parse_arguments(argv)

    load_dotenv(args.env_file)

    try:
        config = Config(args.config)

        # Override config with CLI arguments
        if args.url:
            config.set("server.baseUrl", args.url)
        if args.header:
            config.set("server.headers", {**config.get_headers(), **parse_headers(args.header)})
        if args.timeout is not None:
            config.set("timeouts.request", args.timeout)
        if args.log_level:
            config.set("logging.level", args.log_level)

        params = json.loads(args.params) if args.params else None
        if args.method == "ping" and params is not None:
            print("--params cannot be used with ping", file=sys.stderr)
            return 2
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2
    except json.JSONDecodeError as e:
        print(f"Invalid --params JSON: {e}", file=sys.stderr)
        return 2

    setup_logging(config, args.verbose)

    try:
        return asyncio.run(run(config, args.method, params))
    except McpClientError as e:
        logging.error(f"Client error: {e}")
        return 1


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        logging.info("Interrupted by user")
        sys.exit(0)
