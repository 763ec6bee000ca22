"""
Tests for the mcpclient command line entry point.
"""

import json
import logging
import os

import httpx
import pytest

import mcpclient
from mcp_http_client import ConfigError, McpHttpClient
from mcp_http_client.streamable_http.tests.conftest import BASE_URL, MockStreamableServer


@pytest.fixture(autouse=True)
def restore_state():
    """Undo the environment and root logger changes made by main."""
    saved_env = dict(os.environ)
    for name in list(os.environ):
        if name.startswith("MCP_CLIENT_"):
            del os.environ[name]

    root_logger = logging.getLogger()
    handlers, level = list(root_logger.handlers), root_logger.level
    yield
    os.environ.clear()
    os.environ.update(saved_env)
    root_logger.handlers[:] = handlers
    root_logger.setLevel(level)


@pytest.fixture
def server(monkeypatch):
    """Route the CLI's client to an in-process mock server."""
    server = MockStreamableServer()
    monkeypatch.setattr(
        mcpclient,
        "McpHttpClient",
        lambda config: McpHttpClient(config, transport=httpx.MockTransport(server.handle)),
    )
    return server


@pytest.fixture
def env_file(tmp_path):
    return str(tmp_path / "missing.env")


class TestParseArguments:
    """Tests for argument parsing helpers."""

    def test_defaults(self):
        args = mcpclient.parse_arguments([])

        assert args.method == "ping"
        assert args.params is None
        assert args.header == []
        assert args.verbose is False

    def test_repeated_headers(self):
        args = mcpclient.parse_arguments(["--header", "A=1", "--header", "B=2", "tools/list"])

        assert args.method == "tools/list"
        assert mcpclient.parse_headers(args.header) == {"A": "1", "B": "2"}

    def test_header_value_may_contain_equals(self):
        assert mcpclient.parse_headers(["Authorization=Bearer a=b"]) == {"Authorization": "Bearer a=b"}

    def test_invalid_header(self):
        with pytest.raises(ConfigError):
            mcpclient.parse_headers(["no-separator"])


class TestMain:
    """Tests for main."""

    def test_request(self, server, env_file, capsys):
        code = mcpclient.main([
            "--url", BASE_URL,
            "--env-file", env_file,
            "--header", "X-Trace=abc",
            "tools/list",
            "--params", '{"cursor": "a"}',
        ])

        assert code == 0
        result = json.loads(capsys.readouterr().out)
        assert result["method"] == "tools/list"
        assert result["params"] == {"cursor": "a"}
        assert server.requests[1].headers["X-Trace"] == "abc"
        assert len(server.deletes) == 1

    def test_ping(self, server, env_file, capsys):
        code = mcpclient.main(["--url", BASE_URL, "--env-file", env_file])

        assert code == 0
        assert "latency_ms" in json.loads(capsys.readouterr().out)

    def test_initialize(self, server, env_file, capsys):
        code = mcpclient.main(["--url", BASE_URL, "--env-file", env_file, "initialize"])

        assert code == 0
        assert json.loads(capsys.readouterr().out) == "initialized"

    def test_initialize_with_params(self, server, env_file, capsys):
        params = {"protocolVersion": "2024-11-05", "capabilities": {}, "clientInfo": {"name": "cli-test"}}

        code = mcpclient.main([
            "--url", BASE_URL, "--env-file", env_file, "initialize", "--params", json.dumps(params),
        ])

        assert code == 0
        assert json.loads(capsys.readouterr().out) == "initialized"
        assert [body["params"] for body in server.requests_for("initialize")] == [params]

    def test_ping_rejects_params(self, server, env_file, capsys):
        code = mcpclient.main(["--url", BASE_URL, "--env-file", env_file, "ping", "--params", "{}"])

        assert code == 2
        assert "--params cannot be used with ping" in capsys.readouterr().err
        assert server.requests == []

    def test_error_response(self, server, env_file):
        code = mcpclient.main(["--url", BASE_URL, "--env-file", env_file, "ping_error"])

        assert code == 1

    def test_env_file(self, server, tmp_path, capsys):
        path = tmp_path / ".env"
        path.write_text(f"MCP_CLIENT_BASE_URL={BASE_URL}\nMCP_CLIENT_HEADERS=X-From-Env=1\n")

        code = mcpclient.main(["--env-file", str(path), "tools/list"])

        assert code == 0
        assert str(server.requests[0].url) == BASE_URL
        assert server.requests[0].headers["X-From-Env"] == "1"

    def test_invalid_params(self, env_file, capsys):
        code = mcpclient.main(["--url", BASE_URL, "--env-file", env_file, "tools/list", "--params", "{"])

        assert code == 2
        assert "Invalid --params JSON" in capsys.readouterr().err

    def test_invalid_url(self, env_file, capsys):
        code = mcpclient.main(["--url", "not-a-url", "--env-file", env_file])

        assert code == 2
        assert "Configuration error" in capsys.readouterr().err
