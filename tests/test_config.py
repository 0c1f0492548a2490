import pytest

from mcp_id_shim.config import ShimConfig
from mcp_id_shim.rewriter import ParseMode


def test_defaults():
    config = ShimConfig.from_env({"MCP_ID_SHIM_UPSTREAM_URL": "https://mcp.example.com/"})
    assert config.upstream_url == "https://mcp.example.com"
    assert config.host == "127.0.0.1"
    assert config.port == 0
    assert config.operation_id == "InvokeMCP"
    assert config.operation_header == "x-operation-id"
    assert config.parse_mode is ParseMode.BLOCKS
    assert config.timeout == 300.0
    assert config.debug is False


def test_all_variables():
    config = ShimConfig.from_env({
        "MCP_ID_SHIM_UPSTREAM_URL": "http://localhost:9000/mcp",
        "MCP_ID_SHIM_HOST": "0.0.0.0",
        "MCP_ID_SHIM_PORT": "8080",
        "MCP_ID_SHIM_OPERATION_ID": "CallTool",
        "MCP_ID_SHIM_OPERATION_HEADER": "X-Op",
        "MCP_ID_SHIM_PARSE_MODE": "LAST",
        "MCP_ID_SHIM_TIMEOUT": "12.5",
        "MCP_ID_SHIM_DEBUG": "yes",
    })
    assert config.upstream_url == "http://localhost:9000/mcp"
    assert config.host == "0.0.0.0"
    assert config.port == 8080
    assert config.operation_id == "CallTool"
    assert config.operation_header == "x-op"
    assert config.parse_mode is ParseMode.LAST
    assert config.timeout == 12.5
    assert config.debug is True


def test_overrides_win_and_none_is_ignored():
    config = ShimConfig.from_env(
        {"MCP_ID_SHIM_UPSTREAM_URL": "http://a.test", "MCP_ID_SHIM_PORT": "1"},
        upstream_url="http://b.test",
        port=None,
        parse_mode="last",
    )
    assert config.upstream_url == "http://b.test"
    assert config.port == 1
    assert config.parse_mode is ParseMode.LAST


def test_blank_values_fall_back_to_defaults():
    config = ShimConfig.from_env({
        "MCP_ID_SHIM_UPSTREAM_URL": "http://a.test",
        "MCP_ID_SHIM_HOST": "   ",
    })
    assert config.host == "127.0.0.1"


def test_reads_os_environ(monkeypatch):
    monkeypatch.setenv("MCP_ID_SHIM_UPSTREAM_URL", "http://env.test")
    assert ShimConfig.from_env().upstream_url == "http://env.test"


@pytest.mark.parametrize("env, message", [
    ({}, "UPSTREAM_URL is required"),
    ({"MCP_ID_SHIM_UPSTREAM_URL": "ftp://x"}, "must be http"),
    ({"MCP_ID_SHIM_UPSTREAM_URL": "http://x", "MCP_ID_SHIM_PORT": "http"}, "PORT must be an integer"),
    ({"MCP_ID_SHIM_UPSTREAM_URL": "http://x", "MCP_ID_SHIM_PORT": "70000"}, "Port out of range"),
    ({"MCP_ID_SHIM_UPSTREAM_URL": "http://x", "MCP_ID_SHIM_PARSE_MODE": "all"}, "PARSE_MODE must be one of"),
    ({"MCP_ID_SHIM_UPSTREAM_URL": "http://x", "MCP_ID_SHIM_TIMEOUT": "soon"}, "TIMEOUT must be a number"),
    ({"MCP_ID_SHIM_UPSTREAM_URL": "http://x", "MCP_ID_SHIM_TIMEOUT": "0"}, "Timeout must be positive"),
])
def test_invalid_config(env, message):
    with pytest.raises(ValueError, match=message):
        ShimConfig.from_env(env)
