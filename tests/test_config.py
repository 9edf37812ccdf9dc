import logging

from zkpret_mcp.cli import resolve_config
from zkpret_mcp.config import (
    DEFAULT_PORT,
    DEFAULT_TOOL_TIMEOUT,
    ServerConfig,
    choose,
    load_config,
    parse_float,
    parse_port,
    parse_tool_rate_limits,
)


def test_defaults_when_environment_empty():
    cfg = load_config({})
    assert cfg == ServerConfig()
    assert cfg.transport == "stdio"
    assert cfg.network == "testnet"
    assert cfg.port == 3000


def test_environment_overrides():
    cfg = load_config(
        {
            "ZKPRET_MCP_TRANSPORT": "SSE",
            "ZKPRET_MCP_NETWORK": "mainnet",
            "ZKPRET_MCP_PORT": "8080",
            "ZKPRET_MCP_TOOL_TIMEOUT": "2.5",
            "ZKPRET_MCP_TOOL_RATE_LIMITS": "proof_generate=0.5",
            "ZKPRET_MCP_LOG_FORMAT": "PLAIN",
        }
    )
    assert cfg.transport == "sse"
    assert cfg.network == "mainnet"
    assert cfg.port == 8080
    assert cfg.tool_timeout == 2.5
    assert cfg.per_tool_rate_limits == {"proof_generate": 0.5}
    assert cfg.log_format == "plain"


def test_unknown_selectors_fall_back_with_warning(caplog):
    with caplog.at_level(logging.WARNING):
        cfg = load_config({"ZKPRET_MCP_TRANSPORT": "carrier-pigeon", "ZKPRET_MCP_NETWORK": "moonnet"})
    assert cfg.transport == "stdio"
    assert cfg.network == "testnet"
    assert "carrier-pigeon" in caplog.text
    assert "moonnet" in caplog.text


def test_numeric_parsing_falls_back_on_bad_values():
    assert parse_float("not-a-number", 1.0) == 1.0
    assert parse_float("-3", 1.0) == 1.0
    assert parse_float("4.5", 1.0) == 4.5
    assert parse_port("99999") == DEFAULT_PORT
    assert parse_port("abc") == DEFAULT_PORT
    assert parse_port("8000") == 8000
    assert load_config({"ZKPRET_MCP_TOOL_TIMEOUT": "zero"}).tool_timeout == DEFAULT_TOOL_TIMEOUT


def test_blank_environment_values_are_ignored():
    assert load_config({"ZKPRET_MCP_HOST": "   "}).host == "127.0.0.1"


def test_parse_tool_rate_limits_skips_malformed():
    raw = "proof_generate=0.5, bad, =3, wallet_create=x, server_info=0, contract_call=2"
    assert parse_tool_rate_limits(raw) == {"proof_generate": 0.5, "contract_call": 2.0}
    assert parse_tool_rate_limits(None) == {}


def test_choose():
    assert choose(None, ("a", "b"), "a", label="x") == "a"
    assert choose(" B ", ("a", "b"), "a", label="x") == "b"
    assert choose("c", ("a", "b"), "a", label="x") == "a"


def test_cli_flags_override_environment():
    env = {"ZKPRET_MCP_TRANSPORT": "stdio", "ZKPRET_MCP_NETWORK": "devnet", "ZKPRET_MCP_PORT": "4000"}
    cfg = resolve_config(["--transport", "sse", "--port", "5000", "--log-level", "debug"], env)
    assert cfg.transport == "sse"
    assert cfg.network == "devnet"
    assert cfg.port == 5000
    assert cfg.log_level == "DEBUG"


def test_cli_invalid_values_fall_back():
    env = {"ZKPRET_MCP_PORT": "4000", "ZKPRET_MCP_TOOL_TIMEOUT": "7"}
    cfg = resolve_config(["--network", "moonnet", "--port", "nope", "--tool-timeout", "-1"], env)
    assert cfg.network == "testnet"
    assert cfg.port == 4000
    assert cfg.tool_timeout == 7.0
