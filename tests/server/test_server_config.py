from __future__ import annotations

from mctx import MCPServerConfig
from mctx.security import DEFAULT_MAX_BODY_BYTES


def test_defaults():
    config = MCPServerConfig()

    assert config.name == "mctx-server"
    assert config.mcp_path == "/mcp"
    assert config.max_request_bytes == DEFAULT_MAX_BODY_BYTES
    assert config.allowed_schemes == ["http", "https"]
    assert config.max_yields == 10_000
    assert config.max_execution_ms == 60_000
    assert config.debug is False


def test_from_env_reads_mctx_variables(monkeypatch):
    monkeypatch.setenv("MCTX_SERVER_NAME", "inventory")
    monkeypatch.setenv("MCTX_PORT", "9100")
    monkeypatch.setenv("MCTX_CORS_ORIGINS", "https://a.example, https://b.example")
    monkeypatch.setenv("MCTX_ALLOWED_SCHEMES", "https,s3")
    monkeypatch.setenv("MCTX_MAX_YIELDS", "25")
    monkeypatch.setenv("MCTX_ENV", "development")

    config = MCPServerConfig.from_env()

    assert config.name == "inventory"
    assert config.port == 9100
    assert config.cors_origins == ["https://a.example", "https://b.example"]
    assert config.allowed_schemes == ["https", "s3"]
    assert config.max_yields == 25
    assert config.debug is True


def test_debug_is_off_in_production_or_when_unset(monkeypatch):
    monkeypatch.delenv("MCTX_ENV", raising=False)
    assert MCPServerConfig.from_env().debug is False

    monkeypatch.setenv("MCTX_ENV", "production")
    assert MCPServerConfig.from_env().debug is False
