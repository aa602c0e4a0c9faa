#!/usr/bin/env python3
"""
Test fail-fast startup behaviour.
"""

import json
from unittest.mock import patch

import pytest
import yaml

from cortex_mcp import main as main_module
from cortex_mcp.config import Configuration


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    for name in [
        "SNOWFLAKE_PAT", "SNOWFLAKE_ACCOUNT_URL", "CORTEX_TOOL_DEFINITIONS",
        "AGENT_ENDPOINT", "REST_SQL_ENDPOINT",
    ]:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(Configuration, "load_env", staticmethod(lambda: None))

    definitions = tmp_path / "tool_definitions.json"
    definitions.write_text(json.dumps([{"name": "sql_exec", "type": "sql_exec"}]))
    path = tmp_path / "config.yaml"
    path.write_text(yaml.dump({
        "agent": {
            "default_instruction": "Be concise.",
            "tool_definitions": str(definitions),
            "sql_timeout": 60,
        },
        "http_client": {
            "max_connections": 10,
            "max_keepalive": 5,
            "connect_timeout": 5.0,
            "read_timeout": None,
            "write_timeout": 10.0,
            "pool_timeout": 5.0,
        },
    }))
    return str(path)


def test_load_settings_requires_token(config_file, monkeypatch):
    monkeypatch.setenv("SNOWFLAKE_ACCOUNT_URL", "https://acme.snowflakecomputing.com")

    with pytest.raises(ValueError, match="SNOWFLAKE_PAT"):
        main_module.load_settings(Configuration(config_file))


def test_load_settings_requires_account_url_with_endpoint_overrides(config_file, monkeypatch):
    monkeypatch.setenv("SNOWFLAKE_PAT", "pat-123")
    monkeypatch.setenv("AGENT_ENDPOINT", "https://proxy/agent")
    monkeypatch.setenv("REST_SQL_ENDPOINT", "https://proxy/sql")

    with pytest.raises(ValueError, match="SNOWFLAKE_ACCOUNT_URL"):
        main_module.load_settings(Configuration(config_file))


def test_load_settings_requires_tool_definitions(config_file, monkeypatch, tmp_path):
    monkeypatch.setenv("SNOWFLAKE_PAT", "pat-123")
    monkeypatch.setenv("SNOWFLAKE_ACCOUNT_URL", "https://acme.snowflakecomputing.com")
    monkeypatch.setenv("CORTEX_TOOL_DEFINITIONS", str(tmp_path / "missing.json"))

    with pytest.raises(FileNotFoundError):
        main_module.load_settings(Configuration(config_file))


def test_load_settings_success(config_file, monkeypatch):
    monkeypatch.setenv("SNOWFLAKE_PAT", "pat-123")
    monkeypatch.setenv("SNOWFLAKE_ACCOUNT_URL", "https://acme.snowflakecomputing.com")

    settings = main_module.load_settings(Configuration(config_file))

    assert settings.agent_endpoint.endswith("/api/v2/cortex/agent:run")


def test_run_exits_non_zero_on_fatal_error(capsys):
    async def failing_main():
        raise ValueError("Set SNOWFLAKE_PAT environment variable")

    with patch.object(main_module, "main", failing_main):
        with pytest.raises(SystemExit) as exc_info:
            main_module.run()

    assert exc_info.value.code == 1
    assert "Set SNOWFLAKE_PAT" in capsys.readouterr().err


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
