"""Configuration management for the Cortex Agent MCP server."""

import os
from typing import Any

import yaml
from dotenv import load_dotenv

AGENT_PATH = "/api/v2/cortex/agent:run"
SQL_STATEMENTS_PATH = "/api/v2/statements"


class Configuration:
    """Manages configuration and environment variables for the MCP server."""

    def __init__(self, config_path: str | None = None) -> None:
        """Initialize configuration from YAML and environment variables."""
        self.load_env()  # Load .env for the access token and account URL
        self._config_path = config_path or os.path.join(
            os.path.dirname(__file__), "config.yaml"
        )
        self._config = self._load_yaml_config()

    @staticmethod
    def load_env() -> None:
        """Load environment variables from .env file."""
        load_dotenv()

    def _load_yaml_config(self) -> dict[str, Any]:
        """Load configuration from YAML file."""
        with open(self._config_path) as file:
            config = yaml.safe_load(file)
            if not isinstance(config, dict):
                raise ValueError(
                    f"Config file must be YAML dict, got {type(config)}"
                )
            return config

    @property
    def snowflake_pat(self) -> str:
        """Get the Snowflake programmatic access token.

        Raises:
            ValueError: If SNOWFLAKE_PAT is not set.
        """
        token = os.getenv("SNOWFLAKE_PAT", "").strip()
        if not token:
            raise ValueError("Set SNOWFLAKE_PAT environment variable")
        return token

    @property
    def account_url(self) -> str:
        """Get the Snowflake account URL without a trailing slash.

        Raises:
            ValueError: If SNOWFLAKE_ACCOUNT_URL is not set.
        """
        url = os.getenv("SNOWFLAKE_ACCOUNT_URL", "").strip()
        if not url:
            raise ValueError("Set SNOWFLAKE_ACCOUNT_URL environment variable")
        return url.rstrip("/")

    @property
    def model(self) -> str | None:
        """Model identifier passed to the agent, if configured."""
        return os.getenv("MODEL", "").strip() or None

    @property
    def agent_endpoint(self) -> str:
        """Agent run endpoint; AGENT_ENDPOINT overrides the account default.

        Raises:
            ValueError: If SNOWFLAKE_ACCOUNT_URL is not set, override or not.
        """
        account_url = self.account_url
        return (
            os.getenv("AGENT_ENDPOINT", "").strip()
            or f"{account_url}{AGENT_PATH}"
        )

    @property
    def sql_endpoint(self) -> str:
        """SQL statements endpoint; REST_SQL_ENDPOINT overrides the default.

        Raises:
            ValueError: If SNOWFLAKE_ACCOUNT_URL is not set, override or not.
        """
        account_url = self.account_url
        return (
            os.getenv("REST_SQL_ENDPOINT", "").strip()
            or f"{account_url}{SQL_STATEMENTS_PATH}"
        )

    def get_agent_config(self) -> dict[str, Any]:
        """Get agent request configuration from YAML.

        Returns:
            Agent configuration dictionary with validated values.

        Raises:
            ValueError: If required agent parameters are missing or invalid.
        """
        agent_config = self._config.get("agent", {})

        required_keys = ["default_instruction", "tool_definitions", "sql_timeout"]
        for key in required_keys:
            if key not in agent_config:
                raise ValueError(
                    f"agent.{key} must be explicitly configured in config.yaml"
                )

        sql_timeout = agent_config["sql_timeout"]
        if not isinstance(sql_timeout, int) or sql_timeout < 1:
            raise ValueError("agent.sql_timeout must be a positive integer")
        if not agent_config["default_instruction"]:
            raise ValueError("agent.default_instruction must not be empty")

        return {**agent_config}

    @property
    def tool_definitions_path(self) -> str:
        """Resolve the tool definition file.

        CORTEX_TOOL_DEFINITIONS takes precedence; a relative path from YAML is
        resolved against this package directory.
        """
        override = os.getenv("CORTEX_TOOL_DEFINITIONS", "").strip()
        if override:
            return override

        path = self.get_agent_config()["tool_definitions"]
        if os.path.isabs(path):
            return path
        return os.path.join(os.path.dirname(__file__), path)

    def get_http_client_config(self) -> dict[str, Any]:
        """Get HTTP client configuration from YAML.

        A null read_timeout disables the client-side read timeout, which the
        agent stream needs for long-running answers.

        Raises:
            ValueError: If required HTTP client parameters are missing or invalid.
        """
        http_config = self._config.get("http_client", {})

        required_keys = [
            "max_connections", "max_keepalive", "connect_timeout",
            "read_timeout", "write_timeout", "pool_timeout",
        ]
        for key in required_keys:
            if key not in http_config:
                raise ValueError(
                    f"http_client.{key} must be explicitly configured "
                    "in config.yaml"
                )

        max_conn = http_config["max_connections"]
        max_keepalive = http_config["max_keepalive"]
        if max_conn < 1:
            raise ValueError("http_client.max_connections must be at least 1")
        if max_keepalive > max_conn:
            raise ValueError("http_client.max_keepalive must be <= max_connections")

        for key in ["connect_timeout", "read_timeout", "write_timeout", "pool_timeout"]:
            value = http_config[key]
            if value is not None and value <= 0:
                raise ValueError(f"http_client.{key} must be positive or null")

        return http_config

    def get_logging_config(self) -> dict[str, Any]:
        """Get logging configuration from YAML."""
        return self._config.get("logging", {})
