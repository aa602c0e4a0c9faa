"""
Tool definitions and Cortex Agent request payloads.

Tool definitions live in a JSON file (a list of ``{name, type, resources?}``
objects). Any string value of the exact form ``${NAME}`` is replaced by the
environment variable ``NAME`` before validation, so warehouse names, semantic
model paths and search service names can stay out of the file.
"""

from __future__ import annotations

import json
import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, TypeAdapter

_ENV_PATTERN = re.compile(r"^\$\{(.+)\}$")


class ToolDefinition(BaseModel):
    """A Cortex Agent tool and its optional resource configuration."""
    name: str
    type: str
    resources: dict[str, Any] | None = None


_definitions_adapter = TypeAdapter(list[ToolDefinition])


def substitute_env(value: Any, environ: Mapping[str, str] | None = None) -> Any:
    """Recursively replace ``${NAME}`` strings with environment values."""
    env = os.environ if environ is None else environ

    if isinstance(value, str):
        match = _ENV_PATTERN.match(value)
        if match:
            return env.get(match.group(1), "")
        return value
    if isinstance(value, list):
        return [substitute_env(item, env) for item in value]
    if isinstance(value, dict):
        return {key: substitute_env(item, env) for key, item in value.items()}
    return value


def load_tool_definitions(
    path: str | Path, environ: Mapping[str, str] | None = None
) -> list[ToolDefinition]:
    """Load tool definitions from JSON with environment substitution.

    Args:
        path: Path to the tool definition file.
        environ: Environment mapping, ``os.environ`` when omitted.

    Returns:
        Validated tool definitions in file order.

    Raises:
        FileNotFoundError: If the definition file doesn't exist.
        JSONDecodeError: If the file is not valid JSON.
        ValidationError: If the file is not a list of tool definitions.
    """
    config_path = Path(path)
    if not config_path.is_file():
        raise FileNotFoundError(
            f"Tool definitions not found at {config_path}. "
            "Please ensure the file exists."
        )

    with open(config_path, encoding="utf-8") as f:
        raw = json.load(f)
    return _definitions_adapter.validate_python(substitute_env(raw, environ))


def build_agent_payload(
    tool_definitions: list[ToolDefinition],
    query: str,
    model: str | None,
    instruction: str,
) -> dict[str, Any]:
    """Build a streaming agent request carrying every configured tool."""
    tool_resources: dict[str, Any] = {}
    tools: list[dict[str, Any]] = []

    for tool in tool_definitions:
        if tool.resources:
            tool_resources[tool.name] = tool.resources
        tools.append({"tool_spec": {"name": tool.name, "type": tool.type}})

    payload: dict[str, Any] = {
        "defaultInstruction": instruction,
        "messages": [
            {
                "role": "user",
                "content": [{"type": "text", "text": query}],
            }
        ],
        "stream": True,
        "tool_choice": {"type": "auto"},
        "tool_resources": tool_resources,
        "tools": tools,
    }
    if model:
        payload["model"] = model
    return payload
