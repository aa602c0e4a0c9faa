"""
Cortex Agent integration.

This package provides:
- Tool definition loading and request payload construction
- SSE decoding and delta accumulation for the agent stream
- Query orchestration (agent call, then optional SQL execution)
"""

from __future__ import annotations

from .exceptions import CortexAgentError, StreamingError
from .payload import (
    ToolDefinition,
    build_agent_payload,
    load_tool_definitions,
    substitute_env,
)

__all__ = [
    "CortexAgentError",
    "StreamingError",
    "ToolDefinition",
    "build_agent_payload",
    "load_tool_definitions",
    "substitute_env",
]
