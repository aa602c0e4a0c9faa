"""
MCP tool server exposing Snowflake Cortex Agents.

Cortex Agents combine Cortex Search (semantic search across Snowflake data)
and Cortex Analyst (natural language to SQL). The server registers one tool,
``run_cortex_agents``, which returns the agent's answer, the generated SQL,
its citations and the SQL execution result as a JSON text block.
"""

import json
import logging

from mcp import types
from mcp.server.fastmcp import FastMCP

from cortex_mcp.agent.client import CortexAgentClient
from cortex_mcp.logging_utils import log_mcp_operation

logger = logging.getLogger(__name__)

SERVER_NAME = "Cortex Agent MCP Server"
TOOL_NAME = "run_cortex_agents"
TOOL_TITLE = "Snowflake Cortex Agent Query Tool"
TOOL_DESCRIPTION = "Runs queries through ❄️ Cortex Agents"


class CortexMCPServer:
    """
    Owns the process-wide FastMCP instance.

    The FastMCP server is created on first access and reused afterwards; the
    entry point holds this object for the lifetime of the process.
    """

    def __init__(self, client: CortexAgentClient) -> None:
        self.client = client
        self._mcp: FastMCP | None = None

    @property
    def mcp(self) -> FastMCP:
        """The FastMCP server, created and populated on first use."""
        if self._mcp is None:
            self._mcp = FastMCP(SERVER_NAME)
            self._register_tools(self._mcp)
            logger.info(f"{SERVER_NAME} initialized")
        return self._mcp

    def _register_tools(self, server: FastMCP) -> None:
        async def run_cortex_agents(query: str) -> list[types.TextContent]:
            return await self.run_cortex_agents(query)

        server.add_tool(
            run_cortex_agents,
            name=TOOL_NAME,
            title=TOOL_TITLE,
            description=TOOL_DESCRIPTION,
            structured_output=False,
        )

    @log_mcp_operation(TOOL_NAME)
    async def run_cortex_agents(self, query: str) -> list[types.TextContent]:
        """Run one query and render the composite result as JSON text."""
        if not query:
            raise ValueError("Invalid request object: query is required")

        result = await self.client.run_query(query)
        return [
            types.TextContent(
                type="text",
                text=json.dumps(result.to_dict(), indent=2, default=str),
            )
        ]

    async def run_stdio(self) -> None:
        """Serve over stdio until the client disconnects."""
        await self.mcp.run_stdio_async()
