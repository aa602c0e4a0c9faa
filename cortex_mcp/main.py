"""
Main module for the Cortex Agent MCP server.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
import sys

from cortex_mcp.agent.client import AgentSettings, CortexAgentClient
from cortex_mcp.agent.payload import load_tool_definitions
from cortex_mcp.config import Configuration
from cortex_mcp.logging_utils import configure_logging
from cortex_mcp.server import CortexMCPServer


def load_settings(config: Configuration) -> AgentSettings:
    """
    Resolve and validate everything needed before serving.

    Raises:
        ValueError: If SNOWFLAKE_PAT, SNOWFLAKE_ACCOUNT_URL or a required YAML
            key is missing.
        FileNotFoundError: If the tool definition file doesn't exist.
    """
    settings = AgentSettings.from_configuration(config)
    tool_definitions = load_tool_definitions(settings.tool_definitions_path)
    logging.info(
        f"Loaded {len(tool_definitions)} tool definitions from "
        f"{settings.tool_definitions_path}"
    )
    return settings


async def main() -> None:
    """Main entry point - stdio MCP server with graceful shutdown handling."""
    config = Configuration()
    configure_logging(config.get_logging_config())
    settings = load_settings(config)

    shutdown_event = asyncio.Event()

    def signal_handler() -> None:
        """Handle shutdown signals gracefully."""
        logging.info("Received shutdown signal, initiating graceful shutdown...")
        shutdown_event.set()

    if sys.platform != "win32":
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, signal_handler)

    async with CortexAgentClient(settings) as client:
        server = CortexMCPServer(client)
        try:
            server_task = asyncio.create_task(server.run_stdio())

            done, pending = await asyncio.wait(
                [server_task, asyncio.create_task(shutdown_event.wait())],
                return_when=asyncio.FIRST_COMPLETED
            )

            for task in pending:
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task

            for task in done:
                if task == server_task:
                    exception = task.exception()
                    if exception is not None:
                        raise exception

        except Exception as e:
            logging.error(f"Application error: {e}")
            raise
        finally:
            logging.info("Application shutdown complete")


def run() -> None:
    """Console script entry point; exits non-zero on any fatal error."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
    except Exception as e:
        print(f"Fatal error -> {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    run()
