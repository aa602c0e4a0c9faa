"""
Cortex Agent query orchestration.

A query is one streamed agent call followed, when the agent produced SQL, by a
statement execution call. Agent failures are fatal for the query; statement
failures are reported inside the result.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Any

import httpx
from pydantic import BaseModel, Field

from cortex_mcp.config import Configuration
from cortex_mcp.logging_utils import operation_context

from .exceptions import CortexAgentError, StreamingError
from .payload import build_agent_payload, load_tool_definitions
from .streaming.models import Citation, StreamResult
from .streaming.parser import StreamConsumer

logger = logging.getLogger(__name__)

TOKEN_TYPE_HEADER = "X-Snowflake-Authorization-Token-Type"
TOKEN_TYPE = "PROGRAMMATIC_ACCESS_TOKEN"


class AgentSettings(BaseModel):
    """Everything the client needs to talk to one Snowflake account."""
    pat: str = Field(min_length=1)
    agent_endpoint: str
    sql_endpoint: str
    model: str | None = None
    default_instruction: str
    tool_definitions_path: str
    sql_timeout: int = 60
    http_client: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_configuration(cls, config: Configuration) -> AgentSettings:
        agent_config = config.get_agent_config()
        return cls(
            pat=config.snowflake_pat,
            agent_endpoint=config.agent_endpoint,
            sql_endpoint=config.sql_endpoint,
            model=config.model,
            default_instruction=agent_config["default_instruction"],
            tool_definitions_path=config.tool_definitions_path,
            sql_timeout=agent_config["sql_timeout"],
            http_client=config.get_http_client_config(),
        )


@dataclass(frozen=True)
class QueryResult:
    """Composite answer of one query."""
    text: str
    sql: str
    citations: tuple[Citation, ...]
    execution_result: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "sql": self.sql,
            "citations": [citation.to_dict() for citation in self.citations],
            "execution_result": self.execution_result,
        }


def _build_timeout(http_config: dict[str, Any]) -> httpx.Timeout:
    return httpx.Timeout(
        connect=http_config.get("connect_timeout", 10.0),
        read=http_config.get("read_timeout"),
        write=http_config.get("write_timeout", 30.0),
        pool=http_config.get("pool_timeout", 10.0),
    )


def _build_limits(http_config: dict[str, Any]) -> httpx.Limits:
    return httpx.Limits(
        max_connections=http_config.get("max_connections", 20),
        max_keepalive_connections=http_config.get("max_keepalive", 10),
    )


class CortexAgentClient:
    """Runs natural-language queries through a Cortex Agent."""

    def __init__(
        self,
        settings: AgentSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings
        self.client: httpx.AsyncClient = httpx.AsyncClient(
            timeout=_build_timeout(settings.http_client),
            limits=_build_limits(settings.http_client),
            transport=transport,
        )

    def get_headers(self, *, accept_stream: bool = False) -> dict[str, str]:
        """Build request headers for the Snowflake REST APIs."""
        headers = {
            "Authorization": f"Bearer {self.settings.pat}",
            "Content-Type": "application/json",
            TOKEN_TYPE_HEADER: TOKEN_TYPE,
        }
        headers["Accept"] = "text/event-stream" if accept_stream else "application/json"
        return headers

    async def run_query(self, query: str) -> QueryResult:
        """
        Run a query end to end.

        Sends the query to the agent, folds the streamed answer and executes
        the generated SQL, if any.

        Raises:
            ValueError: If the query is empty. Nothing is sent in that case.
            CortexAgentError: If the agent call fails.
        """
        if not isinstance(query, str) or not query.strip():
            raise ValueError("Invalid request object: query must be a non-empty string")

        tool_definitions = await asyncio.to_thread(
            load_tool_definitions, self.settings.tool_definitions_path
        )
        payload = build_agent_payload(
            tool_definitions,
            query,
            self.settings.model,
            self.settings.default_instruction,
        )

        answer = await self.stream_agent(payload)
        execution_result = await self.execute_sql(answer.sql) if answer.sql else None

        return QueryResult(
            text=answer.text,
            sql=answer.sql,
            citations=answer.citations,
            execution_result=execution_result,
        )

    async def stream_agent(self, payload: dict[str, Any]) -> StreamResult:
        """POST the agent request and consume its event stream."""
        request_id = str(uuid.uuid4())
        try:
            async with self.client.stream(
                "POST",
                self.settings.agent_endpoint,
                params={"requestId": request_id},
                json=payload,
                headers=self.get_headers(accept_stream=True),
            ) as response:
                # FAIL FAST: an error body is not an event stream
                if not response.is_success:
                    error_text = (await response.aread()).decode("utf-8", "replace")
                    raise CortexAgentError(
                        f"Agent API error {response.status_code}: {error_text}",
                        status_code=response.status_code,
                        response_data={"body": error_text, "request_id": request_id},
                    )

                return await StreamConsumer().consume_response(response)

        except httpx.HTTPError as e:
            logger.error(f"HTTP error during agent stream {request_id}: {e}")
            raise StreamingError(
                f"HTTP error during agent stream: {e!s}",
                response_data={"request_id": request_id},
            ) from e

    async def execute_sql(self, sql: str) -> dict[str, Any]:
        """
        Execute generated SQL through the statements API.

        Never raises: failures come back as ``{"error": <message>}``.
        """
        request_id = str(uuid.uuid4())
        statement = sql.replace(";", "")
        sql_payload = {"statement": statement, "timeout": self.settings.sql_timeout}

        try:
            async with operation_context(
                "execute_sql", context={"request_id": request_id}
            ) as op_logger:
                response = await self.client.post(
                    self.settings.sql_endpoint,
                    params={"requestId": request_id},
                    json=sql_payload,
                    headers=self.get_headers(),
                )
                if response.is_success:
                    return response.json()

                op_logger.warning(
                    "SQL API returned an error status",
                    status_code=response.status_code,
                )
                return {"error": f"SQL API error: {response.text}"}
        except Exception as e:
            return {"error": f"SQL execution error: {e!s}"}

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self) -> CortexAgentClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
