"""
SSE decoding and accumulation for the Cortex Agent event stream.

The agent answers with ``data: <json>`` lines terminated by ``data: [DONE]``.
Each data line carries a delta whose ``content`` array is folded into a single
accumulator: text is appended in arrival order, the latest SQL wins and search
citations are appended without deduplication.

Malformed lines are skipped and counted; only I/O failures of the underlying
response stream propagate.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterable
from typing import Any

import httpx

from .models import (
    AccumulatorState,
    JsonToolResult,
    SSEEventType,
    StreamingStats,
    StreamResult,
    TextItem,
    ToolResultsItem,
    parse_delta_item,
    parse_tool_result,
)

logger = logging.getLogger(__name__)

DATA_PREFIX = "data:"
DONE_MARKER = "[DONE]"


class DeltaDecoder:
    """Turns one SSE line into a delta content array, or nothing."""

    def __init__(self) -> None:
        self.last_event_type: SSEEventType = SSEEventType.IGNORED

    def decode_line(self, line: str) -> list[Any] | None:
        """
        Decode a single stream line.

        Returns the ``content`` array of the delta, or None when the line is
        not a data line, is empty, is the ``[DONE]`` marker, cannot be parsed
        as JSON (too deeply nested or oversized numbers included) or carries
        no content array.
        """
        if not line.startswith(DATA_PREFIX):
            self.last_event_type = SSEEventType.IGNORED
            return None

        payload = line[len(DATA_PREFIX):].strip()
        if not payload:
            self.last_event_type = SSEEventType.EMPTY
            return None
        if payload == DONE_MARKER:
            self.last_event_type = SSEEventType.DONE
            return None

        try:
            event = json.loads(payload)
        except (ValueError, RecursionError):
            self.last_event_type = SSEEventType.MALFORMED
            logger.debug(f"Skipping malformed stream line: {payload[:200]!r}")
            return None

        content = self._extract_content(event)
        if content is None:
            self.last_event_type = SSEEventType.MALFORMED
            return None

        self.last_event_type = SSEEventType.DATA
        return content

    @staticmethod
    def _extract_content(event: Any) -> list[Any] | None:
        """Find ``delta.content`` at the top level or under ``data``."""
        if not isinstance(event, dict):
            return None

        delta = event.get("delta")
        if delta is None and isinstance(event.get("data"), dict):
            delta = event["data"].get("delta")

        if not isinstance(delta, dict):
            return None
        content = delta.get("content")
        return content if isinstance(content, list) else None


class ContentReducer:
    """Folds delta content arrays into an accumulator in place."""

    def fold(self, content: list[Any], state: AccumulatorState) -> None:
        for raw_item in content:
            item = parse_delta_item(raw_item)
            if isinstance(item, TextItem):
                state.text_parts.append(item.text)
            elif isinstance(item, ToolResultsItem):
                self.fold_tool_results(item.results, state)
            # UnknownItem: nothing to fold

    def fold_tool_results(
        self, results: tuple[Any, ...] | list[Any], state: AccumulatorState
    ) -> None:
        for raw_result in results:
            result = parse_tool_result(raw_result)
            if not isinstance(result, JsonToolResult):
                continue

            if result.text is not None:
                state.text_parts.append(result.text)
            if result.sql:
                state.sql = result.sql
            state.citations.extend(result.citations)


class StreamConsumer:
    """
    Drives the decoder and reducer over the lines of the agent stream.

    Line splitting and UTF-8 decoding are left to httpx, which holds back
    partial lines and split multi-byte characters until the rest arrives and
    replaces undecodable bytes.
    """

    def __init__(
        self,
        decoder: DeltaDecoder | None = None,
        reducer: ContentReducer | None = None,
    ):
        self.decoder = decoder or DeltaDecoder()
        self.reducer = reducer or ContentReducer()
        self.stats = StreamingStats()

    async def consume(self, lines: AsyncIterable[str]) -> StreamResult:
        """Read decoded lines to EOF and return the accumulated answer."""
        state = AccumulatorState()
        self.stats = StreamingStats()

        async for line in lines:
            self._process_line(line, state)

        return state.snapshot()

    async def consume_response(self, response: httpx.Response) -> StreamResult:
        """Consume the body of a streamed HTTP response."""
        result = await self.consume(response.aiter_lines())
        self.stats.total_bytes = response.num_bytes_downloaded
        logger.info(f"Agent stream completed: {self.stats.as_dict()}")
        return result

    def _process_line(self, line: str, state: AccumulatorState) -> None:
        content = self.decoder.decode_line(line)
        self.stats.record(self.decoder.last_event_type)
        if content is not None:
            self.reducer.fold(content, state)

    def get_stats(self) -> dict[str, int]:
        """Get streaming statistics for monitoring."""
        return self.stats.as_dict()
