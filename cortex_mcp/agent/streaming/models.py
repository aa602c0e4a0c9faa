"""
Streaming dataclasses for the Cortex Agent event stream.

Delta content items and nested tool results are modelled as small tagged
unions. Every raw JSON value maps onto exactly one variant, and the catch-all
variants (``UnknownItem``, ``IgnoredToolResult``) are folded as no-ops.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, NamedTuple


class SSEEventType(Enum):
    """Outcome of decoding a single stream line."""
    DATA = "data"
    DONE = "done"
    EMPTY = "empty"
    MALFORMED = "malformed"
    IGNORED = "ignored"


@dataclass(frozen=True)
class Citation:
    """A search-result reference contributing to the answer."""
    document_id: Any
    source_id: Any

    def to_dict(self) -> dict[str, Any]:
        """Render with the wire field names."""
        return {"doc_id": self.document_id, "source_id": self.source_id}


# --------------------------------------------------------------------------- #
# Tool results                                                                #
# --------------------------------------------------------------------------- #


@dataclass(frozen=True)
class JsonToolResult:
    """A ``json`` tool result; any field may be absent."""
    text: str | None = None
    sql: str | None = None
    citations: tuple[Citation, ...] = ()


@dataclass(frozen=True)
class IgnoredToolResult:
    """Any tool result that is not a ``json`` result with a payload."""
    type: Any = None


ToolResult = JsonToolResult | IgnoredToolResult


def _parse_citations(search_results: Any) -> tuple[Citation, ...]:
    if not isinstance(search_results, list):
        return ()
    return tuple(
        Citation(entry.get("doc_id"), entry.get("source_id"))
        for entry in search_results
        if isinstance(entry, dict)
    )


def _as_text(value: Any) -> str | None:
    """Text field as a string; non-string JSON values keep their JSON form."""
    if value is None or isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False)


def parse_tool_result(raw: Any) -> ToolResult:
    """Map one raw nested tool result onto its variant."""
    if not isinstance(raw, dict):
        return IgnoredToolResult()
    payload = raw.get("json")
    if raw.get("type") != "json" or not isinstance(payload, dict):
        return IgnoredToolResult(raw.get("type"))

    text = payload.get("text")
    sql = payload.get("sql")
    return JsonToolResult(
        text=_as_text(text),
        sql=sql if isinstance(sql, str) else None,
        citations=_parse_citations(payload.get("searchResults")),
    )


# --------------------------------------------------------------------------- #
# Delta items                                                                 #
# --------------------------------------------------------------------------- #


@dataclass(frozen=True)
class TextItem:
    """A streamed text fragment."""
    text: str = ""


@dataclass(frozen=True)
class ToolResultsItem:
    """A block of nested tool results, still in raw form."""
    results: tuple[Any, ...] = ()


@dataclass(frozen=True)
class UnknownItem:
    """Any delta item with an unrecognised discriminant."""
    type: Any = None


DeltaItem = TextItem | ToolResultsItem | UnknownItem


def parse_delta_item(raw: Any) -> DeltaItem:
    """Map one raw delta content item onto its variant."""
    if not isinstance(raw, dict):
        return UnknownItem()

    item_type = raw.get("type")
    if item_type == "text":
        text = raw.get("text")
        return TextItem(_as_text(text) or "")

    if item_type == "tool_results":
        block = raw.get("tool_results")
        content = block.get("content") if isinstance(block, dict) else None
        return ToolResultsItem(tuple(content) if isinstance(content, list) else ())

    return UnknownItem(item_type)


# --------------------------------------------------------------------------- #
# Accumulation                                                                #
# --------------------------------------------------------------------------- #


class StreamResult(NamedTuple):
    """Final, immutable answer of one agent stream."""
    text: str
    sql: str
    citations: tuple[Citation, ...]


@dataclass
class AccumulatorState:
    """Mutable state for one stream; never shared between queries."""
    text_parts: list[str] = field(default_factory=list)
    sql: str = ""
    citations: list[Citation] = field(default_factory=list)

    @property
    def text(self) -> str:
        return "".join(self.text_parts)

    def snapshot(self) -> StreamResult:
        """Freeze the accumulated answer."""
        return StreamResult(self.text, self.sql, tuple(self.citations))


@dataclass
class StreamingStats:
    """Per-stream counters for monitoring."""
    total_bytes: int = 0
    total_lines: int = 0
    data_lines: int = 0
    decoded_events: int = 0
    malformed_lines: int = 0
    done_markers: int = 0

    def record(self, event_type: SSEEventType) -> None:
        """Count one decoded line by outcome."""
        self.total_lines += 1
        if event_type is SSEEventType.IGNORED:
            return
        self.data_lines += 1
        if event_type is SSEEventType.DATA:
            self.decoded_events += 1
        elif event_type is SSEEventType.MALFORMED:
            self.malformed_lines += 1
        elif event_type is SSEEventType.DONE:
            self.done_markers += 1

    def as_dict(self) -> dict[str, int]:
        return {
            "total_bytes": self.total_bytes,
            "total_lines": self.total_lines,
            "data_lines": self.data_lines,
            "decoded_events": self.decoded_events,
            "malformed_lines": self.malformed_lines,
            "done_markers": self.done_markers,
        }
