#!/usr/bin/env python3
"""
Test SSE line decoding for the Cortex Agent stream.
"""

import json

import pytest

from cortex_mcp.agent.streaming.models import SSEEventType
from cortex_mcp.agent.streaming.parser import DeltaDecoder


def data_line(event) -> str:
    return f"data: {json.dumps(event)}"


class TestDeltaDecoder:
    """Test DeltaDecoder.decode_line."""

    def test_top_level_delta(self):
        """Content under a top-level delta is returned."""
        decoder = DeltaDecoder()
        content = [{"type": "text", "text": "Hello"}]

        assert decoder.decode_line(data_line({"delta": {"content": content}})) == content
        assert decoder.last_event_type == SSEEventType.DATA

    def test_delta_nested_under_data(self):
        """Content under data.delta is returned."""
        decoder = DeltaDecoder()
        content = [{"type": "text", "text": "nested"}]

        line = data_line({"data": {"delta": {"content": content}}})
        assert decoder.decode_line(line) == content

    def test_top_level_delta_preferred(self):
        """When both envelopes are present the top-level delta wins."""
        decoder = DeltaDecoder()
        event = {
            "delta": {"content": [{"type": "text", "text": "top"}]},
            "data": {"delta": {"content": [{"type": "text", "text": "nested"}]}},
        }

        assert decoder.decode_line(data_line(event)) == [{"type": "text", "text": "top"}]

    def test_prefix_without_space(self):
        """The data: prefix does not require a following space."""
        decoder = DeltaDecoder()
        line = 'data:{"delta":{"content":[]}}'

        assert decoder.decode_line(line) == []

    @pytest.mark.parametrize("line", [
        "event: message.delta",
        ": keep-alive comment",
        "",
        'id: {"delta":{"content":[]}}',
    ])
    def test_non_data_lines_ignored(self, line):
        """Lines without the data: prefix yield nothing."""
        decoder = DeltaDecoder()

        assert decoder.decode_line(line) is None
        assert decoder.last_event_type == SSEEventType.IGNORED

    def test_done_marker(self):
        """The [DONE] sentinel yields nothing and is not an error."""
        decoder = DeltaDecoder()

        assert decoder.decode_line("data: [DONE]") is None
        assert decoder.last_event_type == SSEEventType.DONE

    def test_empty_payload(self):
        """An empty payload yields nothing."""
        decoder = DeltaDecoder()

        assert decoder.decode_line("data:    ") is None
        assert decoder.last_event_type == SSEEventType.EMPTY

    @pytest.mark.parametrize("line", [
        "data: {not json",
        'data: {"delta": {"content": "not a list"}}',
        'data: {"delta": {}}',
        'data: {"data": "string envelope"}',
        "data: [1, 2, 3]",
        "data: 42",
    ])
    def test_malformed_payload_skipped(self, line):
        """Bad JSON or a missing content array yields nothing without raising."""
        decoder = DeltaDecoder()

        assert decoder.decode_line(line) is None
        assert decoder.last_event_type == SSEEventType.MALFORMED

    @pytest.mark.parametrize("payload", [
        "[" * 100000,
        "9" * 5000,
        '{"delta":{"content":[' + "1" * 5000 + "]}}",
    ], ids=["deep-nesting", "huge-integer", "huge-integer-in-content"])
    def test_unparseable_json_skipped(self, payload):
        """Nesting past the recursion limit and oversized integers are malformed."""
        decoder = DeltaDecoder()

        assert decoder.decode_line("data: " + payload) is None
        assert decoder.last_event_type == SSEEventType.MALFORMED

    def test_carriage_return_stripped(self):
        """CRLF line endings do not break decoding."""
        decoder = DeltaDecoder()
        line = 'data: {"delta":{"content":[{"type":"text","text":"x"}]}}\r'

        assert decoder.decode_line(line) == [{"type": "text", "text": "x"}]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
