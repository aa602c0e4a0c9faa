#!/usr/bin/env python3
"""
Test tool definition loading and agent payload construction.
"""

import json

import pytest
from pydantic import ValidationError

from cortex_mcp.agent.payload import (
    ToolDefinition,
    build_agent_payload,
    load_tool_definitions,
    substitute_env,
)

INSTRUCTION = "Be concise."


class TestSubstituteEnv:
    """Test recursive ${NAME} substitution."""

    def test_exact_match_replaced(self):
        assert substitute_env("${WAREHOUSE}", {"WAREHOUSE": "COMPUTE_WH"}) == "COMPUTE_WH"

    def test_unset_variable_becomes_empty(self):
        assert substitute_env("${MISSING}", {}) == ""

    def test_partial_match_untouched(self):
        env = {"DB": "SALES"}
        assert substitute_env("prefix-${DB}", env) == "prefix-${DB}"
        assert substitute_env("${DB}.PUBLIC", env) == "${DB}.PUBLIC"

    def test_nested_structures(self):
        value = {
            "resources": {"name": "${SEARCH}", "max_results": 5},
            "list": ["${SEARCH}", {"deep": "${MODEL_FILE}"}, None, True],
        }
        env = {"SEARCH": "docs_search", "MODEL_FILE": "@stage/model.yaml"}

        assert substitute_env(value, env) == {
            "resources": {"name": "docs_search", "max_results": 5},
            "list": ["docs_search", {"deep": "@stage/model.yaml"}, None, True],
        }


class TestLoadToolDefinitions:
    """Test load_tool_definitions."""

    def test_loads_with_substitution(self, tmp_path):
        path = tmp_path / "tool_definitions.json"
        path.write_text(json.dumps([
            {"name": "analyst1", "type": "cortex_analyst_text_to_sql",
             "resources": {"semantic_model_file": "${SEMANTIC_MODEL_FILE}"}},
            {"name": "sql_exec", "type": "sql_exec"},
        ]))

        definitions = load_tool_definitions(path, {"SEMANTIC_MODEL_FILE": "@db.s.stage/m.yaml"})

        assert [d.name for d in definitions] == ["analyst1", "sql_exec"]
        assert definitions[0].resources == {"semantic_model_file": "@db.s.stage/m.yaml"}
        assert definitions[1].resources is None

    def test_missing_file(self, tmp_path):
        missing = tmp_path / "nope.json"
        with pytest.raises(FileNotFoundError, match="nope.json"):
            load_tool_definitions(missing)

    def test_invalid_shape(self, tmp_path):
        path = tmp_path / "tool_definitions.json"
        path.write_text(json.dumps([{"type": "cortex_search"}]))

        with pytest.raises(ValidationError):
            load_tool_definitions(path, {})


class TestBuildAgentPayload:
    """Test build_agent_payload."""

    def test_full_payload(self):
        definitions = [
            ToolDefinition(name="analyst1", type="cortex_analyst_text_to_sql",
                           resources={"semantic_model_file": "@s/m.yaml"}),
            ToolDefinition(name="search1", type="cortex_search",
                           resources={"name": "docs_search"}),
            ToolDefinition(name="sql_exec", type="sql_exec"),
        ]

        payload = build_agent_payload(definitions, "How many orders?", "claude-3-5-sonnet", INSTRUCTION)

        assert payload == {
            "defaultInstruction": INSTRUCTION,
            "messages": [{
                "role": "user",
                "content": [{"type": "text", "text": "How many orders?"}],
            }],
            "model": "claude-3-5-sonnet",
            "stream": True,
            "tool_choice": {"type": "auto"},
            "tool_resources": {
                "analyst1": {"semantic_model_file": "@s/m.yaml"},
                "search1": {"name": "docs_search"},
            },
            "tools": [
                {"tool_spec": {"name": "analyst1", "type": "cortex_analyst_text_to_sql"}},
                {"tool_spec": {"name": "search1", "type": "cortex_search"}},
                {"tool_spec": {"name": "sql_exec", "type": "sql_exec"}},
            ],
        }

    def test_model_omitted_when_unset(self):
        payload = build_agent_payload([], "q", None, INSTRUCTION)

        assert "model" not in payload
        assert payload["tools"] == []
        assert payload["tool_resources"] == {}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
