"""Tests for intent-driven argument planning."""

from __future__ import annotations

from mcpx.discovery.models import ToolParameter, ToolSchema
from mcpx.synthesis.plan import IntentFacts, plan_calls


class TestIntentFacts:
    def test_extracts_literals(self) -> None:
        facts = IntentFacts.extract('fetch https://example.com/a then save "hello world" to ./out/data.json 3 times')

        assert facts.urls == ["https://example.com/a"]
        assert facts.quoted == ["hello world"]
        assert "./out/data.json" in facts.paths
        assert facts.numbers == ["3"]

    def test_plain_filename_is_a_path(self) -> None:
        assert IntentFacts.extract("read file config.json").paths == ["config.json"]


class TestPlanCalls:
    def test_path_parameter_gets_path(self) -> None:
        tool = ToolSchema(name="fs_read", parameters=[ToolParameter(name="path", type="string")])

        (call,) = plan_calls([tool], "read file config.json")

        assert call.tool == "fs_read"
        assert call.arguments == {"path": "config.json"}

    def test_url_and_number(self) -> None:
        tool = ToolSchema(
            name="http_get",
            parameters=[
                ToolParameter(name="url", type="string"),
                ToolParameter(name="retries", type="integer", required=False),
            ],
        )

        (call,) = plan_calls([tool], "get https://example.com with 2 retries")

        assert call.arguments == {"url": "https://example.com", "retries": 2}

    def test_text_parameter_falls_back_to_intent(self) -> None:
        tool = ToolSchema(name="search", parameters=[ToolParameter(name="query", type="string")])

        (call,) = plan_calls([tool], "find open issues")

        assert call.arguments == {"query": "find open issues"}

    def test_default_used_for_optional(self) -> None:
        tool = ToolSchema(
            name="list_dir",
            parameters=[ToolParameter(name="depth", type="integer", required=False, default=1)],
        )

        (call,) = plan_calls([tool], "list things")

        assert call.arguments == {"depth": 1}

    def test_unfillable_optional_is_omitted(self) -> None:
        tool = ToolSchema(name="t", parameters=[ToolParameter(name="flag", type="boolean", required=False)])

        assert plan_calls([tool], "do it")[0].arguments == {}

    def test_required_non_string_is_none(self) -> None:
        tool = ToolSchema(name="t", parameters=[ToolParameter(name="flag", type="boolean")])

        assert plan_calls([tool], "do it")[0].arguments == {"flag": None}

    def test_one_call_per_tool_in_order(self) -> None:
        tools = [ToolSchema(name="b"), ToolSchema(name="a")]

        assert [c.tool for c in plan_calls(tools, "x")] == ["b", "a"]
