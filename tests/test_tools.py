"""Tests for the tool registry: registration, validation and execution."""

from __future__ import annotations

import logging
import time

import pytest

from core.errors import SchemaViolationError, ToolNotFoundError
from tools.base import (
    BaseTool,
    ToolCategory,
    ToolExecutionContext,
    ToolRegistration,
    ToolResult,
    ToolStatus,
)
from tools.registry import ToolRegistry

TEXT_SCHEMA = {
    "type": "object",
    "required": ["text"],
    "properties": {"text": {"type": "string"}},
}


def _tool(
    name="count-lines", handler=None, category=ToolCategory.UTILITY, description="Count lines in text", **kwargs
) -> ToolRegistration:
    return ToolRegistration(
        name=name,
        description=description,
        handler=handler or (lambda input, ctx: {"lines": len(input["text"].splitlines())}),
        category=category,
        input_schema=kwargs.pop("input_schema", TEXT_SCHEMA),
        **kwargs,
    )


class TestRegistration:
    def test_duplicate_name_overwrites_with_warning(self, tools: ToolRegistry, caplog) -> None:
        tools.register("p1", _tool(name="t1", handler=lambda i, c: "from-p1"))

        with caplog.at_level(logging.WARNING):
            tools.register("p2", _tool(name="t1", handler=lambda i, c: "from-p2"))

        result = tools.execute("t1", {"text": ""})
        assert result.output == "from-p2"
        assert tools.get_tool("t1").plugin_id == "p2"
        assert "already registered by p1" in caplog.text

    def test_overwrite_updates_category_index(self, tools: ToolRegistry) -> None:
        tools.register("p1", _tool(name="t1", category=ToolCategory.QUALITY))
        tools.register("p1", _tool(name="t1", category=ToolCategory.DATA))

        assert tools.get_tools_by_category(ToolCategory.QUALITY) == []
        assert [t.name for t in tools.get_tools_by_category("data")] == ["t1"]

    def test_missing_description_rejected(self, tools: ToolRegistry) -> None:
        with pytest.raises(ValueError, match="description"):
            tools.register("p1", _tool(description=""))

    def test_invalid_schema_rejected(self, tools: ToolRegistry) -> None:
        with pytest.raises(ValueError, match="invalid input schema"):
            tools.register("p1", _tool(input_schema={"type": "not-a-type"}))

    def test_missing_input_schema_rejected(self, tools: ToolRegistry) -> None:
        with pytest.raises(ValueError, match="input schema"):
            tools.register("p1", _tool(input_schema=None))
        assert tools.get_tool("count-lines") is None

    def test_same_registration_under_two_plugins(self, tools: ToolRegistry) -> None:
        tool = _tool()
        tools.register("p1", tool)
        tools.register("p2", tool)

        assert tool.plugin_id == ""
        assert tools.clear_tools("p1") == 0
        assert tools.get_tool("count-lines").plugin_id == "p2"

    def test_category_listing_sorted_by_name(self, tools: ToolRegistry) -> None:
        for name in ["zeta", "alpha", "mid"]:
            tools.register("p1", _tool(name=name, category=ToolCategory.QUALITY))
        tools.register("p1", _tool(name="other", category=ToolCategory.SDD))

        names = [t.name for t in tools.get_tools_by_category(ToolCategory.QUALITY)]
        assert names == ["alpha", "mid", "zeta"]

    def test_unregister_only_by_owner(self, tools: ToolRegistry) -> None:
        tools.register("p1", _tool(name="t1"))

        assert tools.unregister("p2", "t1") is False
        assert tools.unregister("p1", "t1") is True
        assert tools.get_tool("t1") is None

    def test_clear_tools_by_plugin(self, tools: ToolRegistry) -> None:
        tools.register("p1", _tool(name="a"))
        tools.register("p1", _tool(name="b"))
        tools.register("p2", _tool(name="c"))

        assert tools.clear_tools("p1") == 2
        assert list(tools.get_all_tools()) == ["c"]


class TestExecution:
    def test_success(self, tools: ToolRegistry) -> None:
        tools.register("p1", _tool())

        result = tools.execute("count-lines", {"text": "a\nb\nc"}, ToolExecutionContext(user="tester"))

        assert result.success
        assert result.status == ToolStatus.SUCCESS
        assert result.output == {"lines": 3}
        assert result.metadata["plugin_id"] == "p1"
        assert result.metadata["execution_time"] >= 0

    def test_handler_receives_context(self, tools: ToolRegistry) -> None:
        seen = []
        tools.register("p1", _tool(handler=lambda i, ctx: seen.append(ctx.user)))

        tools.execute("count-lines", {"text": ""}, ToolExecutionContext(user="tester"))

        assert seen == ["tester"]

    def test_not_found(self, tools: ToolRegistry) -> None:
        with pytest.raises(ToolNotFoundError) as exc_info:
            tools.execute("missing", {})
        assert exc_info.value.code == "TOOL_NOT_FOUND"

    def test_schema_violation_does_not_call_handler(self, tools: ToolRegistry) -> None:
        calls = []
        tools.register("p1", _tool(handler=lambda i, c: calls.append(i)))

        with pytest.raises(SchemaViolationError) as exc_info:
            tools.execute("count-lines", {"text": 42})

        assert calls == []
        assert exc_info.value.details["violations"] == ["text: 42 is not of type 'string'"]

    def test_missing_required_property(self, tools: ToolRegistry) -> None:
        tools.register("p1", _tool())

        with pytest.raises(SchemaViolationError, match="'text' is a required property"):
            tools.execute("count-lines", {})

    def test_handler_exception_becomes_failed_result(self, tools: ToolRegistry) -> None:
        def boom(input, ctx):
            raise RuntimeError("disk full")

        tools.register("p1", _tool(handler=boom))

        result = tools.execute("count-lines", {"text": ""})

        assert not result
        assert result.status == ToolStatus.FAILURE
        assert result.error == "RuntimeError: disk full"

    def test_timeout(self) -> None:
        registry = ToolRegistry(handler_timeout=0.05)
        registry.register("p1", _tool(handler=lambda i, c: time.sleep(0.5)))

        result = registry.execute("count-lines", {"text": ""})

        assert result.status == ToolStatus.TIMEOUT

    def test_handler_may_return_tool_result(self, tools: ToolRegistry) -> None:
        tools.register("p1", _tool(handler=lambda i, c: ToolResult(status=ToolStatus.FAILURE, error="refused")))

        result = tools.execute("count-lines", {"text": ""})

        assert result.status == ToolStatus.FAILURE
        assert result.error == "refused"

    def test_output_schema_mismatch_is_logged_only(self, tools: ToolRegistry, caplog) -> None:
        tools.register(
            "p1",
            _tool(
                handler=lambda i, c: {"lines": "three"},
                output_schema={"type": "object", "properties": {"lines": {"type": "integer"}}},
            ),
        )

        with caplog.at_level(logging.WARNING):
            result = tools.execute("count-lines", {"text": ""})

        assert result.success
        assert "does not match its schema" in caplog.text


class TestStatistics:
    def test_counts(self, tools: ToolRegistry) -> None:
        def flaky(input, ctx):
            if input["text"] == "fail":
                raise ValueError("bad input")
            return "ok"

        tools.register("p1", _tool(handler=flaky))
        tools.execute("count-lines", {"text": "x"})
        tools.execute("count-lines", {"text": "fail"})
        with pytest.raises(SchemaViolationError):
            tools.execute("count-lines", {})

        stats = tools.get_tool_statistics("count-lines")
        assert stats["executions"] == 2
        assert stats["successes"] == 1
        assert stats["errors"] == 1
        assert stats["success_rate"] == pytest.approx(0.5)
        assert stats["last_execution_time"] is not None

    def test_unknown_tool(self, tools: ToolRegistry) -> None:
        assert tools.get_tool_statistics("missing") is None


class _WordCountTool(BaseTool):
    name = "word-count"
    description = "Count words"
    category = ToolCategory.QUALITY
    input_schema = TEXT_SCHEMA

    def execute(self, input, context):
        return ToolResult(status=ToolStatus.SUCCESS, output=len(input["text"].split()))


class TestBaseTool:
    def test_class_based_tool_registration(self, tools: ToolRegistry) -> None:
        tools.register("p1", _WordCountTool().to_registration())

        result = tools.execute("word-count", {"text": "one two three"})

        assert result.output == 3
        assert tools.get_tool("word-count").category == ToolCategory.QUALITY
