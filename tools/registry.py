"""Registry of plugin-contributed tools.

Tools are looked up by a global name, validated against their JSON Schema
input contract and executed with per-tool latency and success tracking.
Handler errors never escape ``execute``; they come back as failed results.
"""

import json
import logging
import time
from dataclasses import dataclass, replace
from typing import Any

from jsonschema import SchemaError
from jsonschema.validators import validator_for

from core.errors import SchemaViolationError, ToolNotFoundError
from core.timeouts import call_with_timeout

from .base import ToolCategory, ToolExecutionContext, ToolRegistration, ToolResult, ToolStatus

logger = logging.getLogger(__name__)


@dataclass
class ToolStats:
    """Invocation statistics for one tool."""

    executions: int = 0
    successes: int = 0
    errors: int = 0
    total_time: float = 0.0
    last_execution_time: float | None = None
    total_input_bytes: int = 0
    total_output_bytes: int = 0

    @property
    def average_execution_time(self) -> float:
        return self.total_time / self.executions if self.executions else 0.0

    @property
    def success_rate(self) -> float:
        return self.successes / self.executions if self.executions else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "executions": self.executions,
            "successes": self.successes,
            "errors": self.errors,
            "success_rate": self.success_rate,
            "average_execution_time": self.average_execution_time,
            "last_execution_time": self.last_execution_time,
            "average_input_bytes": self.total_input_bytes / self.executions if self.executions else 0,
            "average_output_bytes": self.total_output_bytes / self.executions if self.executions else 0,
        }


def _size_of(value: Any) -> int:
    try:
        return len(json.dumps(value, default=str))
    except (TypeError, ValueError):
        return 0


def _schema_errors(schema: dict[str, Any], instance: Any) -> list[str]:
    validator = validator_for(schema)(schema)
    messages = []
    for error in sorted(validator.iter_errors(instance), key=lambda e: list(e.path)):
        location = ".".join(str(p) for p in error.path)
        messages.append(f"{location}: {error.message}" if location else error.message)
    return messages


class ToolRegistry:
    """Registry of tools keyed by global name."""

    def __init__(self, handler_timeout: float | None = None) -> None:
        self.handler_timeout = handler_timeout
        self._tools: dict[str, ToolRegistration] = {}
        self._categories: dict[ToolCategory, set[str]] = {category: set() for category in ToolCategory}
        self._stats: dict[str, ToolStats] = {}

    def register(self, plugin_id: str, tool: ToolRegistration) -> None:
        """Register a tool, overwriting any tool with the same name.

        Raises:
            ValueError: If the registration is malformed
        """
        self._validate_registration(tool)
        tool = replace(tool, plugin_id=plugin_id)

        existing = self._tools.get(tool.name)
        if existing is not None:
            logger.warning(
                "Tool %s already registered by %s, replacing with registration from %s",
                tool.name,
                existing.plugin_id,
                plugin_id,
            )
            self._categories[existing.category].discard(tool.name)

        self._tools[tool.name] = tool
        self._categories[tool.category].add(tool.name)
        self._stats.setdefault(tool.name, ToolStats())

        logger.info(
            "Registered tool: %s (plugin=%s, category=%s, permissions=%d)",
            tool.name,
            plugin_id,
            tool.category.value,
            len(tool.permissions),
        )

    def _validate_registration(self, tool: ToolRegistration) -> None:
        if not tool.name or not tool.name.strip():
            raise ValueError("Tool name is required")
        if not tool.description or not tool.description.strip():
            raise ValueError(f"Tool {tool.name} requires a description")
        if not callable(tool.handler):
            raise ValueError(f"Tool {tool.name} requires a callable handler")
        if not isinstance(tool.input_schema, dict):
            raise ValueError(f"Tool {tool.name} requires an input schema object")
        for label, schema in (("input", tool.input_schema), ("output", tool.output_schema)):
            if schema is None:
                continue
            try:
                validator_for(schema).check_schema(schema)
            except SchemaError as e:
                raise ValueError(f"Tool {tool.name} has an invalid {label} schema: {e.message}") from e

    def unregister(self, plugin_id: str, name: str) -> bool:
        """Remove a tool owned by ``plugin_id``. Returns False if it is not theirs."""
        tool = self._tools.get(name)
        if tool is None or tool.plugin_id != plugin_id:
            logger.warning("Tool %s not registered by %s, nothing to unregister", name, plugin_id)
            return False

        del self._tools[name]
        self._categories[tool.category].discard(name)
        logger.info("Unregistered tool: %s (plugin=%s)", name, plugin_id)
        return True

    def execute(
        self,
        name: str,
        input: dict[str, Any],
        context: ToolExecutionContext | None = None,
    ) -> ToolResult:
        """Validate input and run a tool.

        Args:
            name: Registered tool name
            input: Tool arguments
            context: Caller information

        Returns:
            ToolResult. Handler exceptions and timeouts become failed results.

        Raises:
            ToolNotFoundError: If no tool is registered under ``name``
            SchemaViolationError: If ``input`` does not satisfy the input schema
        """
        tool = self._tools.get(name)
        if tool is None:
            logger.error("Tool not found: %s", name)
            raise ToolNotFoundError(f"Tool '{name}' not found", tool_name=name)

        violations = _schema_errors(tool.input_schema, input)
        if violations:
            logger.warning("Input for tool %s failed validation: %s", name, "; ".join(violations))
            raise SchemaViolationError(
                f"Input for tool '{name}' failed validation: {'; '.join(violations)}",
                tool_name=name,
                violations=violations,
            )

        context = context or ToolExecutionContext()
        logger.debug("Executing tool %s (plugin=%s)", name, tool.plugin_id)
        started = time.perf_counter()

        try:
            raw = call_with_timeout(tool.handler, self.handler_timeout, input, context)
        except TimeoutError as e:
            result = ToolResult(status=ToolStatus.TIMEOUT, error=str(e))
            logger.error("Tool %s timed out (plugin=%s)", name, tool.plugin_id)
        except Exception as e:
            result = ToolResult(status=ToolStatus.FAILURE, error=f"{type(e).__name__}: {e}")
            logger.error("Tool %s failed (plugin=%s): %s", name, tool.plugin_id, e)
        else:
            result = raw if isinstance(raw, ToolResult) else ToolResult(status=ToolStatus.SUCCESS, output=raw)

        elapsed = time.perf_counter() - started

        if result.success and tool.output_schema is not None:
            output_violations = _schema_errors(tool.output_schema, result.output)
            if output_violations:
                logger.warning(
                    "Output of tool %s does not match its schema: %s",
                    name,
                    "; ".join(output_violations),
                )

        self._record(name, elapsed, result, input)
        result.metadata.setdefault("execution_time", elapsed)
        result.metadata.setdefault("plugin_id", tool.plugin_id)
        return result

    def _record(self, name: str, elapsed: float, result: ToolResult, input: dict[str, Any]) -> None:
        stats = self._stats.setdefault(name, ToolStats())
        stats.executions += 1
        stats.total_time += elapsed
        stats.last_execution_time = elapsed
        stats.total_input_bytes += _size_of(input)
        stats.total_output_bytes += _size_of(result.output)
        if result.success:
            stats.successes += 1
        else:
            stats.errors += 1

    def get_tool(self, name: str) -> ToolRegistration | None:
        return self._tools.get(name)

    def get_all_tools(self) -> dict[str, ToolRegistration]:
        """Snapshot of every registered tool keyed by name."""
        return dict(self._tools)

    def get_tools_by_category(self, category: ToolCategory | str) -> list[ToolRegistration]:
        """Tools in a category, sorted by name."""
        names = self._categories.get(ToolCategory(category), set())
        return [self._tools[n] for n in sorted(names)]

    def get_tools_by_plugin(self, plugin_id: str) -> list[ToolRegistration]:
        return sorted((t for t in self._tools.values() if t.plugin_id == plugin_id), key=lambda t: t.name)

    def get_tool_statistics(self, name: str) -> dict[str, Any] | None:
        if name not in self._tools:
            return None
        return self._stats.setdefault(name, ToolStats()).to_dict()

    def clear_tools(self, plugin_id: str | None = None) -> int:
        """Remove all tools, or only those owned by ``plugin_id``.

        Returns:
            Number of tools removed
        """
        names = [n for n, t in self._tools.items() if plugin_id is None or t.plugin_id == plugin_id]
        for name in names:
            tool = self._tools.pop(name)
            self._categories[tool.category].discard(name)
        return len(names)
