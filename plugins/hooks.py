"""Hook registry for plugin extension points.

Plugins attach handlers to named extension points (``pre-design``,
``post-tasks``, ...). Executing an extension point runs every matching
handler in priority order and folds their results into one payload:

    registry = HookRegistry()
    registry.register("my-plugin", HookRegistration(
        name="pre-design",
        type=HookType.VALIDATOR,
        phase=HookPhase.PRE_DESIGN,
        handler=check_requirements,
        priority=100,
    ))
    result = registry.execute("pre-design", HookExecutionContext(
        hook_name="pre-design", phase=HookPhase.PRE_DESIGN, data={...},
    ))

Handlers are sequential and isolated: an exception or a failed result is
recorded and the remaining handlers still run.
"""

from __future__ import annotations

import itertools
import logging
import re
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable

from core.errors import HookHandlerFailedError
from core.timeouts import call_with_timeout

logger = logging.getLogger(__name__)


class HookType(str, Enum):
    """How a hook's returned data is folded into the running payload."""

    FILTER = "filter"
    ACTION = "action"
    VALIDATOR = "validator"
    TRANSFORMER = "transformer"
    OBSERVER = "observer"


class HookPhase(str, Enum):
    """Well-known extension points."""

    PRE_INIT = "pre-init"
    POST_INIT = "post-init"
    PRE_REQUIREMENTS = "pre-requirements"
    POST_REQUIREMENTS = "post-requirements"
    PRE_DESIGN = "pre-design"
    POST_DESIGN = "post-design"
    PRE_TASKS = "pre-tasks"
    POST_TASKS = "post-tasks"
    PRE_IMPLEMENTATION = "pre-implementation"
    POST_IMPLEMENTATION = "post-implementation"
    PRE_QUALITY_CHECK = "pre-quality-check"
    POST_QUALITY_CHECK = "post-quality-check"
    PRE_TEMPLATE_RENDER = "pre-template-render"
    POST_TEMPLATE_RENDER = "post-template-render"
    ON_ERROR = "on-error"
    ON_SHUTDOWN = "on-shutdown"

    @classmethod
    def pre(cls, workflow_phase: str) -> "HookPhase":
        """Extension point fired before entering a workflow phase."""
        return cls(f"pre-{_phase_value(workflow_phase)}")

    @classmethod
    def post(cls, workflow_phase: str) -> "HookPhase":
        """Extension point fired after entering a workflow phase."""
        return cls(f"post-{_phase_value(workflow_phase)}")


def _phase_value(phase: Any) -> str:
    return phase.value if isinstance(phase, Enum) else str(phase)


class ConditionOperator(str, Enum):
    """Comparison operators usable in hook conditions."""

    EQUALS = "eq"
    NOT_EQUALS = "ne"
    GREATER_THAN = "gt"
    GREATER_THAN_OR_EQUAL = "gte"
    LESS_THAN = "lt"
    LESS_THAN_OR_EQUAL = "lte"
    CONTAINS = "contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    MATCHES = "matches"
    IN = "in"
    NOT_IN = "not_in"


_MISSING = object()


def get_field(data: dict[str, Any], path: str) -> Any:
    """Resolve a dotted path (``"requirements.count"``) inside nested dicts.

    Returns a sentinel when any segment is missing so that ``None`` values
    stay distinguishable from absent ones.
    """
    current: Any = data
    for part in path.split("."):
        if isinstance(current, dict) and part in current:
            current = current[part]
        else:
            return _MISSING
    return current


@dataclass
class HookCondition:
    """Gate on one field of the execution payload."""

    field: str
    operator: ConditionOperator
    value: Any = None

    def __post_init__(self) -> None:
        self.operator = ConditionOperator(self.operator)

    def matches(self, data: dict[str, Any]) -> bool:
        actual = get_field(data, self.field)
        if actual is _MISSING:
            return self.operator in (ConditionOperator.NOT_EQUALS, ConditionOperator.NOT_IN)
        try:
            return _compare(actual, self.operator, self.value)
        except (TypeError, re.error) as e:
            logger.debug("Condition on %s not evaluable: %s", self.field, e)
            return False


def _compare(actual: Any, op: ConditionOperator, expected: Any) -> bool:
    if op == ConditionOperator.EQUALS:
        return actual == expected
    if op == ConditionOperator.NOT_EQUALS:
        return actual != expected
    if op == ConditionOperator.GREATER_THAN:
        return actual > expected
    if op == ConditionOperator.GREATER_THAN_OR_EQUAL:
        return actual >= expected
    if op == ConditionOperator.LESS_THAN:
        return actual < expected
    if op == ConditionOperator.LESS_THAN_OR_EQUAL:
        return actual <= expected
    if op == ConditionOperator.CONTAINS:
        return expected in actual
    if op == ConditionOperator.STARTS_WITH:
        return isinstance(actual, str) and actual.startswith(expected)
    if op == ConditionOperator.ENDS_WITH:
        return isinstance(actual, str) and actual.endswith(expected)
    if op == ConditionOperator.MATCHES:
        return isinstance(actual, str) and re.search(expected, actual) is not None
    if op == ConditionOperator.IN:
        return actual in expected
    if op == ConditionOperator.NOT_IN:
        return actual not in expected
    return False


@dataclass
class HookExecutionContext:
    """Payload handed to each hook handler."""

    hook_name: str
    phase: HookPhase | str
    data: dict[str, Any] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class HookResult:
    """Outcome of one handler, or of a whole pipeline."""

    success: bool = True
    data: dict[str, Any] | None = None
    error: str | None = None
    stop_propagation: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return self.success


HookHandler = Callable[[HookExecutionContext], "HookResult | dict[str, Any] | None"]


@dataclass
class HookRegistration:
    """A hook contributed by a plugin.

    ``name`` is the extension point the hook is attached to; a plugin owns at
    most one hook per extension point.
    """

    name: str
    type: HookType
    phase: HookPhase | str
    handler: HookHandler
    priority: int = 0
    conditions: list[HookCondition] = field(default_factory=list)
    description: str = ""
    plugin_id: str = ""

    def __post_init__(self) -> None:
        self.type = HookType(self.type)


@dataclass
class _Entry:
    hook: HookRegistration
    sequence: int


@dataclass
class _PluginHookStats:
    executions: int = 0
    errors: int = 0
    total_time: float = 0.0


def _coerce_result(raw: Any) -> HookResult:
    """Accept a HookResult, a plain data dict, or None from a handler."""
    if isinstance(raw, HookResult):
        return raw
    if raw is None:
        return HookResult(success=True)
    if isinstance(raw, dict):
        return HookResult(success=True, data=raw)
    raise TypeError(f"hook handler returned {type(raw).__name__}, expected HookResult or dict")


def merge_hook_data(current: dict[str, Any], new: dict[str, Any], hook_type: HookType) -> dict[str, Any]:
    """Fold a handler's returned data into the running payload.

    TRANSFORMER replaces the payload. Every other type overlays its keys;
    VALIDATOR additionally keeps ``valid`` false once any validator said so.
    """
    if hook_type == HookType.TRANSFORMER:
        return dict(new)
    merged = {**current, **new}
    if hook_type == HookType.VALIDATOR:
        merged["valid"] = current.get("valid") is not False and new.get("valid") is not False
    return merged


class HookRegistry:
    """Priority-ordered hook pipelines keyed by extension point.

    Hooks under one name run highest priority first; equal priorities run in
    registration order. Mutations are expected only while no pipeline is
    running; a pipeline iterates a snapshot taken when it starts.
    """

    def __init__(self, handler_timeout: float | None = None) -> None:
        """Initialize registry.

        Args:
            handler_timeout: Seconds after which a handler is abandoned and
                counted as failed. None runs handlers without a deadline.
        """
        self.handler_timeout = handler_timeout
        self._hooks: dict[str, list[_Entry]] = {}
        self._sequence = itertools.count()
        self._stats: dict[str, dict[str, _PluginHookStats]] = {}

    def register(self, plugin_id: str, hook: HookRegistration) -> None:
        """Register a hook for ``plugin_id``.

        Re-registering the same ``(plugin_id, name)`` replaces the earlier hook
        and keeps its place among hooks of equal priority.

        Raises:
            ValueError: If the hook has no name or a non-callable handler
        """
        if not hook.name:
            raise ValueError("Hook name is required")
        if not callable(hook.handler):
            raise ValueError(f"Hook {hook.name} from {plugin_id} has no callable handler")

        hook = replace(hook, plugin_id=plugin_id)
        entries = self._hooks.setdefault(hook.name, [])

        for entry in entries:
            if entry.hook.plugin_id == plugin_id:
                logger.warning("Hook %s already registered by %s, replacing", hook.name, plugin_id)
                entry.hook = hook
                break
        else:
            entries.append(_Entry(hook=hook, sequence=next(self._sequence)))

        entries.sort(key=lambda e: (-e.hook.priority, e.sequence))
        logger.info(
            "Registered hook: %s (plugin=%s, type=%s, priority=%d)",
            hook.name,
            plugin_id,
            hook.type.value,
            hook.priority,
        )

    def unregister(self, plugin_id: str, name: str) -> bool:
        """Remove a plugin's hook. Returns False (with a warning) if absent."""
        entries = self._hooks.get(name, [])
        remaining = [e for e in entries if e.hook.plugin_id != plugin_id]
        if len(remaining) == len(entries):
            logger.warning("Hook %s not registered by %s, nothing to unregister", name, plugin_id)
            return False

        if remaining:
            self._hooks[name] = remaining
        else:
            del self._hooks[name]
        logger.info("Unregistered hook: %s (plugin=%s)", name, plugin_id)
        return True

    def execute(self, name: str, context: HookExecutionContext) -> HookResult:
        """Run every hook registered under ``name``.

        Args:
            name: Extension point name
            context: Input payload; its ``data`` is never mutated

        Returns:
            Combined result. ``success`` is False if any handler raised, timed
            out or returned a failed result; ``data`` is the merged payload of
            the successful handlers.
        """
        entries = list(self._hooks.get(name, []))
        if not entries:
            logger.debug("No hooks registered for %s", name)
            return HookResult(
                success=True,
                data=context.data,
                metadata={"hooks_executed": 0, "hooks_skipped": 0, "error_count": 0, "errors": []},
            )

        started = time.perf_counter()
        data = dict(context.data)
        failures: list[HookHandlerFailedError] = []
        executed = 0
        skipped = 0
        stopped = False

        logger.debug("Executing %d hook(s) for %s", len(entries), name)

        for entry in entries:
            hook = entry.hook
            if not all(cond.matches(context.data) for cond in hook.conditions):
                logger.debug("Conditions not met for %s (plugin=%s), skipping", name, hook.plugin_id)
                skipped += 1
                continue

            hook_context = HookExecutionContext(
                hook_name=name,
                phase=context.phase,
                data=dict(data),
                metadata={**context.metadata, "plugin_id": hook.plugin_id},
            )
            hook_started = time.perf_counter()
            executed += 1

            try:
                result = _coerce_result(call_with_timeout(hook.handler, self.handler_timeout, hook_context))
            except Exception as e:
                failure = HookHandlerFailedError(
                    f"Hook {name} from plugin {hook.plugin_id} raised: {e}",
                    hook_name=name,
                    plugin_id=hook.plugin_id,
                )
                logger.error("Hook %s failed (plugin=%s): %s", name, hook.plugin_id, e)
                failures.append(failure)
                self._record(name, hook.plugin_id, time.perf_counter() - hook_started, success=False)
                continue

            elapsed = time.perf_counter() - hook_started
            if not result.success:
                failure = HookHandlerFailedError(
                    f"Hook {name} from plugin {hook.plugin_id} failed: {result.error or 'no error given'}",
                    hook_name=name,
                    plugin_id=hook.plugin_id,
                )
                logger.error("Hook %s returned failure (plugin=%s): %s", name, hook.plugin_id, result.error)
                failures.append(failure)
                self._record(name, hook.plugin_id, elapsed, success=False)
                continue

            if result.data is not None:
                data = merge_hook_data(data, result.data, hook.type)
            self._record(name, hook.plugin_id, elapsed, success=True)

            if result.stop_propagation:
                logger.debug("Hook %s (plugin=%s) stopped propagation", name, hook.plugin_id)
                stopped = True
                break

        return HookResult(
            success=not failures,
            data=data,
            error=failures[0].message if failures else None,
            stop_propagation=stopped,
            metadata={
                "hooks_executed": executed,
                "hooks_skipped": skipped,
                "error_count": len(failures),
                "errors": [f.to_dict() for f in failures],
                "execution_time": time.perf_counter() - started,
            },
        )

    def _record(self, name: str, plugin_id: str, elapsed: float, success: bool) -> None:
        stats = self._stats.setdefault(name, {}).setdefault(plugin_id, _PluginHookStats())
        stats.executions += 1
        stats.total_time += elapsed
        if not success:
            stats.errors += 1

    def get_hook_statistics(self, name: str) -> dict[str, Any]:
        """Execution statistics for an extension point since process start."""
        per_plugin = self._stats.get(name, {})
        total = sum(s.executions for s in per_plugin.values())
        errors = sum(s.errors for s in per_plugin.values())
        total_time = sum(s.total_time for s in per_plugin.values())

        return {
            "total_executions": total,
            "error_count": errors,
            "success_rate": (total - errors) / total if total else 0.0,
            "average_execution_time": total_time / total if total else 0.0,
            "plugin_stats": {
                plugin_id: {
                    "executions": s.executions,
                    "errors": s.errors,
                    "success_rate": (s.executions - s.errors) / s.executions if s.executions else 0.0,
                }
                for plugin_id, s in per_plugin.items()
            },
        }

    def get_hooks(self, name: str) -> list[HookRegistration]:
        """Hooks for an extension point, in execution order."""
        return [e.hook for e in self._hooks.get(name, [])]

    def get_all_hooks(self) -> dict[str, list[HookRegistration]]:
        return {name: [e.hook for e in entries] for name, entries in self._hooks.items()}

    def get_hooks_by_plugin(self, plugin_id: str) -> list[HookRegistration]:
        return [e.hook for entries in self._hooks.values() for e in entries if e.hook.plugin_id == plugin_id]

    def clear_hooks(self, plugin_id: str | None = None) -> int:
        """Remove all hooks, or only those owned by ``plugin_id``.

        Returns:
            Number of hooks removed
        """
        if plugin_id is None:
            removed = sum(len(entries) for entries in self._hooks.values())
            self._hooks.clear()
            return removed

        removed = 0
        for name in list(self._hooks):
            kept = [e for e in self._hooks[name] if e.hook.plugin_id != plugin_id]
            removed += len(self._hooks[name]) - len(kept)
            if kept:
                self._hooks[name] = kept
            else:
                del self._hooks[name]
        return removed
