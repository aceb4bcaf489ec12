"""Shared pytest fixtures for workflow engine tests."""

from pathlib import Path
from textwrap import dedent

import pytest

from orchestrator.state_machine import WorkflowStateMachine
from orchestrator.store import WorkflowStore
from plugins.hooks import HookRegistry
from steering.registry import SteeringRegistry
from tools.registry import ToolRegistry


@pytest.fixture()
def hooks() -> HookRegistry:
    return HookRegistry()


@pytest.fixture()
def tools() -> ToolRegistry:
    return ToolRegistry()


@pytest.fixture()
def steering() -> SteeringRegistry:
    return SteeringRegistry()


@pytest.fixture()
def store(tmp_path: Path) -> WorkflowStore:
    """A store writing into a temporary state directory."""
    return WorkflowStore(tmp_path / "state")


@pytest.fixture()
def machine(store: WorkflowStore, hooks: HookRegistry) -> WorkflowStateMachine:
    return WorkflowStateMachine(store, hooks)


@pytest.fixture()
def project(tmp_path: Path) -> str:
    """Path of a project directory to run workflows against."""
    path = tmp_path / "my-service"
    path.mkdir()
    return str(path)


@pytest.fixture()
def write_plugin(tmp_path: Path):
    """Create a plugin directory from a manifest and optional module source.

    Returns a function ``(dir_name, manifest, source=None, files=None) -> Path``.
    """
    plugins_dir = tmp_path / "plugins"
    plugins_dir.mkdir()

    def _write(dir_name: str, manifest: str, source: str | None = None, files: dict[str, str] | None = None) -> Path:
        plugin_path = plugins_dir / dir_name
        plugin_path.mkdir()
        (plugin_path / "plugin.yaml").write_text(dedent(manifest))
        if source is not None:
            (plugin_path / "plugin.py").write_text(dedent(source))
        for relative, content in (files or {}).items():
            target = plugin_path / relative
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(dedent(content))
        return plugin_path

    _write.plugins_dir = plugins_dir
    return _write
