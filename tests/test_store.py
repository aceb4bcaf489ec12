"""Tests for file-backed workflow persistence."""

import json
from pathlib import Path

import pytest

from core.errors import NotInitializedError, PersistenceError
from orchestrator.store import WorkflowStore, atomic_write_text
from schemas.workflow_state import Phase, WorkflowState


class TestAtomicWrite:
    def test_creates_parent_and_leaves_no_temp_files(self, tmp_path: Path) -> None:
        target = tmp_path / "nested" / "state.json"

        atomic_write_text(target, '{"a": 1}')
        atomic_write_text(target, '{"a": 2}')

        assert json.loads(target.read_text()) == {"a": 2}
        assert [p.name for p in target.parent.iterdir()] == ["state.json"]


class TestWorkflowStore:
    def test_save_and_load(self, store: WorkflowStore, project: str) -> None:
        state = WorkflowState.new(project)
        path = store.save(state)

        assert path.parent == store.state_dir
        assert path.name.startswith("my-service-")
        assert store.load(project) == state

    def test_keys_are_normalized(self, store: WorkflowStore, project: str) -> None:
        store.save(WorkflowState.new(project))

        assert store.exists(project + "/.")
        assert store.record_path(project) == store.record_path(str(Path(project) / "sub" / ".."))

    def test_distinct_projects_with_same_name(self, store: WorkflowStore, tmp_path: Path) -> None:
        a = tmp_path / "a" / "svc"
        b = tmp_path / "b" / "svc"

        assert store.record_path(str(a)) != store.record_path(str(b))

    def test_missing_record(self, store: WorkflowStore, project: str) -> None:
        assert not store.exists(project)
        with pytest.raises(NotInitializedError):
            store.load(project)

    def test_corrupt_json(self, store: WorkflowStore, project: str) -> None:
        path = store.record_path(project)
        path.parent.mkdir(parents=True)
        path.write_text("{not json")

        with pytest.raises(PersistenceError, match="Cannot read"):
            store.load(project)

    def test_invalid_record(self, store: WorkflowStore, project: str) -> None:
        path = store.record_path(project)
        path.parent.mkdir(parents=True)
        path.write_text(json.dumps({"project_path": project, "current_phase": "deploy"}))

        with pytest.raises(PersistenceError, match="Corrupt"):
            store.load(project)

    def test_save_failure(self, tmp_path: Path, project: str) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory")
        store = WorkflowStore(blocker / "state")

        with pytest.raises(PersistenceError):
            store.save(WorkflowState.new(project))

    def test_list_projects(self, store: WorkflowStore, tmp_path: Path) -> None:
        assert store.list_projects() == []
        for name in ["one", "two"]:
            store.save(WorkflowState.new(str(tmp_path / name)))
        (store.state_dir / "junk.json").write_text("[]")

        assert sorted(store.list_projects()) == [str(tmp_path / "one"), str(tmp_path / "two")]

    def test_persisted_format(self, store: WorkflowStore, project: str) -> None:
        path = store.save(WorkflowState.new(project))
        data = json.loads(path.read_text())

        assert data["current_phase"] == "init"
        assert data["phases"][Phase.INIT.value]["status"] == "in_progress"
        assert data["state"] == "in_progress"
