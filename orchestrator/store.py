"""File-backed persistence for workflow state.

One JSON record per project path. Records are replaced whole with a
write-to-temp-then-rename so a crash never leaves a truncated file.
"""

import hashlib
import json
import logging
import os
import re
import tempfile
from pathlib import Path

from pydantic import ValidationError

from core.errors import NotInitializedError, PersistenceError
from schemas.workflow_state import WorkflowState

logger = logging.getLogger(__name__)


def atomic_write_text(path: Path, content: str) -> None:
    """Write ``content`` to ``path`` atomically.

    Raises:
        OSError: If the temp file cannot be written or renamed
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


class WorkflowStore:
    """Key-value store of WorkflowState records keyed by project path."""

    def __init__(self, state_dir: Path) -> None:
        """Initialize store.

        Args:
            state_dir: Directory holding one JSON file per project
        """
        self.state_dir = Path(state_dir)

    @staticmethod
    def normalize_key(project_path: str) -> str:
        return str(Path(project_path).expanduser().resolve())

    def record_path(self, project_path: str) -> Path:
        """Path of the state file for a project."""
        key = self.normalize_key(project_path)
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()[:16]
        slug = re.sub(r"[^A-Za-z0-9_-]+", "-", Path(key).name).strip("-")[:40] or "project"
        return self.state_dir / f"{slug}-{digest}.json"

    def exists(self, project_path: str) -> bool:
        return self.record_path(project_path).exists()

    def load(self, project_path: str) -> WorkflowState:
        """Read the state for a project.

        Raises:
            NotInitializedError: If no record exists for the path
            PersistenceError: If the record exists but cannot be read
        """
        path = self.record_path(project_path)
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            raise NotInitializedError(
                f"No workflow initialized for {project_path}",
                project_path=project_path,
            ) from None
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Cannot read workflow state {path}: {e}", project_path=project_path) from e

        try:
            return WorkflowState.model_validate(data)
        except ValidationError as e:
            raise PersistenceError(f"Corrupt workflow state {path}: {e}", project_path=project_path) from e

    def save(self, state: WorkflowState) -> Path:
        """Write the whole record for ``state.project_path``.

        Returns:
            Path to state file

        Raises:
            PersistenceError: If the write fails
        """
        path = self.record_path(state.project_path)
        content = json.dumps(state.model_dump(mode="json"), indent=2)
        try:
            atomic_write_text(path, content)
        except OSError as e:
            logger.error("Failed to persist workflow state for %s: %s", state.project_path, e)
            raise PersistenceError(
                f"Failed to persist workflow state for {state.project_path}: {e}",
                project_path=state.project_path,
            ) from e

        logger.debug("Saved workflow state for %s to %s", state.project_path, path)
        return path

    def list_projects(self) -> list[str]:
        """Project paths with a stored record."""
        if not self.state_dir.exists():
            return []
        projects = []
        for path in sorted(self.state_dir.glob("*.json")):
            try:
                with open(path, encoding="utf-8") as f:
                    projects.append(json.load(f)["project_path"])
            except (OSError, json.JSONDecodeError, KeyError, TypeError) as e:
                logger.warning("Skipping unreadable state file %s: %s", path, e)
        return projects
