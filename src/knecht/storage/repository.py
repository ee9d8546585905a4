"""File-backed task repository: one JSON document per task."""

import json
import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from knecht.errors import StorageError, TaskNotFoundError
from knecht.tasks.models import Task

logger = logging.getLogger(__name__)


class TaskRepository:
    """Loads and saves task records under ``<root>/tasks``."""

    def __init__(self, root: Path) -> None:
        """
        Initialize repository.

        Args:
            root: knecht data directory (usually ``.knecht``)
        """
        self.root = Path(root)
        self.tasks_dir = self.root / "tasks"

    def _path(self, task_id: str) -> Path:
        if not task_id or not task_id.isalnum():
            raise TaskNotFoundError(task_id)
        return self.tasks_dir / f"{task_id}.json"

    def _read(self, path: Path) -> Task:
        try:
            with open(path) as f:
                data = json.load(f)
            return Task.model_validate(data)
        except (json.JSONDecodeError, ValidationError) as e:
            raise StorageError(f"Corrupt task record {path}: {e}") from e
        except OSError as e:
            raise StorageError(f"Failed to read {path}: {e}") from e

    def exists(self, task_id: str) -> bool:
        """Check whether a task record exists."""
        try:
            return self._path(task_id).exists()
        except TaskNotFoundError:
            return False

    def load_all(self) -> list[Task]:
        """
        Load every task.

        Returns:
            All tasks, ordered by id

        Raises:
            StorageError: If a record cannot be read or parsed
        """
        if not self.tasks_dir.exists():
            logger.debug(f"Tasks directory does not exist: {self.tasks_dir}")
            return []

        try:
            paths = sorted(self.tasks_dir.glob("*.json"))
        except OSError as e:
            raise StorageError(f"Failed to list {self.tasks_dir}: {e}") from e

        tasks = [self._read(path) for path in paths]
        logger.debug(f"Loaded {len(tasks)} tasks from {self.tasks_dir}")
        return tasks

    def load(self, task_id: str) -> Task:
        """
        Load a single task.

        Raises:
            TaskNotFoundError: If no record exists for task_id
            StorageError: If the record cannot be read or parsed
        """
        path = self._path(task_id)
        if not path.exists():
            raise TaskNotFoundError(task_id)
        return self._read(path)

    def save(self, task: Task) -> None:
        """
        Write a task record, replacing any previous version.

        The record is written to a temporary file and renamed into place.

        Raises:
            StorageError: If the record cannot be written
        """
        path = self._path(task.id)
        try:
            self.tasks_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.tasks_dir, prefix=f".{task.id}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w") as f:
                    json.dump(task.model_dump(mode="json"), f, indent=2)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StorageError(f"Failed to write {path}: {e}") from e

        logger.debug(f"Saved task-{task.id}")

    def delete(self, task_id: str) -> None:
        """
        Remove a task record.

        Raises:
            TaskNotFoundError: If no record exists for task_id
            StorageError: If the record cannot be removed
        """
        path = self._path(task_id)
        if not path.exists():
            raise TaskNotFoundError(task_id)
        try:
            path.unlink()
        except OSError as e:
            raise StorageError(f"Failed to delete {path}: {e}") from e

        logger.info(f"Deleted task-{task_id}")
