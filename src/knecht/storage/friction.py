"""Append-only friction audit log (JSON lines)."""

import logging
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from knecht.errors import StorageError
from knecht.tasks.models import FrictionEntry

logger = logging.getLogger(__name__)


class FrictionLog:
    """
    Records one entry per friction increment.

    The log is audit detail only; scheduling reads the aggregate
    ``friction_score`` on the task.
    """

    def __init__(self, path: Path, enabled: bool = True) -> None:
        self.path = Path(path)
        self.enabled = enabled

    def append(self, entry: FrictionEntry) -> None:
        """
        Append an entry.

        Raises:
            StorageError: If the log cannot be written
        """
        if not self.enabled:
            return

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "a") as f:
                f.write(entry.model_dump_json() + "\n")
        except OSError as e:
            raise StorageError(f"Failed to write {self.path}: {e}") from e

    def entries(self, task_id: Optional[str] = None) -> list[FrictionEntry]:
        """
        Read logged entries, optionally for one task.

        Unparseable lines are skipped.
        """
        if not self.path.exists():
            return []

        try:
            lines = self.path.read_text().splitlines()
        except OSError as e:
            raise StorageError(f"Failed to read {self.path}: {e}") from e

        result = []
        for line in lines:
            if not line.strip():
                continue
            try:
                entry = FrictionEntry.model_validate_json(line)
            except ValidationError:
                logger.warning(f"Skipping malformed friction entry in {self.path}")
                continue
            if task_id is None or entry.task_id == task_id:
                result.append(entry)
        return result
