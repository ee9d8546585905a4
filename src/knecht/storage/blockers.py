"""Blocker graph stored as a flat line file.

Each line reads ``task-<blocked>|task-<blocker>``. Blank and malformed
lines are skipped on read.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from knecht.errors import EdgeNotFoundError, InvalidEdgeError, StorageError
from knecht.tasks.models import BlockerEdge

logger = logging.getLogger(__name__)

PREFIX = "task-"


def _strip(token: str) -> str:
    token = token.strip()
    return token[len(PREFIX):] if token.startswith(PREFIX) else token


def parse_edge(line: str) -> Optional[BlockerEdge]:
    """Parse one line of the blockers file, returning None if malformed."""
    parts = line.strip().split("|")
    if len(parts) != 2:
        return None
    blocked, blocker = _strip(parts[0]), _strip(parts[1])
    if not blocked or not blocker:
        return None
    return BlockerEdge(blocked=blocked, blocker=blocker)


def format_edge(edge: BlockerEdge) -> str:
    return f"{PREFIX}{edge.blocked}|{PREFIX}{edge.blocker}"


class BlockerGraph:
    """Directed blocked -> blocker edges."""

    def __init__(self, path: Path) -> None:
        """
        Initialize blocker graph.

        Args:
            path: Path to the blockers file
        """
        self.path = Path(path)

    def edges(self) -> list[BlockerEdge]:
        """
        Read all well-formed edges in file order.

        Raises:
            StorageError: If the file exists but cannot be read
        """
        if not self.path.exists():
            return []

        try:
            lines = self.path.read_text().splitlines()
        except OSError as e:
            raise StorageError(f"Failed to read {self.path}: {e}") from e

        edges = []
        for line in lines:
            if not line.strip():
                continue
            edge = parse_edge(line)
            if edge is None:
                logger.warning(f"Skipping malformed blocker line: {line!r}")
                continue
            edges.append(edge)
        return edges

    def _write(self, edges: list[BlockerEdge]) -> None:
        """Replace the blockers file via a temp file and rename."""
        content = "".join(f"{format_edge(e)}\n" for e in edges)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w") as f:
                    f.write(content)
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StorageError(f"Failed to write {self.path}: {e}") from e

    def blockers_of(self, task_id: str) -> set[str]:
        """Ids of tasks that must finish before ``task_id``."""
        return {e.blocker for e in self.edges() if e.blocked == task_id}

    def blocked_by(self, task_id: str) -> set[str]:
        """Ids of tasks waiting on ``task_id``."""
        return {e.blocked for e in self.edges() if e.blocker == task_id}

    def add_edge(self, blocked: str, blocker: str) -> BlockerEdge:
        """
        Record that ``blocked`` waits on ``blocker``.

        Adding an existing edge is a no-op.

        Raises:
            InvalidEdgeError: If a task would block itself
            StorageError: If the file cannot be written
        """
        if blocked == blocker:
            raise InvalidEdgeError(f"task-{blocked} cannot block itself")

        edge = BlockerEdge(blocked=blocked, blocker=blocker)
        edges = self.edges()
        if edge in edges:
            logger.debug(f"Blocker already recorded: {format_edge(edge)}")
            return edge

        edges.append(edge)
        self._write(edges)
        logger.info(f"Added blocker: task-{blocked} blocked by task-{blocker}")
        return edge

    def remove_edge(self, blocked: str, blocker: str) -> None:
        """
        Remove the edge ``blocked`` -> ``blocker``.

        Raises:
            EdgeNotFoundError: If no such edge exists
            StorageError: If the file cannot be written
        """
        edge = BlockerEdge(blocked=blocked, blocker=blocker)
        edges = self.edges()
        if edge not in edges:
            raise EdgeNotFoundError(blocked, blocker)

        self._write([e for e in edges if e != edge])
        logger.info(f"Removed blocker: task-{blocked} no longer blocked by task-{blocker}")
