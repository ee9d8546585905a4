"""Blocker resolution: find the task that can actually be worked on."""

import logging
from typing import Mapping, Protocol

from knecht.errors import CycleDetectedError, InvariantViolation
from knecht.tasks.models import Task, TaskStatus
from knecht.tasks.priority import best_candidate, rank

logger = logging.getLogger(__name__)


class BlockerLookup(Protocol):
    """The part of the blocker graph the resolver reads."""

    def blockers_of(self, task_id: str) -> set[str]: ...


class BlockerResolver:
    """
    Resolves a candidate task to its deepest currently-open blocker.

    Only blockers whose status is OPEN hold a task back. Claimed, delivered
    and done blockers are treated as resolved, and edges pointing at tasks
    that no longer exist are ignored.
    """

    def __init__(self, tasks: Mapping[str, Task], graph: BlockerLookup) -> None:
        """
        Initialize resolver.

        Args:
            tasks: Snapshot of all tasks keyed by id
            graph: Blocker graph
        """
        self.tasks = tasks
        self.graph = graph

    def open_blockers(self, task: Task) -> list[Task]:
        """
        Get the open blockers of a task, most urgent first.

        Args:
            task: Task to check

        Returns:
            Open blocker tasks in priority order
        """
        blockers = []
        for blocker_id in self.graph.blockers_of(task.id):
            blocker = self.tasks.get(blocker_id)
            if blocker is None:
                logger.debug(f"Ignoring orphan blocker task-{blocker_id} of task-{task.id}")
                continue
            if blocker.status == TaskStatus.OPEN:
                blockers.append(blocker)
        return rank(blockers)

    def is_actionable(self, task: Task) -> bool:
        """Check whether no open blocker holds the task back."""
        for blocker_id in self.graph.blockers_of(task.id):
            blocker = self.tasks.get(blocker_id)
            if blocker is not None and blocker.status == TaskStatus.OPEN:
                return False
        return True

    def resolve(self, candidate: Task) -> Task:
        """
        Walk down the blocker graph until an actionable task is found.

        Each hop re-derives the open blockers of the current task and moves
        to the most urgent of them.

        Args:
            candidate: Starting task

        Returns:
            The first actionable task on the walk

        Raises:
            CycleDetectedError: If the walk revisits a task
            InvariantViolation: If a blocked task yields no open blocker
        """
        path = [candidate.id]
        current = candidate

        while not self.is_actionable(current):
            blockers = self.open_blockers(current)
            if not blockers:
                raise InvariantViolation(
                    f"task-{current.id} is not actionable but has no open blockers"
                )

            current = best_candidate(blockers)
            if current.id in path:
                raise CycleDetectedError(path[path.index(current.id):] + [current.id])

            logger.debug(f"task-{path[-1]} is blocked, descending to task-{current.id}")
            path.append(current.id)

        return current
