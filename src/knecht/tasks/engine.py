"""Task engine: scheduling, transitions and record management."""

import logging
from dataclasses import dataclass, field
from typing import Optional

from knecht.errors import BlockedError, TaskNotFoundError
from knecht.storage.blockers import BlockerGraph
from knecht.storage.friction import FrictionLog
from knecht.storage.repository import TaskRepository
from knecht.tasks import state
from knecht.tasks.models import FrictionEntry, FrictionSource, Task, TaskStatus, generate_task_id
from knecht.tasks.penalty import SkipPenalty, compute_skip_penalty, head_of_queue
from knecht.tasks.priority import best_candidate, rank
from knecht.tasks.resolver import BlockerResolver

logger = logging.getLogger(__name__)

MAX_ID_ATTEMPTS = 16


@dataclass
class TaskDetail:
    """A task together with its blocker relationships.

    Related tasks are ``None`` when the edge points at a deleted task.
    """

    task: Task
    blockers: list[tuple[str, Optional[Task]]] = field(default_factory=list)
    blocks: list[tuple[str, Optional[Task]]] = field(default_factory=list)


@dataclass
class Completion:
    """A completed task and the skip penalty that was persisted, if any."""

    task: Task
    penalty: Optional[SkipPenalty] = None


class TaskEngine:
    """Answers "what next?" and applies task lifecycle operations."""

    def __init__(
        self,
        repository: TaskRepository,
        graph: BlockerGraph,
        friction_log: Optional[FrictionLog] = None,
    ) -> None:
        """
        Initialize task engine.

        Args:
            repository: Task record storage
            graph: Blocker relationships
            friction_log: Optional audit log for friction increments
        """
        self.repository = repository
        self.graph = graph
        self.friction_log = friction_log

    def _snapshot(self) -> dict[str, Task]:
        return {task.id: task for task in self.repository.load_all()}

    def _get(self, snapshot: dict[str, Task], task_id: str) -> Task:
        task = snapshot.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    def _record_friction(self, task_id: str, source: FrictionSource, description: str) -> None:
        if self.friction_log is None:
            return
        self.friction_log.append(
            FrictionEntry(task_id=task_id, source=source, description=description)
        )

    def init(self) -> None:
        """Create the data directory layout. Safe to call repeatedly."""
        self.repository.tasks_dir.mkdir(parents=True, exist_ok=True)
        if not self.graph.path.exists():
            self.graph.path.touch()
        logger.info(f"Initialized knecht in {self.repository.root}")

    # Scheduling

    def suggest_next(self) -> Optional[Task]:
        """
        Get the task an agent should work on next.

        Delivered tasks awaiting verification always come first and are
        returned without blocker resolution. Otherwise the most urgent open
        task is resolved down to an actionable blocker.

        Returns:
            Suggested task, or None if there is no actionable work

        Raises:
            CycleDetectedError: If the blocker walk loops
        """
        snapshot = self._snapshot()

        delivered = [t for t in snapshot.values() if t.status == TaskStatus.DELIVERED]
        if delivered:
            return best_candidate(delivered)

        open_tasks = [t for t in snapshot.values() if t.status == TaskStatus.OPEN]
        if not open_tasks:
            return None

        candidate = best_candidate(open_tasks)
        resolver = BlockerResolver(snapshot, self.graph)
        return resolver.resolve(candidate)

    def head_of_queue(self) -> Optional[Task]:
        """Get the open task a completion is compared against."""
        return head_of_queue(self.repository.load_all())

    # Transitions

    def claim(self, task_id: str) -> Task:
        """
        Claim a task for work.

        Raises:
            TaskNotFoundError: If the task does not exist
            AlreadyDoneError: If the task is done
            BlockedError: If the task has open blockers
        """
        snapshot = self._snapshot()
        task = self._get(snapshot, task_id)
        claimed = state.claim(task)

        open_blockers = BlockerResolver(snapshot, self.graph).open_blockers(task)
        if open_blockers:
            raise BlockedError(task_id, [b.id for b in open_blockers])

        self.repository.save(claimed)
        logger.info(f"Claimed task-{task_id}")
        return claimed

    def deliver(self, task_id: str) -> Task:
        """
        Mark a task as delivered and awaiting verification.

        Raises:
            TaskNotFoundError: If the task does not exist
            AlreadyDeliveredError: If the task is already delivered
            AlreadyDoneError: If the task is done
        """
        task = self.repository.load(task_id)
        delivered = state.deliver(task)
        self.repository.save(delivered)
        logger.info(f"Delivered task-{task_id}")
        return delivered

    def complete(self, task_id: str) -> Task:
        """Mark a task as done and return it. See complete_with_penalty()."""
        return self.complete_with_penalty(task_id).task

    def complete_with_penalty(self, task_id: str) -> Completion:
        """
        Mark a task as done, penalizing a skipped head of queue.

        The head of queue and the completed task are both derived from the
        snapshot taken before any write, then persisted separately.

        Raises:
            TaskNotFoundError: If the task does not exist
            AlreadyDoneError: If the task is already done
        """
        snapshot = self._snapshot()
        task = self._get(snapshot, task_id)
        done = state.complete(task)
        penalty = compute_skip_penalty(snapshot.values(), task)

        if penalty is not None:
            self.repository.save(penalty.task)
            self._record_friction(penalty.task.id, FrictionSource.SKIP, penalty.note)

        self.repository.save(done)
        logger.info(f"Completed task-{task_id}")
        return Completion(task=done, penalty=penalty)

    def add_friction(self, task_id: str, note: str) -> Task:
        """
        Report friction against a task.

        Increments the friction score by one and appends the note to the
        description.

        Raises:
            ValueError: If note is blank
            TaskNotFoundError: If the task does not exist
        """
        if not note.strip():
            raise ValueError("friction note must not be empty")

        task = self.repository.load(task_id)
        updated = task.with_note(note)
        updated = updated.model_copy(update={"friction_score": task.friction_score + 1})
        self.repository.save(updated)
        self._record_friction(task_id, FrictionSource.REPORT, note)

        logger.info(f"Friction on task-{task_id} now {updated.friction_score}")
        return updated

    # Records

    def add(
        self,
        title: str,
        description: Optional[str] = None,
        acceptance_criteria: Optional[str] = None,
    ) -> Task:
        """
        Create a new open task.

        Raises:
            pydantic.ValidationError: If title is blank
            RuntimeError: If no unused id could be generated
        """
        for _ in range(MAX_ID_ATTEMPTS):
            task_id = generate_task_id()
            if not self.repository.exists(task_id):
                break
        else:
            raise RuntimeError("Could not generate an unused task id")

        task = Task(
            id=task_id,
            title=title,
            description=description or None,
            acceptance_criteria=acceptance_criteria or None,
        )
        self.repository.save(task)
        logger.info(f"Created task-{task.id} - {task.title}")
        return task

    def update(
        self,
        task_id: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
        acceptance_criteria: Optional[str] = None,
    ) -> Task:
        """
        Update task fields. Only fields that are given change.

        An empty string clears description or acceptance criteria.

        Raises:
            ValueError: If no field is given or title is blank
            TaskNotFoundError: If the task does not exist
        """
        if title is None and description is None and acceptance_criteria is None:
            raise ValueError("nothing to update: give a title, description or acceptance criteria")
        if title is not None and not title.strip():
            raise ValueError("title must not be empty")

        task = self.repository.load(task_id)
        updates: dict = {}
        if title is not None:
            updates["title"] = title
        if description is not None:
            updates["description"] = description or None
        if acceptance_criteria is not None:
            updates["acceptance_criteria"] = acceptance_criteria or None

        updated = task.model_copy(update=updates)
        self.repository.save(updated)
        logger.info(f"Updated task-{task_id}: {', '.join(updates)}")
        return updated

    def delete(self, task_id: str) -> None:
        """
        Delete a task. Blocker edges that mention it are left in place.

        Raises:
            TaskNotFoundError: If the task does not exist
        """
        self.repository.delete(task_id)

    def show(self, task_id: str) -> TaskDetail:
        """
        Get a task with the tasks it waits on and the tasks waiting on it.

        Raises:
            TaskNotFoundError: If the task does not exist
        """
        snapshot = self._snapshot()
        task = self._get(snapshot, task_id)
        return TaskDetail(
            task=task,
            blockers=[(b, snapshot.get(b)) for b in sorted(self.graph.blockers_of(task_id))],
            blocks=[(b, snapshot.get(b)) for b in sorted(self.graph.blocked_by(task_id))],
        )

    def list_tasks(self, include_done: bool = False) -> list[Task]:
        """List tasks in priority order, hiding done tasks unless asked."""
        tasks = self.repository.load_all()
        if not include_done:
            tasks = [t for t in tasks if t.status != TaskStatus.DONE]
        return rank(tasks)

    def block(self, blocked_id: str, blocker_id: str) -> None:
        """
        Record that one task waits on another.

        Raises:
            TaskNotFoundError: If either task does not exist
            InvalidEdgeError: If a task would block itself
        """
        for task_id in (blocked_id, blocker_id):
            if not self.repository.exists(task_id):
                raise TaskNotFoundError(task_id)
        self.graph.add_edge(blocked_id, blocker_id)

    def unblock(self, blocked_id: str, blocker_id: str) -> None:
        """
        Remove a blocker relationship.

        Raises:
            EdgeNotFoundError: If the relationship does not exist
        """
        self.graph.remove_edge(blocked_id, blocker_id)
