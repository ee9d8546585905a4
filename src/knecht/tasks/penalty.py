"""Skip penalty applied when the head of the queue is bypassed."""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from knecht.tasks.models import Task, TaskStatus

logger = logging.getLogger(__name__)

SKIP_NOTE = "Skip: {task_id} completed instead"


@dataclass
class SkipPenalty:
    """A penalty to persist: the penalized task and the note it received."""

    task: Task
    note: str


def head_of_queue(tasks: Iterable[Task]) -> Optional[Task]:
    """
    Get the open task with the lexicographically smallest id.

    Args:
        tasks: Snapshot of all tasks

    Returns:
        Head of queue, or None if no task is open
    """
    open_tasks = [t for t in tasks if t.status == TaskStatus.OPEN]
    return min(open_tasks, key=lambda t: t.id, default=None)


def compute_skip_penalty(snapshot: Iterable[Task], completing: Task) -> Optional[SkipPenalty]:
    """
    Work out whether completing a task skips the head of the queue.

    The head is taken from the snapshot as it was before ``completing``
    changed status, so an open ``completing`` task can itself be the head.

    Args:
        snapshot: All tasks before the transition
        completing: Task about to be marked done

    Returns:
        The penalized head of queue, or None if nothing was skipped
    """
    head = head_of_queue(snapshot)
    if head is None or head.id == completing.id:
        return None

    note = SKIP_NOTE.format(task_id=completing.id)
    penalized = head.with_note(note)
    penalized = penalized.model_copy(update={"friction_score": head.friction_score + 1})

    logger.info(f"task-{completing.id} skips head of queue task-{head.id}")
    return SkipPenalty(task=penalized, note=note)
