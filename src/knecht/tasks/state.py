"""Task status transitions."""

import logging

from knecht.errors import AlreadyDeliveredError, AlreadyDoneError
from knecht.tasks.models import Task, TaskStatus

logger = logging.getLogger(__name__)


def _transition(task: Task, status: TaskStatus) -> Task:
    logger.debug(f"task-{task.id}: {task.status.value} -> {status.value}")
    return task.model_copy(update={"status": status})


def claim(task: Task) -> Task:
    """
    Move a task to CLAIMED.

    Blockers are not checked here; callers must refuse to claim a task
    that still has open blockers.

    Raises:
        AlreadyDoneError: If the task is done
    """
    if task.status == TaskStatus.DONE:
        raise AlreadyDoneError(task.id)
    return _transition(task, TaskStatus.CLAIMED)


def deliver(task: Task) -> Task:
    """
    Move a task to DELIVERED.

    Raises:
        AlreadyDeliveredError: If the task is already delivered
        AlreadyDoneError: If the task is done
    """
    if task.status == TaskStatus.DELIVERED:
        raise AlreadyDeliveredError(task.id)
    if task.status == TaskStatus.DONE:
        raise AlreadyDoneError(task.id)
    return _transition(task, TaskStatus.DELIVERED)


def complete(task: Task) -> Task:
    """
    Move a task to DONE. Allowed from every other status.

    Raises:
        AlreadyDoneError: If the task is already done
    """
    if task.status == TaskStatus.DONE:
        raise AlreadyDoneError(task.id)
    return _transition(task, TaskStatus.DONE)
