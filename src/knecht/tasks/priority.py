"""Priority ordering for candidate tasks."""

from typing import Iterable

from knecht.tasks.models import Task


def priority_key(task: Task) -> tuple[int, str]:
    """Sort key: highest friction first, then smallest id."""
    return (-task.friction_score, task.id)


def best_candidate(candidates: Iterable[Task]) -> Task:
    """
    Pick the most urgent task.

    Args:
        candidates: Non-empty collection of tasks

    Returns:
        The task with the highest friction score, ties broken by the
        lexicographically smallest id

    Raises:
        ValueError: If candidates is empty
    """
    best = min(candidates, key=priority_key, default=None)
    if best is None:
        raise ValueError("best_candidate() requires at least one task")
    return best


def rank(tasks: Iterable[Task]) -> list[Task]:
    """Return tasks ordered from most to least urgent."""
    return sorted(tasks, key=priority_key)
