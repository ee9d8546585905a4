"""Exception hierarchy for the knecht engine and its storage collaborators."""

from typing import Iterable


class KnechtError(Exception):
    """Base class for all errors reported to the command surface."""


class TaskNotFoundError(KnechtError):
    """Operation referenced a task id absent from the repository."""

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"task-{task_id} not found")


class InvalidTransitionError(KnechtError):
    """Requested status transition is not allowed from the current status."""

    def __init__(self, task_id: str, message: str):
        self.task_id = task_id
        super().__init__(message)


class AlreadyDoneError(InvalidTransitionError):
    """Task is already done; done is terminal."""

    def __init__(self, task_id: str):
        super().__init__(task_id, f"task-{task_id} is already done")


class AlreadyDeliveredError(InvalidTransitionError):
    """Task is already delivered."""

    def __init__(self, task_id: str):
        super().__init__(task_id, f"task-{task_id} is already delivered")


class BlockedError(KnechtError):
    """Claim attempted while open blockers remain."""

    def __init__(self, task_id: str, blocker_ids: Iterable[str]):
        self.task_id = task_id
        self.blocker_ids = list(blocker_ids)
        blockers = ", ".join(f"task-{b}" for b in self.blocker_ids)
        super().__init__(f"task-{task_id} is blocked by open tasks: {blockers}")


class StorageError(KnechtError):
    """Reading or writing a record failed (I/O, permissions, corrupt data)."""


class InvariantViolation(KnechtError):
    """The engine reached a state a well-formed blocker graph cannot produce."""


class CycleDetectedError(InvariantViolation):
    """The blocker walk revisited a task."""

    def __init__(self, path: Iterable[str]):
        self.path = list(path)
        chain = " -> ".join(f"task-{p}" for p in self.path)
        super().__init__(f"Blocker cycle detected: {chain}")


class EdgeNotFoundError(KnechtError):
    """No blocker relationship exists between the two tasks."""

    def __init__(self, blocked: str, blocker: str):
        self.blocked = blocked
        self.blocker = blocker
        super().__init__(f"task-{blocked} is not blocked by task-{blocker}")


class InvalidEdgeError(KnechtError):
    """Blocker relationship rejected at insertion."""
