"""knecht - a file-backed task tracker for autonomous agents."""

__version__ = "0.1.0"

from knecht.errors import KnechtError
from knecht.tasks.engine import TaskEngine
from knecht.tasks.models import BlockerEdge, FrictionEntry, Task, TaskStatus

__all__ = [
    "BlockerEdge",
    "FrictionEntry",
    "KnechtError",
    "Task",
    "TaskEngine",
    "TaskStatus",
]
