"""File-backed storage collaborators."""

from knecht.storage.blockers import BlockerGraph
from knecht.storage.friction import FrictionLog
from knecht.storage.repository import TaskRepository

__all__ = ["BlockerGraph", "FrictionLog", "TaskRepository"]
