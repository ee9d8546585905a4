"""Task data models."""

import os
import time
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

ID_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"
ID_LENGTH = 6


def _encode(value: int, length: int) -> str:
    chars = []
    for _ in range(length):
        value, digit = divmod(value, len(ID_ALPHABET))
        chars.append(ID_ALPHABET[digit])
    return "".join(reversed(chars))


def generate_task_id() -> str:
    """
    Generate a short alphanumeric task id.

    Mixes the clock, the process id and a few random bytes. Ids are unique
    with high probability but are not ordered by creation time.
    """
    entropy = time.time_ns() ^ (os.getpid() << 20) ^ int.from_bytes(os.urandom(4), "big")
    return _encode(entropy, ID_LENGTH)


class TaskStatus(str, Enum):
    """Task lifecycle status."""

    OPEN = "open"
    CLAIMED = "claimed"
    DELIVERED = "delivered"
    DONE = "done"


class Task(BaseModel):
    """A unit of work."""

    id: str = Field(default_factory=generate_task_id)
    title: str
    status: TaskStatus = TaskStatus.OPEN
    description: Optional[str] = None
    acceptance_criteria: Optional[str] = None
    friction_score: int = Field(default=0, ge=0)

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("title must not be empty")
        return value

    @property
    def is_done(self) -> bool:
        return self.status == TaskStatus.DONE

    def with_note(self, note: str) -> "Task":
        """Return a copy with ``note`` appended to the description."""
        if self.description:
            description = f"{self.description}\n\n{note}"
        else:
            description = note
        return self.model_copy(update={"description": description})


class BlockerEdge(BaseModel):
    """``blocked`` must not be started while ``blocker`` is open."""

    blocked: str
    blocker: str

    model_config = {"frozen": True}


class FrictionSource(str, Enum):
    """Why a friction increment happened."""

    REPORT = "report"
    SKIP = "skip"


class FrictionEntry(BaseModel):
    """Audit record for a single friction increment."""

    task_id: str
    source: FrictionSource
    description: str
    timestamp: datetime = Field(default_factory=datetime.now)
