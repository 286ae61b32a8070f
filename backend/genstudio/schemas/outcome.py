from __future__ import annotations
"""Task handles and job outcomes.

``JobOutcome`` is a tagged union on ``status``:

- ``completed`` and ``failed`` are terminal;
- ``pending`` is the only non-terminal state and always carries the
  task UUID needed to resume polling.
"""

import uuid
from datetime import datetime, timezone
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field


class TaskHandle(BaseModel):
    """Correlation key between a submitted job and its eventual result."""

    task_uuid: str
    submitted_at: datetime

    model_config = {"frozen": True}

    @classmethod
    def new(cls, task_uuid: str | None = None) -> TaskHandle:
        return cls(
            task_uuid=task_uuid or str(uuid.uuid4()),
            submitted_at=datetime.now(timezone.utc),
        )


class Completed(BaseModel):
    status: Literal["completed"] = "completed"
    task_uuid: str
    media_url: str | None = None
    cost: float | None = None
    seed: int | None = None
    model: str | None = None
    duration: int | None = None
    fps: int | None = None
    elapsed_seconds: float | None = None

    model_config = {"frozen": True}


class Pending(BaseModel):
    status: Literal["pending"] = "pending"
    task_uuid: str

    model_config = {"frozen": True}


class Failed(BaseModel):
    status: Literal["failed"] = "failed"
    error_kind: str
    message: str
    http_status: int | None = None
    details: Any = None
    task_uuid: str | None = None

    model_config = {"frozen": True}


JobOutcome = Annotated[Union[Completed, Pending, Failed], Field(discriminator="status")]


def is_terminal(outcome: Completed | Pending | Failed) -> bool:
    return outcome.status != "pending"
