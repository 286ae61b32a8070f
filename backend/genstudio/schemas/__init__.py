"""Pydantic v2 schemas package."""

from genstudio.schemas.generation import (
    EditRequest,
    FrameImage,
    GenerationRequest,
    to_data_uri,
)
from genstudio.schemas.outcome import (
    Completed,
    Failed,
    JobOutcome,
    Pending,
    TaskHandle,
    is_terminal,
)

__all__ = [
    "EditRequest",
    "FrameImage",
    "GenerationRequest",
    "to_data_uri",
    "Completed",
    "Failed",
    "JobOutcome",
    "Pending",
    "TaskHandle",
    "is_terminal",
]
