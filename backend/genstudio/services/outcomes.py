"""Result/error mapper.

Normalizes what the provider sends back (task items, structured errors,
unparsable bodies) and what we raise locally into the single ``JobOutcome``
shape, then renders outcomes into the caller-facing response envelopes.
"""

from __future__ import annotations

import enum
import json
import logging
from typing import Any

from genstudio.errors import (
    AuthenticationFailed,
    GenerationError,
    ProviderError,
    TransportError,
)
from genstudio.schemas import Completed, Failed, Pending

logger = logging.getLogger(__name__)

Outcome = Completed | Pending | Failed


# ---------------------------------------------------------------------------
# Provider status vocabulary → local enum
# ---------------------------------------------------------------------------

class TaskStatus(str, enum.Enum):
    """Closed local status set; raw provider strings never leave this module."""

    PENDING = "pending"
    COMPLETED = "completed"
    UNKNOWN = "unknown"


_COMPLETED_WORDS = frozenset({"completed", "finished", "success", "succeeded", "done"})
_PENDING_WORDS = frozenset({
    "pending", "processing", "queued", "submitted", "running", "in_progress", "started",
})

VIDEO_URL_KEYS = ("videoURL", "outputVideoURL", "url")


def extract_video_url(item: dict[str, Any]) -> str | None:
    for key in VIDEO_URL_KEYS:
        value = item.get(key)
        if value:
            return value
    return None


def normalize_status(item: dict[str, Any]) -> TaskStatus:
    """Map a provider task item to TaskStatus.

    A media URL means the task is done, whatever the status text says.
    """
    if extract_video_url(item):
        return TaskStatus.COMPLETED
    raw = str(item.get("status") or item.get("state") or "").strip().lower()
    if raw in _COMPLETED_WORDS:
        return TaskStatus.COMPLETED
    if raw in _PENDING_WORDS:
        return TaskStatus.PENDING
    return TaskStatus.UNKNOWN


# ---------------------------------------------------------------------------
# Provider error shapes
# ---------------------------------------------------------------------------

def item_error_message(item: dict[str, Any]) -> str | None:
    """Error text carried by a single task item, if any."""
    if item.get("errorMessage"):
        return str(item["errorMessage"])
    error = item.get("error")
    if not error:
        return None
    if isinstance(error, str):
        return error
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    return json.dumps(error)


def top_level_error(message: dict[str, Any]) -> str | None:
    """Error text of a top-level ``error``/``errors`` field, if present."""
    if not isinstance(message, dict):
        return None
    if not (message.get("error") or message.get("errors")):
        return None
    if message.get("errorMessage"):
        return str(message["errorMessage"])
    return extract_error_detail(message) or "API error"


def extract_error_detail(body: Any) -> str:
    """Best-effort human-readable detail from an error body."""
    if isinstance(body, str) and body.strip():
        return body
    if not isinstance(body, dict):
        return json.dumps(body) if body is not None else "Unknown Runware error"

    potential = None
    for key in ("error", "errors", "message", "detail", "reason"):
        if body.get(key):
            potential = body[key]
            break

    if isinstance(potential, str) and potential.strip():
        return potential
    if isinstance(potential, list) and potential:
        first = potential[0]
        if isinstance(first, str) and first.strip():
            return first
        if isinstance(first, dict) and isinstance(first.get("message"), str):
            return first["message"]
        return json.dumps(potential)
    if isinstance(potential, dict) and isinstance(potential.get("message"), str):
        return potential["message"]
    return json.dumps(body)


def error_from_http_response(status: int, body: Any, *, parsed: bool = True) -> GenerationError:
    """Map a non-2xx provider reply to the error taxonomy."""
    if status in (401, 403):
        detail = extract_error_detail(body) if body else ""
        message = f"Runware authentication failed ({status}). Verify the RUNWARE_API_KEY."
        if detail and detail != "Unknown Runware error":
            message += f" Details: {detail}"
        return AuthenticationFailed(message, http_status=status, details=body)

    detail = extract_error_detail(body) if body else "Unknown Runware error"
    message = detail if str(status) in detail else f"Runware API error ({status}): {detail}"
    if not parsed:
        return TransportError(message, http_status=status, details=body)
    return ProviderError(message, http_status=status, details=body)


def task_items(response: Any) -> list[dict[str, Any]]:
    """Candidate task items from a top-level array or a ``data`` array."""
    if isinstance(response, list):
        return [i for i in response if isinstance(i, dict)]
    if isinstance(response, dict) and isinstance(response.get("data"), list):
        return [i for i in response["data"] if isinstance(i, dict)]
    return []


def find_task_item(response: Any, task_uuid: str) -> dict[str, Any] | None:
    for item in task_items(response):
        if item.get("taskUUID") == task_uuid:
            return item
    return None


# ---------------------------------------------------------------------------
# Exceptions → Failed
# ---------------------------------------------------------------------------

def failure_from_exception(exc: Exception, task_uuid: str | None = None) -> Failed:
    if isinstance(exc, GenerationError):
        return Failed(
            error_kind=exc.error_kind,
            message=exc.message,
            http_status=exc.status_code,
            details=exc.details,
            task_uuid=task_uuid,
        )
    logger.exception("Unexpected generation failure", exc_info=exc)
    return Failed(
        error_kind="internal_error",
        message=str(exc) or "Unexpected error",
        http_status=500,
        task_uuid=task_uuid,
    )


# ---------------------------------------------------------------------------
# Outcome → caller envelope
# ---------------------------------------------------------------------------

def image_payload(outcome: Completed) -> dict[str, Any]:
    data: dict[str, Any] = {
        "imageURL": outcome.media_url,
        "cost": outcome.cost,
        "seed": outcome.seed,
        "model": outcome.model,
        "taskUUID": outcome.task_uuid,
    }
    if outcome.elapsed_seconds is not None:
        data["generationTime"] = f"{outcome.elapsed_seconds:.1f}s"
    return data


def edit_payload(outcome: Completed) -> dict[str, Any]:
    return {
        "imageURL": outcome.media_url,
        "cost": outcome.cost,
        "model": outcome.model,
        "taskUUID": outcome.task_uuid,
    }


def video_payload(outcome: Completed | Pending) -> dict[str, Any]:
    data: dict[str, Any] = {"status": outcome.status, "taskUUID": outcome.task_uuid}
    if isinstance(outcome, Completed):
        if outcome.media_url:
            data["videoURL"] = outcome.media_url
        if outcome.cost is not None:
            data["cost"] = outcome.cost
        for key in ("model", "duration", "fps"):
            value = getattr(outcome, key)
            if value is not None:
                data[key] = value
    return data


def failure_body(outcome: Failed) -> dict[str, Any]:
    body: dict[str, Any] = {
        "success": False,
        "error": outcome.message,
        "errorKind": outcome.error_kind,
    }
    if outcome.details is not None:
        body["details"] = outcome.details
    return body


def outcome_to_response(
    outcome: Outcome,
    *,
    kind: str = "video",
    extra: dict[str, Any] | None = None,
) -> tuple[int, dict[str, Any]]:
    """Render an outcome as ``(http_status, body)``.

    200 = Completed, 202 = Pending, 4xx/5xx = Failed.
    """
    if isinstance(outcome, Failed):
        return outcome.http_status or 500, failure_body(outcome)

    if kind == "image" and isinstance(outcome, Completed):
        data = image_payload(outcome)
    elif kind == "edit" and isinstance(outcome, Completed):
        data = edit_payload(outcome)
    else:
        data = video_payload(outcome)
    if extra:
        data.update({k: v for k, v in extra.items() if v is not None and k not in data})

    status_code = 200 if isinstance(outcome, Completed) else 202
    return status_code, {"success": True, "data": data}
