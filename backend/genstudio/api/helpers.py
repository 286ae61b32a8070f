from __future__ import annotations
"""Request parsing and response helpers shared by the generation endpoints.

Endpoints accept ``application/json`` or ``multipart/form-data``. Uploaded
files are inlined as base64 data URIs before the request reaches the
services.
"""

import json
import logging
import math
from typing import Any, Awaitable, Callable, TypeVar

from fastapi import Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from starlette.datastructures import UploadFile

from genstudio.config import get_settings
from genstudio.errors import ValidationError
from genstudio.schemas import to_data_uri
from genstudio.services.outcomes import Outcome, failure_from_exception, outcome_to_response

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

JSON_TYPE = "application/json"
MULTIPART_TYPE = "multipart/form-data"


class UnsupportedMediaType(ValidationError):
    """Body is neither JSON nor multipart."""

    @property
    def status_code(self) -> int:
        return 415


async def read_json(request: Request, *, implicit: bool = False) -> dict[str, Any]:
    raw = await request.body()
    if not raw.strip():
        if implicit:
            return {}
        raise ValidationError("Invalid request body")
    try:
        data = json.loads(raw)
    except ValueError:
        if implicit:
            return {}
        raise ValidationError("Request body is not valid JSON") from None
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def _format_size(num_bytes: int) -> str:
    if num_bytes >= 1024 * 1024:
        return f"{num_bytes // (1024 * 1024)}MB"
    return f"{num_bytes} bytes"


async def upload_to_data_uri(value: Any, *, limit: int | None = None) -> str | None:
    """Inline an uploaded file (or pass a string through)."""
    if isinstance(value, UploadFile):
        data = await value.read()
        max_bytes = limit if limit is not None else get_settings().MAX_UPLOAD_BYTES
        if len(data) > max_bytes:
            raise ValidationError(
                f"Image file too large. Maximum size is {_format_size(max_bytes)}."
            )
        if not data:
            return None
        return to_data_uri(data, value.content_type)
    if isinstance(value, str):
        return value.strip() or None
    return None


def form_text(value: Any) -> str | None:
    if isinstance(value, str):
        return value.strip() or None
    return None


def form_number(value: Any, cast: Callable[[str], Any] = int) -> Any:
    """Numeric form field; blank, zero, non-finite or unparsable values count as absent."""
    text = form_text(value)
    if text is None:
        return None
    try:
        parsed = float(text)
        if not math.isfinite(parsed):
            return None
        number = cast(parsed) if cast is int else cast(text)
    except (ValueError, OverflowError):
        return None
    return number or None


def form_json(value: Any, field: str) -> Any:
    text = form_text(value)
    if text is None:
        return None
    try:
        return json.loads(text)
    except ValueError:
        logger.warning("Ignoring unparsable %s form field", field)
        return None


async def read_body(
    request: Request,
    multipart: Callable[[Any], Awaitable[dict[str, Any]]] | None = None,
    *,
    implicit_json: bool = False,
) -> dict[str, Any]:
    """Dispatch on Content-Type. ``multipart`` maps a form into a dict."""
    content_type = request.headers.get("content-type", "").lower()

    if multipart is not None and MULTIPART_TYPE in content_type:
        form = await request.form()
        return await multipart(form)
    if JSON_TYPE in content_type:
        return await read_json(request)
    if not content_type and implicit_json:
        return await read_json(request, implicit=True)
    accepted = JSON_TYPE if multipart is None else f"{JSON_TYPE} or {MULTIPART_TYPE}"
    raise UnsupportedMediaType(f"Content-Type must be {accepted}")


def parse_model(model: type[M], data: dict[str, Any]) -> M:
    """Validate into ``model``, reporting failures as ValidationError."""
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'body'}: {err['msg']}"
            for err in e.errors()
        )
        details = e.errors(include_url=False, include_context=False, include_input=False)
        raise ValidationError(f"Invalid request: {problems}", details=details) from e


def outcome_response(
    outcome: Outcome,
    *,
    kind: str,
    extra: dict[str, Any] | None = None,
) -> JSONResponse:
    status_code, body = outcome_to_response(outcome, kind=kind, extra=extra)
    return JSONResponse(status_code=status_code, content=body)


def error_response(exc: Exception, *, task_uuid: str | None = None) -> JSONResponse:
    """Render an exception raised while reading the request."""
    return outcome_response(failure_from_exception(exc, task_uuid), kind="error")
