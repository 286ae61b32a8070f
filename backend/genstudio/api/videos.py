from __future__ import annotations
"""Video API endpoint — start a job or poll an existing one.

Status codes: 200 completed, 202 pending (poll again with ``taskUUID``),
4xx/5xx failed.
"""

import logging
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from genstudio.api.helpers import (
    error_response,
    form_json,
    form_number,
    form_text,
    outcome_response,
    parse_model,
    read_body,
    upload_to_data_uri,
)
from genstudio.errors import GenerationError
from genstudio.schemas import GenerationRequest
from genstudio.services.video_gen import generate_video, is_poll_request, start_metadata

logger = logging.getLogger(__name__)

router = APIRouter()


async def _video_form(form: Any) -> dict[str, Any]:
    frame = form.get("inputImage") or form.get("frameImage")
    return {
        "mode": form_text(form.get("mode")),
        "positivePrompt": form_text(form.get("positivePrompt")),
        "model": form_text(form.get("model")),
        "aspectRatio": form_text(form.get("aspectRatio")),
        "width": form_number(form.get("width")),
        "height": form_number(form.get("height")),
        "duration": form_number(form.get("duration")),
        "fps": form_number(form.get("fps")),
        "taskUUID": form_text(form.get("taskUUID")),
        "inputImage": await upload_to_data_uri(frame),
        "frameImages": form_json(form.get("frameImages"), "frameImages"),
        "negativePrompt": form_text(form.get("negativePrompt")),
        "providerSettings": form_json(form.get("providerSettings"), "providerSettings"),
    }


@router.post("/generate-video")
async def api_generate_video(request: Request) -> JSONResponse:
    """Start a video job (``mode=start``) or poll one (``mode=poll``).

    A body carrying only a ``taskUUID`` is treated as a poll.
    """
    try:
        data = await read_body(request, _video_form, implicit_json=True)
        mode = data.pop("mode", None)
        data = {k: v for k, v in data.items() if v is not None}
        data["kind"] = "video"
        gen_request = parse_model(GenerationRequest, data)
    except GenerationError as e:
        return error_response(e)

    outcome = await generate_video(gen_request, mode)

    extra = None
    if not is_poll_request(gen_request, mode) and outcome.status != "failed":
        extra = start_metadata(gen_request)
    return outcome_response(outcome, kind="video", extra=extra)
