from __future__ import annotations
"""Image API endpoints — text-to-image and reference-guided edits."""

import logging
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from genstudio.api.helpers import (
    error_response,
    form_number,
    form_text,
    outcome_response,
    parse_model,
    read_body,
    upload_to_data_uri,
)
from genstudio.errors import GenerationError
from genstudio.schemas import EditRequest, GenerationRequest
from genstudio.services.image_gen import edit_image, generate_image

logger = logging.getLogger(__name__)

router = APIRouter()


async def _edit_form(form: Any) -> dict[str, Any]:
    seed = form.get("referenceImage") or form.get("seedImage")
    return {
        "positivePrompt": form_text(form.get("positivePrompt")),
        "editStyle": form_text(form.get("editStyle")),
        "width": form_number(form.get("width")),
        "height": form_number(form.get("height")),
        "aspectRatio": form_text(form.get("aspectRatio")),
        "strength": form_number(form.get("strength"), float) or 0.8,
        "cfgScale": form_number(form.get("cfgScale"), float) or 7.0,
        "seedImage": await upload_to_data_uri(seed),
        "maskImage": await upload_to_data_uri(form.get("maskImage")),
    }


@router.post("/generate-image")
async def api_generate_image(request: Request) -> JSONResponse:
    """Generate one image over a Runware websocket session.

    200 → ``{success, data: {imageURL, cost, seed, model, taskUUID, generationTime}}``
    """
    try:
        data = await read_body(request, implicit_json=True)
        data.setdefault("kind", "image")
        gen_request = parse_model(GenerationRequest, data)
    except GenerationError as e:
        return error_response(e)

    outcome = await generate_image(gen_request)
    return outcome_response(outcome, kind="image")


@router.post("/edit-image")
async def api_edit_image(request: Request) -> JSONResponse:
    """Edit a reference image with one of the edit styles.

    Accepts JSON or multipart (``referenceImage``/``seedImage`` as a file
    up to MAX_UPLOAD_BYTES, or a URL/data-URI string).
    """
    try:
        data = await read_body(request, _edit_form)
        edit_request = parse_model(
            EditRequest, {k: v for k, v in data.items() if v is not None},
        )
    except GenerationError as e:
        return error_response(e)

    outcome = await edit_image(edit_request)
    return outcome_response(outcome, kind="edit")
