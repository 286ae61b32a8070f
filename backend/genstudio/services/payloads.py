"""Task payload builder — generic requests → Runware task messages.

Every builder validates caller input first and raises ``ValidationError``
before anything touches the network.
"""

from __future__ import annotations

import logging
from typing import Any

from genstudio.errors import ValidationError
from genstudio.schemas import EditRequest, GenerationRequest
from genstudio.services.dimensions import (
    Resolution,
    clamp_image_edge,
    compute_dimensions,
    compute_video_dimensions,
    normalize_video_resolution,
)
from genstudio.services.model_registry import MODEL_REGISTRY

logger = logging.getLogger(__name__)

MIN_PROMPT_LENGTH = 2
GOOGLE_VIDEO_MODEL = "google:3@1"


def validate_prompt(prompt: str | None) -> str:
    """Return the prompt unchanged if it has at least two non-blank chars."""
    if not prompt or len(prompt.strip()) < MIN_PROMPT_LENGTH:
        raise ValidationError(
            f"positivePrompt is required and must be at least {MIN_PROMPT_LENGTH} characters"
        )
    return prompt


def build_auth_message(api_key: str, session_uuid: str | None = None) -> list[dict[str, Any]]:
    message: dict[str, Any] = {"taskType": "authentication", "apiKey": api_key}
    if session_uuid:
        message["connectionSessionUUID"] = session_uuid
    return [message]


def build_poll_task(task_uuid: str) -> list[dict[str, Any]]:
    return [{
        "taskType": "getResponse",
        "taskUUID": task_uuid,
        "includeCost": True,
        "outputType": "URL",
    }]


# ---------------------------------------------------------------------------
# Image
# ---------------------------------------------------------------------------

def resolve_image_resolution(request: GenerationRequest, model: str) -> Resolution | None:
    """Explicit dimensions win; otherwise derive them from the aspect ratio."""
    if request.width and request.height:
        return Resolution(request.width, request.height)
    if request.aspect_ratio:
        return compute_dimensions(request.aspect_ratio, model)
    return None


def build_image_task(
    request: GenerationRequest,
    task_uuid: str,
    resolution: Resolution | None = None,
) -> dict[str, Any]:
    """Build an ``imageInference`` task for the websocket session."""
    prompt = validate_prompt(request.prompt)
    model = MODEL_REGISTRY.resolve_image_model(request.model)

    task: dict[str, Any] = {
        "taskType": "imageInference",
        "taskUUID": task_uuid,
        "positivePrompt": prompt,
        "model": model,
    }
    if resolution:
        task["width"] = resolution.width
        task["height"] = resolution.height
    task["numberResults"] = 1
    task["includeCost"] = True
    return task


def build_edit_task(request: EditRequest, task_uuid: str) -> dict[str, Any]:
    """Build a reference-guided ``imageInference`` task for an edit style.

    Per-model parameters (steps, strength, NSFW check, caller CFG) are only
    included when the edit style defines them.
    """
    prompt = validate_prompt(request.prompt)
    if not request.seed_image:
        raise ValidationError("seedImage is required")

    style = MODEL_REGISTRY.get_edit_style(request.edit_style)
    if style is None:
        raise ValidationError(
            f"editStyle must be one of: {', '.join(MODEL_REGISTRY.edit_style_ids())}"
        )

    cfg_scale = (request.cfg_scale or 7) if style.caller_cfg else 7
    task: dict[str, Any] = {
        "taskType": "imageInference",
        "taskUUID": task_uuid,
        "model": style.model_id,
        "positivePrompt": prompt,
        "CFGScale": cfg_scale,
        "numberResults": 1,
        "includeCost": True,
        "outputType": "URL",
        "referenceImages": [request.seed_image],
    }

    if style.sends_dimensions:
        if request.aspect_ratio and not (request.width and request.height):
            res = compute_dimensions(request.aspect_ratio, style.model_id)
            task["width"], task["height"] = res.width, res.height
        else:
            task["width"] = clamp_image_edge(request.width)
            task["height"] = clamp_image_edge(request.height)

    if style.steps is not None:
        task["steps"] = style.steps
    if style.check_nsfw:
        task["checkNSFW"] = True
    if style.uses_strength:
        task["strength"] = max(0.0, min(1.0, request.strength or 0.8))

    if request.mask_image:
        task["maskImage"] = request.mask_image

    return task


# ---------------------------------------------------------------------------
# Video
# ---------------------------------------------------------------------------

def resolve_video_resolution(request: GenerationRequest, model: str) -> Resolution | None:
    """Resolution for a video task, or None when frames dictate the size."""
    if request.is_frame_guided:
        return None
    if request.aspect_ratio and not (request.width or request.height):
        return compute_video_dimensions(request.aspect_ratio, model)
    return normalize_video_resolution(model, request.width, request.height)


def _collect_frames(request: GenerationRequest) -> list[dict[str, Any]]:
    frames: list[dict[str, Any]] = [
        f.model_dump(by_alias=True, exclude_none=True)
        for f in request.frame_images
        if f.input_image
    ]
    if request.reference_image:
        frames.append({"inputImage": request.reference_image, "frame": "first"})
    return frames


def _google_provider_settings(existing: dict[str, Any] | None) -> dict[str, Any]:
    google = dict((existing or {}).get("google") or {})
    generate_audio = google.get("generateAudio")
    if not isinstance(generate_audio, bool):
        generate_audio = str(generate_audio).lower() == "true"
    google.update(generateAudio=generate_audio, enhancePrompt=True)
    return {"google": google}


def build_video_task(
    request: GenerationRequest,
    task_uuid: str,
    resolution: Resolution | None = None,
) -> dict[str, Any]:
    """Build an async ``videoInference`` task.

    Dimension fields are omitted for frame-guided jobs.
    """
    prompt = validate_prompt(request.prompt)
    model = MODEL_REGISTRY.resolve_video_model(request.model)
    duration = MODEL_REGISTRY.normalize_duration(model, request.duration)
    fps = MODEL_REGISTRY.normalize_fps(model, request.fps)
    frames = _collect_frames(request)

    task: dict[str, Any] = {
        "taskType": "videoInference",
        "taskUUID": task_uuid,
        "model": model,
        "positivePrompt": prompt,
        "duration": duration,
        "fps": fps,
        "numberResults": 1,
        "includeCost": True,
        "outputType": "URL",
        "deliveryMethod": "async",
    }

    if frames:
        task["frameImages"] = frames
    elif resolution:
        task["width"] = resolution.width
        task["height"] = resolution.height

    if request.negative_prompt and request.negative_prompt.strip():
        task["negativePrompt"] = request.negative_prompt.strip()

    if model == GOOGLE_VIDEO_MODEL:
        task["providerSettings"] = _google_provider_settings(request.provider_settings)
    elif request.provider_settings:
        task["providerSettings"] = request.provider_settings

    logger.debug(
        "Built videoInference task %s (model=%s duration=%s fps=%s frames=%d)",
        task_uuid, model, duration, fps, len(frames),
    )
    return task
