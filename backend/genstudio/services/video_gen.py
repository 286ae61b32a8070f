from __future__ import annotations
"""Video generation service — Runware async videoInference.

Async task pattern:
1. POST videoInference (deliveryMethod=async) → task accepted
2. POST getResponse for the task UUID → poll status
3. Completed (200) / Pending (202, resume later with the task UUID)

Polling state (dedup of active loops, completed cache) lives in the
process-wide ``VideoTaskPoller``.
"""

import logging
from typing import Any, Literal

import httpx

from genstudio.config import get_settings
from genstudio.errors import ValidationError
from genstudio.schemas import GenerationRequest
from genstudio.services.base_gen_service import BaseGenService
from genstudio.services.model_registry import MODEL_REGISTRY
from genstudio.services.outcomes import Outcome
from genstudio.services.runware_client import RunwareClient
from genstudio.services.video_poller import VideoTaskPoller, get_video_poller

logger = logging.getLogger(__name__)

VideoMode = Literal["start", "poll"]
VIDEO_MODES = ("start", "poll")


def is_poll_request(request: GenerationRequest, mode: str | None = None) -> bool:
    """A poll is an explicit ``mode=poll`` with a task UUID, or a bare task UUID."""
    if mode == "poll":
        return bool(request.task_uuid)
    return bool(request.task_uuid and not request.prompt and not request.frame_images)


def start_metadata(request: GenerationRequest) -> dict[str, Any]:
    """Model/duration/fps that a start request will be submitted with."""
    model = MODEL_REGISTRY.resolve_video_model(request.model)
    return {
        "model": model,
        "duration": MODEL_REGISTRY.normalize_duration(model, request.duration),
        "fps": MODEL_REGISTRY.normalize_fps(model, request.fps),
    }


class VideoGenService(BaseGenService):
    """Submit-and-poll video generation.

    Running out of poll attempts yields Pending, never a timeout.
    """

    service_name = "video_gen"

    async def _generate(self, **kwargs: Any) -> Outcome:
        request: GenerationRequest = kwargs["request"]
        mode: str | None = kwargs.get("mode")
        poller: VideoTaskPoller = kwargs.get("poller") or get_video_poller()
        http_client: httpx.AsyncClient | None = kwargs.get("http_client")

        if mode is not None and mode not in VIDEO_MODES:
            raise ValidationError(f"mode must be one of: {', '.join(VIDEO_MODES)}")

        api_key = get_settings().require_api_key()
        client = RunwareClient(api_key, http_client=http_client)

        if is_poll_request(request, mode):
            logger.info("Resuming poll for video task %s", request.task_uuid)
            return await poller.resume_polling(client, request.task_uuid)

        if mode == "poll":
            raise ValidationError("taskUUID is required when mode is poll")

        return await poller.submit_and_track(client, request)


# Module-level singleton for metrics aggregation
_video_service = VideoGenService()


def get_video_service() -> VideoGenService:
    return _video_service


async def generate_video(
    request: GenerationRequest,
    mode: str | None = None,
    *,
    poller: VideoTaskPoller | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> Outcome:
    """Public API — start a video job or resume polling one. Never raises."""
    return await _video_service.execute(
        task_uuid=request.task_uuid,
        request=request,
        mode=mode,
        poller=poller,
        http_client=http_client,
    )
