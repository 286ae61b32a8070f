from __future__ import annotations
"""Image generation service — Runware over an authenticated websocket.

Text-to-image jobs are synchronous: one session per job, the result
arrives on the same socket. Reference-guided edits go over the HTTP task
endpoint instead, since they carry large data-URI payloads.
"""

import logging
import time
from typing import Any

import httpx

from genstudio.config import get_settings
from genstudio.errors import ProviderError, RemoteTaskFailed
from genstudio.schemas import Completed, EditRequest, GenerationRequest, TaskHandle
from genstudio.services.base_gen_service import BaseGenService
from genstudio.services.model_registry import MODEL_REGISTRY
from genstudio.services.outcomes import (
    Outcome,
    find_task_item,
    item_error_message,
    top_level_error,
)
from genstudio.services.payloads import (
    build_edit_task,
    build_image_task,
    resolve_image_resolution,
)
from genstudio.services.runware_client import RunwareClient
from genstudio.services.session_channel import Connector, SessionChannel

logger = logging.getLogger(__name__)


class ImageGenService(BaseGenService):
    """Text-to-image over a single-use ``SessionChannel``."""

    service_name = "image_gen"

    async def _generate(self, **kwargs: Any) -> Outcome:
        request: GenerationRequest = kwargs["request"]
        handle: TaskHandle = kwargs["handle"]
        connect: Connector | None = kwargs.get("connect")

        settings = get_settings()
        api_key = settings.require_api_key()

        model = MODEL_REGISTRY.resolve_image_model(request.model)
        resolution = resolve_image_resolution(request, model)
        task = build_image_task(request, handle.task_uuid, resolution)

        logger.info(
            "Generating image %s (model=%s, %s)",
            handle.task_uuid, model, resolution or "provider default size",
        )
        started = time.monotonic()
        channel = SessionChannel(api_key, connect=connect)
        item = await channel.run(task)

        return Completed(
            task_uuid=handle.task_uuid,
            media_url=item.get("imageURL"),
            cost=item.get("cost"),
            seed=item.get("seed"),
            model=model,
            elapsed_seconds=round(time.monotonic() - started, 3),
        )


class ImageEditService(BaseGenService):
    """Reference-guided edits through the HTTP task endpoint."""

    service_name = "image_edit"

    async def _generate(self, **kwargs: Any) -> Outcome:
        request: EditRequest = kwargs["request"]
        handle: TaskHandle = kwargs["handle"]
        http_client: httpx.AsyncClient | None = kwargs.get("http_client")

        settings = get_settings()
        api_key = settings.require_api_key()

        task = build_edit_task(request, handle.task_uuid)
        logger.info(
            "Editing image %s (style=%s, model=%s)",
            handle.task_uuid, request.edit_style, task["model"],
        )

        started = time.monotonic()
        client = RunwareClient(api_key, http_client=http_client)
        response = await client.post_tasks([task])

        item = find_task_item(response, handle.task_uuid)
        if item is None:
            error = top_level_error(response)
            if error:
                raise ProviderError(error, details=response)
            raise ProviderError(
                f"Runware returned no result for task {handle.task_uuid}", details=response,
            )

        error = item_error_message(item)
        if error:
            raise RemoteTaskFailed(error, details=item)

        return Completed(
            task_uuid=handle.task_uuid,
            media_url=item.get("imageURL"),
            cost=item.get("cost"),
            seed=item.get("seed"),
            model=task["model"],
            elapsed_seconds=round(time.monotonic() - started, 3),
        )


# Module-level singletons for metrics aggregation
_image_service = ImageGenService()
_edit_service = ImageEditService()


def get_image_service() -> ImageGenService:
    return _image_service


def get_edit_service() -> ImageEditService:
    return _edit_service


async def generate_image(
    request: GenerationRequest,
    *,
    connect: Connector | None = None,
) -> Outcome:
    """Public API — one synchronous image job. Never raises.

    Every job gets a fresh task UUID; a caller-supplied one is ignored.
    ``connect`` overrides the websocket connector (tests).
    """
    handle = TaskHandle.new()
    return await _image_service.execute(
        task_uuid=handle.task_uuid,
        request=request,
        handle=handle,
        connect=connect,
    )


async def edit_image(
    request: EditRequest,
    *,
    http_client: httpx.AsyncClient | None = None,
) -> Outcome:
    """Public API — one reference-guided edit. Never raises."""
    handle = TaskHandle.new()
    return await _edit_service.execute(
        task_uuid=handle.task_uuid,
        request=request,
        handle=handle,
        http_client=http_client,
    )
