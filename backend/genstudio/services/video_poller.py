"""Poll-until-terminal engine for async video jobs.

Submit pattern:
1. POST ``videoInference`` with ``deliveryMethod: async``
2. POST ``getResponse`` for the same task UUID, up to ``max_polls`` times
3. Completed as soon as the matched item carries a video URL or a
   completed status; Pending when the attempt budget runs out

Pending is not a failure: the caller resumes later with the task UUID.
Completed outcomes are cached in-process so re-polling a finished task
returns the same outcome without touching the provider again.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import OrderedDict
from typing import Any, Awaitable, Callable

from genstudio.config import get_settings
from genstudio.errors import RemoteTaskFailed
from genstudio.schemas import Completed, GenerationRequest, Pending, TaskHandle
from genstudio.services.outcomes import (
    TaskStatus,
    extract_video_url,
    find_task_item,
    item_error_message,
    normalize_status,
)
from genstudio.services.payloads import (
    build_poll_task,
    build_video_task,
    resolve_video_resolution,
)
from genstudio.services.model_registry import MODEL_REGISTRY
from genstudio.services.runware_client import RunwareClient

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]

COMPLETED_CACHE_SIZE = 512


class VideoTaskPoller:
    """Submits video tasks and polls them until a terminal state.

    One instance per process: the active-task set and the completed cache
    only deduplicate within the instance that owns them.
    """

    def __init__(
        self,
        max_polls: int | None = None,
        poll_interval: float | None = None,
        *,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        settings = get_settings()
        self.max_polls = max_polls if max_polls is not None else settings.VIDEO_MAX_POLLS
        self.poll_interval = (
            poll_interval if poll_interval is not None else settings.VIDEO_POLL_INTERVAL
        )
        self._sleep = sleep
        self._active: set[str] = set()
        self._completed: OrderedDict[str, Completed] = OrderedDict()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def is_active(self, task_uuid: str) -> bool:
        return task_uuid in self._active

    def cached(self, task_uuid: str) -> Completed | None:
        return self._completed.get(task_uuid)

    async def submit_and_track(
        self,
        client: RunwareClient,
        request: GenerationRequest,
    ) -> Completed | Pending:
        """Submit one ``videoInference`` task, then poll it.

        Raises:
            ValidationError: bad request, before anything is sent.
            RemoteTaskFailed: the provider reported an error for the task.
            TransportError / ProviderError / AuthenticationFailed: HTTP failures.
        """
        handle = TaskHandle.new(request.task_uuid)
        task_uuid = handle.task_uuid

        cached = self._completed.get(task_uuid)
        if cached is not None:
            logger.info("Video task %s already completed, returning cached result", task_uuid)
            return cached
        if task_uuid in self._active:
            logger.info("Video task %s is already being polled", task_uuid)
            return Pending(task_uuid=task_uuid)

        model = MODEL_REGISTRY.resolve_video_model(request.model)
        resolution = resolve_video_resolution(request, model)
        task = build_video_task(request, task_uuid, resolution)

        self._active.add(task_uuid)
        try:
            logger.info(
                "Submitting video task %s (model=%s, %s)",
                task_uuid, model, resolution or "frame-guided",
            )
            response = await client.post_tasks([task])
            item = find_task_item(response, task_uuid)
            if item is not None:
                error = item_error_message(item)
                if error:
                    raise RemoteTaskFailed(error, details=item)

            return await self._poll(
                client,
                task_uuid,
                started=time.monotonic(),
                defaults={
                    "model": task["model"],
                    "duration": task["duration"],
                    "fps": task["fps"],
                },
            )
        finally:
            self._active.discard(task_uuid)

    async def resume_polling(self, client: RunwareClient, task_uuid: str) -> Completed | Pending:
        """Poll an already-submitted task without resubmitting it."""
        cached = self._completed.get(task_uuid)
        if cached is not None:
            logger.info("Video task %s already completed, returning cached result", task_uuid)
            return cached
        if task_uuid in self._active:
            logger.info("Video task %s is already being polled", task_uuid)
            return Pending(task_uuid=task_uuid)

        self._active.add(task_uuid)
        try:
            return await self._poll(client, task_uuid, started=time.monotonic())
        finally:
            self._active.discard(task_uuid)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _poll(
        self,
        client: RunwareClient,
        task_uuid: str,
        *,
        started: float,
        defaults: dict[str, Any] | None = None,
    ) -> Completed | Pending:
        for attempt in range(1, self.max_polls + 1):
            response = await client.post_tasks(build_poll_task(task_uuid))
            item = find_task_item(response, task_uuid)

            if item is None:
                logger.info(
                    "Poll %d/%d for %s: no matching item", attempt, self.max_polls, task_uuid,
                )
            else:
                error = item_error_message(item)
                if error:
                    logger.warning("Video task %s failed: %s", task_uuid, error)
                    raise RemoteTaskFailed(error, details=item)

                status = normalize_status(item)
                logger.info(
                    "Poll %d/%d for %s: %s", attempt, self.max_polls, task_uuid, status.value,
                )
                if status is TaskStatus.COMPLETED:
                    outcome = self._completed_outcome(item, task_uuid, started, defaults or {})
                    self._remember(outcome)
                    return outcome

            await self._sleep(self.poll_interval)

        logger.info(
            "Video task %s still pending after %d polls", task_uuid, self.max_polls,
        )
        return Pending(task_uuid=task_uuid)

    def _completed_outcome(
        self,
        item: dict[str, Any],
        task_uuid: str,
        started: float,
        defaults: dict[str, Any],
    ) -> Completed:
        return Completed(
            task_uuid=task_uuid,
            media_url=extract_video_url(item),
            cost=item.get("cost"),
            seed=item.get("seed"),
            model=item.get("model") or defaults.get("model"),
            duration=item.get("duration") or defaults.get("duration"),
            fps=item.get("fps") or defaults.get("fps"),
            elapsed_seconds=round(time.monotonic() - started, 3),
        )

    def _remember(self, outcome: Completed) -> None:
        self._completed[outcome.task_uuid] = outcome
        self._completed.move_to_end(outcome.task_uuid)
        while len(self._completed) > COMPLETED_CACHE_SIZE:
            self._completed.popitem(last=False)


# Module-level singleton so dedup and caching span requests
_video_poller: VideoTaskPoller | None = None


def get_video_poller() -> VideoTaskPoller:
    global _video_poller
    if _video_poller is None:
        _video_poller = VideoTaskPoller()
    return _video_poller


def reset_video_poller() -> None:
    """Drop the singleton (settings change, tests)."""
    global _video_poller
    _video_poller = None
