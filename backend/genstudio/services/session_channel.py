"""Authenticated websocket session for synchronous image jobs.

One connection per job:

    Disconnected → Connecting → Authenticating → Ready → AwaitingResult → Closed

A single reader task consumes every inbound message and resolves the
matching entry in ``_pending`` (task UUID → Future). Messages for other
task UUIDs are ignored, since the socket may carry unrelated traffic.
The connection is always closed afterwards, whatever the outcome.
"""

from __future__ import annotations

import asyncio
import enum
import json
import logging
from typing import Any, Awaitable, Callable

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from genstudio.config import get_settings, mask_key
from genstudio.errors import (
    AuthenticationFailed,
    GenerationError,
    GenerationTimeout,
    ProviderError,
    RemoteTaskFailed,
    TransportError,
)
from genstudio.services.outcomes import item_error_message, task_items, top_level_error
from genstudio.services.payloads import build_auth_message

logger = logging.getLogger(__name__)

Connector = Callable[..., Awaitable[Any]]

# Key under which the authentication acknowledgement is awaited
_AUTH_KEY = "__authentication__"


class ChannelState(str, enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AUTHENTICATING = "authenticating"
    READY = "ready"
    AWAITING_RESULT = "awaiting_result"
    CLOSED = "closed"


class SessionChannel:
    """A single-use authenticated Runware websocket session."""

    def __init__(
        self,
        api_key: str,
        url: str | None = None,
        *,
        auth_timeout: float | None = None,
        task_timeout: float | None = None,
        connect: Connector | None = None,
    ) -> None:
        settings = get_settings()
        self.api_key = api_key
        self.url = url or settings.RUNWARE_WS_URL
        self.auth_timeout = auth_timeout if auth_timeout is not None else settings.AUTH_TIMEOUT
        self.task_timeout = task_timeout if task_timeout is not None else settings.IMAGE_TIMEOUT
        self._connect = connect or websockets.connect

        self.state = ChannelState.DISCONNECTED
        self.session_uuid: str | None = None
        self._ws: Any = None
        self._reader: asyncio.Task | None = None
        self._pending: dict[str, asyncio.Future] = {}

    async def __aenter__(self) -> SessionChannel:
        try:
            await self.open()
        except BaseException:
            await self.close()
            raise
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def run(self, task: dict[str, Any]) -> dict[str, Any]:
        """Open, authenticate, run exactly one task, and always close."""
        try:
            await self.open()
            return await self.send_task(task)
        finally:
            await self.close()

    async def open(self) -> None:
        """Connect and authenticate. Leaves the channel in READY."""
        self.state = ChannelState.CONNECTING
        logger.info("Connecting to %s", self.url)
        try:
            self._ws = await self._connect(self.url, open_timeout=self.auth_timeout)
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            raise TransportError(f"WebSocket connection failed: {e}") from e

        self.state = ChannelState.AUTHENTICATING
        auth_future = self._register(_AUTH_KEY)
        self._reader = asyncio.create_task(self._read_loop())

        logger.info("Authenticating session (key=%s)", mask_key(self.api_key))
        try:
            await self._send(build_auth_message(self.api_key, self.session_uuid))
            ack = await asyncio.wait_for(auth_future, self.auth_timeout)
        except asyncio.TimeoutError:
            raise AuthenticationFailed(
                f"Authentication timeout after {self.auth_timeout:g}s"
            ) from None
        finally:
            self._pending.pop(_AUTH_KEY, None)

        session_uuid = ack.get("connectionSessionUUID")
        if not session_uuid:
            raise AuthenticationFailed(
                "Authentication acknowledgement carried no session id", details=ack,
            )
        self.session_uuid = session_uuid
        self.state = ChannelState.READY
        logger.info("Authenticated, session=%s", session_uuid)

    async def send_task(self, task: dict[str, Any]) -> dict[str, Any]:
        """Send one task and wait for the correlated result item."""
        if self.state is not ChannelState.READY:
            raise TransportError(f"Channel not ready for a task (state={self.state.value})")

        task_uuid = task["taskUUID"]
        future = self._register(task_uuid)
        self.state = ChannelState.AWAITING_RESULT
        logger.info("Sending %s task %s", task.get("taskType"), task_uuid)

        try:
            await self._send([task])
            return await asyncio.wait_for(future, self.task_timeout)
        except asyncio.TimeoutError:
            raise GenerationTimeout(
                f"Image generation timeout after {self.task_timeout:g}s"
            ) from None
        finally:
            self._pending.pop(task_uuid, None)

    async def close(self) -> None:
        if self.state is ChannelState.CLOSED:
            return
        self.state = ChannelState.CLOSED

        if self._reader is not None:
            self._reader.cancel()
            try:
                await self._reader
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.warning("Session reader failed: %s", e)
            self._reader = None

        if self._ws is not None:
            try:
                await self._ws.close()
            except (OSError, WebSocketException) as e:
                logger.debug("Error while closing websocket: %s", e)
            self._ws = None

        for future in self._pending.values():
            if not future.done():
                future.cancel()
        self._pending.clear()
        logger.debug("Session channel closed")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _register(self, key: str) -> asyncio.Future:
        future = asyncio.get_running_loop().create_future()
        self._pending[key] = future
        return future

    async def _send(self, payload: list[dict[str, Any]]) -> None:
        try:
            await self._ws.send(json.dumps(payload))
        except (ConnectionClosed, OSError) as e:
            raise self._closure_error(f"Connection closed while sending: {e}") from e

    def _closure_error(self, message: str, details: Any = None) -> GenerationError:
        if self.state is ChannelState.AUTHENTICATING:
            return AuthenticationFailed(message, details=details)
        return TransportError(message, details=details)

    def _fail_pending(self, exc: GenerationError) -> None:
        for future in self._pending.values():
            if not future.done():
                future.set_exception(exc)

    async def _read_loop(self) -> None:
        try:
            while True:
                raw = await self._ws.recv()
                self._dispatch(raw)
        except ConnectionClosed:
            if self.state is not ChannelState.CLOSED:
                logger.warning("WebSocket closed unexpectedly (state=%s)", self.state.value)
                self._fail_pending(self._closure_error("Connection closed unexpectedly"))
        except OSError as e:
            logger.warning("WebSocket transport error: %s", e)
            self._fail_pending(self._closure_error(f"Connection error: {e}"))

    def _dispatch(self, raw: str | bytes) -> None:
        try:
            message = json.loads(raw)
        except ValueError:
            logger.warning("Unparsable message on session: %r", raw[:200])
            what = "authentication" if self.state is ChannelState.AUTHENTICATING else "generation"
            self._fail_pending(self._closure_error(f"Failed to parse {what} response"))
            return

        matched = False

        for item in task_items(message):
            if item.get("taskType") == "authentication" and _AUTH_KEY in self._pending:
                self._resolve(_AUTH_KEY, item)
                matched = True
                continue
            future = self._pending_for(item)
            if future is None or future.done():
                logger.debug("Ignoring message for task %s", item.get("taskUUID"))
                continue
            matched = True
            error = item_error_message(item)
            if error:
                future.set_exception(RemoteTaskFailed(error, details=item))
            else:
                future.set_result(item)

        errors = message.get("errors") if isinstance(message, dict) else None
        for item in errors if isinstance(errors, list) else []:
            if not isinstance(item, dict):
                continue
            future = self._pending_for(item)
            if future is None or future.done():
                continue
            matched = True
            error = item_error_message(item) or item.get("message") or "Generation failed"
            future.set_exception(RemoteTaskFailed(str(error), details=item))

        if matched:
            return

        error = top_level_error(message)
        if error:
            logger.error("Provider error on session (state=%s): %s", self.state.value, error)
            if self.state is ChannelState.AUTHENTICATING:
                self._fail_pending(AuthenticationFailed(error, details=message))
            else:
                self._fail_pending(ProviderError(error, details=message))

    def _pending_for(self, item: dict[str, Any]) -> asyncio.Future | None:
        task_uuid = item.get("taskUUID")
        if not isinstance(task_uuid, str):
            return None
        return self._pending.get(task_uuid)

    def _resolve(self, key: str, item: dict[str, Any]) -> None:
        future = self._pending.get(key)
        if future is not None and not future.done():
            future.set_result(item)


async def run_image_task(api_key: str, task: dict[str, Any], **kwargs: Any) -> dict[str, Any]:
    """Run one image task over a fresh session channel."""
    return await SessionChannel(api_key, **kwargs).run(task)
