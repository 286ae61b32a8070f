"""Runware REST client — request/response transport for video and edit jobs.

All task arrays are POSTed to a single endpoint; the reply is either a bare
array of task items or ``{"data": [...]}``. Non-2xx replies are mapped onto
the error taxonomy here so callers only ever see ``GenerationError``.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from genstudio.config import get_settings, mask_key
from genstudio.errors import TransportError
from genstudio.services.outcomes import error_from_http_response

logger = logging.getLogger(__name__)

# Module-level httpx client for connection reuse (lazy init)
_http_client: httpx.AsyncClient | None = None


def get_http_client() -> httpx.AsyncClient:
    """Return a module-level httpx.AsyncClient, creating it on first use."""
    global _http_client
    if _http_client is None or _http_client.is_closed:
        _http_client = httpx.AsyncClient(timeout=get_settings().HTTP_TIMEOUT)
    return _http_client


async def close_http_client() -> None:
    global _http_client
    if _http_client is not None and not _http_client.is_closed:
        await _http_client.aclose()
    _http_client = None


def _parse_body(raw: str) -> tuple[Any, bool]:
    if not raw:
        return None, True
    try:
        return json.loads(raw), True
    except ValueError:
        return raw, False


class RunwareClient:
    """Thin async wrapper around the Runware task endpoint."""

    def __init__(
        self,
        api_key: str,
        base_url: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url or get_settings().RUNWARE_API_URL
        self._client = http_client

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client or get_http_client()

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "X-API-Key": self.api_key,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def post_tasks(self, tasks: list[dict[str, Any]]) -> Any:
        """POST a task array and return the decoded reply."""
        task_types = ",".join(str(t.get("taskType")) for t in tasks)
        logger.info(
            "POST %s tasks=%s key=%s", self.base_url, task_types, mask_key(self.api_key),
        )

        try:
            response = await self.client.post(self.base_url, json=tasks, headers=self._headers())
        except httpx.TimeoutException as e:
            raise TransportError(f"Runware request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"Runware request failed: {e}") from e

        body, parsed = _parse_body(response.text)
        logger.debug("Runware response %d: %s", response.status_code, response.text[:500])

        if response.is_error:
            raise error_from_http_response(response.status_code, body, parsed=parsed)
        if not parsed:
            raise TransportError(
                "Runware returned an unparsable response",
                http_status=502,
                details=body[:500],
            )
        return body
