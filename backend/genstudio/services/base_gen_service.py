from __future__ import annotations
"""Base generation service — the request boundary plus usage metrics.

Every public generation call goes through ``BaseGenService.execute``:
whatever ``_generate`` raises is converted into a ``Failed`` outcome, so
callers only ever receive ``Completed``, ``Pending`` or ``Failed``.
"""

import logging
import time
from abc import ABC, abstractmethod
from collections import Counter
from typing import Any

from genstudio.schemas import Completed, Failed, Pending
from genstudio.services.outcomes import Outcome, failure_from_exception

logger = logging.getLogger(__name__)


class BaseGenService(ABC):
    """Abstract base class for the image, edit and video services.

    Provides:
    - Exception → Failed conversion at one place
    - Call, cost, latency and error-kind counters
    """

    service_name: str = "unknown"

    def __init__(self) -> None:
        self._total_calls = 0
        self._total_cost = 0.0
        self._total_latency_ms = 0
        self._outcomes: Counter[str] = Counter()
        self._error_kinds: Counter[str] = Counter()

    async def execute(self, *, task_uuid: str | None = None, **kwargs: Any) -> Outcome:
        """Run ``_generate`` and never raise."""
        self._total_calls += 1
        start = time.monotonic()

        try:
            outcome = await self._generate(**kwargs)
        except Exception as e:
            outcome = failure_from_exception(e, task_uuid)

        latency = int((time.monotonic() - start) * 1000)
        self._total_latency_ms += latency
        self._outcomes[outcome.status] += 1

        if isinstance(outcome, Failed):
            self._error_kinds[outcome.error_kind] += 1
            logger.warning(
                "%s failed in %dms: [%s] %s",
                self.service_name, latency, outcome.error_kind, outcome.message,
            )
        elif isinstance(outcome, Completed):
            if outcome.cost:
                self._total_cost += outcome.cost
            logger.info(
                "%s completed task %s in %dms", self.service_name, outcome.task_uuid, latency,
            )
        elif isinstance(outcome, Pending):
            logger.info("%s task %s still pending", self.service_name, outcome.task_uuid)
        return outcome

    @abstractmethod
    async def _generate(self, **kwargs: Any) -> Outcome:
        """Subclass implements the actual generation; may raise."""
        ...

    def get_metrics(self) -> dict[str, Any]:
        """Return usage statistics for this service."""
        failures = self._outcomes.get("failed", 0)
        return {
            "service": self.service_name,
            "total_calls": self._total_calls,
            "completed": self._outcomes.get("completed", 0),
            "pending": self._outcomes.get("pending", 0),
            "failed": failures,
            "error_kinds": dict(self._error_kinds),
            "total_cost": round(self._total_cost, 4),
            "error_rate": round(failures / max(self._total_calls, 1), 3),
            "avg_latency_ms": round(self._total_latency_ms / max(self._total_calls, 1)),
        }
