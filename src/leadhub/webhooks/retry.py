"""In-process retry scheduling with exponential backoff.

Retries live only in memory: each one is an asyncio task that sleeps for
the backoff delay and then runs the next attempt. Pending retries are lost
when the process exits unless shutdown drains them first.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from leadhub.exceptions import ConfigurationError

if TYPE_CHECKING:
    from leadhub.models import DeliveryLog, WebhookConfig, WebhookPayload

logger = logging.getLogger(__name__)

# Runs one attempt: (webhook, payload, lead_id, attempt_number, max_attempts)
AttemptFn = Callable[["WebhookConfig", "WebhookPayload", str, int, int], Awaitable["DeliveryLog"]]


class RetryScheduler:
    """Schedules the next attempt of a failed delivery chain.

    The delay before attempt ``n`` is ``base_delay_seconds * 2 ** (n - 1)``,
    so with the default 1s base: 2s before attempt 2, 4s before attempt 3.

    Example:
        ```python
        scheduler = RetryScheduler(base_delay_seconds=1.0)
        scheduler.schedule_retry(webhook, payload, lead.id, 2, 3, delivery.attempt)

        # On shutdown
        scheduler.cancel_all()
        ```
    """

    def __init__(self, base_delay_seconds: float = 1.0) -> None:
        if base_delay_seconds < 0:
            raise ConfigurationError("Retry base delay must be >= 0")
        self._base_delay = base_delay_seconds
        self._pending: set[asyncio.Task[None]] = set()
        # Retries still in their backoff sleep; only these are cancellable
        self._waiting: set[asyncio.Task[None]] = set()

    @property
    def base_delay_seconds(self) -> float:
        return self._base_delay

    @property
    def pending_count(self) -> int:
        """Number of retries scheduled but not yet finished."""
        return len(self._pending)

    def pending(self) -> list[asyncio.Task[None]]:
        """Snapshot of the pending retry tasks."""
        return list(self._pending)

    def backoff_seconds(self, next_attempt: int) -> float:
        """Delay before ``next_attempt`` fires.

        Raises:
            ValueError: If next_attempt < 2 (attempt 1 is never a retry).
        """
        if next_attempt < 2:
            raise ValueError(f"Retries start at attempt 2, got {next_attempt}")
        return self._base_delay * (2 ** (next_attempt - 1))

    def next_retry_at(self, next_attempt: int, now: datetime | None = None) -> datetime:
        """Wall-clock time at which ``next_attempt`` is due."""
        start = now or datetime.now(UTC)
        return start + timedelta(seconds=self.backoff_seconds(next_attempt))

    def schedule_retry(
        self,
        webhook: WebhookConfig,
        payload: WebhookPayload,
        lead_id: str,
        next_attempt: int,
        max_attempts: int,
        attempt_fn: AttemptFn,
    ) -> asyncio.Task[None]:
        """Run ``attempt_fn`` for ``next_attempt`` after the backoff delay.

        The same payload is redelivered unchanged. Errors raised by the
        attempt are logged and never propagate.

        Returns:
            The scheduled task.
        """
        delay = self.backoff_seconds(next_attempt)
        task = asyncio.get_running_loop().create_task(
            self._fire(delay, webhook, payload, lead_id, next_attempt, max_attempts, attempt_fn),
            name=f"webhook-retry:{webhook.id}:{lead_id}:{next_attempt}",
        )
        self._pending.add(task)
        self._waiting.add(task)
        task.add_done_callback(self._pending.discard)
        task.add_done_callback(self._waiting.discard)

        logger.info(
            "Webhook %s retry for lead %s scheduled (attempt %d/%d in %.1fs)",
            webhook.id,
            lead_id,
            next_attempt,
            max_attempts,
            delay,
        )
        return task

    async def _fire(
        self,
        delay: float,
        webhook: WebhookConfig,
        payload: WebhookPayload,
        lead_id: str,
        next_attempt: int,
        max_attempts: int,
        attempt_fn: AttemptFn,
    ) -> None:
        await asyncio.sleep(delay)
        current = asyncio.current_task()
        if current is not None:
            self._waiting.discard(current)
        try:
            await attempt_fn(webhook, payload, lead_id, next_attempt, max_attempts)
        except Exception as e:
            logger.exception(
                "Webhook %s retry for lead %s crashed: %s", webhook.id, lead_id, e
            )

    def cancel_all(self) -> int:
        """Cancel every retry still waiting out its backoff.

        Attempts that already started run to completion so their log row
        is written.

        Returns:
            Number of retries cancelled.
        """
        tasks = [task for task in self._waiting if not task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            logger.warning("Cancelled %d pending webhook retries", len(tasks))
        return len(tasks)


__all__ = ["AttemptFn", "RetryScheduler"]
