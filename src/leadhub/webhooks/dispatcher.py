"""Fan-out of lead events to active webhooks.

The dispatcher is the only entry point the rest of the application uses.
``dispatch`` returns immediately; delivery chains run as background tasks
and their failures never reach the caller.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from leadhub.config import DEFAULT_USER_AGENT
from leadhub.exceptions import ConfigurationError
from leadhub.models import WebhookPayload

from .accounting import DeliveryAccounting
from .delivery import DeliveryAttempt
from .projection import build_payload_data
from .retry import RetryScheduler

if TYPE_CHECKING:
    from collections.abc import Coroutine

    from leadhub.config import Settings
    from leadhub.models import DeliveryLog, LeadEvent, WebhookConfig
    from leadhub.storage import DeliveryLogStore, WebhookStore

logger = logging.getLogger(__name__)


class WebhookDispatcher:
    """Dispatches lead events to every active webhook.

    Handles:
    - Snapshotting the active webhooks when an event arrives
    - Projecting the lead's attributes per webhook
    - Running one independent delivery chain per webhook
    - Tracking background work so shutdown can drain or cancel it

    Example:
        ```python
        dispatcher = WebhookDispatcher.from_settings(storage, settings)

        # Fire and forget from a request handler
        dispatcher.dispatch(lead.to_event())

        # Before exit
        await dispatcher.shutdown()
        ```
    """

    def __init__(
        self,
        webhook_store: WebhookStore,
        log_store: DeliveryLogStore,
        max_attempts: int = 3,
        timeout_seconds: float = 10.0,
        retry_base_seconds: float = 1.0,
        user_agent: str = DEFAULT_USER_AGENT,
        excerpt_chars: int = 500,
        max_concurrent: int = 50,
    ) -> None:
        """Initialize the webhook dispatcher.

        Args:
            webhook_store: Source of active webhooks and counter sink.
            log_store: Sink for delivery log rows.
            max_attempts: Attempt ceiling per delivery chain.
            timeout_seconds: HTTP request timeout per attempt.
            retry_base_seconds: Base of the exponential backoff.
            user_agent: User-Agent header for deliveries.
            excerpt_chars: Response characters kept in logs.
            max_concurrent: Maximum concurrent POSTs.
        """
        if max_attempts < 1:
            raise ConfigurationError("max_attempts must be >= 1")

        self._webhook_store = webhook_store
        self._max_attempts = max_attempts
        self.accounting = DeliveryAccounting(webhook_store, log_store)
        self.scheduler = RetryScheduler(base_delay_seconds=retry_base_seconds)
        self.delivery = DeliveryAttempt(
            self.accounting,
            self.scheduler,
            timeout_seconds=timeout_seconds,
            user_agent=user_agent,
            excerpt_chars=excerpt_chars,
            max_concurrent=max_concurrent,
        )
        self._tasks: set[asyncio.Task[Any]] = set()
        self._closed = False

    @classmethod
    def from_settings(
        cls,
        storage: Any,
        settings: Settings,
    ) -> WebhookDispatcher:
        """Build a dispatcher over a store implementing both webhook protocols."""
        return cls(
            webhook_store=storage,
            log_store=storage,
            max_attempts=settings.webhook_max_attempts,
            timeout_seconds=settings.webhook_timeout_seconds,
            retry_base_seconds=settings.webhook_retry_base_seconds,
            user_agent=settings.webhook_user_agent,
            excerpt_chars=settings.webhook_response_excerpt_chars,
            max_concurrent=settings.webhook_max_concurrent,
        )

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    @property
    def pending_count(self) -> int:
        """Background fan-outs plus scheduled retries still running."""
        return len(self._tasks) + self.scheduler.pending_count

    def dispatch(self, event: LeadEvent) -> None:
        """Start delivering ``event`` to all active webhooks.

        Returns as soon as the work is scheduled. Never raises: with no
        running event loop, or after shutdown, the event is logged and
        dropped.
        """
        self._spawn(self._run_fan_out(event), f"webhook-dispatch:{event.lead_id}", event.lead_id)

    def dispatch_to(self, webhook: WebhookConfig, event: LeadEvent) -> None:
        """Start one fresh delivery chain for a single webhook.

        Used for manual redelivery; the webhook's is_active flag is not
        consulted.
        """
        self._spawn(
            self._run_chain(webhook, event),
            f"webhook-redeliver:{webhook.id}:{event.lead_id}",
            event.lead_id,
        )

    async def fan_out(self, event: LeadEvent) -> list[DeliveryLog]:
        """Deliver ``event`` to every active webhook and wait for first attempts.

        Chains run concurrently; one webhook's failure or slowness does not
        affect another's attempt. Retries continue in the background.

        Returns:
            The attempt-1 log row of every chain that got one.
        """
        webhooks = await self._webhook_store.list_active_webhooks()
        if not webhooks:
            logger.debug("No active webhooks for lead %s", event.lead_id)
            return []

        dispatched_at = datetime.now(UTC)
        logger.info("Dispatching lead %s to %d webhooks", event.lead_id, len(webhooks))

        results = await asyncio.gather(
            *(self.deliver(webhook, event, dispatched_at) for webhook in webhooks),
            return_exceptions=True,
        )

        logs: list[DeliveryLog] = []
        for webhook, result in zip(webhooks, results, strict=True):
            if isinstance(result, BaseException):
                logger.error("Webhook %s delivery failed: %s", webhook.id, result)
            else:
                logs.append(result)
        return logs

    async def deliver(
        self,
        webhook: WebhookConfig,
        event: LeadEvent,
        dispatched_at: datetime | None = None,
    ) -> DeliveryLog:
        """Run attempt 1 of a new chain for one webhook.

        The payload is built once here and reused unchanged by every retry.
        """
        payload = WebhookPayload(
            event=event.event,
            timestamp=dispatched_at or datetime.now(UTC),
            data=build_payload_data(event.attributes, webhook, lead_id=event.lead_id),
        )
        return await self.delivery.attempt(webhook, payload, event.lead_id, 1, self._max_attempts)

    async def drain(self) -> None:
        """Wait until every fan-out and scheduled retry has finished."""
        while self._tasks or self.scheduler.pending_count:
            pending = [*self._tasks, *self.scheduler.pending()]
            await asyncio.gather(*pending, return_exceptions=True)

    async def shutdown(self, cancel_pending: bool = True) -> None:
        """Stop accepting events and settle background work.

        Args:
            cancel_pending: Cancel scheduled retries instead of waiting out
                their backoff. In-flight attempts are always awaited.
        """
        self._closed = True
        # In-flight attempts may schedule new retries while we wait
        while self._tasks or self.scheduler.pending_count:
            if cancel_pending:
                self.scheduler.cancel_all()
            pending = [*self._tasks, *self.scheduler.pending()]
            await asyncio.gather(*pending, return_exceptions=True)
        logger.info("Webhook dispatcher stopped")

    def _spawn(self, coro: Coroutine[Any, Any, Any], name: str, lead_id: str) -> None:
        if self._closed:
            coro.close()
            logger.warning("Dispatcher is shut down, dropping webhook work for lead %s", lead_id)
            return
        try:
            task = asyncio.get_running_loop().create_task(coro, name=name)
        except RuntimeError:
            coro.close()
            logger.error("No running event loop, dropping webhook work for lead %s", lead_id)
            return
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_fan_out(self, event: LeadEvent) -> None:
        try:
            await self.fan_out(event)
        except Exception as e:
            logger.exception("Webhook dispatch for lead %s failed: %s", event.lead_id, e)

    async def _run_chain(self, webhook: WebhookConfig, event: LeadEvent) -> None:
        try:
            await self.deliver(webhook, event)
        except Exception as e:
            logger.exception(
                "Webhook %s redelivery for lead %s failed: %s", webhook.id, event.lead_id, e
            )


__all__ = ["WebhookDispatcher"]
