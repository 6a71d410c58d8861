"""Delivery accounting: webhook counters and the delivery log."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from leadhub.models import DeliveryLog
    from leadhub.storage import DeliveryLogStore, WebhookStore

logger = logging.getLogger(__name__)


class DeliveryAccounting:
    """Records the outcome of every delivery attempt.

    Counter increments are delegated to the WebhookStore, which applies
    them atomically per webhook. Log rows are only ever appended.

    Note:
        failure_count grows on every failed attempt, including attempts
        that were retried and later succeeded. It counts attempts, not
        leads that ultimately failed.
    """

    def __init__(self, webhook_store: WebhookStore, log_store: DeliveryLogStore) -> None:
        self._webhook_store = webhook_store
        self._log_store = log_store

    async def record_success(self, webhook_id: str) -> None:
        """Increment success_count and stamp last_triggered_at."""
        updated = await self._webhook_store.increment_success(webhook_id)
        if updated is None:
            logger.warning("Success not counted, webhook %s was deleted", webhook_id)

    async def record_failure(self, webhook_id: str) -> None:
        """Increment failure_count."""
        updated = await self._webhook_store.increment_failure(webhook_id)
        if updated is None:
            logger.warning("Failure not counted, webhook %s was deleted", webhook_id)

    async def append_log(self, log: DeliveryLog) -> str:
        """Append one immutable delivery log row."""
        return await self._log_store.append_log(log)
