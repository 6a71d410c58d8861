"""Delivery log storage for LeadHub.

Delivery logs are append-only: one immutable row per webhook attempt.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from qdrant_client import models

    from leadhub.models import DeliveryLog


class DeliveryLogMixin:
    """Mixin providing delivery log operations for LeadHubStorage."""

    _upsert: Any
    _scroll: Any
    _match: Any
    _model_to_payload: Any
    _payload_to_model: Any

    async def append_log(self, log: DeliveryLog) -> str:
        """Insert one delivery log row.

        Args:
            log: DeliveryLog to append.

        Returns:
            The log ID.
        """
        await self._upsert("webhook_logs", log.id, self._model_to_payload(log))
        return log.id

    async def list_recent_logs(self, limit: int = 100) -> list[DeliveryLog]:
        """Most recent delivery logs across all webhooks, newest first."""
        logs = await self._load_logs([])
        logs.reverse()
        return logs[:limit]

    async def list_logs_for(
        self,
        webhook_id: str | None = None,
        lead_id: str | None = None,
    ) -> list[DeliveryLog]:
        """Logs for a webhook and/or lead, oldest first.

        With both IDs given this is one delivery chain (or several, if the
        lead was redelivered), in attempt order.
        """
        conditions: list[models.Condition] = []
        if webhook_id is not None:
            conditions.append(self._match("webhook_id", webhook_id))
        if lead_id is not None:
            conditions.append(self._match("lead_id", lead_id))
        return await self._load_logs(conditions)

    async def _load_logs(self, conditions: list[models.Condition]) -> list[DeliveryLog]:
        from leadhub.models import DeliveryLog

        payloads = await self._scroll("webhook_logs", conditions)
        logs: list[DeliveryLog] = [self._payload_to_model(p, DeliveryLog) for p in payloads]
        logs.sort(key=lambda log: (log.created_at, log.attempt))
        return logs
