"""Webhook storage operations for LeadHub.

Provides methods to store, retrieve, and manage webhook configurations,
including the success/failure counters updated by delivery accounting.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from leadhub.models import WebhookConfig

logger = logging.getLogger(__name__)

# Fields that configuration updates may change; counters are excluded
UPDATABLE_FIELDS = frozenset({"name", "url", "is_active", "send_fields", "custom_fields"})


class WebhookMixin:
    """Mixin providing webhook operations for LeadHubStorage.

    Every read-modify-write on a webhook record runs under that webhook's
    lock, so concurrent counter increments and configuration updates never
    lose each other's changes.

    This mixin expects the following attributes/methods from the base class:
    - _upsert / _retrieve / _scroll / _delete / _match
    - _model_to_payload / _payload_to_model
    - _webhook_lock(webhook_id) -> asyncio.Lock
    - _webhook_locks: dict[str, asyncio.Lock]
    """

    _upsert: Any
    _retrieve: Any
    _scroll: Any
    _delete: Any
    _match: Any
    _model_to_payload: Any
    _payload_to_model: Any
    _webhook_lock: Any
    _webhook_locks: dict[str, asyncio.Lock]

    async def store_webhook(self, webhook: WebhookConfig) -> str:
        """Store a webhook configuration.

        Args:
            webhook: WebhookConfig to store.

        Returns:
            The webhook ID.
        """
        await self._put_webhook(webhook)
        return webhook.id

    async def get_webhook(self, webhook_id: str) -> WebhookConfig | None:
        """Get a webhook by ID.

        Returns:
            WebhookConfig or None if not found.
        """
        from leadhub.models import WebhookConfig

        payload = await self._retrieve("webhooks", webhook_id)
        if payload is None:
            return None
        webhook: WebhookConfig = self._payload_to_model(payload, WebhookConfig)
        return webhook

    async def list_webhooks(self, active_only: bool = False) -> list[WebhookConfig]:
        """List webhooks, newest first.

        Args:
            active_only: If True, only return active webhooks.
        """
        from leadhub.models import WebhookConfig

        conditions = [self._match("is_active", True)] if active_only else []
        payloads = await self._scroll("webhooks", conditions)

        webhooks: list[WebhookConfig] = [
            self._payload_to_model(p, WebhookConfig) for p in payloads
        ]
        webhooks.sort(key=lambda w: w.created_at, reverse=True)
        return webhooks

    async def list_active_webhooks(self) -> list[WebhookConfig]:
        """Point-in-time snapshot of the webhooks that receive events."""
        return await self.list_webhooks(active_only=True)

    async def update_webhook(self, webhook_id: str, **updates: Any) -> WebhookConfig | None:
        """Update a webhook configuration.

        Only name, url, is_active, send_fields and custom_fields can be
        changed here. Values are validated against WebhookConfig, so an
        invalid URL raises pydantic.ValidationError.

        Args:
            webhook_id: ID of the webhook to update.
            **updates: Fields to update.

        Returns:
            Updated WebhookConfig or None if not found.
        """
        from leadhub.models import WebhookConfig

        unknown = set(updates) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update webhook fields: {', '.join(sorted(unknown))}")

        async with self._webhook_lock(webhook_id):
            webhook = await self.get_webhook(webhook_id)
            if webhook is None:
                self._webhook_locks.pop(webhook_id, None)
                return None

            data = webhook.model_dump()
            data.update(updates)
            data["updated_at"] = datetime.now(UTC)
            updated = WebhookConfig.model_validate(data)

            await self._put_webhook(updated)
            return updated

    async def delete_webhook(self, webhook_id: str) -> bool:
        """Delete a webhook configuration.

        Delivery logs recorded for the webhook are kept.

        Returns:
            True if deleted, False if not found.
        """
        async with self._webhook_lock(webhook_id):
            if await self._retrieve("webhooks", webhook_id) is None:
                return False
            await self._delete("webhooks", webhook_id)

        self._webhook_locks.pop(webhook_id, None)
        return True

    async def increment_success(
        self, webhook_id: str, at: datetime | None = None
    ) -> WebhookConfig | None:
        """Count a successful attempt and stamp last_triggered_at.

        Returns:
            Updated WebhookConfig or None if the webhook no longer exists.
        """
        triggered_at = at or datetime.now(UTC)

        def apply(webhook: WebhookConfig) -> dict[str, Any]:
            return {
                "success_count": webhook.success_count + 1,
                "last_triggered_at": triggered_at,
            }

        return await self._mutate_counters(webhook_id, apply)

    async def increment_failure(self, webhook_id: str) -> WebhookConfig | None:
        """Count a failed attempt. last_triggered_at is left untouched.

        Returns:
            Updated WebhookConfig or None if the webhook no longer exists.
        """
        return await self._mutate_counters(
            webhook_id, lambda webhook: {"failure_count": webhook.failure_count + 1}
        )

    async def reset_counters(self, webhook_id: str) -> WebhookConfig | None:
        """Zero both counters. This is the only way counters go down.

        Returns:
            Updated WebhookConfig or None if not found.
        """
        return await self._mutate_counters(
            webhook_id, lambda webhook: {"success_count": 0, "failure_count": 0}
        )

    async def _mutate_counters(self, webhook_id: str, apply: Any) -> WebhookConfig | None:
        async with self._webhook_lock(webhook_id):
            webhook = await self.get_webhook(webhook_id)
            if webhook is None:
                # Deleted webhook; don't leave a lock behind for it
                self._webhook_locks.pop(webhook_id, None)
                return None

            updated = webhook.model_copy(update=apply(webhook))
            logger.debug("Updated counters for webhook %s", webhook_id)
            await self._put_webhook(updated)
            return updated

    async def _put_webhook(self, webhook: WebhookConfig) -> None:
        payload = self._model_to_payload(webhook)
        await self._upsert("webhooks", webhook.id, payload)
