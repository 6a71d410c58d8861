"""Qdrant storage client for LeadHub.

This module provides the main LeadHubStorage class that combines
all storage operations through mixins.

Example:
    ```python
    from leadhub.storage import LeadHubStorage

    async with LeadHubStorage() as storage:
        await storage.create_lead(lead)
        active = await storage.list_active_webhooks()
    ```
"""

from __future__ import annotations

from typing import Any

from .base import StorageBase
from .leads import LeadMixin
from .logs import DeliveryLogMixin
from .webhook import WebhookMixin


class LeadHubStorage(LeadMixin, WebhookMixin, DeliveryLogMixin, StorageBase):
    """Async Qdrant storage for leads, webhooks, and delivery logs.

    This class combines functionality from multiple mixins:
    - LeadMixin: create_lead, get_lead, update_lead, delete_lead, list_leads
    - WebhookMixin: store_webhook, list_active_webhooks, increment_success, etc.
    - DeliveryLogMixin: append_log, list_recent_logs, list_logs_for

    It satisfies the LeadStore, WebhookStore and DeliveryLogStore protocols.
    """

    async def __aenter__(self) -> LeadHubStorage:
        """Async context manager entry."""
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()
