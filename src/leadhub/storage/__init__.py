"""Storage backends for LeadHub.

This module provides the storage layer for persisting leads, webhook
configurations and delivery logs to Qdrant.

Example:
    ```python
    from leadhub.storage import LeadHubStorage

    async with LeadHubStorage() as storage:
        await storage.create_lead(lead)
        logs = await storage.list_recent_logs(limit=50)
    ```
"""

from .base import RECORD_KINDS
from .client import LeadHubStorage
from .protocols import DeliveryLogStore, LeadStore, WebhookStore

__all__ = [
    "RECORD_KINDS",
    "DeliveryLogStore",
    "LeadHubStorage",
    "LeadStore",
    "WebhookStore",
]
