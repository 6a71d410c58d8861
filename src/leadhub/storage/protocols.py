"""Store protocols consumed by the service and the webhook subsystem.

LeadHubStorage implements all three. The webhook subsystem depends only on
WebhookStore and DeliveryLogStore, so tests can hand it lightweight fakes.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from leadhub.models import DeliveryLog, Lead, WebhookConfig


class LeadStore(Protocol):
    """Protocol for lead persistence."""

    async def create_lead(self, lead: Lead) -> Lead: ...

    async def get_lead(self, lead_id: str) -> Lead | None: ...

    async def update_lead(self, lead_id: str, **updates: Any) -> Lead | None: ...

    async def delete_lead(self, lead_id: str) -> bool: ...

    async def list_leads(
        self,
        status: str | None = None,
        priority: str | None = None,
        source: str | None = None,
        search: str | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[Lead], int]: ...

    async def all_leads(self) -> list[Lead]: ...


class WebhookStore(Protocol):
    """Protocol for webhook configuration persistence.

    increment_success, increment_failure and reset_counters must be atomic
    per webhook: concurrent calls may not lose updates.
    """

    async def store_webhook(self, webhook: WebhookConfig) -> str: ...

    async def get_webhook(self, webhook_id: str) -> WebhookConfig | None: ...

    async def list_webhooks(self, active_only: bool = False) -> list[WebhookConfig]: ...

    async def list_active_webhooks(self) -> list[WebhookConfig]: ...

    async def update_webhook(self, webhook_id: str, **updates: Any) -> WebhookConfig | None: ...

    async def delete_webhook(self, webhook_id: str) -> bool: ...

    async def increment_success(
        self, webhook_id: str, at: datetime | None = None
    ) -> WebhookConfig | None: ...

    async def increment_failure(self, webhook_id: str) -> WebhookConfig | None: ...

    async def reset_counters(self, webhook_id: str) -> WebhookConfig | None: ...


class DeliveryLogStore(Protocol):
    """Protocol for append-only delivery log persistence."""

    async def append_log(self, log: DeliveryLog) -> str: ...

    async def list_recent_logs(self, limit: int = 100) -> list[DeliveryLog]: ...

    async def list_logs_for(
        self,
        webhook_id: str | None = None,
        lead_id: str | None = None,
    ) -> list[DeliveryLog]: ...
