"""Core LeadHub service layer.

This module provides the LeadHubService that combines storage and the
webhook dispatcher into the operations exposed by the API.

Example:
    ```python
    from leadhub.service import LeadHubService

    async with LeadHubService.create() as hub:
        webhook = await hub.create_webhook(name="CRM", url="https://crm.example.com/hook")
        lead = await hub.create_lead(phone="+55 11 99999-9999", source="landing-page")
        # Delivery to the CRM runs in the background
        await hub.dispatcher.drain()
        logs = await hub.list_delivery_logs()
    ```
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError as PydanticValidationError

from leadhub.config import Settings
from leadhub.exceptions import NotFoundError, StorageError, ValidationError
from leadhub.models import ALL_LEAD_STATUSES, DashboardStats, Lead, WebhookConfig, WebhookField
from leadhub.storage import LeadHubStorage
from leadhub.webhooks import WebhookDispatcher

if TYPE_CHECKING:
    from collections.abc import Sequence

    from leadhub.models import DeliveryLog, JSONValue

RECENT_LEADS_LIMIT = 5


@dataclass
class LeadHubService:
    """High-level LeadHub service for leads and their webhooks.

    This service provides:
    - Lead intake and CRUD; every created lead is dispatched to webhooks
    - Webhook registration, updates, counter reset and manual redelivery
    - Delivery log queries and dashboard statistics

    Attributes:
        storage: Storage backend (Qdrant).
        settings: Configuration settings.
        dispatcher: Webhook dispatcher (built from settings if None).
    """

    storage: LeadHubStorage
    settings: Settings
    dispatcher: WebhookDispatcher = field(default=None)  # type: ignore[assignment]

    def __post_init__(self) -> None:
        """Build the dispatcher over storage when none is injected."""
        if self.dispatcher is None:
            self.dispatcher = WebhookDispatcher.from_settings(self.storage, self.settings)

    @classmethod
    def create(cls, settings: Settings | None = None) -> LeadHubService:
        """Create a LeadHubService with default dependencies.

        Args:
            settings: Optional settings. Uses defaults if None.

        Returns:
            Configured LeadHubService instance.
        """
        if settings is None:
            settings = Settings()

        return cls(
            storage=LeadHubStorage(
                url=settings.qdrant_url,
                api_key=settings.qdrant_api_key,
                prefix=settings.collection_prefix,
                max_scroll_limit=settings.storage_max_scroll_limit,
            ),
            settings=settings,
        )

    async def initialize(self) -> None:
        """Initialize the service (storage collections, etc.)."""
        try:
            await self.storage.initialize()
        except Exception as e:
            raise StorageError(f"Failed to initialize storage: {e}") from e

    async def close(self) -> None:
        """Stop webhook delivery, then release storage."""
        await self.dispatcher.shutdown(cancel_pending=True)
        await self.storage.close()

    async def __aenter__(self) -> LeadHubService:
        """Async context manager entry."""
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()

    # ------------------------------------------------------------------
    # Leads
    # ------------------------------------------------------------------

    async def create_lead(
        self,
        phone: str,
        source: str,
        name: str | None = None,
        email: str | None = None,
        company: str | None = None,
        message: str | None = None,
        status: str = "new",
        priority: str = "medium",
        tags: Sequence[str] | None = None,
        extra: dict[str, JSONValue] | None = None,
    ) -> Lead:
        """Capture a new lead and notify active webhooks.

        The lead is persisted first; webhook delivery is then started in
        the background and never delays or fails this call.

        Raises:
            ValidationError: If phone or source is missing, or a value is invalid.
        """
        if not phone or not phone.strip():
            raise ValidationError("phone", "Phone is required")
        if not source or not source.strip():
            raise ValidationError("source", "Source is required")

        try:
            lead = Lead(
                phone=phone.strip(),
                source=source.strip(),
                name=name,
                email=email,
                company=company,
                message=message,
                status=status,  # type: ignore[arg-type]
                priority=priority,  # type: ignore[arg-type]
                tags=list(tags or []),
                extra=dict(extra or {}),
            )
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e) from e

        await self.storage.create_lead(lead)
        self.dispatcher.dispatch(lead.to_event())
        return lead

    async def get_lead(self, lead_id: str) -> Lead:
        """Get a lead by ID.

        Raises:
            NotFoundError: If the lead does not exist.
        """
        lead = await self.storage.get_lead(lead_id)
        if lead is None:
            raise NotFoundError("lead", lead_id)
        return lead

    async def list_leads(
        self,
        status: str | None = None,
        priority: str | None = None,
        source: str | None = None,
        search: str | None = None,
        page: int = 1,
        limit: int | None = None,
    ) -> tuple[list[Lead], int]:
        """List leads newest first.

        Returns:
            Tuple of (leads on the page, total matching leads).
        """
        if limit is None:
            limit = self.settings.leads_default_page_size
        limit = max(1, min(limit, self.settings.leads_max_page_size))

        return await self.storage.list_leads(
            status=status,
            priority=priority,
            source=source,
            search=search,
            page=max(page, 1),
            limit=limit,
        )

    async def update_lead(self, lead_id: str, **updates: Any) -> Lead:
        """Update a lead. Updates never trigger webhooks.

        Raises:
            NotFoundError: If the lead does not exist.
            ValidationError: If an update value is invalid.
        """
        try:
            lead = await self.storage.update_lead(lead_id, **updates)
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e) from e

        if lead is None:
            raise NotFoundError("lead", lead_id)
        return lead

    async def delete_lead(self, lead_id: str) -> None:
        """Delete a lead. Its delivery logs are kept.

        Raises:
            NotFoundError: If the lead does not exist.
        """
        if not await self.storage.delete_lead(lead_id):
            raise NotFoundError("lead", lead_id)

    async def dashboard_stats(self) -> DashboardStats:
        """Aggregate counts over all leads."""
        leads = await self.storage.all_leads()

        by_status: dict[str, int] = dict.fromkeys(ALL_LEAD_STATUSES, 0)
        by_status.update(Counter(lead.status for lead in leads))

        return DashboardStats(
            total_leads=len(leads),
            new_leads=by_status["new"],
            converted_leads=by_status["converted"],
            leads_by_status=by_status,
            leads_by_source=dict(Counter(lead.source for lead in leads)),
            recent_leads=leads[:RECENT_LEADS_LIMIT],
        )

    # ------------------------------------------------------------------
    # Webhooks
    # ------------------------------------------------------------------

    async def create_webhook(
        self,
        name: str,
        url: str,
        is_active: bool = True,
        send_fields: Sequence[str] | None = None,
        custom_fields: Sequence[WebhookField | dict[str, Any]] | None = None,
    ) -> WebhookConfig:
        """Register a webhook.

        Raises:
            ValidationError: If name is empty or url is not an absolute
                http(s) URL.
        """
        if not name or not name.strip():
            raise ValidationError("name", "Name is required")
        if not url or not url.strip():
            raise ValidationError("url", "URL is required")

        try:
            webhook = WebhookConfig.model_validate(
                {
                    "name": name.strip(),
                    "url": url.strip(),
                    "is_active": is_active,
                    "send_fields": list(send_fields or []),
                    "custom_fields": list(custom_fields or []),
                }
            )
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e) from e

        await self.storage.store_webhook(webhook)
        return webhook

    async def get_webhook(self, webhook_id: str) -> WebhookConfig:
        """Get a webhook by ID.

        Raises:
            NotFoundError: If the webhook does not exist.
        """
        webhook = await self.storage.get_webhook(webhook_id)
        if webhook is None:
            raise NotFoundError("webhook", webhook_id)
        return webhook

    async def list_webhooks(self, active_only: bool = False) -> list[WebhookConfig]:
        """List webhooks, newest first."""
        return await self.storage.list_webhooks(active_only=active_only)

    async def update_webhook(self, webhook_id: str, **updates: Any) -> WebhookConfig:
        """Partially update a webhook's configuration.

        Counters cannot be changed here; see reset_webhook_counters.

        Raises:
            NotFoundError: If the webhook does not exist.
            ValidationError: If a field is unknown or a value is invalid.
        """
        if "name" in updates and not (updates["name"] or "").strip():
            raise ValidationError("name", "Name is required")

        try:
            webhook = await self.storage.update_webhook(webhook_id, **updates)
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e) from e
        except ValueError as e:
            raise ValidationError("body", str(e)) from e

        if webhook is None:
            raise NotFoundError("webhook", webhook_id)
        return webhook

    async def delete_webhook(self, webhook_id: str) -> None:
        """Delete a webhook. Its delivery logs are kept.

        Raises:
            NotFoundError: If the webhook does not exist.
        """
        if not await self.storage.delete_webhook(webhook_id):
            raise NotFoundError("webhook", webhook_id)

    async def reset_webhook_counters(self, webhook_id: str) -> WebhookConfig:
        """Zero a webhook's success and failure counters.

        Raises:
            NotFoundError: If the webhook does not exist.
        """
        webhook = await self.storage.reset_counters(webhook_id)
        if webhook is None:
            raise NotFoundError("webhook", webhook_id)
        return webhook

    async def redeliver(self, webhook_id: str, lead_id: str) -> None:
        """Resend a lead to one webhook as a fresh delivery chain.

        Works for inactive webhooks too. The chain runs in the background.

        Raises:
            NotFoundError: If the webhook or the lead does not exist.
        """
        webhook = await self.get_webhook(webhook_id)
        lead = await self.get_lead(lead_id)
        self.dispatcher.dispatch_to(webhook, lead.to_event())

    async def list_delivery_logs(
        self,
        limit: int | None = None,
        webhook_id: str | None = None,
        lead_id: str | None = None,
    ) -> list[DeliveryLog]:
        """Most recent delivery attempts first.

        Args:
            limit: Maximum rows. Defaults to settings.webhook_log_limit.
            webhook_id: Only attempts for this webhook.
            lead_id: Only attempts for this lead.
        """
        if limit is None:
            limit = self.settings.webhook_log_limit
        limit = max(1, limit)

        if webhook_id is None and lead_id is None:
            return await self.storage.list_recent_logs(limit=limit)

        logs = await self.storage.list_logs_for(webhook_id=webhook_id, lead_id=lead_id)
        return list(reversed(logs))[:limit]


__all__ = ["LeadHubService"]
