"""Lead storage operations for LeadHub."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from qdrant_client import models

    from leadhub.models import Lead


class LeadMixin:
    """Mixin providing lead CRUD and listing for LeadHubStorage.

    This mixin expects the following methods from the base class:
    - _upsert(kind, record_id, payload)
    - _retrieve(kind, record_id) -> payload | None
    - _scroll(kind, conditions) -> list[payload]
    - _delete(kind, record_id)
    - _match(key, value) -> FieldCondition
    - _model_to_payload(model) / _payload_to_model(payload, cls)
    """

    _upsert: Any
    _retrieve: Any
    _scroll: Any
    _delete: Any
    _match: Any
    _model_to_payload: Any
    _payload_to_model: Any

    async def create_lead(self, lead: Lead) -> Lead:
        """Persist a new lead.

        Args:
            lead: Lead to store.

        Returns:
            The stored lead.
        """
        await self._upsert("leads", lead.id, self._model_to_payload(lead))
        return lead

    async def get_lead(self, lead_id: str) -> Lead | None:
        """Get a lead by ID."""
        from leadhub.models import Lead

        payload = await self._retrieve("leads", lead_id)
        if payload is None:
            return None
        lead: Lead = self._payload_to_model(payload, Lead)
        return lead

    async def update_lead(self, lead_id: str, **updates: Any) -> Lead | None:
        """Apply field updates to a lead.

        Updates are validated against the Lead model; unknown fields raise
        pydantic.ValidationError.

        Args:
            lead_id: ID of the lead to update.
            **updates: Fields to update.

        Returns:
            Updated Lead or None if not found.
        """
        from leadhub.models import Lead

        lead = await self.get_lead(lead_id)
        if lead is None:
            return None

        data = lead.model_dump()
        data.update(updates)
        data["id"] = lead.id
        data["created_at"] = lead.created_at
        data["updated_at"] = datetime.now(UTC)
        updated = Lead.model_validate(data)

        await self._upsert("leads", updated.id, self._model_to_payload(updated))
        return updated

    async def delete_lead(self, lead_id: str) -> bool:
        """Delete a lead.

        Delivery logs referencing the lead are kept.

        Returns:
            True if deleted, False if not found.
        """
        if await self._retrieve("leads", lead_id) is None:
            return False
        await self._delete("leads", lead_id)
        return True

    async def list_leads(
        self,
        status: str | None = None,
        priority: str | None = None,
        source: str | None = None,
        search: str | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[Lead], int]:
        """List leads with filtering and pagination.

        Exact filters run in Qdrant; the free-text search and the
        newest-first ordering run in memory.

        Args:
            status: Only leads with this status.
            priority: Only leads with this priority.
            source: Only leads from this source.
            search: Case-insensitive substring over name, phone, email,
                company, and message.
            page: 1-based page number.
            limit: Page size.

        Returns:
            Tuple of (leads on the requested page, total matching leads).
        """
        conditions: list[models.Condition] = []
        if status is not None:
            conditions.append(self._match("status", status))
        if priority is not None:
            conditions.append(self._match("priority", priority))
        if source is not None:
            conditions.append(self._match("source", source))

        leads = await self._load_leads(conditions)
        if search:
            leads = [lead for lead in leads if lead.matches(search)]

        start = (max(page, 1) - 1) * limit
        return leads[start : start + limit], len(leads)

    async def all_leads(self) -> list[Lead]:
        """Every lead, newest first."""
        return await self._load_leads([])

    async def _load_leads(self, conditions: list[models.Condition]) -> list[Lead]:
        from leadhub.models import Lead

        payloads = await self._scroll("leads", conditions)
        leads: list[Lead] = [self._payload_to_model(p, Lead) for p in payloads]
        leads.sort(key=lambda lead: lead.created_at, reverse=True)
        return leads
