"""FastAPI router for LeadHub API endpoints."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from leadhub import __version__
from leadhub.models import LeadPriority, LeadStatus
from leadhub.service import LeadHubService

from .helpers import lead_to_response, log_to_response, total_pages, webhook_to_response
from .schemas import (
    DashboardStatsResponse,
    DeliveryLogListResponse,
    HealthResponse,
    LeadCreateRequest,
    LeadListResponse,
    LeadResponse,
    LeadUpdateRequest,
    RedeliverRequest,
    RedeliverResponse,
    WebhookCreateRequest,
    WebhookListResponse,
    WebhookResponse,
    WebhookUpdateRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter()

# Service instance (set by app lifespan)
_service: LeadHubService | None = None


def set_service(service: LeadHubService | None) -> None:
    """Set the global service instance."""
    global _service
    _service = service


async def get_service() -> LeadHubService:
    """Dependency to get the LeadHubService instance."""
    if _service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service not initialized",
        )
    return _service


ServiceDep = Annotated[LeadHubService, Depends(get_service)]


@router.get("/health", response_model=HealthResponse, tags=["system"])
async def health_check() -> HealthResponse:
    """Check service health.

    Reports storage connectivity and how much webhook work is in flight.
    """
    if _service is None:
        return HealthResponse(status="unhealthy", version=__version__, storage_connected=False)

    return HealthResponse(
        status="healthy",
        version=__version__,
        storage_connected=True,
        pending_deliveries=_service.dispatcher.pending_count,
    )


# ----------------------------------------------------------------------
# Leads
# ----------------------------------------------------------------------


@router.post(
    "/leads",
    response_model=LeadResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["leads"],
)
async def create_lead(
    request: LeadCreateRequest,
    service: ServiceDep,
) -> LeadResponse:
    """Capture a lead from a public form.

    The lead is stored and returned right away. Active webhooks are
    notified in the background, so a slow or failing webhook never
    delays or fails this request.

    Raises:
        ValidationError: 400 if phone or source is missing.
    """
    lead = await service.create_lead(
        phone=request.phone or "",
        source=request.source or "",
        name=request.name,
        email=request.email,
        company=request.company,
        message=request.message,
        status=request.status,
        priority=request.priority,
        tags=request.tags,
        extra=request.extra_fields(),
    )
    logger.info("Lead %s captured from %s", lead.id, lead.source)
    return lead_to_response(lead)


@router.get("/leads", response_model=LeadListResponse, tags=["leads"])
async def list_leads(
    service: ServiceDep,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int | None, Query(ge=1)] = None,
    lead_status: Annotated[LeadStatus | None, Query(alias="status")] = None,
    priority: LeadPriority | None = None,
    source: str | None = None,
    search: str | None = None,
) -> LeadListResponse:
    """List leads newest first, with filters and pagination.

    Args:
        page: 1-based page number.
        limit: Page size (capped by settings).
        lead_status: Only leads with this status.
        priority: Only leads with this priority.
        source: Only leads from this source.
        search: Case-insensitive text over name, phone, email, company, message.
    """
    effective_limit = min(
        limit or service.settings.leads_default_page_size,
        service.settings.leads_max_page_size,
    )
    leads, total = await service.list_leads(
        status=lead_status,
        priority=priority,
        source=source,
        search=search,
        page=page,
        limit=effective_limit,
    )
    return LeadListResponse(
        leads=[lead_to_response(lead) for lead in leads],
        total=total,
        page=page,
        limit=effective_limit,
        total_pages=total_pages(total, effective_limit),
    )


@router.get("/leads/{lead_id}", response_model=LeadResponse, tags=["leads"])
async def get_lead(lead_id: str, service: ServiceDep) -> LeadResponse:
    """Get a lead by ID."""
    return lead_to_response(await service.get_lead(lead_id))


@router.put("/leads/{lead_id}", response_model=LeadResponse, tags=["leads"])
async def update_lead(
    lead_id: str,
    request: LeadUpdateRequest,
    service: ServiceDep,
) -> LeadResponse:
    """Update a lead. Only the fields present in the body change."""
    lead = await service.update_lead(lead_id, **request.model_dump(exclude_unset=True))
    return lead_to_response(lead)


@router.delete(
    "/leads/{lead_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["leads"],
)
async def delete_lead(lead_id: str, service: ServiceDep) -> None:
    """Delete a lead. Delivery logs for it are kept."""
    await service.delete_lead(lead_id)


@router.get("/dashboard/stats", response_model=DashboardStatsResponse, tags=["leads"])
async def dashboard_stats(service: ServiceDep) -> DashboardStatsResponse:
    """Lead totals, counts by status and source, and the latest leads."""
    stats = await service.dashboard_stats()
    return DashboardStatsResponse(
        total_leads=stats.total_leads,
        new_leads=stats.new_leads,
        converted_leads=stats.converted_leads,
        leads_by_status=stats.leads_by_status,
        leads_by_source=stats.leads_by_source,
        recent_leads=[lead_to_response(lead) for lead in stats.recent_leads],
    )


# ----------------------------------------------------------------------
# Webhooks
# ----------------------------------------------------------------------


@router.get("/webhooks", response_model=WebhookListResponse, tags=["webhooks"])
async def list_webhooks(
    service: ServiceDep,
    active_only: bool = False,
) -> WebhookListResponse:
    """List registered webhooks, newest first."""
    webhooks = await service.list_webhooks(active_only=active_only)
    return WebhookListResponse(
        webhooks=[webhook_to_response(w) for w in webhooks],
        count=len(webhooks),
    )


@router.post(
    "/webhooks",
    response_model=WebhookResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["webhooks"],
)
async def create_webhook(
    request: WebhookCreateRequest,
    service: ServiceDep,
) -> WebhookResponse:
    """Register a webhook.

    Raises:
        ValidationError: 400 if name is missing or url is not an absolute
            http(s) URL.
    """
    webhook = await service.create_webhook(
        name=request.name or "",
        url=request.url or "",
        is_active=request.is_active,
        send_fields=request.send_fields,
        custom_fields=request.custom_fields,
    )
    logger.info("Webhook %s registered for %s", webhook.id, webhook.url)
    return webhook_to_response(webhook)


# Registered before /webhooks/{webhook_id} so "logs" is not read as an ID
@router.get("/webhooks/logs", response_model=DeliveryLogListResponse, tags=["webhooks"])
async def list_delivery_logs(
    service: ServiceDep,
    limit: Annotated[int | None, Query(ge=1, le=1000)] = None,
    webhook_id: str | None = None,
    lead_id: str | None = None,
) -> DeliveryLogListResponse:
    """Recent delivery attempts, most recent first.

    Args:
        limit: Maximum rows (defaults to settings.webhook_log_limit).
        webhook_id: Only attempts for this webhook.
        lead_id: Only attempts for this lead.
    """
    logs = await service.list_delivery_logs(limit=limit, webhook_id=webhook_id, lead_id=lead_id)
    return DeliveryLogListResponse(
        logs=[log_to_response(log) for log in logs],
        count=len(logs),
    )


@router.get("/webhooks/{webhook_id}", response_model=WebhookResponse, tags=["webhooks"])
async def get_webhook(webhook_id: str, service: ServiceDep) -> WebhookResponse:
    """Get a webhook by ID."""
    return webhook_to_response(await service.get_webhook(webhook_id))


@router.put("/webhooks/{webhook_id}", response_model=WebhookResponse, tags=["webhooks"])
async def update_webhook(
    webhook_id: str,
    request: WebhookUpdateRequest,
    service: ServiceDep,
) -> WebhookResponse:
    """Partially update a webhook. A new url is validated like on create."""
    webhook = await service.update_webhook(webhook_id, **request.model_dump(exclude_unset=True))
    return webhook_to_response(webhook)


@router.delete(
    "/webhooks/{webhook_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["webhooks"],
)
async def delete_webhook(webhook_id: str, service: ServiceDep) -> None:
    """Delete a webhook. Its delivery logs are kept."""
    await service.delete_webhook(webhook_id)


@router.post(
    "/webhooks/{webhook_id}/reset-counters",
    response_model=WebhookResponse,
    tags=["webhooks"],
)
async def reset_webhook_counters(webhook_id: str, service: ServiceDep) -> WebhookResponse:
    """Zero a webhook's success and failure counters."""
    return webhook_to_response(await service.reset_webhook_counters(webhook_id))


@router.post(
    "/webhooks/{webhook_id}/redeliver",
    response_model=RedeliverResponse,
    status_code=status.HTTP_202_ACCEPTED,
    tags=["webhooks"],
)
async def redeliver(
    webhook_id: str,
    request: RedeliverRequest,
    service: ServiceDep,
) -> RedeliverResponse:
    """Resend a lead to one webhook as a fresh delivery chain.

    The webhook may be inactive. Delivery runs in the background; its
    attempts show up in the delivery log.
    """
    await service.redeliver(webhook_id, request.lead_id)
    return RedeliverResponse(webhook_id=webhook_id, lead_id=request.lead_id)
