"""API helper functions to reduce code duplication.

Provides response object builders for leads, webhooks and delivery logs.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

from .schemas import DeliveryLogResponse, LeadResponse, WebhookResponse

if TYPE_CHECKING:
    from leadhub.models import DeliveryLog, Lead, WebhookConfig


def lead_to_response(lead: Lead) -> LeadResponse:
    """Convert a Lead model to a LeadResponse."""
    return LeadResponse(
        id=lead.id,
        phone=lead.phone,
        source=lead.source,
        name=lead.name,
        email=lead.email,
        company=lead.company,
        message=lead.message,
        status=lead.status,
        priority=lead.priority,
        tags=list(lead.tags),
        extra=dict(lead.extra),
        created_at=lead.created_at.isoformat(),
        updated_at=lead.updated_at.isoformat(),
    )


def webhook_to_response(webhook: WebhookConfig) -> WebhookResponse:
    """Convert a WebhookConfig model to a WebhookResponse."""
    return WebhookResponse(
        id=webhook.id,
        name=webhook.name,
        url=webhook.url,
        is_active=webhook.is_active,
        send_fields=list(webhook.send_fields),
        custom_fields=list(webhook.custom_fields),
        success_count=webhook.success_count,
        failure_count=webhook.failure_count,
        last_triggered_at=(
            webhook.last_triggered_at.isoformat() if webhook.last_triggered_at else None
        ),
        created_at=webhook.created_at.isoformat(),
        updated_at=webhook.updated_at.isoformat(),
    )


def log_to_response(log: DeliveryLog) -> DeliveryLogResponse:
    """Convert a DeliveryLog model to a DeliveryLogResponse."""
    return DeliveryLogResponse(
        id=log.id,
        webhook_id=log.webhook_id,
        lead_id=log.lead_id,
        url=log.url,
        status=log.status,
        http_status=log.http_status,
        response_excerpt=log.response_excerpt,
        error_message=log.error_message,
        attempt=log.attempt,
        max_attempts=log.max_attempts,
        created_at=log.created_at.isoformat(),
        next_retry_at=log.next_retry_at.isoformat() if log.next_retry_at else None,
    )


def total_pages(total: int, limit: int) -> int:
    """Number of pages needed for ``total`` items.

    Examples:
        >>> total_pages(0, 10)
        0
        >>> total_pages(21, 10)
        3
    """
    return math.ceil(total / limit) if limit > 0 else 0
